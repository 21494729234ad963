from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from caseintake.domain.constants import CollectionKind


class _Entry(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True, extra="forbid")


class PastTreatment(_Entry):
    treatment_ref: str = ""
    years: str = ""


class PastMedicine(_Entry):
    medicine_id: str | None = None
    medicine_name: str = ""
    type: str = ""
    advice: str = ""
    duration: str = ""
    eye: str = "R"


class Complaint(_Entry):
    complaint_ref: str = ""
    category_ref: str | None = None
    eye: str | None = None
    duration: str | None = None
    notes: str | None = None


class PrescribedMedicine(_Entry):
    drug_ref: str = ""
    eye: str = ""
    dosage_ref: str = ""
    route_ref: str = ""
    duration: str = ""
    quantity: str = ""


class Surgery(_Entry):
    eye: str = ""
    surgery_ref: str = ""
    anesthesia: str = ""


class DiagnosticTest(_Entry):
    test_ref: str = ""
    eye: str | None = None
    type: str | None = None
    problem: str | None = None
    notes: str | None = None


CollectionEntry = PastTreatment | PastMedicine | Complaint | PrescribedMedicine | Surgery | DiagnosticTest

# kind -> (draft attribute, entry model)
COLLECTIONS: dict[CollectionKind, tuple[str, type[_Entry]]] = {
    CollectionKind.PAST_TREATMENT: ("past_treatments", PastTreatment),
    CollectionKind.PAST_MEDICINE: ("past_medicines", PastMedicine),
    CollectionKind.COMPLAINT: ("complaints", Complaint),
    CollectionKind.PRESCRIBED_MEDICINE: ("prescribed_medicines", PrescribedMedicine),
    CollectionKind.SURGERY: ("surgeries", Surgery),
    CollectionKind.DIAGNOSTIC_TEST: ("diagnostic_tests", DiagnosticTest),
}


def entry_model(kind: CollectionKind | str) -> type[_Entry]:
    return COLLECTIONS[CollectionKind(kind)][1]


def collection_attr(kind: CollectionKind | str) -> str:
    return COLLECTIONS[CollectionKind(kind)][0]


class _Block(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True, extra="forbid")


class EyePair(_Block):
    right: str = ""
    left: str = ""


class VisionBlock(_Block):
    unaided: EyePair = Field(default_factory=EyePair)
    pinhole: EyePair = Field(default_factory=EyePair)
    aided: EyePair = Field(default_factory=EyePair)
    near: EyePair = Field(default_factory=EyePair)


class RefractionReading(_Block):
    sph: str = ""
    cyl: str = ""
    axis: str = ""
    va: str = ""


class RefractionEyes(_Block):
    right: RefractionReading = Field(default_factory=RefractionReading)
    left: RefractionReading = Field(default_factory=RefractionReading)


class RefractionBlock(_Block):
    distant: RefractionEyes = Field(default_factory=RefractionEyes)
    near: RefractionEyes = Field(default_factory=RefractionEyes)
    pg: RefractionEyes = Field(default_factory=RefractionEyes)
    purpose: str = ""
    quality: str = ""
    remark: str = ""


class AnteriorSegment(_Block):
    eyelids: EyePair = Field(default_factory=EyePair)
    conjunctiva: EyePair = Field(default_factory=EyePair)
    cornea: EyePair = Field(default_factory=EyePair)
    anterior_chamber: EyePair = Field(default_factory=EyePair)
    iris: EyePair = Field(default_factory=EyePair)
    lens: EyePair = Field(default_factory=EyePair)
    remarks: str = ""


class PosteriorSegment(_Block):
    vitreous: EyePair = Field(default_factory=EyePair)
    disc: EyePair = Field(default_factory=EyePair)
    retina: EyePair = Field(default_factory=EyePair)
    remarks: str = ""


def _ordered_unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for raw in values:
        value = str(raw).strip()
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


class BloodBlock(_Block):
    blood_pressure: str = ""
    blood_sugar: str = ""
    blood_tests: list[str] = Field(default_factory=list)

    @field_validator("blood_tests")
    @classmethod
    def _dedupe_tests(cls, v: list[str]) -> list[str]:
        return _ordered_unique(v)


class EyeTestsBlock(_Block):
    iop_right: str = ""
    iop_left: str = ""
    sac_test_right: str = ""
    sac_test_left: str = ""


class DiagramBlock(_Block):
    right: str = ""
    left: str = ""


class AdviceBlock(_Block):
    advice_remarks: str = ""
    surgery_remarks: str = ""


class CaseDraft(_Block):
    """Flat working state of one case while the wizard is open."""

    case_no: str = ""
    case_date: str = ""
    patient_id: str = ""
    visit_type: str = ""

    chief_complaint: str = ""
    history_present_illness: str = ""

    past_treatments: list[PastTreatment] = Field(default_factory=list)
    past_medicines: list[PastMedicine] = Field(default_factory=list)

    complaints: list[Complaint] = Field(default_factory=list)
    no_complaints: bool = False

    vision: VisionBlock = Field(default_factory=VisionBlock)
    refraction: RefractionBlock = Field(default_factory=RefractionBlock)
    anterior: AnteriorSegment = Field(default_factory=AnteriorSegment)
    posterior: PosteriorSegment = Field(default_factory=PosteriorSegment)
    blood: BloodBlock = Field(default_factory=BloodBlock)

    diagnosis: list[str] = Field(default_factory=list)
    diagnosis_pending: bool = False
    tests: EyeTestsBlock = Field(default_factory=EyeTestsBlock)
    diagnostic_tests: list[DiagnosticTest] = Field(default_factory=list)

    diagram: DiagramBlock = Field(default_factory=DiagramBlock)

    prescribed_medicines: list[PrescribedMedicine] = Field(default_factory=list)
    surgeries: list[Surgery] = Field(default_factory=list)
    advice: AdviceBlock = Field(default_factory=AdviceBlock)

    @field_validator("diagnosis")
    @classmethod
    def _dedupe_diagnosis(cls, v: list[str]) -> list[str]:
        return _ordered_unique(v)


def normalize_flags(draft: CaseDraft) -> CaseDraft:
    """Clear a flag whose collection is non-empty; the collection wins."""
    updates: dict[str, bool] = {}
    if draft.complaints and draft.no_complaints:
        updates["no_complaints"] = False
    if draft.diagnosis and draft.diagnosis_pending:
        updates["diagnosis_pending"] = False
    if not updates:
        return draft
    return draft.model_copy(update=updates)


def with_field(draft: CaseDraft, path: str, value: object) -> CaseDraft:
    """Copy of ``draft`` with the dotted ``path`` replaced, re-validated."""
    parts = path.split(".")
    data = draft.model_dump()
    node = data
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            raise ValueError(f"Unknown case field: {path}")
        node = child
    if parts[-1] not in node:
        raise ValueError(f"Unknown case field: {path}")
    node[parts[-1]] = value
    return normalize_flags(CaseDraft.model_validate(data))


def with_items(draft: CaseDraft, kind: CollectionKind | str, items: tuple[CollectionEntry, ...] | list) -> CaseDraft:
    return normalize_flags(draft.model_copy(update={collection_attr(kind): list(items)}))
