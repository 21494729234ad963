from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from caseintake.application.dto.case_document_dto import (
    AnteriorSegmentDoc,
    BloodInvestigationDoc,
    CaseDocument,
    ComplaintDoc,
    DiagnosticTestDoc,
    ExaminationDoc,
    EyeTestsDoc,
    EyeValues,
    IopDoc,
    IopReading,
    PastMedicationDoc,
    PastTreatmentDoc,
    PosteriorSegmentDoc,
    RefractionDoc,
    RefractionEyesDoc,
    RefractionValues,
    SurgeryDoc,
    TreatmentDoc,
    VisionDoc,
)
from caseintake.application.dto.case_dto import (
    AdviceBlock,
    AnteriorSegment,
    BloodBlock,
    CaseDraft,
    Complaint,
    DiagnosticTest,
    DiagramBlock,
    EyePair,
    EyeTestsBlock,
    PastMedicine,
    PastTreatment,
    PosteriorSegment,
    PrescribedMedicine,
    RefractionBlock,
    RefractionEyes,
    RefractionReading,
    Surgery,
    VisionBlock,
)
from caseintake.domain.constants import CASE_STATUS_ACTIVE, CollectionKind
from caseintake.domain.rules.collection_rules import has_primary_reference

_VISION_ROWS = ("unaided", "pinhole", "aided", "near")
_ANTERIOR_ROWS = ("eyelids", "conjunctiva", "cornea", "anterior_chamber", "iris", "lens")
_POSTERIOR_ROWS = ("vitreous", "disc", "retina")
_REGIMES = ("distant", "near", "pg")
_HISTORY_ITEM_RE = re.compile(r"^(.+?) \((.*) years\)$")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    clean = str(value).strip()
    return clean or None


def _present(**values: Any) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, str):
            value = _text(value)
        if value is None or value == [] or value == {}:
            continue
        result[key] = value
    return result


def _kept(kind: CollectionKind, items: list) -> list:
    return [item for item in items if has_primary_reference(kind, item.model_dump())]


def _eye_values(pair: EyePair) -> EyeValues | None:
    data = _present(right=pair.right, left=pair.left)
    return EyeValues(**data) if data else None


def _rows(block: Any, names: tuple[str, ...]) -> dict[str, EyeValues]:
    return _present(**{name: _eye_values(getattr(block, name)) for name in names})


def _refraction_eyes(eyes: RefractionEyes) -> RefractionEyesDoc | None:
    sides: dict[str, RefractionValues] = {}
    for side in ("right", "left"):
        reading: RefractionReading = getattr(eyes, side)
        data = _present(sph=reading.sph, cyl=reading.cyl, axis=reading.axis, va=reading.va)
        if data:
            sides[side] = RefractionValues(**data)
    return RefractionEyesDoc(**sides) if sides else None


def _refraction(block: RefractionBlock) -> RefractionDoc | None:
    data = _present(
        **{regime: _refraction_eyes(getattr(block, regime)) for regime in _REGIMES},
        purpose=block.purpose,
        quality=block.quality,
        remark=block.remark,
    )
    return RefractionDoc(**data) if data else None


def _iop(tests: EyeTestsBlock, iop_labels: Mapping[str, str]) -> IopDoc | None:
    sides: dict[str, IopReading] = {}
    for side, raw in (("right", tests.iop_right), ("left", tests.iop_left)):
        ref = _text(raw)
        if ref:
            sides[side] = IopReading(id=ref, value=iop_labels.get(ref, ref))
    return IopDoc(**sides) if sides else None


def _eye_tests(tests: EyeTestsBlock, iop_labels: Mapping[str, str]) -> EyeTestsDoc | None:
    data = _present(
        iop=_iop(tests, iop_labels),
        sac_test=_eye_values(EyePair(right=tests.sac_test_right, left=tests.sac_test_left)),
    )
    return EyeTestsDoc(**data) if data else None


def _past_medical_history(draft: CaseDraft) -> str | None:
    parts = [
        f"{item.treatment_ref} ({item.years or '0'} years)"
        for item in _kept(CollectionKind.PAST_TREATMENT, draft.past_treatments)
    ]
    return "; ".join(parts) or None


def _examination_findings(draft: CaseDraft) -> str | None:
    parts = _present(anterior=draft.anterior.remarks, posterior=draft.posterior.remarks)
    lines = [f"{key.capitalize()}: {value}" for key, value in parts.items()]
    return "\n".join(lines) or None


def to_submission(draft: CaseDraft, *, iop_labels: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Nested case document for ``draft``.

    Collection rows with a blank primary reference are dropped and blank
    optional values are omitted rather than emitted empty.
    """
    iop_labels = iop_labels or {}

    complaints = [
        ComplaintDoc(
            complaint_id=item.complaint_ref,
            category_id=_text(item.category_ref),
            **_present(eye=item.eye, duration=item.duration, notes=item.notes),
        )
        for item in _kept(CollectionKind.COMPLAINT, draft.complaints)
    ]
    treatments = [
        TreatmentDoc(
            drug_id=item.drug_ref,
            **_present(
                dosage_id=item.dosage_ref,
                route_id=item.route_ref,
                eye=item.eye,
                duration=item.duration,
                quantity=item.quantity,
            ),
        )
        for item in _kept(CollectionKind.PRESCRIBED_MEDICINE, draft.prescribed_medicines)
    ]
    diagnostic_tests = [
        DiagnosticTestDoc(
            test_id=item.test_ref,
            **_present(eye=item.eye, type=item.type, problem=item.problem, notes=item.notes),
        )
        for item in _kept(CollectionKind.DIAGNOSTIC_TEST, draft.diagnostic_tests)
    ]
    surgeries = [
        SurgeryDoc(surgery_name=item.surgery_ref, **_present(eye=item.eye, anesthesia=item.anesthesia))
        for item in _kept(CollectionKind.SURGERY, draft.surgeries)
    ]
    past_treatments = [
        PastTreatmentDoc(treatment=item.treatment_ref, **_present(years=item.years))
        for item in _kept(CollectionKind.PAST_TREATMENT, draft.past_treatments)
    ]
    past_medications = [
        PastMedicationDoc(
            medicine_name=item.medicine_name,
            **_present(
                medicine_id=item.medicine_id,
                type=item.type,
                advice=item.advice,
                duration=item.duration,
                eye=item.eye,
            ),
        )
        for item in _kept(CollectionKind.PAST_MEDICINE, draft.past_medicines)
    ]

    vision = _rows(draft.vision, _VISION_ROWS)
    anterior = _present(**_rows(draft.anterior, _ANTERIOR_ROWS), remarks=draft.anterior.remarks)
    posterior = _present(**_rows(draft.posterior, _POSTERIOR_ROWS), remarks=draft.posterior.remarks)
    blood = _present(
        blood_pressure=draft.blood.blood_pressure,
        blood_sugar=draft.blood.blood_sugar,
        blood_tests=list(draft.blood.blood_tests),
    )
    diagrams = _eye_values(EyePair(right=draft.diagram.right, left=draft.diagram.left))
    examination = _present(
        anterior_segment=AnteriorSegmentDoc(**anterior) if anterior else None,
        posterior_segment=PosteriorSegmentDoc(**posterior) if posterior else None,
        refraction=_refraction(draft.refraction),
        blood_investigation=BloodInvestigationDoc(**blood) if blood else None,
        tests=_eye_tests(draft.tests, iop_labels),
        surgeries=surgeries,
        diagrams=diagrams,
    )

    document = CaseDocument(
        no_complaints_flag=draft.no_complaints,
        diagnosis_pending_flag=draft.diagnosis_pending,
        status=CASE_STATUS_ACTIVE,
        **_present(
            patient_id=draft.patient_id,
            case_no=draft.case_no,
            encounter_date=draft.case_date,
            visit_type=draft.visit_type,
            chief_complaint=draft.chief_complaint,
            history_of_present_illness=draft.history_present_illness,
            past_medical_history=_past_medical_history(draft),
            past_history_treatments=past_treatments,
            past_medications=past_medications,
            complaints=complaints,
            treatments=treatments,
            vision_data=VisionDoc(**vision) if vision else None,
            examination_data=ExaminationDoc(**examination) if examination else None,
            diagnostic_tests=diagnostic_tests,
            diagnosis=list(draft.diagnosis),
            examination_findings=_examination_findings(draft),
            advice_remarks=draft.advice.advice_remarks,
            surgery_remarks=draft.advice.surgery_remarks,
        ),
    )
    return document.to_payload()


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _str(value: Any) -> str:
    return _text(value) or ""


def _pair(value: Any) -> EyePair:
    data = _as_dict(value)
    return EyePair(right=_str(data.get("right")), left=_str(data.get("left")))


def _rows_from(data: dict[str, Any], names: tuple[str, ...]) -> dict[str, EyePair]:
    return {name: _pair(data.get(name)) for name in names}


def _refraction_from(data: dict[str, Any]) -> RefractionBlock:
    regimes: dict[str, RefractionEyes] = {}
    for regime in _REGIMES:
        eyes = _as_dict(data.get(regime))
        sides: dict[str, RefractionReading] = {}
        for side in ("right", "left"):
            reading = _as_dict(eyes.get(side))
            sides[side] = RefractionReading(
                sph=_str(reading.get("sph")),
                cyl=_str(reading.get("cyl")),
                axis=_str(reading.get("axis")),
                va=_str(reading.get("va")),
            )
        regimes[regime] = RefractionEyes(**sides)
    return RefractionBlock(
        **regimes,
        purpose=_str(data.get("purpose")),
        quality=_str(data.get("quality")),
        remark=_str(data.get("remark")),
    )


def _iop_ref(value: Any) -> str:
    if isinstance(value, dict):
        return _str(value.get("id"))
    return _str(value)


def _tests_from(document: dict[str, Any], examination: dict[str, Any]) -> EyeTestsBlock:
    tests = _as_dict(examination.get("tests"))
    iop = _as_dict(tests.get("iop"))
    sac = tests.get("sac_test")
    # A plain-string sac_test predates the per-eye layout and carries no side.
    sac_pair = _pair(sac) if isinstance(sac, dict) else EyePair()
    return EyeTestsBlock(
        iop_right=_iop_ref(iop.get("right")) or _str(document.get("iop_right")),
        iop_left=_iop_ref(iop.get("left")) or _str(document.get("iop_left")),
        sac_test_right=sac_pair.right or _str(document.get("sac_test_right")),
        sac_test_left=sac_pair.left or _str(document.get("sac_test_left")),
    )


def _string_set(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    return [str(item) for item in _as_list(value) if _text(item)]


def _parse_medical_history(summary: str) -> list[PastTreatment]:
    result: list[PastTreatment] = []
    for part in summary.split(";"):
        clean = part.strip()
        if not clean:
            continue
        match = _HISTORY_ITEM_RE.match(clean)
        if match:
            result.append(PastTreatment(treatment_ref=match.group(1), years=match.group(2)))
        else:
            result.append(PastTreatment(treatment_ref=clean))
    return result


def _past_treatments_from(document: dict[str, Any]) -> list[PastTreatment]:
    rows = _as_list(document.get("past_history_treatments"))
    if not rows:
        return _parse_medical_history(_str(document.get("past_medical_history")))
    return [
        PastTreatment(treatment_ref=_str(row.get("treatment")), years=_str(row.get("years")))
        for row in map(_as_dict, rows)
        if _text(row.get("treatment"))
    ]


def _past_medicines_from(document: dict[str, Any]) -> list[PastMedicine]:
    rows = _as_list(document.get("past_medications")) or _as_list(document.get("past_medicines"))
    result: list[PastMedicine] = []
    for row in map(_as_dict, rows):
        name = _text(row.get("medicine_name"))
        if not name:
            continue
        result.append(
            PastMedicine(
                medicine_id=_text(row.get("medicine_id")),
                medicine_name=name,
                type=_str(row.get("type")),
                advice=_str(row.get("advice")),
                duration=_str(row.get("duration")),
                eye=_str(row.get("eye")),
            )
        )
    return result


def _complaints_from(document: dict[str, Any]) -> list[Complaint]:
    result: list[Complaint] = []
    for row in map(_as_dict, _as_list(document.get("complaints"))):
        ref = _text(row.get("complaintId") or row.get("complaint_id"))
        if not ref:
            continue
        result.append(
            Complaint(
                complaint_ref=ref,
                category_ref=_text(row.get("categoryId") or row.get("category_id")),
                eye=_text(row.get("eye")),
                duration=_text(row.get("duration")),
                notes=_text(row.get("notes")),
            )
        )
    return result


def _medicines_from(document: dict[str, Any]) -> list[PrescribedMedicine]:
    result: list[PrescribedMedicine] = []
    for row in map(_as_dict, _as_list(document.get("treatments"))):
        drug = _text(row.get("drug_id"))
        if not drug:
            continue
        result.append(
            PrescribedMedicine(
                drug_ref=drug,
                eye=_str(row.get("eye")),
                dosage_ref=_str(row.get("dosage_id")),
                route_ref=_str(row.get("route_id")),
                duration=_str(row.get("duration")),
                quantity=_str(row.get("quantity")),
            )
        )
    return result


def _surgeries_from(document: dict[str, Any], examination: dict[str, Any]) -> list[Surgery]:
    rows = _as_list(examination.get("surgeries")) or _as_list(document.get("surgeries"))
    return [
        Surgery(
            eye=_str(row.get("eye")),
            surgery_ref=_str(row.get("surgery_name")),
            anesthesia=_str(row.get("anesthesia")),
        )
        for row in map(_as_dict, rows)
        if _text(row.get("surgery_name"))
    ]


def _diagnostic_tests_from(document: dict[str, Any]) -> list[DiagnosticTest]:
    return [
        DiagnosticTest(
            test_ref=_str(row.get("test_id")),
            eye=_text(row.get("eye")),
            type=_text(row.get("type")),
            problem=_text(row.get("problem")),
            notes=_text(row.get("notes")),
        )
        for row in map(_as_dict, _as_list(document.get("diagnostic_tests")))
        if _text(row.get("test_id"))
    ]


def _flag(document: dict[str, Any], key: str, *, collection_empty: bool) -> bool:
    value = document.get(key)
    if isinstance(value, bool):
        return value and collection_empty
    return collection_empty


def from_document(document: Mapping[str, Any]) -> CaseDraft:
    """Editable draft for a persisted case; tolerates missing and legacy blocks."""
    data = dict(document)
    vision = _as_dict(data.get("vision_data"))
    examination = _as_dict(data.get("examination_data"))
    anterior = _as_dict(examination.get("anterior_segment"))
    posterior = _as_dict(examination.get("posterior_segment"))
    blood = _as_dict(examination.get("blood_investigation")) or _as_dict(data.get("blood_investigation"))
    diagrams = _pair(examination.get("diagrams"))

    complaints = _complaints_from(data)
    diagnosis = _string_set(data.get("diagnosis"))

    return CaseDraft(
        case_no=_str(data.get("case_no")),
        case_date=_str(data.get("encounter_date") or data.get("case_date")),
        patient_id=_str(data.get("patient_id")),
        visit_type=_str(data.get("visit_type")),
        chief_complaint=_str(data.get("chief_complaint")),
        history_present_illness=_str(data.get("history_of_present_illness") or data.get("history")),
        past_treatments=_past_treatments_from(data),
        past_medicines=_past_medicines_from(data),
        complaints=complaints,
        no_complaints=_flag(data, "no_complaints_flag", collection_empty=not complaints),
        vision=VisionBlock(**_rows_from(vision, _VISION_ROWS)),
        refraction=_refraction_from(_as_dict(examination.get("refraction"))),
        anterior=AnteriorSegment(**_rows_from(anterior, _ANTERIOR_ROWS), remarks=_str(anterior.get("remarks"))),
        posterior=PosteriorSegment(
            **_rows_from(posterior, _POSTERIOR_ROWS), remarks=_str(posterior.get("remarks"))
        ),
        blood=BloodBlock(
            blood_pressure=_str(blood.get("blood_pressure")),
            blood_sugar=_str(blood.get("blood_sugar")),
            blood_tests=_string_set(blood.get("blood_tests") or data.get("blood_tests")),
        ),
        diagnosis=diagnosis,
        diagnosis_pending=_flag(data, "diagnosis_pending_flag", collection_empty=not diagnosis),
        tests=_tests_from(data, examination),
        diagnostic_tests=_diagnostic_tests_from(data),
        diagram=DiagramBlock(right=diagrams.right, left=diagrams.left),
        prescribed_medicines=_medicines_from(data),
        surgeries=_surgeries_from(data, examination),
        advice=AdviceBlock(
            advice_remarks=_str(data.get("advice_remarks") or data.get("follow_up_instructions")),
            surgery_remarks=_str(data.get("surgery_remarks")),
        ),
    )
