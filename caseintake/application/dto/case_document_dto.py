from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from caseintake.domain.constants import CASE_STATUS_ACTIVE, VisitType


class _Doc(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class EyeValues(_Doc):
    right: str | None = None
    left: str | None = None


class PastTreatmentDoc(_Doc):
    treatment: str
    years: str | None = None


class PastMedicationDoc(_Doc):
    medicine_id: str | None = None
    medicine_name: str
    type: str | None = None
    advice: str | None = None
    duration: str | None = None
    eye: str | None = None


class ComplaintDoc(_Doc):
    complaint_id: str = Field(alias="complaintId")
    category_id: str | None = Field(default=None, alias="categoryId")
    eye: str | None = None
    duration: str | None = None
    notes: str | None = None


class TreatmentDoc(_Doc):
    drug_id: str
    dosage_id: str | None = None
    route_id: str | None = None
    eye: str | None = None
    duration: str | None = None
    quantity: str | None = None


class VisionDoc(_Doc):
    unaided: EyeValues | None = None
    pinhole: EyeValues | None = None
    aided: EyeValues | None = None
    near: EyeValues | None = None


class AnteriorSegmentDoc(_Doc):
    eyelids: EyeValues | None = None
    conjunctiva: EyeValues | None = None
    cornea: EyeValues | None = None
    anterior_chamber: EyeValues | None = None
    iris: EyeValues | None = None
    lens: EyeValues | None = None
    remarks: str | None = None


class PosteriorSegmentDoc(_Doc):
    vitreous: EyeValues | None = None
    disc: EyeValues | None = None
    retina: EyeValues | None = None
    remarks: str | None = None


class RefractionValues(_Doc):
    sph: str | None = None
    cyl: str | None = None
    axis: str | None = None
    va: str | None = None


class RefractionEyesDoc(_Doc):
    right: RefractionValues | None = None
    left: RefractionValues | None = None


class RefractionDoc(_Doc):
    distant: RefractionEyesDoc | None = None
    near: RefractionEyesDoc | None = None
    pg: RefractionEyesDoc | None = None
    purpose: str | None = None
    quality: str | None = None
    remark: str | None = None


class BloodInvestigationDoc(_Doc):
    blood_pressure: str | None = None
    blood_sugar: str | None = None
    blood_tests: list[str] | None = None


class IopReading(_Doc):
    id: str
    value: str | None = None


class IopDoc(_Doc):
    right: IopReading | None = None
    left: IopReading | None = None


class EyeTestsDoc(_Doc):
    iop: IopDoc | None = None
    sac_test: EyeValues | None = None


class SurgeryDoc(_Doc):
    eye: str | None = None
    surgery_name: str
    anesthesia: str | None = None


class ExaminationDoc(_Doc):
    anterior_segment: AnteriorSegmentDoc | None = None
    posterior_segment: PosteriorSegmentDoc | None = None
    refraction: RefractionDoc | None = None
    blood_investigation: BloodInvestigationDoc | None = None
    tests: EyeTestsDoc | None = None
    surgeries: list[SurgeryDoc] | None = None
    diagrams: EyeValues | None = None


class DiagnosticTestDoc(_Doc):
    test_id: str
    eye: str | None = None
    type: str | None = None
    problem: str | None = None
    notes: str | None = None


class CaseDocument(_Doc):
    """Persisted shape of one case; absent optional blocks are omitted."""

    patient_id: str | None = None
    case_no: str | None = None
    encounter_date: str | None = None
    visit_type: str | None = None
    chief_complaint: str | None = None
    history_of_present_illness: str | None = None
    past_medical_history: str | None = None
    past_history_treatments: list[PastTreatmentDoc] | None = None
    past_medications: list[PastMedicationDoc] | None = None
    complaints: list[ComplaintDoc] | None = None
    no_complaints_flag: bool | None = None
    treatments: list[TreatmentDoc] | None = None
    vision_data: VisionDoc | None = None
    examination_data: ExaminationDoc | None = None
    diagnostic_tests: list[DiagnosticTestDoc] | None = None
    diagnosis: list[str] | None = None
    diagnosis_pending_flag: bool | None = None
    examination_findings: str | None = None
    advice_remarks: str | None = None
    surgery_remarks: str | None = None
    status: str | None = None


class CaseHeader(BaseModel):
    """Identity fields every stored case document must carry."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    patient_id: str = Field(..., min_length=1)
    case_no: str = Field(..., min_length=1)
    encounter_date: date
    visit_type: str
    status: str = CASE_STATUS_ACTIVE

    @field_validator("visit_type")
    @classmethod
    def _validate_visit_type(cls, v: str) -> str:
        if v not in VisitType.values():
            raise ValueError("Visit type must be one of " + ", ".join(VisitType.values()))
        return v


class CaseSaved(BaseModel):
    id: str
    case_no: str
    patient_id: str
    visit_type: str
