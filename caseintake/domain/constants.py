from __future__ import annotations

from enum import StrEnum


class VisitType(StrEnum):
    FIRST = "First"
    FOLLOW_UP_1 = "Follow-up-1"
    FOLLOW_UP_2 = "Follow-up-2"
    FOLLOW_UP_3 = "Follow-up-3"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class WizardStep(StrEnum):
    REGISTER = "register"
    HISTORY = "history"
    PAST_TREATMENTS_MEDICATIONS = "past_treatments_medications"
    COMPLAINTS = "complaints"
    VISION = "vision"
    EXAMINATION = "examination"
    BLOOD_INVESTIGATION = "blood_investigation"
    DIAGNOSIS_TESTS = "diagnosis_tests"
    DIAGRAM = "diagram"
    ADVICE = "advice"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


STEP_ORDER: tuple[WizardStep, ...] = tuple(WizardStep)


class StepStatus(StrEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    VISITED = "visited"
    UNTOUCHED = "untouched"


class CollectionKind(StrEnum):
    PAST_TREATMENT = "past_treatment"
    PAST_MEDICINE = "past_medicine"
    COMPLAINT = "complaint"
    PRESCRIBED_MEDICINE = "prescribed_medicine"
    SURGERY = "surgery"
    DIAGNOSTIC_TEST = "diagnostic_test"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


class MasterDataCategory(StrEnum):
    TREATMENTS = "treatments"
    MEDICINES = "medicines"
    DOSAGES = "dosages"
    ROUTES = "routes"
    EYE_SELECTION = "eye_selection"
    VISIT_TYPES = "visit_types"
    SURGERIES = "surgeries"
    DIAGNOSIS = "diagnosis"
    SAC_STATUS = "sac_status"
    IOP_RANGES = "iop_ranges"
    IOP_METHODS = "iop_methods"
    VISUAL_ACUITY = "visual_acuity"
    BLOOD_TESTS = "blood_tests"
    DIAGNOSTIC_TESTS = "diagnostic_tests"
    ANESTHESIA_TYPES = "anesthesia_types"

    @classmethod
    def values(cls) -> list[str]:
        return [item.value for item in cls]


COMPLAINTS_CATEGORY = "complaints"

CASE_STATUS_ACTIVE = "active"

NOTICE_LEVELS: tuple[str, ...] = ("info", "success", "warning", "error")


class WizardMode(StrEnum):
    CREATE = "create"
    EDIT = "edit"
