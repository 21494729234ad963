from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from caseintake.domain.constants import VisitType, WizardStep

MAX_NAMED_FIELDS = 3


@dataclass(frozen=True)
class FieldRule:
    path: str
    label: str
    required: bool = False
    check: Callable[[str], str | None] | None = None


@dataclass(frozen=True)
class FieldError:
    path: str
    label: str
    message: str


@dataclass(frozen=True)
class StepValidation:
    step: WizardStep
    valid: bool
    failed_fields: tuple[FieldError, ...] = ()
    rule_message: str | None = None


def _check_iso_date(value: str) -> str | None:
    try:
        date.fromisoformat(value)
    except ValueError:
        return "must be a date in YYYY-MM-DD format"
    return None


def _check_visit_type(value: str) -> str | None:
    if value not in VisitType.values():
        return "must be one of " + ", ".join(VisitType.values())
    return None


FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("case_no", "Case Number", required=True),
    FieldRule("case_date", "Case Date", required=True, check=_check_iso_date),
    FieldRule("patient_id", "Patient", required=True),
    FieldRule("visit_type", "Visit Type", required=True, check=_check_visit_type),
)

_EYE_PAIR = ("right", "left")


def _pairs(prefix: str, names: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(f"{prefix}.{name}.{eye}" for name in names for eye in _EYE_PAIR)


def _refraction_paths() -> tuple[str, ...]:
    paths = [
        f"refraction.{regime}.{eye}.{field}"
        for regime in ("distant", "near", "pg")
        for eye in _EYE_PAIR
        for field in ("sph", "cyl", "axis", "va")
    ]
    return (*paths, "refraction.purpose", "refraction.quality", "refraction.remark")


STEP_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.REGISTER: ("case_no", "case_date", "patient_id", "visit_type"),
    WizardStep.HISTORY: ("chief_complaint", "history_present_illness"),
    WizardStep.PAST_TREATMENTS_MEDICATIONS: ("past_treatments", "past_medicines"),
    WizardStep.COMPLAINTS: ("complaints", "no_complaints"),
    WizardStep.VISION: (
        *_pairs("vision", ("unaided", "pinhole", "aided", "near")),
        *_refraction_paths(),
    ),
    WizardStep.EXAMINATION: (
        *_pairs("anterior", ("eyelids", "conjunctiva", "cornea", "anterior_chamber", "iris", "lens")),
        "anterior.remarks",
        *_pairs("posterior", ("vitreous", "disc", "retina")),
        "posterior.remarks",
    ),
    WizardStep.BLOOD_INVESTIGATION: ("blood.blood_pressure", "blood.blood_sugar", "blood.blood_tests"),
    WizardStep.DIAGNOSIS_TESTS: (
        "diagnosis",
        "diagnosis_pending",
        "tests.iop_right",
        "tests.iop_left",
        "tests.sac_test_right",
        "tests.sac_test_left",
        "diagnostic_tests",
    ),
    WizardStep.DIAGRAM: ("diagram.right", "diagram.left"),
    WizardStep.ADVICE: (
        "prescribed_medicines",
        "surgeries",
        "advice.advice_remarks",
        "advice.surgery_remarks",
    ),
}


def step_for_field(path: str) -> WizardStep:
    for step, paths in STEP_FIELDS.items():
        if path in paths:
            return step
    raise ValueError(f"Unknown case field: {path}")


def value_at(snapshot: Mapping[str, Any], path: str) -> Any:
    current: Any = snapshot
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def collect_field_errors(snapshot: Mapping[str, Any], paths: tuple[str, ...] | None = None) -> list[FieldError]:
    errors: list[FieldError] = []
    for rule in FIELD_RULES:
        if paths is not None and rule.path not in paths:
            continue
        raw = _as_text(value_at(snapshot, rule.path))
        if not raw:
            if rule.required:
                errors.append(FieldError(rule.path, rule.label, "is required"))
            continue
        if rule.check is None:
            continue
        problem = rule.check(raw)
        if problem:
            errors.append(FieldError(rule.path, rule.label, problem))
    return errors


def _has_items(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0


def _gate(snapshot: Mapping[str, Any], step: WizardStep) -> str | None:
    if step == WizardStep.REGISTER:
        if not _as_text(snapshot.get("patient_id")) or not _as_text(snapshot.get("visit_type")):
            return "Select a patient and visit type"
        return None
    if step == WizardStep.COMPLAINTS:
        if _has_items(snapshot.get("complaints")) or bool(snapshot.get("no_complaints")):
            return None
        return "Add at least one complaint or mark No Complaints"
    if step == WizardStep.DIAGNOSIS_TESTS:
        if _has_items(snapshot.get("diagnosis")) or bool(snapshot.get("diagnosis_pending")):
            return None
        return "Select at least one diagnosis or mark Diagnosis Pending"
    if step == WizardStep.ADVICE:
        if _has_items(snapshot.get("prescribed_medicines")) or _has_items(snapshot.get("surgeries")):
            return None
        return "Add at least one medicine or surgery"
    return None


_GATED_STEPS = {
    WizardStep.REGISTER,
    WizardStep.COMPLAINTS,
    WizardStep.DIAGNOSIS_TESTS,
    WizardStep.ADVICE,
}


def validate_step(step: WizardStep | str, snapshot: Mapping[str, Any]) -> StepValidation:
    step = WizardStep(step)
    if step in _GATED_STEPS:
        message = _gate(snapshot, step)
        if message is None:
            return StepValidation(step=step, valid=True)
        failed = tuple(collect_field_errors(snapshot, STEP_FIELDS[step]))
        return StepValidation(step=step, valid=False, failed_fields=failed, rule_message=message)
    failed = tuple(collect_field_errors(snapshot, STEP_FIELDS[step]))
    return StepValidation(step=step, valid=not failed, failed_fields=failed)


def is_step_valid(step: WizardStep | str, snapshot: Mapping[str, Any]) -> bool:
    return validate_step(step, snapshot).valid


def validation_message(result: StepValidation) -> str | None:
    if result.valid:
        return None
    if result.rule_message:
        return result.rule_message
    labels = [error.label for error in result.failed_fields[:MAX_NAMED_FIELDS]]
    message = "Please complete required fields: " + ", ".join(labels)
    if len(result.failed_fields) > MAX_NAMED_FIELDS:
        message += "..."
    return message
