from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from caseintake.domain.constants import CollectionKind

REQUIRED_FIELDS: dict[CollectionKind, tuple[str, ...]] = {
    CollectionKind.PAST_TREATMENT: ("treatment_ref",),
    CollectionKind.PAST_MEDICINE: ("medicine_name",),
    CollectionKind.COMPLAINT: ("complaint_ref",),
    CollectionKind.PRESCRIBED_MEDICINE: ("drug_ref", "eye", "dosage_ref"),
    CollectionKind.SURGERY: ("eye", "surgery_ref"),
    CollectionKind.DIAGNOSTIC_TEST: ("test_ref",),
}

# Field whose blank value drops the row from the persisted document.
PRIMARY_FIELDS: dict[CollectionKind, str] = {
    CollectionKind.PAST_TREATMENT: "treatment_ref",
    CollectionKind.PAST_MEDICINE: "medicine_name",
    CollectionKind.COMPLAINT: "complaint_ref",
    CollectionKind.PRESCRIBED_MEDICINE: "drug_ref",
    CollectionKind.SURGERY: "surgery_ref",
    CollectionKind.DIAGNOSTIC_TEST: "test_ref",
}

FIELD_LABELS: dict[str, str] = {
    "treatment_ref": "Treatment",
    "years": "Years",
    "medicine_name": "Medicine Name",
    "complaint_ref": "Complaint",
    "drug_ref": "Drug Name",
    "dosage_ref": "Dosage",
    "route_ref": "Route",
    "eye": "Eye",
    "surgery_ref": "Surgery",
    "test_ref": "Test",
}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return not str(value).strip()


def missing_required_fields(kind: CollectionKind | str, draft: Mapping[str, Any]) -> tuple[str, ...]:
    kind = CollectionKind(kind)
    return tuple(key for key in REQUIRED_FIELDS[kind] if _is_blank(draft.get(key)))


def has_primary_reference(kind: CollectionKind | str, entry: Mapping[str, Any]) -> bool:
    return not _is_blank(entry.get(PRIMARY_FIELDS[CollectionKind(kind)]))


def describe_missing(fields: tuple[str, ...]) -> str:
    labels = [FIELD_LABELS.get(key, key) for key in fields]
    if len(labels) == 1:
        joined = labels[0]
    else:
        joined = ", ".join(labels[:-1]) + " and " + labels[-1]
    return f"Please fill in {joined}"
