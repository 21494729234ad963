from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from caseintake.application.dto.case_dto import CollectionEntry
from caseintake.application.dto.master_data_dto import display_label
from caseintake.domain.constants import COMPLAINTS_CATEGORY, CollectionKind, MasterDataCategory
from caseintake.ui.case_wizard.option_cache import OptionCache

# (column title, option category or None for free text, entry attribute)
_COLUMNS: dict[CollectionKind, tuple[tuple[str, str | None, str], ...]] = {
    CollectionKind.PAST_TREATMENT: (
        ("Treatment", MasterDataCategory.TREATMENTS, "treatment_ref"),
        ("Years", None, "years"),
    ),
    CollectionKind.PAST_MEDICINE: (
        ("Medicine", None, "medicine_name"),
        ("Type", None, "type"),
        ("Advice", None, "advice"),
        ("Duration", None, "duration"),
        ("Eye", MasterDataCategory.EYE_SELECTION, "eye"),
    ),
    CollectionKind.COMPLAINT: (
        ("Complaint", COMPLAINTS_CATEGORY, "complaint_ref"),
        ("Eye", MasterDataCategory.EYE_SELECTION, "eye"),
        ("Duration", None, "duration"),
        ("Notes", None, "notes"),
    ),
    CollectionKind.PRESCRIBED_MEDICINE: (
        ("Drug", MasterDataCategory.MEDICINES, "drug_ref"),
        ("Eye", MasterDataCategory.EYE_SELECTION, "eye"),
        ("Dosage", MasterDataCategory.DOSAGES, "dosage_ref"),
        ("Route", MasterDataCategory.ROUTES, "route_ref"),
        ("Duration", None, "duration"),
        ("Quantity", None, "quantity"),
    ),
    CollectionKind.SURGERY: (
        ("Eye", MasterDataCategory.EYE_SELECTION, "eye"),
        ("Surgery", MasterDataCategory.SURGERIES, "surgery_ref"),
        ("Anesthesia", MasterDataCategory.ANESTHESIA_TYPES, "anesthesia"),
    ),
    CollectionKind.DIAGNOSTIC_TEST: (
        ("Test", MasterDataCategory.DIAGNOSTIC_TESTS, "test_ref"),
        ("Eye", MasterDataCategory.EYE_SELECTION, "eye"),
        ("Type", None, "type"),
        ("Problem", None, "problem"),
        ("Notes", None, "notes"),
    ),
}


@dataclass(frozen=True)
class DisplayCell:
    title: str
    text: str


def column_titles(kind: CollectionKind | str) -> list[str]:
    return [title for title, _category, _attr in _COLUMNS[CollectionKind(kind)]]


def _cell_text(cache: OptionCache, category: str | None, raw: str | None) -> str:
    if category is None:
        return (raw or "").strip()
    if category == COMPLAINTS_CATEGORY:
        resolution = cache.resolve_complaint(raw)
    else:
        resolution = cache.resolve(category, raw)
    return display_label(resolution)


def entry_display_row(kind: CollectionKind | str, entry: CollectionEntry, cache: OptionCache) -> list[DisplayCell]:
    return [
        DisplayCell(title=title, text=_cell_text(cache, category, getattr(entry, attr, None)))
        for title, category, attr in _COLUMNS[CollectionKind(kind)]
    ]


def selection_labels(cache: OptionCache, category: str, refs: Iterable[str]) -> list[str]:
    return [cache.label_for(category, ref) for ref in refs if (ref or "").strip()]
