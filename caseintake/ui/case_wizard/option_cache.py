from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from typing import Any

from caseintake.application.dto.master_data_dto import (
    ComplaintGroup,
    MasterDataBatch,
    OptionItem,
    Resolution,
    ResolvedLabel,
    UnresolvedReference,
    display_label,
)
from caseintake.domain.constants import COMPLAINTS_CATEGORY
from caseintake.ui.case_wizard.notices import Notifier, error_notice
from caseintake.ui.case_wizard.ports import AsyncRunner, MasterDataSource

_OPAQUE_ID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def looks_like_opaque_id(value: str) -> bool:
    return bool(_OPAQUE_ID_RE.match(value.strip()))


class OptionCache:
    """Option lists for one wizard session.

    Lists are fetched in one batch through the runner, memoized until
    ``close()``, and tracked per list: loading, ready, or failed. A failed
    list is reported once through ``notify``; the others are unaffected.
    """

    def __init__(
        self,
        source: MasterDataSource,
        *,
        runner: AsyncRunner,
        notify: Notifier,
        parent: Any = None,
    ) -> None:
        self._source = source
        self._runner = runner
        self._notify = notify
        self._parent = parent
        self._logger = logging.getLogger(__name__)
        self._options: dict[str, tuple[OptionItem, ...]] = {}
        self._labels: dict[str, dict[str, str]] = {}
        self._loading: set[str] = set()
        self._errors: dict[str, str] = {}
        self._reported: set[str] = set()
        self._complaint_groups: tuple[ComplaintGroup, ...] | None = None
        self._complaint_labels: dict[str, str] = {}
        self._closed = False

    def fetch(self, categories: Iterable[str]) -> None:
        pending = sorted(
            {str(c) for c in categories} - set(self._options) - self._loading
        )
        if not pending or self._closed:
            return
        self._loading.update(pending)
        for category in pending:
            self._errors.pop(category, None)
        self._logger.debug("Fetching option lists: %s", ", ".join(pending))
        self._runner(
            self._parent,
            lambda: self._source.fetch_categories(pending),
            on_success=lambda batch: self._on_batch(pending, batch),
            on_error=lambda exc: self._on_batch_error(pending, exc),
        )

    def fetch_complaint_groups(self) -> None:
        if self._closed or self._complaint_groups is not None or COMPLAINTS_CATEGORY in self._loading:
            return
        self._loading.add(COMPLAINTS_CATEGORY)
        self._errors.pop(COMPLAINTS_CATEGORY, None)
        self._runner(
            self._parent,
            self._source.list_complaint_groups,
            on_success=self._on_complaint_groups,
            on_error=lambda exc: self._on_batch_error([COMPLAINTS_CATEGORY], exc),
        )

    def _on_batch(self, requested: list[str], batch: MasterDataBatch) -> None:
        if self._closed:
            return
        for category in requested:
            self._loading.discard(category)
            if category in batch.errors:
                self._fail(category, batch.errors[category])
            elif category in batch.options:
                items = tuple(batch.options[category])
                self._options[category] = items
                self._labels[category] = {item.value: item.label for item in items}
            else:
                self._fail(category, "no data returned")

    def _on_complaint_groups(self, groups: list[ComplaintGroup]) -> None:
        if self._closed:
            return
        self._loading.discard(COMPLAINTS_CATEGORY)
        self._complaint_groups = tuple(groups)
        self._complaint_labels = {
            item.value: item.label for group in groups for item in group.complaints
        }

    def _on_batch_error(self, requested: list[str], exc: Exception) -> None:
        if self._closed:
            return
        for category in requested:
            self._loading.discard(category)
            self._fail(category, str(exc) or exc.__class__.__name__)

    def _fail(self, category: str, reason: str) -> None:
        self._errors[category] = reason
        self._logger.warning("Failed to load option list %s: %s", category, reason)
        if category in self._reported:
            return
        self._reported.add(category)
        self._notify(error_notice(f"Failed to load {category}"))

    def is_loading(self, category: str) -> bool:
        return category in self._loading

    def is_ready(self, category: str) -> bool:
        if category == COMPLAINTS_CATEGORY:
            return self._complaint_groups is not None
        return category in self._options

    def error(self, category: str) -> str | None:
        return self._errors.get(category)

    def options(self, category: str) -> tuple[OptionItem, ...]:
        return self._options.get(category, ())

    @property
    def complaint_groups(self) -> tuple[ComplaintGroup, ...]:
        return self._complaint_groups or ()

    def labels(self, category: str) -> dict[str, str]:
        return dict(self._labels.get(category, {}))

    def resolve(self, category: str, ref: str | None) -> Resolution | None:
        return self._classify(self._labels.get(category, {}), ref)

    def resolve_complaint(self, ref: str | None) -> Resolution | None:
        return self._classify(self._complaint_labels, ref)

    def label_for(self, category: str, ref: str | None) -> str:
        return display_label(self.resolve(category, ref))

    @staticmethod
    def _classify(labels: dict[str, str], ref: str | None) -> Resolution | None:
        clean = (ref or "").strip()
        if not clean:
            return None
        if clean in labels:
            return ResolvedLabel(labels[clean])
        if looks_like_opaque_id(clean):
            return UnresolvedReference(clean)
        return ResolvedLabel(clean)

    def close(self) -> None:
        self._closed = True
        self._options.clear()
        self._labels.clear()
        self._loading.clear()
        self._errors.clear()
        self._complaint_groups = None
        self._complaint_labels.clear()
