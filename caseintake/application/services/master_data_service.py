from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from caseintake.application.dto.master_data_dto import (
    ComplaintGroup,
    MasterDataBatch,
    OptionItem,
)
from caseintake.domain.constants import COMPLAINTS_CATEGORY, MasterDataCategory
from caseintake.infrastructure.db.repositories.master_data_repo import MasterDataRepository
from caseintake.infrastructure.db.session import session_scope

COMPLAINT_GROUP_CATEGORY = "complaint_categories"

DEFAULT_SEED_PATH = Path(__file__).resolve().parents[2] / "resources" / "master_data_seed.json"


class MasterDataService:
    def __init__(
        self,
        repo: MasterDataRepository | None = None,
        session_factory: Callable = session_scope,
    ) -> None:
        self.repo = repo or MasterDataRepository()
        self.session_factory = session_factory
        self._logger = logging.getLogger(__name__)

    def fetch_categories(self, categories: Iterable[str]) -> MasterDataBatch:
        requested = list(dict.fromkeys(str(c) for c in categories))
        known = set(MasterDataCategory.values())
        batch = MasterDataBatch()
        wanted = [c for c in requested if c in known]
        for category in requested:
            if category not in known:
                batch.errors[category] = f"Unknown master data category: {category}"
        with self.session_factory() as session:
            rows = self.repo.list_by_categories(session, wanted)
            for category in wanted:
                batch.options[category] = []
            for row in rows:
                batch.options[str(row.category)].append(OptionItem(value=str(row.id), label=str(row.name)))
        return batch

    def list_options(self, category: str) -> list[OptionItem]:
        batch = self.fetch_categories([category])
        if category in batch.errors:
            raise ValueError(batch.errors[category])
        return batch.options.get(category, [])

    def list_complaint_groups(self) -> list[ComplaintGroup]:
        with self.session_factory() as session:
            groups = self.repo.list_by_categories(session, [COMPLAINT_GROUP_CATEGORY])
            children = self.repo.list_children(session, [str(group.id) for group in groups])
            by_parent: dict[str, list[OptionItem]] = {}
            for child in children:
                by_parent.setdefault(str(child.parent_id), []).append(
                    OptionItem(value=str(child.id), label=str(child.name))
                )
            return [
                ComplaintGroup(
                    category_id=str(group.id),
                    category_name=str(group.name),
                    complaints=by_parent.get(str(group.id), []),
                )
                for group in groups
            ]

    def seed_defaults(self, seed_path: Path | None = None) -> dict[str, int]:
        seed_file = seed_path or DEFAULT_SEED_PATH
        if not seed_file.exists():
            self._logger.warning("Master data seed file not found: %s", seed_file)
            return {}
        payload = json.loads(seed_file.read_text(encoding="utf-8"))
        categories: dict[str, list[dict[str, Any]]] = payload.get("categories", {})
        complaint_groups: list[dict[str, Any]] = payload.get("complaints", [])
        self._logger.info(
            "Master data seed loaded: categories=%s, complaint_groups=%s",
            len(categories),
            len(complaint_groups),
        )

        written: dict[str, int] = {}
        with self.session_factory() as session:
            for category, items in categories.items():
                if category not in MasterDataCategory.values():
                    self._logger.warning("Skipping unknown master data category in seed: %s", category)
                    continue
                rows = [
                    {"code": item["code"], "name": item["name"], "sort_order": index}
                    for index, item in enumerate(items)
                    if item.get("code") and item.get("name")
                ]
                written[category] = self.repo.upsert_by_code(session, category, rows)

            group_rows = [
                {"code": group["code"], "name": group["name"], "sort_order": index}
                for index, group in enumerate(complaint_groups)
                if group.get("code") and group.get("name")
            ]
            written[COMPLAINT_GROUP_CATEGORY] = self.repo.upsert_by_code(session, COMPLAINT_GROUP_CATEGORY, group_rows)
            complaint_count = 0
            for group in complaint_groups:
                parent = self.repo.get_by_code(session, COMPLAINT_GROUP_CATEGORY, group.get("code") or "")
                if parent is None:
                    continue
                rows = [
                    {"code": item["code"], "name": item["name"], "sort_order": index, "parent_id": parent.id}
                    for index, item in enumerate(group.get("complaints", []))
                    if item.get("code") and item.get("name")
                ]
                complaint_count += self.repo.upsert_by_code(session, COMPLAINTS_CATEGORY, rows)
            written[COMPLAINTS_CATEGORY] = complaint_count
        self._logger.info("Master data seed applied: %s", written)
        return written

    def seed_defaults_if_empty(self, seed_path: Path | None = None) -> bool:
        with self.session_factory() as session:
            has_rows = self.repo.has_any(session)
        if has_rows:
            return False
        self.seed_defaults(seed_path)
        return True

    def category_counts(self) -> dict[str, int]:
        with self.session_factory() as session:
            return self.repo.count_by_category(session)
