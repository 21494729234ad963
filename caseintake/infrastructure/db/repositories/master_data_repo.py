from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from caseintake.infrastructure.db.models_sqlalchemy import RefMasterData


class MasterDataRepository:
    def list_by_categories(self, session: Session, categories: Iterable[str]) -> list[RefMasterData]:
        wanted = list(categories)
        if not wanted:
            return []
        stmt = (
            select(RefMasterData)
            .where(RefMasterData.category.in_(wanted), RefMasterData.is_active.is_(True))
            .order_by(RefMasterData.category, RefMasterData.sort_order, RefMasterData.name)
        )
        return list(session.execute(stmt).scalars())

    def list_children(self, session: Session, parent_ids: Iterable[str]) -> list[RefMasterData]:
        ids = list(parent_ids)
        if not ids:
            return []
        stmt = (
            select(RefMasterData)
            .where(RefMasterData.parent_id.in_(ids), RefMasterData.is_active.is_(True))
            .order_by(RefMasterData.sort_order, RefMasterData.name)
        )
        return list(session.execute(stmt).scalars())

    def count_by_category(self, session: Session) -> dict[str, int]:
        stmt = select(RefMasterData.category, func.count(RefMasterData.id)).group_by(RefMasterData.category)
        return {str(category): int(count) for category, count in session.execute(stmt)}

    def has_any(self, session: Session) -> bool:
        return session.execute(select(RefMasterData.id).limit(1)).first() is not None

    def get_by_code(self, session: Session, category: str, code: str) -> RefMasterData | None:
        stmt = select(RefMasterData).where(RefMasterData.category == category, RefMasterData.code == code)
        return session.execute(stmt).scalar_one_or_none()

    def upsert_by_code(self, session: Session, category: str, payloads: Iterable[dict[str, Any]]) -> int:
        """Insert or update items of one category keyed by ``code``."""
        written = 0
        for data in payloads:
            code = data.get("code")
            item = self.get_by_code(session, category, code) if code else None
            if item is None:
                item = RefMasterData(category=category)
                session.add(item)
            for key, value in data.items():
                setattr(item, key, value)
            written += 1
        session.flush()
        return written
