from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from datetime import date

from caseintake.application.dto.case_dto import CaseDraft
from caseintake.domain.constants import VisitType

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("Base36 value cannot be negative")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_case_number(*, today: date | None = None, now_ms: int | None = None) -> str:
    """``OPT<year>-<base36 ms timestamp>-<4 random base36 chars>``."""
    today = today or date.today()
    now_ms = now_ms if now_ms is not None else time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"OPT{today.year}-{to_base36(now_ms)}-{suffix}"


def new_case_draft(
    *,
    today: date | None = None,
    case_number_factory: Callable[[], str] | None = None,
) -> CaseDraft:
    today = today or date.today()
    case_no = case_number_factory() if case_number_factory else generate_case_number(today=today)
    return CaseDraft(
        case_no=case_no,
        case_date=today.isoformat(),
        visit_type=VisitType.FIRST.value,
    )
