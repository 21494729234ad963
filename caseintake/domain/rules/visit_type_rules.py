from __future__ import annotations

from caseintake.domain.constants import VisitType

_BY_PRIOR_COUNT = (
    VisitType.FIRST,
    VisitType.FOLLOW_UP_1,
    VisitType.FOLLOW_UP_2,
)


def visit_type_for_prior_cases(prior_case_count: int) -> VisitType:
    if prior_case_count < 0:
        raise ValueError("Prior case count cannot be negative")
    if prior_case_count < len(_BY_PRIOR_COUNT):
        return _BY_PRIOR_COUNT[prior_case_count]
    return VisitType.FOLLOW_UP_3


def next_visit_type(current: str) -> VisitType:
    """Visit type that follows ``current``; the last follow-up repeats."""
    order = list(VisitType)
    try:
        index = order.index(VisitType(current))
    except ValueError:
        return VisitType.FIRST
    return order[min(index + 1, len(order) - 1)]


def is_valid_visit_type(value: str | None) -> bool:
    return bool(value) and value in VisitType.values()
