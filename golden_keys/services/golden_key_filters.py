from __future__ import annotations

from typing import Iterable, Sequence

from golden_keys.schemas import ApprovalStatus, GoldenKey, GoldenKeyFilters, GoldenKeySummary

_SEARCH_FIELDS = ("key", "label", "description", "owner")


def matches_search(record: GoldenKey, search: str) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in (getattr(record, field) or "").lower() for field in _SEARCH_FIELDS)


def matches_filters(record: GoldenKey, filters: GoldenKeyFilters) -> bool:
    if not matches_search(record, filters.search):
        return False
    if filters.data_type and record.data_type != filters.data_type:
        return False
    if filters.owner and record.owner != filters.owner:
        return False
    if filters.approval_status and record.approval_status != filters.approval_status:
        return False
    return True


def visible(records: Iterable[GoldenKey], filters: GoldenKeyFilters | None = None) -> list[GoldenKey]:
    """Return the records satisfying every active filter, in input order."""
    if filters is None:
        return list(records)
    return [record for record in records if matches_filters(record, filters)]


def distinct_owners(records: Iterable[GoldenKey]) -> list[str]:
    owners: dict[str, None] = {}
    for record in records:
        owners.setdefault(record.owner, None)
    return list(owners)


def summarize(records: Sequence[GoldenKey], shown: Sequence[GoldenKey]) -> GoldenKeySummary:
    pending = sum(1 for record in records if record.approval_status == ApprovalStatus.PENDING.value)
    return GoldenKeySummary(total=len(records), visible=len(shown), pending=pending)


__all__ = [
    "distinct_owners",
    "matches_filters",
    "matches_search",
    "summarize",
    "visible",
]
