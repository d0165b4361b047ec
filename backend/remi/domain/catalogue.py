"""Catalogue ordering for confirmed entries."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

UNGROUPED_SORT_ORDER = 99

_SEX_ORDER = {"dog": 0, "bitch": 1}
_UNSET_SEX = 2


@dataclass(frozen=True, slots=True)
class CatalogueCandidate:
    entry_id: str
    entry_date: datetime
    group_sort_order: int | None = None
    breed_name: str | None = None
    sex: str | None = None


def as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; treat them as UTC so they compare."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sort_key(candidate: CatalogueCandidate) -> tuple:
    group = (
        candidate.group_sort_order
        if candidate.group_sort_order is not None
        else UNGROUPED_SORT_ORDER
    )
    return (
        group,
        candidate.breed_name or "",
        _SEX_ORDER.get(candidate.sex or "", _UNSET_SEX),
        as_utc(candidate.entry_date),
        candidate.entry_id,
    )


def sequence(candidates: Iterable[CatalogueCandidate]) -> list[tuple[str, str]]:
    """Return ``(entry_id, catalogue_number)`` pairs numbered from 1.

    Numbers are strings because printed catalogues are free to use prefixes;
    the sequencer itself only emits plain integers.
    """

    ordered: Sequence[CatalogueCandidate] = sorted(candidates, key=sort_key)
    return [(candidate.entry_id, str(index)) for index, candidate in enumerate(ordered, start=1)]


__all__ = ["CatalogueCandidate", "UNGROUPED_SORT_ORDER", "as_utc", "sequence", "sort_key"]
