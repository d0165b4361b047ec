"""Entry fee calculation.

A show prices entries with one of three formulas, tried in order:

1. NFC entries at a show with ``nfc_entry_fee`` set pay that fee per class.
2. Shows with ``first_entry_fee`` set charge it for the first class and
   ``subsequent_entry_fee`` (or the first fee again) for every further class.
3. Otherwise each class costs its own ``entry_fee``.

:func:`price_entry` is the only place these formulas live. It returns both the
entry total and the per-class fee snapshots, and the snapshots always sum to
the total, so checkout, amendment, and refund-delta computation can never drift
apart.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum


class FeeBasis(str, Enum):
    NFC = "nfc"
    TIERED = "tiered"
    PER_CLASS = "per_class"


@dataclass(frozen=True, slots=True)
class FeeSchedule:
    """A show's fee-tier configuration, in minor currency units."""

    first_entry_fee: int | None = None
    subsequent_entry_fee: int | None = None
    nfc_entry_fee: int | None = None


@dataclass(frozen=True, slots=True)
class EntryPricing:
    basis: FeeBasis
    total: int
    class_fees: tuple[int, ...]


def _non_negative(value: int | None) -> int:
    return max(int(value or 0), 0)


def price_entry(
    schedule: FeeSchedule,
    class_fees: Sequence[int | None],
    *,
    is_nfc: bool = False,
) -> EntryPricing:
    """Price one logical entry.

    ``class_fees`` holds the flat ``entry_fee`` of each requested class in the
    order the classes were requested; its length is the class count. The first
    class in that order carries the first-entry fee under the tiered formula.
    """

    count = len(class_fees)
    if count == 0:
        basis = FeeBasis.PER_CLASS
        if is_nfc and schedule.nfc_entry_fee is not None:
            basis = FeeBasis.NFC
        elif schedule.first_entry_fee is not None:
            basis = FeeBasis.TIERED
        return EntryPricing(basis=basis, total=0, class_fees=())

    if is_nfc and schedule.nfc_entry_fee is not None:
        per_class = _non_negative(schedule.nfc_entry_fee)
        snapshots = tuple(per_class for _ in range(count))
        return EntryPricing(basis=FeeBasis.NFC, total=sum(snapshots), class_fees=snapshots)

    if schedule.first_entry_fee is not None:
        first = _non_negative(schedule.first_entry_fee)
        subsequent = (
            _non_negative(schedule.subsequent_entry_fee)
            if schedule.subsequent_entry_fee is not None
            else first
        )
        snapshots = (first,) + tuple(subsequent for _ in range(count - 1))
        return EntryPricing(basis=FeeBasis.TIERED, total=sum(snapshots), class_fees=snapshots)

    snapshots = tuple(_non_negative(fee) for fee in class_fees)
    return EntryPricing(basis=FeeBasis.PER_CLASS, total=sum(snapshots), class_fees=snapshots)


def calculate_entry_fee(
    schedule: FeeSchedule,
    *,
    class_count: int | None = None,
    class_fees: Sequence[int | None] | None = None,
    is_nfc: bool = False,
) -> int:
    """Return the total fee for one logical entry.

    A bare ``class_count`` is enough for the NFC and tiered formulas; the
    per-class fallback treats unknown class fees as zero. With neither the
    entry has no classes and costs nothing.
    """

    if class_fees is None:
        class_fees = [0] * max(class_count or 0, 0)
    return price_entry(schedule, class_fees, is_nfc=is_nfc).total


def sundry_total(lines: Iterable[tuple[int, int]]) -> int:
    """Sum ``(unit_price, quantity)`` pairs."""

    return sum(_non_negative(unit_price) * max(quantity, 0) for unit_price, quantity in lines)


__all__ = [
    "EntryPricing",
    "FeeBasis",
    "FeeSchedule",
    "calculate_entry_fee",
    "price_entry",
    "sundry_total",
]
