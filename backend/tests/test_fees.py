from __future__ import annotations

import pytest

from remi.domain.fees import FeeBasis, FeeSchedule, calculate_entry_fee, price_entry, sundry_total


def test_tiered_fee_charges_first_and_subsequent():
    """Three classes at 2500/1500 cost 5500."""
    schedule = FeeSchedule(first_entry_fee=2500, subsequent_entry_fee=1500)

    pricing = price_entry(schedule, [1000, 1000, 1000])

    assert pricing.basis is FeeBasis.TIERED
    assert pricing.total == 5500
    assert pricing.class_fees == (2500, 1500, 1500)


def test_tiered_fee_without_subsequent_reuses_first():
    schedule = FeeSchedule(first_entry_fee=2000)

    assert calculate_entry_fee(schedule, class_count=3) == 6000


def test_nfc_fee_overrides_tiers():
    """NFC entries pay the flat NFC fee per class when the show sets one."""
    schedule = FeeSchedule(first_entry_fee=2500, subsequent_entry_fee=1500, nfc_entry_fee=500)

    pricing = price_entry(schedule, [1000, 1200], is_nfc=True)

    assert pricing.basis is FeeBasis.NFC
    assert pricing.total == 1000
    assert pricing.class_fees == (500, 500)


def test_nfc_without_show_fee_falls_back_to_tiers():
    schedule = FeeSchedule(first_entry_fee=2500, subsequent_entry_fee=1500)

    assert price_entry(schedule, [1000, 1000], is_nfc=True).basis is FeeBasis.TIERED


def test_per_class_fallback_sums_class_fees():
    pricing = price_entry(FeeSchedule(), [1000, 1250, None])

    assert pricing.basis is FeeBasis.PER_CLASS
    assert pricing.total == 2250
    assert pricing.class_fees == (1000, 1250, 0)


@pytest.mark.parametrize(
    "schedule, is_nfc",
    [
        (FeeSchedule(first_entry_fee=2500, subsequent_entry_fee=1500), False),
        (FeeSchedule(nfc_entry_fee=700), True),
        (FeeSchedule(), False),
    ],
)
def test_snapshots_always_sum_to_total(schedule, is_nfc):
    """Each formula's per-class snapshots add up to the entry total."""
    pricing = price_entry(schedule, [900, 1100, 1300, 800], is_nfc=is_nfc)

    assert sum(pricing.class_fees) == pricing.total
    assert len(pricing.class_fees) == 4


def test_zero_classes_cost_nothing():
    assert calculate_entry_fee(FeeSchedule(first_entry_fee=2500), class_count=0) == 0


def test_calculate_entry_fee_without_classes_is_free():
    schedule = FeeSchedule(first_entry_fee=2500, subsequent_entry_fee=1500, nfc_entry_fee=1000)

    assert calculate_entry_fee(schedule) == 0
    assert calculate_entry_fee(schedule, is_nfc=True) == 0


def test_negative_fees_are_clamped():
    schedule = FeeSchedule(first_entry_fee=-100, subsequent_entry_fee=-50)

    assert calculate_entry_fee(schedule, class_count=2) == 0


def test_sundry_total():
    assert sundry_total([(350, 2), (1200, 1), (500, 0)]) == 1900
