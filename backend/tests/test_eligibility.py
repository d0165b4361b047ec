from __future__ import annotations

from datetime import date

import pytest

from remi.domain.eligibility import (
    ACHIEVEMENT_LADDER,
    AchievementRecord,
    WinRecord,
    age_class_eligible,
    champion_progress,
    count_qualifying_firsts,
    eligible_achievement_classes,
    evaluate,
    junior_warrant_points,
    junior_warrant_progress,
    months_between,
    show_champion_progress,
)


def _firsts(count: int, show_type: str = "open") -> list[WinRecord]:
    return [WinRecord(show_type=show_type, placement=1, won_on=date(2025, 4, 1)) for _ in range(count)]


def _ccs(*judges: str | None) -> list[AchievementRecord]:
    return [AchievementRecord(type="cc", awarded_on=date(2025, 5, 1), judge_id=judge) for judge in judges]


@pytest.mark.parametrize(
    "firsts, suggested",
    [
        (0, "Maiden"),
        (1, "Novice"),
        (2, "Novice"),
        (3, "Graduate"),
        (4, "Post Graduate"),
        (5, "Limit"),
        (6, "Limit"),
        (7, "Open"),
        (12, "Open"),
    ],
)
def test_staircase_start(firsts, suggested):
    classes = eligible_achievement_classes(firsts)

    assert classes[0] == suggested
    assert classes == ACHIEVEMENT_LADDER[ACHIEVEMENT_LADDER.index(suggested) :]


def test_staircase_never_widens_as_wins_grow():
    """More firsts never make a dog eligible for a class it had already outgrown."""
    previous = set(ACHIEVEMENT_LADDER)
    for firsts in range(0, 12):
        current = set(eligible_achievement_classes(firsts))
        assert current <= previous
        assert "Open" in current
        previous = current


def test_any_cc_means_open_only():
    assert eligible_achievement_classes(0, cc_count=1) == ("Open",)


def test_only_qualifying_show_firsts_count():
    wins = [
        WinRecord("open", 1, date(2025, 1, 1)),
        WinRecord("championship", 1, date(2025, 2, 1)),
        WinRecord("premier_open", 1, date(2025, 3, 1)),
        WinRecord("companion", 1, date(2025, 3, 2)),
        WinRecord("limited", 1, date(2025, 3, 3)),
        WinRecord("open", 2, date(2025, 4, 1)),
        WinRecord("open", None, date(2025, 4, 2)),
    ]

    assert count_qualifying_firsts(wins) == 3


def test_champion_needs_three_distinct_judges():
    """Three CCs under two judges is full progress but not the title."""
    two_judges = champion_progress(_ccs("j1", "j2", "j2"))
    three_judges = champion_progress(_ccs("j1", "j2", "j3"))

    assert two_judges.progress == 1.0
    assert two_judges.milestone_reached is False
    assert two_judges.notes
    assert three_judges.milestone_reached is True


def test_champion_progress_is_capped():
    progress = champion_progress(_ccs("j1", "j2", "j3", "j4", "j5"))

    assert progress.progress == 1.0
    assert progress.current == 5


def test_show_champion_is_never_inferred():
    """Without field-trial evidence the gundog title stays unreached."""
    ccs = _ccs("j1", "j2", "j3")

    unverified = show_champion_progress(ccs)
    evidenced = show_champion_progress(ccs, field_trial_evidence=True)

    assert unverified.milestone_reached is False
    assert unverified.auto_verifiable is False
    assert evidenced.milestone_reached is True
    assert evidenced.auto_verifiable is False


def test_junior_warrant_points_stop_at_eighteen_months():
    dob = date(2024, 1, 10)
    wins = [
        WinRecord("championship", 1, date(2024, 9, 1)),
        WinRecord("open", 1, date(2025, 7, 9)),
        WinRecord("open", 1, date(2025, 7, 10)),
        WinRecord("championship", 2, date(2024, 10, 1)),
    ]

    assert junior_warrant_points(wins, dob) == 4


def test_junior_warrant_reached_at_twenty_five_points():
    dob = date(2025, 1, 1)
    wins = _firsts(8, "championship") + _firsts(1, "open")

    progress = junior_warrant_progress(wins, dob, today=date(2025, 6, 1))

    assert progress.current == 25
    assert progress.milestone_reached is True


def test_junior_warrant_without_date_of_birth():
    progress = junior_warrant_progress(_firsts(3), None, today=date(2025, 6, 1))

    assert progress.current == 0
    assert progress.auto_verifiable is False


def test_evaluate_adds_show_champion_for_gundogs():
    report = evaluate(
        _firsts(3),
        _ccs("j1"),
        date_of_birth=date(2022, 1, 1),
        breed_group="Gundog",
        today=date(2026, 1, 1),
    )

    assert report.qualifying_firsts == 3
    assert report.cc_count == 1
    assert report.eligible_classes == ("Open",)
    assert report.suggested_class == "Open"
    assert {title.title for title in report.titles} == {"champion", "junior_warrant", "show_champion"}


def test_evaluate_skips_show_champion_for_other_groups():
    report = evaluate([], [], date_of_birth=None, breed_group="Hound", today=date(2026, 1, 1))

    assert report.suggested_class == "Maiden"
    assert "show_champion" not in {title.title for title in report.titles}


def test_months_between_counts_whole_months():
    assert months_between(date(2024, 1, 31), date(2024, 2, 29)) == 0
    assert months_between(date(2024, 1, 15), date(2024, 7, 15)) == 6


def test_age_class_bounds():
    """Puppy is 6 to under 12 months on the show date."""
    dob = date(2025, 6, 1)

    assert age_class_eligible(dob, date(2025, 11, 30), min_age_months=6, max_age_months=12) is False
    assert age_class_eligible(dob, date(2025, 12, 1), min_age_months=6, max_age_months=12) is True
    assert age_class_eligible(dob, date(2026, 6, 1), min_age_months=6, max_age_months=12) is False
    assert age_class_eligible(None, date(2026, 6, 1), min_age_months=6, max_age_months=12) is None
