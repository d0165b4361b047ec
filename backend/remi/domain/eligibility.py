"""Achievement-class eligibility and title progression.

Everything here is descriptive: the host application decides whether an
ineligible class blocks an entry or only warns.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date

from .enums import AchievementType, ShowType

ACHIEVEMENT_LADDER: tuple[str, ...] = (
    "Maiden",
    "Novice",
    "Graduate",
    "Post Graduate",
    "Limit",
    "Open",
)

# Wins at these show types count toward the achievement-class staircase.
QUALIFYING_SHOW_TYPES = frozenset(
    {ShowType.OPEN.value, ShowType.PREMIER_OPEN.value, ShowType.CHAMPIONSHIP.value}
)

CHAMPION_CC_REQUIRED = 3
CHAMPION_DISTINCT_JUDGES_REQUIRED = 3
JUNIOR_WARRANT_POINTS_REQUIRED = 25
JUNIOR_WARRANT_AGE_LIMIT_MONTHS = 18
JUNIOR_WARRANT_POINTS = {
    ShowType.CHAMPIONSHIP.value: 3,
    ShowType.OPEN.value: 1,
    ShowType.PREMIER_OPEN.value: 1,
}
GUNDOG_GROUP = "gundog"

TITLE_CHAMPION = "champion"
TITLE_SHOW_CHAMPION = "show_champion"
TITLE_JUNIOR_WARRANT = "junior_warrant"


@dataclass(frozen=True, slots=True)
class WinRecord:
    """One placement from a confirmed entry."""

    show_type: str
    placement: int | None
    won_on: date


@dataclass(frozen=True, slots=True)
class AchievementRecord:
    type: str
    awarded_on: date
    judge_id: str | None = None


@dataclass(frozen=True, slots=True)
class TitleProgress:
    title: str
    progress: float
    milestone_reached: bool
    current: int
    required: int
    # False when part of the requirement cannot be verified from our data.
    auto_verifiable: bool = True
    notes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class EligibilityReport:
    qualifying_firsts: int
    cc_count: int
    eligible_classes: tuple[str, ...]
    suggested_class: str
    titles: tuple[TitleProgress, ...] = field(default_factory=tuple)


def months_between(start: date, end: date) -> int:
    """Whole calendar months elapsed from ``start`` to ``end``."""

    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day < start.day:
        months -= 1
    return months


def count_qualifying_firsts(wins: Iterable[WinRecord]) -> int:
    return sum(
        1 for win in wins if win.placement == 1 and win.show_type in QUALIFYING_SHOW_TYPES
    )


def count_ccs(achievements: Iterable[AchievementRecord]) -> int:
    return sum(1 for item in achievements if item.type == AchievementType.CC.value)


def eligible_achievement_classes(firsts: int, cc_count: int = 0) -> tuple[str, ...]:
    """Return the achievement classes a dog may enter, most restrictive first.

    Holding any CC overrides the staircase entirely.
    """

    if cc_count >= 1:
        return ("Open",)
    if firsts <= 0:
        start = "Maiden"
    elif firsts <= 2:
        start = "Novice"
    elif firsts == 3:
        start = "Graduate"
    elif firsts == 4:
        start = "Post Graduate"
    elif firsts <= 6:
        start = "Limit"
    else:
        start = "Open"
    return ACHIEVEMENT_LADDER[ACHIEVEMENT_LADDER.index(start) :]


def champion_progress(achievements: Sequence[AchievementRecord]) -> TitleProgress:
    ccs = [item for item in achievements if item.type == AchievementType.CC.value]
    judges = {item.judge_id for item in ccs if item.judge_id}
    reached = (
        len(ccs) >= CHAMPION_CC_REQUIRED and len(judges) >= CHAMPION_DISTINCT_JUDGES_REQUIRED
    )
    notes: tuple[str, ...] = ()
    if len(ccs) >= CHAMPION_CC_REQUIRED and not reached:
        notes = (
            f"CCs awarded by {len(judges)} distinct judge(s); "
            f"{CHAMPION_DISTINCT_JUDGES_REQUIRED} required",
        )
    return TitleProgress(
        title=TITLE_CHAMPION,
        progress=min(len(ccs) / CHAMPION_CC_REQUIRED, 1.0),
        milestone_reached=reached,
        current=len(ccs),
        required=CHAMPION_CC_REQUIRED,
        notes=notes,
    )


def show_champion_progress(
    achievements: Sequence[AchievementRecord],
    *,
    field_trial_evidence: bool = False,
) -> TitleProgress:
    """Gundog Show Champion: Champion's CC rule plus a field-trial qualifier.

    The field-trial result is never inferred; without external evidence the
    milestone stays unreached however many CCs the dog holds.
    """

    champion = champion_progress(achievements)
    reached = champion.milestone_reached and field_trial_evidence
    notes = champion.notes
    if not field_trial_evidence:
        notes = notes + ("Field trial qualification cannot be verified automatically",)
    return TitleProgress(
        title=TITLE_SHOW_CHAMPION,
        progress=champion.progress,
        milestone_reached=reached,
        current=champion.current,
        required=champion.required,
        auto_verifiable=False,
        notes=notes,
    )


def junior_warrant_points(wins: Iterable[WinRecord], date_of_birth: date) -> int:
    points = 0
    for win in wins:
        if win.placement != 1:
            continue
        if months_between(date_of_birth, win.won_on) >= JUNIOR_WARRANT_AGE_LIMIT_MONTHS:
            continue
        points += JUNIOR_WARRANT_POINTS.get(win.show_type, 0)
    return points


def junior_warrant_progress(
    wins: Sequence[WinRecord],
    date_of_birth: date | None,
    *,
    today: date,
) -> TitleProgress:
    if date_of_birth is None:
        return TitleProgress(
            title=TITLE_JUNIOR_WARRANT,
            progress=0.0,
            milestone_reached=False,
            current=0,
            required=JUNIOR_WARRANT_POINTS_REQUIRED,
            auto_verifiable=False,
            notes=("Date of birth unknown",),
        )

    points = junior_warrant_points(wins, date_of_birth)
    notes: tuple[str, ...] = ()
    if months_between(date_of_birth, today) >= JUNIOR_WARRANT_AGE_LIMIT_MONTHS:
        notes = ("Qualifying window closed at 18 months",)
    return TitleProgress(
        title=TITLE_JUNIOR_WARRANT,
        progress=min(points / JUNIOR_WARRANT_POINTS_REQUIRED, 1.0),
        milestone_reached=points >= JUNIOR_WARRANT_POINTS_REQUIRED,
        current=points,
        required=JUNIOR_WARRANT_POINTS_REQUIRED,
        notes=notes,
    )


def evaluate(
    wins: Sequence[WinRecord],
    achievements: Sequence[AchievementRecord],
    *,
    date_of_birth: date | None,
    breed_group: str | None,
    today: date,
    field_trial_evidence: bool = False,
) -> EligibilityReport:
    firsts = count_qualifying_firsts(wins)
    cc_count = count_ccs(achievements)
    classes = eligible_achievement_classes(firsts, cc_count)

    titles = [
        champion_progress(achievements),
        junior_warrant_progress(wins, date_of_birth, today=today),
    ]
    if breed_group and breed_group.strip().lower() == GUNDOG_GROUP:
        titles.append(
            show_champion_progress(achievements, field_trial_evidence=field_trial_evidence)
        )

    return EligibilityReport(
        qualifying_firsts=firsts,
        cc_count=cc_count,
        eligible_classes=classes,
        suggested_class=classes[0],
        titles=tuple(titles),
    )


def age_class_eligible(
    date_of_birth: date | None,
    on: date,
    *,
    min_age_months: int | None,
    max_age_months: int | None,
) -> bool | None:
    """Return whether a dog's age on ``on`` fits an age class, or None if unknown."""

    if date_of_birth is None:
        return None
    age = months_between(date_of_birth, on)
    if min_age_months is not None and age < min_age_months:
        return False
    if max_age_months is not None and age >= max_age_months:
        return False
    return True


__all__ = [
    "ACHIEVEMENT_LADDER",
    "AchievementRecord",
    "EligibilityReport",
    "TitleProgress",
    "WinRecord",
    "age_class_eligible",
    "champion_progress",
    "count_qualifying_firsts",
    "eligible_achievement_classes",
    "evaluate",
    "junior_warrant_points",
    "junior_warrant_progress",
    "months_between",
    "show_champion_progress",
]
