"""Eligibility reports for a dog, optionally against one show's classes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.orm import Session

from remi.domain.eligibility import ACHIEVEMENT_LADDER, EligibilityReport, age_class_eligible, evaluate
from remi.domain.enums import ClassType
from remi.errors import ForbiddenError, NotFoundError
from remi.models import Dog, Show, ShowClass
from remi.repositories import DogRepository, ShowRepository

from .access import require_show

ELIGIBLE = "eligible"
INELIGIBLE = "ineligible"
UNKNOWN = "unknown"


@dataclass(slots=True)
class ClassEligibility:
    show_class_id: str
    class_name: str
    class_type: str
    status: str
    reason: str | None = None


@dataclass(slots=True)
class DogEligibility:
    dog_id: str
    report: EligibilityReport
    show_id: str | None = None
    classes: list[ClassEligibility] = field(default_factory=list)


class EligibilityService:
    def __init__(self, session: Session) -> None:
        self._session = session
        self._dogs = DogRepository(session)
        self._shows = ShowRepository(session)

    def for_dog(
        self,
        dog_id: str,
        user_id: str,
        *,
        show_id: str | None = None,
        today: date | None = None,
        field_trial_evidence: bool = False,
    ) -> DogEligibility:
        dog = self._dogs.get(dog_id)
        if dog is None or dog.deleted_at is not None:
            raise NotFoundError("dog_not_found", f"Dog {dog_id} does not exist", details={"dog_id": dog_id})
        if dog.owner_id != user_id:
            raise ForbiddenError("dog_not_owned", "This dog is registered to another exhibitor", details={"dog_id": dog_id})

        group = dog.breed.group.name if dog.breed is not None and dog.breed.group is not None else None
        report = evaluate(
            self._dogs.win_history(dog.id),
            self._dogs.achievements(dog.id),
            date_of_birth=dog.date_of_birth,
            breed_group=group,
            today=today or date.today(),
            field_trial_evidence=field_trial_evidence,
        )
        result = DogEligibility(dog_id=dog.id, report=report)
        if show_id is None:
            return result

        show = require_show(self._session, show_id)
        result.show_id = show.id
        result.classes = [
            self._annotate(dog, show, show_class, report) for show_class in self._shows.list_classes(show.id)
        ]
        return result

    @staticmethod
    def _annotate(dog: Dog, show: Show, show_class: ShowClass, report: EligibilityReport) -> ClassEligibility:
        definition = show_class.class_definition

        def verdict(status: str, reason: str | None = None) -> ClassEligibility:
            return ClassEligibility(
                show_class_id=show_class.id,
                class_name=definition.name,
                class_type=definition.type,
                status=status,
                reason=reason,
            )

        if show_class.breed_id is not None and show_class.breed_id != dog.breed_id:
            return verdict(INELIGIBLE, "Class is scheduled for a different breed")
        if show_class.sex is not None and dog.sex is not None and show_class.sex != dog.sex:
            return verdict(INELIGIBLE, f"Class is for {show_class.sex}s only")

        if definition.type == ClassType.ACHIEVEMENT.value:
            if definition.name not in ACHIEVEMENT_LADDER:
                return verdict(UNKNOWN, "No win rule recorded for this class")
            if definition.name in report.eligible_classes:
                return verdict(ELIGIBLE)
            return verdict(INELIGIBLE, f"{report.qualifying_firsts} qualifying first(s) recorded")

        if definition.type == ClassType.AGE.value:
            fits = age_class_eligible(
                dog.date_of_birth,
                show.start_date,
                min_age_months=definition.min_age_months,
                max_age_months=definition.max_age_months,
            )
            if fits is None:
                return verdict(UNKNOWN, "Date of birth unknown")
            if fits:
                return verdict(ELIGIBLE)
            return verdict(INELIGIBLE, "Outside the age range on the first day of the show")

        return verdict(UNKNOWN)


__all__ = ["ClassEligibility", "DogEligibility", "EligibilityService"]
