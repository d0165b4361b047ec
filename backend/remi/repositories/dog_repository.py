"""Dog profiles and their show history."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from remi.domain.eligibility import AchievementRecord, WinRecord
from remi.domain.enums import EntryStatus
from remi.models import Achievement, Breed, Dog, Entry, EntryClass, Result, Show


class DogRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, dog_id: str) -> Dog | None:
        stmt = (
            select(Dog)
            .options(selectinload(Dog.breed).selectinload(Breed.group))
            .where(Dog.id == dog_id)
        )
        return self._session.scalars(stmt).first()

    def get_many(self, dog_ids: Iterable[str]) -> dict[str, Dog]:
        ids = set(dog_ids)
        if not ids:
            return {}
        stmt = select(Dog).where(Dog.id.in_(ids))
        return {dog.id: dog for dog in self._session.scalars(stmt)}

    # ------------------------------------------------------------------
    # History

    def win_history(self, dog_id: str) -> list[WinRecord]:
        """Placements recorded against the dog's confirmed, undeleted entries."""

        stmt = (
            select(Show.show_type, Result.placement, Show.start_date)
            .select_from(Result)
            .join(EntryClass, Result.entry_class_id == EntryClass.id)
            .join(Entry, EntryClass.entry_id == Entry.id)
            .join(Show, Entry.show_id == Show.id)
            .where(
                Entry.dog_id == dog_id,
                Entry.status == EntryStatus.CONFIRMED.value,
                Entry.deleted_at.is_(None),
            )
            .order_by(Show.start_date)
        )
        return [
            WinRecord(show_type=show_type, placement=placement, won_on=won_on)
            for show_type, placement, won_on in self._session.execute(stmt)
        ]

    def achievements(self, dog_id: str) -> list[AchievementRecord]:
        stmt = (
            select(Achievement)
            .where(Achievement.dog_id == dog_id)
            .order_by(Achievement.awarded_on)
        )
        return [
            AchievementRecord(type=row.type, awarded_on=row.awarded_on, judge_id=row.judge_id)
            for row in self._session.scalars(stmt)
        ]


__all__ = ["DogRepository"]
