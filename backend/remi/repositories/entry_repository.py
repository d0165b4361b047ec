"""Entry, class-place and audit persistence."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from remi.domain.catalogue import CatalogueCandidate
from remi.domain.enums import EntryStatus
from remi.models import Breed, BreedGroup, Dog, Entry, EntryAuditLog, EntryClass


class EntryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, entry_id: str) -> Entry | None:
        stmt = (
            select(Entry)
            .options(
                selectinload(Entry.classes).selectinload(EntryClass.show_class),
                selectinload(Entry.show),
            )
            .where(Entry.id == entry_id)
        )
        return self._session.scalars(stmt).first()

    def list_for_order(self, order_id: str) -> list[Entry]:
        stmt = select(Entry).where(Entry.order_id == order_id, Entry.deleted_at.is_(None))
        return list(self._session.scalars(stmt))

    def active_class_holdings(
        self,
        show_id: str,
        dog_ids: Iterable[str],
        *,
        exclude_entry_id: str | None = None,
    ) -> dict[str, set[str]]:
        """Map each dog to the show classes it already holds in active entries."""

        ids = set(dog_ids)
        if not ids:
            return {}
        stmt = (
            select(EntryClass.dog_id, EntryClass.show_class_id)
            .join(Entry, EntryClass.entry_id == Entry.id)
            .where(
                Entry.show_id == show_id,
                EntryClass.dog_id.in_(ids),
                EntryClass.active.is_(True),
            )
        )
        if exclude_entry_id is not None:
            stmt = stmt.where(Entry.id != exclude_entry_id)
        holdings: dict[str, set[str]] = defaultdict(set)
        for dog_id, show_class_id in self._session.execute(stmt):
            holdings[dog_id].add(show_class_id)
        return dict(holdings)

    def release_classes(self, entry_id: str) -> None:
        self._session.execute(
            update(EntryClass)
            .where(EntryClass.entry_id == entry_id)
            .values(active=False)
            .execution_options(synchronize_session="fetch")
        )

    def confirm_for_order(self, order_id: str) -> int:
        result = self._session.execute(
            update(Entry)
            .where(
                Entry.order_id == order_id,
                Entry.status == EntryStatus.PENDING.value,
                Entry.deleted_at.is_(None),
            )
            .values(status=EntryStatus.CONFIRMED.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Audit

    def add_audit(
        self,
        entry_id: str,
        *,
        action: str,
        changed_by: str,
        changes: dict[str, Any] | None = None,
        reason: str | None = None,
    ) -> EntryAuditLog:
        row = EntryAuditLog(
            entry_id=entry_id,
            action=action,
            changed_by=changed_by,
            changes=changes,
            reason=reason,
        )
        self._session.add(row)
        return row

    def audit_trail(self, entry_id: str) -> list[EntryAuditLog]:
        stmt = (
            select(EntryAuditLog)
            .where(EntryAuditLog.entry_id == entry_id)
            .order_by(EntryAuditLog.created_at)
        )
        return list(self._session.scalars(stmt))

    def count_audit(self, entry_id: str, action: str) -> int:
        stmt = select(func.count()).select_from(EntryAuditLog).where(
            EntryAuditLog.entry_id == entry_id,
            EntryAuditLog.action == action,
        )
        return self._session.scalar(stmt) or 0

    # ------------------------------------------------------------------
    # Catalogue

    def catalogue_candidates(self, show_id: str) -> list[CatalogueCandidate]:
        stmt = (
            select(Entry.id, Entry.entry_date, BreedGroup.sort_order, Breed.name, Dog.sex)
            .select_from(Entry)
            .outerjoin(Dog, Entry.dog_id == Dog.id)
            .outerjoin(Breed, Dog.breed_id == Breed.id)
            .outerjoin(BreedGroup, Breed.group_id == BreedGroup.id)
            .where(
                Entry.show_id == show_id,
                Entry.status == EntryStatus.CONFIRMED.value,
                Entry.deleted_at.is_(None),
            )
        )
        return [
            CatalogueCandidate(
                entry_id=entry_id,
                entry_date=entry_date,
                group_sort_order=sort_order,
                breed_name=breed_name,
                sex=sex,
            )
            for entry_id, entry_date, sort_order, breed_name, sex in self._session.execute(stmt)
        ]

    def clear_catalogue_numbers(self, show_id: str) -> None:
        self._session.execute(
            update(Entry)
            .where(Entry.show_id == show_id, Entry.catalogue_number.is_not(None))
            .values(catalogue_number=None)
            .execution_options(synchronize_session="fetch")
        )

    def write_catalogue_numbers(self, numbers: Sequence[tuple[str, str]]) -> None:
        if not numbers:
            return
        self._session.execute(
            update(Entry),
            [{"id": entry_id, "catalogue_number": number} for entry_id, number in numbers],
        )

    def catalogue_numbers(self, show_id: str) -> dict[str, str | None]:
        stmt = select(Entry.id, Entry.catalogue_number).where(Entry.show_id == show_id)
        return {entry_id: number for entry_id, number in self._session.execute(stmt)}


__all__ = ["EntryRepository"]
