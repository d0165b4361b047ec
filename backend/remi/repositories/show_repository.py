"""Show, class and sundry lookups."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from remi.models import OrganisationMember, Show, ShowClass, SundryItem


class ShowRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, show_id: str) -> Show | None:
        return self._session.get(Show, show_id)

    def classes_by_id(self, show_id: str, class_ids: Iterable[str]) -> dict[str, ShowClass]:
        ids = set(class_ids)
        if not ids:
            return {}
        stmt = (
            select(ShowClass)
            .options(selectinload(ShowClass.class_definition))
            .where(ShowClass.show_id == show_id, ShowClass.id.in_(ids))
        )
        return {row.id: row for row in self._session.scalars(stmt)}

    def list_classes(self, show_id: str) -> list[ShowClass]:
        stmt = (
            select(ShowClass)
            .options(selectinload(ShowClass.class_definition), selectinload(ShowClass.breed))
            .where(ShowClass.show_id == show_id)
            .order_by(ShowClass.class_number, ShowClass.id)
        )
        return list(self._session.scalars(stmt))

    def count_classes(self, show_id: str) -> int:
        stmt = select(func.count()).select_from(ShowClass).where(ShowClass.show_id == show_id)
        return int(self._session.scalar(stmt) or 0)

    def sundry_items_by_id(self, item_ids: Iterable[str]) -> dict[str, SundryItem]:
        ids = set(item_ids)
        if not ids:
            return {}
        stmt = select(SundryItem).where(SundryItem.id.in_(ids))
        return {row.id: row for row in self._session.scalars(stmt)}

    def is_secretary(self, show: Show, user_id: str) -> bool:
        stmt = select(OrganisationMember.id).where(
            OrganisationMember.organisation_id == show.organisation_id,
            OrganisationMember.user_id == user_id,
        )
        return self._session.scalar(stmt) is not None


__all__ = ["ShowRepository"]
