from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from remi.domain.enums import ChecklistStatus, ContractStage, ShowStatus
from remi.models import ShowChecklistItem
from remi.repositories import ContractRepository, ShowRepository

from .access import require_secretary

_PUBLISHED = {
    ShowStatus.PUBLISHED.value,
    ShowStatus.ENTRIES_OPEN.value,
    ShowStatus.ENTRIES_CLOSED.value,
    ShowStatus.IN_PROGRESS.value,
    ShowStatus.COMPLETED.value,
}
_ENTRIES_OPENED = _PUBLISHED - {ShowStatus.PUBLISHED.value}
_ENTRIES_CLOSED = _ENTRIES_OPENED - {ShowStatus.ENTRIES_OPEN.value}


@dataclass(slots=True)
class EntityChecklist:
    entity_type: str
    entity_id: str
    completed: bool
    items: list[ShowChecklistItem] = field(default_factory=list)


@dataclass(slots=True)
class ChecklistAutoDetect:
    show_id: str
    classes_created: bool
    show_published: bool
    entries_opened: bool
    entries_closed: bool
    judge_offers_sent: bool
    judge_acceptances_received: bool
    entity: EntityChecklist | None = None


class ChecklistService:
    """Derive secretary checklist signals from show state."""

    def __init__(self, session: Session) -> None:
        self._session = session
        self._shows = ShowRepository(session)
        self._contracts = ContractRepository(session)

    def auto_detect(
        self,
        show_id: str,
        user_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> ChecklistAutoDetect:
        show = require_secretary(self._session, show_id, user_id)
        stages = self._contracts.stage_counts(show.id)
        accepted = stages.get(ContractStage.OFFER_ACCEPTED.value, 0) + stages.get(ContractStage.CONFIRMED.value, 0)
        summary = ChecklistAutoDetect(
            show_id=show.id,
            classes_created=self._shows.count_classes(show.id) > 0,
            show_published=show.status in _PUBLISHED,
            entries_opened=show.status in _ENTRIES_OPENED,
            entries_closed=show.status in _ENTRIES_CLOSED,
            judge_offers_sent=sum(stages.values()) > 0,
            judge_acceptances_received=accepted > 0,
        )
        if entity_type and entity_id:
            summary.entity = self.entity_status(show.id, entity_type, entity_id)
        return summary

    def entity_status(self, show_id: str, entity_type: str, entity_id: str) -> EntityChecklist:
        items = self._contracts.checklist_items(show_id, entity_type=entity_type, entity_id=entity_id)
        return EntityChecklist(
            entity_type=entity_type,
            entity_id=entity_id,
            completed=bool(items) and all(item.status == ChecklistStatus.COMPLETE.value for item in items),
            items=items,
        )


__all__ = ["ChecklistAutoDetect", "ChecklistService", "EntityChecklist"]
