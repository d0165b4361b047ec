"""Judge contracts and the show checklist they feed."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from remi.domain.enums import ChecklistStatus, ContractStage
from remi.models import Judge, JudgeContract, ShowChecklistItem

JUDGE_ENTITY = "judge"
ACCEPTANCE_LETTER_KEY = "judge_acceptance_letter"
CONFIRMATION_LETTER_KEY = "judge_confirmation_letter"

_STAGE_TIMESTAMPS = {
    ContractStage.OFFER_ACCEPTED: "accepted_at",
    ContractStage.DECLINED: "declined_at",
    ContractStage.CONFIRMED: "confirmed_at",
}


class ContractRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, contract_id: str) -> JudgeContract | None:
        stmt = (
            select(JudgeContract)
            .options(selectinload(JudgeContract.judge), selectinload(JudgeContract.show))
            .where(JudgeContract.id == contract_id)
        )
        return self._session.scalars(stmt).first()

    def get_by_token(self, token: str) -> JudgeContract | None:
        stmt = (
            select(JudgeContract)
            .options(selectinload(JudgeContract.judge), selectinload(JudgeContract.show))
            .where(JudgeContract.offer_token == token)
        )
        return self._session.scalars(stmt).first()

    def get_judge(self, judge_id: str) -> Judge | None:
        return self._session.get(Judge, judge_id)

    def open_contract(self, show_id: str, judge_id: str) -> JudgeContract | None:
        stmt = select(JudgeContract).where(
            JudgeContract.show_id == show_id,
            JudgeContract.judge_id == judge_id,
            JudgeContract.stage != ContractStage.DECLINED.value,
        )
        return self._session.scalars(stmt).first()

    def advance_stage(
        self,
        contract_id: str,
        *,
        expected: ContractStage,
        target: ContractStage,
        at: datetime,
    ) -> bool:
        """Move a contract only if it is still at ``expected``.

        Returns False when another request got there first.
        """

        values: dict[str, object] = {"stage": target.value}
        stamp = _STAGE_TIMESTAMPS.get(target)
        if stamp:
            values[stamp] = at
        result = self._session.execute(
            update(JudgeContract)
            .where(JudgeContract.id == contract_id, JudgeContract.stage == expected.value)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return (result.rowcount or 0) == 1

    def stage_counts(self, show_id: str) -> dict[str, int]:
        stmt = (
            select(JudgeContract.stage, func.count())
            .where(JudgeContract.show_id == show_id)
            .group_by(JudgeContract.stage)
        )
        return {stage: int(count) for stage, count in self._session.execute(stmt)}

    # ------------------------------------------------------------------
    # Checklist

    def complete_checklist_items(
        self,
        show_id: str,
        *,
        auto_detect_key: str,
        entity_type: str,
        entity_id: str,
        at: datetime,
    ) -> int:
        result = self._session.execute(
            update(ShowChecklistItem)
            .where(
                ShowChecklistItem.show_id == show_id,
                ShowChecklistItem.auto_detect_key == auto_detect_key,
                ShowChecklistItem.entity_type == entity_type,
                ShowChecklistItem.entity_id == entity_id,
                ShowChecklistItem.status != ChecklistStatus.COMPLETE.value,
            )
            .values(
                status=ChecklistStatus.COMPLETE.value,
                auto_detected=True,
                completed_at=at,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def checklist_items(
        self,
        show_id: str,
        *,
        entity_type: str | None = None,
        entity_id: str | None = None,
    ) -> list[ShowChecklistItem]:
        stmt = select(ShowChecklistItem).where(ShowChecklistItem.show_id == show_id)
        if entity_type is not None:
            stmt = stmt.where(ShowChecklistItem.entity_type == entity_type)
        if entity_id is not None:
            stmt = stmt.where(ShowChecklistItem.entity_id == entity_id)
        return list(self._session.scalars(stmt.order_by(ShowChecklistItem.due_date, ShowChecklistItem.title)))


__all__ = [
    "ACCEPTANCE_LETTER_KEY",
    "CONFIRMATION_LETTER_KEY",
    "ContractRepository",
    "JUDGE_ENTITY",
]
