"""Judge contract lifecycle: offer, token response, confirmation.

Stage changes go through a conditional update on the current stage, so a
replayed or concurrent response finds nothing to change and is reported as
already responded. Notifications run after the commit and never undo it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from loguru import logger
from sqlalchemy.orm import Session

from remi.core.config import settings
from remi.domain.contracts import (
    InvalidTransition,
    ensure_transition,
    is_expired,
    mint_offer_token,
    offer_expiry,
)
from remi.domain.enums import ContractStage
from remi.errors import ConflictError, NotFoundError, TokenExpiredError, ValidationError
from remi.models import JudgeContract, utcnow
from remi.repositories import ContractRepository
from remi.repositories.contract_repository import (
    ACCEPTANCE_LETTER_KEY,
    CONFIRMATION_LETTER_KEY,
    JUDGE_ENTITY,
)

from .access import require_secretary
from .notifications import (
    JUDGE_CONFIRMATION,
    JUDGE_OFFER,
    JUDGE_OFFER_ACCEPTED,
    JUDGE_OFFER_DECLINED,
    Notifier,
)

ACTIONS: dict[str, ContractStage] = {
    "accept": ContractStage.OFFER_ACCEPTED,
    "decline": ContractStage.DECLINED,
}


@dataclass(slots=True)
class OfferResult:
    contract: JudgeContract
    offer_url: str
    email_delivered: bool


def offer_url(token: str) -> str:
    return f"{settings.public_base_url}/judge-contract/{token}"


class JudgeContractService:
    def __init__(
        self,
        session: Session,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._notifier = notifier
        self._clock = clock
        self._contracts = ContractRepository(session)

    # ------------------------------------------------------------------
    # Secretary actions

    def send_offer(
        self,
        show_id: str,
        user_id: str,
        judge_id: str,
        *,
        hospitality: str | None = None,
        travel_expenses: str | None = None,
        notes: str | None = None,
    ) -> OfferResult:
        show = require_secretary(self._session, show_id, user_id)
        judge = self._contracts.get_judge(judge_id)
        if judge is None:
            raise NotFoundError("judge_not_found", f"Judge {judge_id} does not exist", details={"judge_id": judge_id})
        if not judge.email:
            raise ValidationError(
                "judge_email_missing",
                f"{judge.name} has no email address on file",
                details={"judge_id": judge_id},
            )
        existing = self._contracts.open_contract(show.id, judge.id)
        if existing is not None:
            raise ConflictError(
                "contract_already_open",
                f"{judge.name} already has a {existing.stage} contract for this show",
                details={"contract_id": existing.id, "stage": existing.stage},
            )

        now = self._clock()
        contract = JudgeContract(
            show_id=show.id,
            judge_id=judge.id,
            judge_email=judge.email,
            stage=ContractStage.OFFER_SENT.value,
            offer_token=mint_offer_token(),
            token_expires_at=offer_expiry(now, settings.judge_offer_ttl_days),
            offer_sent_at=now,
            hospitality=hospitality,
            travel_expenses=travel_expenses,
            notes=notes,
        )
        contract.judge = judge
        contract.show = show
        self._session.add(contract)
        self._commit()
        logger.info("Judge offer {} sent show={} judge={}", contract.id, show.id, judge.id)
        return OfferResult(
            contract=contract,
            offer_url=offer_url(contract.offer_token),
            email_delivered=self._send_offer_email(contract),
        )

    def resend_offer(self, contract_id: str, user_id: str) -> OfferResult:
        """Refresh the expiry of an unanswered offer and email the same link again."""

        contract = self._get(contract_id)
        require_secretary(self._session, contract.show_id, user_id)
        if contract.stage != ContractStage.OFFER_SENT.value:
            raise ConflictError(
                "invalid_stage_transition",
                "Only offers awaiting a response can be resent",
                details={"contract_id": contract.id, "stage": contract.stage},
            )
        contract.token_expires_at = offer_expiry(self._clock(), settings.judge_offer_ttl_days)
        self._commit()
        logger.info("Judge offer {} resent; expires {}", contract.id, contract.token_expires_at)
        return OfferResult(
            contract=contract,
            offer_url=offer_url(contract.offer_token),
            email_delivered=self._send_offer_email(contract),
        )

    def confirm(self, contract_id: str, user_id: str) -> JudgeContract:
        contract = self._get(contract_id)
        require_secretary(self._session, contract.show_id, user_id)
        self._transition(contract, ContractStage.CONFIRMED)
        self._contracts.complete_checklist_items(
            contract.show_id,
            auto_detect_key=CONFIRMATION_LETTER_KEY,
            entity_type=JUDGE_ENTITY,
            entity_id=contract.judge_id,
            at=self._clock(),
        )
        self._commit()
        self._session.refresh(contract)
        self._notify(
            JUDGE_CONFIRMATION,
            contract.judge_email,
            self._email_context(contract),
        )
        return contract

    # ------------------------------------------------------------------
    # Token holder actions

    def view(self, token: str) -> JudgeContract:
        """Resolve a token for display; stage is left for the caller to render."""

        contract = self._contracts.get_by_token(token)
        if contract is None:
            raise NotFoundError("contract_not_found", "This offer link is not valid")
        if is_expired(contract.token_expires_at, self._clock()):
            raise TokenExpiredError(
                "token_expired",
                "This offer link has expired",
                details={"contract_id": contract.id},
            )
        return contract

    def respond(self, token: str, action: str | None) -> JudgeContract:
        target = ACTIONS.get((action or "").strip().lower())
        if target is None:
            raise ValidationError(
                "invalid_action",
                "Choose accept or decline",
                details={"action": action},
            )
        contract = self.view(token)
        self._transition(contract, target)
        if target is ContractStage.OFFER_ACCEPTED:
            self._contracts.complete_checklist_items(
                contract.show_id,
                auto_detect_key=ACCEPTANCE_LETTER_KEY,
                entity_type=JUDGE_ENTITY,
                entity_id=contract.judge_id,
                at=self._clock(),
            )
        self._commit()
        self._session.refresh(contract)

        recipient = contract.show.secretary_email or settings.secretary_notify_email
        template = JUDGE_OFFER_ACCEPTED if target is ContractStage.OFFER_ACCEPTED else JUDGE_OFFER_DECLINED
        if recipient:
            self._notify(template, recipient, self._email_context(contract))
        else:
            logger.warning("No secretary address for show {}; {} not sent", contract.show_id, template)
        return contract

    # ------------------------------------------------------------------
    # Helpers

    def _get(self, contract_id: str) -> JudgeContract:
        contract = self._contracts.get(contract_id)
        if contract is None:
            raise NotFoundError(
                "contract_not_found",
                f"Judge contract {contract_id} does not exist",
                details={"contract_id": contract_id},
            )
        return contract

    def _transition(self, contract: JudgeContract, target: ContractStage) -> None:
        current = ContractStage(contract.stage)
        responded = target in ACTIONS.values()
        try:
            ensure_transition(current, target)
        except InvalidTransition as exc:
            raise self._stage_conflict(contract, current, responded) from exc

        moved = self._contracts.advance_stage(contract.id, expected=current, target=target, at=self._clock())
        if not moved:
            self._session.rollback()
            latest = self._contracts.get(contract.id)
            stage = ContractStage(latest.stage) if latest is not None else current
            raise self._stage_conflict(contract, stage, responded)
        logger.info("Judge contract {} {} -> {}", contract.id, current.value, target.value)

    @staticmethod
    def _stage_conflict(contract: JudgeContract, stage: ContractStage, responded: bool) -> ConflictError:
        if responded:
            return ConflictError(
                "contract_already_responded",
                "This offer has already been responded to",
                details={"contract_id": contract.id, "stage": stage.value},
            )
        return ConflictError(
            "invalid_stage_transition",
            f"A contract at {stage.value} cannot move on from here",
            details={"contract_id": contract.id, "stage": stage.value},
        )

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    def _email_context(self, contract: JudgeContract) -> dict[str, Any]:
        return {
            "judge_name": contract.judge.name if contract.judge else None,
            "show_name": contract.show.name if contract.show else None,
            "show_date": contract.show.start_date.isoformat() if contract.show else None,
            "contract_id": contract.id,
            "stage": contract.stage,
        }

    def _send_offer_email(self, contract: JudgeContract) -> bool:
        url = offer_url(contract.offer_token)
        context = self._email_context(contract)
        context.update(
            accept_url=f"{url}?action=accept",
            decline_url=f"{url}?action=decline",
            expires_at=contract.token_expires_at.date().isoformat(),
        )
        return self._notify(JUDGE_OFFER, contract.judge_email, context)

    def _notify(self, template_key: str, to_address: str, context: Mapping[str, Any]) -> bool:
        try:
            self._notifier.send(template_key, to_address, context)
        except Exception:
            logger.exception("Notification {} to {} failed", template_key, to_address)
            return False
        return True


__all__ = ["ACTIONS", "JudgeContractService", "OfferResult", "offer_url"]
