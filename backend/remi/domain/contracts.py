"""Judge contract stages and offer tokens."""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from .catalogue import as_utc
from .enums import ContractStage

ALLOWED_TRANSITIONS: dict[ContractStage, frozenset[ContractStage]] = {
    ContractStage.OFFER_SENT: frozenset({ContractStage.OFFER_ACCEPTED, ContractStage.DECLINED}),
    ContractStage.OFFER_ACCEPTED: frozenset({ContractStage.CONFIRMED}),
    ContractStage.CONFIRMED: frozenset(),
    ContractStage.DECLINED: frozenset(),
}

TOKEN_BYTES = 32


class InvalidTransition(ValueError):
    def __init__(self, current: ContractStage, target: ContractStage) -> None:
        super().__init__(f"cannot move judge contract from {current.value} to {target.value}")
        self.current = current
        self.target = target


def can_transition(current: ContractStage | str, target: ContractStage | str) -> bool:
    return ContractStage(target) in ALLOWED_TRANSITIONS.get(ContractStage(current), frozenset())


def ensure_transition(current: ContractStage | str, target: ContractStage | str) -> ContractStage:
    current_stage = ContractStage(current)
    target_stage = ContractStage(target)
    if not can_transition(current_stage, target_stage):
        raise InvalidTransition(current_stage, target_stage)
    return target_stage


def mint_offer_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def offer_expiry(now: datetime, ttl_days: int) -> datetime:
    return as_utc(now) + timedelta(days=ttl_days)


def is_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    if expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(now) > as_utc(expires_at)


__all__ = [
    "ALLOWED_TRANSITIONS",
    "InvalidTransition",
    "can_transition",
    "ensure_transition",
    "is_expired",
    "mint_offer_token",
    "offer_expiry",
]
