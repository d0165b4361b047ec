"""Transactional email adapters."""

from .base import NotificationError, Notifier
from .resend import LogNotifier, ResendNotifier
from .templates import (
    ENTRY_CONFIRMATION,
    JUDGE_CONFIRMATION,
    JUDGE_OFFER,
    JUDGE_OFFER_ACCEPTED,
    JUDGE_OFFER_DECLINED,
    render,
)

__all__ = [
    "ENTRY_CONFIRMATION",
    "JUDGE_CONFIRMATION",
    "JUDGE_OFFER",
    "JUDGE_OFFER_ACCEPTED",
    "JUDGE_OFFER_DECLINED",
    "LogNotifier",
    "NotificationError",
    "Notifier",
    "ResendNotifier",
    "render",
]
