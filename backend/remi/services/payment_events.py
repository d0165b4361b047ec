"""Apply payment gateway webhook events to orders and entries."""

from __future__ import annotations

from typing import Any, Mapping

from loguru import logger
from sqlalchemy.orm import Session

from remi.domain.enums import OrderStatus, PaymentStatus, PaymentType
from remi.repositories import EntryRepository, OrderRepository

from .notifications import ENTRY_CONFIRMATION, Notifier

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

_SETTLED = {
    PaymentStatus.SUCCEEDED.value,
    PaymentStatus.PARTIALLY_REFUNDED.value,
    PaymentStatus.REFUNDED.value,
}


class PaymentEventService:
    def __init__(self, session: Session, notifier: Notifier) -> None:
        self._session = session
        self._notifier = notifier
        self._orders = OrderRepository(session)
        self._entries = EntryRepository(session)

    def handle(self, event: Mapping[str, Any]) -> str:
        """Apply one event and return a short outcome label.

        Unknown event types and unknown intents are acknowledged so the
        gateway stops redelivering them.
        """

        event_type = event.get("type")
        intent = (event.get("data") or {}).get("object") or {}
        intent_id = intent.get("id")
        if event_type not in (PAYMENT_SUCCEEDED, PAYMENT_FAILED) or not intent_id:
            return "ignored"

        payment = self._orders.payment_by_gateway_id(intent_id)
        if payment is None:
            logger.warning("Webhook {} for unknown intent {}", event_type, intent_id)
            return "ignored"

        if event_type == PAYMENT_SUCCEEDED:
            return self._succeeded(payment, intent)
        return self._failed(payment)

    def _succeeded(self, payment, intent: Mapping[str, Any]) -> str:
        if payment.status in _SETTLED:
            return "duplicate"

        payment.status = PaymentStatus.SUCCEEDED.value
        confirmed = 0
        order = payment.order
        if payment.type == PaymentType.INITIAL.value:
            order.status = OrderStatus.PAID.value
            confirmed = self._entries.confirm_for_order(order.id)
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info(
            "Payment {} succeeded order={} type={} entries_confirmed={}",
            payment.id,
            order.id,
            payment.type,
            confirmed,
        )

        recipient = intent.get("receipt_email")
        if payment.type == PaymentType.INITIAL.value and recipient:
            try:
                self._notifier.send(
                    ENTRY_CONFIRMATION,
                    recipient,
                    {
                        "order_id": order.id,
                        "show_name": order.show.name,
                        "entry_count": confirmed,
                    },
                )
            except Exception:
                logger.exception("Entry confirmation email for order {} failed", order.id)
        return "succeeded"

    def _failed(self, payment) -> str:
        if payment.status in _SETTLED or payment.status == PaymentStatus.FAILED.value:
            return "duplicate"

        payment.status = PaymentStatus.FAILED.value
        order = payment.order
        if payment.type == PaymentType.INITIAL.value and order.status == OrderStatus.PENDING_PAYMENT.value:
            order.status = OrderStatus.FAILED.value
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.warning("Payment {} failed order={} type={}", payment.id, order.id, payment.type)
        return "failed"


__all__ = ["PAYMENT_FAILED", "PAYMENT_SUCCEEDED", "PaymentEventService"]
