"""Orders and their payment rows."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from remi.domain.enums import PaymentStatus, PaymentType
from remi.models import Order, Payment

REFUNDABLE_PAYMENT_STATUSES = (
    PaymentStatus.SUCCEEDED.value,
    PaymentStatus.PARTIALLY_REFUNDED.value,
)


class OrderRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, order_id: str) -> Order | None:
        stmt = (
            select(Order)
            .options(selectinload(Order.payments), selectinload(Order.entries))
            .where(Order.id == order_id)
        )
        return self._session.scalars(stmt).first()

    def initial_payment(self, order_id: str) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.order_id == order_id, Payment.type == PaymentType.INITIAL.value)
            .order_by(Payment.created_at.desc())
        )
        return self._session.scalars(stmt).first()

    def refundable_payment(self, order_id: str) -> Payment | None:
        """The original captured payment still able to absorb a refund."""

        stmt = (
            select(Payment)
            .where(
                Payment.order_id == order_id,
                Payment.type == PaymentType.INITIAL.value,
                Payment.status.in_(REFUNDABLE_PAYMENT_STATUSES),
            )
            .order_by(Payment.created_at)
        )
        return self._session.scalars(stmt).first()

    def payment_by_gateway_id(self, gateway_payment_id: str) -> Payment | None:
        stmt = select(Payment).where(
            Payment.gateway_payment_id == gateway_payment_id,
            Payment.type != PaymentType.REFUND.value,
        )
        return self._session.scalars(stmt).first()


__all__ = ["OrderRepository", "REFUNDABLE_PAYMENT_STATUSES"]
