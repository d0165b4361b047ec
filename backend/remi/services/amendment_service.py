"""Class changes and withdrawals on existing entries."""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from remi.domain.enums import (
    AMENDABLE_ENTRY_STATUSES,
    INACTIVE_ENTRY_STATUSES,
    AuditAction,
    EntryStatus,
    PaymentStatus,
    PaymentType,
)
from remi.domain.fees import price_entry
from remi.errors import ConflictError, ForbiddenError, NotFoundError, PaymentGatewayError, ValidationError
from remi.models import Entry, EntryClass, Payment
from remi.repositories import EntryRepository, OrderRepository, ShowRepository

from .checkout_service import (
    duplicate_entry_conflict,
    ensure_distinct_classes,
    ensure_entries_open,
    fee_schedule,
)
from .payments import GatewayError, PaymentGateway


def amendment_key(entry_id: str, revision: int, class_ids: Sequence[str]) -> str:
    """Idempotency key for the money movement of one class change.

    A retry of the same change after a failed commit finds the same revision
    and target classes, so the gateway replays its first answer.
    """

    digest = hashlib.sha256(",".join(sorted(class_ids)).encode("utf-8")).hexdigest()[:16]
    return f"{entry_id}:amend-{revision}:{digest}"


@dataclass(slots=True)
class AmendmentResult:
    entry_id: str
    old_fee: int
    new_fee: int
    fee_delta: int
    client_secret: str | None = None
    payment_id: str | None = None


class AmendmentService:
    def __init__(self, session: Session, gateway: PaymentGateway) -> None:
        self._session = session
        self._gateway = gateway
        self._shows = ShowRepository(session)
        self._entries = EntryRepository(session)
        self._orders = OrderRepository(session)

    def _owned_entry(self, entry_id: str, user_id: str) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None or entry.deleted_at is not None:
            raise NotFoundError("entry_not_found", f"Entry {entry_id} does not exist", details={"entry_id": entry_id})
        if entry.exhibitor_id != user_id:
            raise ForbiddenError("entry_not_owned", "This entry belongs to another exhibitor", details={"entry_id": entry_id})
        return entry

    def amend_classes(
        self,
        entry_id: str,
        user_id: str,
        class_ids: Sequence[str],
        *,
        reason: str | None = None,
    ) -> AmendmentResult:
        """Replace an entry's classes and settle the fee difference.

        A higher fee opens an ``adjustment`` intent for the delta; a lower fee
        refunds the delta against the order's captured payment. Either way the
        change and the money movement commit together or not at all.
        """

        entry = self._owned_entry(entry_id, user_id)
        ensure_distinct_classes(class_ids)
        ensure_entries_open(entry.show)
        if EntryStatus(entry.status) not in AMENDABLE_ENTRY_STATUSES:
            raise ConflictError(
                "entry_not_amendable",
                f"Entries that are {entry.status} cannot be changed",
                details={"entry_id": entry_id, "status": entry.status},
            )

        classes = self._shows.classes_by_id(entry.show_id, class_ids)
        for class_id in class_ids:
            if class_id not in classes:
                raise ValidationError(
                    "invalid_class",
                    f"Class {class_id} is not part of this show",
                    details={"class_id": class_id, "show_id": entry.show_id},
                )
        if entry.dog_id:
            held = self._entries.active_class_holdings(
                entry.show_id, [entry.dog_id], exclude_entry_id=entry.id
            ).get(entry.dog_id, set())
            overlap = held & set(class_ids)
            if overlap:
                raise duplicate_entry_conflict(entry.dog_id, list(overlap))

        old_class_ids = [row.show_class_id for row in entry.classes]
        old_fee = entry.total_fee
        pricing = price_entry(
            fee_schedule(entry.show),
            [classes[class_id].entry_fee for class_id in class_ids],
            is_nfc=entry.is_nfc,
        )
        delta = pricing.total - old_fee
        key = amendment_key(
            entry.id,
            self._entries.count_audit(entry.id, AuditAction.CLASSES_CHANGED.value) + 1,
            class_ids,
        )

        try:
            entry.classes.clear()
            # Old rows must be gone before new ones claim the same class places.
            self._session.flush()
            entry.classes.extend(
                EntryClass(show_class_id=class_id, dog_id=entry.dog_id, fee=fee)
                for class_id, fee in zip(class_ids, pricing.class_fees)
            )
            entry.total_fee = pricing.total
            entry.fee_basis = pricing.basis.value
            self._entries.add_audit(
                entry.id,
                action=AuditAction.CLASSES_CHANGED.value,
                changed_by=user_id,
                changes={
                    "old_class_ids": old_class_ids,
                    "new_class_ids": list(class_ids),
                    "old_fee": old_fee,
                    "new_fee": pricing.total,
                    "fee_delta": delta,
                },
                reason=reason,
            )
            self._session.flush()
        except IntegrityError as exc:
            self._session.rollback()
            raise duplicate_entry_conflict(entry.dog_id, list(class_ids)) from exc

        result = AmendmentResult(entry_id=entry.id, old_fee=old_fee, new_fee=pricing.total, fee_delta=delta)
        try:
            if delta > 0:
                self._charge_delta(entry, delta, key, result)
            elif delta < 0:
                self._refund_delta(entry, -delta, key, result)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

        logger.info(
            "Entry {} classes changed fee {} -> {} delta={}",
            entry.id,
            old_fee,
            pricing.total,
            delta,
        )
        return result

    def _charge_delta(self, entry: Entry, amount: int, key: str, result: AmendmentResult) -> None:
        try:
            intent = self._gateway.create_intent(
                amount,
                {"order_id": entry.order_id or "", "entry_id": entry.id, "type": PaymentType.ADJUSTMENT.value},
                idempotency_key=key,
            )
        except GatewayError as exc:
            logger.warning("Adjustment intent failed entry={} amount={} error={}", entry.id, amount, exc)
            raise PaymentGatewayError(
                "payment_gateway_error",
                "The top-up payment could not be started; no changes were saved",
                details={"entry_id": entry.id, "order_id": entry.order_id},
            ) from exc

        payment = Payment(
            order_id=entry.order_id,
            entry_id=entry.id,
            gateway_payment_id=intent.id,
            amount=amount,
            status=PaymentStatus.PENDING.value,
            type=PaymentType.ADJUSTMENT.value,
        )
        self._session.add(payment)
        self._session.flush()
        result.client_secret = intent.client_secret
        result.payment_id = payment.id

    def _refund_delta(self, entry: Entry, amount: int, key: str, result: AmendmentResult) -> None:
        original = self._orders.refundable_payment(entry.order_id) if entry.order_id else None
        refundable = original.refundable_amount if original is not None else 0
        if original is None or not original.gateway_payment_id or refundable < amount:
            raise ConflictError(
                "refund_unavailable",
                "The fee went down but there is no captured payment to refund against",
                details={"entry_id": entry.id, "refund_due": amount, "refundable": refundable},
            )

        try:
            self._gateway.refund(
                original.gateway_payment_id,
                amount,
                idempotency_key=key,
            )
        except GatewayError as exc:
            logger.warning("Refund failed entry={} payment={} error={}", entry.id, original.id, exc)
            raise PaymentGatewayError(
                "payment_gateway_error",
                "The refund could not be issued; no changes were saved",
                details={"entry_id": entry.id, "payment_id": original.id},
            ) from exc

        original.refund_amount += amount
        original.status = (
            PaymentStatus.REFUNDED.value
            if original.refund_amount >= original.amount
            else PaymentStatus.PARTIALLY_REFUNDED.value
        )
        refund = Payment(
            order_id=entry.order_id,
            entry_id=entry.id,
            gateway_payment_id=original.gateway_payment_id,
            amount=amount,
            status=PaymentStatus.SUCCEEDED.value,
            type=PaymentType.REFUND.value,
        )
        self._session.add(refund)
        self._session.flush()
        result.payment_id = refund.id

    def withdraw(self, entry_id: str, user_id: str, *, reason: str | None = None) -> Entry:
        """Withdraw an entry and free its class places for the same dog."""

        entry = self._owned_entry(entry_id, user_id)
        if EntryStatus(entry.status) in INACTIVE_ENTRY_STATUSES:
            raise ConflictError(
                "entry_not_withdrawable",
                f"Entry is already {entry.status}",
                details={"entry_id": entry_id, "status": entry.status},
            )
        previous = entry.status
        entry.status = EntryStatus.WITHDRAWN.value
        entry.catalogue_number = None
        self._entries.release_classes(entry.id)
        self._entries.add_audit(
            entry.id,
            action=AuditAction.WITHDRAWN.value,
            changed_by=user_id,
            changes={"status": {"from": previous, "to": entry.status}},
            reason=reason,
        )
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("Entry {} withdrawn (was {})", entry.id, previous)
        return entry


__all__ = ["AmendmentResult", "AmendmentService", "amendment_key"]
