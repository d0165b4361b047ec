"""Turn a cart of prospective entries into an order awaiting payment."""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from remi.domain.enums import (
    AuditAction,
    EntryStatus,
    EntryType,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    ShowStatus,
)
from remi.domain.fees import FeeSchedule, price_entry, sundry_total
from remi.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PaymentGatewayError,
    ValidationError,
)
from remi.models import (
    Entry,
    EntryClass,
    JuniorHandlerDetails,
    Order,
    OrderSundryItem,
    Payment,
    Show,
    ShowClass,
    SundryItem,
    new_id,
)
from remi.repositories import DogRepository, EntryRepository, OrderRepository, ShowRepository

from .payments import GatewayError, PaymentGateway, PaymentIntent


@dataclass(slots=True)
class EntryRequest:
    class_ids: Sequence[str]
    entry_type: EntryType = EntryType.STANDARD
    dog_id: str | None = None
    is_nfc: bool = False
    handler_name: str | None = None
    handler_date_of_birth: date | None = None
    handler_kc_number: str | None = None


@dataclass(slots=True)
class SundrySelection:
    sundry_item_id: str
    quantity: int


@dataclass(slots=True)
class CheckoutResult:
    order_id: str
    status: str
    total_amount: int
    client_secret: str | None = None
    entry_ids: list[str] = field(default_factory=list)


def fee_schedule(show: Show) -> FeeSchedule:
    return FeeSchedule(
        first_entry_fee=show.first_entry_fee,
        subsequent_entry_fee=show.subsequent_entry_fee,
        nfc_entry_fee=show.nfc_entry_fee,
    )


def duplicate_entry_conflict(dog_id: str | None, class_ids: Sequence[str]) -> ConflictError:
    return ConflictError(
        "duplicate_entry_class",
        "This dog is already entered in one or more of these classes",
        details={"dog_id": dog_id, "class_ids": sorted(class_ids)},
    )


def ensure_entries_open(show: Show) -> None:
    if show.status != ShowStatus.ENTRIES_OPEN.value:
        raise ValidationError(
            "show_not_accepting_entries",
            f"{show.name} is not accepting entries",
            details={"show_id": show.id, "status": show.status},
        )


def ensure_distinct_classes(class_ids: Sequence[str]) -> None:
    if not class_ids:
        raise ValidationError("no_classes", "Each entry needs at least one class")
    repeated = sorted(class_id for class_id, count in Counter(class_ids).items() if count > 1)
    if repeated:
        raise ValidationError(
            "duplicate_class_in_request",
            "A class was listed more than once for the same entry",
            details={"class_ids": repeated},
        )


class CheckoutService:
    """Validate a cart, persist it in one transaction, then open a payment intent.

    The local writes commit before the gateway is contacted. When the gateway
    fails the order stays ``pending_payment`` and :meth:`resume` re-issues the
    intent with the same idempotency key (the order id).
    """

    def __init__(self, session: Session, gateway: PaymentGateway) -> None:
        self._session = session
        self._gateway = gateway
        self._shows = ShowRepository(session)
        self._dogs = DogRepository(session)
        self._entries = EntryRepository(session)
        self._orders = OrderRepository(session)

    def checkout(
        self,
        show_id: str,
        exhibitor_id: str,
        entries: Sequence[EntryRequest],
        sundries: Sequence[SundrySelection] = (),
    ) -> CheckoutResult:
        if not entries:
            raise ValidationError("empty_order", "An order needs at least one entry")

        show = self._shows.get(show_id)
        if show is None:
            raise NotFoundError("show_not_found", f"Show {show_id} does not exist", details={"show_id": show_id})
        ensure_entries_open(show)

        for request in entries:
            ensure_distinct_classes(request.class_ids)
            if EntryType(request.entry_type) is EntryType.STANDARD and not request.dog_id:
                raise ValidationError("dog_required", "Standard entries must name a dog")

        self._check_dogs(exhibitor_id, entries)
        self._check_duplicates(show_id, entries)
        classes = self._check_classes(show_id, entries)
        items = self._check_sundries(show_id, sundries)
        self._check_profiles(entries)

        order, entry_rows = self._persist(show, exhibitor_id, entries, classes, sundries, items)
        logger.info(
            "Checkout accepted order={} show={} entries={} total={}",
            order.id,
            show_id,
            len(entry_rows),
            order.total_amount,
        )

        result = CheckoutResult(
            order_id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            entry_ids=[entry.id for entry in entry_rows],
        )
        if order.status == OrderStatus.PAID.value:
            return result

        intent = self._open_intent(order)
        result.client_secret = intent.client_secret
        return result

    def resume(self, order_id: str, exhibitor_id: str) -> CheckoutResult:
        """Re-open the payment intent for an order left in ``pending_payment``."""

        order = self._orders.get(order_id)
        if order is None:
            raise NotFoundError("order_not_found", f"Order {order_id} does not exist", details={"order_id": order_id})
        if order.exhibitor_id != exhibitor_id:
            raise ForbiddenError("order_not_owned", "This order belongs to another exhibitor", details={"order_id": order_id})
        if order.status != OrderStatus.PENDING_PAYMENT.value:
            raise ConflictError(
                "order_not_pending",
                "Only orders awaiting payment can be resumed",
                details={"order_id": order_id, "status": order.status},
            )

        intent = self._open_intent(order)
        logger.info("Checkout resumed order={} intent={}", order.id, intent.id)
        return CheckoutResult(
            order_id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            client_secret=intent.client_secret,
            entry_ids=[entry.id for entry in order.entries],
        )

    # ------------------------------------------------------------------
    # Preconditions

    def _check_dogs(self, exhibitor_id: str, entries: Sequence[EntryRequest]) -> None:
        dog_ids = [request.dog_id for request in entries if request.dog_id]
        dogs = self._dogs.get_many(dog_ids)
        for dog_id in dog_ids:
            dog = dogs.get(dog_id)
            if dog is None or dog.deleted_at is not None:
                raise NotFoundError("dog_not_found", f"Dog {dog_id} does not exist", details={"dog_id": dog_id})
            if dog.owner_id != exhibitor_id:
                raise ForbiddenError(
                    "dog_not_owned",
                    f"{dog.registered_name} is not registered to you",
                    details={"dog_id": dog_id},
                )

    def _check_duplicates(self, show_id: str, entries: Sequence[EntryRequest]) -> None:
        dog_ids = {request.dog_id for request in entries if request.dog_id}
        claimed: dict[str, set[str]] = defaultdict(set)
        claimed.update(self._entries.active_class_holdings(show_id, dog_ids))
        for request in entries:
            if not request.dog_id:
                continue
            overlap = claimed[request.dog_id] & set(request.class_ids)
            if overlap:
                raise duplicate_entry_conflict(request.dog_id, list(overlap))
            claimed[request.dog_id].update(request.class_ids)

    def _check_classes(self, show_id: str, entries: Sequence[EntryRequest]) -> dict[str, ShowClass]:
        requested = [class_id for request in entries for class_id in request.class_ids]
        classes = self._shows.classes_by_id(show_id, requested)
        for class_id in requested:
            if class_id not in classes:
                raise ValidationError(
                    "invalid_class",
                    f"Class {class_id} is not part of this show",
                    details={"class_id": class_id, "show_id": show_id},
                )
        return classes

    def _check_sundries(self, show_id: str, sundries: Sequence[SundrySelection]) -> dict[str, SundryItem]:
        items = self._shows.sundry_items_by_id(selection.sundry_item_id for selection in sundries)
        quantities: dict[str, int] = defaultdict(int)
        for selection in sundries:
            item = items.get(selection.sundry_item_id)
            if item is None or item.show_id != show_id or not item.enabled:
                raise ValidationError(
                    "invalid_sundry_item",
                    "That item is not available for this show",
                    details={"sundry_item_id": selection.sundry_item_id},
                )
            if selection.quantity < 1:
                raise ValidationError(
                    "invalid_quantity",
                    "Quantities must be at least 1",
                    details={"sundry_item_id": item.id, "quantity": selection.quantity},
                )
            quantities[item.id] += selection.quantity
        for item_id, quantity in quantities.items():
            cap = items[item_id].max_per_order
            if cap is not None and quantity > cap:
                raise ConflictError(
                    "sundry_quantity_exceeded",
                    f"{items[item_id].name} is limited to {cap} per order",
                    details={"sundry_item_id": item_id, "max_per_order": cap, "quantity": quantity},
                )
        return items

    @staticmethod
    def _check_profiles(entries: Sequence[EntryRequest]) -> None:
        for request in entries:
            if EntryType(request.entry_type) is not EntryType.JUNIOR_HANDLER:
                continue
            missing = [
                name
                for name, value in (
                    ("handler_name", (request.handler_name or "").strip()),
                    ("handler_date_of_birth", request.handler_date_of_birth),
                )
                if not value
            ]
            if missing:
                raise ValidationError(
                    "incomplete_profile",
                    "Junior handler entries need the handler's name and date of birth",
                    details={"missing": missing},
                )

    # ------------------------------------------------------------------
    # Writes

    def _persist(
        self,
        show: Show,
        exhibitor_id: str,
        entries: Sequence[EntryRequest],
        classes: dict[str, ShowClass],
        sundries: Sequence[SundrySelection],
        items: dict[str, SundryItem],
    ) -> tuple[Order, list[Entry]]:
        schedule = fee_schedule(show)
        order = Order(id=new_id(), show_id=show.id, exhibitor_id=exhibitor_id, status=OrderStatus.PENDING_PAYMENT.value)
        self._session.add(order)

        entry_rows: list[Entry] = []
        created: list[tuple[str, dict]] = []
        entries_total = 0
        for request in entries:
            pricing = price_entry(
                schedule,
                [classes[class_id].entry_fee for class_id in request.class_ids],
                is_nfc=request.is_nfc,
            )
            entry = Entry(
                id=new_id(),
                show_id=show.id,
                order_id=order.id,
                dog_id=request.dog_id,
                exhibitor_id=exhibitor_id,
                entry_type=EntryType(request.entry_type).value,
                status=EntryStatus.PENDING.value,
                is_nfc=request.is_nfc,
                handler_name=request.handler_name,
                total_fee=pricing.total,
                fee_basis=pricing.basis.value,
            )
            entry.classes = [
                EntryClass(show_class_id=class_id, dog_id=request.dog_id, fee=fee)
                for class_id, fee in zip(request.class_ids, pricing.class_fees)
            ]
            if EntryType(request.entry_type) is EntryType.JUNIOR_HANDLER:
                entry.junior_handler = JuniorHandlerDetails(
                    handler_name=request.handler_name.strip(),
                    handler_date_of_birth=request.handler_date_of_birth,
                    kc_number=request.handler_kc_number,
                )
            self._session.add(entry)
            created.append((entry.id, {"class_ids": list(request.class_ids), "total_fee": pricing.total}))
            entry_rows.append(entry)
            entries_total += pricing.total

        lines = []
        for selection in sundries:
            item = items[selection.sundry_item_id]
            order.sundry_lines.append(
                OrderSundryItem(
                    sundry_item_id=item.id,
                    quantity=selection.quantity,
                    unit_price=item.price_in_pence,
                )
            )
            lines.append((item.price_in_pence, selection.quantity))

        order.total_amount = entries_total + sundry_total(lines)
        if order.total_amount == 0:
            order.status = OrderStatus.PAID.value
            for entry in entry_rows:
                entry.status = EntryStatus.CONFIRMED.value

        try:
            self._session.flush()
            for entry_id, changes in created:
                self._entries.add_audit(
                    entry_id,
                    action=AuditAction.CREATED.value,
                    changed_by=exhibitor_id,
                    changes=changes,
                )
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            logger.info("Checkout lost duplicate-entry race show={} exhibitor={}", show.id, exhibitor_id)
            dog_ids = sorted({request.dog_id for request in entries if request.dog_id})
            raise ConflictError(
                "duplicate_entry_class",
                "One of these dogs was entered in the same class by a concurrent checkout",
                details={"dog_ids": dog_ids},
            ) from exc
        return order, entry_rows

    def _open_intent(self, order: Order) -> PaymentIntent:
        try:
            intent = self._gateway.create_intent(
                order.total_amount,
                {"order_id": order.id, "show_id": order.show_id},
                idempotency_key=order.id,
            )
        except GatewayError as exc:
            logger.warning("Payment intent failed order={} error={}", order.id, exc)
            raise PaymentGatewayError(
                "payment_gateway_error",
                "Payment could not be started; the order is saved and can be resumed",
                details={"order_id": order.id},
            ) from exc

        order.payment_intent_id = intent.id
        payment = self._orders.initial_payment(order.id)
        if payment is None:
            payment = Payment(
                order_id=order.id,
                amount=order.total_amount,
                status=PaymentStatus.PENDING.value,
                type=PaymentType.INITIAL.value,
            )
            self._session.add(payment)
        payment.gateway_payment_id = intent.id
        self._session.commit()
        return intent


__all__ = [
    "CheckoutResult",
    "CheckoutService",
    "EntryRequest",
    "SundrySelection",
    "duplicate_entry_conflict",
    "ensure_distinct_classes",
    "ensure_entries_open",
    "fee_schedule",
]
