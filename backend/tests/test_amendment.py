from __future__ import annotations

import pytest
from sqlalchemy import select

from conftest import EXHIBITOR, OTHER_EXHIBITOR
from remi.domain.enums import EntryStatus, OrderStatus, PaymentStatus, PaymentType, ShowStatus
from remi.errors import ConflictError, ForbiddenError, NotFoundError, PaymentGatewayError, ValidationError
from remi.models import Entry, EntryClass, Order, Payment
from remi.repositories import EntryRepository
from remi.services.amendment_service import AmendmentService, amendment_key
from remi.services.checkout_service import CheckoutService, EntryRequest


@pytest.fixture
def show(seed):
    return seed.show()


@pytest.fixture
def classes(seed, show):
    return {
        "A": seed.show_class(show, "Puppy", entry_fee=1000),
        "B": seed.show_class(show, "Junior", entry_fee=1500),
        "C": seed.show_class(show, "Open", entry_fee=800),
    }


@pytest.fixture
def dog(seed):
    return seed.dog()


@pytest.fixture
def service(session, gateway):
    return AmendmentService(session, gateway)


@pytest.fixture
def enter(session, gateway, show, dog):
    """Check out one entry and, unless told otherwise, mark it paid."""

    def _enter(*class_ids, paid: bool = True) -> Entry:
        result = CheckoutService(session, gateway).checkout(
            show.id, EXHIBITOR, [EntryRequest(class_ids=list(class_ids), dog_id=dog.id)]
        )
        if paid:
            order = session.get(Order, result.order_id)
            order.status = OrderStatus.PAID.value
            for payment in order.payments:
                payment.status = PaymentStatus.SUCCEEDED.value
            for entry in order.entries:
                entry.status = EntryStatus.CONFIRMED.value
            session.commit()
        return session.get(Entry, result.entry_ids[0])

    return _enter


def _payments(session, order_id, payment_type):
    stmt = select(Payment).where(Payment.order_id == order_id, Payment.type == payment_type)
    return session.scalars(stmt).all()


def test_adding_a_class_charges_the_difference(session, service, gateway, enter, classes):
    entry = enter(classes["A"].id)

    result = service.amend_classes(entry.id, EXHIBITOR, [classes["A"].id, classes["B"].id], reason="Added Junior")

    assert (result.old_fee, result.new_fee, result.fee_delta) == (1000, 2500, 1500)
    assert result.client_secret == "pi_2_secret"
    audit = EntryRepository(session).audit_trail(entry.id)
    assert [row.action for row in audit] == ["created", "classes_changed"]
    assert audit[-1].changes["fee_delta"] == 1500
    assert audit[-1].reason == "Added Junior"
    assert gateway.intents[-1]["amount"] == 1500
    assert gateway.intents[-1]["key"] == amendment_key(entry.id, 1, [classes["A"].id, classes["B"].id])

    adjustment = _payments(session, entry.order_id, PaymentType.ADJUSTMENT.value)
    assert [(row.amount, row.status, row.entry_id) for row in adjustment] == [
        (1500, PaymentStatus.PENDING.value, entry.id)
    ]
    session.refresh(entry)
    assert entry.total_fee == 2500
    assert sorted(row.show_class_id for row in entry.classes) == sorted([classes["A"].id, classes["B"].id])


def test_dropping_classes_refunds_the_difference(session, service, gateway, enter, classes):
    entry = enter(classes["A"].id, classes["B"].id)

    result = service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])

    assert result.fee_delta == -1700
    assert [(row["payment"], row["amount"]) for row in gateway.refunds] == [("pi_1", 1700)]
    assert gateway.refunds[0]["key"].startswith(f"{entry.id}:")
    original = _payments(session, entry.order_id, PaymentType.INITIAL.value)[0]
    assert original.refund_amount == 1700
    assert original.status == PaymentStatus.PARTIALLY_REFUNDED.value
    refund = _payments(session, entry.order_id, PaymentType.REFUND.value)
    assert [(row.amount, row.status) for row in refund] == [(1700, PaymentStatus.SUCCEEDED.value)]
    assert result.payment_id == refund[0].id


def test_refund_retry_after_failed_commit_reuses_key(session, service, gateway, enter, classes, monkeypatch):
    """A commit that fails after the refund must not lead to a second, differently keyed refund."""
    entry = enter(classes["A"].id, classes["B"].id)
    real_commit = session.commit
    calls = []

    def flaky_commit():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("database went away")
        real_commit()

    monkeypatch.setattr(session, "commit", flaky_commit)

    with pytest.raises(RuntimeError):
        service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])
    service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])

    assert len(gateway.refunds) == 2
    assert gateway.refunds[0]["key"] == gateway.refunds[1]["key"]
    assert [row.action for row in EntryRepository(session).audit_trail(entry.id)] == ["created", "classes_changed"]


def test_returning_to_the_same_classes_gets_a_fresh_key(service, gateway, enter, classes):
    entry = enter(classes["A"].id, classes["B"].id)

    service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])
    service.amend_classes(entry.id, EXHIBITOR, [classes["A"].id])
    service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])

    assert [row["amount"] for row in gateway.refunds] == [1700, 200]
    assert gateway.refunds[0]["key"] != gateway.refunds[1]["key"]


def test_refund_without_captured_payment_changes_nothing(session, service, gateway, enter, classes):
    """No captured payment means the amendment is refused rather than silently unrefunded."""
    entry = enter(classes["A"].id, classes["B"].id, paid=False)

    with pytest.raises(ConflictError) as excinfo:
        service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])

    assert excinfo.value.code == "refund_unavailable"
    assert excinfo.value.details["refund_due"] == 1700
    assert gateway.refunds == []
    session.expire_all()
    entry = session.get(Entry, entry.id)
    assert entry.total_fee == 2500
    assert sorted(row.show_class_id for row in entry.classes) == sorted([classes["A"].id, classes["B"].id])
    assert [row.action for row in EntryRepository(session).audit_trail(entry.id)] == ["created"]


def test_gateway_failure_rolls_back_the_change(session, service, gateway, enter, classes):
    entry = enter(classes["A"].id)
    gateway.fail_intents = True

    with pytest.raises(PaymentGatewayError):
        service.amend_classes(entry.id, EXHIBITOR, [classes["A"].id, classes["B"].id])

    session.expire_all()
    entry = session.get(Entry, entry.id)
    assert entry.total_fee == 1000
    assert [row.show_class_id for row in entry.classes] == [classes["A"].id]
    assert _payments(session, entry.order_id, PaymentType.ADJUSTMENT.value) == []


def test_reordering_the_same_classes_is_free(session, service, gateway, enter, classes):
    entry = enter(classes["A"].id, classes["B"].id)

    result = service.amend_classes(entry.id, EXHIBITOR, [classes["B"].id, classes["A"].id])

    assert result.fee_delta == 0
    assert gateway.refunds == []
    assert len(gateway.intents) == 1


def test_cannot_amend_into_a_class_held_by_another_entry(session, seed, service, enter, show, classes, dog):
    seed.confirmed_entry(show, dog, [classes["C"]])
    entry = enter(classes["A"].id)

    with pytest.raises(ConflictError) as excinfo:
        service.amend_classes(entry.id, EXHIBITOR, [classes["C"].id])
    assert excinfo.value.code == "duplicate_entry_class"


def test_amend_guards(session, seed, service, enter, classes):
    entry = enter(classes["A"].id)

    with pytest.raises(ForbiddenError):
        service.amend_classes(entry.id, OTHER_EXHIBITOR, [classes["B"].id])
    with pytest.raises(ForbiddenError) as excinfo:
        service.amend_classes(entry.id, OTHER_EXHIBITOR, [classes["B"].id, classes["B"].id])
    assert excinfo.value.code == "entry_not_owned"
    with pytest.raises(NotFoundError):
        service.amend_classes("missing", EXHIBITOR, [classes["B"].id])
    with pytest.raises(ValidationError) as excinfo:
        service.amend_classes(entry.id, EXHIBITOR, ["elsewhere"])
    assert excinfo.value.code == "invalid_class"

    entry.show.status = ShowStatus.ENTRIES_CLOSED.value
    session.commit()
    with pytest.raises(ValidationError) as excinfo:
        service.amend_classes(entry.id, EXHIBITOR, [classes["B"].id])
    assert excinfo.value.code == "show_not_accepting_entries"


def test_withdrawn_entry_cannot_be_amended(service, enter, classes):
    entry = enter(classes["A"].id)
    service.withdraw(entry.id, EXHIBITOR)

    with pytest.raises(ConflictError) as excinfo:
        service.amend_classes(entry.id, EXHIBITOR, [classes["B"].id])
    assert excinfo.value.code == "entry_not_amendable"


def test_withdraw_releases_classes(session, gateway, service, enter, show, classes, dog):
    """After withdrawal the same dog can be entered in the same class again."""
    entry = enter(classes["A"].id)
    entry.catalogue_number = "12"
    session.commit()

    withdrawn = service.withdraw(entry.id, EXHIBITOR, reason="Coat not ready")

    assert withdrawn.status == EntryStatus.WITHDRAWN.value
    assert withdrawn.catalogue_number is None
    active = session.scalars(select(EntryClass).where(EntryClass.entry_id == entry.id, EntryClass.active.is_(True)))
    assert active.all() == []
    audit = EntryRepository(session).audit_trail(entry.id)
    assert audit[-1].action == "withdrawn"
    assert audit[-1].changes == {"status": {"from": "confirmed", "to": "withdrawn"}}

    again = CheckoutService(session, gateway).checkout(
        show.id, EXHIBITOR, [EntryRequest(class_ids=[classes["A"].id], dog_id=dog.id)]
    )
    assert again.entry_ids

    with pytest.raises(ConflictError) as excinfo:
        service.withdraw(entry.id, EXHIBITOR)
    assert excinfo.value.code == "entry_not_withdrawable"
