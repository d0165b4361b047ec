from __future__ import annotations

import os
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest

from remi import db as remi_db
from remi.core.config import Settings
from remi.domain.enums import ClassType, EntryStatus, OrderStatus, ShowStatus, ShowType
from remi.models import (
    Achievement,
    Breed,
    BreedGroup,
    ClassDefinition,
    Dog,
    Entry,
    EntryClass,
    Judge,
    Order,
    Organisation,
    OrganisationMember,
    Result,
    Show,
    ShowChecklistItem,
    ShowClass,
    SundryItem,
)
from remi.services.notifications import NotificationError
from remi.services.payments import GatewayError, PaymentIntent

EXHIBITOR = "exhibitor-1"
OTHER_EXHIBITOR = "exhibitor-2"
SECRETARY = "secretary-1"


class StubGateway:
    """In-memory payment gateway that honours idempotency keys."""

    def __init__(self) -> None:
        self.intents: list[dict[str, object]] = []
        self.refunds: list[dict[str, object]] = []
        self.fail_intents = False
        self.fail_refunds = False
        self._by_key: dict[str, PaymentIntent] = {}

    def create_intent(self, amount, metadata, *, idempotency_key=None) -> PaymentIntent:
        if self.fail_intents:
            raise GatewayError("gateway unavailable", status_code=503)
        if idempotency_key and idempotency_key in self._by_key:
            return self._by_key[idempotency_key]
        number = len(self._by_key) + 1
        intent = PaymentIntent(id=f"pi_{number}", client_secret=f"pi_{number}_secret")
        self.intents.append({"amount": amount, "metadata": dict(metadata), "key": idempotency_key, "id": intent.id})
        if idempotency_key:
            self._by_key[idempotency_key] = intent
        return intent

    def refund(self, payment_reference_id, amount, *, idempotency_key=None) -> None:
        if self.fail_refunds:
            raise GatewayError("refund rejected", status_code=400)
        self.refunds.append({"payment": payment_reference_id, "amount": amount, "key": idempotency_key})


class StubNotifier:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict]] = []
        self.fail = False

    def send(self, template_key, to_address, context) -> None:
        if self.fail:
            raise NotificationError("smtp down")
        self.sent.append((template_key, to_address, dict(context)))

    def templates(self) -> list[str]:
        return [template for template, _, _ in self.sent]


class Seeder:
    """Builds just enough of a show world for a test and commits it."""

    def __init__(self, session) -> None:
        self.session = session

    def _save(self, *rows):
        self.session.add_all(rows)
        self.session.commit()
        return rows[0]

    def show(
        self,
        *,
        status: str = ShowStatus.ENTRIES_OPEN.value,
        show_type: str = ShowType.CHAMPIONSHIP.value,
        first_entry_fee: int | None = None,
        subsequent_entry_fee: int | None = None,
        nfc_entry_fee: int | None = None,
        start_date: date = date(2026, 6, 6),
        secretary_email: str | None = "secretary@club.test",
    ) -> Show:
        organisation = Organisation(name="Northern Counties Canine Society")
        organisation.members.append(OrganisationMember(user_id=SECRETARY))
        show = Show(
            organisation=organisation,
            name="Northern Counties Championship Show",
            show_type=show_type,
            status=status,
            start_date=start_date,
            end_date=start_date,
            venue="Harrogate Showground",
            first_entry_fee=first_entry_fee,
            subsequent_entry_fee=subsequent_entry_fee,
            nfc_entry_fee=nfc_entry_fee,
            secretary_email=secretary_email,
        )
        return self._save(show)

    def breed(self, name: str = "Beagle", *, group: str = "Hound", sort_order: int = 2) -> Breed:
        existing = self.session.query(Breed).filter_by(name=name).one_or_none()
        if existing is not None:
            return existing
        breed_group = self.session.query(BreedGroup).filter_by(name=group).one_or_none()
        if breed_group is None:
            breed_group = BreedGroup(name=group, sort_order=sort_order)
        return self._save(Breed(name=name, group=breed_group))

    def show_class(
        self,
        show: Show,
        name: str = "Open",
        *,
        entry_fee: int = 1000,
        class_type: str = ClassType.ACHIEVEMENT.value,
        sex: str | None = None,
        breed: Breed | None = None,
        min_age_months: int | None = None,
        max_age_months: int | None = None,
        number: int | None = None,
    ) -> ShowClass:
        definition = ClassDefinition(
            name=name,
            type=class_type,
            min_age_months=min_age_months,
            max_age_months=max_age_months,
        )
        show_class = ShowClass(
            show_id=show.id,
            class_definition=definition,
            breed_id=breed.id if breed else None,
            sex=sex,
            entry_fee=entry_fee,
            class_number=number,
        )
        return self._save(show_class)

    def dog(
        self,
        owner_id: str = EXHIBITOR,
        *,
        name: str = "Ch Brackenhill Rambler",
        breed: Breed | None = None,
        sex: str | None = "dog",
        date_of_birth: date | None = date(2023, 1, 15),
        deleted: bool = False,
    ) -> Dog:
        dog = Dog(
            owner_id=owner_id,
            registered_name=name,
            breed_id=breed.id if breed else None,
            sex=sex,
            date_of_birth=date_of_birth,
            deleted_at=datetime.now(timezone.utc) if deleted else None,
        )
        return self._save(dog)

    def sundry(
        self,
        show: Show,
        *,
        name: str = "Printed catalogue",
        price: int = 350,
        max_per_order: int | None = None,
        enabled: bool = True,
    ) -> SundryItem:
        item = SundryItem(
            show_id=show.id,
            name=name,
            price_in_pence=price,
            max_per_order=max_per_order,
            enabled=enabled,
        )
        return self._save(item)

    def judge(self, *, name: str = "Mrs Ann Whitfield", email: str | None = "judge@example.test") -> Judge:
        return self._save(Judge(name=name, email=email))

    def checklist_item(self, show: Show, *, title: str, key: str, entity_id: str) -> ShowChecklistItem:
        item = ShowChecklistItem(
            show_id=show.id,
            title=title,
            auto_detect_key=key,
            entity_type="judge",
            entity_id=entity_id,
        )
        return self._save(item)

    def confirmed_entry(
        self,
        show: Show,
        dog: Dog | None,
        classes: list[ShowClass],
        *,
        entry_date: datetime | None = None,
        placement: int | None = None,
        status: str = EntryStatus.CONFIRMED.value,
        exhibitor_id: str = EXHIBITOR,
    ) -> Entry:
        order = Order(show_id=show.id, exhibitor_id=exhibitor_id, status=OrderStatus.PAID.value)
        entry = Entry(
            show_id=show.id,
            order=order,
            dog_id=dog.id if dog else None,
            exhibitor_id=exhibitor_id,
            status=status,
            total_fee=sum(show_class.entry_fee for show_class in classes),
            fee_basis="per_class",
            entry_date=entry_date or datetime.now(timezone.utc),
        )
        entry.classes = [
            EntryClass(
                show_class_id=show_class.id,
                dog_id=dog.id if dog else None,
                fee=show_class.entry_fee,
                active=status in (EntryStatus.PENDING.value, EntryStatus.CONFIRMED.value),
            )
            for show_class in classes
        ]
        self._save(order, entry)
        if placement is not None:
            for entry_class in entry.classes:
                self.session.add(Result(entry_class_id=entry_class.id, placement=placement))
            self.session.commit()
        return entry

    def win(self, dog: Dog, *, show_type: str, won_on: date, placement: int = 1) -> Entry:
        show = self.show(show_type=show_type, start_date=won_on, status=ShowStatus.COMPLETED.value)
        show_class = self.show_class(show, "Open")
        return self.confirmed_entry(show, dog, [show_class], placement=placement)

    def achievement(self, dog: Dog, *, type: str = "cc", judge: Judge | None = None, awarded_on: date = date(2025, 5, 1)) -> Achievement:
        return self._save(
            Achievement(dog_id=dog.id, type=type, judge_id=judge.id if judge else None, awarded_on=awarded_on)
        )


@pytest.fixture
def engine(tmp_path):
    engine = remi_db._create_engine(f"sqlite:///{tmp_path / 'remi.db'}")
    remi_db.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return remi_db._create_session_factory(engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def seed(session) -> Seeder:
    return Seeder(session)


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def notifier() -> StubNotifier:
    return StubNotifier()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def later(fixed_now):
    def _later(**delta) -> datetime:
        return fixed_now + timedelta(**delta)

    return _later


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'remi.db'}",
        public_base_url="https://shows.example.test/",
        stripe_webhook_secret="whsec_test",
        secretary_notify_email="fallback@club.test",
    )
    monkeypatch.setattr("remi.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("remi.core.config.settings", settings)
    for module in (
        "remi.main",
        "remi.services.contract_service",
        "remi.services.payments.stripe",
        "remi.services.notifications.resend",
    ):
        monkeypatch.setattr(f"{module}.settings", settings)
    return settings
