from __future__ import annotations

from datetime import date, datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base
from .domain.enums import (
    ChecklistStatus,
    ContractStage,
    EntryStatus,
    EntryType,
    OrderStatus,
    PaymentStatus,
    PaymentType,
    ShowStatus,
    ShowType,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Organisation(Base):
    __tablename__ = "organisations"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)

    members: Mapped[list["OrganisationMember"]] = relationship(
        "OrganisationMember", back_populates="organisation", cascade="all, delete-orphan"
    )
    shows: Mapped[list["Show"]] = relationship("Show", back_populates="organisation")


class OrganisationMember(Base):
    __tablename__ = "organisation_members"
    __table_args__ = (UniqueConstraint("organisation_id", "user_id", name="uq_org_member"),)

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    organisation_id: Mapped[str] = mapped_column(
        String, ForeignKey("organisations.id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="secretary")

    organisation: Mapped[Organisation] = relationship("Organisation", back_populates="members")


class BreedGroup(Base):
    __tablename__ = "breed_groups"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    breeds: Mapped[list["Breed"]] = relationship("Breed", back_populates="group")


class Breed(Base):
    __tablename__ = "breeds"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    group_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("breed_groups.id"), nullable=True
    )

    group: Mapped[BreedGroup | None] = relationship("BreedGroup", back_populates="breeds")


class Dog(Base):
    __tablename__ = "dogs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    registered_name: Mapped[str] = mapped_column(String, nullable=False)
    breed_id: Mapped[str | None] = mapped_column(String, ForeignKey("breeds.id"), nullable=True)
    sex: Mapped[str | None] = mapped_column(String, nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    kc_registration_number: Mapped[str | None] = mapped_column(String, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    breed: Mapped[Breed | None] = relationship("Breed")
    achievements: Mapped[list["Achievement"]] = relationship(
        "Achievement", back_populates="dog", cascade="all, delete-orphan"
    )


class ClassDefinition(Base):
    __tablename__ = "class_definitions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    min_age_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_age_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_wins: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class Show(Base):
    __tablename__ = "shows"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    organisation_id: Mapped[str] = mapped_column(
        String, ForeignKey("organisations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    show_type: Mapped[str] = mapped_column(String, nullable=False, default=ShowType.OPEN.value)
    status: Mapped[str] = mapped_column(String, nullable=False, default=ShowStatus.DRAFT.value)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    venue: Mapped[str | None] = mapped_column(String, nullable=True)
    first_entry_fee: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subsequent_entry_fee: Mapped[int | None] = mapped_column(Integer, nullable=True)
    nfc_entry_fee: Mapped[int | None] = mapped_column(Integer, nullable=True)
    secretary_email: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    organisation: Mapped[Organisation] = relationship("Organisation", back_populates="shows")
    classes: Mapped[list["ShowClass"]] = relationship(
        "ShowClass", back_populates="show", cascade="all, delete-orphan"
    )
    sundry_items: Mapped[list["SundryItem"]] = relationship(
        "SundryItem", back_populates="show", cascade="all, delete-orphan"
    )


class ShowClass(Base):
    __tablename__ = "show_classes"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    class_definition_id: Mapped[str] = mapped_column(
        String, ForeignKey("class_definitions.id"), nullable=False
    )
    # Null breed means the class is open to every breed the show schedules.
    breed_id: Mapped[str | None] = mapped_column(String, ForeignKey("breeds.id"), nullable=True)
    sex: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    class_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    show: Mapped[Show] = relationship("Show", back_populates="classes")
    class_definition: Mapped[ClassDefinition] = relationship("ClassDefinition")
    breed: Mapped[Breed | None] = relationship("Breed")


class SundryItem(Base):
    __tablename__ = "sundry_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    price_in_pence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_per_order: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    show: Mapped[Show] = relationship("Show", back_populates="sundry_items")


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    exhibitor_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=OrderStatus.DRAFT.value)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payment_intent_id: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    show: Mapped[Show] = relationship("Show")
    entries: Mapped[list["Entry"]] = relationship("Entry", back_populates="order")
    sundry_lines: Mapped[list["OrderSundryItem"]] = relationship(
        "OrderSundryItem", back_populates="order", cascade="all, delete-orphan"
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="order", cascade="all, delete-orphan"
    )


class OrderSundryItem(Base):
    __tablename__ = "order_sundry_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id"), nullable=False, index=True)
    sundry_item_id: Mapped[str] = mapped_column(
        String, ForeignKey("sundry_items.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="sundry_lines")
    sundry_item: Mapped[SundryItem] = relationship("SundryItem")


class Entry(Base):
    __tablename__ = "entries"
    __table_args__ = (
        UniqueConstraint("show_id", "catalogue_number", name="uq_entries_show_catalogue_number"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    order_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("orders.id"), nullable=True, index=True
    )
    dog_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("dogs.id"), nullable=True, index=True
    )
    exhibitor_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    entry_type: Mapped[str] = mapped_column(String, nullable=False, default=EntryType.STANDARD.value)
    status: Mapped[str] = mapped_column(String, nullable=False, default=EntryStatus.PENDING.value)
    is_nfc: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    handler_name: Mapped[str | None] = mapped_column(String, nullable=True)
    total_fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fee_basis: Mapped[str] = mapped_column(String, nullable=False)
    catalogue_number: Mapped[str | None] = mapped_column(String, nullable=True)
    entry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    show: Mapped[Show] = relationship("Show")
    order: Mapped[Order | None] = relationship("Order", back_populates="entries")
    dog: Mapped[Dog | None] = relationship("Dog")
    classes: Mapped[list["EntryClass"]] = relationship(
        "EntryClass", back_populates="entry", cascade="all, delete-orphan"
    )
    junior_handler: Mapped[JuniorHandlerDetails | None] = relationship(
        "JuniorHandlerDetails", back_populates="entry", uselist=False, cascade="all, delete-orphan"
    )


class EntryClass(Base):
    """One class place held by an entry, with the fee charged for it."""

    __tablename__ = "entry_classes"
    __table_args__ = (
        UniqueConstraint("entry_id", "show_class_id", name="uq_entry_classes_entry_class"),
        # A dog holds each class of a show at most once across its active
        # entries. Withdrawn, cancelled and transferred entries clear ``active``.
        Index(
            "uq_entry_classes_active_dog_class",
            "dog_id",
            "show_class_id",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    entry_id: Mapped[str] = mapped_column(String, ForeignKey("entries.id"), nullable=False, index=True)
    show_class_id: Mapped[str] = mapped_column(
        String, ForeignKey("show_classes.id"), nullable=False
    )
    dog_id: Mapped[str | None] = mapped_column(String, ForeignKey("dogs.id"), nullable=True)
    fee: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    entry: Mapped[Entry] = relationship("Entry", back_populates="classes")
    show_class: Mapped[ShowClass] = relationship("ShowClass")
    result: Mapped[Result | None] = relationship("Result", back_populates="entry_class", uselist=False)


class JuniorHandlerDetails(Base):
    __tablename__ = "junior_handler_details"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    entry_id: Mapped[str] = mapped_column(
        String, ForeignKey("entries.id"), nullable=False, unique=True
    )
    handler_name: Mapped[str] = mapped_column(String, nullable=False)
    handler_date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    kc_number: Mapped[str | None] = mapped_column(String, nullable=True)

    entry: Mapped[Entry] = relationship("Entry", back_populates="junior_handler")


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        CheckConstraint("refund_amount >= 0", name="ck_payments_refund_non_negative"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    order_id: Mapped[str] = mapped_column(String, ForeignKey("orders.id"), nullable=False, index=True)
    entry_id: Mapped[str | None] = mapped_column(String, ForeignKey("entries.id"), nullable=True)
    gateway_payment_id: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    refund_amount: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default=PaymentStatus.PENDING.value)
    type: Mapped[str] = mapped_column(String, nullable=False, default=PaymentType.INITIAL.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    order: Mapped[Order] = relationship("Order", back_populates="payments")

    @property
    def refundable_amount(self) -> int:
        return max(self.amount - self.refund_amount, 0)


class Result(Base):
    __tablename__ = "results"
    __table_args__ = (
        CheckConstraint(
            "placement IS NULL OR (placement >= 1 AND placement <= 7)",
            name="ck_results_placement_range",
        ),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    entry_class_id: Mapped[str] = mapped_column(
        String, ForeignKey("entry_classes.id"), nullable=False, unique=True
    )
    placement: Mapped[int | None] = mapped_column(Integer, nullable=True)
    special_award: Mapped[str | None] = mapped_column(String, nullable=True)
    recorded_by: Mapped[str | None] = mapped_column(String, nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    entry_class: Mapped[EntryClass] = relationship("EntryClass", back_populates="result")


class Judge(Base):
    __tablename__ = "judges"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    kc_number: Mapped[str | None] = mapped_column(String, nullable=True)


class Achievement(Base):
    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    dog_id: Mapped[str] = mapped_column(String, ForeignKey("dogs.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    awarded_on: Mapped[date] = mapped_column(Date, nullable=False)
    show_id: Mapped[str | None] = mapped_column(String, ForeignKey("shows.id"), nullable=True)
    judge_id: Mapped[str | None] = mapped_column(String, ForeignKey("judges.id"), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)

    dog: Mapped[Dog] = relationship("Dog", back_populates="achievements")


class JudgeContract(Base):
    __tablename__ = "judge_contracts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    judge_id: Mapped[str] = mapped_column(String, ForeignKey("judges.id"), nullable=False)
    judge_email: Mapped[str] = mapped_column(String, nullable=False)
    stage: Mapped[str] = mapped_column(String, nullable=False, default=ContractStage.OFFER_SENT.value)
    offer_token: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hospitality: Mapped[str | None] = mapped_column(Text, nullable=True)
    travel_expenses: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    offer_sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    show: Mapped[Show] = relationship("Show")
    judge: Mapped[Judge] = relationship("Judge")


class ShowChecklistItem(Base):
    __tablename__ = "show_checklist_items"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    show_id: Mapped[str] = mapped_column(String, ForeignKey("shows.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=ChecklistStatus.NOT_STARTED.value
    )
    auto_detect_key: Mapped[str | None] = mapped_column(String, nullable=True)
    auto_detected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    entity_type: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class EntryAuditLog(Base):
    __tablename__ = "entry_audit_log"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    entry_id: Mapped[str] = mapped_column(String, ForeignKey("entries.id"), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String, nullable=False)
    changed_by: Mapped[str] = mapped_column(String, nullable=False)
    changes: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class AuditLogImmutableError(RuntimeError):
    pass


@event.listens_for(EntryAuditLog, "before_update")
def _reject_audit_update(_mapper, _connection, target: EntryAuditLog) -> None:
    raise AuditLogImmutableError(f"entry audit row {target.id} is append-only")


@event.listens_for(EntryAuditLog, "before_delete")
def _reject_audit_delete(_mapper, _connection, target: EntryAuditLog) -> None:
    raise AuditLogImmutableError(f"entry audit row {target.id} is append-only")


__all__ = [
    "Achievement",
    "AuditLogImmutableError",
    "Breed",
    "BreedGroup",
    "ClassDefinition",
    "Dog",
    "Entry",
    "EntryAuditLog",
    "EntryClass",
    "Judge",
    "JudgeContract",
    "JuniorHandlerDetails",
    "Order",
    "OrderSundryItem",
    "Organisation",
    "OrganisationMember",
    "Payment",
    "Result",
    "Show",
    "ShowChecklistItem",
    "ShowClass",
    "SundryItem",
    "new_id",
    "utcnow",
]
