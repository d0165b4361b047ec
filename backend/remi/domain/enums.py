"""Status and category vocabularies shared by the ORM, services, and pure rules."""

from __future__ import annotations

from enum import Enum


class ShowStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ENTRIES_OPEN = "entries_open"
    ENTRIES_CLOSED = "entries_closed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ShowType(str, Enum):
    COMPANION = "companion"
    PRIMARY = "primary"
    LIMITED = "limited"
    OPEN = "open"
    PREMIER_OPEN = "premier_open"
    CHAMPIONSHIP = "championship"


class Sex(str, Enum):
    DOG = "dog"
    BITCH = "bitch"


class ClassType(str, Enum):
    AGE = "age"
    ACHIEVEMENT = "achievement"
    SPECIAL = "special"
    JUNIOR_HANDLER = "junior_handler"


class EntryType(str, Enum):
    STANDARD = "standard"
    JUNIOR_HANDLER = "junior_handler"


class EntryStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    WITHDRAWN = "withdrawn"
    TRANSFERRED = "transferred"
    CANCELLED = "cancelled"


# Entries in these states no longer hold their class places.
INACTIVE_ENTRY_STATUSES = frozenset(
    {EntryStatus.WITHDRAWN, EntryStatus.CANCELLED, EntryStatus.TRANSFERRED}
)
AMENDABLE_ENTRY_STATUSES = frozenset({EntryStatus.PENDING, EntryStatus.CONFIRMED})


class OrderStatus(str, Enum):
    DRAFT = "draft"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentType(str, Enum):
    INITIAL = "initial"
    ADJUSTMENT = "adjustment"
    REFUND = "refund"


class AuditAction(str, Enum):
    CREATED = "created"
    CLASSES_CHANGED = "classes_changed"
    HANDLER_CHANGED = "handler_changed"
    WITHDRAWN = "withdrawn"
    REINSTATED = "reinstated"


class AchievementType(str, Enum):
    CC = "cc"
    RESERVE_CC = "reserve_cc"
    BEST_OF_BREED = "best_of_breed"
    BEST_IN_SHOW = "best_in_show"
    RESERVE_BEST_IN_SHOW = "reserve_best_in_show"
    BEST_PUPPY_IN_BREED = "best_puppy_in_breed"
    BEST_PUPPY_IN_SHOW = "best_puppy_in_show"
    BEST_VETERAN_IN_BREED = "best_veteran_in_breed"
    GROUP_PLACEMENT = "group_placement"
    CLASS_PLACEMENT = "class_placement"
    JUNIOR_WARRANT = "junior_warrant"
    STUD_BOOK = "stud_book"


class ContractStage(str, Enum):
    OFFER_SENT = "offer_sent"
    OFFER_ACCEPTED = "offer_accepted"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class ChecklistStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    NOT_APPLICABLE = "not_applicable"


__all__ = [
    "AMENDABLE_ENTRY_STATUSES",
    "AchievementType",
    "AuditAction",
    "ChecklistStatus",
    "ClassType",
    "ContractStage",
    "EntryStatus",
    "EntryType",
    "INACTIVE_ENTRY_STATUSES",
    "OrderStatus",
    "PaymentStatus",
    "PaymentType",
    "Sex",
    "ShowStatus",
    "ShowType",
]
