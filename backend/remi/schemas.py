from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .domain.enums import EntryType


class CheckoutEntry(BaseModel):
    entry_type: EntryType = EntryType.STANDARD
    dog_id: str | None = None
    class_ids: list[str] = Field(min_length=1)
    is_nfc: bool = False
    handler_name: str | None = None
    handler_date_of_birth: date | None = None
    handler_kc_number: str | None = None


class SundrySelection(BaseModel):
    sundry_item_id: str
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    entries: list[CheckoutEntry] = Field(min_length=1)
    sundry_items: list[SundrySelection] = Field(default_factory=list)


class CheckoutResponse(BaseModel):
    order_id: str
    status: str
    total_amount: int
    client_secret: str | None = None
    entry_ids: list[str] = Field(default_factory=list)


class AmendClassesRequest(BaseModel):
    class_ids: list[str] = Field(min_length=1)
    reason: str | None = None


class AmendmentResponse(BaseModel):
    entry_id: str
    old_fee: int
    new_fee: int
    fee_delta: int
    client_secret: str | None = None
    payment_id: str | None = None


class WithdrawRequest(BaseModel):
    reason: str | None = None


class Entry(BaseModel):
    id: str
    show_id: str
    dog_id: str | None = None
    entry_type: str
    status: str
    is_nfc: bool
    total_fee: int
    fee_basis: str
    catalogue_number: str | None = None
    entry_date: datetime

    model_config = {"from_attributes": True}


class TitleProgress(BaseModel):
    title: str
    progress: float
    milestone_reached: bool
    current: int
    required: int
    auto_verifiable: bool = True
    notes: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value: Any) -> list[str]:
        if value is None:
            return []
        return list(value)


class ClassEligibility(BaseModel):
    show_class_id: str
    class_name: str
    class_type: str
    status: str
    reason: str | None = None

    model_config = {"from_attributes": True}


class DogEligibility(BaseModel):
    dog_id: str
    show_id: str | None = None
    qualifying_firsts: int
    cc_count: int
    eligible_classes: list[str]
    suggested_class: str
    titles: list[TitleProgress]
    classes: list[ClassEligibility] = Field(default_factory=list)


class CatalogueNumber(BaseModel):
    entry_id: str
    catalogue_number: str


class CatalogueAssignment(BaseModel):
    show_id: str
    assigned: int
    numbers: list[CatalogueNumber]


class SendOfferRequest(BaseModel):
    judge_id: str
    hospitality: str | None = None
    travel_expenses: str | None = None
    notes: str | None = None


class JudgeContract(BaseModel):
    id: str
    show_id: str
    judge_id: str
    stage: str
    token_expires_at: datetime
    offer_sent_at: datetime
    accepted_at: datetime | None = None
    declined_at: datetime | None = None
    confirmed_at: datetime | None = None

    model_config = {"from_attributes": True}


class OfferResponse(BaseModel):
    contract: JudgeContract
    offer_url: str
    email_delivered: bool


class ChecklistItem(BaseModel):
    id: str
    title: str
    status: str
    auto_detect_key: str | None = None
    auto_detected: bool
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class EntityChecklist(BaseModel):
    entity_type: str
    entity_id: str
    completed: bool
    items: list[ChecklistItem] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class ChecklistAutoDetect(BaseModel):
    show_id: str
    classes_created: bool
    show_published: bool
    entries_opened: bool
    entries_closed: bool
    judge_offers_sent: bool
    judge_acceptances_received: bool
    entity: EntityChecklist | None = None

    model_config = {"from_attributes": True}


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
