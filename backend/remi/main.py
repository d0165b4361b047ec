from __future__ import annotations

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, FastAPI, Form, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from loguru import logger
from sqlalchemy.orm import Session

from . import pages, schemas
from .core.config import settings
from .db import get_db, init_db
from .domain.enums import ContractStage
from .errors import (
    ConflictError,
    NotFoundError,
    RemiError,
    ServiceUnavailableError,
    TokenExpiredError,
    UnauthenticatedError,
    ValidationError,
)
from .services.amendment_service import AmendmentService
from .services.catalogue_service import CatalogueService
from .services.checklist_service import ChecklistService
from .services.checkout_service import CheckoutService, EntryRequest, SundrySelection
from .services.contract_service import JudgeContractService
from .services.eligibility_service import EligibilityService
from .services.notifications import LogNotifier, Notifier, ResendNotifier
from .services.payment_events import PaymentEventService
from .services.payments import (
    InvalidSignatureError,
    PaymentGateway,
    StripeGateway,
    UnconfiguredGateway,
    construct_webhook_event,
)

app = FastAPI(title="Remi Show Entries API", version="0.1.0", debug=settings.debug)


@app.on_event("startup")
def on_startup() -> None:
    """Create tables when the API boots."""

    init_db()


@app.exception_handler(RemiError)
def _handle_remi_error(_request: Request, exc: RemiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("{} {}: {} details={}", exc.family, exc.code, exc.message, exc.details)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def _handle_request_validation(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    error = ValidationError("invalid_request", "Request failed validation", details={"errors": errors})
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


# ----------------------------------------------------------------------
# Dependencies


def _current_user(x_user_id: Annotated[str | None, Header()] = None) -> str:
    if not x_user_id:
        raise UnauthenticatedError("missing_user", "X-User-Id header is required")
    return x_user_id


@lru_cache
def _default_gateway() -> PaymentGateway:
    if settings.stripe_secret_key:
        return StripeGateway()
    logger.warning("STRIPE_SECRET_KEY not set; payment intents will fail until configured")
    return UnconfiguredGateway()


@lru_cache
def _default_notifier() -> Notifier:
    if settings.resend_api_key:
        return ResendNotifier()
    return LogNotifier()


def _payment_gateway() -> PaymentGateway:
    return _default_gateway()


def _notifier() -> Notifier:
    return _default_notifier()


def _checkout_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(_payment_gateway),
) -> CheckoutService:
    return CheckoutService(db, gateway)


def _amendment_service(
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(_payment_gateway),
) -> AmendmentService:
    return AmendmentService(db, gateway)


def _catalogue_service(db: Session = Depends(get_db)) -> CatalogueService:
    return CatalogueService(db)


def _eligibility_service(db: Session = Depends(get_db)) -> EligibilityService:
    return EligibilityService(db)


def _contract_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(_notifier),
) -> JudgeContractService:
    return JudgeContractService(db, notifier)


def _checklist_service(db: Session = Depends(get_db)) -> ChecklistService:
    return ChecklistService(db)


def _payment_event_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(_notifier),
) -> PaymentEventService:
    return PaymentEventService(db, notifier)


UserId = Annotated[str, Depends(_current_user)]


# ----------------------------------------------------------------------
# Exhibitor routes


@app.post("/shows/{show_id}/checkout", response_model=schemas.CheckoutResponse, status_code=201, tags=["entries"])
def checkout(
    show_id: str,
    payload: schemas.CheckoutRequest,
    user_id: UserId,
    service: CheckoutService = Depends(_checkout_service),
) -> schemas.CheckoutResponse:
    """Create an order for a cart of entries and open its payment intent."""

    result = service.checkout(
        show_id,
        user_id,
        [EntryRequest(**entry.model_dump()) for entry in payload.entries],
        [SundrySelection(**line.model_dump()) for line in payload.sundry_items],
    )
    return schemas.CheckoutResponse(
        order_id=result.order_id,
        status=result.status,
        total_amount=result.total_amount,
        client_secret=result.client_secret,
        entry_ids=result.entry_ids,
    )


@app.post("/orders/{order_id}/resume", response_model=schemas.CheckoutResponse, tags=["entries"])
def resume_checkout(
    order_id: str,
    user_id: UserId,
    service: CheckoutService = Depends(_checkout_service),
) -> schemas.CheckoutResponse:
    """Re-open payment for an order whose intent could not be created."""

    result = service.resume(order_id, user_id)
    return schemas.CheckoutResponse(
        order_id=result.order_id,
        status=result.status,
        total_amount=result.total_amount,
        client_secret=result.client_secret,
        entry_ids=result.entry_ids,
    )


@app.put("/entries/{entry_id}/classes", response_model=schemas.AmendmentResponse, tags=["entries"])
def amend_entry_classes(
    entry_id: str,
    payload: schemas.AmendClassesRequest,
    user_id: UserId,
    service: AmendmentService = Depends(_amendment_service),
) -> schemas.AmendmentResponse:
    result = service.amend_classes(entry_id, user_id, payload.class_ids, reason=payload.reason)
    return schemas.AmendmentResponse(
        entry_id=result.entry_id,
        old_fee=result.old_fee,
        new_fee=result.new_fee,
        fee_delta=result.fee_delta,
        client_secret=result.client_secret,
        payment_id=result.payment_id,
    )


@app.post("/entries/{entry_id}/withdraw", response_model=schemas.Entry, tags=["entries"])
def withdraw_entry(
    entry_id: str,
    user_id: UserId,
    payload: schemas.WithdrawRequest | None = None,
    service: AmendmentService = Depends(_amendment_service),
) -> schemas.Entry:
    entry = service.withdraw(entry_id, user_id, reason=payload.reason if payload else None)
    return schemas.Entry.model_validate(entry)


@app.get("/dogs/{dog_id}/eligibility", response_model=schemas.DogEligibility, tags=["entries"])
def dog_eligibility(
    dog_id: str,
    user_id: UserId,
    show_id: Annotated[str | None, Query(description="Annotate this show's classes")] = None,
    service: EligibilityService = Depends(_eligibility_service),
) -> schemas.DogEligibility:
    result = service.for_dog(dog_id, user_id, show_id=show_id)
    report = result.report
    return schemas.DogEligibility(
        dog_id=result.dog_id,
        show_id=result.show_id,
        qualifying_firsts=report.qualifying_firsts,
        cc_count=report.cc_count,
        eligible_classes=list(report.eligible_classes),
        suggested_class=report.suggested_class,
        titles=[schemas.TitleProgress.model_validate(title) for title in report.titles],
        classes=[schemas.ClassEligibility.model_validate(item) for item in result.classes],
    )


# ----------------------------------------------------------------------
# Secretary routes


@app.post(
    "/secretary/shows/{show_id}/catalogue-numbers",
    response_model=schemas.CatalogueAssignment,
    tags=["secretary"],
)
def assign_catalogue_numbers(
    show_id: str,
    user_id: UserId,
    service: CatalogueService = Depends(_catalogue_service),
) -> schemas.CatalogueAssignment:
    result = service.assign_numbers(show_id, user_id)
    return schemas.CatalogueAssignment(
        show_id=result.show_id,
        assigned=result.assigned,
        numbers=[
            schemas.CatalogueNumber(entry_id=entry_id, catalogue_number=number)
            for entry_id, number in result.numbers
        ],
    )


@app.post(
    "/secretary/shows/{show_id}/judge-contracts",
    response_model=schemas.OfferResponse,
    status_code=201,
    tags=["secretary"],
)
def send_judge_offer(
    show_id: str,
    payload: schemas.SendOfferRequest,
    user_id: UserId,
    service: JudgeContractService = Depends(_contract_service),
) -> schemas.OfferResponse:
    result = service.send_offer(
        show_id,
        user_id,
        payload.judge_id,
        hospitality=payload.hospitality,
        travel_expenses=payload.travel_expenses,
        notes=payload.notes,
    )
    return schemas.OfferResponse(
        contract=schemas.JudgeContract.model_validate(result.contract),
        offer_url=result.offer_url,
        email_delivered=result.email_delivered,
    )


@app.post(
    "/secretary/judge-contracts/{contract_id}/resend",
    response_model=schemas.OfferResponse,
    tags=["secretary"],
)
def resend_judge_offer(
    contract_id: str,
    user_id: UserId,
    service: JudgeContractService = Depends(_contract_service),
) -> schemas.OfferResponse:
    result = service.resend_offer(contract_id, user_id)
    return schemas.OfferResponse(
        contract=schemas.JudgeContract.model_validate(result.contract),
        offer_url=result.offer_url,
        email_delivered=result.email_delivered,
    )


@app.post(
    "/secretary/judge-contracts/{contract_id}/confirm",
    response_model=schemas.JudgeContract,
    tags=["secretary"],
)
def confirm_judge_contract(
    contract_id: str,
    user_id: UserId,
    service: JudgeContractService = Depends(_contract_service),
) -> schemas.JudgeContract:
    return schemas.JudgeContract.model_validate(service.confirm(contract_id, user_id))


@app.get(
    "/secretary/shows/{show_id}/checklist/auto-detect",
    response_model=schemas.ChecklistAutoDetect,
    tags=["secretary"],
)
def checklist_auto_detect(
    show_id: str,
    user_id: UserId,
    entity_type: Annotated[str | None, Query()] = None,
    entity_id: Annotated[str | None, Query()] = None,
    service: ChecklistService = Depends(_checklist_service),
) -> schemas.ChecklistAutoDetect:
    result = service.auto_detect(show_id, user_id, entity_type=entity_type, entity_id=entity_id)
    return schemas.ChecklistAutoDetect.model_validate(result)


# ----------------------------------------------------------------------
# Public judge-offer link


def _token_error_page(exc: RemiError) -> HTMLResponse:
    if isinstance(exc, NotFoundError):
        return pages.message_page("Offer not found", "This offer link is not valid.", status_code=404)
    if isinstance(exc, TokenExpiredError):
        return pages.message_page(
            "Offer expired",
            "This offer link has expired. Please contact the show secretary.",
            status_code=410,
        )
    if isinstance(exc, ValidationError):
        return pages.message_page("Invalid request", exc.message, status_code=400)
    return pages.message_page("Something went wrong", exc.message, status_code=exc.status_code)


@app.get("/judge-contract/{token}", response_class=HTMLResponse, tags=["judge"])
def view_judge_offer(
    token: str,
    action: Annotated[str | None, Query()] = None,
    service: JudgeContractService = Depends(_contract_service),
) -> HTMLResponse:
    """Show the offer; never changes state."""

    try:
        contract = service.view(token)
    except RemiError as exc:
        return _token_error_page(exc)
    if contract.stage != ContractStage.OFFER_SENT.value:
        return pages.responded_page(contract)
    if action is not None and action not in ("accept", "decline"):
        return pages.message_page("Invalid request", "Choose accept or decline.", status_code=400)
    return pages.offer_page(contract, action=action)


@app.post("/judge-contract/{token}", response_class=HTMLResponse, tags=["judge"])
def respond_to_judge_offer(
    token: str,
    action: Annotated[str | None, Form()] = None,
    service: JudgeContractService = Depends(_contract_service),
) -> HTMLResponse:
    try:
        contract = service.respond(token, action)
    except ConflictError:
        return pages.responded_page(service.view(token), status_code=409)
    except RemiError as exc:
        return _token_error_page(exc)
    return pages.outcome_page(contract)


# ----------------------------------------------------------------------
# Payment gateway webhook


@app.post("/webhooks/stripe", response_model=schemas.WebhookAck, tags=["payments"])
async def stripe_webhook(
    request: Request,
    stripe_signature: Annotated[str | None, Header()] = None,
    service: PaymentEventService = Depends(_payment_event_service),
) -> schemas.WebhookAck:
    secret = settings.stripe_webhook_secret
    if not secret:
        raise ServiceUnavailableError("webhook_not_configured", "Webhook signing secret is not configured")

    payload = await request.body()
    try:
        event = construct_webhook_event(payload, stripe_signature, secret)
    except InvalidSignatureError as exc:
        raise ValidationError("invalid_signature", str(exc)) from exc
    except ValueError as exc:
        raise ValidationError("invalid_payload", "Webhook body is not valid JSON") from exc

    # Session work blocks; keep it off the event loop.
    outcome = await run_in_threadpool(service.handle, event)
    return schemas.WebhookAck(outcome=outcome)
