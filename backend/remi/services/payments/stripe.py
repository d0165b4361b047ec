"""Stripe adapter built on the official SDK."""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Sequence

import stripe
from loguru import logger

from remi.core.config import settings

from .base import GatewayError, PaymentIntent

_RETRYABLE_STATUS_CODES = {409, 429, 500, 502, 503, 504}
SIGNATURE_TOLERANCE_SECONDS = 300


def _should_retry(exc: stripe.StripeError) -> bool:
    if isinstance(exc, stripe.APIConnectionError):
        return True
    return exc.http_status in _RETRYABLE_STATUS_CODES


class StripeGateway:
    """Create payment intents and refunds through ``stripe``.

    Every mutating call carries an idempotency key, so a retry after a
    transport failure never creates a second charge or refund.
    """

    def __init__(
        self,
        *,
        secret_key: str | None = None,
        currency: str | None = None,
        retry_attempts: int | None = None,
        backoff: Sequence[float] | None = None,
    ) -> None:
        self.secret_key = secret_key or settings.stripe_secret_key
        if not self.secret_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured")
        self.currency = currency or settings.payment_currency
        self.retry_attempts = retry_attempts or settings.gateway_retry_attempts
        self.backoff = tuple(backoff) if backoff is not None else settings.gateway_retry_backoff_schedule

    def _sleep_seconds(self, attempt: int) -> float:
        if not self.backoff:
            return 0.0
        return self.backoff[min(attempt - 1, len(self.backoff) - 1)]

    def _call(
        self,
        operation: str,
        method: Callable[..., Any],
        *,
        idempotency_key: str | None,
        **params: Any,
    ) -> Any:
        options: dict[str, Any] = {"api_key": self.secret_key}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        last_exc: stripe.StripeError | None = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return method(**params, **options)
            except stripe.StripeError as exc:
                retryable = _should_retry(exc) and attempt < self.retry_attempts
                logger.warning(
                    "Stripe {} failed attempt={}/{} status={} retryable={}",
                    operation,
                    attempt,
                    self.retry_attempts,
                    exc.http_status,
                    retryable,
                )
                if not retryable:
                    raise GatewayError(exc.user_message or str(exc), status_code=exc.http_status) from exc
                last_exc = exc
                time.sleep(self._sleep_seconds(attempt))
        raise GatewayError(f"Stripe {operation} failed without a response") from last_exc

    def create_intent(
        self,
        amount: int,
        metadata: Mapping[str, str],
        *,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        if amount < 0:
            raise ValueError("payment intent amount must not be negative")
        intent = self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            idempotency_key=idempotency_key,
            amount=amount,
            currency=self.currency,
            automatic_payment_methods={"enabled": True},
            metadata=dict(metadata),
        )
        intent_id = getattr(intent, "id", None)
        client_secret = getattr(intent, "client_secret", None)
        if not intent_id or not client_secret:
            raise GatewayError("Stripe response missing payment intent id or client secret")
        logger.info("Stripe payment intent {} created amount={}", intent_id, amount)
        return PaymentIntent(id=intent_id, client_secret=client_secret)

    def refund(
        self,
        payment_reference_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        if amount <= 0:
            raise ValueError("refund amount must be positive")
        self._call(
            "refund.create",
            stripe.Refund.create,
            idempotency_key=idempotency_key,
            payment_intent=payment_reference_id,
            amount=amount,
        )
        logger.info("Stripe refund issued payment={} amount={}", payment_reference_id, amount)


class InvalidSignatureError(ValueError):
    pass


def construct_webhook_event(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
) -> Mapping[str, Any]:
    """Verify a ``Stripe-Signature`` header and return the decoded event.

    Raises :class:`InvalidSignatureError` for a missing or non-matching
    signature and ``ValueError`` when a correctly signed body is not JSON.
    """

    if not header:
        raise InvalidSignatureError("missing signature header")
    try:
        return stripe.Webhook.construct_event(payload, header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as exc:
        raise InvalidSignatureError(str(exc)) from exc


__all__ = ["InvalidSignatureError", "StripeGateway", "construct_webhook_event"]
