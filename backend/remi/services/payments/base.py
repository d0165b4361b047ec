"""Payment gateway contract."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol


class GatewayError(RuntimeError):
    """Raised by adapters when the gateway rejects or cannot complete a call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class PaymentIntent:
    id: str
    client_secret: str


class PaymentGateway(Protocol):
    """Interface implemented by payment provider adapters.

    Amounts are non-negative integers in minor currency units.
    """

    def create_intent(
        self,
        amount: int,
        metadata: Mapping[str, str],
        *,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        """Open a payment intent; the same idempotency key returns the same intent."""

    def refund(
        self,
        payment_reference_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        """Refund ``amount`` against a captured payment."""


class UnconfiguredGateway:
    """Gateway used when no credentials are set; every call fails cleanly."""

    def create_intent(
        self,
        amount: int,
        metadata: Mapping[str, str],
        *,
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        raise GatewayError("payment gateway is not configured")

    def refund(
        self,
        payment_reference_id: str,
        amount: int,
        *,
        idempotency_key: str | None = None,
    ) -> None:
        raise GatewayError("payment gateway is not configured")


__all__ = ["GatewayError", "PaymentGateway", "PaymentIntent", "UnconfiguredGateway"]
