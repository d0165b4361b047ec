"""Payment gateway adapters."""

from .base import GatewayError, PaymentGateway, PaymentIntent, UnconfiguredGateway
from .stripe import InvalidSignatureError, StripeGateway, construct_webhook_event

__all__ = [
    "GatewayError",
    "InvalidSignatureError",
    "PaymentGateway",
    "PaymentIntent",
    "StripeGateway",
    "UnconfiguredGateway",
    "construct_webhook_event",
]
