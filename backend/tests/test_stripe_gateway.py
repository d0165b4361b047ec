from __future__ import annotations

import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from remi.services.payments import GatewayError
from remi.services.payments.stripe import InvalidSignatureError, StripeGateway, construct_webhook_event

WEBHOOK_SECRET = "whsec_test"


def _gateway(**kwargs) -> StripeGateway:
    options = {"secret_key": "sk_test", "currency": "gbp", "retry_attempts": 3, "backoff": (0.0,)}
    options.update(kwargs)
    return StripeGateway(**options)


def _recorder(monkeypatch, target: str, responses):
    """Replace an SDK ``create`` with a fake that replays ``responses`` in order."""
    calls: list[dict] = []
    pending = list(responses)

    def fake_create(**kwargs):
        calls.append(kwargs)
        outcome = pending.pop(0) if len(pending) > 1 else pending[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(target, fake_create)
    return calls


def sign(payload: bytes, timestamp: int, secret: str = WEBHOOK_SECRET) -> str:
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def test_create_intent_sends_idempotency_key(monkeypatch):
    calls = _recorder(
        monkeypatch,
        "stripe.PaymentIntent.create",
        [SimpleNamespace(id="pi_123", client_secret="pi_123_secret")],
    )

    intent = _gateway().create_intent(5500, {"order_id": "ord-1"}, idempotency_key="ord-1")

    assert intent.id == "pi_123"
    assert intent.client_secret == "pi_123_secret"
    assert calls == [
        {
            "amount": 5500,
            "currency": "gbp",
            "automatic_payment_methods": {"enabled": True},
            "metadata": {"order_id": "ord-1"},
            "api_key": "sk_test",
            "idempotency_key": "ord-1",
        }
    ]


def test_retries_transient_failures_with_the_same_key(monkeypatch):
    calls = _recorder(
        monkeypatch,
        "stripe.PaymentIntent.create",
        [
            stripe.APIError("try again", http_status=503),
            stripe.APIConnectionError("connection reset"),
            SimpleNamespace(id="pi_9", client_secret="s"),
        ],
    )

    intent = _gateway().create_intent(100, {}, idempotency_key="ord-9")

    assert intent.id == "pi_9"
    assert [call["idempotency_key"] for call in calls] == ["ord-9", "ord-9", "ord-9"]


def test_card_errors_are_not_retried(monkeypatch):
    calls = _recorder(
        monkeypatch,
        "stripe.PaymentIntent.create",
        [stripe.CardError("Your card was declined.", None, "card_declined", http_status=402)],
    )

    with pytest.raises(GatewayError) as excinfo:
        _gateway().create_intent(100, {})

    assert len(calls) == 1
    assert "idempotency_key" not in calls[0]
    assert excinfo.value.status_code == 402
    assert str(excinfo.value) == "Your card was declined."


def test_connection_errors_give_up_after_attempts(monkeypatch):
    calls = _recorder(monkeypatch, "stripe.PaymentIntent.create", [stripe.APIConnectionError("refused")])

    with pytest.raises(GatewayError):
        _gateway(retry_attempts=2).create_intent(100, {})

    assert len(calls) == 2


def test_intent_without_client_secret_is_an_error(monkeypatch):
    _recorder(monkeypatch, "stripe.PaymentIntent.create", [SimpleNamespace(id="pi_1", client_secret=None)])

    with pytest.raises(GatewayError):
        _gateway().create_intent(100, {})


def test_refund_targets_the_intent(monkeypatch):
    calls = _recorder(monkeypatch, "stripe.Refund.create", [SimpleNamespace(id="re_1", status="succeeded")])

    _gateway().refund("pi_1", 1700, idempotency_key="entry:amend-1:abc")

    assert calls == [
        {
            "payment_intent": "pi_1",
            "amount": 1700,
            "api_key": "sk_test",
            "idempotency_key": "entry:amend-1:abc",
        }
    ]


def test_refund_rejects_non_positive_amount():
    with pytest.raises(ValueError):
        _gateway().refund("pi_1", 0)


def test_missing_secret_key(monkeypatch):
    monkeypatch.setattr("remi.services.payments.stripe.settings.stripe_secret_key", None)

    with pytest.raises(GatewayError):
        StripeGateway()


def test_webhook_event_round_trip():
    payload = json.dumps({"id": "evt_1", "type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}}).encode()

    event = construct_webhook_event(payload, sign(payload, int(time.time())), WEBHOOK_SECRET)

    assert event["type"] == "payment_intent.succeeded"
    assert event["data"]["object"]["id"] == "pi_1"


@pytest.mark.parametrize("header", [None, "", "v1=abc", "t=notanumber,v1=abc", "t=1700000000,v1=deadbeef"])
def test_webhook_rejects_bad_headers(header):
    with pytest.raises(InvalidSignatureError):
        construct_webhook_event(b"{}", header, WEBHOOK_SECRET)


def test_webhook_rejects_stale_or_foreign_signatures():
    payload = b'{"id": "evt_1"}'
    now = int(time.time())

    with pytest.raises(InvalidSignatureError):
        construct_webhook_event(payload, sign(payload, now - 600), WEBHOOK_SECRET)
    with pytest.raises(InvalidSignatureError):
        construct_webhook_event(payload, sign(payload, now, "whsec_other"), WEBHOOK_SECRET)


def test_signed_body_that_is_not_json():
    payload = b"not json"

    with pytest.raises(ValueError) as excinfo:
        construct_webhook_event(payload, sign(payload, int(time.time())), WEBHOOK_SECRET)

    assert not isinstance(excinfo.value, InvalidSignatureError)
