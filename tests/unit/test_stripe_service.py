from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from agencyhub.errors import GatewayError
from agencyhub.services.stripe_service import CheckoutLine, StripeService


@pytest.fixture()
def service():
    return StripeService(api_key="sk_test_unit")


def test_checkout_session_sends_minor_units(service, monkeypatch):
    captured = {}

    def _create(**params):
        captured.update(params)
        return SimpleNamespace(id="cs_test_1", url="https://checkout.stripe.test/c/1")

    monkeypatch.setattr(stripe.checkout.Session, "create", _create)

    session = service.create_checkout_session(
        lines=[CheckoutLine("Website Audit", Decimal("199.99"), 2)],
        currency="usd",
        client_reference_id="42",
        metadata={"orderId": "42", "clientId": "7"},
        success_url="https://app.test/store/success?orderId=42",
        cancel_url="https://app.test/store/cart",
    )

    assert session.id == "cs_test_1"
    assert captured["mode"] == "payment"
    assert captured["client_reference_id"] == "42"
    assert captured["line_items"][0]["price_data"]["unit_amount"] == 19999
    assert captured["line_items"][0]["quantity"] == 2
    assert captured["payment_intent_data"] == {"metadata": {"orderId": "42", "clientId": "7"}}
    assert "customer_email" not in captured


def test_refund_converts_amounts(service, monkeypatch):
    captured = {}

    def _create(**params):
        captured.update(params)
        return SimpleNamespace(id="re_test_1", amount=params["amount"], status="succeeded")

    monkeypatch.setattr(stripe.Refund, "create", _create)

    refund = service.create_refund(payment_intent_id="pi_1", amount=Decimal("50.25"), metadata={"orderId": "1"})

    assert captured["amount"] == 5025
    assert captured["reason"] == "requested_by_customer"
    assert refund.amount == Decimal("50.25")
    assert refund.status == "succeeded"


def test_connection_errors_are_retryable(service, monkeypatch):
    def _create(**params):
        raise stripe.APIConnectionError("Network down")

    monkeypatch.setattr(stripe.Refund, "create", _create)

    with pytest.raises(GatewayError) as exc:
        service.create_refund(payment_intent_id="pi_1", amount=Decimal("10.00"), metadata={})

    assert exc.value.retryable is True
    assert exc.value.to_payload()["error"]["retryable"] is True


def test_invalid_requests_are_not_retryable(service, monkeypatch):
    def _create(**params):
        raise stripe.InvalidRequestError("Charge already refunded", param="payment_intent")

    monkeypatch.setattr(stripe.Refund, "create", _create)

    with pytest.raises(GatewayError) as exc:
        service.create_refund(payment_intent_id="pi_1", amount=Decimal("10.00"), metadata={})

    assert exc.value.retryable is False


def test_unconfigured_gateway_refuses_calls():
    with pytest.raises(GatewayError):
        StripeService(api_key=None).create_refund(payment_intent_id="pi_1", amount=Decimal("1.00"), metadata={})
