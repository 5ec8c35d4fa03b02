import asyncio
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe

from bistro import config
from bistro.main import app
from bistro.payment import (
    BasePaymentGateway,
    MockPaymentGateway,
    PaymentGatewayError,
    StripePaymentGateway,
    get_payment_gateway,
    reset_payment_gateway,
    to_minor_units,
)


@pytest.mark.parametrize("price,cents", [
    (Decimal("19.99"), 1999),
    (Decimal("0.29"), 29),
    (Decimal("10"), 1000),
    (Decimal("4.125"), 413),
    (1.15, 115),
])
def test_to_minor_units(price, cents):
    assert to_minor_units(price) == cents


def test_create_payment_intent_returns_client_secret(client, gateway):
    r = client.post("/create-payment-intent", json={"price": 19.99})
    assert r.status_code == 200
    secret = r.json()["clientSecret"]
    assert len(gateway.created) == 1
    assert gateway.created[0].amount == 1999
    assert gateway.created[0].currency == "usd"
    assert secret == gateway.created[0].client_secret


@pytest.mark.parametrize("price", [0, -5, 0.004])
def test_create_payment_intent_rejects_non_positive(client, gateway, price):
    r = client.post("/create-payment-intent", json={"price": price})
    assert r.status_code == 422
    assert gateway.created == []


def test_processor_failure_is_502(client):
    class DecliningGateway(BasePaymentGateway):
        provider_name = "declining"

        async def create_payment_intent(self, amount, currency="usd"):
            raise PaymentGatewayError("Amount must be at least 50 cents", code="amount_too_small")

    app.dependency_overrides[get_payment_gateway] = lambda: DecliningGateway()
    r = client.post("/create-payment-intent", json={"price": 0.1})
    assert r.status_code == 502
    assert r.json() == {"message": "Amount must be at least 50 cents"}


def test_mock_gateway_rejects_zero():
    with pytest.raises(PaymentGatewayError):
        asyncio.run(MockPaymentGateway().create_payment_intent(0))


def test_stripe_gateway_requests_card_intent(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="pi_1", client_secret="pi_1_secret_x", amount=kwargs["amount"], currency=kwargs["currency"])

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    intent = asyncio.run(StripePaymentGateway(secret_key="sk_test_123").create_payment_intent(1999))
    assert calls == [{"amount": 1999, "currency": "usd", "payment_method_types": ["card"]}]
    assert intent.client_secret == "pi_1_secret_x"


def test_stripe_gateway_maps_stripe_errors(monkeypatch):
    def fake_create(**kwargs):
        raise stripe.InvalidRequestError("Amount must be at least 50 cents", "amount", code="amount_too_small")

    monkeypatch.setattr(stripe.PaymentIntent, "create", fake_create)
    with pytest.raises(PaymentGatewayError) as exc:
        asyncio.run(StripePaymentGateway(secret_key="sk_test_123").create_payment_intent(10))
    assert "50 cents" in exc.value.message
    assert exc.value.code == "amount_too_small"


def test_gateway_factory_follows_configuration():
    original = config.settings()
    try:
        config.configure(payment_provider="mock")
        reset_payment_gateway()
        assert get_payment_gateway().provider_name == "mock"

        config.configure(payment_provider="stripe", stripe_secret_key=None)
        reset_payment_gateway()
        with pytest.raises(ValueError):
            get_payment_gateway()

        config.configure(payment_provider="stripe", stripe_secret_key="sk_test_123")
        reset_payment_gateway()
        assert get_payment_gateway().provider_name == "stripe"
    finally:
        config.configure(**original._asdict())
        reset_payment_gateway()
