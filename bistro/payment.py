"""
Card payment processor gateway.

The API never charges cards itself: it asks the processor for a payment
intent and hands the intent's client secret to the browser, which confirms
the card with Stripe.js. Two implementations share one interface:

    - MockPaymentGateway: no network, fake ``pi_...`` ids (default, tests)
    - StripePaymentGateway: the real Stripe API (PAYMENT_PROVIDER=stripe)

Usage:
    gateway = get_payment_gateway()
    intent = await gateway.create_payment_intent(to_minor_units(price))
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Optional

import stripe

from . import config

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    """The processor refused or failed to create a payment intent."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass
class PaymentIntent:
    """
    Processor-neutral view of a created payment intent.

    Attributes:
        id: Processor identifier (Stripe format: pi_xxx)
        client_secret: Secret the frontend uses to confirm the card payment
        amount: Amount in minor units (cents)
        currency: Three-letter currency code
    """
    id: str
    client_secret: str
    amount: int
    currency: str


def to_minor_units(price: Decimal) -> int:
    """Convert a dollar amount to integer cents, rounding half up.

    Goes through Decimal so 19.99 becomes 1999, not 1998.
    """
    if not isinstance(price, Decimal):
        price = Decimal(str(price))
    cents = (price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


class BasePaymentGateway(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def create_payment_intent(self, amount: int, currency: str = "usd") -> PaymentIntent:
        """
        Create a card payment intent for client-side confirmation.

        Args:
            amount: Amount in minor units (cents), must be positive
            currency: Three-letter currency code

        Raises:
            PaymentGatewayError: If the processor rejects the request
        """
        pass


class MockPaymentGateway(BasePaymentGateway):
    """Fake processor that records the intents it creates."""

    def __init__(self):
        self.created: list[PaymentIntent] = []

    @property
    def provider_name(self) -> str:
        return "mock"

    async def create_payment_intent(self, amount: int, currency: str = "usd") -> PaymentIntent:
        if amount <= 0:
            raise PaymentGatewayError("Amount must be greater than 0", code="invalid_amount")
        intent_id = f"pi_{uuid.uuid4().hex[:24]}"
        intent = PaymentIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret_mock",
            amount=amount,
            currency=currency,
        )
        self.created.append(intent)
        logger.debug("Mock: created payment intent %s", intent_id)
        return intent


class StripePaymentGateway(BasePaymentGateway):
    """
    Stripe-backed gateway.

    Requires STRIPE_SECRET_KEY in the environment.
    """

    def __init__(self, secret_key: Optional[str] = None):
        secret_key = secret_key or config.settings().stripe_secret_key
        if not secret_key:
            raise ValueError(
                "STRIPE_SECRET_KEY is required when PAYMENT_PROVIDER=stripe. "
                "Set it in the environment."
            )
        stripe.api_key = secret_key

    @property
    def provider_name(self) -> str:
        return "stripe"

    async def create_payment_intent(self, amount: int, currency: str = "usd") -> PaymentIntent:
        try:
            # the SDK call blocks; keep it off the event loop
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount,
                currency=currency,
                payment_method_types=["card"],
            )
        except stripe.StripeError as e:
            logger.error("Stripe: failed to create PaymentIntent - %s", e)
            raise PaymentGatewayError(e.user_message or str(e), code=e.code) from e

        logger.debug("Stripe: PaymentIntent created - %s", intent.id)
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )


@lru_cache()
def get_payment_gateway() -> BasePaymentGateway:
    """
    Get the configured payment gateway (cached, one per process).

    Also used as a FastAPI dependency so tests can override it.
    """
    provider = config.settings().payment_provider
    if provider == "stripe":
        logger.info("Payment gateway: Stripe")
        return StripePaymentGateway()
    if provider != "mock":
        raise ValueError(f"Unknown PAYMENT_PROVIDER {provider!r}. Must be 'mock' or 'stripe'.")
    logger.info("Payment gateway: mock")
    return MockPaymentGateway()


def reset_payment_gateway() -> None:
    """Forget the cached gateway so the next call re-reads configuration."""
    get_payment_gateway.cache_clear()
