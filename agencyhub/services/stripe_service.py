"""Stripe service - payment gateway adapter for checkout sessions and refunds"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

import stripe

from ..config import STRIPE_MAX_NETWORK_RETRIES, STRIPE_SECRET_KEY, STRIPE_TIMEOUT_SECONDS
from ..domain.pricing.calculator import from_minor_units, to_minor_units
from ..errors import GatewayError

logger = logging.getLogger(__name__)

# Failures worth retrying by the caller: network trouble, throttling, Stripe-side 5xx
RETRYABLE_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError, stripe.APIError)


@dataclass(frozen=True)
class CheckoutLine:
    name: str
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    amount: Decimal
    status: str


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self, api_key: Optional[str] = STRIPE_SECRET_KEY):
        self.api_key = api_key

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; checkout and refunds will fail until configured")
            return

        stripe.api_key = self.api_key
        stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES
        # Every gateway call is bounded by this timeout
        stripe.default_http_client = stripe.RequestsClient(timeout=STRIPE_TIMEOUT_SECONDS)
        logger.info(
            f"Stripe client initialized (timeout={STRIPE_TIMEOUT_SECONDS}s, retries={STRIPE_MAX_NETWORK_RETRIES})"
        )

    def is_available(self) -> bool:
        """Check if the Stripe client is configured"""
        return bool(self.api_key)

    def _require_available(self) -> None:
        if not self.is_available():
            raise GatewayError("Payment gateway is not configured")

    @staticmethod
    def _wrap_error(action: str, error: stripe.StripeError) -> GatewayError:
        request_id = getattr(error, "request_id", None)
        retryable = isinstance(error, RETRYABLE_ERRORS)
        logger.error(
            f"❌ Stripe {action} failed: {type(error).__name__}: {error.user_message or error} "
            f"(request_id={request_id}, retryable={retryable})"
        )
        return GatewayError(f"Payment gateway {action} failed", request_id=request_id, retryable=retryable)

    def create_checkout_session(
        self,
        *,
        lines: Iterable[CheckoutLine],
        currency: str,
        client_reference_id: str,
        metadata: dict,
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        """Create a hosted checkout session for an order"""
        self._require_available()

        line_items = [
            {
                "price_data": {
                    "currency": currency,
                    "product_data": {"name": line.name},
                    "unit_amount": to_minor_units(line.unit_price),
                },
                "quantity": line.quantity,
            }
            for line in lines
        ]

        params = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": line_items,
            "client_reference_id": client_reference_id,
            "metadata": metadata,
            # Lets payment_intent.* events be traced back to the order
            "payment_intent_data": {"metadata": metadata},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            raise self._wrap_error("checkout session creation", e) from e

        logger.info(f"✅ Stripe checkout session created: {session.id} (ref={client_reference_id})")
        return CheckoutSession(id=session.id, url=session.url)

    def create_refund(
        self,
        *,
        payment_intent_id: str,
        amount: Decimal,
        metadata: dict,
        reason: str = "requested_by_customer",
    ) -> GatewayRefund:
        """Refund part or all of a captured payment"""
        self._require_available()

        try:
            refund = stripe.Refund.create(
                payment_intent=payment_intent_id,
                amount=to_minor_units(amount),
                reason=reason,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise self._wrap_error("refund", e) from e

        return GatewayRefund(id=refund.id, amount=from_minor_units(refund.amount), status=refund.status)


# Singleton instance
stripe_service = StripeService()


def get_stripe_service() -> StripeService:
    """Dependency hook so tests can substitute the gateway"""
    return stripe_service
