"""
Webhook Security Module

Signature verification for inbound payment gateway callbacks. Verification
runs on the raw body through the Stripe SDK, before the event is trusted.
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

import stripe
from fastapi import Request

from .errors import AppError, ValidationError

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(AppError):
    """Raised when webhook signature verification fails"""

    status_code = 400
    code = "invalid_signature"


def construct_stripe_event(
    raw_body: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    max_age: int = MAX_WEBHOOK_AGE_SECONDS,
) -> stripe.Event:
    """
    Verify a Stripe-Signature header against the raw body and build the event.

    Raises:
        WebhookSignatureError: missing secret or header, bad or stale signature
        ValidationError: correctly signed body that is not a JSON event
    """
    if not secret:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured - rejecting webhook")
        raise WebhookSignatureError("Webhook secret not configured")

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise WebhookSignatureError("Missing webhook signature")

    try:
        event = stripe.Webhook.construct_event(raw_body, signature_header, secret, tolerance=max_age)
    except stripe.SignatureVerificationError as e:
        logger.warning(f"🚫 Stripe webhook signature rejected: {e}")
        raise WebhookSignatureError("Invalid webhook signature") from e
    except ValueError as e:
        logger.error(f"❌ Failed to parse Stripe webhook payload: {e}")
        raise ValidationError("Invalid JSON payload") from e

    logger.debug("✅ Stripe webhook signature verified")
    return event


async def verify_stripe_webhook(
    request: Request, secret: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS
) -> stripe.Event:
    """Read the raw body from the request and return the verified event"""
    raw_body = await request.body()
    logger.debug("📥 Stripe webhook received")
    return construct_stripe_event(raw_body, request.headers.get("Stripe-Signature"), secret, max_age)


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header value, for local tooling and tests"""
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed_payload = str(timestamp).encode("utf-8") + b"." + payload
    sig = hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={sig}"
