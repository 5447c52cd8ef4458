import json
from typing import Dict, Optional

import stripe
from fastapi import HTTPException

import config


def to_stripe_amount(amount: float) -> int:
    """Amounts go to Stripe in the smallest currency unit."""
    return int(round(amount * 100))


def from_stripe_amount(amount: int) -> float:
    return amount / 100


def _api_key() -> str:
    if not config.STRIPE_SECRET_KEY:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    return config.STRIPE_SECRET_KEY


def create_payment_intent(total: float, metadata: Dict[str, str]):
    return stripe.PaymentIntent.create(
        api_key=_api_key(),
        amount=to_stripe_amount(total),
        currency=config.STRIPE_CURRENCY,
        automatic_payment_methods={"enabled": True},
        metadata=metadata,
    )


def retrieve_payment_intent(payment_intent_id: str):
    return stripe.PaymentIntent.retrieve(payment_intent_id, api_key=_api_key())


WEBHOOK_TOLERANCE = 300


def verify_webhook(payload: bytes, signature: Optional[str]) -> dict:
    """Check the stripe-signature header and return the event as a plain dict.

    Raises ``stripe.SignatureVerificationError`` when the signature does not match.
    """
    body = payload.decode("utf-8")
    stripe.WebhookSignature.verify_header(body, signature, config.STRIPE_WEBHOOK_SECRET, tolerance=WEBHOOK_TOLERANCE)
    return json.loads(body)
