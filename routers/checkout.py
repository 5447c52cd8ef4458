import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from pymongo.database import Database

import ordering
import payments
from database import get_db
from schemas import PaymentIntentRequest, VerifyPaymentRequest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["checkout"])


@router.post("/checkout/create-payment-intent")
def create_payment_intent(payload: PaymentIntentRequest, db: Database = Depends(get_db)):
    if not payload.items:
        raise HTTPException(status_code=400, detail="No items provided")

    totals = ordering.price_items(db, [item.model_dump() for item in payload.items])
    customer = payload.customerInfo or {}
    metadata = {
        "customerEmail": customer.get("email") or "",
        "customerName": f"{customer.get('firstName', '')} {customer.get('lastName', '')}".strip(),
        "itemCount": str(len(payload.items)),
        "subtotal": f"{totals['subtotal']:.2f}",
        "shipping": f"{totals['shipping']:.2f}",
        "total": f"{totals['total']:.2f}",
    }

    try:
        intent = payments.create_payment_intent(totals["total"], metadata)
    except stripe.StripeError as exc:
        logger.error("Error creating payment intent: %s", exc)
        raise HTTPException(status_code=500, detail={
            "error": "Failed to create payment intent",
            "message": getattr(exc, "user_message", None) or str(exc),
        })

    return {
        "success": True,
        "clientSecret": intent["client_secret"],
        "paymentIntentId": intent["id"],
        "amount": totals["total"],
    }


@router.post("/checkout/verify-payment")
def verify_payment(payload: VerifyPaymentRequest):
    if not payload.paymentIntentId:
        raise HTTPException(status_code=400, detail="Payment intent ID required")

    try:
        intent = payments.retrieve_payment_intent(payload.paymentIntentId)
    except stripe.StripeError as exc:
        logger.error("Error verifying payment %s: %s", payload.paymentIntentId, exc)
        raise HTTPException(status_code=500, detail={"error": "Failed to verify payment", "message": str(exc)})

    return {
        "success": True,
        "status": intent["status"],
        "amount": payments.from_stripe_amount(intent["amount"]),
        "currency": intent["currency"],
    }


@router.post("/webhooks/stripe")
async def stripe_webhook(request: Request, db: Database = Depends(get_db)):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="No signature provided")

    try:
        event = payments.verify_webhook(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise HTTPException(status_code=400, detail=f"Webhook Error: {exc}")

    ordering.apply_webhook_event(db, event)
    return {"received": True}
