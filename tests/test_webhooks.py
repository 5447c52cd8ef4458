import hashlib
import hmac
import json
import time

import pytest

import config
from database import ORDERS, USERS, create_document

SECRET = "whsec_test_secret"


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "STRIPE_WEBHOOK_SECRET", SECRET)


def signed(event, secret=SECRET):
    payload = json.dumps(event)
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"stripe-signature": f"t={timestamp},v1={digest}", "content-type": "application/json"}


def post_event(client, event_type, obj, secret=SECRET):
    payload, headers = signed({"id": "evt_1", "type": event_type, "data": {"object": obj}}, secret)
    return client.post("/api/webhooks/stripe", content=payload, headers=headers)


def make_order(mongo, user=None, **fields):
    doc = {
        "orderRef": "WR-555555",
        "customerInfo": {"firstName": "Sara", "lastName": "Khalid", "email": "sara@example.com",
                         "phone": "1", "address": "x", "zipCode": "1"},
        "items": [{"productId": "p1", "productName": "Cozy Hoodie", "category": "hoodies",
                   "price": 199, "quantity": 1}],
        "subtotal": 199,
        "shipping": 25,
        "total": 224,
        "pointsEarned": 18,
        "status": "pending",
        "paymentStatus": "pending",
        "paymentIntentId": "pi_123",
        "userId": str(user["_id"]) if user else None,
        "pointsCredited": False,
    }
    doc.update(fields)
    return create_document(mongo, ORDERS, doc)


def test_payment_success_credits_points_once(client, mongo, make_user, sent_emails):
    user = make_user(fragmentPoints=5)
    order = make_order(mongo, user)

    first = post_event(client, "payment_intent.succeeded", {"id": "pi_123"})
    replay = post_event(client, "payment_intent.succeeded", {"id": "pi_123"})

    assert first.json() == {"received": True}
    assert replay.json() == {"received": True}
    stored = mongo[ORDERS].find_one({"_id": order["_id"]})
    assert stored["paymentStatus"] == "paid"
    assert stored["status"] == "processing"
    assert mongo[USERS].find_one({"_id": user["_id"]})["fragmentPoints"] == 23
    assert sent_emails == [("sara@example.com", "Order WR-555555 confirmed")]


def test_payment_failed_cancels_order(client, mongo):
    order = make_order(mongo)
    post_event(client, "payment_intent.payment_failed", {"id": "pi_123"})

    stored = mongo[ORDERS].find_one({"_id": order["_id"]})
    assert stored["paymentStatus"] == "failed"
    assert stored["status"] == "cancelled"


def test_refund_reverses_points_floored_at_zero(client, mongo, make_user):
    user = make_user(fragmentPoints=10)
    order = make_order(mongo, user, pointsEarned=40, paymentStatus="paid", pointsCredited=True)

    resp = post_event(client, "charge.refunded", {"id": "ch_1", "payment_intent": "pi_123"})

    assert resp.status_code == 200
    stored = mongo[ORDERS].find_one({"_id": order["_id"]})
    assert stored["paymentStatus"] == "refunded"
    assert stored["status"] == "cancelled"
    assert mongo[USERS].find_one({"_id": user["_id"]})["fragmentPoints"] == 0


def test_refund_of_uncredited_order_keeps_balance(client, mongo, make_user):
    user = make_user(fragmentPoints=30)
    make_order(mongo, user, pointsEarned=18, pointsCredited=False)

    post_event(client, "charge.refunded", {"id": "ch_1", "payment_intent": "pi_123"})

    assert mongo[USERS].find_one({"_id": user["_id"]})["fragmentPoints"] == 30


def test_unknown_order_is_acknowledged(client):
    resp = post_event(client, "payment_intent.succeeded", {"id": "pi_missing"})
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


def test_unhandled_event_type(client):
    resp = post_event(client, "customer.created", {"id": "cus_1"})
    assert resp.json() == {"received": True}


def test_bad_signature_rejected(client, mongo):
    order = make_order(mongo)
    resp = post_event(client, "payment_intent.succeeded", {"id": "pi_123"}, secret="whsec_wrong")

    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Webhook Error")
    assert mongo[ORDERS].find_one({"_id": order["_id"]})["paymentStatus"] == "pending"


def test_missing_signature_rejected(client):
    resp = client.post("/api/webhooks/stripe", content=b"{}")
    assert resp.status_code == 400
    assert resp.json()["error"] == "No signature provided"
