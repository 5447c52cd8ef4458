"""
Order lifecycle: pricing a cart, creating orders against catalog stock,
admin status changes, and reconciling Stripe payment outcomes.
"""
import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

import config
import loyalty
import mailer
from database import ORDERS, PRODUCTS, create_document, to_object_id
from schemas import Order, OrderCreate, OrderUpdate

logger = logging.getLogger(__name__)


def price_items(db: Database, items: List[dict]) -> Dict[str, float]:
    """Total a checkout from the prices the client sent.

    Catalog prices are only compared for logging; a mismatch does not block checkout.
    """
    subtotal = 0.0
    for item in items:
        product = item.get("product") or {}
        price = float(product.get("price", 0))
        subtotal += price * int(item.get("quantity", 1))

        oid = to_object_id(item.get("productId"))
        if oid is None:
            continue
        db_product = db[PRODUCTS].find_one({"_id": oid}, {"price": 1})
        if db_product and db_product.get("price") != price:
            logger.warning("Price mismatch for %s: client %s, catalog %s",
                           product.get("name") or item.get("productId"), price, db_product.get("price"))

    shipping = config.SHIPPING_FEE
    return {"subtotal": subtotal, "shipping": shipping, "total": subtotal + shipping}


def fallback_order_ref() -> str:
    return f"WR-{str(int(time.time() * 1000))[-6:]}"


def _reserve_stock(db: Database, items: List[dict]) -> List[Tuple[object, int]]:
    """Check then decrement stock for every item that resolves to a catalog product.

    Items whose productId is not an ObjectId, or not in the catalog, are skipped
    (legacy hardcoded catalog). All checks run before any write so a rejected
    order leaves stock untouched.
    """
    resolved = []
    for item in items:
        oid = to_object_id(item.get("productId"))
        product = db[PRODUCTS].find_one({"_id": oid}) if oid else None
        if product is None:
            logger.info("Product %s not in database, skipping stock check", item.get("productId"))
            continue
        if not item.get("category") and product.get("category"):
            item["category"] = product["category"]
        stock = product.get("stock")
        if stock is None:
            continue
        if stock < item["quantity"]:
            raise HTTPException(
                status_code=400,
                detail=f"Insufficient stock for {item.get('productName') or product.get('name')}. "
                       f"Available: {stock}, Requested: {item['quantity']}",
            )
        resolved.append((oid, item))

    reserved = []
    for oid, item in resolved:
        result = db[PRODUCTS].update_one(
            {"_id": oid, "stock": {"$gte": item["quantity"]}},
            {"$inc": {"stock": -item["quantity"]}},
        )
        if result.modified_count == 0:
            release_stock(db, reserved)
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {item.get('productName')}")
        reserved.append((oid, item["quantity"]))
    return reserved


def release_stock(db: Database, reserved: List[Tuple[object, int]]) -> None:
    for oid, quantity in reserved:
        db[PRODUCTS].update_one({"_id": oid}, {"$inc": {"stock": quantity}})


def create_order(db: Database, body: OrderCreate, caller: Optional[dict] = None) -> dict:
    """Create an order, reserving catalog stock.

    Only admins may record status, payment state or owner as sent. Other callers
    get a pending order owned by themselves (or nobody, for guests); its points are
    credited once the payment webhook confirms it.
    """
    if body.customerInfo is None or not body.items:
        raise HTTPException(status_code=400, detail="Missing required fields")

    order_ref = body.orderRef or fallback_order_ref()
    if db[ORDERS].find_one({"orderRef": order_ref}, {"_id": 1}):
        raise HTTPException(status_code=400, detail=f"Order {order_ref} already exists")

    trusted = bool(caller) and caller.get("role") == "admin"
    if trusted:
        owner = body.userId
    else:
        owner = str(caller["_id"]) if caller else None
        if body.paymentStatus == "paid" or body.userId not in (None, owner):
            logger.warning("Ignoring client-supplied payment status or owner for order %s", order_ref)

    items = [item.model_dump() for item in body.items]
    reserved = _reserve_stock(db, items)

    subtotal = body.subtotal if body.subtotal is not None else sum(i["price"] * i["quantity"] for i in items)
    shipping = body.shipping if body.shipping is not None else config.SHIPPING_FEE
    customer = body.customerInfo.model_dump()
    customer["email"] = customer["email"].lower()
    order = Order(
        orderRef=order_ref,
        customerInfo=customer,
        items=items,
        subtotal=subtotal,
        shipping=shipping,
        total=body.total if body.total is not None else subtotal + shipping,
        pointsEarned=loyalty.points_for_order(items),
        status=(trusted and body.status) or "pending",
        paymentStatus=(trusted and body.paymentStatus) or "pending",
        paymentMethod=body.paymentMethod,
        paymentIntentId=body.paymentIntentId,
        userId=owner,
    )
    try:
        doc = create_document(db, ORDERS, order)
    except Exception:
        release_stock(db, reserved)
        raise

    # Admin-recorded paid orders get no payment webhook.
    if doc["paymentStatus"] == "paid":
        _credit_once(db, doc)
    logger.info("Order %s created (%d items, %s points)", order_ref, len(items), doc["pointsEarned"])
    return doc


def _credit_once(db: Database, order: dict) -> None:
    claimed = db[ORDERS].update_one(
        {"_id": order["_id"], "pointsCredited": {"$ne": True}},
        {"$set": {"pointsCredited": True}},
    )
    if claimed.modified_count:
        loyalty.credit_order_points(db, order)
        order["pointsCredited"] = True


def update_order(db: Database, order_id: str, update: OrderUpdate,
                 notify: Optional[Callable[..., None]] = None) -> dict:
    """Apply an admin edit. Any status may be set; shipped/delivered emails go out only on a change."""
    oid = to_object_id(order_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid order ID")

    existing = db[ORDERS].find_one({"_id": oid})
    if not existing:
        raise HTTPException(status_code=404, detail="Order not found")

    changes = update.model_dump(exclude_unset=True)
    changes = {k: v for k, v in changes.items()
               if v is not None or k in ("trackingNumber", "trackingUrl")}
    changes["updatedAt"] = datetime.utcnow()
    order = db[ORDERS].find_one_and_update({"_id": oid}, {"$set": changes},
                                           return_document=ReturnDocument.AFTER)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")

    if existing.get("status") != order.get("status"):
        schedule = notify or (lambda fn, *args: fn(*args))
        email = (order.get("customerInfo") or {}).get("email")
        if email and order["status"] == "shipped":
            schedule(mailer.send_order_shipped_email, email, order["orderRef"],
                     order.get("trackingNumber"), order.get("trackingUrl"))
        elif email and order["status"] == "delivered":
            schedule(mailer.send_order_delivered_email, email, order["orderRef"])
    return order


# Stripe webhook reconciliation

def handle_payment_succeeded(db: Database, payment_intent: dict) -> Optional[dict]:
    order = db[ORDERS].find_one_and_update(
        {"paymentIntentId": payment_intent.get("id"), "paymentStatus": {"$ne": "paid"}},
        {"$set": {"paymentStatus": "paid", "status": "processing", "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if order is None:
        if db[ORDERS].find_one({"paymentIntentId": payment_intent.get("id")}, {"_id": 1}):
            logger.info("Payment intent %s already reconciled", payment_intent.get("id"))
        else:
            logger.error("Order not found for payment intent %s", payment_intent.get("id"))
        return None

    _credit_once(db, order)

    email = (order.get("customerInfo") or {}).get("email")
    if email:
        mailer.send_order_confirmation_email(email, order["orderRef"], order.get("pointsEarned", 0),
                                             f"{config.APP_URL}/account")
    logger.info("Payment succeeded and order updated: %s", order["orderRef"])
    return order


def handle_payment_failed(db: Database, payment_intent: dict) -> Optional[dict]:
    order = db[ORDERS].find_one_and_update(
        {"paymentIntentId": payment_intent.get("id")},
        {"$set": {"paymentStatus": "failed", "status": "cancelled", "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if order is not None:
        logger.info("Payment failed for order: %s", order["orderRef"])
    return order


def handle_refund(db: Database, charge: dict) -> Optional[dict]:
    order = db[ORDERS].find_one_and_update(
        {"paymentIntentId": charge.get("payment_intent")},
        {"$set": {"paymentStatus": "refunded", "status": "cancelled", "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.BEFORE,
    )
    if order is None:
        return None

    uncredit = db[ORDERS].update_one(
        {"_id": order["_id"], "pointsCredited": True},
        {"$set": {"pointsCredited": False}},
    )
    # Orders created before the pointsCredited flag existed still get reversed.
    if uncredit.modified_count or "pointsCredited" not in order:
        loyalty.reverse_order_points(db, order)
    logger.info("Refund processed for order: %s", order["orderRef"])
    return order


WEBHOOK_HANDLERS = {
    "payment_intent.succeeded": handle_payment_succeeded,
    "payment_intent.payment_failed": handle_payment_failed,
    "charge.refunded": handle_refund,
}


def apply_webhook_event(db: Database, event: dict) -> None:
    handler = WEBHOOK_HANDLERS.get(event.get("type"))
    if handler is None:
        logger.info("Unhandled event type: %s", event.get("type"))
        return
    obj = (event.get("data") or {}).get("object") or {}
    try:
        handler(db, obj)
    except Exception:
        logger.exception("Error handling %s", event.get("type"))
