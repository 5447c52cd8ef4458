from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pymongo.database import Database

import config
import mailer
import ordering
from database import ORDERS, get_db, serialize, to_object_id
from schemas import OrderCreate, OrderUpdate
from security import optional_user, require_admin

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=201)
def create_order(payload: OrderCreate, background: BackgroundTasks,
                 caller: Optional[dict] = Depends(optional_user), db: Database = Depends(get_db)):
    order = ordering.create_order(db, payload, caller)
    background.add_task(
        mailer.send_order_confirmation_email,
        order["customerInfo"]["email"],
        order["orderRef"],
        order.get("pointsEarned", 0),
        f"{config.APP_URL}/account",
    )
    return {"success": True, "data": serialize(order), "message": "Order created successfully"}


@router.get("")
def list_orders(email: Optional[str] = None, orderRef: Optional[str] = None, db: Database = Depends(get_db)):
    query = {}
    if email:
        query["customerInfo.email"] = email.lower()
    if orderRef:
        query["orderRef"] = orderRef

    orders = list(db[ORDERS].find(query).sort("createdAt", -1))
    return {"success": True, "count": len(orders), "data": serialize(orders)}


@router.get("/{order_id}")
def get_order(order_id: str, db: Database = Depends(get_db)):
    oid = to_object_id(order_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid order ID")
    order = db[ORDERS].find_one({"_id": oid})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return {"success": True, "data": serialize(order)}


@router.patch("/{order_id}")
def update_order(order_id: str, payload: OrderUpdate, background: BackgroundTasks,
                 admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    order = ordering.update_order(db, order_id, payload, notify=background.add_task)
    return {"success": True, "data": serialize(order), "message": "Order updated successfully"}
