from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import EmailStr, TypeAdapter, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from database import SUBSCRIBERS, create_document, get_db, serialize
from schemas import SubscribeRequest, Subscriber, UnsubscribeRequest

router = APIRouter(prefix="/newsletter", tags=["newsletter"])

EMAIL = TypeAdapter(EmailStr)


@router.post("/subscribe", status_code=201)
def subscribe(payload: SubscribeRequest, response: Response, db: Database = Depends(get_db)):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")
    try:
        email = EMAIL.validate_python(payload.email).lower()
    except ValidationError:
        raise HTTPException(status_code=400, detail="Please provide a valid email address")

    existing = db[SUBSCRIBERS].find_one({"email": email})
    if existing and existing.get("status") == "active":
        raise HTTPException(status_code=400, detail="Email already subscribed")

    if existing:
        now = datetime.utcnow()
        changes = {"status": "active", "subscribedAt": now, "updatedAt": now}
        if payload.name:
            changes["name"] = payload.name
        subscriber = db[SUBSCRIBERS].find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": changes, "$unset": {"unsubscribedAt": ""}},
            return_document=ReturnDocument.AFTER,
        )
        response.status_code = 200
        return {"success": True, "data": serialize(subscriber), "message": "Subscription reactivated successfully"}

    subscriber = create_document(db, SUBSCRIBERS, Subscriber(
        email=email, name=payload.name, source=payload.source or "website",
    ))
    return {"success": True, "data": serialize(subscriber), "message": "Successfully subscribed to newsletter"}


@router.post("/unsubscribe")
def unsubscribe(payload: UnsubscribeRequest, db: Database = Depends(get_db)):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")

    subscriber = db[SUBSCRIBERS].find_one({"email": payload.email.lower()})
    if not subscriber:
        raise HTTPException(status_code=404, detail="Email not found in subscription list")
    if subscriber.get("status") == "unsubscribed":
        raise HTTPException(status_code=400, detail="Email already unsubscribed")

    now = datetime.utcnow()
    db[SUBSCRIBERS].update_one({"_id": subscriber["_id"]},
                               {"$set": {"status": "unsubscribed", "unsubscribedAt": now, "updatedAt": now}})
    return {"success": True, "message": "Successfully unsubscribed from newsletter"}
