"""Try Before You Buy: customers in the trial city can borrow one garment at a time."""
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

import config
from database import TRIAL_REQUESTS, create_document, get_db, serialize
from schemas import TrialCustomerInfo, TrialRequest, TrialRequestIn
from security import get_current_user

router = APIRouter(prefix="/trial-requests", tags=["trials"])

ACTIVE_STATUSES = ["pending", "approved", "delivered"]


def default_address(user: dict):
    addresses = user.get("addresses", [])
    return next((a for a in addresses if a.get("isDefault")), addresses[0] if addresses else None)


@router.post("", status_code=201)
def request_trial(payload: TrialRequestIn, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if not payload.productType or not payload.size:
        raise HTTPException(status_code=400, detail="Product type and size are required")

    address = default_address(user)
    if not address:
        raise HTTPException(status_code=400, detail="Please add an address to your profile first")
    if config.TRIAL_CITY.lower() not in (address.get("city") or "").lower():
        raise HTTPException(status_code=400,
                            detail=f"Try Before You Buy is only available in {config.TRIAL_CITY.title()}")

    user_id = str(user["_id"])
    if db[TRIAL_REQUESTS].find_one({"userId": user_id, "status": {"$in": ACTIVE_STATUSES}}, {"_id": 1}):
        raise HTTPException(status_code=400, detail="You already have an active trial request. "
                                                    "Please return it before requesting another.")

    trial = create_document(db, TRIAL_REQUESTS, TrialRequest(
        userId=user_id,
        customerInfo=TrialCustomerInfo(
            email=user["email"],
            firstName=user.get("firstName", ""),
            lastName=user.get("lastName", ""),
            phone=user.get("phone"),
            street=address.get("street", ""),
            city=address.get("city", ""),
            zipCode=address.get("zipCode", ""),
            country=address.get("country", ""),
        ),
        productType=payload.productType,
        size=payload.size,
    ))
    return {
        "success": True,
        "data": serialize(trial),
        "message": "Trial request submitted successfully! We will contact you within 24 hours.",
    }


@router.get("")
def my_trials(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    trials = list(db[TRIAL_REQUESTS].find({"userId": str(user["_id"])}).sort("createdAt", -1))
    return {"success": True, "count": len(trials), "data": serialize(trials)}
