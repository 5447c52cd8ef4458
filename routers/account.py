"""Address book. Addresses are embedded in the user document, each with its own _id."""
from datetime import datetime
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import USERS, get_db, serialize
from schemas import Address, AddressIn
from security import get_current_user

router = APIRouter(prefix="/addresses", tags=["addresses"])


def _save(db: Database, user: dict, addresses: List[dict]) -> None:
    db[USERS].update_one({"_id": user["_id"]},
                         {"$set": {"addresses": addresses, "updatedAt": datetime.utcnow()}})


def _find(addresses: List[dict], address_id: str) -> dict:
    for address in addresses:
        if str(address.get("_id")) == address_id:
            return address
    raise HTTPException(status_code=404, detail="Address not found")


def _make_default(addresses: List[dict], address: dict) -> None:
    for other in addresses:
        other["isDefault"] = False
    address["isDefault"] = True


@router.get("")
def list_addresses(user: dict = Depends(get_current_user)):
    addresses = user.get("addresses", [])
    return {"success": True, "count": len(addresses), "data": serialize(addresses)}


@router.post("", status_code=201)
def add_address(payload: AddressIn, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if not (payload.street and payload.city and payload.zipCode and payload.country):
        raise HTTPException(status_code=400, detail={
            "error": "Missing required fields",
            "message": "Street, city, zipCode, and country are required",
        })

    addresses = user.get("addresses", [])
    address = Address(**payload.model_dump(exclude_none=True, exclude={"isDefault"})).model_dump()
    address["_id"] = ObjectId()
    addresses.append(address)
    if payload.isDefault or len(addresses) == 1:
        _make_default(addresses, address)

    _save(db, user, addresses)
    return {"success": True, "data": serialize(address), "message": "Address added successfully"}


@router.patch("/{address_id}")
def update_address(address_id: str, payload: AddressIn, user: dict = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    addresses = user.get("addresses", [])
    address = _find(addresses, address_id)

    address.update(payload.model_dump(exclude_unset=True, exclude={"isDefault"}))
    if payload.isDefault is True:
        _make_default(addresses, address)

    _save(db, user, addresses)
    return {"success": True, "data": serialize(address), "message": "Address updated successfully"}


@router.delete("/{address_id}")
def delete_address(address_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    addresses = user.get("addresses", [])
    address = _find(addresses, address_id)

    addresses.remove(address)
    if address.get("isDefault") and addresses:
        addresses[0]["isDefault"] = True

    _save(db, user, addresses)
    return {"success": True, "message": "Address deleted successfully"}


@router.patch("/{address_id}/set-default")
def set_default_address(address_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    addresses = user.get("addresses", [])
    address = _find(addresses, address_id)
    _make_default(addresses, address)

    _save(db, user, addresses)
    return {"success": True, "data": serialize(address), "message": "Default address updated"}
