import logging

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

import images
from database import DESIGNS, create_document, get_db, serialize, to_object_id
from schemas import Design, DesignIn
from security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/designs", tags=["designs"])


def _owned_design(db: Database, design_id: str, user: dict) -> dict:
    oid = to_object_id(design_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid design ID")
    design = db[DESIGNS].find_one({"_id": oid})
    if not design:
        raise HTTPException(status_code=404, detail="Design not found")
    if design.get("userId") != str(user["_id"]):
        raise HTTPException(status_code=403, detail="Unauthorized access")
    return design


@router.get("")
def list_designs(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    designs = list(db[DESIGNS].find({"userId": str(user["_id"])}).sort("createdAt", -1))
    return {"success": True, "count": len(designs), "data": serialize(designs)}


@router.post("", status_code=201)
def save_design(payload: DesignIn, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if not payload.productId or not payload.productType:
        raise HTTPException(status_code=400, detail="Product ID and product type are required")
    if not payload.images:
        raise HTTPException(status_code=400, detail="At least one design image is required")

    design = create_document(db, DESIGNS, Design(
        userId=str(user["_id"]),
        productId=payload.productId,
        productType=payload.productType,
        images=payload.images,
        preview=payload.preview,
        name=payload.name or f"Custom {payload.productType} Design",
    ))
    return {"success": True, "data": serialize(design), "message": "Design saved successfully"}


@router.get("/{design_id}")
def get_design(design_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    return {"success": True, "data": serialize(_owned_design(db, design_id, user))}


@router.delete("/{design_id}")
def delete_design(design_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    design = _owned_design(db, design_id, user)

    for image in design.get("images", []):
        if image.get("publicId"):
            result = images.delete_image(image["publicId"])
            if not result.get("success"):
                logger.warning("Could not delete design image %s: %s", image["publicId"], result.get("error"))

    db[DESIGNS].delete_one({"_id": design["_id"]})
    return {"success": True, "message": "Design deleted successfully"}
