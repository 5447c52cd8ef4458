import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

import config
import images
from security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["uploads"])


async def _read_image(file: Optional[UploadFile]) -> bytes:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    content = await file.read()
    if len(content) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 10MB")
    return content


def _uploaded(result: dict) -> dict:
    if not result.get("success"):
        raise HTTPException(status_code=500, detail=result.get("error") or "Failed to upload image")
    return {"success": True, "data": {"url": result["url"], "publicId": result["publicId"]}}


@router.post("/design")
async def upload_design(file: Optional[UploadFile] = File(None), user: dict = Depends(get_current_user)):
    content = await _read_image(file)
    result = images.upload_image(content, file.content_type, f"oiko/designs/{user['_id']}", file.filename)
    return _uploaded(result)


@router.post("/product")
async def upload_product_image(file: Optional[UploadFile] = File(None), admin: dict = Depends(require_admin)):
    content = await _read_image(file)
    result = images.upload_image(content, file.content_type, "oiko/products", file.filename)
    return _uploaded(result)


@router.delete("/{public_id:path}")
def delete_upload(public_id: str, user: dict = Depends(get_current_user)):
    if not public_id:
        raise HTTPException(status_code=400, detail="Public ID is required")

    if f"designs/{user['_id']}" not in public_id and user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Unauthorized to delete this image")

    result = images.delete_image(public_id)
    if not result.get("success"):
        raise HTTPException(status_code=500, detail=result.get("error") or "Failed to delete image")
    return {"success": True, "message": "Image deleted successfully"}
