"""
Image hosting on Cloudinary.

Both calls return a result dict instead of raising so callers can decide
whether a failure matters (a design delete carries on when a layer image is
already gone).
"""
import io
import logging
from typing import Any, Dict, Optional

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

import config

logger = logging.getLogger(__name__)

NOT_CONFIGURED = {"success": False, "error": "Cloudinary not configured"}


def _configure() -> bool:
    """Point the SDK at the account from the environment. False when keys are missing."""
    if not (config.CLOUDINARY_CLOUD_NAME and config.CLOUDINARY_API_KEY and config.CLOUDINARY_API_SECRET):
        return False
    cloudinary.config(
        cloud_name=config.CLOUDINARY_CLOUD_NAME,
        api_key=config.CLOUDINARY_API_KEY,
        api_secret=config.CLOUDINARY_API_SECRET,
        secure=True,
    )
    return True


def upload_image(content: bytes, content_type: str, folder: str,
                 filename: Optional[str] = None) -> Dict[str, Any]:
    if not _configure():
        return dict(NOT_CONFIGURED)

    upload = io.BytesIO(content)
    upload.name = filename or "upload"
    try:
        result = cloudinary.uploader.upload(upload, folder=folder, resource_type="image")
    except CloudinaryError as exc:
        logger.error("Cloudinary upload error (%s, %s): %s", upload.name, content_type, exc)
        return {"success": False, "error": str(exc) or "Failed to upload image"}

    return {"success": True, "url": result["secure_url"], "publicId": result["public_id"]}


def delete_image(public_id: str) -> Dict[str, Any]:
    if not _configure():
        return dict(NOT_CONFIGURED)

    try:
        result = cloudinary.uploader.destroy(public_id)
    except CloudinaryError as exc:
        logger.error("Cloudinary delete error for %s: %s", public_id, exc)
        return {"success": False, "error": str(exc) or "Failed to delete image"}

    if result.get("result") != "ok":
        return {"success": False, "error": result.get("result") or "Failed to delete image"}
    return {"success": True}
