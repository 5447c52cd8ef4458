"""
MongoDB access for the Oiko store.

The client is created once at import time. When DATABASE_URL is not set, `db`
stays None and every endpoint that needs storage answers with a 500.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

USERS = "users"
PRODUCTS = "products"
ORDERS = "orders"
DESIGNS = "designs"
SUBSCRIBERS = "subscribers"
TRIAL_REQUESTS = "trial_requests"
REWARD_CLAIMS = "reward_claims"

_OBJECT_ID_RE = re.compile(r"^[a-f\d]{24}$", re.IGNORECASE)

db: Optional[Database] = None

if config.DATABASE_URL:
    _client = MongoClient(
        config.DATABASE_URL,
        serverSelectionTimeoutMS=5000,
        connectTimeoutMS=10000,
    )
    db = _client[config.DATABASE_NAME]
else:
    logger.warning("DATABASE_URL not set, database unavailable")


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def is_object_id(value: Any) -> bool:
    """True for 24-hex-character strings (and ObjectId instances)."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if is_object_id(value):
        return ObjectId(value)
    return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(exclude_none=True)
    else:
        doc = dict(data)
    now = datetime.utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = database[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def serialize(value: Any) -> Any:
    """Make Mongo documents JSON friendly: ObjectId -> str, `_id` -> `id`."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for key, val in value.items():
            if key == "_id":
                out["id"] = serialize(val)
            else:
                out[key] = serialize(val)
        return out
    return value
