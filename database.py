"""
MongoDB access

One client is opened at import time from DATABASE_URL / DATABASE_NAME.
When either is missing `db` stays None and the API answers
"Database not configured".
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient

from errors import BadRequestError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client = MongoClient(DATABASE_URL) if DATABASE_URL and DATABASE_NAME else None
db = client[DATABASE_NAME] if client is not None else None


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_obj_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise BadRequestError("Invalid id")


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    if not doc:
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(database, collection_name: str, data) -> str:
    """Insert a pydantic model or dict, stamping createdAt/updatedAt."""
    data_dict = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    stamp = now()
    data_dict["createdAt"] = stamp
    data_dict["updatedAt"] = stamp
    result = database[collection_name].insert_one(data_dict)
    logger.info("created %s %s", collection_name, result.inserted_id)
    return str(result.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict] = None, limit: Optional[int] = None) -> List[Dict]:
    cursor = database[collection_name].find(filter_dict or {}).sort("createdAt", -1)
    if limit:
        cursor = cursor.limit(limit)
    return [sanitize(d) for d in cursor]
