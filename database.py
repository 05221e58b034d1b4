"""
MongoDB access helpers

`db` is the single handle every route goes through. It is None when no
DATABASE_URL is configured; helpers then raise DatabaseUnavailable instead of
returning placeholder data.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument

from config import settings
from errors import DatabaseUnavailable

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db = None

if settings.database_url:
    _client = MongoClient(
        settings.database_url,
        serverSelectionTimeoutMS=settings.database_timeout_ms,
        tz_aware=True,
    )
    db = _client[settings.database_name]


def set_database(database) -> None:
    global db
    db = database


def now() -> datetime:
    return datetime.now(timezone.utc)


def collection(name: str):
    if db is None:
        raise DatabaseUnavailable("Database is not configured")
    return db[name]


def to_object_id(value: Union[str, ObjectId, None]) -> Optional[ObjectId]:
    """Parse an id; malformed ids come back as None so callers treat them as missing."""
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Expose `_id` as `id` and turn nested ObjectIds into strings."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        else:
            out[key] = _plain(value)
    return out


def _plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    stamp = now()
    data_dict["created_at"] = stamp
    data_dict["updated_at"] = stamp
    result = collection(collection_name).insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    skip: int = 0,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[dict]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def get_document(collection_name: str, doc_id: Union[str, ObjectId, None]) -> Optional[dict]:
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    return collection(collection_name).find_one({"_id": oid})


def update_document(collection_name: str, doc_id, fields: dict, match: Optional[dict] = None) -> Optional[dict]:
    """Apply `$set` with a fresh updated_at; returns the updated document or None.

    `match` adds conditions to the filter, so the write only happens while the
    stored document still satisfies them.
    """
    oid = to_object_id(doc_id)
    if oid is None:
        return None
    changes = dict(fields)
    changes["updated_at"] = now()
    query = dict(match or {})
    query["_id"] = oid
    return collection(collection_name).find_one_and_update(
        query,
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )


def delete_document(collection_name: str, doc_id) -> bool:
    oid = to_object_id(doc_id)
    if oid is None:
        return False
    return collection(collection_name).delete_one({"_id": oid}).deleted_count == 1


def count_documents(collection_name: str, filter_dict: Optional[dict] = None) -> int:
    return collection(collection_name).count_documents(filter_dict or {})


def ensure_indexes() -> None:
    if db is None:
        logger.warning("No DATABASE_URL configured; skipping index creation")
        return
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["category"].create_index([("slug", ASCENDING)], unique=True)
    db["product"].create_index([("category", ASCENDING)])
    db["order"].create_index([("user_id", ASCENDING)])
    db["session"].create_index([("token", ASCENDING)], unique=True)
    db["session"].create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
    logger.info("Database indexes ensured on %s", db.name)


def ping() -> dict:
    """Database diagnostics for the /test endpoint."""
    status = {
        "database": "Not configured",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is None:
        return status
    status["database_name"] = db.name
    try:
        status["collections"] = sorted(db.list_collection_names())[:10]
        status["database"] = "Connected"
        status["connection_status"] = "Connected"
    except Exception as e:
        logger.error("Database ping failed: %s", e)
        status["database"] = f"Error: {str(e)[:80]}"
    return status
