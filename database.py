"""
MongoDB access for the storefront.

The connection is opened once per process from DATABASE_URL / DATABASE_NAME.
Handlers receive the database through the ``get_db`` dependency so tests can
swap in a throwaway database.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from dotenv import load_dotenv
from fastapi import HTTPException
from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _to_dict(data) -> Dict[str, Any]:
    if hasattr(data, "model_dump"):
        return data.model_dump(by_alias=True, exclude_none=True)
    return dict(data)


def create_document(collection_name: str, data, database=None) -> str:
    """Insert a document, stamping createdAt/updatedAt, and return its id."""
    database = database if database is not None else get_db()
    data_dict = _to_dict(data)
    stamp = now_utc()
    data_dict.setdefault("createdAt", stamp)
    data_dict["updatedAt"] = stamp
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, database=None):
    database = database if database is not None else get_db()
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database) -> None:
    database["user"].create_index("email", unique=True)
    database["category"].create_index("slug", unique=True)
    database["category"].create_index("parent")
    database["category"].create_index("displayOrder")
    database["product"].create_index("slug", unique=True)
    database["product"].create_index("sku", unique=True)
    database["product"].create_index([("name", TEXT), ("description", TEXT)])
    database["product"].create_index([("category", ASCENDING), ("active", ASCENDING)])
    database["product"].create_index([("createdAt", DESCENDING)])
    database["order"].create_index("orderNumber", unique=True)
    database["order"].create_index([("user", ASCENDING), ("createdAt", DESCENDING)])
    database["order"].create_index([("paymentStatus", ASCENDING), ("orderStatus", ASCENDING)])
    database["settings"].create_index("key", unique=True)
    logger.info("Indexes ensured on %s", database.name)


def serialize_doc(doc):
    """Make a stored document JSON friendly: _id -> id, ObjectId -> str, datetime -> ISO."""
    if doc is None:
        return doc
    if isinstance(doc, list):
        return [serialize_doc(d) for d in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return doc.isoformat()
    if not isinstance(doc, dict):
        return doc
    out = {}
    for k, v in doc.items():
        if k == "_id":
            out["id"] = str(v)
        else:
            out[k] = serialize_doc(v)
    return out
