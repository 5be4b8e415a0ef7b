"""
Database access

A single pymongo client is shared by the whole process. Routes receive the
database through the ``get_db`` dependency so tests can swap it out.
"""

from datetime import datetime, timezone
from typing import Any, Dict

import structlog
from bson import ObjectId
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import OperationFailure

import config
from errors import ValidationError

logger = structlog.get_logger(__name__)

client = MongoClient(config.DATABASE_URL, tz_aware=False)
db = client[config.DATABASE_NAME]


def get_db() -> Database:
    return db


def utcnow() -> datetime:
    # Mongo stores naive UTC datetimes
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: str, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label}")
    return ObjectId(value)


def create_document(database: Database, collection_name: str, data) -> str:
    """Insert a schema instance (or dict) stamped with created/updated times."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(exclude_none=True)
    else:
        doc = {k: v for k, v in dict(data).items() if v is not None}
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def _serialize_value(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Render a stored document for the wire: ``_id`` becomes ``id``, keys go camelCase."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    out: Dict[str, Any] = {}
    if _id is not None:
        out["id"] = str(_id)
    for k, v in doc.items():
        out[to_camel(k)] = _serialize_value(v)
    return out


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["product"].create_index([("seller_id", ASCENDING)])
    database["order"].create_index("internal_tracking_number", unique=True, sparse=True)
    database["order"].create_index([("status", ASCENDING), ("updated_at", ASCENDING)])
    database["order"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["otp"].create_index([("email", ASCENDING), ("is_used", ASCENDING)])
    database["otp"].create_index("expires_at", expireAfterSeconds=0)
    database["review"].create_index([("product_id", ASCENDING), ("user_id", ASCENDING)], unique=True)
    drop_legacy_tracking_index(database)


def drop_legacy_tracking_index(database: Database) -> bool:
    """Drop the old unique index on the seller-supplied tracking number.

    Courier tracking numbers are not unique across orders; only the internal
    tracking number is.
    """
    collection = database["order"]
    dropped = False
    indexes = collection.index_information()
    for name in ("trackingNumber_1", "tracking_number_1"):
        if not indexes.get(name, {}).get("unique"):
            continue
        try:
            collection.drop_index(name)
        except OperationFailure as e:
            if e.code != 27:  # IndexNotFound
                raise
            continue
        logger.info("dropped_legacy_index", index=name)
        dropped = True
    return dropped
