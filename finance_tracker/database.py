"""
database.py
-----------
MongoDB access helpers shared by the service layer.
"""

from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from finance_tracker import config
from finance_tracker.errors import ApiError, bad_request
from finance_tracker.logger import get_logger

logger = get_logger(__name__)

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form BSON hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def init_db(client: Optional[MongoClient] = None) -> Database:
    """
    Bind the module to a Mongo client and make sure indexes exist.

    Args:
        client: An already constructed client (tests pass a mongomock one).
            When omitted a client is built from ``MONGO_URI``.

    Returns:
        The application database.
    """
    global _client, _db
    if client is None:
        client = MongoClient(config.MONGO_URI, serverSelectionTimeoutMS=5000)
    _client = client
    _db = client[config.DATABASE_NAME]
    ensure_indexes(_db)
    logger.info(f"Connected to database '{config.DATABASE_NAME}'")
    return _db


def ensure_indexes(db: Database) -> None:
    db["user"].create_index("email", unique=True)
    db["category"].create_index([("user_id", ASCENDING), ("type", ASCENDING)])
    db["category"].create_index([("user_id", ASCENDING), ("is_deleted", ASCENDING)])
    db["transaction"].create_index([("user_id", ASCENDING), ("transaction_date", DESCENDING)])
    db["transaction"].create_index([("user_id", ASCENDING), ("year_month", ASCENDING)])


def get_db() -> Database:
    if _db is None:
        raise ApiError(500, "DATABASE_ERROR", "Database not available")
    return _db


def close_db() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


def is_connected() -> bool:
    if _client is None:
        return False
    try:
        _client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"Database ping failed: {e}")
        return False


def database_name() -> Optional[str]:
    return _db.name if _db is not None else None


def parse_object_id(value: str, field: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise bad_request("INVALID_ID_FORMAT", f"Invalid {field} format",
                          [{"field": field, "message": "Must be a valid ObjectId", "code": "invalid_id"}])


def create_document(collection_name: str, data: BaseModel | dict) -> str:
    """Insert a document with timestamps and return its id as a string."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    result = get_db()[collection_name].insert_one(doc)
    return str(result.inserted_id)


def update_document(collection_name: str, query: dict, changes: dict) -> Optional[dict]:
    """Apply ``$set`` changes, bump ``updated_at`` and return the new document."""
    changes = dict(changes)
    changes["updated_at"] = utcnow()
    return get_db()[collection_name].find_one_and_update(
        query, {"$set": changes}, return_document=ReturnDocument.AFTER
    )
