"""
MongoDB access for the shop backend.

A single ``Database`` object owns the client for the lifetime of the app. It
connects lazily, at most once at a time, and a failed bootstrap is retried by
the next caller instead of taking the process down.
"""
import threading
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Union

import structlog
from bson.errors import InvalidId
from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from errors import ValidationError

logger = structlog.get_logger(__name__)


class Database:
    def __init__(
        self,
        url: Optional[str] = None,
        name: Optional[str] = None,
        client: Optional[MongoClient] = None,
        initializers: Iterable[Callable] = (),
    ):
        self.url = url
        self.name = name
        self.initializers = list(initializers)
        self._client = client
        self._lock = threading.Lock()
        self.db = None

    @property
    def connected(self) -> bool:
        return self.db is not None

    def connect(self):
        """Return the database handle, opening the connection on first use.

        Returns None when the database is not configured or cannot be reached.
        """
        if self.db is not None:
            return self.db
        with self._lock:
            if self.db is not None:
                return self.db
            if self._client is None and not self.url:
                logger.warning("Database not configured", url_set=False)
                return None
            if not self.name:
                logger.warning("Database not configured", name_set=False)
                return None
            try:
                if self._client is None:
                    self._client = MongoClient(
                        self.url,
                        serverSelectionTimeoutMS=10000,
                        socketTimeoutMS=45000,
                        tz_aware=True,
                    )
                db = self._client[self.name]
                for init in self.initializers:
                    init(db)
            except PyMongoError as e:
                logger.error("Database connection failed", error=str(e))
                return None
            self.db = db
            logger.info("Database connected", database=self.name)
            return self.db

    def close(self):
        with self._lock:
            if self._client is not None:
                self._client.close()
            self._client = None
            self.db = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Datetimes read back without tz_aware are naive UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def parse_object_id(value, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label}: {value}")


def create_document(db, collection_name: str, data: Union[BaseModel, dict]) -> ObjectId:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("createdAt", now)
    doc["updatedAt"] = now
    result = db[collection_name].insert_one(doc)
    return result.inserted_id


def get_documents(db, collection_name: str, filter_dict: Optional[dict] = None, sort=None, limit: Optional[int] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(doc):
    """Make a stored document JSON friendly: ObjectIds to str, datetimes to ISO."""
    if isinstance(doc, dict):
        return {k: serialize_doc(v) for k, v in doc.items()}
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        return as_utc(doc).isoformat()
    return doc
