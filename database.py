"""
Data service adapter

The Mongo database handle is created once at startup and handed to request
handlers through the ``get_db`` dependency below.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import Settings
from errors import ProductNotFoundError

logger = logging.getLogger(__name__)


def connect(settings: Settings) -> Database:
    client = MongoClient(settings.database_url)
    logger.info("Connected to %s", settings.database_name)
    return client[settings.database_name]


def init_indexes(db: Database) -> None:
    db["users"].create_index([("email", ASCENDING)], unique=True)
    db["orders"].create_index([("idempotency_key", ASCENDING)], unique=True, sparse=True)
    db["orders"].create_index([("email", ASCENDING), ("created_at", DESCENDING)])
    db["products"].create_index([("created_at", DESCENDING)])
    db["categories"].create_index([("name", ASCENDING)], unique=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    doc.pop("id", None)
    if doc.get("created_at") is None:
        doc["created_at"] = _now()
    doc["updated_at"] = _now()
    result = db[collection].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[tuple]] = None,
    limit: Optional[int] = None,
) -> List[dict]:
    cursor = db[collection].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(doc: dict) -> dict:
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
    return d


def object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ProductNotFoundError(value)


def get_db(request: Request) -> Database:
    return request.app.state.db
