from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from log_config import get_logger
from settings import Settings

logger = get_logger(__name__)


def connect(settings: Settings) -> Database:
    """Return the configured database. The client connects lazily on first use."""
    client = MongoClient(settings.mongo_url)
    logger.info("Using database %r", settings.database_name)
    return client[settings.database_name]


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["product"].create_index([("id", ASCENDING)], unique=True)


def create_document(db: Database, collection_name: str, data: BaseModel) -> str:
    """Insert a schema instance and return the new document id as a string."""
    result = db[collection_name].insert_one(data.model_dump())
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    limit: int = 0,
) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {}, {"_id": 0})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def next_sequence(db: Database, name: str, floor: Optional[Callable[[], int]] = None) -> int:
    """Atomically bump the named counter and return its new value.

    ``floor`` is only consulted when the counter does not exist yet, so a
    collection that already holds ids continues after its highest one.
    """
    counters = db["counter"]
    doc = counters.find_one_and_update(
        {"_id": name}, {"$inc": {"seq": 1}}, return_document=ReturnDocument.AFTER
    )
    if doc is None:
        seed = {"$max": {"seq": floor() if floor else 0}}
        try:
            counters.update_one({"_id": name}, seed, upsert=True)
        except DuplicateKeyError:
            # Lost the upsert race; the counter exists now.
            counters.update_one({"_id": name}, seed)
        doc = counters.find_one_and_update(
            {"_id": name},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    return doc["seq"]
