from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError

from database import create_document, get_documents, next_sequence
from errors import DuplicateEmail, ProductPersistenceError, ShopError, StoreUnavailable
from log_config import get_logger
from schemas import Product, User

logger = get_logger(__name__)


@contextmanager
def store_errors(wrap: Optional[Type[ShopError]] = None, message: Optional[str] = None) -> Iterator[None]:
    """Translate pymongo failures into the shop error taxonomy.

    Connection-level failures become StoreUnavailable unless ``wrap`` is given,
    in which case every driver failure is reported as ``wrap(message)``.
    """
    try:
        yield
    except ShopError:
        raise
    except PyMongoError as exc:
        logger.error("Store operation failed: %s", exc)
        if wrap is not None:
            raise wrap(message) from exc
        if isinstance(exc, ConnectionFailure):
            raise StoreUnavailable() from exc
        raise


def _object_id(user_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


class UserStore:
    """Credential store: user records keyed by ObjectId, unique by email."""

    collection_name = "user"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def find_by_email(self, email: str) -> Optional[dict]:
        with store_errors():
            return self.collection.find_one({"email": email})

    def find_by_id(self, user_id: str) -> Optional[dict]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        with store_errors():
            return self.collection.find_one({"_id": oid})

    def exists(self, user_id: str) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        with store_errors():
            return self.collection.find_one({"_id": oid}, {"_id": 1}) is not None

    def insert(self, user: User) -> str:
        with store_errors():
            try:
                return create_document(self.db, self.collection_name, user)
            except DuplicateKeyError as exc:
                raise DuplicateEmail() from exc

    def get_cart(self, user_id: str) -> Optional[Dict[str, int]]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        with store_errors():
            doc = self.collection.find_one({"_id": oid}, {"cartData": 1})
        if doc is None:
            return None
        return doc.get("cartData", {})

    def update_cart_data(self, user_id: str, cart: Dict[str, int]) -> bool:
        """Overwrite the whole cart map. Returns False if no user matched."""
        oid = _object_id(user_id)
        if oid is None:
            return False
        with store_errors():
            res = self.collection.update_one({"_id": oid}, {"$set": {"cartData": cart}})
        return res.matched_count == 1

    def increment_slot(self, user_id: str, slot: int, delta: int) -> bool:
        """Apply ``delta`` to one cart slot in a single atomic update.

        A negative delta only applies while the slot holds at least ``-delta``.
        Returns False when nothing matched (unknown user, or the floor held).
        """
        oid = _object_id(user_id)
        if oid is None:
            return False
        field = f"cartData.{slot}"
        query: Dict[str, Any] = {"_id": oid}
        if delta < 0:
            query[field] = {"$gte": -delta}
        with store_errors():
            res = self.collection.update_one(query, {"$inc": {field: delta}})
        return res.matched_count == 1


class ProductStore:
    """Catalog store: products keyed by a sequential integer id."""

    collection_name = "product"

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    def find_all(self) -> List[dict]:
        with store_errors():
            return get_documents(self.db, self.collection_name, sort=[("id", 1)])

    def find_by_id(self, product_id: int) -> Optional[dict]:
        with store_errors():
            return self.collection.find_one({"id": product_id}, {"_id": 0})

    def find_by_category(self, category: str, limit: int = 0) -> List[dict]:
        with store_errors():
            return get_documents(
                self.db, self.collection_name, {"category": category}, sort=[("id", 1)], limit=limit
            )

    def new_collection(self, limit: int = 8) -> List[dict]:
        """The latest ``limit`` products, never including the very first one."""
        return self.find_all()[1:][-limit:]

    def _max_id(self) -> int:
        doc = self.collection.find_one({}, {"id": 1}, sort=[("id", DESCENDING)])
        return doc["id"] if doc else 0

    def insert_with_next_id(self, fields: Dict[str, Any]) -> Product:
        # Validate before taking an id so a rejected product never consumes one.
        product = Product(id=0, **fields)
        with store_errors(ProductPersistenceError, "Error adding product to the database."):
            product.id = next_sequence(self.db, self.collection_name, floor=self._max_id)
            create_document(self.db, self.collection_name, product)
        return product

    def delete_by_id(self, product_id: int) -> Optional[dict]:
        """Delete the product and return it, or None if no product had that id."""
        with store_errors(ProductPersistenceError, "Error removing product from the database."):
            return self.collection.find_one_and_delete({"id": product_id}, {"_id": 0})
