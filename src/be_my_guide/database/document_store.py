"""
# Document Store

The persistence interface the trip services are written against, and its
Motor-backed implementation.

## Document Shape

Documents cross this boundary as plain dicts. The MongoDB `_id` is exposed as
a 24-character hex string under `id`; references between documents are written as
hex strings too. References read back as `ObjectId` (documents written by other
clients) are converted to hex on the way out, so callers never handle
`ObjectId` values. Filters on a reference field must match both forms.

## Operations

| Method | MongoDB call |
|---|---|
| `insert` | `insert_one` |
| `find_by_id` | `find_one({"_id": ...})` |
| `find_by_ids` | `find({"_id": {"$in": [...]}})` |
| `find` | `find(filter)` |
| `find_by_id_and_update` | `find_one_and_update` |
| `find_by_id_and_delete` | `find_one_and_delete` |

`patch` arguments are MongoDB update documents (`$set`, `$push`, `$pull`,
`$addToSet`), so list appends stay atomic at the single-document level.

## Errors

- Malformed ids raise `ValidationError` before any I/O.
- `PyMongoError` and a missing connection are wrapped in `StoreError`.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from be_my_guide.database.manager import DatabaseManager
from be_my_guide.errors import ErrorCode, StoreError
from be_my_guide.utils.object_ids import to_object_id

Document = Dict[str, Any]


def hex_references(value: Any) -> Any:
    """Replace `ObjectId` values, also inside lists, by their hex strings."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [hex_references(item) for item in value]
    return value


class DocumentStore(ABC):
    """Generic create/find/update/delete-by-id access to named collections."""

    @abstractmethod
    async def insert(self, collection: str, document: Document) -> Document:
        """Persist `document` under a fresh id and return it with `id` set."""

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        """Return the document or `None`."""

    @abstractmethod
    async def find_by_ids(self, collection: str, doc_ids: Iterable[str]) -> List[Document]:
        """Return every existing document among `doc_ids`, in no particular order."""

    @abstractmethod
    async def find(self, collection: str, query: Optional[Document] = None) -> List[Document]:
        """Return the documents matching a MongoDB filter."""

    @abstractmethod
    async def find_by_id_and_update(
        self, collection: str, doc_id: str, patch: Document, return_updated: bool = True
    ) -> Optional[Document]:
        """Apply an update document; return the updated (or previous) document, `None` if absent."""

    @abstractmethod
    async def find_by_id_and_delete(self, collection: str, doc_id: str) -> Optional[Document]:
        """Delete and return the document, `None` if it did not exist."""


class MongoDocumentStore(DocumentStore):
    """
    `DocumentStore` over the collections of a connected `DatabaseManager`.

    Every call is timed and logged through the manager's query logging helpers.
    """

    def __init__(self, manager: DatabaseManager):
        self.manager = manager

    @staticmethod
    def _to_document(raw: Optional[Document]) -> Optional[Document]:
        if raw is None:
            return None
        document = {key: hex_references(value) for key, value in raw.items() if key != "_id"}
        object_id = raw.get("_id")
        document["id"] = str(object_id) if object_id is not None else None
        return document

    @staticmethod
    def _to_raw(document: Document) -> Document:
        raw = dict(document)
        raw.pop("id", None)
        raw.pop("_id", None)
        return raw

    async def _run(self, collection: str, operation: str, call: Callable[[Any], Awaitable[Any]], query=None) -> Any:
        start_time = self.manager.log_query_start(collection, operation, query)
        try:
            motor_collection = self.manager.get_collection(collection)
        except ConnectionError as e:
            raise StoreError(str(e), code=ErrorCode.STORE_UNAVAILABLE) from e

        try:
            result = await call(motor_collection)
        except PyMongoError as e:
            self.manager.log_query_error(collection, operation, start_time, e)
            raise StoreError(f"{operation} on '{collection}' failed: {e}") from e

        self.manager.log_query_success(
            collection, operation, start_time, result_count=len(result) if isinstance(result, list) else None
        )
        return result

    async def insert(self, collection: str, document: Document) -> Document:
        raw = self._to_raw(document)
        raw["_id"] = ObjectId()
        await self._run(collection, "insert_one", lambda c: c.insert_one(raw))
        return self._to_document(raw)

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        query = {"_id": to_object_id(doc_id)}
        raw = await self._run(collection, "find_one", lambda c: c.find_one(query), query)
        return self._to_document(raw)

    async def find_by_ids(self, collection: str, doc_ids: Iterable[str]) -> List[Document]:
        object_ids = [to_object_id(doc_id) for doc_id in doc_ids]
        if not object_ids:
            return []
        query = {"_id": {"$in": object_ids}}
        raws = await self._run(collection, "find", lambda c: c.find(query).to_list(length=None), query)
        return [self._to_document(raw) for raw in raws]

    async def find(self, collection: str, query: Optional[Document] = None) -> List[Document]:
        query = query or {}
        raws = await self._run(collection, "find", lambda c: c.find(query).to_list(length=None), query)
        return [self._to_document(raw) for raw in raws]

    async def find_by_id_and_update(
        self, collection: str, doc_id: str, patch: Document, return_updated: bool = True
    ) -> Optional[Document]:
        query = {"_id": to_object_id(doc_id)}
        return_document = ReturnDocument.AFTER if return_updated else ReturnDocument.BEFORE
        raw = await self._run(
            collection,
            "find_one_and_update",
            lambda c: c.find_one_and_update(query, patch, return_document=return_document),
            query,
        )
        return self._to_document(raw)

    async def find_by_id_and_delete(self, collection: str, doc_id: str) -> Optional[Document]:
        query = {"_id": to_object_id(doc_id)}
        raw = await self._run(collection, "find_one_and_delete", lambda c: c.find_one_and_delete(query), query)
        return self._to_document(raw)
