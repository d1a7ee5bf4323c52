import copy
from collections import defaultdict
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from be_my_guide.database.collections import DESTINATIONS, TRIP_DAYS, TRIP_PLANNINGS, TRIP_STEPS, TRIPS, USERS
from be_my_guide.database.document_store import Document, DocumentStore, hex_references
from be_my_guide.errors import StoreError
from be_my_guide.managers.mail_manager import MailManager
from be_my_guide.services.trip_service import TripService
from be_my_guide.utils.object_ids import new_object_id, to_object_id


def _matches(document: Document, query: Document) -> bool:
    for field, expected in query.items():
        value = document.get(field)
        if isinstance(expected, dict) and "$in" in expected:
            candidates = value if isinstance(value, list) else [value]
            if not any(item in expected["$in"] for item in candidates):
                return False
        elif isinstance(value, list) and not isinstance(expected, list):
            if expected not in value:
                return False
        elif value != expected:
            return False
    return True


def _read_copy(document: Optional[Document]) -> Optional[Document]:
    if document is None:
        return None
    return {key: hex_references(value) for key, value in copy.deepcopy(document).items()}


def _apply_update(document: Document, patch: Document) -> None:
    for operator, fields in patch.items():
        for field, value in fields.items():
            if operator == "$set":
                document[field] = copy.deepcopy(value)
            elif operator == "$push":
                document.setdefault(field, []).append(copy.deepcopy(value))
            elif operator == "$pull":
                removed = value["$in"] if isinstance(value, dict) and "$in" in value else [value]
                document[field] = [item for item in document.get(field) or [] if item not in removed]
            elif operator == "$addToSet":
                items = value["$each"] if isinstance(value, dict) and "$each" in value else [value]
                current = document.setdefault(field, [])
                for item in items:
                    if item not in current:
                        current.append(item)
            else:
                raise NotImplementedError(f"Unsupported update operator {operator}")


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed `DocumentStore` with the same id and update semantics as the
    Mongo implementation.

    `fail_on(operation, collection)` makes the next calls of that operation
    raise, to exercise compensation paths.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Document]] = defaultdict(dict)
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self.calls: List[Tuple[str, str]] = []

    def fail_on(self, operation: str, collection: str, error: Optional[Exception] = None) -> None:
        self.failures[(operation, collection)] = error or StoreError(f"{operation} on '{collection}' failed")

    def _record(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        error = self.failures.get((operation, collection))
        if error is not None:
            raise error

    def seed(self, collection: str, document: Document) -> Document:
        """Insert a document directly, bypassing failure injection."""
        stored = copy.deepcopy(document)
        stored["id"] = stored.get("id") or new_object_id()
        self.collections[collection][stored["id"]] = stored
        return copy.deepcopy(stored)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        return _read_copy(self.collections[collection].get(doc_id))

    def count(self, collection: str) -> int:
        return len(self.collections[collection])

    async def insert(self, collection: str, document: Document) -> Document:
        self._record("insert", collection)
        return self.seed(collection, {**document, "id": None})

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        to_object_id(doc_id)
        self._record("find_by_id", collection)
        return self.get(collection, doc_id)

    async def find_by_ids(self, collection: str, doc_ids: Iterable[str]) -> List[Document]:
        doc_ids = [str(to_object_id(doc_id)) for doc_id in doc_ids]
        self._record("find_by_ids", collection)
        return [self.get(collection, doc_id) for doc_id in doc_ids if doc_id in self.collections[collection]]

    async def find(self, collection: str, query: Optional[Document] = None) -> List[Document]:
        self._record("find", collection)
        return [
            _read_copy(document)
            for document in self.collections[collection].values()
            if _matches(document, query or {})
        ]

    async def find_by_id_and_update(
        self, collection: str, doc_id: str, patch: Document, return_updated: bool = True
    ) -> Optional[Document]:
        to_object_id(doc_id)
        self._record("find_by_id_and_update", collection)
        document = self.collections[collection].get(doc_id)
        if document is None:
            return None
        before = _read_copy(document)
        _apply_update(document, patch)
        return _read_copy(document) if return_updated else before

    async def find_by_id_and_delete(self, collection: str, doc_id: str) -> Optional[Document]:
        to_object_id(doc_id)
        self._record("find_by_id_and_delete", collection)
        return _read_copy(self.collections[collection].pop(doc_id, None))


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def midnight(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def mail_manager():
    manager = MagicMock(spec=MailManager)
    manager.send_trip_invitation = AsyncMock(return_value=True)
    return manager


@pytest.fixture
def trip_service(store, mail_manager):
    return TripService(store, mail_manager)


@pytest.fixture
def owner(store):
    return store.seed(
        USERS, {"username": "alice", "firstname": "Alice", "email": "alice@example.com", "password": "hashed"}
    )


@pytest.fixture
def companion(store):
    return store.seed(USERS, {"username": "bob", "firstname": "Bob", "email": "bob@example.com", "password": "hashed"})


@pytest.fixture
def destination(store):
    return store.seed(DESTINATIONS, {"name": "Lisbon", "country": "Portugal"})


@pytest.fixture
def trip(store, owner, destination):
    return store.seed(
        TRIPS, {"users": [owner["id"]], "destination": destination["id"], "planning": None, "invited_users": []}
    )


@pytest.fixture
def planned_trip(store, owner, destination):
    """A trip with two days (seeded out of date order); only the later day has steps."""
    late_steps = [
        store.seed(TRIP_STEPS, {"title": "Dinner", "datetime": utc(2024, 6, 2, 20)}),
        store.seed(TRIP_STEPS, {"title": "Museum", "datetime": utc(2024, 6, 2, 10)}),
    ]
    late_day = store.seed(TRIP_DAYS, {"title": "Day 2", "day": utc(2024, 6, 2), "steps": [s["id"] for s in late_steps]})
    early_day = store.seed(TRIP_DAYS, {"title": "Day 1", "day": utc(2024, 6, 1), "steps": []})
    planning = store.seed(
        TRIP_PLANNINGS,
        {
            "days": [late_day["id"], early_day["id"]],
            "created_at": utc(2024, 5, 1),
            "updated_at": utc(2024, 5, 1),
            "updated_by": owner["id"],
        },
    )
    return store.seed(
        TRIPS,
        {"users": [owner["id"]], "destination": destination["id"], "planning": planning["id"], "invited_users": []},
    )


def reachable_ids(store: InMemoryDocumentStore, trip: Document) -> Dict[str, List[Any]]:
    """Ids of every planning, day and step reachable from `trip` when it was seeded."""
    planning = store.get(TRIP_PLANNINGS, trip["planning"]) if trip.get("planning") else None
    days = [store.get(TRIP_DAYS, day_id) for day_id in (planning or {}).get("days", [])]
    steps = [step_id for day in days if day for step_id in day.get("steps", [])]
    return {
        TRIP_PLANNINGS: [planning["id"]] if planning else [],
        TRIP_DAYS: [day["id"] for day in days if day],
        TRIP_STEPS: steps,
    }
