"""
# Reference Population

Resolves stored reference ids into the referenced documents at read time,
recursively and with a sort order per level.

## Relationship Schema

`REFERENCES` declares, per collection, which fields hold references and where
they point:

```
trips.users          -> users            (many)
trips.destination    -> destinations
trips.planning       -> trip_plannings
trip_plannings.days  -> trip_days        (many)
trip_plannings.updated_by -> users
trip_days.steps      -> trip_steps       (many)
```

## Population Requests

A request is a tree of `Populate(path, sort, populate)` nodes. The resolver
looks up `path` in the schema of the current collection, fetches the children
in one query, sorts them if asked and recurses into `populate`:

```python
resolver = ReferenceResolver(store)
trip = await resolver.populate("trips", trip, [
    Populate("destination"),
    Populate("planning", populate=(DAYS_WITH_STEPS,)),
])
```

Dangling references are dropped from lists and become `None` for single
references. User documents never carry their `password` field out.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pymongo import ASCENDING, DESCENDING

from be_my_guide.database.collections import DESTINATIONS, TRIP_DAYS, TRIP_PLANNINGS, TRIP_STEPS, TRIPS, USERS
from be_my_guide.database.document_store import Document, DocumentStore

USER_PRIVATE_FIELDS: Tuple[str, ...] = ("password",)


@dataclass(frozen=True)
class Reference:
    """A reference field: target collection, cardinality and fields hidden on resolution."""

    collection: str
    many: bool = False
    exclude: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Populate:
    """One node of a population request. `sort` is `(field, ASCENDING | DESCENDING)`."""

    path: str
    sort: Optional[Tuple[str, int]] = None
    populate: Tuple["Populate", ...] = ()


REFERENCES: Dict[str, Dict[str, Reference]] = {
    TRIPS: {
        "users": Reference(USERS, many=True, exclude=USER_PRIVATE_FIELDS),
        "destination": Reference(DESTINATIONS),
        "planning": Reference(TRIP_PLANNINGS),
    },
    TRIP_PLANNINGS: {
        "days": Reference(TRIP_DAYS, many=True),
        "updated_by": Reference(USERS, exclude=USER_PRIVATE_FIELDS),
    },
    TRIP_DAYS: {
        "steps": Reference(TRIP_STEPS, many=True),
    },
}

# Population trees shared by the trip services
STEPS_BY_DATETIME = Populate("steps", sort=("datetime", ASCENDING))
DAYS_BY_DATE = Populate("days", sort=("day", ASCENDING))
DAYS_WITH_STEPS = Populate("days", sort=("day", ASCENDING), populate=(STEPS_BY_DATETIME,))


def sort_documents(documents: List[Document], field: str, direction: int = ASCENDING) -> List[Document]:
    """Stable sort on `field`; documents missing the field go last."""
    present = [doc for doc in documents if doc.get(field) is not None]
    missing = [doc for doc in documents if doc.get(field) is None]
    present.sort(key=lambda doc: doc[field], reverse=direction == DESCENDING)
    return present + missing


class ReferenceResolver:
    """Populates documents read from a `DocumentStore` according to `REFERENCES`."""

    def __init__(self, store: DocumentStore, references: Optional[Dict[str, Dict[str, Reference]]] = None):
        self.store = store
        self.references = references if references is not None else REFERENCES

    async def populate(
        self, collection: str, document: Optional[Document], paths: Sequence[Populate]
    ) -> Optional[Document]:
        """Return a copy of `document` with every requested path resolved."""
        if document is None:
            return None
        populated = dict(document)
        await asyncio.gather(*(self._populate_path(collection, populated, path) for path in paths))
        return populated

    async def populate_many(
        self, collection: str, documents: Sequence[Document], paths: Sequence[Populate]
    ) -> List[Document]:
        if not paths:
            return list(documents)
        return list(await asyncio.gather(*(self.populate(collection, doc, paths) for doc in documents)))

    def _reference(self, collection: str, path: str) -> Reference:
        try:
            return self.references[collection][path]
        except KeyError:
            raise ValueError(f"No reference declared for '{collection}.{path}'") from None

    async def _populate_path(self, collection: str, document: Document, path: Populate) -> None:
        reference = self._reference(collection, path.path)
        value: Any = document.get(path.path)

        if reference.many:
            ids = [ref for ref in (value or []) if isinstance(ref, str)]
            found = await self.store.find_by_ids(reference.collection, ids)
            by_id = {child["id"]: child for child in found}
            children = [by_id[ref] for ref in ids if ref in by_id]
            if path.sort:
                children = sort_documents(children, *path.sort)
        else:
            child = await self.store.find_by_id(reference.collection, value) if isinstance(value, str) else None
            children = [child] if child is not None else []

        if reference.exclude:
            children = [
                {key: val for key, val in child.items() if key not in reference.exclude} for child in children
            ]
        if path.populate:
            children = await self.populate_many(reference.collection, children, path.populate)

        if reference.many:
            document[path.path] = children
        else:
            document[path.path] = children[0] if children else None
