"""
# Database Package

Persistence layer of the Be My Guide API, built on **Motor**.

- **`manager`**: `DatabaseManager` and the `db_manager` instance (connection lifecycle, indexes).
- **`document_store`**: `DocumentStore` interface consumed by the services and its Motor implementation.
- **`population`**: recursive reference resolution driven by the declared relationship schema.

```python
from be_my_guide.database import db_manager, MongoDocumentStore

await db_manager.connect()
store = MongoDocumentStore(db_manager)
trip = await store.find_by_id("trips", trip_id)
```
"""

from be_my_guide.database.document_store import DocumentStore, MongoDocumentStore
from be_my_guide.database.manager import DatabaseManager, db_manager
from be_my_guide.database.population import REFERENCES, Populate, Reference, ReferenceResolver

__all__ = [
    "DatabaseManager",
    "db_manager",
    "DocumentStore",
    "MongoDocumentStore",
    "Populate",
    "Reference",
    "REFERENCES",
    "ReferenceResolver",
]
