"""
# Database Management Module

MongoDB connection lifecycle for the Be My Guide API, built on the **Motor**
async driver.

## Lifecycle

1. **Instantiation** (module load): `db_manager` created, no I/O.
2. **Connection** (lifespan startup): `connect()` with exponential backoff.
3. **Indexes**: `create_indexes()` ensures the trip lookup indexes.
4. **Operations**: `get_collection()` hands Motor collections to the
   `MongoDocumentStore`.
5. **Disconnection** (lifespan shutdown): `disconnect()`.

## Usage

```python
from be_my_guide.database import db_manager

await db_manager.connect()
trips = db_manager.get_collection("trips")
await db_manager.disconnect()
```

## Thread Safety

The manager is designed for **asyncio** and is **not thread-safe**; use it
from a single event loop.

Attributes:
    db_logger (Logger): Database operations (`[DATABASE]`).
    perf_logger (Logger): Timings (`[DB_PERFORMANCE]`).
    health_logger (Logger): Health checks (`[DB_HEALTH]`).
    db_manager (DatabaseManager): Global instance, connected in `main.lifespan`.
"""

import asyncio
import time
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from be_my_guide.config import settings
from be_my_guide.database.collections import TRIPS, USERS
from be_my_guide.managers.logging_manager import get_logger

db_logger = get_logger(prefix="[DATABASE]")
perf_logger = get_logger(prefix="[DB_PERFORMANCE]")
health_logger = get_logger(prefix="[DB_HEALTH]")

MAX_POOL_SIZE = 50
MIN_POOL_SIZE = 5


class DatabaseManager:
    """
    Manages the MongoDB client, database handle and index creation.

    **Connection Pooling:**
    Motor manages the pool (5-50 connections) shared by every collection
    obtained from the same manager.

    **Transaction Support Detection:**
    On connect, `transactions_supported` records whether the deployment is a
    replica set or mongos. Trip cascades do not rely on it: every child
    write is its own operation, compensated on failure.

    Attributes:
        client (`Optional[AsyncIOMotorClient]`): `None` until `connect()` succeeds.
        database (`Optional[AsyncIOMotorDatabase]`): Selected database, `None` until connected.
        transactions_supported (`Optional[bool]`): Detected during `connect()`.
    """

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_retries = 3
        self.transactions_supported: Optional[bool] = None

    def _build_connection_string(self) -> str:
        if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
            password = settings.MONGODB_PASSWORD.get_secret_value()
            scheme, _, rest = settings.MONGODB_URL.partition("://")
            db_logger.debug("Using authenticated connection to MongoDB")
            return f"{scheme}://{settings.MONGODB_USERNAME}:{password}@{rest}"
        db_logger.debug("Using unauthenticated connection to MongoDB")
        return settings.MONGODB_URL

    async def connect(self):
        """
        Establish connection to MongoDB with exponential backoff retry logic.

        Up to 3 attempts are made with increasing delays (1s, 2s). The client
        is created with `tz_aware=True` so stored datetimes come back as UTC
        aware values and sort consistently with incoming request data.

        Raises:
            `ServerSelectionTimeoutError`: If MongoDB is unreachable after all attempts.
            `ConnectionFailure`: If authentication fails or the connection is refused.
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB connection process")

        for attempt in range(self._connection_retries):
            attempt_start = time.time()
            try:
                db_logger.info("Connection attempt %d/%d to MongoDB", attempt + 1, self._connection_retries)

                connection_string = self._build_connection_string()

                db_logger.info(
                    "MongoDB connection config - Database: %s, MaxPool: %d, MinPool: %d, ServerTimeout: %dms, ConnTimeout: %dms",
                    settings.MONGODB_DATABASE,
                    MAX_POOL_SIZE,
                    MIN_POOL_SIZE,
                    settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    settings.MONGODB_CONNECTION_TIMEOUT,
                )

                self.client = AsyncIOMotorClient(
                    connection_string,
                    serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT,
                    connectTimeoutMS=settings.MONGODB_CONNECTION_TIMEOUT,
                    maxPoolSize=MAX_POOL_SIZE,
                    minPoolSize=MIN_POOL_SIZE,
                    tz_aware=True,
                )
                self.database = self.client[settings.MONGODB_DATABASE]

                ping_start = time.time()
                await self.client.admin.command("ping")
                ping_duration = time.time() - ping_start

                try:
                    hello = await self.client.admin.command({"hello": 1})
                    self.transactions_supported = bool(hello.get("setName") or hello.get("msg") == "isdbgrid")
                except Exception:
                    self.transactions_supported = False

                total_duration = time.time() - start_time
                perf_logger.info(
                    "MongoDB connection established successfully in %.3fs (ping: %.3fs)", total_duration, ping_duration
                )
                db_logger.info("Successfully connected to MongoDB database: %s", settings.MONGODB_DATABASE)
                return

            except (ServerSelectionTimeoutError, ConnectionFailure) as e:
                attempt_duration = time.time() - attempt_start
                perf_logger.warning("Connection attempt %d failed after %.3fs", attempt + 1, attempt_duration)
                db_logger.warning(
                    "Failed to connect to MongoDB (attempt %d/%d): %s", attempt + 1, self._connection_retries, e
                )
                if attempt == self._connection_retries - 1:
                    db_logger.error("All connection attempts failed after %.3fs", time.time() - start_time)
                    raise

                backoff_time = 2**attempt
                db_logger.info("Waiting %.1fs before retry (exponential backoff)", backoff_time)
                await asyncio.sleep(backoff_time)

    async def disconnect(self):
        """
        Close the Motor client and every pooled connection.

        Safe to call when not connected (logs a warning and returns).
        """
        start_time = time.time()
        db_logger.info("Starting MongoDB disconnection process")

        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            perf_logger.info("MongoDB disconnection completed in %.3fs", time.time() - start_time)
            db_logger.info("Successfully disconnected from MongoDB")
        else:
            db_logger.warning("Disconnect called but no active MongoDB connection found")

    async def health_check(self) -> bool:
        """
        Verify MongoDB connectivity with a `ping`.

        Returns:
            `bool`: `True` if the server answers, `False` otherwise (never raises).
        """
        start_time = time.time()
        try:
            if self.client is None:
                health_logger.warning("Health check failed: No database client available")
                return False

            await self.client.admin.command("ping")
            perf_logger.debug("Database health check completed in %.3fs", time.time() - start_time)
            return True

        except (ServerSelectionTimeoutError, ConnectionFailure) as e:
            health_logger.error("Database health check failed: %s", e)
            return False
        except Exception as e:
            health_logger.error("Unexpected error during health check: %s", e)
            return False

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Retrieve a MongoDB collection by name from the connected database.

        Raises:
            `ConnectionError`: If `connect()` has not been called.
        """
        if self.database is None:
            db_logger.error("Attempted to get collection '%s' without database connection", collection_name)
            raise ConnectionError("Database not connected. Call connect() first.")

        return self.database[collection_name]

    async def create_indexes(self):
        """Create the indexes backing trip lookups."""
        start_time = time.time()
        db_logger.info("Starting database index creation process")

        trips_collection = self.get_collection(TRIPS)
        # readByUserId filters on membership
        await self._create_index_if_not_exists(trips_collection, [("users", ASCENDING)], {})
        await self._create_index_if_not_exists(trips_collection, [("planning", ASCENDING)], {"sparse": True})

        users_collection = self.get_collection(USERS)
        await self._create_index_if_not_exists(users_collection, [("email", ASCENDING)], {"unique": True, "sparse": True})

        perf_logger.info("Database index creation completed in %.3fs", time.time() - start_time)

    async def _create_index_if_not_exists(
        self, collection: AsyncIOMotorCollection, field_spec: Any, options: Dict[str, Any]
    ):
        """Create an index if it doesn't already exist"""
        start_time = time.time()
        try:
            await collection.create_index(field_spec, **options)
            perf_logger.debug("Created/ensured index '%s' in %.3fs", field_spec, time.time() - start_time)
        except Exception as e:
            db_logger.warning("Could not create/ensure index '%s': %s", field_spec, e)

    def log_query_start(self, collection_name: str, operation: str, query: Optional[Dict] = None) -> float:
        """Log the start of a database query and return the start time"""
        db_logger.debug("Starting %s operation on collection '%s' - Query: %s", operation, collection_name, query or {})
        return time.time()

    def log_query_success(self, collection_name: str, operation: str, start_time: float, result_count: Optional[int] = None):
        """Log successful completion of a database query with its duration"""
        duration = time.time() - start_time
        if result_count is not None:
            perf_logger.debug(
                "%s on '%s' completed in %.3fs - %d records", operation, collection_name, duration, result_count
            )
        else:
            perf_logger.debug("%s on '%s' completed in %.3fs", operation, collection_name, duration)

    def log_query_error(self, collection_name: str, operation: str, start_time: float, error: Exception):
        """Log database query errors with context and duration"""
        duration = time.time() - start_time
        perf_logger.error("%s on '%s' failed after %.3fs", operation, collection_name, duration)
        db_logger.error("%s operation failed on collection '%s': %s", operation, collection_name, error)


# Global database manager instance
db_manager = DatabaseManager()
