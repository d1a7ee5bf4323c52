"""
# Be My Guide API Entry Point

Builds the FastAPI application serving the trip-planning API.

## Lifespan

Startup:
1.  **Logging**: configured from `settings.LOG_LEVEL`.
2.  **Database**: `db_manager.connect()` (retries with exponential backoff), then indexes.
3.  **Services**: the document store, reference resolver, mail manager and
    `TripService` are built once and stored on `app.state`.

Shutdown disconnects from MongoDB.

## Running

```bash
be-my-guide
# or
uvicorn be_my_guide.main:app --reload --port 5555
```

Prometheus metrics are exposed on `/metrics`, connectivity on `/health`.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from be_my_guide.config import settings
from be_my_guide.database import MongoDocumentStore, ReferenceResolver, db_manager
from be_my_guide.managers.logging_manager import get_logger, setup_logging
from be_my_guide.managers.mail_manager import MailManager
from be_my_guide.routes import trips_router
from be_my_guide.services.trip_service import TripService

logger = get_logger(prefix="[MAIN]")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Connect to MongoDB and wire the services before serving requests.

    Raises:
        ConnectionError: If MongoDB stays unreachable after every retry.
    """
    setup_logging(settings.LOG_LEVEL)
    startup_start_time = time.time()
    logger.info("Starting Be My Guide API (%s)", "production" if settings.is_production else "development")

    await db_manager.connect()
    await db_manager.create_indexes()

    store = MongoDocumentStore(db_manager)
    resolver = ReferenceResolver(store)
    mail_manager = MailManager()
    if not mail_manager.enabled:
        logger.warning("MAIL_API_URL is not set, invitation emails will only be logged")

    _app.state.store = store
    _app.state.trip_service = TripService(store, mail_manager, resolver)

    logger.info(f"Startup completed in {time.time() - startup_start_time:.3f}s")
    try:
        yield
    finally:
        logger.info("Shutting down Be My Guide API")
        await db_manager.disconnect()


app = FastAPI(
    title="Be My Guide API",
    description="Trip planning: trips, itineraries and companion invitations.",
    version="1.0.0",
    lifespan=lifespan,
    redirect_slashes=False,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are client errors like any other: answer 400."""
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(exc.errors())} validation error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Request validation failed", "code": "VALIDATION_ERROR", "errors": jsonable_encoder(exc.errors())},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(trips_router)


@app.get("/health", include_in_schema=False)
async def health():
    if await db_manager.health_check():
        return {"status": "healthy", "database": "connected"}
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"status": "unhealthy", "database": "disconnected"}
    )


try:
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_instrument_requests_inprogress=True,
    ).instrument(app).expose(app, include_in_schema=False, endpoint="/metrics")
except Exception as e:
    logger.error(f"Failed to configure Prometheus metrics: {e}")


def run():
    """Console entry point."""
    uvicorn.run("be_my_guide.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG, log_level="info")


if __name__ == "__main__":
    run()
