import asyncio
from typing import Optional

from be_my_guide.database.collections import TRIP_DAYS
from be_my_guide.database.document_store import Document, DocumentStore
from be_my_guide.database.population import STEPS_BY_DATETIME, ReferenceResolver
from be_my_guide.errors import ErrorCode, NotFoundError
from be_my_guide.managers.logging_manager import get_logger
from be_my_guide.models.trip_models import (
    TripDayRequest,
    TripDayResponse,
    TripStepRequest,
    UpdateTripDayRequest,
)
from be_my_guide.services.compensation import compensate
from be_my_guide.services.trip_step_service import TripStepService
from be_my_guide.utils.object_ids import to_object_id

logger = get_logger(prefix="[TripDayService]")


class TripDayService:
    """
    Storage of itinerary days and the steps they own.

    A day owns its steps: deleting the day deletes them, and steps are only
    created through `add_step`.
    """

    def __init__(
        self,
        store: DocumentStore,
        resolver: Optional[ReferenceResolver] = None,
        step_service: Optional[TripStepService] = None,
    ):
        self.store = store
        self.resolver = resolver or ReferenceResolver(store)
        self.step_service = step_service or TripStepService(store)
        self.collection = TRIP_DAYS

    def _not_found(self, day_id: str) -> NotFoundError:
        return NotFoundError(f"Trip day {day_id} not found", code=ErrorCode.DAY_NOT_FOUND)

    async def _with_steps(self, document: Document) -> TripDayResponse:
        populated = await self.resolver.populate(self.collection, document, [STEPS_BY_DATETIME])
        return TripDayResponse.model_validate(populated)

    # --- CRUD ---

    async def create(self, request: TripDayRequest) -> TripDayResponse:
        document = await self.store.insert(self.collection, request.to_document())
        logger.info(f"Created trip day {document['id']} for {request.day.isoformat()}")
        return TripDayResponse.model_validate(document)

    async def update(self, day_id: str, request: UpdateTripDayRequest) -> TripDayResponse:
        """Update title and/or date. The step list is never touched here."""
        patch = request.to_patch()
        if patch:
            document = await self.store.find_by_id_and_update(self.collection, day_id, {"$set": patch})
        else:
            document = await self.store.find_by_id(self.collection, day_id)

        if document is None:
            raise self._not_found(day_id)
        return TripDayResponse.model_validate(document)

    async def read_with_steps(self, day_id: str) -> TripDayResponse:
        """Return the day with its steps resolved, ordered by `datetime`."""
        document = await self.store.find_by_id(self.collection, day_id)
        if document is None:
            raise self._not_found(day_id)
        return await self._with_steps(document)

    async def delete(self, day_id: str) -> TripDayResponse:
        """
        Delete the day and every step it references.

        Raises:
            NotFoundError: If the day does not exist.
        """
        deleted = await self.delete_cascade(day_id)
        if deleted is None:
            raise self._not_found(day_id)
        return deleted

    async def delete_cascade(self, day_id: str) -> Optional[TripDayResponse]:
        """
        Delete the day and its steps, treating a missing day or step as already deleted.

        Used by the planning and trip cascades.
        """
        document = await self.store.find_by_id(self.collection, day_id)
        if document is None:
            logger.debug(f"Trip day {day_id} already deleted")
            return None

        step_ids = document.get("steps") or []
        await asyncio.gather(*(self.step_service.delete(step_id) for step_id in step_ids))

        deleted = await self.store.find_by_id_and_delete(self.collection, day_id)
        if deleted is None:
            return None
        logger.info(f"Deleted trip day {day_id} and {len(step_ids)} step(s)")
        return TripDayResponse.model_validate(deleted)

    # --- Steps ---

    async def add_step(self, day_id: str, request: TripStepRequest) -> TripDayResponse:
        """
        Create a step and append it to the day's step list.

        If the day is missing or the append fails, the new step is deleted
        again and the error re-raised.

        Returns:
            The day with its steps resolved, ordered by `datetime`.
        """
        to_object_id(day_id)
        step = await self.step_service.create(request)

        try:
            document = await self.store.find_by_id_and_update(self.collection, day_id, {"$push": {"steps": step.id}})
            if document is None:
                raise self._not_found(day_id)
        except Exception as e:
            logger.error(f"Failed to add step {step.id} to day {day_id}: {e}")
            await compensate(self.step_service.delete(step.id), f"delete step {step.id}")
            raise

        return await self._with_steps(document)
