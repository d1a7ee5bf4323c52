import asyncio
from datetime import datetime, timezone
from typing import List, Optional

from be_my_guide.database.collections import TRIP_PLANNINGS
from be_my_guide.database.document_store import DocumentStore
from be_my_guide.database.population import DAYS_BY_DATE, DAYS_WITH_STEPS, ReferenceResolver
from be_my_guide.errors import ErrorCode, NotFoundError
from be_my_guide.managers.logging_manager import get_logger
from be_my_guide.models.trip_models import TripDayRequest, TripPlanningResponse
from be_my_guide.services.compensation import compensate
from be_my_guide.services.trip_day_service import TripDayService
from be_my_guide.utils.object_ids import to_object_id

logger = get_logger(prefix="[TripPlanningService]")


class TripPlanningService:
    """
    Storage of trip plannings, the ordered container of itinerary days.

    A planning owns its days, which in turn own their steps.
    """

    def __init__(
        self,
        store: DocumentStore,
        resolver: Optional[ReferenceResolver] = None,
        day_service: Optional[TripDayService] = None,
    ):
        self.store = store
        self.resolver = resolver or ReferenceResolver(store)
        self.day_service = day_service or TripDayService(store, self.resolver)
        self.collection = TRIP_PLANNINGS

    def _not_found(self, planning_id: str) -> NotFoundError:
        return NotFoundError(f"Trip planning {planning_id} not found", code=ErrorCode.PLANNING_NOT_FOUND)

    async def create(self, day_ids: List[str], updated_by: Optional[str] = None) -> TripPlanningResponse:
        now = datetime.now(timezone.utc)
        document = await self.store.insert(
            self.collection,
            {"days": list(day_ids), "created_at": now, "updated_at": now, "updated_by": updated_by},
        )
        logger.info(f"Created trip planning {document['id']} with {len(day_ids)} day(s)")
        return TripPlanningResponse.model_validate(document)

    async def read_with_days(self, planning_id: str) -> TripPlanningResponse:
        """Return the planning with its days resolved, ordered by `day`."""
        document = await self.store.find_by_id(self.collection, planning_id)
        if document is None:
            raise self._not_found(planning_id)
        populated = await self.resolver.populate(self.collection, document, [DAYS_BY_DATE])
        return TripPlanningResponse.model_validate(populated)

    async def add_day(self, planning_id: str, request: TripDayRequest) -> TripPlanningResponse:
        """
        Create a day and append it to the planning.

        The new day is deleted again when the planning is missing or the
        append fails.

        Returns:
            The planning with days ordered by `day` and their steps ordered by `datetime`.
        """
        to_object_id(planning_id)
        day = await self.day_service.create(request)

        try:
            document = await self.store.find_by_id_and_update(
                self.collection,
                planning_id,
                {"$push": {"days": day.id}, "$set": {"updated_at": datetime.now(timezone.utc)}},
            )
            if document is None:
                raise self._not_found(planning_id)
        except Exception as e:
            logger.error(f"Failed to add day {day.id} to planning {planning_id}: {e}")
            await compensate(self.day_service.delete_cascade(day.id), f"delete day {day.id}")
            raise

        populated = await self.resolver.populate(self.collection, document, [DAYS_WITH_STEPS])
        return TripPlanningResponse.model_validate(populated)

    async def delete_cascade(self, planning_id: str) -> Optional[TripPlanningResponse]:
        """
        Delete the planning, all of its days and all of their steps.

        Missing documents anywhere in the tree count as already deleted.
        """
        document = await self.store.find_by_id(self.collection, planning_id)
        if document is None:
            logger.debug(f"Trip planning {planning_id} already deleted")
            return None

        day_ids = document.get("days") or []
        await asyncio.gather(*(self.day_service.delete_cascade(day_id) for day_id in day_ids))

        deleted = await self.store.find_by_id_and_delete(self.collection, planning_id)
        if deleted is None:
            return None
        logger.info(f"Deleted trip planning {planning_id} and {len(day_ids)} day(s)")
        return TripPlanningResponse.model_validate(deleted)
