from typing import Optional

from be_my_guide.database.collections import TRIP_STEPS
from be_my_guide.database.document_store import DocumentStore
from be_my_guide.errors import ErrorCode, NotFoundError
from be_my_guide.managers.logging_manager import get_logger
from be_my_guide.models.trip_models import TripStepRequest, TripStepResponse, UpdateTripStepRequest

logger = get_logger(prefix="[TripStepService]")


class TripStepService:
    """
    Storage of individual itinerary steps.

    Steps are only ever created through `TripDayService.add_step`, which
    links them to their day; this service knows nothing about the parent.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = TRIP_STEPS

    async def create(self, request: TripStepRequest) -> TripStepResponse:
        document = await self.store.insert(self.collection, request.to_document())
        logger.info(f"Created trip step {document['id']}")
        return TripStepResponse.model_validate(document)

    async def update(self, step_id: str, request: UpdateTripStepRequest) -> TripStepResponse:
        """
        Apply the fields present in `request` to the step.

        Raises:
            NotFoundError: If the step does not exist.
        """
        patch = request.to_patch()
        if patch:
            document = await self.store.find_by_id_and_update(self.collection, step_id, {"$set": patch})
        else:
            document = await self.store.find_by_id(self.collection, step_id)

        if document is None:
            raise NotFoundError(f"Trip step {step_id} not found", code=ErrorCode.STEP_NOT_FOUND)
        return TripStepResponse.model_validate(document)

    async def delete(self, step_id: str) -> Optional[TripStepResponse]:
        """Delete the step and return it, or `None` when it was already gone."""
        document = await self.store.find_by_id_and_delete(self.collection, step_id)
        if document is None:
            logger.debug(f"Trip step {step_id} already deleted")
            return None
        logger.info(f"Deleted trip step {step_id}")
        return TripStepResponse.model_validate(document)
