"""
# Trip Service

Aggregate root of the trip-planning graph and the invitation workflow.

## Aggregate

```
Trip ──▶ TripPlanning ──▶ TripDay* ──▶ TripStep*
```

Every node is its own document, so multi-document operations are sequences of
single-document writes:

- **Create** (`add_planning`, `add_day_to_planning`, `add_step_to_day`):
  children are created first and linked last. A failed link deletes the
  children created so far, then re-raises.
- **Delete** (`delete`, `delete_day`): children first, siblings concurrently.
  A child that is already gone counts as deleted.

## Invitations

```
not invited ──update_users──▶ pending ──handle_invitation(accepted)──▶ member
                                 │                                       │
                                 └──handle_invitation(declined)──┐       │
                                                                 ▼       ▼
                                                 not invited ◀──remove_companion
```

Pending invitations are the emails in `invited_users`. Invitation mails are
sent concurrently and a failed delivery never fails the membership update.
"""

import asyncio
from typing import List, Optional

from be_my_guide.database.collections import TRIPS, USERS
from be_my_guide.database.document_store import Document, DocumentStore
from be_my_guide.database.population import DAYS_BY_DATE, DAYS_WITH_STEPS, Populate, ReferenceResolver
from be_my_guide.errors import ErrorCode, NotFoundError, ValidationError
from be_my_guide.managers.logging_manager import get_logger
from be_my_guide.managers.mail_manager import MailManager
from be_my_guide.models.trip_models import (
    AddPlanningRequest,
    CreateTripRequest,
    InvitationRequest,
    TripDayRequest,
    TripDayResponse,
    TripPlanningResponse,
    TripResponse,
    TripStepRequest,
    TripStepResponse,
    UpdateTripDayRequest,
    UpdateTripRequest,
    UpdateTripStepRequest,
    UpdateTripUsersRequest,
)
from be_my_guide.services.compensation import compensate
from be_my_guide.services.trip_day_service import TripDayService
from be_my_guide.services.trip_planning_service import TripPlanningService
from be_my_guide.services.trip_step_service import TripStepService
from be_my_guide.utils.object_ids import any_reference_form, to_object_id

logger = get_logger(prefix="[TripService]")

WITH_DESTINATION = Populate("destination")
WITH_USERS = Populate("users")
WITH_PLANNING_DAYS = Populate("planning", populate=(DAYS_BY_DATE,))
WITH_PLANNING_STEPS = Populate("planning", populate=(DAYS_WITH_STEPS,))


class TripService:
    """
    Trip aggregate operations exposed by the `/trip` routes.

    Collaborators are injected once at startup:

    Args:
        store: Document store holding every collection of the aggregate.
        mail_manager: Sender of invitation emails.
        resolver: Reference resolver, built over `store` when omitted.
    """

    def __init__(
        self,
        store: DocumentStore,
        mail_manager: MailManager,
        resolver: Optional[ReferenceResolver] = None,
    ):
        self.store = store
        self.mail_manager = mail_manager
        self.resolver = resolver or ReferenceResolver(store)
        self.step_service = TripStepService(store)
        self.day_service = TripDayService(store, self.resolver, self.step_service)
        self.planning_service = TripPlanningService(store, self.resolver, self.day_service)
        self.collection = TRIPS

    def _not_found(self, trip_id: str) -> NotFoundError:
        return NotFoundError(f"Trip {trip_id} not found", code=ErrorCode.TRIP_NOT_FOUND)

    async def _get(self, trip_id: str) -> Document:
        document = await self.store.find_by_id(self.collection, trip_id)
        if document is None:
            raise self._not_found(trip_id)
        return document

    async def _read(self, trip_id: str, paths: List[Populate]) -> TripResponse:
        document = await self._get(trip_id)
        populated = await self.resolver.populate(self.collection, document, paths)
        return TripResponse.model_validate(populated)

    async def _update(self, trip_id: str, patch: Document, paths: Optional[List[Populate]] = None) -> TripResponse:
        document = await self.store.find_by_id_and_update(self.collection, trip_id, patch)
        if document is None:
            raise self._not_found(trip_id)
        if paths:
            document = await self.resolver.populate(self.collection, document, paths)
        return TripResponse.model_validate(document)

    # --- Trips ---

    async def create(self, request: CreateTripRequest) -> TripResponse:
        """
        Create a trip. The first member is the owner and is required.

        Everything else is stored as given, except `null` entries after the
        owner, which are dropped.

        Raises:
            ValidationError: If the member list is empty or starts with `null`.
        """
        if not request.users or request.users[0] is None:
            raise ValidationError("User is required", code=ErrorCode.USER_REQUIRED)

        document = request.to_document()
        document["users"] = [user_id for user_id in document["users"] if user_id is not None]
        created = await self.store.insert(self.collection, document)
        logger.info(f"Created trip {created['id']} owned by {document['users'][0]}")
        return TripResponse.model_validate(created)

    async def read_all(self) -> List[TripResponse]:
        documents = await self.store.find(self.collection)
        return [TripResponse.model_validate(document) for document in documents]

    async def read_by_id(self, trip_id: str) -> TripResponse:
        """Trip with its destination, planning and days (ordered by date, steps unresolved)."""
        return await self._read(trip_id, [WITH_DESTINATION, WITH_PLANNING_DAYS])

    async def read_by_id_with_users(self, trip_id: str) -> TripResponse:
        return await self._read(trip_id, [WITH_USERS])

    async def read_by_id_with_minimum_information(self, trip_id: str) -> TripResponse:
        return await self._read(trip_id, [])

    async def read_steps_by_id(self, trip_id: str) -> TripResponse:
        """Trip with the full itinerary: days ordered by date, steps ordered by time."""
        return await self._read(trip_id, [WITH_DESTINATION, WITH_PLANNING_STEPS])

    async def read_by_user_id(self, user_id: str) -> List[TripResponse]:
        """Every trip the user is a member of, with destinations resolved."""
        documents = await self.store.find(self.collection, {"users": any_reference_form(user_id)})
        populated = await self.resolver.populate_many(self.collection, documents, [WITH_DESTINATION])
        return [TripResponse.model_validate(document) for document in populated]

    async def update(self, trip_id: str, request: UpdateTripRequest) -> TripResponse:
        patch = request.to_patch()
        if not patch:
            return await self._read(trip_id, [])
        return await self._update(trip_id, {"$set": patch})

    async def delete(self, trip_id: str) -> TripResponse:
        """
        Delete the trip with its planning, days and steps.

        Raises:
            NotFoundError: If the trip itself does not exist.
        """
        document = await self._get(trip_id)

        if document.get("planning"):
            await self.planning_service.delete_cascade(document["planning"])

        deleted = await self.store.find_by_id_and_delete(self.collection, trip_id)
        if deleted is None:
            raise self._not_found(trip_id)
        logger.info(f"Deleted trip {trip_id}")
        return TripResponse.model_validate(deleted)

    # --- Members and invitations ---

    async def update_users(self, trip_id: str, request: UpdateTripUsersRequest) -> TripResponse:
        """
        Replace the member list and invite newcomers by email.

        Entries with an id are kept as members. Entries with only an email are
        invited, unless an invitation is already pending for that address.
        """
        existing_ids = [entry.id for entry in request.users if entry.id]
        new_emails = list(dict.fromkeys(entry.email for entry in request.users if not entry.id and entry.email))
        for user_id in existing_ids:
            to_object_id(user_id)

        trip = await self._get(trip_id)
        pending = set(trip.get("invited_users") or [])
        to_invite = [email for email in new_emails if email not in pending]

        results = await asyncio.gather(
            *(self.mail_manager.send_trip_invitation(request.invite_from, email, trip_id) for email in to_invite),
            return_exceptions=True,
        )
        for email, result in zip(to_invite, results):
            if isinstance(result, BaseException):
                logger.error(f"Failed to send trip {trip_id} invitation to {email}: {result}", exc_info=result)

        patch: Document = {"$set": {"users": existing_ids}}
        if new_emails:
            patch["$addToSet"] = {"invited_users": {"$each": new_emails}}
        logger.info(f"Trip {trip_id}: {len(existing_ids)} member(s), {len(to_invite)} new invitation(s)")
        return await self._update(trip_id, patch, [WITH_USERS])

    async def remove_companion(self, trip_id: str, user_id: str) -> TripResponse:
        """Remove a member. Removing someone who is not a member changes nothing."""
        return await self._update(trip_id, {"$pull": {"users": any_reference_form(user_id)}}, [WITH_USERS])

    async def handle_invitation(self, trip_id: str, request: InvitationRequest) -> TripResponse:
        """
        Accept or decline a pending invitation.

        Either way the user's email leaves `invited_users`; accepting also
        adds the user to the members.

        Raises:
            NotFoundError: If the trip or the user does not exist.
        """
        trip = await self._get(trip_id)
        user = await self.store.find_by_id(USERS, request.user_id)
        if user is None:
            raise NotFoundError(f"User {request.user_id} not found", code=ErrorCode.USER_NOT_FOUND)

        patch: Document = {}
        if request.accepted:
            if request.user_id in (trip.get("users") or []):
                logger.warning(f"User {request.user_id} accepted trip {trip_id} but is already a member")
            patch["$push"] = {"users": request.user_id}
        if user.get("email"):
            patch["$pull"] = {"invited_users": user["email"]}

        if not patch:
            return TripResponse.model_validate(trip)

        logger.info(f"User {request.user_id} {'accepted' if request.accepted else 'declined'} trip {trip_id}")
        return await self._update(trip_id, patch)

    # --- Planning ---

    async def add_planning(self, trip_id: str, request: AddPlanningRequest) -> TripResponse:
        """
        Create the trip's planning with its first day.

        Writes happen in order day, planning, trip link. A failure deletes
        what was created before it and re-raises.

        Returns:
            The trip with destination and the full itinerary resolved.
        """
        to_object_id(trip_id)
        day = await self.day_service.create(request.days)

        try:
            planning = await self.planning_service.create([day.id], request.updated_by)
        except Exception as e:
            logger.error(f"Failed to create planning for trip {trip_id}: {e}")
            await compensate(self.day_service.delete_cascade(day.id), f"delete day {day.id}")
            raise

        try:
            previous = await self.store.find_by_id_and_update(
                self.collection, trip_id, {"$set": {"planning": planning.id}}, return_updated=False
            )
            if previous is None:
                raise self._not_found(trip_id)
        except Exception as e:
            logger.error(f"Failed to attach planning {planning.id} to trip {trip_id}: {e}")
            await compensate(self.day_service.delete_cascade(day.id), f"delete day {day.id}")
            await compensate(self.planning_service.delete_cascade(planning.id), f"delete planning {planning.id}")
            raise

        if previous.get("planning"):
            logger.warning(f"Trip {trip_id} planning {previous['planning']} replaced by {planning.id} and orphaned")
        logger.info(f"Added planning {planning.id} to trip {trip_id}")
        return await self.read_steps_by_id(trip_id)

    async def add_day_to_planning(self, planning_id: str, request: TripDayRequest) -> TripPlanningResponse:
        return await self.planning_service.add_day(planning_id, request)

    async def update_day(self, day_id: str, request: UpdateTripDayRequest) -> TripDayResponse:
        return await self.day_service.update(day_id, request)

    async def delete_day(self, day_id: str) -> TripDayResponse:
        return await self.day_service.delete(day_id)

    async def add_step_to_day(self, day_id: str, request: TripStepRequest) -> TripDayResponse:
        return await self.day_service.add_step(day_id, request)

    async def update_step(self, step_id: str, request: UpdateTripStepRequest) -> TripStepResponse:
        return await self.step_service.update(step_id, request)

    async def delete_step(self, step_id: str) -> Optional[TripStepResponse]:
        return await self.step_service.delete(step_id)
