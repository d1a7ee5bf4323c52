"""
# Trip Routes

REST endpoints of the trip-planning aggregate, mounted under `/trip`.

## API Endpoints

### Trips
- `POST /trip` - Create a trip (`201`, body `{"newTrip": ...}`)
- `GET /trip` - List every trip (`{"trips": [...]}`)
- `GET /trip/user/{id}` - Trips of a member (`{"trip": [...]}`)
- `GET /trip/{id}` - Trip with destination, planning and days
- `GET /trip/steps/{id}` - Trip with the full itinerary
- `GET /trip/{id}/users` - Trip with members resolved
- `GET /trip/{id}/information` - Trip document only
- `PUT /trip/{id}` - Update destination or members
- `DELETE /trip/{id}` - Delete the trip and its itinerary

### Members
- `PUT /trip/{id}/users` - Replace members, invite new emails
- `PUT /trip/{id}/invitation` - Accept or decline an invitation
- `DELETE /trip/{id}/users/{user_id}` - Remove a member

### Itinerary
The `{id}` of these routes is the id of the planning, day or step acted on,
not of the trip:

- `POST /trip/{id}/planning` - Create the planning with its first day (trip id)
- `POST|PUT|DELETE /trip/{id}/planning/day` - Add (planning id), update or delete (day id) a day
- `POST|PUT|DELETE /trip/{id}/day/step` - Add (day id), update or delete (step id) a step

## Errors

A malformed id answers `404` on reads and `400` on writes. Missing documents
answer `404`; every other failure answers `400` with `{"message", "code"}`.
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request, status

from be_my_guide.errors import BeMyGuideError, NotFoundError
from be_my_guide.managers.logging_manager import get_logger
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
from be_my_guide.services.trip_service import TripService
from be_my_guide.utils.object_ids import is_object_id

logger = get_logger(prefix="[Trip Routes]")

INCORRECT_ID = "Incorrect id format or length"

router = APIRouter(prefix="/trip", tags=["trip"])


def get_trip_service(request: Request) -> TripService:
    """The `TripService` wired by the application lifespan."""
    return request.app.state.trip_service


def check_read_id(value: str) -> None:
    if not is_object_id(value):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=INCORRECT_ID)


def check_write_id(value: str, message: str = INCORRECT_ID) -> None:
    if not is_object_id(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"message": message})


def to_http_exception(error: Exception, action: str) -> HTTPException:
    """Map a service failure onto the status code returned to the client."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.to_dict())
    if isinstance(error, BeMyGuideError):
        logger.warning(f"Failed to {action}: {error.message}")
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_dict())
    logger.error(f"Failed to {action}: {error}", exc_info=True)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"message": f"Failed to {action}"})


# --- Trips ---


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: CreateTripRequest, trip_service: TripService = Depends(get_trip_service)
) -> Dict[str, TripResponse]:
    """
    Create a trip.

    The first entry of `users` is the owner and must be set.

    Raises:
        HTTPException(400): If the owner is missing or the store rejects the trip.
    """
    try:
        trip = await trip_service.create(request)
    except Exception as e:
        raise to_http_exception(e, "create trip")
    return {"newTrip": trip}


@router.get("")
async def fetch_all_trips(trip_service: TripService = Depends(get_trip_service)) -> Dict[str, List[TripResponse]]:
    try:
        trips = await trip_service.read_all()
    except Exception as e:
        raise to_http_exception(e, "fetch trips")
    return {"trips": trips}


@router.get("/user/{id}")
async def fetch_trips_by_user_id(
    id: str, trip_service: TripService = Depends(get_trip_service)
) -> Dict[str, List[TripResponse]]:
    """Trips the user is a member of, with their destinations."""
    check_read_id(id)
    try:
        trips = await trip_service.read_by_user_id(id)
    except Exception as e:
        raise to_http_exception(e, "fetch trips by user")
    return {"trip": trips}


@router.get("/steps/{id}", response_model=TripResponse)
async def fetch_trip_steps(id: str, trip_service: TripService = Depends(get_trip_service)):
    """Trip with destination, days ordered by date and steps ordered by time."""
    check_read_id(id)
    try:
        return await trip_service.read_steps_by_id(id)
    except Exception as e:
        raise to_http_exception(e, "fetch trip steps")


@router.get("/{id}", response_model=TripResponse)
async def fetch_trip(id: str, trip_service: TripService = Depends(get_trip_service)):
    check_read_id(id)
    try:
        return await trip_service.read_by_id(id)
    except Exception as e:
        raise to_http_exception(e, "fetch trip")


@router.get("/{id}/users", response_model=TripResponse)
async def fetch_trip_with_users(id: str, trip_service: TripService = Depends(get_trip_service)):
    check_read_id(id)
    try:
        return await trip_service.read_by_id_with_users(id)
    except Exception as e:
        raise to_http_exception(e, "fetch trip users")


@router.get("/{id}/information", response_model=TripResponse)
async def fetch_trip_information(id: str, trip_service: TripService = Depends(get_trip_service)):
    check_read_id(id)
    try:
        return await trip_service.read_by_id_with_minimum_information(id)
    except Exception as e:
        raise to_http_exception(e, "fetch trip information")


@router.put("/{id}", response_model=TripResponse)
async def update_trip(id: str, request: UpdateTripRequest, trip_service: TripService = Depends(get_trip_service)):
    check_write_id(id)
    try:
        return await trip_service.update(id, request)
    except Exception as e:
        raise to_http_exception(e, "update trip")


# --- Members ---


@router.put("/{id}/users", response_model=TripResponse)
async def update_trip_users(
    id: str, request: UpdateTripUsersRequest, trip_service: TripService = Depends(get_trip_service)
):
    """
    Replace the members and invite the new email addresses.

    Invitation mails that cannot be delivered are logged; the update still succeeds.
    """
    check_write_id(id)
    try:
        return await trip_service.update_users(id, request)
    except Exception as e:
        raise to_http_exception(e, "update trip users")


@router.put("/{id}/invitation", response_model=TripResponse)
async def handle_trip_invitation(
    id: str, request: InvitationRequest, trip_service: TripService = Depends(get_trip_service)
):
    check_write_id(id, "Incorrect trip id format or length")
    try:
        return await trip_service.handle_invitation(id, request)
    except Exception as e:
        raise to_http_exception(e, "handle trip invitation")


# --- Itinerary ---


@router.post("/{id}/planning", response_model=TripResponse)
async def add_trip_planning(
    id: str, request: AddPlanningRequest, trip_service: TripService = Depends(get_trip_service)
):
    check_write_id(id)
    try:
        return await trip_service.add_planning(id, request)
    except Exception as e:
        raise to_http_exception(e, "add trip planning")


@router.post("/{id}/planning/day", response_model=TripPlanningResponse)
async def add_planning_day(id: str, request: TripDayRequest, trip_service: TripService = Depends(get_trip_service)):
    check_write_id(id)
    try:
        return await trip_service.add_day_to_planning(id, request)
    except Exception as e:
        raise to_http_exception(e, "add day to planning")


@router.put("/{id}/planning/day", response_model=TripDayResponse)
async def update_planning_day(
    id: str, request: UpdateTripDayRequest, trip_service: TripService = Depends(get_trip_service)
):
    check_write_id(id)
    try:
        return await trip_service.update_day(id, request)
    except Exception as e:
        raise to_http_exception(e, "update planning day")


@router.delete("/{id}/planning/day", response_model=TripDayResponse)
async def delete_planning_day(id: str, trip_service: TripService = Depends(get_trip_service)):
    """Delete a day together with its steps."""
    check_write_id(id)
    try:
        return await trip_service.delete_day(id)
    except Exception as e:
        raise to_http_exception(e, "delete planning day")


@router.post("/{id}/day/step", response_model=TripDayResponse)
async def add_day_step(id: str, request: TripStepRequest, trip_service: TripService = Depends(get_trip_service)):
    check_write_id(id)
    try:
        return await trip_service.add_step_to_day(id, request)
    except Exception as e:
        raise to_http_exception(e, "add step to day")


@router.put("/{id}/day/step", response_model=TripStepResponse)
async def update_day_step(
    id: str, request: UpdateTripStepRequest, trip_service: TripService = Depends(get_trip_service)
):
    check_write_id(id)
    try:
        return await trip_service.update_step(id, request)
    except Exception as e:
        raise to_http_exception(e, "update day step")


@router.delete("/{id}/day/step", response_model=TripStepResponse)
async def delete_day_step(id: str, trip_service: TripService = Depends(get_trip_service)):
    check_write_id(id)
    try:
        step = await trip_service.delete_step(id)
    except Exception as e:
        raise to_http_exception(e, "delete day step")
    if step is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"message": f"Trip step {id} not found"})
    return step


@router.delete("/{id}/users/{user_id}", response_model=TripResponse)
async def remove_trip_companion(id: str, user_id: str, trip_service: TripService = Depends(get_trip_service)):
    check_write_id(id)
    check_write_id(user_id, "Incorrect user id format or length")
    try:
        return await trip_service.remove_companion(id, user_id)
    except Exception as e:
        raise to_http_exception(e, "remove trip companion")


@router.delete("/{id}", response_model=TripResponse)
async def delete_trip(id: str, trip_service: TripService = Depends(get_trip_service)):
    """Delete the trip, its planning, all of its days and all of their steps."""
    check_write_id(id)
    try:
        return await trip_service.delete(id)
    except Exception as e:
        raise to_http_exception(e, "delete trip")
