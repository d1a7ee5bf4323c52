"""
# Trip Models

Pydantic models for the trip-planning aggregate:

```
Trip ──planning──▶ TripPlanning ──days──▶ TripDay ──steps──▶ TripStep
  │
  ├──users──▶ User (member set)
  ├──destination──▶ Destination
  └──invited_users: [email]  (pending invitations)
```

## Request / Response Separation

- `*Request`: API input validation. Update requests never declare the
  reference lists (`steps`, `days`), so an update cannot re-parent a child.
- `*Response`: serialized output. Reference fields are `Union[str, Model]`
  because the same document is returned with different population depths.

Request bodies accept the camelCase names used by the web client
(`invitedUsers`, `updatedBy`, `inviteFrom`, `userId`, `_id`) as well as the
snake_case field names.

## Dates

`TripDay.day` is a calendar date. MongoDB has no date type, so it is stored as
midnight UTC and converted back on the way out. Step datetimes are normalized
to UTC.
"""

from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from be_my_guide.utils.object_ids import is_object_id


def to_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_to_datetime(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _coerce_date(value: Any) -> Any:
    # full ISO datetimes are accepted and reduced to their UTC date
    if isinstance(value, str) and len(value) > 10:
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    if isinstance(value, datetime):
        return to_utc(value).date()
    return value


def _coerce_reference(value: Any) -> Any:
    """Accept either a hex id or an embedded `{"_id": ...}` / `{"id": ...}` object."""
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


def _check_object_id(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_object_id(value):
        raise ValueError("Incorrect id format or length")
    return value


# --- Steps ---


class TripStepRequest(BaseModel):
    """Body of `POST /trip/{day_id}/day/step`."""

    title: str = Field(..., min_length=1, max_length=200, description="Step title")
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=500)
    datetime: datetime

    @field_validator("datetime")
    @classmethod
    def normalize_datetime(cls, v):
        return to_utc(v)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump()


class UpdateTripStepRequest(BaseModel):
    """Partial step update; only the fields sent are written."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    location: Optional[str] = Field(None, max_length=500)
    datetime: Optional[datetime] = None

    @field_validator("datetime")
    @classmethod
    def normalize_datetime(cls, v):
        return to_utc(v) if v is not None else v

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class TripStepResponse(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    location: Optional[str] = None
    datetime: datetime


# --- Days ---


class TripDayRequest(BaseModel):
    """A day of the itinerary. `day` accepts `2024-06-01` or a full datetime."""

    title: Optional[str] = Field(None, max_length=200)
    day: date

    @field_validator("day", mode="before")
    @classmethod
    def accept_datetimes(cls, v):
        return _coerce_date(v)

    def to_document(self) -> Dict[str, Any]:
        return {"title": self.title, "day": date_to_datetime(self.day), "steps": []}


class UpdateTripDayRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    day: Optional[date] = None

    @field_validator("day", mode="before")
    @classmethod
    def accept_datetimes(cls, v):
        return _coerce_date(v)

    def to_patch(self) -> Dict[str, Any]:
        patch = self.model_dump(exclude_unset=True)
        if patch.get("day") is not None:
            patch["day"] = date_to_datetime(patch["day"])
        return patch


class TripDayResponse(BaseModel):
    id: str
    title: Optional[str] = None
    day: date
    steps: List[Union[TripStepResponse, str]] = Field(default_factory=list)

    @field_validator("day", mode="before")
    @classmethod
    def stored_datetime_to_date(cls, v):
        return _coerce_date(v)


# --- Users and destinations (owned by other modules, only summarized here) ---


class UserSummary(BaseModel):
    """Public view of a user document; the password never leaves the store layer."""

    model_config = ConfigDict(extra="allow")

    id: str
    username: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None


# --- Planning ---


class AddPlanningRequest(BaseModel):
    """Body of `POST /trip/{trip_id}/planning`: the first day and its editor."""

    model_config = ConfigDict(populate_by_name=True)

    days: TripDayRequest
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    @field_validator("updated_by", mode="before")
    @classmethod
    def extract_user_id(cls, v):
        return _check_object_id(_coerce_reference(v))


class TripPlanningResponse(BaseModel):
    id: str
    days: List[Union[TripDayResponse, str]] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[Union[UserSummary, str]] = None


# --- Trips ---


class CreateTripRequest(BaseModel):
    """
    Body of `POST /trip`.

    The first member is the trip owner; the service rejects a missing one.
    """

    model_config = ConfigDict(populate_by_name=True)

    users: List[Optional[str]] = Field(default_factory=list)
    destination: str
    invited_users: List[EmailStr] = Field(default_factory=list, alias="invitedUsers")

    @field_validator("users", mode="before")
    @classmethod
    def extract_user_ids(cls, v):
        if isinstance(v, list):
            return [_coerce_reference(user) for user in v]
        return v

    @field_validator("users")
    @classmethod
    def check_user_ids(cls, v):
        return [_check_object_id(user) for user in v]

    @field_validator("destination", mode="before")
    @classmethod
    def extract_destination_id(cls, v):
        return _check_object_id(_coerce_reference(v))

    def to_document(self) -> Dict[str, Any]:
        return {
            "users": list(self.users),
            "destination": self.destination,
            "planning": None,
            "invited_users": list(dict.fromkeys(self.invited_users)),
        }


class UpdateTripRequest(BaseModel):
    """Body of `PUT /trip/{trip_id}`. Planning and invitations have their own routes."""

    users: Optional[List[str]] = None
    destination: Optional[str] = None

    @field_validator("users", mode="before")
    @classmethod
    def extract_user_ids(cls, v):
        if isinstance(v, list):
            return [_coerce_reference(user) for user in v]
        return v

    @field_validator("users")
    @classmethod
    def check_user_ids(cls, v):
        if v is None:
            return v
        return [_check_object_id(user) for user in v]

    @field_validator("destination", mode="before")
    @classmethod
    def extract_destination_id(cls, v):
        return _check_object_id(_coerce_reference(v))

    def to_patch(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class TripUserEntry(BaseModel):
    """An existing member (`id` set) or someone to invite (only `email`)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, alias="_id")
    email: Optional[EmailStr] = None


class UpdateTripUsersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    users: List[TripUserEntry] = Field(default_factory=list)
    invite_from: str = Field("", alias="inviteFrom", description="Display name of the inviting user")


class InvitationRequest(BaseModel):
    """Transient invitation intent, consumed once by `handle_invitation`."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    accepted: bool

    @field_validator("user_id")
    @classmethod
    def check_user_id(cls, v):
        return _check_object_id(v)


class TripResponse(BaseModel):
    id: str
    users: List[Union[UserSummary, str]] = Field(default_factory=list)
    destination: Optional[Union[Dict[str, Any], str]] = None
    planning: Optional[Union[TripPlanningResponse, str]] = None
    invited_users: List[str] = Field(default_factory=list)
