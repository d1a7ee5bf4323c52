"""Helpers for 24-character hex MongoDB ObjectIds exchanged as strings."""

from typing import Any

from bson import ObjectId

from be_my_guide.errors import ErrorCode, ValidationError


def is_object_id(value: Any) -> bool:
    """Return True when `value` is an ObjectId or its 24 hex characters form."""
    if isinstance(value, ObjectId):
        return True
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)


def to_object_id(value: Any) -> ObjectId:
    """
    Convert a hex id string into an `ObjectId`.

    Raises:
        ValidationError: If `value` is not a well-formed id.
    """
    if isinstance(value, ObjectId):
        return value
    if not is_object_id(value):
        raise ValidationError(f"Incorrect id format or length: {value!r}", code=ErrorCode.INVALID_ID)
    return ObjectId(value)


def new_object_id() -> str:
    return str(ObjectId())


def any_reference_form(value: str) -> dict:
    """Query condition matching a reference stored either as hex or as an `ObjectId`."""
    return {"$in": [value, to_object_id(value)]}
