"""
Application exceptions for the Be My Guide API.

Services raise these and the HTTP layer maps them onto status codes:

- `ValidationError` -> 400 (malformed id, missing required field)
- `NotFoundError` -> 404 (referenced document absent on a direct read)
- `StoreError` -> 400 (underlying MongoDB failure, never retried)
- `MailError`: raised by the mail manager, logged and never surfaced by invitations

Usage:
    from be_my_guide.errors import NotFoundError, ErrorCode

    raise NotFoundError("Trip not found", code=ErrorCode.TRIP_NOT_FOUND)
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error codes returned to API clients alongside the message."""

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_ID = "INVALID_ID"
    USER_REQUIRED = "USER_REQUIRED"

    # Lookup errors
    NOT_FOUND = "NOT_FOUND"
    TRIP_NOT_FOUND = "TRIP_NOT_FOUND"
    PLANNING_NOT_FOUND = "PLANNING_NOT_FOUND"
    DAY_NOT_FOUND = "DAY_NOT_FOUND"
    STEP_NOT_FOUND = "STEP_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Storage errors
    STORE_ERROR = "STORE_ERROR"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    # Collaborator errors
    MAIL_DELIVERY_FAILED = "MAIL_DELIVERY_FAILED"


class BeMyGuideError(Exception):
    """Base exception for all Be My Guide errors."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.VALIDATION_ERROR):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code.value}


class ValidationError(BeMyGuideError):
    """Input failed validation (bad id format, missing required member...)."""

    pass


class NotFoundError(BeMyGuideError):
    """A referenced document does not exist."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.NOT_FOUND):
        super().__init__(message, code)


class StoreError(BeMyGuideError):
    """The document store rejected or failed an operation."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.STORE_ERROR):
        super().__init__(message, code)


class MailError(BeMyGuideError):
    """The mail relay rejected or failed to accept a message."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.MAIL_DELIVERY_FAILED):
        super().__init__(message, code)
