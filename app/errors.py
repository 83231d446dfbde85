"""
Domain error taxonomy.

Every expected failure of the core is raised as a DomainError carrying a
stable machine code; app.main turns it into a ``{"code", "message"}`` JSON
body with the matching HTTP status.
"""

import uuid
from enum import Enum

from fastapi import status


class ErrorCode(str, Enum):
    # Input validation
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"

    # Authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    WORKSPACE_NOT_VISIBLE = "WORKSPACE_NOT_VISIBLE"
    WORKSPACE_CANCEL_CONFIRMATION_FAILED = "WORKSPACE_CANCEL_CONFIRMATION_FAILED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    # Identity
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"

    # Invitations
    ALREADY_WORKSPACE_MEMBER = "ALREADY_WORKSPACE_MEMBER"
    INVITATION_ALREADY_PENDING = "INVITATION_ALREADY_PENDING"
    INVITATION_NOT_PENDING = "INVITATION_NOT_PENDING"
    INVITATION_EXPIRED = "INVITATION_EXPIRED"

    # Rooms
    ROOM_NAME_ALREADY_EXISTS = "ROOM_NAME_ALREADY_EXISTS"
    ROOM_HAS_BOOKINGS = "ROOM_HAS_BOOKINGS"

    # Bookings
    BOOKING_OVERLAP = "BOOKING_OVERLAP"
    BOOKING_USER_OVERLAP = "BOOKING_USER_OVERLAP"
    BOOKING_MULTI_DAY_NOT_ALLOWED = "BOOKING_MULTI_DAY_NOT_ALLOWED"
    BOOKING_OUTSIDE_ALLOWED_HOURS = "BOOKING_OUTSIDE_ALLOWED_HOURS"
    BOOKING_PAST_DATE_NOT_ALLOWED = "BOOKING_PAST_DATE_NOT_ALLOWED"
    BOOKING_ALREADY_CANCELLED = "BOOKING_ALREADY_CANCELLED"

    # Fallbacks
    DATABASE_CONSTRAINT_ERROR = "DATABASE_CONSTRAINT_ERROR"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class DomainError(Exception):
    """Expected, user-facing failure with a stable code."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code.value, "message": self.message}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code.value}: {self.message}>"


class BadRequestError(DomainError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, code: ErrorCode = ErrorCode.BAD_REQUEST):
        super().__init__(code, message)


class UnauthorizedError(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Invalid access token", code: ErrorCode = ErrorCode.UNAUTHORIZED):
        super().__init__(code, message)


class ForbiddenError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str):
        super().__init__(ErrorCode.NOT_FOUND, message)


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT


def workspace_not_visible() -> ForbiddenError:
    return ForbiddenError(ErrorCode.WORKSPACE_NOT_VISIBLE, "Workspace not visible")


# -------------------------------------------------------------------------
# Input helpers shared by the services
# -------------------------------------------------------------------------

def require_string(value: str | None, field_name: str) -> str:
    """Trimmed non-empty string or BAD_REQUEST."""
    if not isinstance(value, str) or not value.strip():
        raise BadRequestError(f"{field_name} is required")
    return value.strip()


def require_uuid(value: str | uuid.UUID | None, field_name: str) -> uuid.UUID:
    """Parse an identifier or fail with BAD_REQUEST."""
    if isinstance(value, uuid.UUID):
        return value
    raw = require_string(value, field_name)
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise BadRequestError(f"{field_name} must be a valid UUID") from None
