"""
FastAPI dependencies for authentication, database, and service collaborators.
"""

from typing import Annotated

from fastapi import Cookie, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db, utcnow
from app.models.user import User
from app.services.access import Clock
from app.services.email import EmailSender, email_service
from app.services.identity import IdentityService

# Type alias for database dependency
DBSession = Annotated[AsyncSession, Depends(get_db)]


def get_clock() -> Clock:
    """Source of "now" for the request; overridden in tests to pin time."""
    return utcnow


def get_email_sender() -> EmailSender:
    return email_service


ClockDep = Annotated[Clock, Depends(get_clock)]
EmailSenderDep = Annotated[EmailSender, Depends(get_email_sender)]


def get_session_token(
    request: Request,
    session_token: str | None = Cookie(default=None),
) -> str | None:
    """Raw session token from ``Authorization: Bearer`` or the session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return session_token


SessionToken = Annotated[str | None, Depends(get_session_token)]


async def get_current_user(
    db: DBSession,
    token: SessionToken,
    email_sender: EmailSenderDep,
    clock: ClockDep,
) -> User:
    """Authenticated user (raises 401 UNAUTHORIZED if not authenticated)."""
    return await IdentityService(db, email_sender, clock).authenticate(token)


# Type alias for authenticated user dependency
CurrentUser = Annotated[User, Depends(get_current_user)]


def get_request_id(request: Request) -> str:
    """Get or generate request ID for logging."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "-")
