"""
User session model for multi-device session management.

Allows users to be logged in on multiple devices simultaneously. Only the
SHA-256 digest of a session token is stored; the raw token lives in the
client's bearer header or cookie.
"""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base, UTCDateTime
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin
from app.security import generate_token, hash_token
from app.settings import settings


class UserSession(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    Individual user session for multi-device support.

    Each login creates a new session record, allowing the same user
    to be logged in on multiple devices without invalidating other sessions.
    """

    __tablename__ = "user_sessions"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    # Device/client information
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv4 or IPv6

    last_used_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    user = relationship("User", back_populates="sessions", lazy="noload")

    @classmethod
    def create_session(
        cls,
        user_id: uuid.UUID,
        now: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple["UserSession", str]:
        """
        Create a new session for a user.

        Returns:
            Tuple of (new UserSession not yet added to DB, raw token)
        """
        token = generate_token()
        session = cls(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=now + timedelta(hours=settings.session_expire_hours),
            user_agent=user_agent,
            ip_address=ip_address,
            last_used_at=now,
        )
        return session, token

    def is_valid(self, now: datetime) -> bool:
        """Check if session is still valid (not expired)."""
        return now < self.expires_at

    def refresh(self, now: datetime) -> None:
        """Sliding window: extend expiration once less than half the lifetime remains."""
        self.last_used_at = now
        expire_hours = settings.session_expire_hours
        if self.expires_at - now < timedelta(hours=expire_hours / 2):
            self.expires_at = now + timedelta(hours=expire_hours)

    def __repr__(self) -> str:
        return f"<UserSession {self.id} user={self.user_id}>"
