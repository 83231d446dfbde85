"""
Invitation model for email-based workspace invitations.
"""

import uuid
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import ForeignKey, Index, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base, UTCDateTime
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin
from app.models.user import normalize_email
from app.security import generate_token, hash_token


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


PENDING_INVITATION_CONSTRAINT = "uq_invitations_pending_workspace_email"


class Invitation(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Time-limited offer of workspace membership tied to an email address."""

    __tablename__ = "invitations"
    __table_args__ = (
        Index("ix_invitations_workspace_email_status", "workspace_id", "email", "status"),
        Index(
            PENDING_INVITATION_CONSTRAINT,
            "workspace_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )

    # Invitation details
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Status tracking
    status: Mapped[InvitationStatus] = mapped_column(
        String(20), default=InvitationStatus.PENDING, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    invited_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    # Relationships
    workspace = relationship("Workspace", back_populates="invitations", lazy="noload")
    invited_by = relationship("User", foreign_keys=[invited_by_user_id], lazy="noload")

    @classmethod
    def create(
        cls,
        workspace_id: uuid.UUID,
        email: str,
        invited_by_user_id: uuid.UUID,
        now: datetime,
        expires_in_days: int = 7,
    ) -> tuple["Invitation", str]:
        """Create a new pending invitation.

        Returns the invitation (not yet added to DB) and the raw token, which
        is never persisted.
        """
        token = generate_token()
        invitation = cls(
            workspace_id=workspace_id,
            email=normalize_email(email),
            token_hash=hash_token(token),
            status=InvitationStatus.PENDING,
            invited_by_user_id=invited_by_user_id,
            expires_at=now + timedelta(days=expires_in_days),
        )
        return invitation, token

    def is_pending(self, now: datetime) -> bool:
        """Pending and not yet past its expiry, whether or not it was swept."""
        return self.status == InvitationStatus.PENDING and self.expires_at > now

    def __repr__(self) -> str:
        return f"<Invitation {self.email} -> workspace={self.workspace_id} status={self.status}>"
