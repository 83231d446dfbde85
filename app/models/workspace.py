"""
Workspace model for multi-tenant organization.
"""

import uuid

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin


class Workspace(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Workspace (tenant boundary) owning rooms, members, invitations and bookings."""

    __tablename__ = "workspaces"
    __table_args__ = (
        CheckConstraint(
            "schedule_start_hour >= 0 AND schedule_end_hour <= 24 "
            "AND schedule_end_hour > schedule_start_hour",
            name="ck_workspace_schedule_hours",
        ),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    schedule_start_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=8)
    schedule_end_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=18)
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    # Owned rows are removed by ON DELETE CASCADE in the database
    memberships = relationship(
        "WorkspaceMember", back_populates="workspace", lazy="noload",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    invitations = relationship(
        "Invitation", back_populates="workspace", lazy="noload",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    rooms = relationship(
        "Room", back_populates="workspace", lazy="noload",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    bookings = relationship(
        "Booking", back_populates="workspace", lazy="noload",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Workspace {self.name} tz={self.timezone}>"


class UserWorkspacePreference(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A user's custom position for a workspace in their visible list."""

    __tablename__ = "user_workspace_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "workspace_id", name="uq_workspace_preference_user_workspace"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False)
