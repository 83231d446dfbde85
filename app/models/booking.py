"""
Booking model: a reservation of a room for a half-open [start_at, end_at) interval.

Overlap exclusion for ACTIVE bookings is enforced by PostgreSQL exclusion
constraints (btree_gist); the application-level checks in the booking
service are only a fast-reject path in front of them.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DDL, CheckConstraint, ForeignKey, Index, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base, UTCDateTime
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin


ROOM_OVERLAP_CONSTRAINT = "bookings_active_room_overlap"
USER_OVERLAP_CONSTRAINT = "bookings_active_user_overlap"


class BookingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class BookingCriticality(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Booking(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Room reservation."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("end_at > start_at", name="ck_booking_valid_range"),
        Index("ix_bookings_room_start", "room_id", "start_at"),
        Index("ix_bookings_workspace_status", "workspace_id", "status"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False
    )
    created_by_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    criticality: Mapped[BookingCriticality] = mapped_column(
        String(10), default=BookingCriticality.MEDIUM, nullable=False
    )
    status: Mapped[BookingStatus] = mapped_column(
        String(20), default=BookingStatus.ACTIVE, nullable=False
    )

    workspace = relationship("Workspace", back_populates="bookings", lazy="noload")
    room = relationship("Room", back_populates="bookings", lazy="noload")

    @property
    def is_active(self) -> bool:
        return self.status == BookingStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Booking room={self.room_id} {self.start_at.isoformat()}-{self.end_at.isoformat()} {self.status}>"


event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {ROOM_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (room_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status = 'ACTIVE')"
    ).execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {USER_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (workspace_id WITH =, created_by_user_id WITH =, "
        "tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status = 'ACTIVE')"
    ).execute_if(dialect="postgresql"),
)
