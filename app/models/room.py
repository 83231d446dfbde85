"""
Room model: a bookable resource inside a workspace.
"""

import uuid

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin


ROOM_NAME_CONSTRAINT = "uq_room_workspace_name"


class Room(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Bookable room."""

    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("workspace_id", "name", name=ROOM_NAME_CONSTRAINT),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    workspace = relationship("Workspace", back_populates="rooms", lazy="noload")
    bookings = relationship("Booking", back_populates="room", lazy="noload", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Room {self.name} workspace={self.workspace_id}>"
