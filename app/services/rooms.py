"""
Room management within a workspace.
"""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import is_constraint_violation, utcnow
from app.errors import (
    BadRequestError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    require_string,
    require_uuid,
)
from app.models.booking import Booking
from app.models.room import ROOM_NAME_CONSTRAINT, Room
from app.models.user import User
from app.services.access import AuthorizationResolver, Clock, require_verified_user

logger = logging.getLogger(__name__)

# Distinguishes "leave unchanged" from an explicit None (clear) on update
UNSET = object()


def _room_name_taken() -> ConflictError:
    return ConflictError(
        ErrorCode.ROOM_NAME_ALREADY_EXISTS,
        "A room with this name already exists in the workspace",
    )


def _is_room_name_conflict(exc: IntegrityError) -> bool:
    # SQLite reports the columns instead of the constraint name
    return is_constraint_violation(exc, ROOM_NAME_CONSTRAINT) or "rooms.name" in str(exc.orig)


class RoomService:
    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.access = AuthorizationResolver(db, clock)

    async def _get_room(self, workspace_id: uuid.UUID, room_id: uuid.UUID) -> Room:
        result = await self.db.execute(
            select(Room).where(Room.id == room_id, Room.workspace_id == workspace_id)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise NotFoundError("Room not found")
        return room

    async def _ensure_name_free(
        self, workspace_id: uuid.UUID, name: str, exclude_id: uuid.UUID | None = None
    ) -> None:
        stmt = select(Room.id).where(Room.workspace_id == workspace_id, Room.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Room.id != exclude_id)
        if (await self.db.execute(stmt)).first():
            raise _room_name_taken()

    async def _flush(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if _is_room_name_conflict(exc):
                raise _room_name_taken() from exc
            raise

    async def create_room(
        self, actor: User, workspace_id: str, name: str, description: str | None = None
    ) -> Room:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_admin(actor, wid)

        name = require_string(name, "name")
        if description is not None:
            description = require_string(description, "description")
        await self._ensure_name_free(wid, name)

        room = Room(workspace_id=wid, name=name, description=description)
        self.db.add(room)
        await self._flush()
        logger.info("Room %s (%s) created in workspace %s", room.id, name, wid)
        return room

    async def list_rooms(self, actor: User, workspace_id: str) -> list[Room]:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_active_member(actor, wid)

        result = await self.db.execute(
            select(Room).where(Room.workspace_id == wid).order_by(Room.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_room(self, actor: User, workspace_id: str, room_id: str) -> Room:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        rid = require_uuid(room_id, "roomId")
        await self.access.assert_active_member(actor, wid)
        return await self._get_room(wid, rid)

    async def update_room(
        self,
        actor: User,
        workspace_id: str,
        room_id: str,
        name: str | None = None,
        description=UNSET,
    ) -> Room:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        rid = require_uuid(room_id, "roomId")
        await self.access.assert_admin(actor, wid)
        room = await self._get_room(wid, rid)

        changes: dict = {}
        if name is not None:
            changes["name"] = require_string(name, "name")
        if description is not UNSET:
            changes["description"] = (
                None if description is None else require_string(description, "description")
            )
        if not changes:
            raise BadRequestError("At least one field must be provided to update room")

        if "name" in changes:
            await self._ensure_name_free(wid, changes["name"], exclude_id=rid)
        for field, value in changes.items():
            setattr(room, field, value)
        await self._flush()
        return room

    async def delete_room(self, actor: User, workspace_id: str, room_id: str) -> None:
        """Delete a room that has never been booked."""
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        rid = require_uuid(room_id, "roomId")
        await self.access.assert_admin(actor, wid)
        room = await self._get_room(wid, rid)

        # Cancelled bookings count too, they stay queryable
        booking_count = await self.db.scalar(
            select(func.count(Booking.id)).where(
                Booking.workspace_id == wid, Booking.room_id == rid
            )
        )
        if booking_count:
            raise ConflictError(
                ErrorCode.ROOM_HAS_BOOKINGS, "Cannot delete a room that has bookings"
            )

        await self.db.delete(room)
        await self.db.flush()
        logger.info("Room %s deleted from workspace %s", rid, wid)
