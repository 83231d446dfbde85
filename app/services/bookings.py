"""
Booking admission.

create_booking runs a fixed pipeline and stops at the first failure:

1. input shape (ids, subject, instants, end after start, criticality)
2. the actor is an ACTIVE member of the workspace
3. workspace and room exist, and the room belongs to the workspace
4. start and end fall on the same local date (workspace timezone)
5. local start/end lie inside the workspace schedule window
6. the local date is not before today
7. no ACTIVE booking of the room overlaps [start, end)
8. no ACTIVE booking of the actor in this workspace overlaps [start, end)

Steps 7 and 8 are a fast path only. The PostgreSQL exclusion constraints on
the bookings table decide races; their violations are mapped back to the
same codes.
"""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
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
from app.models.booking import (
    ROOM_OVERLAP_CONSTRAINT,
    USER_OVERLAP_CONSTRAINT,
    Booking,
    BookingCriticality,
    BookingStatus,
)
from app.models.room import Room
from app.models.user import User
from app.models.workspace import Workspace
from app.services.access import AuthorizationResolver, Clock, require_verified_user
from app.services.schedule import ScheduleConfig

logger = logging.getLogger(__name__)


def parse_instant(value: str | datetime | None, field_name: str) -> datetime:
    """ISO-8601 string or datetime to an aware UTC instant. Naive input is UTC."""
    if isinstance(value, datetime):
        instant = value
    else:
        raw = require_string(value, field_name)
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        try:
            instant = datetime.fromisoformat(raw)
        except ValueError:
            raise BadRequestError(f"{field_name} must be a valid ISO date string") from None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def parse_criticality(value: str | None) -> BookingCriticality:
    if value is None:
        return BookingCriticality.MEDIUM
    try:
        return BookingCriticality(value)
    except ValueError:
        raise BadRequestError("criticality must be one of HIGH, MEDIUM, LOW") from None


def parse_bool(value: str | bool | None, default: bool, field_name: str) -> bool:
    """Query-string boolean: true/1 or false/0, case-insensitive."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized in ("true", "1"):
        return True
    if normalized in ("false", "0"):
        return False
    raise BadRequestError(f"{field_name} must be a boolean")


class BookingService:
    """Creates, cancels and lists room bookings."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.access = AuthorizationResolver(db, clock)

    async def _get_workspace(self, workspace_id: uuid.UUID) -> Workspace:
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace

    async def _get_room(self, workspace_id: uuid.UUID, room_id: uuid.UUID) -> Room:
        result = await self.db.execute(
            select(Room).where(Room.id == room_id, Room.workspace_id == workspace_id)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise NotFoundError("Room not found")
        return room

    async def _find_overlap(self, *criteria, start_at: datetime, end_at: datetime) -> Booking | None:
        # Half-open intervals: touching boundaries do not overlap
        result = await self.db.execute(
            select(Booking)
            .where(
                *criteria,
                Booking.status == BookingStatus.ACTIVE,
                Booking.start_at < end_at,
                Booking.end_at > start_at,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_booking(
        self,
        actor: User,
        workspace_id: str,
        room_id: str,
        start_at: str | datetime,
        end_at: str | datetime,
        subject: str,
        criticality: str | None = None,
    ) -> Booking:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        rid = require_uuid(room_id, "roomId")
        subject = require_string(subject, "subject")
        start = parse_instant(start_at, "startAt")
        end = parse_instant(end_at, "endAt")
        if end <= start:
            raise BadRequestError("endAt must be after startAt")
        level = parse_criticality(criticality)

        await self.access.assert_active_member(actor, wid)
        workspace = await self._get_workspace(wid)
        room = await self._get_room(wid, rid)

        schedule = ScheduleConfig.for_workspace(workspace)
        local_day = schedule.local_date(start)
        if local_day != schedule.local_end_date(end):
            raise BadRequestError(
                "Booking must start and end on the same date in the workspace timezone",
                code=ErrorCode.BOOKING_MULTI_DAY_NOT_ALLOWED,
            )

        if not schedule.is_within_schedule(
            schedule.local_minutes(start),
            schedule.local_end_minutes(end),
        ):
            raise BadRequestError(
                f"Booking must be between {schedule.start_hour:02d}:00 and "
                f"{schedule.end_hour:02d}:00 in the workspace timezone",
                code=ErrorCode.BOOKING_OUTSIDE_ALLOWED_HOURS,
            )

        if local_day < schedule.today(self.clock()):
            raise BadRequestError(
                "Booking date cannot be in the past",
                code=ErrorCode.BOOKING_PAST_DATE_NOT_ALLOWED,
            )

        if await self._find_overlap(Booking.room_id == room.id, start_at=start, end_at=end):
            raise ConflictError(
                ErrorCode.BOOKING_OVERLAP, "Booking overlaps with an existing active booking"
            )

        if await self._find_overlap(
            Booking.workspace_id == wid,
            Booking.created_by_user_id == actor.id,
            start_at=start,
            end_at=end,
        ):
            raise ConflictError(
                ErrorCode.BOOKING_USER_OVERLAP,
                "You already have an active booking during this time",
            )

        booking = Booking(
            workspace_id=wid,
            room_id=room.id,
            created_by_user_id=actor.id,
            start_at=start,
            end_at=end,
            subject=subject,
            criticality=level,
            status=BookingStatus.ACTIVE,
        )
        self.db.add(booking)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            translated = self._translate_integrity_error(exc)
            if translated is None:
                raise
            raise translated from exc

        logger.info(
            "Booking %s created on room %s (%s - %s)",
            booking.id, room.id, start.isoformat(), end.isoformat(),
        )
        return booking

    @staticmethod
    def _translate_integrity_error(exc: IntegrityError) -> ConflictError | None:
        if is_constraint_violation(exc, ROOM_OVERLAP_CONSTRAINT):
            return ConflictError(
                ErrorCode.BOOKING_OVERLAP, "Booking overlaps with an existing active booking"
            )
        if is_constraint_violation(exc, USER_OVERLAP_CONSTRAINT):
            return ConflictError(
                ErrorCode.BOOKING_USER_OVERLAP,
                "You already have an active booking during this time",
            )
        return None

    async def cancel_booking(self, actor: User, workspace_id: str, booking_id: str) -> Booking:
        """Soft-cancel a booking; any active member of the workspace may do it."""
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        bid = require_uuid(booking_id, "bookingId")
        await self.access.assert_active_member(actor, wid)

        result = await self.db.execute(
            select(Booking).where(Booking.id == bid, Booking.workspace_id == wid)
        )
        booking = result.scalar_one_or_none()
        if booking is None:
            raise NotFoundError("Booking not found")
        if not booking.is_active:
            raise ConflictError(ErrorCode.BOOKING_ALREADY_CANCELLED, "Booking is already cancelled")

        booking.status = BookingStatus.CANCELLED
        await self.db.flush()
        logger.info("Booking %s cancelled by user %s", booking.id, actor.id)
        return booking

    async def list_bookings(
        self,
        actor: User,
        workspace_id: str,
        mine: bool = True,
        include_past: bool = False,
        include_cancelled: bool = False,
    ) -> list[tuple[Booking, str]]:
        """Bookings of a workspace paired with their room name.

        By default only the caller's ACTIVE bookings starting today or later
        (workspace local time) are returned.
        """
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_active_member(actor, wid)
        workspace = await self._get_workspace(wid)

        stmt = (
            select(Booking, Room.name)
            .join(Room, Room.id == Booking.room_id)
            .where(Booking.workspace_id == wid)
            .order_by(Booking.start_at.asc(), Booking.created_at.asc())
        )
        if mine:
            stmt = stmt.where(Booking.created_by_user_id == actor.id)
        if not include_cancelled:
            stmt = stmt.where(Booking.status == BookingStatus.ACTIVE)
        if not include_past:
            schedule = ScheduleConfig.for_workspace(workspace)
            today_start = schedule.start_of_local_day(schedule.today(self.clock()))
            stmt = stmt.where(Booking.start_at >= today_start)

        result = await self.db.execute(stmt)
        return [(booking, room_name) for booking, room_name in result.all()]
