"""
Booking router, nested under a workspace.
"""

from fastapi import APIRouter, Query, status

from app.deps import ClockDep, CurrentUser, DBSession
from app.schemas import BookingListItem, BookingOut, CamelModel
from app.services.bookings import BookingService, parse_bool

router = APIRouter(prefix="/workspaces/{workspace_id}/bookings", tags=["bookings"])


class CreateBookingRequest(CamelModel):
    room_id: str
    start_at: str
    end_at: str
    subject: str
    criticality: str | None = None


class BookingList(CamelModel):
    items: list[BookingListItem]


@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    workspace_id: str,
    body: CreateBookingRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    """Reserve a room for a same-day slot inside the workspace schedule."""
    return await BookingService(db, clock).create_booking(
        user,
        workspace_id,
        room_id=body.room_id,
        start_at=body.start_at,
        end_at=body.end_at,
        subject=body.subject,
        criticality=body.criticality,
    )


@router.get("", response_model=BookingList)
async def list_bookings(
    workspace_id: str,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
    mine: str | None = Query(None),
    include_past: str | None = Query(None, alias="includePast"),
    include_cancelled: str | None = Query(None, alias="includeCancelled"),
):
    """By default: the caller's active bookings from today onwards."""
    rows = await BookingService(db, clock).list_bookings(
        user,
        workspace_id,
        mine=parse_bool(mine, True, "mine"),
        include_past=parse_bool(include_past, False, "includePast"),
        include_cancelled=parse_bool(include_cancelled, False, "includeCancelled"),
    )
    return BookingList(
        items=[
            BookingListItem(
                **BookingOut.model_validate(booking).model_dump(),
                room_name=room_name,
            )
            for booking, room_name in rows
        ]
    )


@router.post("/{booking_id}/cancel", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def cancel_booking(
    workspace_id: str,
    booking_id: str,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    return await BookingService(db, clock).cancel_booking(user, workspace_id, booking_id)
