"""
Room router, nested under a workspace.
"""

from fastapi import APIRouter, status

from app.deps import ClockDep, CurrentUser, DBSession
from app.schemas import CamelModel, RoomOut
from app.services.rooms import UNSET, RoomService

router = APIRouter(prefix="/workspaces/{workspace_id}/rooms", tags=["rooms"])


class CreateRoomRequest(CamelModel):
    name: str
    description: str | None = None


class UpdateRoomRequest(CamelModel):
    name: str | None = None
    description: str | None = None


class RoomList(CamelModel):
    items: list[RoomOut]


@router.post("", response_model=RoomOut, status_code=status.HTTP_201_CREATED)
async def create_room(
    workspace_id: str,
    body: CreateRoomRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    return await RoomService(db, clock).create_room(
        user, workspace_id, name=body.name, description=body.description
    )


@router.get("", response_model=RoomList)
async def list_rooms(workspace_id: str, user: CurrentUser, db: DBSession, clock: ClockDep):
    rooms = await RoomService(db, clock).list_rooms(user, workspace_id)
    return RoomList(items=rooms)


@router.get("/{room_id}", response_model=RoomOut)
async def get_room(
    workspace_id: str,
    room_id: str,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    return await RoomService(db, clock).get_room(user, workspace_id, room_id)


@router.patch("/{room_id}", response_model=RoomOut)
async def update_room(
    workspace_id: str,
    room_id: str,
    body: UpdateRoomRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    """Partial update; an explicit null description clears it."""
    description = body.description if "description" in body.model_fields_set else UNSET
    return await RoomService(db, clock).update_room(
        user, workspace_id, room_id, name=body.name, description=description
    )


@router.delete("/{room_id}")
async def delete_room(
    workspace_id: str,
    room_id: str,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    await RoomService(db, clock).delete_room(user, workspace_id, room_id)
    return {"deleted": True}
