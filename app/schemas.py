"""
Response models shared by the routers.

The JSON surface is camelCase; Python attributes stay snake_case.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.booking import BookingCriticality, BookingStatus
from app.models.invitation import InvitationStatus
from app.models.membership import MembershipRole, MembershipStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MembershipSummary(CamelModel):
    role: MembershipRole
    status: MembershipStatus


class InvitationOut(CamelModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    email: str
    status: InvitationStatus
    expires_at: datetime
    invited_by_user_id: uuid.UUID
    created_at: datetime


class InvitationSummary(CamelModel):
    id: uuid.UUID
    status: InvitationStatus
    email: str
    expires_at: datetime
    invited_by_user_id: uuid.UUID
    created_at: datetime


class WorkspaceOut(CamelModel):
    id: uuid.UUID
    name: str
    timezone: str
    schedule_start_hour: int
    schedule_end_hour: int
    created_by_user_id: uuid.UUID
    created_at: datetime
    updated_at: datetime


class WorkspaceWithMembership(WorkspaceOut):
    membership: MembershipSummary


class VisibleWorkspaceOut(CamelModel):
    id: uuid.UUID
    name: str
    timezone: str
    schedule_start_hour: int
    schedule_end_hour: int
    created_at: datetime
    updated_at: datetime
    membership: MembershipSummary | None = None
    invitation: InvitationSummary | None = None


class MemberOut(CamelModel):
    user_id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    role: MembershipRole
    status: MembershipStatus
    joined_at: datetime


class RoomOut(CamelModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    name: str
    description: str | None = None
    created_at: datetime
    updated_at: datetime


class BookingOut(CamelModel):
    id: uuid.UUID
    workspace_id: uuid.UUID
    room_id: uuid.UUID
    created_by_user_id: uuid.UUID
    start_at: datetime
    end_at: datetime
    subject: str
    criticality: BookingCriticality
    status: BookingStatus
    created_at: datetime
    updated_at: datetime


class BookingListItem(BookingOut):
    room_name: str


class UserOut(CamelModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    email_verified_at: datetime | None = None
