"""
Workspace router: workspace lifecycle, visible-list ordering, members and
invitations.
"""

from fastapi import APIRouter, status

from app.deps import ClockDep, CurrentUser, DBSession, EmailSenderDep
from app.schemas import (
    CamelModel,
    InvitationOut,
    InvitationSummary,
    MemberOut,
    MembershipSummary,
    VisibleWorkspaceOut,
    WorkspaceOut,
    WorkspaceWithMembership,
)
from app.services.invitations import InvitationService
from app.services.workspaces import WorkspaceService

router = APIRouter(prefix="/workspaces", tags=["workspaces"])


# -------------------------------------------------------------------------
# Request / response models
# -------------------------------------------------------------------------

class CreateWorkspaceRequest(CamelModel):
    name: str
    timezone: str | None = None
    schedule_start_hour: int | None = None
    schedule_end_hour: int | None = None


class UpdateWorkspaceRequest(CamelModel):
    name: str | None = None
    timezone: str | None = None
    schedule_start_hour: int | None = None
    schedule_end_hour: int | None = None


class ReorderWorkspacesRequest(CamelModel):
    workspace_ids: list[str]


class CancelWorkspaceRequest(CamelModel):
    workspace_name: str
    email: str
    password: str


class InviteRequest(CamelModel):
    email: str


class VisibleWorkspaceList(CamelModel):
    items: list[VisibleWorkspaceOut]


class MemberList(CamelModel):
    items: list[MemberOut]


class InvitationList(CamelModel):
    items: list[InvitationSummary]


# -------------------------------------------------------------------------
# Invitation responses (declared before /{workspace_id} routes)
# -------------------------------------------------------------------------

@router.post("/invitations/{invitation_id}/accept", status_code=status.HTTP_201_CREATED)
async def accept_invitation(
    invitation_id: str,
    user: CurrentUser,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    await InvitationService(db, email_sender, clock).accept(user, invitation_id)
    return {"accepted": True}


@router.post("/invitations/{invitation_id}/reject", status_code=status.HTTP_201_CREATED)
async def reject_invitation(
    invitation_id: str,
    user: CurrentUser,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    await InvitationService(db, email_sender, clock).reject(user, invitation_id)
    return {"rejected": True}


# -------------------------------------------------------------------------
# Workspaces
# -------------------------------------------------------------------------

@router.post("", response_model=WorkspaceWithMembership, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    body: CreateWorkspaceRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    """Create a workspace; the caller becomes its admin."""
    workspace, membership = await WorkspaceService(db, clock).create_workspace(
        user,
        name=body.name,
        timezone=body.timezone,
        schedule_start_hour=body.schedule_start_hour,
        schedule_end_hour=body.schedule_end_hour,
    )
    return WorkspaceWithMembership(
        **WorkspaceOut.model_validate(workspace).model_dump(),
        membership=MembershipSummary.model_validate(membership),
    )


@router.get("", response_model=VisibleWorkspaceList)
async def list_workspaces(user: CurrentUser, db: DBSession, clock: ClockDep):
    """Workspaces the caller belongs to or is invited to."""
    visible = await WorkspaceService(db, clock).list_visible(user)
    items = []
    for item in visible:
        workspace = item.workspace
        items.append(
            VisibleWorkspaceOut(
                id=workspace.id,
                name=workspace.name,
                timezone=workspace.timezone,
                schedule_start_hour=workspace.schedule_start_hour,
                schedule_end_hour=workspace.schedule_end_hour,
                created_at=workspace.created_at,
                updated_at=workspace.updated_at,
                membership=MembershipSummary.model_validate(item.membership) if item.membership else None,
                invitation=InvitationSummary.model_validate(item.invitation) if item.invitation else None,
            )
        )
    return VisibleWorkspaceList(items=items)


@router.post("/order", status_code=status.HTTP_201_CREATED)
async def reorder_workspaces(
    body: ReorderWorkspacesRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    await WorkspaceService(db, clock).reorder_visible(user, body.workspace_ids)
    return {"updated": True}


@router.patch("/{workspace_id}", response_model=WorkspaceOut)
async def update_workspace(
    workspace_id: str,
    body: UpdateWorkspaceRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    return await WorkspaceService(db, clock).update_workspace(
        user,
        workspace_id,
        name=body.name,
        timezone=body.timezone,
        schedule_start_hour=body.schedule_start_hour,
        schedule_end_hour=body.schedule_end_hour,
    )


@router.post("/{workspace_id}/cancel", status_code=status.HTTP_201_CREATED)
async def cancel_workspace(
    workspace_id: str,
    body: CancelWorkspaceRequest,
    user: CurrentUser,
    db: DBSession,
    clock: ClockDep,
):
    """Permanently delete a workspace after name, email and password confirmation."""
    await WorkspaceService(db, clock).delete_workspace(
        user,
        workspace_id,
        workspace_name=body.workspace_name,
        email=body.email,
        password=body.password,
    )
    return {"deleted": True}


@router.get("/{workspace_id}/members", response_model=MemberList)
async def list_members(workspace_id: str, user: CurrentUser, db: DBSession, clock: ClockDep):
    rows = await WorkspaceService(db, clock).list_members(user, workspace_id)
    return MemberList(
        items=[
            MemberOut(
                user_id=member.user_id,
                first_name=member_user.first_name,
                last_name=member_user.last_name,
                email=member_user.email,
                role=member.role,
                status=member.status,
                joined_at=member.created_at,
            )
            for member, member_user in rows
        ]
    )


# -------------------------------------------------------------------------
# Invitations
# -------------------------------------------------------------------------

@router.post(
    "/{workspace_id}/invitations",
    response_model=InvitationOut,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    workspace_id: str,
    body: InviteRequest,
    user: CurrentUser,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    """Invite an email address. The token only travels by email."""
    return await InvitationService(db, email_sender, clock).invite(user, workspace_id, body.email)


@router.get("/{workspace_id}/invitations", response_model=InvitationList)
async def list_pending_invitations(
    workspace_id: str,
    user: CurrentUser,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    invitations = await InvitationService(db, email_sender, clock).list_pending(user, workspace_id)
    return InvitationList(items=invitations)
