"""
Workspace management: creation, the visible-workspace list and its custom
ordering, schedule updates, confirmed deletion and the member roster.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import utcnow
from app.errors import (
    BadRequestError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    require_string,
    require_uuid,
    workspace_not_visible,
)
from app.models.invitation import Invitation, InvitationStatus
from app.models.membership import MembershipRole, MembershipStatus, WorkspaceMember
from app.models.user import User, normalize_email
from app.models.workspace import UserWorkspacePreference, Workspace
from app.services.access import AuthorizationResolver, Clock, require_verified_user
from app.services.invitations import expire_stale_invitations
from app.services.password import verify_password
from app.services.schedule import resolve_schedule_hours, validate_timezone
from app.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class VisibleWorkspace:
    """A workspace the user can see, with the reason(s) it is visible."""

    workspace: Workspace
    membership: WorkspaceMember | None = None
    invitation: Invitation | None = None


class WorkspaceService:
    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.access = AuthorizationResolver(db, clock)

    async def _get_workspace(self, workspace_id: uuid.UUID) -> Workspace:
        workspace = await self.db.get(Workspace, workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace not found")
        return workspace

    async def create_workspace(
        self,
        actor: User,
        name: str,
        timezone: str | None = None,
        schedule_start_hour: int | None = None,
        schedule_end_hour: int | None = None,
    ) -> tuple[Workspace, WorkspaceMember]:
        """Create a workspace together with its creator's ADMIN membership."""
        actor = require_verified_user(actor)
        name = require_string(name, "name")
        tz = settings.default_timezone if timezone is None else validate_timezone(timezone)
        start, end = resolve_schedule_hours(schedule_start_hour, schedule_end_hour)

        workspace = Workspace(
            name=name,
            timezone=tz,
            schedule_start_hour=start,
            schedule_end_hour=end,
            created_by_user_id=actor.id,
        )
        self.db.add(workspace)
        await self.db.flush()

        membership = WorkspaceMember(
            workspace_id=workspace.id,
            user_id=actor.id,
            role=MembershipRole.ADMIN,
            status=MembershipStatus.ACTIVE,
        )
        self.db.add(membership)
        await self.db.flush()

        logger.info("Workspace %s created by user %s", workspace.id, actor.id)
        return workspace, membership

    async def _visible_workspaces(self, actor: User) -> dict[uuid.UUID, VisibleWorkspace]:
        now = self.clock()
        await expire_stale_invitations(self.db, now, email=actor.email)

        visible: dict[uuid.UUID, VisibleWorkspace] = {}

        result = await self.db.execute(
            select(WorkspaceMember, Workspace)
            .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
            .where(
                WorkspaceMember.user_id == actor.id,
                WorkspaceMember.status == MembershipStatus.ACTIVE,
            )
        )
        for membership, workspace in result.all():
            visible[workspace.id] = VisibleWorkspace(workspace=workspace, membership=membership)

        result = await self.db.execute(
            select(Invitation, Workspace)
            .join(Workspace, Workspace.id == Invitation.workspace_id)
            .where(
                Invitation.email == actor.email,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at > now,
            )
        )
        for invitation, workspace in result.all():
            item = visible.setdefault(workspace.id, VisibleWorkspace(workspace=workspace))
            item.invitation = invitation

        return visible

    async def list_visible(self, actor: User) -> list[VisibleWorkspace]:
        """Workspaces the user is a member of or invited to.

        Ordered by the user's saved order first, then newest first, then name.
        """
        actor = require_verified_user(actor)
        visible = await self._visible_workspaces(actor)
        if not visible:
            return []

        result = await self.db.execute(
            select(UserWorkspacePreference.workspace_id, UserWorkspacePreference.sort_order).where(
                UserWorkspacePreference.user_id == actor.id,
                UserWorkspacePreference.workspace_id.in_(visible.keys()),
            )
        )
        sort_orders = dict(result.all())

        def sort_key(item: VisibleWorkspace):
            order = sort_orders.get(item.workspace.id)
            return (
                order is None,
                order or 0,
                -item.workspace.created_at.timestamp(),
                item.workspace.name,
            )

        return sorted(visible.values(), key=sort_key)

    async def reorder_visible(self, actor: User, workspace_ids: list[str]) -> None:
        """Persist a custom order; the list must be exactly the visible set."""
        actor = require_verified_user(actor)
        if not isinstance(workspace_ids, list):
            raise BadRequestError("workspaceIds must be an array of UUIDs")
        ordered = [require_uuid(value, "workspaceIds[]") for value in workspace_ids]
        if len(set(ordered)) != len(ordered):
            raise BadRequestError("workspaceIds must not contain duplicates")

        visible = await self._visible_workspaces(actor)
        if set(ordered) != set(visible):
            raise workspace_not_visible()

        result = await self.db.execute(
            select(UserWorkspacePreference).where(UserWorkspacePreference.user_id == actor.id)
        )
        existing = {pref.workspace_id: pref for pref in result.scalars().all()}

        for sort_order, workspace_id in enumerate(ordered):
            preference = existing.get(workspace_id)
            if preference:
                preference.sort_order = sort_order
            else:
                self.db.add(
                    UserWorkspacePreference(
                        user_id=actor.id, workspace_id=workspace_id, sort_order=sort_order
                    )
                )
        await self.db.flush()

    async def update_workspace(
        self,
        actor: User,
        workspace_id: str,
        name: str | None = None,
        timezone: str | None = None,
        schedule_start_hour: int | None = None,
        schedule_end_hour: int | None = None,
    ) -> Workspace:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_admin(actor, wid)
        workspace = await self._get_workspace(wid)

        changes: dict = {}
        if name is not None:
            changes["name"] = require_string(name, "name")
        if timezone is not None:
            changes["timezone"] = validate_timezone(timezone)
        if schedule_start_hour is not None or schedule_end_hour is not None:
            start, end = resolve_schedule_hours(
                workspace.schedule_start_hour if schedule_start_hour is None else schedule_start_hour,
                workspace.schedule_end_hour if schedule_end_hour is None else schedule_end_hour,
            )
            changes["schedule_start_hour"] = start
            changes["schedule_end_hour"] = end

        if not changes:
            raise BadRequestError("At least one field must be provided to update workspace")

        for field, value in changes.items():
            setattr(workspace, field, value)
        await self.db.flush()

        logger.info("Workspace %s updated: %s", wid, ", ".join(changes))
        return workspace

    async def delete_workspace(
        self,
        actor: User,
        workspace_id: str,
        workspace_name: str,
        email: str,
        password: str,
    ) -> None:
        """Delete a workspace and everything it owns after re-confirming identity."""
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_admin(actor, wid)
        workspace = await self._get_workspace(wid)

        workspace_name = require_string(workspace_name, "workspaceName")
        email = normalize_email(require_string(email, "email"))
        password = require_string(password, "password")

        if (
            workspace.name != workspace_name
            or actor.email != email
            or not verify_password(password, actor.hashed_password)
        ):
            raise ForbiddenError(
                ErrorCode.WORKSPACE_CANCEL_CONFIRMATION_FAILED,
                "Workspace cancellation confirmation failed",
            )

        # Rooms, bookings, memberships, invitations and preferences go with it
        await self.db.delete(workspace)
        await self.db.flush()
        logger.info("Workspace %s deleted by user %s", wid, actor.id)

    async def list_members(
        self, actor: User, workspace_id: str
    ) -> list[tuple[WorkspaceMember, User]]:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        await self.access.assert_admin(actor, wid)

        result = await self.db.execute(
            select(WorkspaceMember, User)
            .join(User, User.id == WorkspaceMember.user_id)
            .where(
                WorkspaceMember.workspace_id == wid,
                WorkspaceMember.status == MembershipStatus.ACTIVE,
            )
            .order_by(WorkspaceMember.created_at.asc())
        )
        return [(membership, user) for membership, user in result.all()]
