"""
Invitation lifecycle.

    PENDING --accept--> ACCEPTED
    PENDING --reject--> REJECTED
    PENDING --expires_at passes--> EXPIRED

All three outcomes are terminal. There is no background job moving
invitations to EXPIRED; instead every read that depends on invitation
visibility first runs a lazy sweep scoped to the workspace and/or email it
is about to look at, and visibility queries filter on ``expires_at > now``
regardless of whether the sweep has touched a row yet.
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import is_constraint_violation, utcnow
from app.errors import (
    ConflictError,
    ErrorCode,
    require_string,
    require_uuid,
    workspace_not_visible,
)
from app.models.invitation import PENDING_INVITATION_CONSTRAINT, Invitation, InvitationStatus
from app.models.membership import (
    MEMBERSHIP_CONSTRAINT,
    MembershipRole,
    MembershipStatus,
    WorkspaceMember,
)
from app.models.user import User, normalize_email
from app.models.workspace import Workspace
from app.services.access import AuthorizationResolver, Clock, require_verified_user
from app.services.email import EmailSender
from app.settings import settings

logger = logging.getLogger(__name__)


def _already_pending() -> ConflictError:
    return ConflictError(
        ErrorCode.INVITATION_ALREADY_PENDING,
        "A pending invitation already exists for this email",
    )


def _not_pending() -> ConflictError:
    return ConflictError(ErrorCode.INVITATION_NOT_PENDING, "Invitation is not pending")


# SQLite reports the columns instead of the constraint or index name
def _is_pending_conflict(exc: IntegrityError) -> bool:
    return (
        is_constraint_violation(exc, PENDING_INVITATION_CONSTRAINT)
        or "invitations.workspace_id, invitations.email" in str(exc.orig)
    )


def _is_membership_conflict(exc: IntegrityError) -> bool:
    return (
        is_constraint_violation(exc, MEMBERSHIP_CONSTRAINT)
        or "workspace_members.workspace_id, workspace_members.user_id" in str(exc.orig)
    )


async def expire_stale_invitations(
    db: AsyncSession,
    now,
    workspace_id: uuid.UUID | None = None,
    email: str | None = None,
) -> int:
    """Flip PENDING invitations whose expiry has passed to EXPIRED.

    The update is committed right away so the transition survives a domain
    error raised later in the same request.
    """
    stmt = (
        update(Invitation)
        .where(
            Invitation.status == InvitationStatus.PENDING,
            Invitation.expires_at <= now,
        )
        .values(status=InvitationStatus.EXPIRED)
        .execution_options(synchronize_session="fetch")
    )
    if workspace_id is not None:
        stmt = stmt.where(Invitation.workspace_id == workspace_id)
    if email is not None:
        stmt = stmt.where(Invitation.email == email)

    result = await db.execute(stmt)
    if result.rowcount:
        await db.commit()
        logger.info(
            "Expired %d stale invitation(s) (workspace=%s, email=%s)",
            result.rowcount, workspace_id, email,
        )
    return result.rowcount or 0


class InvitationService:
    """Invite, accept, reject and list workspace invitations."""

    def __init__(self, db: AsyncSession, email_sender: EmailSender, clock: Clock = utcnow):
        self.db = db
        self.email_sender = email_sender
        self.clock = clock
        self.access = AuthorizationResolver(db, clock)

    async def _ensure_no_pending(self, workspace_id: uuid.UUID, email: str, now) -> None:
        result = await self.db.execute(
            select(Invitation.id).where(
                Invitation.workspace_id == workspace_id,
                Invitation.email == email,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at > now,
            )
        )
        if result.first():
            raise _already_pending()

    async def invite(self, actor: User, workspace_id: str, email: str) -> Invitation:
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        email = normalize_email(require_string(email, "email"))
        now = self.clock()

        await expire_stale_invitations(self.db, now, workspace_id=wid, email=email)
        await self.access.assert_admin(actor, wid)

        result = await self.db.execute(
            select(WorkspaceMember.id)
            .join(User, User.id == WorkspaceMember.user_id)
            .where(
                WorkspaceMember.workspace_id == wid,
                WorkspaceMember.status == MembershipStatus.ACTIVE,
                User.email == email,
            )
        )
        if result.first():
            raise ConflictError(
                ErrorCode.ALREADY_WORKSPACE_MEMBER,
                "User is already an active workspace member",
            )
        await self._ensure_no_pending(wid, email, now)

        invitation, token = Invitation.create(
            workspace_id=wid,
            email=email,
            invited_by_user_id=actor.id,
            now=now,
            expires_in_days=settings.invitation_ttl_days,
        )
        self.db.add(invitation)
        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if _is_pending_conflict(exc):
                raise _already_pending() from exc
            raise

        workspace = await self.db.get(Workspace, wid)
        await self.email_sender.send_invitation(
            to_email=email,
            token=token,
            workspace_name=workspace.name,
            invited_by=actor.email,
        )
        logger.info("User %s invited %s to workspace %s", actor.id, email, wid)
        return invitation

    async def _load_own_invitation(self, actor: User, invitation_id: str) -> Invitation:
        iid = require_uuid(invitation_id, "invitationId")
        await expire_stale_invitations(self.db, self.clock(), email=actor.email)

        # Concurrent accept/reject of the same row serialize here
        result = await self.db.execute(
            select(Invitation)
            .where(Invitation.id == iid)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invitation = result.scalar_one_or_none()
        # Someone else's invitation is indistinguishable from a missing one
        if invitation is None or invitation.email != actor.email:
            raise workspace_not_visible()
        return invitation

    async def _require_pending(self, invitation: Invitation) -> None:
        now = self.clock()
        if invitation.status == InvitationStatus.PENDING and not invitation.is_pending(now):
            invitation.status = InvitationStatus.EXPIRED
            await self.db.commit()
        if invitation.status == InvitationStatus.EXPIRED:
            raise ConflictError(ErrorCode.INVITATION_EXPIRED, "Invitation has expired")
        if invitation.status != InvitationStatus.PENDING:
            raise _not_pending()

    async def _close(self, invitation: Invitation, status: InvitationStatus) -> None:
        """Move a PENDING invitation to a terminal status; only one caller wins."""
        result = await self.db.execute(
            update(Invitation)
            .where(
                Invitation.id == invitation.id,
                Invitation.status == InvitationStatus.PENDING,
            )
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise _not_pending()

    async def accept(self, actor: User, invitation_id: str) -> WorkspaceMember:
        """Accept an invitation, creating or reactivating the membership."""
        actor = require_verified_user(actor)
        invitation = await self._load_own_invitation(actor, invitation_id)
        await self._require_pending(invitation)
        await self._close(invitation, InvitationStatus.ACCEPTED)

        result = await self.db.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == invitation.workspace_id,
                WorkspaceMember.user_id == actor.id,
            )
        )
        membership = result.scalar_one_or_none()
        if membership:
            # Reactivation keeps whatever role the user had before
            membership.status = MembershipStatus.ACTIVE
        else:
            membership = WorkspaceMember(
                workspace_id=invitation.workspace_id,
                user_id=actor.id,
                role=MembershipRole.MEMBER,
                status=MembershipStatus.ACTIVE,
            )
            self.db.add(membership)

        try:
            await self.db.flush()
        except IntegrityError as exc:
            await self.db.rollback()
            if _is_membership_conflict(exc):
                raise _not_pending() from exc
            raise

        logger.info("User %s joined workspace %s", actor.id, invitation.workspace_id)
        return membership

    async def reject(self, actor: User, invitation_id: str) -> Invitation:
        actor = require_verified_user(actor)
        invitation = await self._load_own_invitation(actor, invitation_id)
        await self._require_pending(invitation)
        await self._close(invitation, InvitationStatus.REJECTED)

        logger.info("User %s rejected invitation %s", actor.id, invitation.id)
        return invitation

    async def list_pending(self, actor: User, workspace_id: str) -> list[Invitation]:
        """Live invitations of a workspace, newest first. Admin only."""
        actor = require_verified_user(actor)
        wid = require_uuid(workspace_id, "workspaceId")
        now = self.clock()

        await expire_stale_invitations(self.db, now, workspace_id=wid)
        await self.access.assert_admin(actor, wid)

        result = await self.db.execute(
            select(Invitation)
            .where(
                Invitation.workspace_id == wid,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at > now,
            )
            .order_by(Invitation.created_at.desc())
        )
        return list(result.scalars().all())
