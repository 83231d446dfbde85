"""
Workspace access resolution.

Answers one question for every workspace-scoped operation: what is this
user to this workspace? The answer is one of

- NONE: the workspace is invisible to the user
- PENDING_INVITATION: the user's email holds a live invitation
- ACTIVE_MEMBER: the user has an ACTIVE membership (role ADMIN or MEMBER)

An ACTIVE membership always wins over any invitation row.
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import utcnow
from app.errors import ErrorCode, ForbiddenError, UnauthorizedError, workspace_not_visible
from app.models.invitation import Invitation, InvitationStatus
from app.models.membership import MembershipRole, MembershipStatus, WorkspaceMember
from app.models.user import User

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class RelationshipKind(str, Enum):
    NONE = "NONE"
    PENDING_INVITATION = "PENDING_INVITATION"
    ACTIVE_MEMBER = "ACTIVE_MEMBER"


@dataclass(frozen=True)
class Relationship:
    kind: RelationshipKind
    role: MembershipRole | None = None
    membership: WorkspaceMember | None = None
    invitation: Invitation | None = None

    @property
    def is_admin(self) -> bool:
        return self.kind == RelationshipKind.ACTIVE_MEMBER and self.role == MembershipRole.ADMIN


def require_verified_user(user: User | None) -> User:
    """Reject anonymous users and users whose email is not verified."""
    if user is None:
        raise UnauthorizedError()
    if not user.is_email_verified:
        raise ForbiddenError(ErrorCode.EMAIL_NOT_VERIFIED, "Email address is not verified")
    return user


class AuthorizationResolver:
    """Resolves and enforces a user's relationship to a workspace."""

    def __init__(self, db: AsyncSession, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    async def _sweep(self, workspace_id: uuid.UUID, email: str) -> None:
        from app.services.invitations import expire_stale_invitations

        await expire_stale_invitations(
            self.db, self.clock(), workspace_id=workspace_id, email=email
        )

    async def resolve(self, user: User, workspace_id: uuid.UUID) -> Relationship:
        """Sweep the user's stale invitations to this workspace, then classify."""
        user = require_verified_user(user)
        await self._sweep(workspace_id, user.email)

        result = await self.db.execute(
            select(WorkspaceMember).where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user.id,
                WorkspaceMember.status == MembershipStatus.ACTIVE,
            )
        )
        membership = result.scalar_one_or_none()
        if membership:
            return Relationship(
                kind=RelationshipKind.ACTIVE_MEMBER,
                role=MembershipRole(membership.role),
                membership=membership,
            )

        # Expired-but-unswept rows must not count as pending
        result = await self.db.execute(
            select(Invitation)
            .where(
                Invitation.workspace_id == workspace_id,
                Invitation.email == user.email,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.expires_at > self.clock(),
            )
            .order_by(Invitation.created_at.desc())
            .limit(1)
        )
        invitation = result.scalar_one_or_none()
        if invitation:
            return Relationship(kind=RelationshipKind.PENDING_INVITATION, invitation=invitation)

        return Relationship(kind=RelationshipKind.NONE)

    async def assert_active_member(self, user: User, workspace_id: uuid.UUID) -> WorkspaceMember:
        relationship = await self.resolve(user, workspace_id)
        if relationship.kind == RelationshipKind.NONE:
            raise workspace_not_visible()
        if relationship.kind == RelationshipKind.PENDING_INVITATION:
            raise ForbiddenError(
                ErrorCode.UNAUTHORIZED, "Accept the invitation to access this workspace"
            )
        return relationship.membership

    async def assert_admin(self, user: User, workspace_id: uuid.UUID) -> WorkspaceMember:
        membership = await self.assert_active_member(user, workspace_id)
        if not membership.is_admin:
            logger.info("User %s is not an admin of workspace %s", user.id, workspace_id)
            raise ForbiddenError(ErrorCode.UNAUTHORIZED, "Workspace admin role required")
        return membership
