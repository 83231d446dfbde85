"""
Membership model for workspace memberships.
"""

import uuid
from enum import Enum

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.base import TimestampMixin, UUIDPrimaryKeyMixin


MEMBERSHIP_CONSTRAINT = "uq_workspace_member_workspace_user"


class MembershipRole(str, Enum):
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class MembershipStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class WorkspaceMember(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Workspace membership model."""

    __tablename__ = "workspace_members"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name=MEMBERSHIP_CONSTRAINT),
        Index("ix_workspace_members_user_status", "user_id", "status"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[MembershipRole] = mapped_column(String(20), default=MembershipRole.MEMBER, nullable=False)
    status: Mapped[MembershipStatus] = mapped_column(
        String(20), default=MembershipStatus.ACTIVE, nullable=False
    )

    # Relationships
    workspace = relationship("Workspace", back_populates="memberships", lazy="noload")
    user = relationship("User", back_populates="memberships", lazy="noload")

    @property
    def is_admin(self) -> bool:
        return self.role == MembershipRole.ADMIN

    def __repr__(self) -> str:
        return f"<WorkspaceMember user={self.user_id} workspace={self.workspace_id} role={self.role}>"
