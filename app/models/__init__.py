# Models package
from app.db import Base
from app.models.user import User, EmailVerificationToken
from app.models.user_session import UserSession
from app.models.workspace import Workspace, UserWorkspacePreference
from app.models.membership import WorkspaceMember, MembershipRole, MembershipStatus
from app.models.invitation import Invitation, InvitationStatus
from app.models.room import Room
from app.models.booking import Booking, BookingCriticality, BookingStatus

__all__ = [
    "Base",
    "User",
    "EmailVerificationToken",
    "UserSession",
    "Workspace",
    "UserWorkspacePreference",
    "WorkspaceMember",
    "MembershipRole",
    "MembershipStatus",
    "Invitation",
    "InvitationStatus",
    "Room",
    "Booking",
    "BookingCriticality",
    "BookingStatus",
]
