"""
Local identity provider: registration, email verification and login sessions.

Session and verification tokens are opaque random strings; only their
SHA-256 digest is stored (see app.security).
"""

import logging
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import utcnow
from app.errors import (
    BadRequestError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    UnauthorizedError,
    require_string,
)
from app.models.user import EmailVerificationToken, User, normalize_email
from app.models.user_session import UserSession
from app.security import generate_token, hash_token
from app.services.access import Clock
from app.services.email import EmailSender
from app.services.password import check_password_policy, hash_password, verify_password
from app.settings import settings

logger = logging.getLogger(__name__)


class IdentityService:
    def __init__(self, db: AsyncSession, email_sender: EmailSender, clock: Clock = utcnow):
        self.db = db
        self.email_sender = email_sender
        self.clock = clock

    async def _find_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def register(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> User:
        """Create an unverified account and send its verification token."""
        email = normalize_email(require_string(email, "email"))
        if "@" not in email:
            raise BadRequestError("email must be a valid email address")
        first_name = require_string(first_name, "firstName")
        last_name = require_string(last_name, "lastName")
        password = check_password_policy(password)

        if await self._find_user_by_email(email):
            raise ConflictError(ErrorCode.EMAIL_ALREADY_REGISTERED, "Email is already registered")

        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            hashed_password=hash_password(password),
        )
        self.db.add(user)
        await self.db.flush()

        token = generate_token()
        self.db.add(
            EmailVerificationToken(
                user_id=user.id,
                token_hash=hash_token(token),
                expires_at=self.clock() + timedelta(minutes=settings.email_verification_ttl_minutes),
            )
        )
        await self.db.flush()

        await self.email_sender.send_verification(to_email=email, token=token)
        logger.info("Registered user %s", user.id)
        return user

    async def verify_email(self, token: str) -> User:
        token = require_string(token, "token")
        now = self.clock()

        result = await self.db.execute(
            select(EmailVerificationToken).where(
                EmailVerificationToken.token_hash == hash_token(token)
            )
        )
        record = result.scalar_one_or_none()
        if record is None or not record.is_usable(now):
            raise BadRequestError("Verification token is invalid or expired")

        user = await self.db.get(User, record.user_id)
        record.consumed_at = now
        if user.email_verified_at is None:
            user.email_verified_at = now
        await self.db.flush()

        logger.info("Verified email for user %s", user.id)
        return user

    async def login(
        self,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> tuple[UserSession, str]:
        """Open a new session; returns it with the raw token for the client."""
        email = normalize_email(require_string(email, "email"))
        password = require_string(password, "password")

        user = await self._find_user_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            raise UnauthorizedError("Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)
        if not user.is_email_verified:
            raise ForbiddenError(ErrorCode.EMAIL_NOT_VERIFIED, "Email must be verified before login")

        session, token = UserSession.create_session(
            user_id=user.id,
            now=self.clock(),
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self.db.add(session)
        await self.db.flush()

        logger.info("User %s logged in (session %s)", user.id, session.id)
        return session, token

    async def _find_session(self, token: str) -> UserSession | None:
        result = await self.db.execute(
            select(UserSession).where(UserSession.token_hash == hash_token(token))
        )
        return result.scalar_one_or_none()

    async def authenticate(self, token: str | None) -> User:
        """Resolve a raw session token to its user, sliding the expiry forward."""
        if not token:
            raise UnauthorizedError()
        now = self.clock()

        session = await self._find_session(token)
        if session is None or not session.is_valid(now):
            raise UnauthorizedError()

        user = await self.db.get(User, session.user_id)
        if user is None:
            raise UnauthorizedError()

        session.refresh(now)
        await self.db.flush()
        return user

    async def logout(self, token: str | None) -> None:
        if not token:
            return
        session = await self._find_session(token)
        if session is not None:
            await self.db.delete(session)
            await self.db.flush()
