"""Shared fixtures: in-memory database, pinned clock, recording email sender."""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.db import Base, get_db
from app.deps import get_clock, get_email_sender
from app.main import app
from app.models.membership import MembershipRole, MembershipStatus, WorkspaceMember
from app.models.room import Room
from app.models.user import User, normalize_email
from app.services.invitations import InvitationService
from app.services.password import hash_password
from app.services.workspaces import WorkspaceService

# Sunday 2026-02-22, noon UTC
NOW = datetime(2026, 2, 22, 12, 0, tzinfo=timezone.utc)
PASSWORD = "correct-horse-battery"
PASSWORD_HASH = hash_password(PASSWORD)


class FakeClock:
    """Callable clock pinned to a fixed instant; tests move it explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingEmailSender:
    def __init__(self):
        self.invitations: list[dict] = []
        self.verifications: list[dict] = []

    async def send_invitation(self, to_email, token, workspace_name, invited_by=None) -> bool:
        self.invitations.append({
            "to_email": to_email,
            "token": token,
            "workspace_name": workspace_name,
            "invited_by": invited_by,
        })
        return True

    async def send_verification(self, to_email, token) -> bool:
        self.verifications.append({"to_email": to_email, "token": token})
        return True


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def make_user(db):
    async def _make_user(
        email: str = "ada@example.com",
        first_name: str = "Ada",
        last_name: str = "Lovelace",
        verified: bool = True,
    ) -> User:
        user = User(
            email=normalize_email(email),
            first_name=first_name,
            last_name=last_name,
            hashed_password=PASSWORD_HASH,
            email_verified_at=NOW if verified else None,
        )
        db.add(user)
        await db.flush()
        return user

    return _make_user


@pytest.fixture
def make_workspace(db, clock):
    async def _make_workspace(owner: User, name: str = "HQ", **kwargs):
        workspace, _ = await WorkspaceService(db, clock).create_workspace(owner, name, **kwargs)
        return workspace

    return _make_workspace


@pytest.fixture
def make_room(db):
    async def _make_room(workspace, name: str = "Ada Room", description: str | None = None) -> Room:
        room = Room(workspace_id=workspace.id, name=name, description=description)
        db.add(room)
        await db.flush()
        return room

    return _make_room


@pytest.fixture
def add_member(db):
    async def _add_member(workspace, user, role=MembershipRole.MEMBER, status=MembershipStatus.ACTIVE):
        membership = WorkspaceMember(
            workspace_id=workspace.id, user_id=user.id, role=role, status=status
        )
        db.add(membership)
        await db.flush()
        return membership

    return _add_member


@pytest.fixture
def invitations(db, email_sender, clock):
    return InvitationService(db, email_sender, clock)


@pytest.fixture
async def client(session_maker, clock, email_sender):
    """HTTP client bound to the app, sharing the test database and clock."""

    async def _get_test_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http
    app.dependency_overrides.clear()
