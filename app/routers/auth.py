"""
Authentication router: registration, email verification, login and logout.
"""

from datetime import datetime

from fastapi import APIRouter, Request, Response, status

from app.deps import ClockDep, CurrentUser, DBSession, EmailSenderDep, SessionToken
from app.schemas import CamelModel, UserOut
from app.services.identity import IdentityService
from app.settings import settings

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(CamelModel):
    email: str
    password: str
    first_name: str
    last_name: str


class RegisterResponse(CamelModel):
    user_id: str
    email: str
    requires_email_verification: bool = True


class VerifyEmailRequest(CamelModel):
    token: str


class LoginRequest(CamelModel):
    email: str
    password: str


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: datetime


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    """Create an account; the verification token is delivered by email."""
    user = await IdentityService(db, email_sender, clock).register(
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
    )
    return RegisterResponse(user_id=str(user.id), email=user.email)


@router.post("/verify-email", status_code=status.HTTP_201_CREATED)
async def verify_email(
    body: VerifyEmailRequest,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    await IdentityService(db, email_sender, clock).verify_email(body.token)
    return {"verified": True}


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    """Open a session. The token is returned and also set as an httponly cookie."""
    session, token = await IdentityService(db, email_sender, clock).login(
        email=body.email,
        password=body.password,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.client.host if request.client else None,
    )
    response.set_cookie(
        key="session_token",
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_expire_hours * 3600,
    )
    return LoginResponse(access_token=token, expires_at=session.expires_at)


@router.post("/logout")
async def logout(
    response: Response,
    token: SessionToken,
    db: DBSession,
    email_sender: EmailSenderDep,
    clock: ClockDep,
):
    await IdentityService(db, email_sender, clock).logout(token)
    response.delete_cookie("session_token")
    return {"loggedOut": True}


@router.get("/me", response_model=UserOut)
async def me(user: CurrentUser):
    return user
