"""
FastAPI application entry point.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.db import close_db, init_db
from app.deps import get_request_id
from app.errors import DomainError, ErrorCode
from app.routers import auth, bookings, rooms, workspaces
from app.settings import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s" if settings.log_format == "text" else None,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting {settings.app_name} {settings.app_version}...")
    await init_db()
    yield
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add request ID to all requests for logging."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# Health check endpoint
@app.get("/healthz", tags=["health"])
@app.get("/health", tags=["health"])
async def healthz():
    """Health check endpoint for load balancers."""
    return {"status": "healthy"}


@app.get("/meta", tags=["meta"])
async def meta():
    return {"name": settings.app_name, "version": settings.app_version}


app.include_router(auth.router)
app.include_router(workspaces.router)
app.include_router(rooms.router)
app.include_router(bookings.router)


# -------------------------------------------------------------------------
# Error handlers: every failure leaves as {"code": ..., "message": ...}
# -------------------------------------------------------------------------

_HTTP_STATUS_CODES = {
    status.HTTP_400_BAD_REQUEST: ErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
}


def _error_response(status_code: int, code: ErrorCode, message: str) -> JSONResponse:
    return JSONResponse({"code": code.value, "message": message}, status_code=status_code)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    """Expected business outcomes: logged at INFO, never as errors."""
    logger.info(
        f"[{get_request_id(request)}] {request.method} {request.url.path} -> "
        f"{exc.status_code} {exc.code.value}: {exc.message}"
    )
    return _error_response(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query strings become BAD_REQUEST."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, ErrorCode.BAD_REQUEST, message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework-level HTTP errors (unknown route, wrong method, ...)."""
    code = _HTTP_STATUS_CODES.get(exc.status_code)
    if code is None:
        code = ErrorCode.INTERNAL_SERVER_ERROR if exc.status_code >= 500 else ErrorCode.BAD_REQUEST
    detail = exc.detail if isinstance(exc.detail, str) else code.value
    return _error_response(exc.status_code, code, detail)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Constraint violations no service translated into a domain code."""
    logger.warning(f"[{get_request_id(request)}] Untranslated constraint violation: {exc.orig}")
    return _error_response(
        status.HTTP_409_CONFLICT,
        ErrorCode.DATABASE_CONSTRAINT_ERROR,
        "Database constraint violation",
    )


# Generic exception handler for unhandled errors
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Anything unmapped: no detail leaves the process."""
    logger.error(
        f"[{get_request_id(request)}] Unhandled exception on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_SERVER_ERROR,
        "Internal server error",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
