# src/scorekeep/main.py

"""Main FastAPI application for Scorekeep."""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .api import api_key, game, leaderboard, public
from .db.session import engine
from .exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidRequestError,
    RateLimitedError,
    ResourceNotFoundError,
    ScorekeepError,
)
from .middleware import PublicApiMiddleware, RequestLoggingMiddleware
from .services.rate_limiter import rate_limiter, run_sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """FastAPI lifespan context manager for startup and shutdown events."""
    # Startup: evict elapsed rate limit windows in the background
    sweeper = asyncio.create_task(run_sweeper(rate_limiter))
    yield
    # Shutdown: stop the sweeper, then dispose of database connections
    sweeper.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await sweeper
    await engine.dispose()


app = FastAPI(title="Scorekeep API", lifespan=lifespan)

# Add middleware (order matters - last added = outermost)
app.add_middleware(PublicApiMiddleware)
app.add_middleware(RequestLoggingMiddleware)


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code},
        headers=headers,
    )


# =============================================================================
# Global Exception Handlers
# =============================================================================


@app.exception_handler(ResourceNotFoundError)
async def resource_not_found_handler(
    request: Request, exc: ResourceNotFoundError
) -> JSONResponse:
    """Handle all resource not found errors -> 404."""
    logger.warning("Resource not found: %s", exc.message, extra=exc.details)
    return _error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(InvalidRequestError)
async def invalid_request_handler(
    request: Request, exc: InvalidRequestError
) -> JSONResponse:
    """Handle rejected client input -> 400."""
    logger.warning("Invalid request: %s", exc.message, extra=exc.details)
    return _error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(
    request: Request, exc: AuthenticationError
) -> JSONResponse:
    """Handle missing, malformed or unknown API keys -> 401."""
    logger.warning("Authentication failed: %s", exc.message, extra=exc.details)
    return _error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(RateLimitedError)
async def rate_limited_handler(
    request: Request, exc: RateLimitedError
) -> JSONResponse:
    """Handle exhausted rate limit windows -> 429 with reset headers."""
    return _error_response(exc.status_code, exc.message, exc.code, exc.headers)


@app.exception_handler(ConflictError)
async def conflict_error_handler(
    request: Request, exc: ConflictError
) -> JSONResponse:
    """Handle uniqueness violations detected by the services -> 409."""
    logger.warning("Conflict: %s", exc.message, extra=exc.details)
    return _error_response(exc.status_code, exc.message, exc.code)


@app.exception_handler(ScorekeepError)
async def scorekeep_error_handler(
    request: Request, exc: ScorekeepError
) -> JSONResponse:
    """Catch-all for any other Scorekeep errors -> 500."""
    logger.error("Scorekeep error: %s", exc.message, extra=exc.details, exc_info=True)
    return _error_response(500, "Internal server error", "INTERNAL_ERROR")


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle body/query validation failures -> 400."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = f"{location}: {first.get('msg')}" if location else first.get("msg")
    else:
        detail = "Invalid request"
    logger.warning("Request validation failed: %s", detail)
    return _error_response(400, str(detail), "INVALID_REQUEST")


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Handle database integrity constraint violations -> 409."""
    error_msg = str(exc.orig) if exc.orig else str(exc)
    logger.warning("Database integrity error: %s", error_msg)
    return _error_response(
        409, "Resource already exists with given unique field(s)", "CONFLICT"
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_error_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Catch-all for other SQLAlchemy database errors."""
    logger.error("Database error: %s", exc, exc_info=True)
    return _error_response(500, "Internal server error", "INTERNAL_ERROR")


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)
    return _error_response(500, "Internal server error", "INTERNAL_ERROR")


# Include routers into the main application
app.include_router(public.router)
app.include_router(game.router)
app.include_router(leaderboard.router)
app.include_router(api_key.router)


@app.get("/", tags=["Root"])
async def read_root() -> dict[str, str]:
    """Provides a welcome message."""
    return {"message": "Welcome to the Scorekeep API"}


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
