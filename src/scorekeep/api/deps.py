# src/scorekeep/api/deps.py

"""Shared dependencies for the public scoring API."""

from fastapi import BackgroundTasks, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scorekeep.db.session import get_db, get_session_factory
from scorekeep.services import auth_service, retention
from scorekeep.services.auth_service import ApiKeyContext
from scorekeep.services.leaderboard_resolver import (
    LeaderboardContext,
    resolve_leaderboard,
)
from scorekeep.services.rate_limiter import RateLimiter, get_rate_limiter


async def require_api_key(
    request: Request,
    background_tasks: BackgroundTasks,
    x_api_key: str | None = Header(None, alias=auth_service.API_KEY_HEADER),
    db: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ApiKeyContext:
    """Authenticate the request's API key.

    The rate limit headers are stashed on ``request.state`` so that every
    response to an authenticated call carries them, errors included.
    """
    context = await auth_service.validate_api_key(db, x_api_key, limiter)
    request.state.rate_limit_headers = context.rate_limit_headers
    background_tasks.add_task(
        auth_service.touch_last_used, session_factory, context.api_key_id
    )
    return context


async def resolve_target_leaderboard(
    background_tasks: BackgroundTasks,
    leaderboard: str | None = Query(
        None, description="Leaderboard slug or name; defaults to the first one"
    ),
    api_key: ApiKeyContext = Depends(require_api_key),
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> LeaderboardContext:
    """Resolve the leaderboard named by the ``leaderboard`` query parameter.

    A rollover triggered here schedules pruning of old versions after the
    response is sent.
    """
    context = await resolve_leaderboard(
        db, api_key.game_id, api_key.environment_id, leaderboard
    )
    if context.rolled_over:
        background_tasks.add_task(
            retention.prune_versions_in_background,
            session_factory,
            context.leaderboard_id,
            context.reset_schedule,
        )
    return context
