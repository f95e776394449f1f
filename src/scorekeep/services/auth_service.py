# src/scorekeep/services/auth_service.py

"""API key issuance and validation for the public scoring API."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scorekeep.db import models
from scorekeep.db.models import utcnow
from scorekeep.exceptions import (
    InvalidCredentialError,
    MalformedCredentialError,
    MissingCredentialError,
    RateLimitedError,
)
from scorekeep.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
API_KEY_PREFIX = "kb_"


@dataclass(frozen=True)
class GeneratedApiKey:
    """A freshly minted key. ``key`` is shown once and never stored."""

    key: str
    key_hash: str
    key_prefix: str


@dataclass(frozen=True)
class ApiKeyContext:
    """The scope an authenticated request acts in."""

    api_key_id: int
    game_id: int
    environment_id: int
    environment_slug: str
    rate_limit_headers: dict[str, str] = field(default_factory=dict)


def hash_api_key(raw_key: str) -> str:
    """SHA-256 hex digest used as the lookup value for a key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def display_prefix(raw_key: str) -> str:
    """The non-secret part of a key, safe for logs and listings."""
    head, sep, _ = raw_key.rpartition("_")
    return f"{head}{sep}" if sep else raw_key[: len(API_KEY_PREFIX)]


def generate_api_key(environment_id: int) -> GeneratedApiKey:
    """Mint a key of the form ``kb_{environment}_{48 random chars}``."""
    random_part = secrets.token_urlsafe(36).replace("-", "").replace("_", "")
    while len(random_part) < 48:
        random_part += secrets.token_hex(8)
    key_prefix = f"{API_KEY_PREFIX}{environment_id:08x}_"
    key = f"{key_prefix}{random_part[:48]}"
    return GeneratedApiKey(key=key, key_hash=hash_api_key(key), key_prefix=key_prefix)


async def validate_api_key(
    db: AsyncSession, raw_key: str | None, limiter: RateLimiter
) -> ApiKeyContext:
    """Authenticate a raw key and return the (game, environment) it acts in.

    Checks run cheapest first: presence, format, rate limit, then the
    database lookup by hash.

    Raises:
        MissingCredentialError: If no key was sent
        MalformedCredentialError: If the key lacks the ``kb_`` prefix
        RateLimitedError: If the key exhausted its window
        InvalidCredentialError: If no stored key matches
    """
    if not raw_key:
        raise MissingCredentialError()

    if not raw_key.startswith(API_KEY_PREFIX):
        raise MalformedCredentialError()

    decision = await limiter.check(raw_key)
    headers = decision.headers()
    if not decision.allowed:
        headers["Retry-After"] = str(decision.retry_after_seconds(limiter.clock()))
        logger.warning(
            "Rate limit exceeded", extra={"key_prefix": display_prefix(raw_key)}
        )
        raise RateLimitedError(headers)

    query = (
        select(
            models.ApiKey.id,
            models.ApiKey.game_id,
            models.ApiKey.environment_id,
            models.Environment.slug,
        )
        .join(models.Environment, models.Environment.id == models.ApiKey.environment_id)
        .where(models.ApiKey.key_hash == hash_api_key(raw_key))
    )
    row = (await db.execute(query)).one_or_none()
    if row is None:
        raise InvalidCredentialError(display_prefix(raw_key))

    return ApiKeyContext(
        api_key_id=row.id,
        game_id=row.game_id,
        environment_id=row.environment_id,
        environment_slug=row.slug,
        rate_limit_headers=headers,
    )


async def touch_last_used(
    session_factory: async_sessionmaker[AsyncSession], api_key_id: int
) -> None:
    """Record key usage. Best-effort: a lost or failed update is harmless."""
    try:
        async with session_factory() as session:
            await session.execute(
                update(models.ApiKey)
                .where(models.ApiKey.id == api_key_id)
                .values(last_used_at=utcnow())
            )
            await session.commit()
    except Exception:
        logger.warning(
            "Failed to update API key last_used_at",
            extra={"api_key_id": api_key_id},
            exc_info=True,
        )
