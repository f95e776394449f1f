# tests/conftest.py

"""Pytest configuration and fixtures."""

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from scorekeep.db.models import Base
from scorekeep.db.session import get_db, get_session_factory
from scorekeep.main import app
from scorekeep.services.rate_limiter import RateLimiter, get_rate_limiter
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

OWNER_ID = "owner-1"


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh SQLite database file per test.

    A file rather than ``:memory:`` so that background tasks can open their
    own connections to the same data, as they do in production.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autocommit=False, autoflush=False
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Fixture to provide a database session to a test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def limiter() -> RateLimiter:
    """A fresh limiter so request counts never leak between tests."""
    return RateLimiter()


@pytest.fixture
async def async_client(
    session_factory: async_sessionmaker[AsyncSession], limiter: RateLimiter
) -> AsyncGenerator[AsyncClient, None]:
    """Fixture to provide an async test client for the API."""

    # Override the get_db dependency to use the test database
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_rate_limiter] = lambda: limiter

    transport = ASGITransport(app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Clean up the overrides after the test
    app.dependency_overrides.clear()


# =============================================================================
# Tenancy helpers
# =============================================================================


async def create_game(client: AsyncClient, slug: str = "space-race") -> dict:
    response = await client.post(
        "/games/",
        json={"owner_id": OWNER_ID, "name": slug.replace("-", " ").title(), "slug": slug},
    )
    assert response.status_code == 201
    return response.json()


async def default_environment_id(client: AsyncClient, game_id: int) -> int:
    response = await client.get(f"/games/{game_id}/environments")
    assert response.status_code == 200
    return next(env["id"] for env in response.json() if env["is_default"])


async def create_leaderboard(
    client: AsyncClient, game_id: int, environment_id: int, **fields
) -> dict:
    payload = {"environment_id": environment_id, "name": "High Scores"}
    payload.update(fields)
    response = await client.post(f"/games/{game_id}/leaderboards/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def create_api_key(client: AsyncClient, game_id: int, environment_id: int) -> str:
    response = await client.post(
        f"/games/{game_id}/api-keys/", json={"environment_id": environment_id}
    )
    assert response.status_code == 201
    return response.json()["key"]


@pytest.fixture
async def tenant(async_client: AsyncClient) -> dict:
    """A game with its default environment, one leaderboard and an API key."""
    game = await create_game(async_client)
    environment_id = await default_environment_id(async_client, game["id"])
    leaderboard = await create_leaderboard(
        async_client, game["id"], environment_id, slug="high-scores"
    )
    key = await create_api_key(async_client, game["id"], environment_id)
    return {
        "game_id": game["id"],
        "environment_id": environment_id,
        "leaderboard": leaderboard,
        "headers": {"X-API-Key": key},
    }
