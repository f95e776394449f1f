# tests/test_api_errors.py

"""Tests for the error envelope shared by all API endpoints."""

import json
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from scorekeep.db.session import get_db
from scorekeep.main import app, integrity_error_handler
from sqlalchemy.exc import IntegrityError, OperationalError

# =============================================================================
# 404 Not Found
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/games/999999"),
        ("put", "/games/999999"),
        ("delete", "/games/999999"),
        ("get", "/games/999999/environments"),
        ("get", "/games/999999/leaderboards/"),
        ("get", "/games/999999/api-keys/"),
    ],
)
async def test_unknown_game_returns_404(async_client: AsyncClient, method, path):
    kwargs = {"json": {"name": "X"}} if method == "put" else {}
    response = await getattr(async_client, method)(path, **kwargs)

    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert "not found" in data["detail"].lower()


@pytest.mark.asyncio
async def test_unknown_leaderboard_id_returns_404(async_client: AsyncClient, tenant):
    response = await async_client.get(f"/games/{tenant['game_id']}/leaderboards/999")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


# =============================================================================
# 400 Invalid Request
# =============================================================================


@pytest.mark.asyncio
async def test_validation_errors_use_400_envelope(async_client: AsyncClient):
    response = await async_client.post("/games/", json={"name": "No owner"})

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "INVALID_REQUEST"
    assert "owner_id" in data["detail"]


@pytest.mark.asyncio
async def test_malformed_json_returns_400(async_client: AsyncClient):
    response = await async_client.post(
        "/games/",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


# =============================================================================
# 500 Internal Error
# =============================================================================


class FailingSession:
    """Session stand-in whose every query fails at the driver level."""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error at /var/db"))

    async def rollback(self):
        pass


@pytest.mark.asyncio
async def test_database_failure_is_downgraded_to_internal_error(
    async_client: AsyncClient, tenant: dict
):
    async def broken_db() -> AsyncGenerator[FailingSession, None]:
        yield FailingSession()

    app.dependency_overrides[get_db] = broken_db

    response = await async_client.get("/v1/leaderboard", headers=tenant["headers"])

    assert response.status_code == 500
    assert response.json() == {
        "detail": "Internal server error",
        "code": "INTERNAL_ERROR",
    }
    assert "disk" not in response.text


@pytest.mark.asyncio
async def test_unhandled_exception_returns_internal_error(async_client: AsyncClient):
    @app.get("/__boom")
    async def boom():
        raise RuntimeError("secret internals")

    try:
        transport = ASGITransport(app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/__boom")
    finally:
        app.router.routes.pop()

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
    assert "secret" not in response.text


@pytest.mark.asyncio
async def test_integrity_error_maps_to_conflict():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: games.slug"))

    response = await integrity_error_handler(None, exc)  # type: ignore[arg-type]

    assert response.status_code == 409
    assert json.loads(response.body)["code"] == "CONFLICT"
