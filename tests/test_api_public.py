# tests/test_api_public.py

"""Tests for the public /v1 scoring API."""

from datetime import datetime, timedelta, timezone

import pytest
from conftest import create_api_key, create_leaderboard
from httpx import AsyncClient
from scorekeep.db.models import ApiKey, Leaderboard, Score
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession


async def post_score(client: AsyncClient, tenant: dict, guid: str, score, **params):
    return await client.post(
        "/v1/scores",
        params=params,
        headers=tenant["headers"],
        json={"player_guid": guid, "player_name": guid.upper(), "score": score},
    )


# =============================================================================
# Health and CORS
# =============================================================================


@pytest.mark.asyncio
async def test_health_needs_no_key(async_client: AsyncClient):
    response = await async_client.get("/v1/health")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "scorekeep"
    assert "version" in data and "timestamp" in data
    assert response.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_preflight_returns_empty_204(async_client: AsyncClient):
    response = await async_client.options(
        "/v1/scores",
        headers={
            "Origin": "https://game.example",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == (
        "GET, POST, PUT, DELETE, OPTIONS"
    )
    assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, X-API-Key"


@pytest.mark.asyncio
async def test_admin_routes_carry_no_cors_headers(async_client: AsyncClient):
    response = await async_client.get("/games/")
    assert "Access-Control-Allow-Origin" not in response.headers


# =============================================================================
# Authentication and rate limiting
# =============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "headers",
    [{}, {"X-API-Key": "not-a-key"}, {"X-API-Key": "kb_00000001_doesnotexist"}],
)
async def test_bad_keys_return_401(async_client: AsyncClient, tenant: dict, headers):
    response = await async_client.get("/v1/leaderboard", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_API_KEY"
    assert response.headers["Access-Control-Allow-Origin"] == "*"


@pytest.mark.asyncio
async def test_revoked_key_is_rejected(async_client: AsyncClient, tenant: dict):
    keys = await async_client.get(f"/games/{tenant['game_id']}/api-keys/")
    key_id = keys.json()[0]["id"]
    revoke = await async_client.delete(f"/games/{tenant['game_id']}/api-keys/{key_id}")
    assert revoke.status_code == 204

    response = await async_client.get("/v1/leaderboard", headers=tenant["headers"])

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_rate_limit_headers_on_success(async_client: AsyncClient, tenant: dict):
    response = await async_client.get("/v1/leaderboard", headers=tenant["headers"])

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "59"
    assert int(response.headers["X-RateLimit-Reset"]) > 0


@pytest.mark.asyncio
async def test_sixty_first_request_is_rate_limited(
    async_client: AsyncClient, tenant: dict
):
    for _ in range(60):
        response = await async_client.get("/v1/leaderboard", headers=tenant["headers"])
        assert response.status_code == 200

    response = await async_client.get("/v1/leaderboard", headers=tenant["headers"])

    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMITED"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in response.headers
    assert "X-RateLimit-Reset" in response.headers


@pytest.mark.asyncio
async def test_errors_after_auth_keep_rate_limit_headers(
    async_client: AsyncClient, tenant: dict
):
    response = await async_client.get(
        "/v1/leaderboard", params={"leaderboard": "missing"}, headers=tenant["headers"]
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"
    assert response.headers["X-RateLimit-Limit"] == "60"


@pytest.mark.asyncio
async def test_successful_call_records_key_usage(
    async_client: AsyncClient, tenant: dict, db_session: AsyncSession
):
    await async_client.get("/v1/leaderboard", headers=tenant["headers"])

    api_key = (await db_session.execute(select(ApiKey))).scalar_one()
    assert api_key.last_used_at is not None


# =============================================================================
# Scores
# =============================================================================


@pytest.mark.asyncio
async def test_submit_and_improve(async_client: AsyncClient, tenant: dict):
    first = await post_score(async_client, tenant, "p1", 100)
    assert first.status_code == 200
    assert first.json() == {
        "id": first.json()["id"],
        "player_guid": "p1",
        "player_name": "P1",
        "score": 100,
        "rank": 1,
        "is_new_high_score": True,
    }

    await post_score(async_client, tenant, "p2", 150)
    improved = await post_score(async_client, tenant, "p1", 200)

    assert improved.json()["rank"] == 1
    assert improved.json()["is_new_high_score"] is True

    repeat = await post_score(async_client, tenant, "p1", 200)
    assert repeat.json()["is_new_high_score"] is False
    assert repeat.json()["rank"] == 1


@pytest.mark.asyncio
async def test_submit_stores_metadata(
    async_client: AsyncClient, tenant: dict, db_session: AsyncSession
):
    metadata = {"level": 7, "character": "knight", "tags": ["hardcore"]}
    response = await async_client.post(
        "/v1/scores",
        headers=tenant["headers"],
        json={"player_guid": "p1", "player_name": "P1", "score": 10, "metadata": metadata},
    )
    assert response.status_code == 200

    row = (await db_session.execute(select(Score))).scalar_one()
    assert row.score_metadata == metadata


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"player_name": "P1", "score": 10},
        {"player_guid": "p1", "score": 10},
        {"player_guid": "p1", "player_name": "P1"},
        {"player_guid": "p1", "player_name": "P1", "score": "10"},
        {"player_guid": "", "player_name": "P1", "score": 10},
        {"player_guid": "p1", "player_name": "P1", "score": 10, "metadata": [1]},
    ],
)
async def test_invalid_submissions_return_400(
    async_client: AsyncClient, tenant: dict, payload
):
    response = await async_client.post(
        "/v1/scores", headers=tenant["headers"], json=payload
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_submit_to_unknown_leaderboard(async_client: AsyncClient, tenant: dict):
    response = await post_score(async_client, tenant, "p1", 1, leaderboard="nope")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_leaderboard_addressed_by_slug_or_name(
    async_client: AsyncClient, tenant: dict
):
    other = await create_leaderboard(
        async_client,
        tenant["game_id"],
        tenant["environment_id"],
        name="Time Trial",
        slug="time-trial",
        sort_order="asc",
    )
    await post_score(async_client, tenant, "p1", 30.5, leaderboard="time-trial")
    await post_score(async_client, tenant, "p2", 28.0, leaderboard="Time Trial")

    response = await async_client.get(
        "/v1/leaderboard", params={"leaderboard": "time trial"}, headers=tenant["headers"]
    )

    assert response.status_code == 200
    assert [e["player_guid"] for e in response.json()["entries"]] == ["p2", "p1"]
    default = await async_client.get("/v1/leaderboard", headers=tenant["headers"])
    assert default.json()["total_count"] == 0
    assert other["slug"] == "time-trial"


@pytest.mark.asyncio
async def test_keys_are_scoped_to_their_environment(
    async_client: AsyncClient, tenant: dict
):
    staging = await async_client.post(
        f"/games/{tenant['game_id']}/environments", json={"name": "Staging"}
    )
    staging_key = await create_api_key(
        async_client, tenant["game_id"], staging.json()["id"]
    )

    response = await async_client.get(
        "/v1/leaderboard", headers={"X-API-Key": staging_key}
    )

    assert response.status_code == 404


# =============================================================================
# Ranked reads
# =============================================================================


@pytest.mark.asyncio
async def test_leaderboard_page(async_client: AsyncClient, tenant: dict):
    for i, value in enumerate([10, 50, 30, 20, 40]):
        await post_score(async_client, tenant, f"p{i}", value)

    response = await async_client.get(
        "/v1/leaderboard", params={"limit": 2, "offset": 1}, headers=tenant["headers"]
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_count"] == 5
    assert data["reset_schedule"] == "none"
    assert [(e["rank"], e["score"]) for e in data["entries"]] == [(2, 40), (3, 30)]
    # Unscheduled boards expose no version info
    assert "version" not in data
    assert "next_reset" not in data


@pytest.mark.asyncio
async def test_limit_is_capped_not_rejected(async_client: AsyncClient, tenant: dict):
    response = await async_client.get(
        "/v1/leaderboard", params={"limit": 500}, headers=tenant["headers"]
    )
    assert response.status_code == 200

    bad = await async_client.get(
        "/v1/leaderboard", params={"limit": 0}, headers=tenant["headers"]
    )
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_scheduled_board_rolls_over_on_read(
    async_client: AsyncClient, tenant: dict, db_session: AsyncSession
):
    board = await create_leaderboard(
        async_client,
        tenant["game_id"],
        tenant["environment_id"],
        name="Daily",
        slug="daily",
        reset_schedule="daily",
    )
    await post_score(async_client, tenant, "p1", 100, leaderboard="daily")

    # Pretend the board was last active three days ago
    three_days_ago = datetime.now(timezone.utc) - timedelta(days=3)
    await db_session.execute(
        update(Leaderboard)
        .where(Leaderboard.id == board["id"])
        .values(
            current_period_start=three_days_ago.replace(
                hour=0, minute=0, second=0, microsecond=0
            )
        )
    )
    await db_session.commit()

    response = await async_client.get(
        "/v1/leaderboard", params={"leaderboard": "daily"}, headers=tenant["headers"]
    )

    data = response.json()
    assert data["version"] == 4
    assert data["oldest_version"] == 1
    assert data["entries"] == []
    assert data["next_reset"] is not None

    archived = await async_client.get(
        "/v1/leaderboard",
        params={"leaderboard": "daily", "version": 1},
        headers=tenant["headers"],
    )
    assert archived.json()["version"] == 1
    assert [e["player_guid"] for e in archived.json()["entries"]] == ["p1"]


@pytest.mark.asyncio
async def test_version_outside_range_is_rejected(
    async_client: AsyncClient, tenant: dict
):
    await create_leaderboard(
        async_client,
        tenant["game_id"],
        tenant["environment_id"],
        name="Weekly",
        slug="weekly",
        reset_schedule="weekly",
    )

    response = await async_client.get(
        "/v1/leaderboard",
        params={"leaderboard": "weekly", "version": 2},
        headers=tenant["headers"],
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_VERSION"
    assert "1 to 1" in response.json()["detail"]


# =============================================================================
# Players and claims
# =============================================================================


@pytest.mark.asyncio
async def test_get_and_rename_player(async_client: AsyncClient, tenant: dict):
    await post_score(async_client, tenant, "p1", 10)
    await post_score(async_client, tenant, "p2", 20)

    response = await async_client.get("/v1/player/p1", headers=tenant["headers"])
    assert response.status_code == 200
    assert response.json()["rank"] == 2

    renamed = await async_client.put(
        "/v1/player/p1", headers=tenant["headers"], json={"player_name": "Ace"}
    )
    assert renamed.status_code == 200
    assert renamed.json()["player_name"] == "Ace"

    missing = await async_client.get("/v1/player/ghost", headers=tenant["headers"])
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_claim_flow(
    async_client: AsyncClient, tenant: dict, db_session: AsyncSession
):
    db_session.add(
        Score(
            leaderboard_id=tenant["leaderboard"]["id"],
            version=1,
            player_name="Legacy",
            score=500,
            is_migrated=True,
            migrated_from="old-system",
        )
    )
    await db_session.commit()
    await post_score(async_client, tenant, "p-existing", 10)

    conflict = await async_client.post(
        "/v1/claim",
        headers=tenant["headers"],
        json={"player_guid": "p-existing", "player_name": "Legacy"},
    )
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "ALREADY_CLAIMED"

    claimed = await async_client.post(
        "/v1/claim",
        headers=tenant["headers"],
        json={"player_guid": "p-new", "player_name": "Legacy"},
    )
    assert claimed.status_code == 200
    assert claimed.json() == {
        "claimed": True,
        "score": 500,
        "rank": 1,
        "player_name": "Legacy",
    }

    again = await async_client.post(
        "/v1/claim",
        headers=tenant["headers"],
        json={"player_guid": "p-other", "player_name": "Legacy"},
    )
    assert again.status_code == 404
