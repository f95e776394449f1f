# tests/test_api_games.py
"""Tests for the Game and Environment admin endpoints."""

import pytest
from conftest import OWNER_ID, create_game
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_game(async_client: AsyncClient):
    """Creating a game also creates its default Production environment."""
    game_payload = {
        "owner_id": OWNER_ID,
        "name": "Space Race",
        "slug": "space-race",
        "description": "An arcade racer with daily time trials.",
    }

    response = await async_client.post("/games/", json=game_payload)

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == game_payload["name"]
    assert data["slug"] == game_payload["slug"]
    assert data["owner_id"] == OWNER_ID
    assert isinstance(data["id"], int)

    environments = await async_client.get(f"/games/{data['id']}/environments")
    assert environments.status_code == 200
    assert [(e["name"], e["slug"], e["is_default"]) for e in environments.json()] == [
        ("Production", "production", True)
    ]


@pytest.mark.asyncio
async def test_duplicate_slug_per_owner_conflicts(async_client: AsyncClient):
    await create_game(async_client, "space-race")

    duplicate = await async_client.post(
        "/games/", json={"owner_id": OWNER_ID, "name": "Again", "slug": "space-race"}
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"

    # Another owner may reuse the slug
    other_owner = await async_client.post(
        "/games/", json={"owner_id": "owner-2", "name": "Again", "slug": "space-race"}
    )
    assert other_owner.status_code == 201


@pytest.mark.asyncio
async def test_invalid_slug_is_rejected(async_client: AsyncClient):
    response = await async_client.post(
        "/games/", json={"owner_id": OWNER_ID, "name": "Bad", "slug": "Not A Slug"}
    )
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_list_games_filters_by_owner(async_client: AsyncClient):
    await create_game(async_client, "alpha")
    await create_game(async_client, "beta")
    await async_client.post(
        "/games/", json={"owner_id": "owner-2", "name": "Gamma", "slug": "gamma"}
    )

    response = await async_client.get("/games/", params={"owner_id": OWNER_ID})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["has_more"] is False
    assert {game["slug"] for game in data["items"]} == {"alpha", "beta"}


@pytest.mark.asyncio
async def test_list_games_sorting_and_pagination(async_client: AsyncClient):
    for slug in ["charlie", "alpha", "bravo"]:
        await create_game(async_client, slug)

    response = await async_client.get(
        "/games/", params={"sort_by": "name", "sort_order": "desc", "limit": 2}
    )

    data = response.json()
    assert [game["slug"] for game in data["items"]] == ["charlie", "bravo"]
    assert data["total"] == 3
    assert data["has_more"] is True


@pytest.mark.asyncio
async def test_update_game_keeps_slug(async_client: AsyncClient):
    game = await create_game(async_client, "space-race")

    response = await async_client.put(
        f"/games/{game['id']}",
        json={"name": "Space Race 2", "slug": "ignored"},
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Space Race 2"
    assert response.json()["slug"] == "space-race"


@pytest.mark.asyncio
async def test_update_game_rejects_null_name(async_client: AsyncClient):
    game = await create_game(async_client, "null-name")

    response = await async_client.put(f"/games/{game['id']}", json={"name": None})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"

    fetched = await async_client.get(f"/games/{game['id']}")
    assert fetched.json()["name"] == game["name"]


@pytest.mark.asyncio
async def test_delete_game_cascades(async_client: AsyncClient, tenant: dict):
    game_id = tenant["game_id"]
    await async_client.post(
        "/v1/scores",
        headers=tenant["headers"],
        json={"player_guid": "p1", "player_name": "P1", "score": 1},
    )

    response = await async_client.delete(f"/games/{game_id}")
    assert response.status_code == 204

    assert (await async_client.get(f"/games/{game_id}")).status_code == 404
    # The game's keys died with it
    public = await async_client.get("/v1/leaderboard", headers=tenant["headers"])
    assert public.status_code == 401


# =============================================================================
# Environments
# =============================================================================


@pytest.mark.asyncio
async def test_environment_lifecycle(async_client: AsyncClient):
    game = await create_game(async_client)
    base = f"/games/{game['id']}/environments"

    created = await async_client.post(base, json={"name": "Dev Build"})
    assert created.status_code == 201
    env = created.json()
    assert (env["slug"], env["is_default"]) == ("dev-build", False)

    duplicate = await async_client.post(base, json={"name": "dev build"})
    assert duplicate.status_code == 409

    renamed = await async_client.put(f"{base}/{env['id']}", json={"name": "Nightly"})
    assert renamed.json()["name"] == "Nightly"
    assert renamed.json()["slug"] == "dev-build"

    deleted = await async_client.delete(f"{base}/{env['id']}")
    assert deleted.status_code == 204
    assert len((await async_client.get(base)).json()) == 1


@pytest.mark.asyncio
async def test_default_environment_cannot_be_deleted(async_client: AsyncClient):
    game = await create_game(async_client)
    base = f"/games/{game['id']}/environments"
    default_id = (await async_client.get(base)).json()[0]["id"]

    response = await async_client.delete(f"{base}/{default_id}")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_environment_of_other_game_is_not_found(async_client: AsyncClient):
    first = await create_game(async_client, "first")
    second = await create_game(async_client, "second")
    env_id = (await async_client.get(f"/games/{first['id']}/environments")).json()[0][
        "id"
    ]

    response = await async_client.put(
        f"/games/{second['id']}/environments/{env_id}", json={"name": "Hijack"}
    )

    assert response.status_code == 404
