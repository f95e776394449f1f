# src/scorekeep/api/api_key.py

"""Admin endpoints for issuing and revoking API keys."""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db.models import ApiKey
from scorekeep.db.session import get_db
from scorekeep.exceptions import ApiKeyNotFoundError
from scorekeep.schemas import api_key as api_key_schema
from scorekeep.services import tenancy
from scorekeep.services.auth_service import generate_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games/{game_id}/api-keys", tags=["API Keys"])


@router.post(
    "/",
    response_model=api_key_schema.ApiKeyCreated,
    status_code=status.HTTP_201_CREATED,
)
async def create_api_key(
    game_id: int,
    api_key_in: api_key_schema.ApiKeyCreate,
    db: AsyncSession = Depends(get_db),
) -> api_key_schema.ApiKeyCreated:
    """
    Issue a key for one environment of a game.

    The raw key is only part of this response. Store it now: only its hash
    is kept.
    """
    await tenancy.get_environment(db, game_id, api_key_in.environment_id)

    generated = generate_api_key(api_key_in.environment_id)
    api_key = ApiKey(
        game_id=game_id,
        environment_id=api_key_in.environment_id,
        key_prefix=generated.key_prefix,
        key_hash=generated.key_hash,
    )
    db.add(api_key)
    await db.commit()
    await db.refresh(api_key)

    logger.info(
        "API key issued",
        extra={"api_key_id": api_key.id, "key_prefix": generated.key_prefix},
    )
    return api_key_schema.ApiKeyCreated(
        **api_key_schema.ApiKeyRead.model_validate(api_key).model_dump(),
        key=generated.key,
    )


@router.get("/", response_model=list[api_key_schema.ApiKeyRead])
async def read_api_keys(
    game_id: int,
    environment_id: int | None = Query(None, description="Only keys of this environment"),
    db: AsyncSession = Depends(get_db),
) -> list[ApiKey]:
    """
    List a game's keys by prefix. Hashes are never returned.
    """
    await tenancy.get_game(db, game_id)
    query = select(ApiKey).where(ApiKey.game_id == game_id)
    if environment_id is not None:
        query = query.where(ApiKey.environment_id == environment_id)
    result = await db.execute(query.order_by(ApiKey.id.asc()))
    return list(result.scalars().all())


@router.delete("/{api_key_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_api_key(
    game_id: int, api_key_id: int, db: AsyncSession = Depends(get_db)
) -> None:
    """
    Revoke a key. Requests using it fail with 401 from now on.
    """
    api_key = await db.get(ApiKey, api_key_id)
    if api_key is None or api_key.game_id != game_id:
        raise ApiKeyNotFoundError(api_key_id)

    await db.delete(api_key)
    await db.commit()
    logger.info("API key revoked", extra={"api_key_id": api_key_id})
    return None
