# src/scorekeep/services/tenancy.py

"""Game and environment lifecycle for the admin API.

Deletes cascade explicitly, children first, so the outcome does not depend
on whether the database enforces foreign keys (SQLite does not by default).
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db import models
from scorekeep.exceptions import (
    DefaultEnvironmentDeletionError,
    DuplicateSlugError,
    EnvironmentNotFoundError,
    GameNotFoundError,
)
from scorekeep.schemas.common import slugify

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_NAME = "Production"


async def get_game(db: AsyncSession, game_id: int) -> models.Game:
    """Raises GameNotFoundError if the game does not exist."""
    game = await db.get(models.Game, game_id)
    if game is None:
        raise GameNotFoundError(game_id)
    return game


async def get_environment(
    db: AsyncSession, game_id: int, environment_id: int
) -> models.Environment:
    """Raises EnvironmentNotFoundError if the environment is not in the game."""
    environment = await db.get(models.Environment, environment_id)
    if environment is None or environment.game_id != game_id:
        raise EnvironmentNotFoundError(environment_id, game_id)
    return environment


async def get_default_environment(
    db: AsyncSession, game_id: int
) -> models.Environment:
    """The game's default environment."""
    environment = await models.Environment.find_default(db, game_id)
    if environment is None:
        raise GameNotFoundError(game_id)
    return environment


async def create_game(
    db: AsyncSession,
    *,
    owner_id: str,
    name: str,
    slug: str,
    description: str | None = None,
) -> models.Game:
    """Create a game together with its default environment.

    Raises:
        DuplicateSlugError: If the owner already has a game with this slug
    """
    taken = await db.execute(
        select(models.Game.id).where(
            models.Game.owner_id == owner_id, models.Game.slug == slug
        )
    )
    if taken.first() is not None:
        raise DuplicateSlugError("Game", slug)

    game = models.Game(owner_id=owner_id, name=name, slug=slug, description=description)
    db.add(game)
    await db.flush()
    db.add(
        models.Environment(
            game_id=game.id,
            name=DEFAULT_ENVIRONMENT_NAME,
            slug=slugify(DEFAULT_ENVIRONMENT_NAME),
            is_default=True,
        )
    )
    await db.commit()
    await db.refresh(game)

    logger.info("Game created", extra={"game_id": game.id, "owner_id": owner_id})
    return game


async def create_environment(
    db: AsyncSession, game_id: int, name: str
) -> models.Environment:
    """Add a non-default environment, slugged from its name.

    Raises:
        DuplicateSlugError: If the game already has an environment with that slug
    """
    slug = slugify(name)
    taken = await db.execute(
        select(models.Environment.id).where(
            models.Environment.game_id == game_id, models.Environment.slug == slug
        )
    )
    if taken.first() is not None:
        raise DuplicateSlugError("Environment", slug)

    environment = models.Environment(game_id=game_id, name=name, slug=slug)
    db.add(environment)
    await db.commit()
    await db.refresh(environment)
    return environment


async def _delete_leaderboards_where(db: AsyncSession, *criteria) -> None:
    leaderboard_ids = select(models.Leaderboard.id).where(*criteria)
    await db.execute(
        delete(models.Score).where(models.Score.leaderboard_id.in_(leaderboard_ids))
    )
    await db.execute(delete(models.Leaderboard).where(*criteria))


async def delete_leaderboard(db: AsyncSession, leaderboard_id: int) -> None:
    """Delete a leaderboard and all of its versions."""
    await _delete_leaderboards_where(db, models.Leaderboard.id == leaderboard_id)
    await db.commit()


async def delete_environment(
    db: AsyncSession, environment: models.Environment
) -> None:
    """Delete an environment with its leaderboards and API keys.

    Raises:
        DefaultEnvironmentDeletionError: If it is the game's default
    """
    if environment.is_default:
        raise DefaultEnvironmentDeletionError(environment.id)

    environment_id = environment.id
    await _delete_leaderboards_where(
        db, models.Leaderboard.environment_id == environment_id
    )
    await db.execute(
        delete(models.ApiKey).where(models.ApiKey.environment_id == environment_id)
    )
    await db.execute(
        delete(models.Environment).where(models.Environment.id == environment_id)
    )
    await db.commit()
    logger.info("Environment deleted", extra={"environment_id": environment_id})


async def delete_game(db: AsyncSession, game_id: int) -> None:
    """Delete a game and everything scoped to it."""
    await _delete_leaderboards_where(db, models.Leaderboard.game_id == game_id)
    await db.execute(delete(models.ApiKey).where(models.ApiKey.game_id == game_id))
    await db.execute(
        delete(models.Environment).where(models.Environment.game_id == game_id)
    )
    await db.execute(delete(models.Game).where(models.Game.id == game_id))
    await db.commit()
    logger.info("Game deleted", extra={"game_id": game_id})
