# src/scorekeep/api/game.py

"""Admin endpoints for managing games and their environments."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db.models import Environment, Game
from scorekeep.db.session import get_db
from scorekeep.schemas import game as game_schema
from scorekeep.schemas.common import SortOrder
from scorekeep.schemas.pagination import GameSortField, PaginatedResponse
from scorekeep.services import tenancy

# - prefix="/games": All routes defined here will be prefixed with /games
# - tags=["Games"]: Groups these endpoints under "Games" in the API docs
router = APIRouter(prefix="/games", tags=["Games"])


@router.post(
    "/",
    response_model=game_schema.GameRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_game(
    game_in: game_schema.GameCreate,
    db: AsyncSession = Depends(get_db),
) -> Game:
    """
    Create a new game with a default "Production" environment.

    - **owner_id**: Identity of the owning dashboard user
    - **name**: Display name of the game
    - **slug**: URL-safe identifier, unique per owner and immutable
    - **description**: An optional description of the game

    Raises:
        409 Conflict: If the owner already has a game with the same slug.
    """
    return await tenancy.create_game(db, **game_in.model_dump())


@router.get("/", response_model=PaginatedResponse[game_schema.GameRead])
async def read_games(
    owner_id: str | None = Query(None, description="Only games of this owner"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    sort_by: GameSortField = Query(GameSortField.ID, description="Sort field"),
    sort_order: SortOrder = Query(SortOrder.ASC, description="Sort direction"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[game_schema.GameRead]:
    """
    Retrieve a paginated list of games.

    - **owner_id**: Restrict to one owner's games
    - **skip**: Number of records to skip (for pagination)
    - **limit**: Maximum number of records to return (1-100)
    - **sort_by**: Field to sort by (id, name, created_at)
    - **sort_order**: Sort direction (asc, desc)
    """
    base_query = select(Game)
    if owner_id is not None:
        base_query = base_query.where(Game.owner_id == owner_id)

    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    sort_column = getattr(Game, sort_by.value)
    if sort_order == SortOrder.DESC:
        sort_column = sort_column.desc()

    query = base_query.order_by(sort_column).offset(skip).limit(limit)
    result = await db.execute(query)
    items = list(result.scalars().all())

    return PaginatedResponse(
        items=items,  # type: ignore[arg-type]
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.get("/{game_id}", response_model=game_schema.GameRead)
async def read_game(game_id: int, db: AsyncSession = Depends(get_db)) -> Game:
    """
    Retrieve a single game by its ID.
    """
    return await tenancy.get_game(db, game_id)


@router.put("/{game_id}", response_model=game_schema.GameRead)
async def update_game(
    game_id: int,
    game_in: game_schema.GameUpdate,
    db: AsyncSession = Depends(get_db),
) -> Game:
    """
    Update a game's name or description. The slug cannot be changed.

    Raises:
        404 Not Found: If the game doesn't exist.
    """
    game_to_update = await tenancy.get_game(db, game_id)

    # Get the update data, excluding fields that were not sent.
    update_data = game_in.model_dump(exclude_unset=True)
    for key, value in update_data.items():
        setattr(game_to_update, key, value)

    await db.commit()
    await db.refresh(game_to_update)
    return game_to_update


@router.delete("/{game_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_game(game_id: int, db: AsyncSession = Depends(get_db)) -> None:
    """
    Delete a game with its environments, leaderboards, scores and API keys.
    """
    await tenancy.get_game(db, game_id)
    await tenancy.delete_game(db, game_id)
    return None


# ===============================================
# Environments
# ===============================================
@router.get(
    "/{game_id}/environments",
    response_model=list[game_schema.EnvironmentRead],
)
async def read_environments(
    game_id: int, db: AsyncSession = Depends(get_db)
) -> list[Environment]:
    """
    List a game's environments, the default one first.
    """
    await tenancy.get_game(db, game_id)
    query = (
        select(Environment)
        .where(Environment.game_id == game_id)
        .order_by(Environment.is_default.desc(), Environment.id.asc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


@router.post(
    "/{game_id}/environments",
    response_model=game_schema.EnvironmentRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_environment(
    game_id: int,
    environment_in: game_schema.EnvironmentCreate,
    db: AsyncSession = Depends(get_db),
) -> Environment:
    """
    Add an environment (e.g. "Development") to a game.

    Raises:
        409 Conflict: If an environment with the same slug exists.
    """
    await tenancy.get_game(db, game_id)
    return await tenancy.create_environment(db, game_id, environment_in.name)


@router.put(
    "/{game_id}/environments/{environment_id}",
    response_model=game_schema.EnvironmentRead,
)
async def rename_environment(
    game_id: int,
    environment_id: int,
    environment_in: game_schema.EnvironmentUpdate,
    db: AsyncSession = Depends(get_db),
) -> Environment:
    """
    Rename an environment. Its slug stays as created.
    """
    environment = await tenancy.get_environment(db, game_id, environment_id)
    environment.name = environment_in.name
    await db.commit()
    await db.refresh(environment)
    return environment


@router.delete(
    "/{game_id}/environments/{environment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_environment(
    game_id: int,
    environment_id: int,
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete an environment with its leaderboards and API keys.

    Raises:
        400 Bad Request: If it is the game's default environment.
    """
    environment = await tenancy.get_environment(db, game_id, environment_id)
    await tenancy.delete_environment(db, environment)
    return None
