# src/scorekeep/api/leaderboard.py

"""Admin endpoints for configuring leaderboards and inspecting their scores."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db.models import Leaderboard, Score, utcnow
from scorekeep.db.session import get_db
from scorekeep.exceptions import (
    DuplicateSlugError,
    LeaderboardNotFoundError,
    ScoreNotFoundError,
)
from scorekeep.schemas import leaderboard as leaderboard_schema
from scorekeep.schemas import score as score_schema
from scorekeep.schemas.common import SortOrder
from scorekeep.schemas.pagination import PaginatedResponse
from scorekeep.services import tenancy
from scorekeep.services.reset_schedule import period_start_for

router = APIRouter(prefix="/games/{game_id}/leaderboards", tags=["Leaderboards"])


async def _get_leaderboard(
    db: AsyncSession, game_id: int, leaderboard_id: int
) -> Leaderboard:
    leaderboard = await db.get(Leaderboard, leaderboard_id)
    if leaderboard is None or leaderboard.game_id != game_id:
        raise LeaderboardNotFoundError(game_id, None, leaderboard_id)
    return leaderboard


async def _ensure_slug_free(
    db: AsyncSession,
    game_id: int,
    environment_id: int,
    slug: str,
    exclude_id: int | None = None,
) -> None:
    query = select(Leaderboard.id).where(
        Leaderboard.game_id == game_id,
        Leaderboard.environment_id == environment_id,
        Leaderboard.slug == slug,
    )
    if exclude_id is not None:
        query = query.where(Leaderboard.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise DuplicateSlugError("Leaderboard", slug)


@router.post(
    "/",
    response_model=leaderboard_schema.LeaderboardRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_leaderboard(
    game_id: int,
    leaderboard_in: leaderboard_schema.LeaderboardCreate,
    db: AsyncSession = Depends(get_db),
) -> Leaderboard:
    """
    Create a leaderboard in one of the game's environments.

    - **environment_id**: Environment the leaderboard lives in
    - **name**: Display name, also usable to address the board
    - **slug**: Optional identifier, unique per environment
    - **sort_order**: `desc` (higher is better) or `asc` (lower is better)
    - **reset_schedule**: `none`, `daily`, `weekly` or `monthly`
    - **reset_hour**: Hour of the reset, UTC

    Raises:
        404 Not Found: If the environment is not part of the game.
        409 Conflict: If the slug is taken in the environment.
    """
    await tenancy.get_environment(db, game_id, leaderboard_in.environment_id)
    if leaderboard_in.slug is not None:
        await _ensure_slug_free(
            db, game_id, leaderboard_in.environment_id, leaderboard_in.slug
        )

    leaderboard = Leaderboard(
        game_id=game_id,
        environment_id=leaderboard_in.environment_id,
        name=leaderboard_in.name,
        slug=leaderboard_in.slug,
        sort_order=leaderboard_in.sort_order.value,
        reset_schedule=leaderboard_in.reset_schedule.value,
        reset_hour=leaderboard_in.reset_hour,
        current_version=1,
        current_period_start=period_start_for(
            leaderboard_in.reset_schedule, leaderboard_in.reset_hour, utcnow()
        ),
    )
    db.add(leaderboard)
    await db.commit()
    await db.refresh(leaderboard)
    return leaderboard


@router.get("/", response_model=list[leaderboard_schema.LeaderboardRead])
async def read_leaderboards(
    game_id: int,
    environment_id: int | None = Query(
        None, description="Environment to list; defaults to the game's default"
    ),
    db: AsyncSession = Depends(get_db),
) -> list[Leaderboard]:
    """
    List the leaderboards of one environment, oldest first.
    """
    await tenancy.get_game(db, game_id)
    if environment_id is None:
        default = await tenancy.get_default_environment(db, game_id)
        environment_id = default.id
    else:
        await tenancy.get_environment(db, game_id, environment_id)

    query = (
        select(Leaderboard)
        .where(
            Leaderboard.game_id == game_id,
            Leaderboard.environment_id == environment_id,
        )
        .order_by(Leaderboard.created_at.asc(), Leaderboard.id.asc())
    )
    result = await db.execute(query)
    return list(result.scalars().all())


@router.get("/{leaderboard_id}", response_model=leaderboard_schema.LeaderboardRead)
async def read_leaderboard(
    game_id: int, leaderboard_id: int, db: AsyncSession = Depends(get_db)
) -> Leaderboard:
    """
    Retrieve a single leaderboard by its ID.
    """
    return await _get_leaderboard(db, game_id, leaderboard_id)


@router.put("/{leaderboard_id}", response_model=leaderboard_schema.LeaderboardRead)
async def update_leaderboard(
    game_id: int,
    leaderboard_id: int,
    leaderboard_in: leaderboard_schema.LeaderboardUpdate,
    db: AsyncSession = Depends(get_db),
) -> Leaderboard:
    """
    Update a leaderboard's name, sort order or reset settings.

    Changing the schedule or reset hour re-anchors the current period to
    the new settings without bumping the version.
    """
    leaderboard = await _get_leaderboard(db, game_id, leaderboard_id)
    update_data = leaderboard_in.model_dump(exclude_unset=True, exclude_none=True)

    for key, value in update_data.items():
        setattr(leaderboard, key, getattr(value, "value", value))

    if {"reset_schedule", "reset_hour"} & update_data.keys():
        leaderboard.current_period_start = period_start_for(
            leaderboard.reset_schedule, leaderboard.reset_hour, utcnow()
        )

    await db.commit()
    await db.refresh(leaderboard)
    return leaderboard


@router.delete("/{leaderboard_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_leaderboard(
    game_id: int, leaderboard_id: int, db: AsyncSession = Depends(get_db)
) -> None:
    """
    Delete a leaderboard and the scores of all of its versions.
    """
    await _get_leaderboard(db, game_id, leaderboard_id)
    await tenancy.delete_leaderboard(db, leaderboard_id)
    return None


# ===============================================
# Scores
# ===============================================
@router.get(
    "/{leaderboard_id}/scores",
    response_model=PaginatedResponse[score_schema.ScoreRead],
)
async def read_scores(
    game_id: int,
    leaderboard_id: int,
    version: int | None = Query(None, ge=1, description="Defaults to the current"),
    skip: int = Query(0, ge=0, description="Records to skip"),
    limit: int = Query(50, ge=1, le=100, description="Max records to return"),
    db: AsyncSession = Depends(get_db),
) -> PaginatedResponse[score_schema.ScoreRead]:
    """
    Retrieve stored score rows of one leaderboard version, best first.
    """
    leaderboard = await _get_leaderboard(db, game_id, leaderboard_id)
    target_version = version or leaderboard.current_version

    base_query = select(Score).where(
        Score.leaderboard_id == leaderboard_id,
        Score.version == target_version,
    )
    count_query = select(func.count()).select_from(base_query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    score_order = (
        Score.score.asc()
        if SortOrder(leaderboard.sort_order) is SortOrder.ASC
        else Score.score.desc()
    )
    query = base_query.order_by(score_order, Score.id.asc()).offset(skip).limit(limit)
    items = list((await db.execute(query)).scalars().all())

    return PaginatedResponse(
        items=items,  # type: ignore[arg-type]
        total=total,
        skip=skip,
        limit=limit,
        has_more=(skip + len(items)) < total,
    )


@router.delete(
    "/{leaderboard_id}/scores/{score_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_score(
    game_id: int,
    leaderboard_id: int,
    score_id: int,
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Delete a single score row, e.g. to remove a cheated entry.
    """
    await _get_leaderboard(db, game_id, leaderboard_id)
    result = await db.execute(
        delete(Score).where(Score.id == score_id, Score.leaderboard_id == leaderboard_id)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise ScoreNotFoundError(score_id)
    await db.commit()
    return None
