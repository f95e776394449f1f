# src/scorekeep/services/leaderboard_resolver.py

"""Resolve the leaderboard targeted by a public API call.

Resolution also performs the lazy reset: if the active period of a
scheduled leaderboard has ended, the leaderboard is rolled over to a new
version before its context is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db import models
from scorekeep.db.models import as_utc, utcnow
from scorekeep.exceptions import LeaderboardNotFoundError
from scorekeep.schemas.common import ResetSchedule, SortOrder
from scorekeep.services.reset_schedule import advance_periods, next_period_boundary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardContext:
    """Everything the ledger needs to know about the target leaderboard.

    ``rolled_over`` is True only for the call whose write advanced the
    version; that call is responsible for scheduling retention pruning.
    """

    leaderboard_id: int
    sort_order: SortOrder
    reset_schedule: ResetSchedule
    reset_hour: int
    current_version: int
    current_period_start: datetime
    rolled_over: bool = False

    @property
    def next_reset(self) -> datetime | None:
        if self.reset_schedule is ResetSchedule.NONE:
            return None
        return next_period_boundary(
            self.reset_schedule, self.reset_hour, self.current_period_start
        )

    @classmethod
    def from_model(
        cls, leaderboard: models.Leaderboard, rolled_over: bool = False
    ) -> "LeaderboardContext":
        return cls(
            leaderboard_id=leaderboard.id,
            sort_order=SortOrder(leaderboard.sort_order),
            reset_schedule=ResetSchedule(leaderboard.reset_schedule),
            reset_hour=leaderboard.reset_hour,
            current_version=leaderboard.current_version,
            current_period_start=as_utc(leaderboard.current_period_start),
            rolled_over=rolled_over,
        )


async def find_leaderboard(
    db: AsyncSession,
    game_id: int,
    environment_id: int,
    identifier: str | None = None,
) -> models.Leaderboard:
    """Look up a leaderboard in a (game, environment) scope.

    With an identifier, an exact slug match wins over a case-insensitive
    name match; among equal names the earliest-created board is used.
    Without one, the earliest-created board of the scope is the default.

    Raises:
        LeaderboardNotFoundError: If nothing in the scope matches
    """
    scope = select(models.Leaderboard).where(
        models.Leaderboard.game_id == game_id,
        models.Leaderboard.environment_id == environment_id,
    )
    earliest = (models.Leaderboard.created_at.asc(), models.Leaderboard.id.asc())

    if identifier:
        by_slug = scope.where(models.Leaderboard.slug == identifier)
        leaderboard = (await db.execute(by_slug)).scalar_one_or_none()
        if leaderboard is None:
            # Names are folded in Python; SQLite's lower() only folds ASCII.
            wanted = identifier.lower()
            candidates = (await db.execute(scope.order_by(*earliest))).scalars()
            leaderboard = next(
                (board for board in candidates if board.name.lower() == wanted), None
            )
    else:
        query = scope.order_by(*earliest).limit(1)
        leaderboard = (await db.execute(query)).scalar_one_or_none()

    if leaderboard is None:
        raise LeaderboardNotFoundError(game_id, environment_id, identifier)
    return leaderboard


async def resolve_leaderboard(
    db: AsyncSession,
    game_id: int,
    environment_id: int,
    identifier: str | None = None,
    now: datetime | None = None,
) -> LeaderboardContext:
    """Resolve the target leaderboard, rolling its version over if due.

    Raises:
        LeaderboardNotFoundError: If the identifier (or default) is unknown
    """
    leaderboard = await find_leaderboard(db, game_id, environment_id, identifier)
    return await roll_over_if_due(db, leaderboard, now=now)


async def roll_over_if_due(
    db: AsyncSession,
    leaderboard: models.Leaderboard,
    now: datetime | None = None,
) -> LeaderboardContext:
    """Advance ``current_version`` by one per elapsed period.

    The write is conditional on the version read earlier, so when several
    requests race past a boundary exactly one of them advances the board
    and the others re-read its result instead of incrementing again.
    """
    now = now or utcnow()
    elapsed, new_period_start = advance_periods(
        leaderboard.reset_schedule,
        leaderboard.reset_hour,
        leaderboard.current_period_start,
        now,
    )
    if elapsed == 0:
        return LeaderboardContext.from_model(leaderboard)

    expected_version = leaderboard.current_version
    new_version = expected_version + elapsed

    stmt = (
        update(models.Leaderboard)
        .where(
            models.Leaderboard.id == leaderboard.id,
            models.Leaderboard.current_version == expected_version,
        )
        .values(current_version=new_version, current_period_start=new_period_start)
        .execution_options(synchronize_session=False)
    )
    try:
        result = await db.execute(stmt)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(leaderboard)
    won = result.rowcount == 1

    if won:
        logger.info(
            "Leaderboard rolled over",
            extra={
                "leaderboard_id": leaderboard.id,
                "from_version": expected_version,
                "to_version": new_version,
                "periods_elapsed": elapsed,
            },
        )
    else:
        logger.debug(
            "Leaderboard rollover lost race, using stored version",
            extra={
                "leaderboard_id": leaderboard.id,
                "stored_version": leaderboard.current_version,
            },
        )

    return LeaderboardContext.from_model(leaderboard, rolled_over=won)
