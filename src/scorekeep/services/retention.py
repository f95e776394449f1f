# src/scorekeep/services/retention.py

"""Retention policy for archived leaderboard versions."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from scorekeep.db import models
from scorekeep.schemas.common import ResetSchedule

logger = logging.getLogger(__name__)

# How many versions to keep per schedule. 'none' boards never roll over.
VERSION_RETENTION: dict[ResetSchedule, int] = {
    ResetSchedule.DAILY: 30,  # ~1 month
    ResetSchedule.WEEKLY: 12,  # ~3 months
    ResetSchedule.MONTHLY: 12,  # ~1 year
}


def oldest_retained_version(schedule: ResetSchedule | str, current_version: int) -> int:
    """Lowest version number the policy keeps for a board."""
    retention = VERSION_RETENTION.get(ResetSchedule(schedule))
    if retention is None:
        return 1
    return max(1, current_version - retention)


async def prune_versions(
    db: AsyncSession, leaderboard_id: int, schedule: ResetSchedule | str
) -> int:
    """Delete score rows older than the retention window of a leaderboard.

    Returns the number of rows deleted.
    """
    if ResetSchedule(schedule) not in VERSION_RETENTION:
        return 0

    query = select(models.Leaderboard.current_version).where(
        models.Leaderboard.id == leaderboard_id
    )
    current_version = (await db.execute(query)).scalar_one_or_none()
    if current_version is None:
        return 0

    cutoff = oldest_retained_version(schedule, current_version)
    if cutoff <= 1:
        return 0

    stmt = delete(models.Score).where(
        models.Score.leaderboard_id == leaderboard_id,
        models.Score.version < cutoff,
    )
    result = await db.execute(stmt)
    await db.commit()

    logger.info(
        "Pruned archived leaderboard versions",
        extra={
            "leaderboard_id": leaderboard_id,
            "below_version": cutoff,
            "deleted": result.rowcount,
        },
    )
    return result.rowcount


async def prune_versions_in_background(
    session_factory: async_sessionmaker[AsyncSession],
    leaderboard_id: int,
    schedule: ResetSchedule | str,
) -> None:
    """Best-effort pruning run after a rollover. Failures are only logged."""
    try:
        async with session_factory() as session:
            await prune_versions(session, leaderboard_id, schedule)
    except Exception:
        logger.exception(
            "Version pruning failed", extra={"leaderboard_id": leaderboard_id}
        )
