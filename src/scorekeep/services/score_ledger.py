# src/scorekeep/services/score_ledger.py

"""Business logic for storing best scores and ranking players.

A player holds at most one live score per leaderboard version. Submissions
only replace it when they are strictly better under the leaderboard's sort
order, which makes retries of the same submission no-ops.

Atomicity per (leaderboard, version, player) comes from the store, not from
application locks:

- the live row is read with ``SELECT ... FOR UPDATE``
- the replacement is a conditional ``UPDATE ... WHERE score < :new``
  (``>`` for ascending boards), so a concurrent better score is never
  overwritten by a worse one
- a racing first insert hits the unique constraint and falls back to the
  conditional update
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.db import models
from scorekeep.db.models import utcnow
from scorekeep.exceptions import (
    AlreadyClaimedError,
    PlayerScoreNotFoundError,
    UnclaimedScoreNotFoundError,
)
from scorekeep.schemas.common import SortOrder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    """Outcome of a submission."""

    id: int
    player_guid: str
    player_name: str
    final_score: float
    rank: int
    is_new_high_score: bool


@dataclass(frozen=True)
class RankedEntry:
    rank: int
    player_guid: str | None
    player_name: str
    score: float


@dataclass(frozen=True)
class RankedPage:
    entries: list[RankedEntry]
    total_count: int


def is_better(candidate: float, incumbent: float, sort_order: SortOrder | str) -> bool:
    """True if ``candidate`` strictly beats ``incumbent``."""
    if SortOrder(sort_order) is SortOrder.ASC:
        return candidate < incumbent
    return candidate > incumbent


def _strictly_better_than(value: float, sort_order: SortOrder | str):
    """Column clause matching stored scores that strictly beat ``value``."""
    if SortOrder(sort_order) is SortOrder.ASC:
        return models.Score.score < value
    return models.Score.score > value


def _strictly_worse_than(value: float, sort_order: SortOrder | str):
    """Column clause matching stored scores that ``value`` strictly beats."""
    if SortOrder(sort_order) is SortOrder.ASC:
        return models.Score.score > value
    return models.Score.score < value


def _in_version(leaderboard_id: int, version: int):
    return (
        models.Score.leaderboard_id == leaderboard_id,
        models.Score.version == version,
    )


async def compute_rank(
    db: AsyncSession,
    leaderboard_id: int,
    version: int,
    score: float,
    sort_order: SortOrder | str,
) -> int:
    """1 + number of rows in the version strictly better than ``score``.

    Tied scores share a rank, so ranks are not sequential across ties.
    """
    query = select(func.count(models.Score.id)).where(
        *_in_version(leaderboard_id, version),
        _strictly_better_than(score, sort_order),
    )
    better = (await db.execute(query)).scalar_one()
    return better + 1


async def _find_live_score(
    db: AsyncSession,
    leaderboard_id: int,
    version: int,
    player_guid: str,
    for_update: bool = False,
) -> models.Score | None:
    query = select(models.Score).where(
        *_in_version(leaderboard_id, version),
        models.Score.player_guid == player_guid,
    )
    if for_update:
        # NOTE: On SQLite, with_for_update() relies on the database-level write lock
        query = query.with_for_update()
    return (await db.execute(query)).scalar_one_or_none()


async def _insert_score(
    db: AsyncSession,
    leaderboard_id: int,
    version: int,
    player_guid: str,
    player_name: str,
    score: float,
    metadata: dict[str, Any] | None,
) -> models.Score | None:
    """Insert a first score. Returns None if a concurrent insert won."""
    row = models.Score(
        leaderboard_id=leaderboard_id,
        version=version,
        player_guid=player_guid,
        player_name=player_name,
        score=score,
        score_metadata=metadata,
    )
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.debug(
            "Concurrent first submission detected, retrying as update",
            extra={"leaderboard_id": leaderboard_id, "player_guid": player_guid},
        )
        return None
    return row


async def _update_if_better(
    db: AsyncSession,
    existing: models.Score,
    sort_order: SortOrder | str,
    player_name: str,
    score: float,
    metadata: dict[str, Any] | None,
) -> bool:
    """Conditionally replace a stored score. Returns True if it was replaced."""
    if not is_better(score, existing.score, sort_order):
        await db.commit()
        return False

    stmt = (
        update(models.Score)
        .where(
            models.Score.id == existing.id,
            _strictly_worse_than(score, sort_order),
        )
        .values(
            score=score,
            player_name=player_name,
            score_metadata=metadata,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    await db.commit()
    await db.refresh(existing)
    return result.rowcount == 1


async def submit_score(
    db: AsyncSession,
    *,
    leaderboard_id: int,
    version: int,
    sort_order: SortOrder | str,
    player_guid: str,
    player_name: str,
    score: float,
    metadata: dict[str, Any] | None = None,
) -> SubmitResult:
    """Record a submission and return the player's best score and rank.

    The write is committed before the rank is computed; if the rank query
    fails the stored score stays, and a retry is a harmless no-op.
    """
    logger.info(
        "Processing score submission",
        extra={"leaderboard_id": leaderboard_id, "version": version},
    )

    existing = await _find_live_score(
        db, leaderboard_id, version, player_guid, for_update=True
    )

    is_new_high_score = False
    if existing is None:
        inserted = await _insert_score(
            db, leaderboard_id, version, player_guid, player_name, score, metadata
        )
        if inserted is not None:
            row = inserted
            is_new_high_score = True
        else:
            existing = await _find_live_score(db, leaderboard_id, version, player_guid)
            if existing is None:
                raise RuntimeError("Score row vanished after unique conflict")

    if existing is not None:
        is_new_high_score = await _update_if_better(
            db, existing, sort_order, player_name, score, metadata
        )
        row = existing

    rank = await compute_rank(db, leaderboard_id, version, row.score, sort_order)

    logger.info(
        "Score submission processed",
        extra={
            "leaderboard_id": leaderboard_id,
            "score_id": row.id,
            "is_new_high_score": is_new_high_score,
            "rank": rank,
        },
    )
    return SubmitResult(
        id=row.id,
        player_guid=player_guid,
        player_name=row.player_name,
        final_score=row.score,
        rank=rank,
        is_new_high_score=is_new_high_score,
    )


async def list_scores(
    db: AsyncSession,
    *,
    leaderboard_id: int,
    version: int,
    sort_order: SortOrder | str,
    limit: int,
    offset: int = 0,
) -> RankedPage:
    """A page of a leaderboard version, best first.

    Ranks here are positional (``offset + index + 1``) and do not collapse
    ties the way ``compute_rank`` does.
    """
    count_query = select(func.count(models.Score.id)).where(
        *_in_version(leaderboard_id, version)
    )
    total = (await db.execute(count_query)).scalar_one()

    score_order = (
        models.Score.score.asc()
        if SortOrder(sort_order) is SortOrder.ASC
        else models.Score.score.desc()
    )
    query = (
        select(models.Score)
        .where(*_in_version(leaderboard_id, version))
        .order_by(score_order, models.Score.id.asc())
        .offset(offset)
        .limit(limit)
    )
    rows = (await db.execute(query)).scalars().all()

    entries = [
        RankedEntry(
            rank=offset + index + 1,
            player_guid=row.player_guid,
            player_name=row.player_name,
            score=row.score,
        )
        for index, row in enumerate(rows)
    ]
    return RankedPage(entries=entries, total_count=total)


async def oldest_version(
    db: AsyncSession, leaderboard_id: int, current_version: int
) -> int:
    """Oldest version that still has rows, or the current one if none do."""
    query = select(func.min(models.Score.version)).where(
        models.Score.leaderboard_id == leaderboard_id
    )
    oldest = (await db.execute(query)).scalar_one_or_none()
    return min(oldest, current_version) if oldest is not None else current_version


async def get_player_score(
    db: AsyncSession, leaderboard_id: int, version: int, player_guid: str
) -> models.Score:
    """The player's live row on a version.

    Raises:
        PlayerScoreNotFoundError: If the player has no score on the version
    """
    row = await _find_live_score(db, leaderboard_id, version, player_guid)
    if row is None:
        raise PlayerScoreNotFoundError(leaderboard_id, player_guid)
    return row


async def rename_player(
    db: AsyncSession,
    leaderboard_id: int,
    version: int,
    player_guid: str,
    player_name: str,
) -> models.Score:
    """Change the display name on a player's live row.

    Raises:
        PlayerScoreNotFoundError: If the player has no score on the version
    """
    row = await get_player_score(db, leaderboard_id, version, player_guid)
    row.player_name = player_name
    await db.commit()
    await db.refresh(row)
    return row


async def claim_migrated_score(
    db: AsyncSession,
    *,
    leaderboard_id: int,
    version: int,
    player_guid: str,
    player_name: str,
) -> models.Score:
    """Bind an imported, unclaimed score to a player GUID.

    Raises:
        UnclaimedScoreNotFoundError: If no migrated row without a GUID has
            that player name
        AlreadyClaimedError: If the GUID already has a score on the version
    """
    query = (
        select(models.Score)
        .where(
            *_in_version(leaderboard_id, version),
            models.Score.player_name == player_name,
            models.Score.is_migrated.is_(True),
            models.Score.player_guid.is_(None),
        )
        .order_by(models.Score.id.asc())
        .limit(1)
        .with_for_update()
    )
    migrated = (await db.execute(query)).scalar_one_or_none()
    if migrated is None:
        raise UnclaimedScoreNotFoundError(leaderboard_id, player_name)

    if await _find_live_score(db, leaderboard_id, version, player_guid) is not None:
        raise AlreadyClaimedError(leaderboard_id, player_guid)

    migrated.player_guid = player_guid
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise AlreadyClaimedError(leaderboard_id, player_guid)
    await db.refresh(migrated)

    logger.info(
        "Migrated score claimed",
        extra={"leaderboard_id": leaderboard_id, "score_id": migrated.id},
    )
    return migrated
