# src/scorekeep/api/public.py

"""Public scoring API used by game clients, authenticated by API key."""

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from scorekeep.api.deps import resolve_target_leaderboard
from scorekeep.db.session import get_db
from scorekeep.exceptions import InvalidVersionError
from scorekeep.schemas import leaderboard as leaderboard_schema
from scorekeep.schemas import score as score_schema
from scorekeep.schemas.common import ResetSchedule
from scorekeep.services import score_ledger
from scorekeep.services.leaderboard_resolver import LeaderboardContext

SERVICE_NAME = "scorekeep"
SERVICE_VERSION = "0.1.0"

# Maximum page size for ranked reads; larger limits are capped, not rejected
MAX_PAGE_SIZE = 100

router = APIRouter(prefix="/v1", tags=["Public API"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe for game clients. Requires no API key."""
    return {
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/scores", response_model=score_schema.ScoreSubmissionResult)
async def submit_score(
    submission: score_schema.ScoreSubmission,
    target: LeaderboardContext = Depends(resolve_target_leaderboard),
    db: AsyncSession = Depends(get_db),
) -> score_schema.ScoreSubmissionResult:
    """
    Submit a player's score to the current version of a leaderboard.

    The stored score only changes when the new one is strictly better
    under the leaderboard's sort order.

    - **player_guid**: Stable identifier of the player
    - **player_name**: Display name
    - **score**: The numeric score
    - **metadata**: Optional JSON object stored with the score
    - **leaderboard** (query): Leaderboard slug or name
    """
    result = await score_ledger.submit_score(
        db,
        leaderboard_id=target.leaderboard_id,
        version=target.current_version,
        sort_order=target.sort_order,
        player_guid=submission.player_guid,
        player_name=submission.player_name,
        score=submission.score,
        metadata=submission.metadata,
    )
    return score_schema.ScoreSubmissionResult(
        id=result.id,
        player_guid=result.player_guid,
        player_name=result.player_name,
        score=result.final_score,
        rank=result.rank,
        is_new_high_score=result.is_new_high_score,
    )


@router.get(
    "/leaderboard",
    response_model=leaderboard_schema.LeaderboardPage,
    response_model_exclude_unset=True,
)
async def get_leaderboard(
    limit: int = Query(10, ge=1, description="Max entries, capped at 100"),
    offset: int = Query(0, ge=0, description="Entries to skip"),
    version: int | None = Query(None, ge=1, description="Archived version to read"),
    target: LeaderboardContext = Depends(resolve_target_leaderboard),
    db: AsyncSession = Depends(get_db),
) -> leaderboard_schema.LeaderboardPage:
    """
    Get a ranked window of a leaderboard.

    Ranks in the page are positional: ``offset + index + 1``.

    Raises:
        400 INVALID_VERSION: If ``version`` is older than the oldest kept
            version or newer than the current one.
    """
    limit = min(limit, MAX_PAGE_SIZE)
    target_version = target.current_version
    schedule_fields: dict = {}

    # Boards without a schedule never roll over and expose no version info
    if target.reset_schedule is not ResetSchedule.NONE:
        oldest = await score_ledger.oldest_version(
            db, target.leaderboard_id, target.current_version
        )
        if version is not None:
            target_version = version
        if not oldest <= target_version <= target.current_version:
            raise InvalidVersionError(target_version, oldest, target.current_version)
        schedule_fields = {
            "version": target_version,
            "oldest_version": oldest,
            "next_reset": target.next_reset,
        }

    page = await score_ledger.list_scores(
        db,
        leaderboard_id=target.leaderboard_id,
        version=target_version,
        sort_order=target.sort_order,
        limit=limit,
        offset=offset,
    )
    return leaderboard_schema.LeaderboardPage(
        entries=[
            leaderboard_schema.LeaderboardEntry(**asdict(entry))
            for entry in page.entries
        ],
        total_count=page.total_count,
        reset_schedule=target.reset_schedule,
        **schedule_fields,
    )


@router.get("/player/{player_guid}", response_model=score_schema.PlayerScore)
async def get_player(
    player_guid: str,
    target: LeaderboardContext = Depends(resolve_target_leaderboard),
    db: AsyncSession = Depends(get_db),
) -> score_schema.PlayerScore:
    """
    Get a player's score and rank on the current version of a leaderboard.

    Raises:
        404 NOT_FOUND: If the player has no score on the current version.
    """
    row = await score_ledger.get_player_score(
        db, target.leaderboard_id, target.current_version, player_guid
    )
    rank = await score_ledger.compute_rank(
        db, target.leaderboard_id, target.current_version, row.score, target.sort_order
    )
    return score_schema.PlayerScore(
        id=row.id,
        player_guid=player_guid,
        player_name=row.player_name,
        score=row.score,
        rank=rank,
    )


@router.put("/player/{player_guid}", response_model=score_schema.PlayerScore)
async def rename_player(
    player_guid: str,
    rename: score_schema.PlayerRename,
    target: LeaderboardContext = Depends(resolve_target_leaderboard),
    db: AsyncSession = Depends(get_db),
) -> score_schema.PlayerScore:
    """
    Change a player's display name on the current version of a leaderboard.

    Raises:
        404 NOT_FOUND: If the player has no score on the current version.
    """
    row = await score_ledger.rename_player(
        db,
        target.leaderboard_id,
        target.current_version,
        player_guid,
        rename.player_name,
    )
    rank = await score_ledger.compute_rank(
        db, target.leaderboard_id, target.current_version, row.score, target.sort_order
    )
    return score_schema.PlayerScore(
        id=row.id,
        player_guid=player_guid,
        player_name=row.player_name,
        score=row.score,
        rank=rank,
    )


@router.post("/claim", response_model=score_schema.ClaimResult)
async def claim_score(
    claim: score_schema.ClaimRequest,
    target: LeaderboardContext = Depends(resolve_target_leaderboard),
    db: AsyncSession = Depends(get_db),
) -> score_schema.ClaimResult:
    """
    Claim an imported score by player name, binding it to a player GUID.

    Raises:
        404 NOT_FOUND: If no unclaimed imported score has that name.
        409 ALREADY_CLAIMED: If the GUID already has a score.
    """
    row = await score_ledger.claim_migrated_score(
        db,
        leaderboard_id=target.leaderboard_id,
        version=target.current_version,
        player_guid=claim.player_guid,
        player_name=claim.player_name,
    )
    rank = await score_ledger.compute_rank(
        db, target.leaderboard_id, target.current_version, row.score, target.sort_order
    )
    return score_schema.ClaimResult(
        claimed=True,
        score=row.score,
        rank=rank,
        player_name=row.player_name,
    )
