# src/scorekeep/schemas/leaderboard.py

"""Leaderboard schemas for the admin API and public ranked reads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from .common import SLUG_PATTERN, ResetSchedule, SortOrder


# ===============================================
# Admin: leaderboard configuration
# ===============================================
class LeaderboardBase(BaseModel):
    """Shared properties for a leaderboard."""

    name: str = Field(..., min_length=1, max_length=100)
    sort_order: SortOrder = SortOrder.DESC
    reset_schedule: ResetSchedule = ResetSchedule.NONE
    reset_hour: int = Field(0, ge=0, le=23, description="Hour of the reset, UTC")


class LeaderboardCreate(LeaderboardBase):
    """Properties to receive via API on create."""

    environment_id: int
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)


class LeaderboardUpdate(BaseModel):
    """Properties to receive via API on update, all optional."""

    name: str | None = Field(None, min_length=1, max_length=100)
    sort_order: SortOrder | None = None
    reset_schedule: ResetSchedule | None = None
    reset_hour: int | None = Field(None, ge=0, le=23)


class LeaderboardRead(LeaderboardBase):
    """Properties to return to the client."""

    id: int
    game_id: int
    environment_id: int
    slug: str | None
    current_version: int
    current_period_start: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================
# Public: ranked views
# ===============================================
class LeaderboardEntry(BaseModel):
    """Single entry in a ranked leaderboard page.

    Attributes:
        rank: Position in the page ordering (offset + index + 1)
        player_guid: The player's GUID, None for unclaimed migrated rows
        player_name: Display name submitted with the score
        score: The stored best score
    """

    rank: int = Field(..., ge=1, description="Position in leaderboard (1-indexed)")
    player_guid: str | None
    player_name: str
    score: float


class LeaderboardPage(BaseModel):
    """A window of a leaderboard version.

    ``version``, ``oldest_version`` and ``next_reset`` are only present for
    leaderboards that reset on a schedule.
    """

    entries: list[LeaderboardEntry]
    total_count: int
    reset_schedule: ResetSchedule
    version: int | None = None
    oldest_version: int | None = None
    next_reset: datetime | None = None
