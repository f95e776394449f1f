# src/scorekeep/schemas/score.py

"""Pydantic schemas for score submission, player lookups and claims."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ===============================================
# Submission
# ===============================================
class ScoreSubmission(BaseModel):
    """A score sent by a game client.

    ``metadata`` is an arbitrary JSON object kept verbatim with the score.
    """

    player_guid: str = Field(..., min_length=1, max_length=255)
    player_name: str = Field(..., min_length=1, max_length=100)
    score: float = Field(..., strict=True, allow_inf_nan=False)
    metadata: dict[str, Any] | None = None


class ScoreSubmissionResult(BaseModel):
    """Outcome of a submission: the stored best score and its rank."""

    id: int
    player_guid: str
    player_name: str
    score: float
    rank: int = Field(..., ge=1)
    is_new_high_score: bool


# ===============================================
# Player lookups
# ===============================================
class PlayerScore(BaseModel):
    """A player's live score on the current version and its rank."""

    id: int
    player_guid: str
    player_name: str
    score: float
    rank: int = Field(..., ge=1)


class PlayerRename(BaseModel):
    """New display name for a player."""

    player_name: str = Field(..., min_length=1, max_length=100)


# ===============================================
# Claiming migrated scores
# ===============================================
class ClaimRequest(BaseModel):
    """Bind an imported score, found by name, to a player GUID."""

    player_guid: str = Field(..., min_length=1, max_length=255)
    player_name: str = Field(..., min_length=1, max_length=100)


class ClaimResult(BaseModel):
    """Outcome of a successful claim."""

    claimed: bool
    score: float
    rank: int = Field(..., ge=1)
    player_name: str


# ===============================================
# Admin view of stored rows
# ===============================================
class ScoreRead(BaseModel):
    """A stored score row, including archived versions."""

    id: int
    leaderboard_id: int
    version: int
    player_guid: str | None
    player_name: str
    score: float
    metadata: dict[str, Any] | None = Field(None, validation_alias="score_metadata")
    is_migrated: bool
    migrated_from: str | None
    created_at: datetime
    updated_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
