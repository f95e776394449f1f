# src/scorekeep/schemas/__init__.py

"""Pydantic schemas for API validation and serialization."""

from .api_key import ApiKeyCreate, ApiKeyCreated, ApiKeyRead
from .common import ResetSchedule, SortOrder, slugify
from .game import (
    EnvironmentCreate,
    EnvironmentRead,
    EnvironmentUpdate,
    GameBase,
    GameCreate,
    GameRead,
    GameUpdate,
)
from .leaderboard import (
    LeaderboardCreate,
    LeaderboardEntry,
    LeaderboardPage,
    LeaderboardRead,
    LeaderboardUpdate,
)
from .pagination import GameSortField, PaginatedResponse
from .score import (
    ClaimRequest,
    ClaimResult,
    PlayerRename,
    PlayerScore,
    ScoreRead,
    ScoreSubmission,
    ScoreSubmissionResult,
)

__all__ = [
    # Common
    "ResetSchedule",
    "SortOrder",
    "slugify",
    # API Key
    "ApiKeyCreate",
    "ApiKeyCreated",
    "ApiKeyRead",
    # Game / Environment
    "GameBase",
    "GameCreate",
    "GameRead",
    "GameUpdate",
    "EnvironmentCreate",
    "EnvironmentRead",
    "EnvironmentUpdate",
    # Leaderboard
    "LeaderboardCreate",
    "LeaderboardEntry",
    "LeaderboardPage",
    "LeaderboardRead",
    "LeaderboardUpdate",
    # Pagination
    "GameSortField",
    "PaginatedResponse",
    # Score
    "ClaimRequest",
    "ClaimResult",
    "PlayerRename",
    "PlayerScore",
    "ScoreRead",
    "ScoreSubmission",
    "ScoreSubmissionResult",
]
