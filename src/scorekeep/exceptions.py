# src/scorekeep/exceptions.py

"""Custom exception hierarchy for Scorekeep.

Every error carries the HTTP status it maps to and the public error code
returned to clients, so the handlers in ``main.py`` only need to know the
category of a failure:

1. Client errors detected close to the boundary (400, 401, 404, 409, 429)
2. Unexpected backend failures, downgraded to a generic 500
"""

from __future__ import annotations


class ScorekeepError(Exception):
    """Base exception for all Scorekeep errors.

    Attributes:
        message: Human-readable error description
        details: Optional dict with additional context for logging/debugging
    """

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Invalid Request Errors (HTTP 400)
# =============================================================================


class InvalidRequestError(ScorekeepError):
    """Raised when client input is malformed or not allowed."""

    status_code = 400
    code = "INVALID_REQUEST"


class InvalidVersionError(InvalidRequestError):
    """Raised when a requested leaderboard version is outside the kept range."""

    code = "INVALID_VERSION"

    def __init__(self, requested: int, oldest: int, current: int) -> None:
        super().__init__(
            message=f"Invalid version. Available versions: {oldest} to {current}",
            details={"requested": requested, "oldest": oldest, "current": current},
        )


class DefaultEnvironmentDeletionError(InvalidRequestError):
    """Raised when deleting the default environment of a game."""

    def __init__(self, environment_id: int) -> None:
        super().__init__(
            message="Cannot delete the default environment",
            details={"environment_id": environment_id},
        )


# =============================================================================
# Authentication Errors (HTTP 401)
# =============================================================================


class AuthenticationError(ScorekeepError):
    """Base class for API key failures."""

    status_code = 401
    code = "INVALID_API_KEY"


class MissingCredentialError(AuthenticationError):
    """Raised when no API key header was sent."""

    def __init__(self) -> None:
        super().__init__(message="Missing X-API-Key header")


class MalformedCredentialError(AuthenticationError):
    """Raised when the API key does not follow the ``kb_`` convention."""

    def __init__(self) -> None:
        super().__init__(message="Invalid API key format")


class InvalidCredentialError(AuthenticationError):
    """Raised when no stored key hash matches the presented key."""

    def __init__(self, key_prefix: str) -> None:
        super().__init__(
            message="Invalid API key",
            details={"key_prefix": key_prefix},
        )


# =============================================================================
# Rate Limiting (HTTP 429)
# =============================================================================


class RateLimitedError(ScorekeepError):
    """Raised when an API key exceeded its request window.

    ``headers`` holds the rate limit headers to send back so the client knows
    when the window resets.
    """

    status_code = 429
    code = "RATE_LIMITED"

    def __init__(self, headers: dict[str, str]) -> None:
        self.headers = headers
        super().__init__(message="Rate limit exceeded", details=dict(headers))


# =============================================================================
# Resource Not Found Errors (HTTP 404)
# =============================================================================


class ResourceNotFoundError(ScorekeepError):
    """Base class for resource not found errors."""

    status_code = 404
    code = "NOT_FOUND"


class GameNotFoundError(ResourceNotFoundError):
    """Raised when a game ID does not exist."""

    def __init__(self, game_id: int) -> None:
        super().__init__(
            message=f"Game with ID {game_id} not found",
            details={"game_id": game_id},
        )


class EnvironmentNotFoundError(ResourceNotFoundError):
    """Raised when an environment does not exist within a game."""

    def __init__(self, environment_id: int, game_id: int) -> None:
        super().__init__(
            message=f"Environment with ID {environment_id} not found",
            details={"environment_id": environment_id, "game_id": game_id},
        )


class LeaderboardNotFoundError(ResourceNotFoundError):
    """Raised when a leaderboard cannot be resolved in a game/environment."""

    def __init__(
        self,
        game_id: int,
        environment_id: int | None,
        identifier: str | int | None = None,
    ) -> None:
        if identifier is None:
            message = "No leaderboards found for this game/environment"
        else:
            message = f"Leaderboard '{identifier}' not found"
        super().__init__(
            message=message,
            details={
                "game_id": game_id,
                "environment_id": environment_id,
                "identifier": identifier,
            },
        )


class PlayerScoreNotFoundError(ResourceNotFoundError):
    """Raised when a player has no live score on a leaderboard version."""

    def __init__(self, leaderboard_id: int, player_guid: str) -> None:
        super().__init__(
            message="Player not found",
            details={"leaderboard_id": leaderboard_id, "player_guid": player_guid},
        )


class UnclaimedScoreNotFoundError(ResourceNotFoundError):
    """Raised when no migrated, unclaimed score matches a player name."""

    def __init__(self, leaderboard_id: int, player_name: str) -> None:
        super().__init__(
            message="No unclaimed score found for this player name",
            details={"leaderboard_id": leaderboard_id, "player_name": player_name},
        )


class ScoreNotFoundError(ResourceNotFoundError):
    """Raised when a score row ID does not exist on a leaderboard."""

    def __init__(self, score_id: int) -> None:
        super().__init__(
            message=f"Score with ID {score_id} not found",
            details={"score_id": score_id},
        )


class ApiKeyNotFoundError(ResourceNotFoundError):
    """Raised when an API key ID does not exist within a game."""

    def __init__(self, api_key_id: int) -> None:
        super().__init__(
            message=f"API key with ID {api_key_id} not found",
            details={"api_key_id": api_key_id},
        )


# =============================================================================
# Conflict Errors (HTTP 409)
# =============================================================================


class ConflictError(ScorekeepError):
    """Raised when a uniqueness rule would be violated."""

    status_code = 409
    code = "CONFLICT"


class DuplicateSlugError(ConflictError):
    """Raised when a slug is already taken in its scope."""

    def __init__(self, resource: str, slug: str) -> None:
        super().__init__(
            message=f"{resource} with slug '{slug}' already exists",
            details={"resource": resource, "slug": slug},
        )


class AlreadyClaimedError(ConflictError):
    """Raised when a player GUID already owns a score on the leaderboard."""

    code = "ALREADY_CLAIMED"

    def __init__(self, leaderboard_id: int, player_guid: str) -> None:
        super().__init__(
            message="This player_guid already has a score on this leaderboard",
            details={"leaderboard_id": leaderboard_id, "player_guid": player_guid},
        )
