# src/scorekeep/db/models.py

"""Database models for the Scorekeep application."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    select,
    text,
    true,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import (
    Mapped,
    declarative_base,
    mapped_column,
    relationship,
)

Base = declarative_base()


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ===============================================
# Mixins for Common Columns
# ===============================================


class TimestampMixin:
    """Mixin providing created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=None,
        onupdate=utcnow,
        nullable=True,
    )


# ===============================================
# Tenancy: Game, Environment, ApiKey
# ===============================================


class Game(Base, TimestampMixin):
    """A game registered by an owner. The slug never changes after creation."""

    __tablename__ = "games"
    id: Mapped[int] = mapped_column(primary_key=True)
    # Identity of the dashboard user owning this game
    owner_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)

    environments: Mapped[List["Environment"]] = relationship(
        back_populates="game", passive_deletes=True
    )

    __table_args__ = (UniqueConstraint("owner_id", "slug", name="uq_games_owner_slug"),)

    def __init__(self, **kw: Any):
        super().__init__(**kw)


class Environment(Base, TimestampMixin):
    """A deployment stage of a game (e.g. Production, Development)."""

    __tablename__ = "environments"
    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    is_default: Mapped[bool] = mapped_column(default=False, nullable=False)

    game: Mapped["Game"] = relationship(back_populates="environments")

    __table_args__ = (
        UniqueConstraint("game_id", "slug", name="uq_environments_game_slug"),
        # Exactly one default environment per game
        Index(
            "uq_environments_one_default",
            "game_id",
            unique=True,
            sqlite_where=text("is_default"),
            postgresql_where=text("is_default"),
        ),
    )

    @classmethod
    async def find_default(cls, db: AsyncSession, game_id: int) -> "Environment | None":
        """Find the default environment of a game."""
        query = select(cls).where(cls.game_id == game_id, cls.is_default == true())
        result = await db.execute(query)
        return result.scalar_one_or_none()


class ApiKey(Base):
    """A credential scoped to exactly one (game, environment).

    Only the SHA-256 digest of the raw key is stored; ``key_prefix`` is kept
    so owners can tell keys apart in listings.
    """

    __tablename__ = "api_keys"
    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    environment_id: Mapped[int] = mapped_column(
        ForeignKey("environments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key_prefix: Mapped[str] = mapped_column(String, nullable=False)
    key_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


# ===============================================
# Leaderboards and Scores
# ===============================================


class Leaderboard(Base, TimestampMixin):
    """A ranked board within a game environment.

    ``current_version`` counts elapsed reset periods and doubles as the
    optimistic lock for rollovers: a rollover only applies if the stored
    version still matches the one that was read.
    """

    __tablename__ = "leaderboards"
    id: Mapped[int] = mapped_column(primary_key=True)
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True
    )
    environment_id: Mapped[int] = mapped_column(
        ForeignKey("environments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str | None] = mapped_column(String, nullable=True)

    # 'asc' means lower is better, 'desc' means higher is better
    sort_order: Mapped[str] = mapped_column(String, default="desc", nullable=False)

    # Reset configuration: 'none', 'daily', 'weekly' or 'monthly' at reset_hour UTC
    reset_schedule: Mapped[str] = mapped_column(String, default="none", nullable=False)
    reset_hour: Mapped[int] = mapped_column(default=0, nullable=False)
    current_version: Mapped[int] = mapped_column(default=1, nullable=False)
    current_period_start: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    scores: Mapped[List["Score"]] = relationship(
        back_populates="leaderboard", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint(
            "game_id", "environment_id", "slug", name="uq_leaderboards_scope_slug"
        ),
        CheckConstraint("sort_order IN ('asc', 'desc')", name="ck_leaderboards_sort"),
        CheckConstraint(
            "reset_schedule IN ('none', 'daily', 'weekly', 'monthly')",
            name="ck_leaderboards_reset_schedule",
        ),
        CheckConstraint(
            "reset_hour >= 0 AND reset_hour <= 23", name="ck_leaderboards_reset_hour"
        ),
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)


class Score(Base, TimestampMixin):
    """A player's best score on one leaderboard version.

    Rows of earlier versions are archived in place and removed by the
    retention pruner. Migrated rows have no player_guid until claimed.
    """

    __tablename__ = "scores"
    id: Mapped[int] = mapped_column(primary_key=True)
    leaderboard_id: Mapped[int] = mapped_column(
        ForeignKey("leaderboards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version: Mapped[int] = mapped_column(default=1, nullable=False)
    player_guid: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    player_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    score: Mapped[float] = mapped_column(Float, nullable=False)

    # Opaque client payload, stored and returned as-is.
    # Ex: {'level': 7, 'character': 'knight', 'hardcore': true}
    score_metadata: Mapped[dict | None] = mapped_column(
        "metadata", JSON, nullable=True
    )

    # Provenance for rows imported from another system
    is_migrated: Mapped[bool] = mapped_column(default=False, nullable=False)
    migrated_from: Mapped[str | None] = mapped_column(String, nullable=True)

    leaderboard: Mapped["Leaderboard"] = relationship(back_populates="scores")

    __table_args__ = (
        UniqueConstraint(
            "leaderboard_id",
            "version",
            "player_guid",
            name="uq_scores_leaderboard_version_player",
        ),
        Index("ix_scores_leaderboard_version_score", "leaderboard_id", "version", "score"),
    )

    def __init__(self, **kw: Any):
        super().__init__(**kw)
