"""Initial schema: games, environments, API keys, leaderboards, scores

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
- games, scoped to an owner with a per-owner unique slug
- environments, with at most one default per game (partial unique index)
- api_keys, storing only the SHA-256 hash and a display prefix
- leaderboards, with reset schedule and version/period tracking
- scores, one live row per (leaderboard, version, player)
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables and indexes."""
    # === GAMES ===
    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("owner_id", "slug", name="uq_games_owner_slug"),
    )
    op.create_index("ix_games_owner_id", "games", ["owner_id"])

    # === ENVIRONMENTS ===
    op.create_table(
        "environments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("game_id", "slug", name="uq_environments_game_slug"),
    )
    op.create_index("ix_environments_game_id", "environments", ["game_id"])
    op.create_index(
        "uq_environments_one_default",
        "environments",
        ["game_id"],
        unique=True,
        sqlite_where=sa.text("is_default"),
        postgresql_where=sa.text("is_default"),
    )

    # === API_KEYS ===
    op.create_table(
        "api_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "environment_id",
            sa.Integer(),
            sa.ForeignKey("environments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("key_prefix", sa.String(), nullable=False),
        sa.Column("key_hash", sa.String(), nullable=False, unique=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_api_keys_game_id", "api_keys", ["game_id"])
    op.create_index("ix_api_keys_environment_id", "api_keys", ["environment_id"])

    # === LEADERBOARDS ===
    op.create_table(
        "leaderboards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "game_id",
            sa.Integer(),
            sa.ForeignKey("games.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "environment_id",
            sa.Integer(),
            sa.ForeignKey("environments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=True),
        sa.Column("sort_order", sa.String(), nullable=False, server_default="desc"),
        sa.Column("reset_schedule", sa.String(), nullable=False, server_default="none"),
        sa.Column("reset_hour", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "game_id", "environment_id", "slug", name="uq_leaderboards_scope_slug"
        ),
        sa.CheckConstraint("sort_order IN ('asc', 'desc')", name="ck_leaderboards_sort"),
        sa.CheckConstraint(
            "reset_schedule IN ('none', 'daily', 'weekly', 'monthly')",
            name="ck_leaderboards_reset_schedule",
        ),
        sa.CheckConstraint(
            "reset_hour >= 0 AND reset_hour <= 23", name="ck_leaderboards_reset_hour"
        ),
    )
    op.create_index("ix_leaderboards_game_id", "leaderboards", ["game_id"])
    op.create_index("ix_leaderboards_environment_id", "leaderboards", ["environment_id"])

    # === SCORES ===
    op.create_table(
        "scores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "leaderboard_id",
            sa.Integer(),
            sa.ForeignKey("leaderboards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("player_guid", sa.String(), nullable=True),
        sa.Column("player_name", sa.String(), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("is_migrated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("migrated_from", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "leaderboard_id",
            "version",
            "player_guid",
            name="uq_scores_leaderboard_version_player",
        ),
    )
    op.create_index("ix_scores_leaderboard_id", "scores", ["leaderboard_id"])
    op.create_index("ix_scores_player_guid", "scores", ["player_guid"])
    op.create_index("ix_scores_player_name", "scores", ["player_name"])
    op.create_index(
        "ix_scores_leaderboard_version_score",
        "scores",
        ["leaderboard_id", "version", "score"],
    )


def downgrade() -> None:
    """Drop all tables, children first."""
    op.drop_table("scores")
    op.drop_table("leaderboards")
    op.drop_table("api_keys")
    op.drop_table("environments")
    op.drop_table("games")
