# src/scorekeep/schemas/game.py

"""Pydantic schemas for the Game and Environment resources."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import SLUG_PATTERN


# ===============================================
# Game
# ===============================================
class GameBase(BaseModel):
    """Shared properties for a game."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)


class GameCreate(GameBase):
    """Properties to receive via API on create."""

    owner_id: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN)


class GameUpdate(BaseModel):
    """Properties to receive via API on update. The slug cannot change."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=1000)

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value: str | None) -> str:
        # Omit the field to leave the name unchanged.
        if value is None:
            raise ValueError("name cannot be null")
        return value


class GameRead(GameBase):
    """Properties to return to the client."""

    id: int
    owner_id: str
    slug: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================
# Environment
# ===============================================
class EnvironmentCreate(BaseModel):
    """Properties to receive via API on create."""

    name: str = Field(..., min_length=1, max_length=100)


class EnvironmentUpdate(BaseModel):
    """Rename an environment. Its slug stays as created."""

    name: str = Field(..., min_length=1, max_length=100)


class EnvironmentRead(BaseModel):
    """Properties to return to the client."""

    id: int
    game_id: int
    name: str
    slug: str
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
