# src/scorekeep/schemas/api_key.py

"""Pydantic schemas for the API key resource. The key hash is never exposed."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ApiKeyCreate(BaseModel):
    """Properties to receive via API on create."""

    environment_id: int


class ApiKeyRead(BaseModel):
    """Properties to return to the client."""

    id: int
    game_id: int
    environment_id: int
    key_prefix: str
    last_used_at: datetime | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApiKeyCreated(ApiKeyRead):
    """Returned once at creation; ``key`` is not retrievable afterwards."""

    key: str
