# src/scorekeep/schemas/common.py

"""Common Pydantic types used across multiple resources."""

import re
from enum import Enum

# Lowercase letters, digits and single inner hyphens, e.g. "high-scores"
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


class SortOrder(str, Enum):
    """Sort direction. For leaderboards, ASC means lower scores rank better."""

    ASC = "asc"
    DESC = "desc"


class ResetSchedule(str, Enum):
    """How often a leaderboard starts a fresh version."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


def slugify(value: str) -> str:
    """Turn a display name into a slug ("Staging Env" -> "staging-env")."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")
    return slug or "default"
