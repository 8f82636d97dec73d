"""
Internal DB subpackage for jugglecards.

Splits the store into focused units (models, schema/migrations, and query
groups) while keeping `MoveDb` as the single public interface that the rest
of the codebase imports.

External code should import `MoveDb` from `jugglecards.core.move_db`.
"""

from __future__ import annotations

# Models / normalization
from .models import Move, normalize_move, normalize_tags

# Schema / migrations
from .schema import SCHEMA_VERSION, ensure_schema, extract_level_from_tags, migrate

__all__ = [
    # models
    "Move",
    "normalize_move",
    "normalize_tags",
    # schema
    "SCHEMA_VERSION",
    "ensure_schema",
    "extract_level_from_tags",
    "migrate",
]
