"""
Move record model and normalization helpers.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions

Empty names are NOT rejected here; the store enforces that at its write
boundary so that importers can build partially filled records first.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Final, Iterable

from jugglecards.core import ValidationError

BALL_COUNTS: Final[frozenset[int]] = frozenset({3, 4, 5})

# Fields a caller may change through `MoveDb.update()`.
MUTABLE_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "description",
        "balls",
        "level",
        "tags",
        "related_ids",
        "library_url",
        "video",
        "gif_url",
    }
)


@dataclass(frozen=True, slots=True)
class Move:
    """
    A juggling move as stored in SQLite.

    Notes:
    - `id` is None until the store assigns one; it never changes afterwards.
    - `name` is the practical identity for external tools (matched case-insensitively).
    - `related_ids` may reference moves that do not exist (yet).
    """

    name: str
    description: str = ""
    balls: int = 3
    level: int | None = None
    tags: tuple[str, ...] = ()
    related_ids: tuple[int, ...] = ()
    library_url: str | None = None
    video: str | None = None
    gif_url: str | None = None
    id: int | None = None

    def with_id(self, move_id: int) -> Move:
        return replace(self, id=int(move_id))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "balls": self.balls,
            "level": self.level,
            "tags": list(self.tags),
            "related_ids": list(self.related_ids),
            "library_url": self.library_url,
            "video": self.video,
            "gif_url": self.gif_url,
        }


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = str(value).strip()
    return v if v else None


def normalize_description(value: str | None) -> str:
    """Descriptions are never None; blank means empty string."""
    return normalize_text(value) or ""


def normalize_name(value: str | None) -> str:
    return normalize_text(value) or ""


def normalize_tags(value: str | Iterable[str] | None) -> tuple[str, ...]:
    """
    Normalize a tag collection.

    Accepts either a comma-separated string ("siteswap, mills mess") or an
    iterable of strings. Tags are trimmed, blanks dropped and duplicates
    collapsed (case-sensitive, first occurrence kept). Any other value
    is a ValidationError.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        raw: Iterable[str] = value.split(",")
    else:
        try:
            raw = iter(value)
        except TypeError:
            raise ValidationError(f"Tags must be a string or a list, got {value!r}") from None

    seen: dict[str, None] = {}
    for tag in raw:
        t = normalize_text(tag)
        if t and t not in seen:
            seen[t] = None
    return tuple(seen)


def normalize_balls(value: Any) -> int:
    """Coerce a ball count; anything outside {3, 4, 5} is a ValidationError."""
    try:
        balls = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"Ball count must be numeric, got {value!r}") from None
    if balls not in BALL_COUNTS:
        raise ValidationError(f"Ball count must be one of 3, 4, 5, got {balls}")
    return balls


def normalize_level(value: Any) -> int | None:
    """Coerce a difficulty level to a positive int; blank or invalid means absent."""
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    try:
        level = int(text)
    except ValueError:
        try:
            as_float = float(text)
        except ValueError:
            return None
        if not as_float.is_integer():
            return None
        level = int(as_float)
    return level if level > 0 else None


def normalize_related_ids(value: Iterable[Any] | None) -> tuple[int, ...]:
    """Keep order, coerce to int. References are not validated."""
    if value is None:
        return ()
    try:
        return tuple(int(v) for v in value)
    except (TypeError, ValueError):
        raise ValidationError(f"Related ids must be integers, got {value!r}") from None


def normalize_field(name: str, value: Any) -> Any:
    """Normalize a single named field as used by partial updates."""
    if name == "name":
        return normalize_name(value)
    if name == "description":
        return normalize_description(value)
    if name == "balls":
        return normalize_balls(value)
    if name == "level":
        return normalize_level(value)
    if name == "tags":
        return normalize_tags(value)
    if name == "related_ids":
        return normalize_related_ids(value)
    if name in ("library_url", "video", "gif_url"):
        return normalize_text(value)
    raise ValidationError(f"Unknown move field: {name!r}")


def normalize_move(move: Move) -> Move:
    """Return a copy of `move` with every field normalized."""
    return Move(
        id=move.id,
        name=normalize_name(move.name),
        description=normalize_description(move.description),
        balls=normalize_balls(move.balls),
        level=normalize_level(move.level),
        tags=normalize_tags(move.tags),
        related_ids=normalize_related_ids(move.related_ids),
        library_url=normalize_text(move.library_url),
        video=normalize_text(move.video),
        gif_url=normalize_text(move.gif_url),
    )
