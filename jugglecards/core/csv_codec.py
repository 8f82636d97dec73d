"""
CSV import/export for move records.

The tabular format is a flat, spreadsheet-friendly mapping:

    Trick,Level,Balls,Link,Video,GIF,Comments

Export is intentionally lossy: tags and related ids are not written, and an
import always starts them empty.

Import coercion rules (row-level problems never abort the whole import):
- fully blank rows are ignored
- rows with a blank `Trick` are skipped and counted
- `Balls` that is non-numeric or not 3/4/5 falls back to 3 (logged)
- `Level` that is blank, non-numeric or not positive becomes absent
"""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Final, Iterable

from jugglecards.core import ValidationError
from jugglecards.core.db.models import (
    Move,
    normalize_balls,
    normalize_description,
    normalize_level,
    normalize_name,
    normalize_text,
)

logger = logging.getLogger(__name__)

CSV_COLUMNS: Final[tuple[str, ...]] = (
    "Trick",
    "Level",
    "Balls",
    "Link",
    "Video",
    "GIF",
    "Comments",
)

DEFAULT_BALLS: Final[int] = 3


@dataclass
class CsvImport:
    """Result of parsing a CSV document."""

    moves: list[Move] = field(default_factory=list)
    skipped_rows: list[int] = field(default_factory=list)  # 1-based data row numbers
    coerced_rows: list[int] = field(default_factory=list)
    # Indexes into `moves` whose ball count is the default, not a CSV value.
    defaulted_balls: set[int] = field(default_factory=set)

    @property
    def skipped(self) -> int:
        return len(self.skipped_rows)


def move_to_row(move: Move) -> dict[str, str]:
    return {
        "Trick": move.name,
        "Level": str(move.level) if move.level else "",
        "Balls": str(move.balls),
        "Link": move.library_url or "",
        "Video": move.video or "",
        "GIF": move.gif_url or "",
        "Comments": move.description or "",
    }


def moves_to_csv(moves: Iterable[Move]) -> str:
    """Render moves as CSV text (header + one line per move)."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, lineterminator="\r\n")
    writer.writeheader()
    for move in moves:
        writer.writerow(move_to_row(move))
    return buffer.getvalue()


def row_to_move(row: dict[str, str | None]) -> tuple[Move, bool]:
    """
    Build a move from one parsed CSV row.

    Returns (move, coerced) where `coerced` tells whether the ball count had
    to fall back to the default. The name may be empty; callers decide.
    """

    def cell(name: str) -> str:
        value = row.get(name)
        return value if isinstance(value, str) else ""

    coerced = False
    try:
        balls = normalize_balls(cell("Balls"))
    except ValidationError:
        balls = DEFAULT_BALLS
        coerced = True

    move = Move(
        name=normalize_name(cell("Trick")),
        description=normalize_description(cell("Comments")),
        balls=balls,
        level=normalize_level(cell("Level")),
        tags=(),
        related_ids=(),
        library_url=normalize_text(cell("Link")),
        video=normalize_text(cell("Video")),
        gif_url=normalize_text(cell("GIF")),
    )
    return move, coerced


def moves_from_csv(text: str) -> CsvImport:
    """Parse CSV text with the standard header into (unsaved) moves."""
    result = CsvImport()
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    if reader.fieldnames is None:
        return result

    # Header cells are matched after trimming whitespace.
    reader.fieldnames = [(name or "").strip() for name in reader.fieldnames]
    missing = [c for c in CSV_COLUMNS if c not in reader.fieldnames]
    if missing:
        logger.warning("CSV header is missing column(s): %s", ", ".join(missing))

    for index, row in enumerate(reader, start=1):
        values = [v for k, v in row.items() if k is not None and isinstance(v, str)]
        if not any(v.strip() for v in values):
            continue

        move, coerced = row_to_move(row)
        if not move.name:
            logger.warning("CSV row %d has no trick name; skipping", index)
            result.skipped_rows.append(index)
            continue
        if coerced:
            logger.warning(
                "CSV row %d (%s): invalid Balls value %r, using %d",
                index,
                move.name,
                row.get("Balls"),
                DEFAULT_BALLS,
            )
            result.coerced_rows.append(index)
            result.defaulted_balls.add(len(result.moves))
        result.moves.append(move)

    logger.info(
        "Parsed %d move(s) from CSV (%d skipped, %d coerced)",
        len(result.moves),
        len(result.skipped_rows),
        len(result.coerced_rows),
    )
    return result
