"""
Database schema + migrations for jugglecards.

- Connection management and the public `MoveDb` facade live in `move_db.py`
- Schema creation, schema versioning, and forward-only migrations live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Migrations are forward-only (no downgrade support).
- A step runs only if the stored version is below its target, so data that
  is already current is never rewritten.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Final

import aiosqlite

from jugglecards.core.db.models import normalize_level

logger = logging.getLogger(__name__)

# Bump when you change the schema and add a migration in `migrate()`.
SCHEMA_VERSION: Final[int] = 3

# Legacy (v1) records stored the difficulty level as a bare numeric tag.
LEVEL_TAG_RE: Final[re.Pattern[str]] = re.compile(r"^(\d+)$")


@dataclass(frozen=True, slots=True)
class LevelExtraction:
    level: int | None
    tags: list[str]


@dataclass
class MigrationReport:
    """Per-row outcome of data-rewriting migrations (informational only)."""

    from_version: int = 0
    to_version: int = 0
    rows_rewritten: int = 0
    rows_failed: int = 0


def extract_level_from_tags(tags: list[str]) -> LevelExtraction:
    """
    Split digit-only tags off a legacy tag list.

    Every digit-only tag is removed. If several are positive, the last one
    in stored order wins; a non-positive value such as "0" is dropped
    without becoming a level. Other tags are kept in their original order.
    """
    level: int | None = None
    kept: list[str] = []
    for tag in tags:
        match = LEVEL_TAG_RE.match(tag)
        if match is None:
            kept.append(tag)
            continue
        value = normalize_level(int(match.group(1)))
        if value is not None:
            level = value
    return LevelExtraction(level=level, tags=kept)


async def read_user_version(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    return int(row[0]) if row is not None else 0


async def ensure_schema(conn: aiosqlite.Connection) -> MigrationReport:
    """
    Create or migrate schema to current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - `conn.row_factory` is configured by the caller if desired
    """
    # meta: small key-value store (practice allow-lists, flags)
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )
    await conn.commit()

    current = await read_user_version(conn)

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return MigrationReport(from_version=current, to_version=current)

    logger.info("Migrating move store schema v%d -> v%d", current, SCHEMA_VERSION)
    report = await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()
    return report


async def migrate(
    conn: aiosqlite.Connection, *, from_version: int, to_version: int
) -> MigrationReport:
    """
    Perform forward-only migrations.

    Each step receives the table at its input version and leaves it at its
    output version. Row-level failures are logged and counted; they do not
    abort the remaining rows.
    """
    report = MigrationReport(from_version=from_version, to_version=to_version)

    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS moves (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                balls INTEGER NOT NULL,
                tags TEXT NOT NULL DEFAULT '[]',
                related_ids TEXT NOT NULL DEFAULT '[]',
                library_url TEXT,
                video TEXT
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_moves_name ON moves(name COLLATE NOCASE);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_moves_balls ON moves(balls);")
        await conn.commit()
        from_version = 1

    # v1 -> v2
    if from_version == 1 and to_version >= 2:
        # Difficulty level becomes a real column; extract it from legacy numeric tags.
        await conn.execute("ALTER TABLE moves ADD COLUMN level INTEGER;")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_moves_level ON moves(level);")
        rewritten, failed = await _migrate_level_tags(conn)
        report.rows_rewritten += rewritten
        report.rows_failed += failed
        await conn.commit()
        from_version = 2

    # v2 -> v3
    if from_version == 2 and to_version >= 3:
        # Additive: optional GIF URL, absent by default.
        await conn.execute("ALTER TABLE moves ADD COLUMN gif_url TEXT;")
        await conn.commit()
        from_version = 3

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")

    return report


async def _migrate_level_tags(conn: aiosqlite.Connection) -> tuple[int, int]:
    """Move digit-only tags into `level`. Returns (rows_rewritten, rows_failed)."""
    cursor = await conn.execute("SELECT id, tags FROM moves ORDER BY id;")
    rows = await cursor.fetchall()

    rewritten = 0
    failed = 0
    for row in rows:
        move_id = row[0]
        try:
            tags = json.loads(row[1] or "[]")
            if not isinstance(tags, list):
                raise ValueError(f"tags is not a list: {tags!r}")
            extraction = extract_level_from_tags([str(t) for t in tags])
            if extraction.level is None and len(extraction.tags) == len(tags):
                continue
            await conn.execute(
                "UPDATE moves SET level = ?, tags = ? WHERE id = ?;",
                (extraction.level, json.dumps(extraction.tags), move_id),
            )
            rewritten += 1
        except Exception:
            failed += 1
            logger.exception("Level migration failed for move %s; leaving row unchanged", move_id)

    if failed:
        logger.warning(
            "Level migration finished with %d failed row(s) out of %d", failed, len(rows)
        )
    else:
        logger.info("Level migration rewrote %d of %d row(s)", rewritten, len(rows))
    return rewritten, failed
