"""
Move queries used by `jugglecards.core.move_db.MoveDb`.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return `Move` instances.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- They never commit; the facade owns transaction boundaries.

Important:
- Do NOT interpolate user input into SQL. ORDER BY clauses come from a
  whitelist (`ORDER_BY`).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Final

import aiosqlite

from jugglecards.core.db.models import Move

logger = logging.getLogger(__name__)

MOVE_COLUMNS: Final[str] = (
    "id, name, description, balls, level, tags, related_ids, library_url, video, gif_url"
)

ORDER_BY: Final[dict[str, str]] = {
    "id": "id",
    "name": "name COLLATE NOCASE, id",
    "level": "level IS NULL, level, name COLLATE NOCASE, id",
    "balls": "balls, name COLLATE NOCASE, id",
}


def _order_clause(order_by: str | None) -> str:
    if order_by is None:
        return ""
    try:
        return f" ORDER BY {ORDER_BY[order_by]}"
    except KeyError:
        raise ValueError(f"Unsupported order_by: {order_by!r}") from None


def _json_list(row: aiosqlite.Row, column: str) -> list[Any]:
    raw = row[column]
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError:
        logger.warning("Move %s has unreadable %s %r; treating as empty", row["id"], column, raw)
        return []
    return value if isinstance(value, list) else []


def row_to_move(row: aiosqlite.Row) -> Move:
    return Move(
        id=int(row["id"]),
        name=row["name"],
        description=row["description"] or "",
        balls=int(row["balls"]),
        level=int(row["level"]) if row["level"] is not None else None,
        tags=tuple(str(t) for t in _json_list(row, "tags")),
        related_ids=tuple(int(x) for x in _json_list(row, "related_ids")),
        library_url=row["library_url"],
        video=row["video"],
        gif_url=row["gif_url"],
    )


def move_to_params(move: Move) -> dict[str, Any]:
    return {
        "id": move.id,
        "name": move.name,
        "description": move.description,
        "balls": move.balls,
        "level": move.level,
        "tags": json.dumps(list(move.tags)),
        "related_ids": json.dumps(list(move.related_ids)),
        "library_url": move.library_url,
        "video": move.video,
        "gif_url": move.gif_url,
    }


async def insert_move(conn: aiosqlite.Connection, move: Move) -> int:
    """Insert a move without an id and return the assigned id."""
    cursor = await conn.execute(
        """
        INSERT INTO moves (
            name, description, balls, level, tags, related_ids,
            library_url, video, gif_url
        ) VALUES (
            :name, :description, :balls, :level, :tags, :related_ids,
            :library_url, :video, :gif_url
        )
        """,
        move_to_params(move),
    )
    if cursor.lastrowid is None:
        raise RuntimeError("Insert failed: no row id assigned.")
    return int(cursor.lastrowid)


async def replace_move(conn: aiosqlite.Connection, move: Move) -> None:
    """Insert or fully replace the move with `move.id`."""
    if move.id is None:
        raise ValueError("replace_move() requires a move id")
    await conn.execute(
        """
        INSERT INTO moves (
            id, name, description, balls, level, tags, related_ids,
            library_url, video, gif_url
        ) VALUES (
            :id, :name, :description, :balls, :level, :tags, :related_ids,
            :library_url, :video, :gif_url
        )
        ON CONFLICT(id) DO UPDATE SET
            name        = excluded.name,
            description = excluded.description,
            balls       = excluded.balls,
            level       = excluded.level,
            tags        = excluded.tags,
            related_ids = excluded.related_ids,
            library_url = excluded.library_url,
            video       = excluded.video,
            gif_url     = excluded.gif_url
        """,
        move_to_params(move),
    )


async def delete_move(conn: aiosqlite.Connection, move_id: int) -> bool:
    cursor = await conn.execute("DELETE FROM moves WHERE id = ?;", (int(move_id),))
    return cursor.rowcount > 0


async def delete_all_moves(conn: aiosqlite.Connection) -> int:
    count = await count_moves(conn)
    await conn.execute("DELETE FROM moves;")
    return count


async def get_move_by_id(conn: aiosqlite.Connection, move_id: int) -> Move | None:
    cursor = await conn.execute(
        f"SELECT {MOVE_COLUMNS} FROM moves WHERE id = ?;",
        (int(move_id),),
    )
    row = await cursor.fetchone()
    return row_to_move(row) if row is not None else None


async def get_moves_by_name(conn: aiosqlite.Connection, name: str) -> list[Move]:
    """Case-insensitive exact name match, oldest first."""
    cursor = await conn.execute(
        f"SELECT {MOVE_COLUMNS} FROM moves WHERE name = ? COLLATE NOCASE ORDER BY id;",
        (name,),
    )
    rows = await cursor.fetchall()
    return [row_to_move(r) for r in rows]


async def list_moves(conn: aiosqlite.Connection, *, order_by: str | None = "name") -> list[Move]:
    cursor = await conn.execute(f"SELECT {MOVE_COLUMNS} FROM moves{_order_clause(order_by)};")
    rows = await cursor.fetchall()
    return [row_to_move(r) for r in rows]


async def list_moves_by_balls(
    conn: aiosqlite.Connection, balls: int, *, order_by: str | None = None
) -> list[Move]:
    cursor = await conn.execute(
        f"SELECT {MOVE_COLUMNS} FROM moves WHERE balls = ?{_order_clause(order_by)};",
        (int(balls),),
    )
    rows = await cursor.fetchall()
    return [row_to_move(r) for r in rows]


async def list_moves_missing_gif(
    conn: aiosqlite.Connection, *, balls: int | None = None
) -> list[Move]:
    """Moves that have a reference link but no GIF yet, in id order."""
    sql = (
        f"SELECT {MOVE_COLUMNS} FROM moves "
        "WHERE library_url IS NOT NULL AND library_url != '' "
        "AND (gif_url IS NULL OR gif_url = '')"
    )
    params: tuple[Any, ...] = ()
    if balls is not None:
        sql += " AND balls = ?"
        params = (int(balls),)
    cursor = await conn.execute(sql + " ORDER BY id;", params)
    rows = await cursor.fetchall()
    return [row_to_move(r) for r in rows]


async def count_moves(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM moves;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0
