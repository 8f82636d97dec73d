"""
Key/value helpers for the `meta` table.

The table holds small, UI-adjacent settings such as practice allow-lists.
Values are stored as text; callers decide on their own encoding (JSON).
"""

from __future__ import annotations

import aiosqlite


async def get_meta(conn: aiosqlite.Connection, key: str) -> str | None:
    cursor = await conn.execute("SELECT value FROM meta WHERE key = ?;", (key,))
    row = await cursor.fetchone()
    return str(row["value"]) if row is not None else None


async def set_meta(conn: aiosqlite.Connection, key: str, value: str) -> None:
    await conn.execute(
        """
        INSERT INTO meta (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, value),
    )


async def delete_meta(conn: aiosqlite.Connection, key: str) -> bool:
    cursor = await conn.execute("DELETE FROM meta WHERE key = ?;", (key,))
    return cursor.rowcount > 0

