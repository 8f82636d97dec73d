"""
Move store: schema + async access layer.

Goals:
- SQLite + aiosqlite, async/await friendly.
- Keep schema small, but leave room to evolve (via user_version migrations).
- Every committed mutation is announced on the event bus so live queries
  can re-run.

Store policies:
- `add()` rejects an empty (after trim) name with ValidationError.
- `put()` upserts: an unknown id is inserted under that id.
- `update()` raises NotFoundError for an unknown id.
- `delete()` returns False for an unknown id; it never raises.
- Ids come from AUTOINCREMENT and are never reused, not even after `clear()`.

Note:
- The model and normalization helpers live in `jugglecards.core.db.models`
- Schema/migrations live in `jugglecards.core.db.schema`
- Query functions live in `jugglecards.core.db.queries_*` modules
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, TypeVar

import aiosqlite

from jugglecards.core import NotFoundError, ValidationError
from jugglecards.core.db import queries_meta, queries_moves
from jugglecards.core.db.models import MUTABLE_FIELDS, Move, normalize_field, normalize_move
from jugglecards.core.db.schema import MigrationReport
from jugglecards.core.db.schema import ensure_schema as ensure_schema_sql
from jugglecards.core.events import EventBus, MovesChangedEvent
from jugglecards.core.live_query import LiveQuery, QueryFn, ResultCallback

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MoveDb:
    """
    Async access layer for the move store.

    Usage:
        db = MoveDb("jugglecards.sqlite3")
        await db.open()          # migrates older data before returning
        ... queries ...
        await db.close()

    Notes:
    - This class is designed to be injected into other components.
    - Connections are not pooled; we keep a single connection, so writes
      settle in call order.
    """

    def __init__(self, db_path: str | Path, *, bus: EventBus | None = None) -> None:
        self._db_path = str(db_path)
        self._conn: aiosqlite.Connection | None = None
        self._bus = bus if bus is not None else EventBus()
        self._last_migration: MigrationReport | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def last_migration(self) -> MigrationReport | None:
        """Outcome of the schema check performed by the last `open()`."""
        return self._last_migration

    async def open(self) -> None:
        if self._conn is not None:
            return
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.execute("PRAGMA synchronous = NORMAL;")

        # Older data is brought up to date before any query can run.
        await self.ensure_schema()

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("MoveDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> MigrationReport:
        """Create or migrate schema to current version (idempotent)."""
        conn = self._require_conn()
        self._last_migration = await ensure_schema_sql(conn)
        return self._last_migration

    async def _committed(self, action: str, move_ids: Iterable[int]) -> None:
        await self._require_conn().commit()
        await self._bus.publish(MovesChangedEvent(action=action, move_ids=tuple(move_ids)))

    # ===========================================================================
    # Writes
    # ===========================================================================

    @staticmethod
    def _validated(move: Move) -> Move:
        normalized = normalize_move(move)
        if not normalized.name:
            raise ValidationError("Move name must not be empty")
        return normalized

    async def add(self, move: Move) -> int:
        """Persist a new move and return its freshly assigned id."""
        conn = self._require_conn()
        normalized = self._validated(move)
        move_id = await queries_moves.insert_move(conn, normalized)
        await self._committed("add", (move_id,))
        logger.debug("Added move %d (%s)", move_id, normalized.name)
        return move_id

    async def put(self, move: Move) -> int:
        """
        Fully replace the move stored under `move.id`.

        Unknown ids are inserted under that id (upsert). A move without an
        id is treated like `add()`.
        """
        if move.id is None:
            return await self.add(move)
        conn = self._require_conn()
        normalized = self._validated(move)
        await queries_moves.replace_move(conn, normalized)
        await self._committed("put", (int(move.id),))
        return int(move.id)

    async def update(self, move_id: int, **fields: Any) -> Move:
        """
        Merge the given fields into an existing move and return the result.

        Raises:
            ValidationError: unknown field, an attempt to change `id`, or an
                invalid value (e.g. empty name).
            NotFoundError: no move with `move_id`.
        """
        if "id" in fields:
            raise ValidationError("Move id is immutable")
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown move field(s): {', '.join(sorted(unknown))}")

        conn = self._require_conn()
        current = await queries_moves.get_move_by_id(conn, move_id)
        if current is None:
            raise NotFoundError(f"Move {move_id} not found")
        if not fields:
            return current

        changes = {name: normalize_field(name, value) for name, value in fields.items()}
        merged = self._validated(Move(**{**current.to_dict(), **changes}))
        await queries_moves.replace_move(conn, merged)
        await self._committed("update", (int(move_id),))
        return merged

    async def update_by_name(self, name: str, **fields: Any) -> list[int]:
        """
        Apply `update()` to every move whose name matches case-insensitively.

        Returns the updated ids (empty when nothing matched).
        """
        matches = await self.find_by_name(name)
        updated: list[int] = []
        for move in matches:
            if move.id is None:
                continue
            await self.update(move.id, **fields)
            updated.append(move.id)
        return updated

    async def delete(self, move_id: int) -> bool:
        conn = self._require_conn()
        removed = await queries_moves.delete_move(conn, move_id)
        if removed:
            await self._committed("delete", (int(move_id),))
        return removed

    async def clear(self) -> int:
        """Remove all moves. Returns how many were removed."""
        conn = self._require_conn()
        removed = await queries_moves.delete_all_moves(conn)
        await self._committed("clear", ())
        logger.info("Cleared %d move(s)", removed)
        return removed

    async def bulk_add(self, moves: Iterable[Move]) -> list[int]:
        """
        Insert many moves in one logical operation.

        Every move is validated before anything is written; ids are assigned
        in input order. All rows are visible once this returns.
        """
        conn = self._require_conn()
        normalized = [self._validated(m) for m in moves]
        if not normalized:
            return []

        await conn.execute("SAVEPOINT bulk_add_sp;")
        try:
            ids = [await queries_moves.insert_move(conn, m) for m in normalized]
            await conn.execute("RELEASE SAVEPOINT bulk_add_sp;")
        except Exception:
            await conn.execute("ROLLBACK TO SAVEPOINT bulk_add_sp;")
            raise
        await self._committed("bulk_add", ids)
        logger.info("Bulk-added %d move(s)", len(ids))
        return ids

    # ===========================================================================
    # Reads
    # ===========================================================================

    async def get(self, move_id: int) -> Move | None:
        return await queries_moves.get_move_by_id(self._require_conn(), move_id)

    async def require(self, move_id: int) -> Move:
        move = await self.get(move_id)
        if move is None:
            raise NotFoundError(f"Move {move_id} not found")
        return move

    async def find_by_name(self, name: str) -> list[Move]:
        return await queries_moves.get_moves_by_name(self._require_conn(), name.strip())

    async def list_moves(self, *, order_by: str | None = "name") -> list[Move]:
        return await queries_moves.list_moves(self._require_conn(), order_by=order_by)

    async def query_by_balls(self, balls: int, *, order_by: str | None = None) -> list[Move]:
        """All moves for a ball count; unordered unless `order_by` is given."""
        return await queries_moves.list_moves_by_balls(
            self._require_conn(), balls, order_by=order_by
        )

    async def list_missing_gif(self, *, balls: int | None = None) -> list[Move]:
        return await queries_moves.list_moves_missing_gif(self._require_conn(), balls=balls)

    async def count(self) -> int:
        return await queries_moves.count_moves(self._require_conn())

    # ===========================================================================
    # Live queries
    # ===========================================================================

    async def watch(self, query: QueryFn[T], callback: ResultCallback[T]) -> LiveQuery[T]:
        """
        Register a live query.

        The callback gets the current result immediately and a fresh result
        after every committed mutation until `unsubscribe()` is awaited on the
        returned handle.
        """
        self._require_conn()
        live: LiveQuery[T] = LiveQuery(self, self._bus, query, callback)
        return await live.start()

    # ===========================================================================
    # Meta (key/value)
    # ===========================================================================

    async def get_meta(self, key: str) -> str | None:
        return await queries_meta.get_meta(self._require_conn(), key)

    async def set_meta(self, key: str, value: str) -> None:
        conn = self._require_conn()
        await queries_meta.set_meta(conn, key, value)
        await conn.commit()

    async def delete_meta(self, key: str) -> bool:
        conn = self._require_conn()
        removed = await queries_meta.delete_meta(conn, key)
        await conn.commit()
        return removed
