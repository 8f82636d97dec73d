"""
Tests for jugglecards.core.db.schema (versioning + forward-only migrations).

These tests verify:
- A fresh store is created at the current version
- Legacy v1 data is migrated on open (numeric tags -> level)
- Migration is idempotent and skips steps already applied
- A broken row does not abort the migration of the others
"""

from __future__ import annotations

import json
from pathlib import Path

import aiosqlite
import pytest

from jugglecards.core.db.schema import (
    SCHEMA_VERSION,
    ensure_schema,
    extract_level_from_tags,
    migrate,
    read_user_version,
)
from jugglecards.core.move_db import MoveDb


async def _create_v1_store(path: Path, rows: list[tuple[str, int, object]]) -> None:
    """Create a store at schema v1 holding legacy rows (name, balls, tags)."""
    async with aiosqlite.connect(path) as conn:
        await migrate(conn, from_version=0, to_version=1)
        for name, balls, tags in rows:
            raw = tags if isinstance(tags, str) else json.dumps(tags)
            await conn.execute(
                "INSERT INTO moves (name, balls, tags) VALUES (?, ?, ?);",
                (name, balls, raw),
            )
        await conn.execute("PRAGMA user_version = 1;")
        await conn.commit()


class TestExtractLevel:
    """Tests for the pure tag -> level extraction."""

    def test_single_numeric_tag(self) -> None:
        result = extract_level_from_tags(["3balls", "7"])
        assert result.level == 7
        assert result.tags == ["3balls"]

    def test_no_numeric_tags(self) -> None:
        result = extract_level_from_tags(["siteswap", "3balls"])
        assert result.level is None
        assert result.tags == ["siteswap", "3balls"]

    def test_last_numeric_tag_wins(self) -> None:
        result = extract_level_from_tags(["2", "classic", "5"])
        assert result.level == 5
        assert result.tags == ["classic"]

    def test_mixed_digit_tags_are_kept(self) -> None:
        """Only tags made of digits and nothing else are levels."""
        result = extract_level_from_tags(["3b", " 4", "10"])
        assert result.level == 10
        assert result.tags == ["3b", " 4"]

    def test_zero_tag_is_dropped_without_level(self) -> None:
        result = extract_level_from_tags(["x", "0"])
        assert result.level is None
        assert result.tags == ["x"]

    def test_zero_does_not_replace_earlier_level(self) -> None:
        result = extract_level_from_tags(["4", "00"])
        assert result.level == 4
        assert result.tags == []


class TestEnsureSchema:
    """Tests for creating a fresh schema."""

    async def test_fresh_store_is_current(self) -> None:
        async with aiosqlite.connect(":memory:") as conn:
            report = await ensure_schema(conn)
            assert await read_user_version(conn) == SCHEMA_VERSION
            assert report.from_version == 0
            assert report.to_version == SCHEMA_VERSION

            cursor = await conn.execute("PRAGMA table_info(moves);")
            columns = {row[1] for row in await cursor.fetchall()}
            assert {"level", "gif_url", "tags", "related_ids"} <= columns

    async def test_second_call_is_noop(self) -> None:
        async with aiosqlite.connect(":memory:") as conn:
            await ensure_schema(conn)
            report = await ensure_schema(conn)
            assert report.from_version == report.to_version == SCHEMA_VERSION
            assert report.rows_rewritten == 0

    async def test_newer_version_is_rejected(self) -> None:
        async with aiosqlite.connect(":memory:") as conn:
            await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1};")
            with pytest.raises(RuntimeError, match="newer than supported"):
                await ensure_schema(conn)


class TestLegacyMigration:
    """Tests for v1 -> current migration through MoveDb.open()."""

    async def test_numeric_tag_becomes_level(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(path, [("Cascade", 3, ["3balls", "7"])])

        db = MoveDb(path)
        await db.open()
        try:
            moves = await db.list_moves()
            assert len(moves) == 1
            assert moves[0].level == 7
            assert moves[0].tags == ("3balls",)
            assert moves[0].gif_url is None
            assert db.last_migration is not None
            assert db.last_migration.from_version == 1
            assert db.last_migration.rows_rewritten == 1
        finally:
            await db.close()

    async def test_zero_tag_leaves_level_absent(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(path, [("Box", 3, ["x", "0"])])

        db = MoveDb(path)
        await db.open()
        try:
            (move,) = await db.list_moves()
            assert move.level is None
            assert move.tags == ("x",)
            assert db.last_migration is not None
            assert db.last_migration.rows_rewritten == 1
        finally:
            await db.close()

    async def test_rows_without_numeric_tags_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(path, [("Tennis", 3, ["siteswap", "classic"])])

        db = MoveDb(path)
        await db.open()
        try:
            (move,) = await db.list_moves()
            assert move.level is None
            assert set(move.tags) == {"siteswap", "classic"}
        finally:
            await db.close()

    async def test_reopen_does_not_migrate_again(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(path, [("Cascade", 3, ["4"])])

        db = MoveDb(path)
        await db.open()
        await db.close()

        db = MoveDb(path)
        await db.open()
        try:
            assert db.last_migration is not None
            assert db.last_migration.from_version == SCHEMA_VERSION
            assert db.last_migration.rows_rewritten == 0
            (move,) = await db.list_moves()
            assert move.level == 4
            assert move.tags == ()
        finally:
            await db.close()

    async def test_migrating_migrated_data_is_noop(self, tmp_path: Path) -> None:
        """Running the level step over data without numeric tags changes nothing."""
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(path, [("Shower", 3, ["circle"]), ("Box", 3, [])])

        async with aiosqlite.connect(path) as conn:
            report = await migrate(conn, from_version=1, to_version=2)
            await conn.commit()
            assert report.rows_rewritten == 0
            cursor = await conn.execute("SELECT tags, level FROM moves ORDER BY id;")
            rows = await cursor.fetchall()
            assert [json.loads(r[0]) for r in rows] == [["circle"], []]
            assert all(r[1] is None for r in rows)

    async def test_broken_row_does_not_abort(self, tmp_path: Path) -> None:
        path = tmp_path / "legacy.sqlite3"
        await _create_v1_store(
            path,
            [
                ("Broken", 3, "not json"),
                ("Mills Mess", 3, ["5", "arms"]),
            ],
        )

        db = MoveDb(path)
        await db.open()
        try:
            assert db.last_migration is not None
            assert db.last_migration.rows_failed == 1
            assert db.last_migration.rows_rewritten == 1
            (mills,) = await db.find_by_name("mills mess")
            assert mills.level == 5
            assert mills.tags == ("arms",)
        finally:
            await db.close()
