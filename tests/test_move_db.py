"""
Tests for jugglecards.core.move_db.MoveDb.

These tests verify:
- CRUD round-trips and id assignment
- Store policies (validation, put upsert, update NotFound, delete no-op)
- Queries (by balls, by name, missing GIF)
- Live queries and change events
- The meta key/value table
"""

from __future__ import annotations

from typing import Any

import pytest

from jugglecards.core import NotFoundError, ValidationError
from jugglecards.core.db.models import Move
from jugglecards.core.events import Event
from jugglecards.core.move_db import MoveDb


@pytest.fixture
async def db() -> MoveDb:
    """Create an in-memory store for testing."""
    db = MoveDb(":memory:")
    await db.open()
    yield db
    await db.close()


def _mills() -> Move:
    return Move(
        name="Mills Mess",
        description="Arms cross and uncross.",
        balls=3,
        level=4,
        tags=("classic", "arms"),
        related_ids=(7, 2),
        library_url="https://libraryofjuggling.com/Tricks/3balltricks/MillsMess.html",
        video="https://example.com/mills",
        gif_url=None,
    )


class TestLifecycle:
    """Tests for open/close."""

    async def test_open_close(self) -> None:
        db = MoveDb(":memory:")
        assert not db.is_open

        await db.open()
        assert db.is_open
        assert await db.count() == 0

        await db.close()
        assert not db.is_open

    async def test_queries_require_open(self) -> None:
        db = MoveDb(":memory:")
        with pytest.raises(RuntimeError, match="not open"):
            await db.count()


class TestWrites:
    """Tests for add/put/update/delete/clear/bulk_add."""

    async def test_add_round_trip(self, db: MoveDb) -> None:
        move = _mills()
        move_id = await db.add(move)
        assert move_id > 0

        stored = await db.get(move_id)
        assert stored == move.with_id(move_id)

    async def test_add_rejects_empty_name(self, db: MoveDb) -> None:
        with pytest.raises(ValidationError):
            await db.add(Move(name="   "))
        assert await db.count() == 0

    async def test_add_rejects_invalid_balls(self, db: MoveDb) -> None:
        with pytest.raises(ValidationError):
            await db.add(Move(name="Seven", balls=7))

    async def test_add_trims_and_dedupes(self, db: MoveDb) -> None:
        move_id = await db.add(Move(name="  Tennis  ", tags=("a", "a", "b")))
        stored = await db.require(move_id)
        assert stored.name == "Tennis"
        assert stored.tags == ("a", "b")

    async def test_ids_are_never_reused(self, db: MoveDb) -> None:
        first = await db.add(Move(name="One"))
        await db.delete(first)
        second = await db.add(Move(name="Two"))
        assert second > first

        await db.clear()
        third = await db.add(Move(name="Three"))
        assert third > second

    async def test_put_replaces_all_fields(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        replacement = Move(id=move_id, name="Mills Mess", balls=3)
        assert await db.put(replacement) == move_id

        stored = await db.require(move_id)
        assert stored == replacement
        assert stored.tags == ()
        assert stored.library_url is None

    async def test_put_unknown_id_upserts(self, db: MoveDb) -> None:
        assert await db.put(Move(id=42, name="Box", balls=3)) == 42
        stored = await db.get(42)
        assert stored is not None
        assert stored.name == "Box"

        # AUTOINCREMENT continues after the upserted id.
        assert await db.add(Move(name="Next")) > 42

    async def test_put_without_id_adds(self, db: MoveDb) -> None:
        move_id = await db.put(Move(name="Columns"))
        assert (await db.require(move_id)).name == "Columns"

    async def test_update_merges_fields(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        updated = await db.update(move_id, level=6, tags="a, b, a")

        assert updated.level == 6
        assert updated.tags == ("a", "b")
        stored = await db.require(move_id)
        assert stored == updated
        assert stored.description == "Arms cross and uncross."
        assert stored.related_ids == (7, 2)

    async def test_update_unknown_id_raises(self, db: MoveDb) -> None:
        with pytest.raises(NotFoundError):
            await db.update(999, level=1)

    async def test_update_rejects_id_change(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        with pytest.raises(ValidationError):
            await db.update(move_id, id=move_id + 1)

    async def test_update_rejects_unknown_field(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        with pytest.raises(ValidationError):
            await db.update(move_id, colour="red")

    async def test_update_rejects_empty_name(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        with pytest.raises(ValidationError):
            await db.update(move_id, name=" ")
        assert (await db.require(move_id)).name == "Mills Mess"

    async def test_update_without_fields_is_noop(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        assert await db.update(move_id) == await db.require(move_id)

    async def test_delete(self, db: MoveDb) -> None:
        move_id = await db.add(_mills())
        assert await db.delete(move_id) is True
        assert await db.get(move_id) is None
        assert await db.delete(move_id) is False

    async def test_clear(self, db: MoveDb) -> None:
        await db.bulk_add([Move(name="A"), Move(name="B")])
        assert await db.clear() == 2
        assert await db.count() == 0

    async def test_bulk_add_assigns_sequential_ids(self, db: MoveDb) -> None:
        ids = await db.bulk_add([Move(name="A"), Move(name="B"), Move(name="C")])
        assert ids == sorted(ids)
        assert len(set(ids)) == 3
        assert [m.name for m in await db.list_moves(order_by="id")] == ["A", "B", "C"]

    async def test_bulk_add_is_all_or_nothing_on_validation(self, db: MoveDb) -> None:
        with pytest.raises(ValidationError):
            await db.bulk_add([Move(name="A"), Move(name="")])
        assert await db.count() == 0

    async def test_bulk_add_empty(self, db: MoveDb) -> None:
        assert await db.bulk_add([]) == []


class TestQueries:
    """Tests for read queries."""

    async def test_query_by_balls(self, db: MoveDb) -> None:
        await db.bulk_add(
            [
                Move(name="Shower", balls=3),
                Move(name="Fountain", balls=4),
                Move(name="Cascade", balls=3),
            ]
        )
        three = await db.query_by_balls(3)
        assert {m.name for m in three} == {"Shower", "Cascade"}

        sorted_three = await db.query_by_balls(3, order_by="name")
        assert [m.name for m in sorted_three] == ["Cascade", "Shower"]
        assert await db.query_by_balls(5) == []

    async def test_unknown_order_by(self, db: MoveDb) -> None:
        with pytest.raises(ValueError):
            await db.list_moves(order_by="name; DROP TABLE moves")

    async def test_find_by_name_is_case_insensitive(self, db: MoveDb) -> None:
        move_id = await db.add(Move(name="Mills Mess"))
        found = await db.find_by_name("  mills MESS ")
        assert [m.id for m in found] == [move_id]

    async def test_update_by_name(self, db: MoveDb) -> None:
        move_id = await db.add(Move(name="Mills Mess"))
        assert await db.update_by_name("MILLS MESS", gif_url="https://x/mm.gif") == [move_id]
        assert (await db.require(move_id)).gif_url == "https://x/mm.gif"
        assert await db.update_by_name("Nope", level=1) == []

    async def test_list_missing_gif(self, db: MoveDb) -> None:
        await db.bulk_add(
            [
                Move(name="Linked", balls=3, library_url="https://l/3balltricks/A.html"),
                Move(name="Done", balls=3, library_url="https://l/3balltricks/B.html", gif_url="g"),
                Move(name="NoLink", balls=3),
                Move(name="Four", balls=4, library_url="https://l/4balltricks/C.html"),
            ]
        )
        assert [m.name for m in await db.list_missing_gif()] == ["Linked", "Four"]
        assert [m.name for m in await db.list_missing_gif(balls=4)] == ["Four"]

    async def test_require_missing(self, db: MoveDb) -> None:
        with pytest.raises(NotFoundError):
            await db.require(1)


class TestLiveQueries:
    """Tests for watch() subscriptions."""

    async def test_initial_and_updated_results(self, db: MoveDb) -> None:
        seen: list[list[str]] = []

        async def on_result(moves: list[Move]) -> None:
            seen.append([m.name for m in moves])

        live = await db.watch(lambda d: d.query_by_balls(3, order_by="name"), on_result)
        assert seen == [[]]

        await db.add(Move(name="Shower", balls=3))
        await db.add(Move(name="Cascade", balls=3))
        await db.add(Move(name="Fountain", balls=4))

        assert seen[-1] == ["Cascade", "Shower"]
        assert live.deliveries == 4

    async def test_result_reflects_all_committed_writes(self, db: MoveDb) -> None:
        counts: list[int] = []

        async def on_count(count: int) -> None:
            counts.append(count)

        await db.watch(lambda d: d.count(), on_count)
        ids = await db.bulk_add([Move(name="A"), Move(name="B")])
        await db.delete(ids[0])
        assert counts == [0, 2, 1]

    async def test_unsubscribe_stops_delivery(self, db: MoveDb) -> None:
        seen: list[int] = []

        async def on_count(count: int) -> None:
            seen.append(count)

        live = await db.watch(lambda d: d.count(), on_count)
        await live.unsubscribe()
        assert not live.active

        await db.add(Move(name="A"))
        assert seen == [0]
        assert db.bus.handler_count("moves.changed") == 0

    async def test_failing_subscriber_does_not_block_others(self, db: MoveDb) -> None:
        good: list[int] = []
        calls = 0

        async def broken(_: int) -> None:
            nonlocal calls
            calls += 1
            if calls > 1:
                raise RuntimeError("boom")

        async def healthy(count: int) -> None:
            good.append(count)

        await db.watch(lambda d: d.count(), broken)
        await db.watch(lambda d: d.count(), healthy)

        await db.add(Move(name="A"))
        assert good == [0, 1]

    async def test_change_events(self, db: MoveDb) -> None:
        events: list[dict[str, Any]] = []

        async def on_event(event: Event) -> None:
            events.append(event.to_dict())

        await db.bus.subscribe("moves.*", on_event)
        move_id = await db.add(Move(name="A"))
        await db.update(move_id, level=2)
        await db.delete(move_id)

        assert [e["action"] for e in events] == ["add", "update", "delete"]
        assert all(e["move_ids"] == [move_id] for e in events)

    async def test_failed_write_publishes_nothing(self, db: MoveDb) -> None:
        events: list[Event] = []

        async def on_event(event: Event) -> None:
            events.append(event)

        await db.bus.subscribe("moves.changed", on_event)
        with pytest.raises(ValidationError):
            await db.add(Move(name=""))
        assert await db.delete(12345) is False
        assert events == []


class TestMeta:
    """Tests for the key/value meta table."""

    async def test_set_get_delete(self, db: MoveDb) -> None:
        assert await db.get_meta("k") is None
        await db.set_meta("k", "v1")
        await db.set_meta("k", "v2")
        assert await db.get_meta("k") == "v2"
        assert await db.delete_meta("k") is True
        assert await db.get_meta("k") is None
        assert await db.delete_meta("k") is False
