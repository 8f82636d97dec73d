"""
Live queries over the move store.

A live query pairs an async query function with an async callback. The
callback receives the query result once on start, and again after every
committed store mutation (`moves.changed`). Delivery re-runs the query at
delivery time, so a subscriber always sees every write committed so far.

Usage:
    live = await db.watch(lambda d: d.query_by_balls(3, order_by="name"), on_moves)
    ...
    await live.unsubscribe()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Generic, TypeVar

from jugglecards.core.events import Event, EventBus

if TYPE_CHECKING:
    from jugglecards.core.move_db import MoveDb

logger = logging.getLogger(__name__)

T = TypeVar("T")

QueryFn = Callable[["MoveDb"], Awaitable[T]]
ResultCallback = Callable[[T], Awaitable[Any]]

CHANGE_EVENT = "moves.changed"


class LiveQuery(Generic[T]):
    """Subscription handle returned by `MoveDb.watch()`."""

    def __init__(
        self,
        db: MoveDb,
        bus: EventBus,
        query: QueryFn[T],
        callback: ResultCallback[T],
    ) -> None:
        self._db = db
        self._bus = bus
        self._query = query
        self._callback = callback
        self._active = False
        self._deliveries = 0

    @property
    def active(self) -> bool:
        return self._active

    @property
    def deliveries(self) -> int:
        """How many result sets have been delivered so far."""
        return self._deliveries

    async def start(self) -> LiveQuery[T]:
        if self._active:
            return self
        self._active = True
        await self._bus.subscribe(CHANGE_EVENT, self._on_change)
        await self.refresh()
        return self

    async def refresh(self) -> None:
        """Run the query now and deliver the result."""
        if not self._active:
            return
        result = await self._query(self._db)
        self._deliveries += 1
        await self._callback(result)

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._bus.unsubscribe(CHANGE_EVENT, self._on_change)
        logger.debug("Live query unsubscribed after %d deliveries", self._deliveries)

    async def _on_change(self, event: Event) -> None:
        await self.refresh()
