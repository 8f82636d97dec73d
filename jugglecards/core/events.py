"""
Event Bus for jugglecards.

A simple pub/sub event system for decoupled communication between
components. The primary use case is pushing fresh result sets to live
queries whenever the move store commits a mutation.

Event types:
- moves.changed: The move store committed a write (add/put/update/delete/clear/bulk_add)
- gifs.resolution: Bulk GIF resolution started/progressed/completed

Usage:
    bus = EventBus()

    async def on_change(event: Event) -> None:
        print(event.to_dict())

    await bus.subscribe("moves.*", on_change)
    await bus.publish(MovesChangedEvent(action="add", move_ids=(1,)))
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine

logger = logging.getLogger(__name__)

# Type alias for event handlers
EventHandler = Callable[["Event"], Coroutine[Any, Any, None]]


@dataclass
class Event:
    """Base class for all events."""

    event_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {"type": self.event_type}


@dataclass
class MovesChangedEvent(Event):
    """Fired after the move store commits a mutation."""

    event_type: str = field(default="moves.changed", init=False)
    action: str = ""  # add, put, update, delete, clear, bulk_add
    move_ids: tuple[int, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "action": self.action,
            "move_ids": list(self.move_ids),
        }


@dataclass
class GifResolutionEvent(Event):
    """Fired during bulk GIF resolution."""

    event_type: str = field(default="gifs.resolution", init=False)
    status: str = ""  # started, progress, completed
    processed: int = 0
    total: int = 0
    resolved: int = 0
    failed: int = 0
    current_name: str = ""

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.event_type,
            "status": self.status,
            "processed": self.processed,
            "total": self.total,
            "resolved": self.resolved,
            "failed": self.failed,
        }
        if self.current_name:
            result["current_name"] = self.current_name
        return result


class EventBus:
    """
    Per-store pub/sub channel.

    Each `MoveDb` owns one bus. The store publishes `moves.changed` after a
    commit, the GIF resolver publishes `gifs.resolution` while a batch runs,
    and live queries subscribe to the former.

    Patterns are either an exact event type, a `prefix.*` wildcard, or `*`.
    A handler that raises is logged and skipped; the others still run.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, pattern: str, handler: EventHandler) -> None:
        async with self._lock:
            self._handlers.setdefault(pattern, []).append(handler)
        logger.debug("Subscribed %s to %s", handler, pattern)

    async def unsubscribe(self, pattern: str, handler: EventHandler) -> bool:
        """Remove one registration. Returns False if it was not registered."""
        async with self._lock:
            handlers = self._handlers.get(pattern)
            if not handlers or handler not in handlers:
                return False
            handlers.remove(handler)
            if not handlers:
                del self._handlers[pattern]
        logger.debug("Unsubscribed %s from %s", handler, pattern)
        return True

    def _handlers_for(self, event_type: str) -> list[EventHandler]:
        matching = list(self._handlers.get(event_type, ()))
        for pattern, handlers in self._handlers.items():
            if pattern == "*" or (
                pattern.endswith(".*") and event_type.startswith(pattern[:-1])
            ):
                matching.extend(handlers)
        return matching

    async def publish(self, event: Event) -> int:
        """
        Deliver `event` to every matching handler, in registration order.

        Handlers run outside the lock, so a handler may subscribe or
        unsubscribe (live queries do) without deadlocking.

        Returns:
            Number of handlers that completed without raising.
        """
        async with self._lock:
            handlers = self._handlers_for(event.event_type)

        delivered = 0
        for handler in handlers:
            try:
                await handler(event)
            except Exception:
                logger.exception("Handler %s failed on %s", handler, event.event_type)
                continue
            delivered += 1

        if delivered:
            logger.debug("Delivered %s to %d handler(s)", event.event_type, delivered)
        return delivered

    def handler_count(self, pattern: str | None = None) -> int:
        """Registered handlers for one pattern, or in total."""
        if pattern is None:
            return sum(len(h) for h in self._handlers.values())
        return len(self._handlers.get(pattern, ()))
