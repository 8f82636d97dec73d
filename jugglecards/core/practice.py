"""
Practice selection: which moves show up as flashcards.

Allow-lists are kept per ball count in the store's `meta` table under
`practice.allowed.<balls>` as a JSON list of move ids. An empty or missing
list means every move with that ball count is in play.
"""

from __future__ import annotations

import json
import logging
import random
from typing import Iterable

from jugglecards.core.db.models import Move, normalize_balls
from jugglecards.core.move_db import MoveDb

logger = logging.getLogger(__name__)

META_PREFIX = "practice.allowed."


def _meta_key(balls: int) -> str:
    return f"{META_PREFIX}{normalize_balls(balls)}"


class PracticeSelection:
    """Key/value collaborator for practice allow-lists, backed by `MoveDb`."""

    def __init__(self, db: MoveDb, *, rng: random.Random | None = None) -> None:
        self._db = db
        self._rng = rng or random.Random()

    async def get_allowed(self, balls: int) -> list[int]:
        raw = await self._db.get_meta(_meta_key(balls))
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding unreadable practice allow-list for %s balls", balls)
            return []
        return [int(i) for i in ids]

    async def set_allowed(self, balls: int, move_ids: Iterable[int]) -> list[int]:
        ids = list(dict.fromkeys(int(i) for i in move_ids))
        key = _meta_key(balls)
        if ids:
            await self._db.set_meta(key, json.dumps(ids))
        else:
            await self._db.delete_meta(key)
        return ids

    async def toggle(self, balls: int, move_id: int) -> bool:
        """
        Flip one move in the allow-list. Returns True if it is now listed.

        Removing the last listed move empties the list, and an empty list
        puts every move for `balls` back in play.
        """
        ids = await self.get_allowed(balls)
        if move_id in ids:
            ids.remove(move_id)
            allowed = False
        else:
            ids.append(move_id)
            allowed = True
        await self.set_allowed(balls, ids)
        return allowed

    async def candidates(self, balls: int) -> list[Move]:
        """Moves currently in play for `balls`, sorted by name."""
        moves = await self._db.query_by_balls(balls, order_by="name")
        allowed = set(await self.get_allowed(balls))
        if not allowed:
            return moves
        return [m for m in moves if m.id in allowed]

    async def draw(self, balls: int, *, exclude: int | None = None) -> Move | None:
        """
        Pick a random move to practice.

        `exclude` avoids showing the same card twice in a row when there is
        an alternative.
        """
        pool = await self.candidates(balls)
        if exclude is not None and len(pool) > 1:
            pool = [m for m in pool if m.id != exclude]
        if not pool:
            return None
        return self._rng.choice(pool)
