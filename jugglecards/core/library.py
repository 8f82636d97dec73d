from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Sequence

from jugglecards.core import NotFoundError
from jugglecards.core.csv_codec import moves_from_csv, moves_to_csv
from jugglecards.core.db.models import Move
from jugglecards.core.gif_resolver import GifResolver
from jugglecards.core.move_db import MoveDb

logger = logging.getLogger(__name__)

ImportMode = Literal["append", "merge", "replace"]

# Fields taken from a CSV row when merging into an existing move.
# Tags and related ids are not part of the CSV format and stay untouched.
_MERGE_FIELDS = ("description", "balls", "level", "library_url", "video", "gif_url")


@dataclass(frozen=True, slots=True)
class ImportResult:
    added: int
    updated: int
    skipped_rows: int
    coerced_rows: int


@dataclass
class GifBatchResult:
    """Outcome of a bulk GIF resolution written back to the store."""

    total: int = 0
    updated: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "updated": self.updated_count,
            "failed": self.failed_count,
            "updated_ids": list(self.updated),
            "failed_ids": list(self.failed),
        }


class MoveLibraryError(RuntimeError):
    """Base error for MoveLibrary operations."""


class MoveLibraryNotReadyError(MoveLibraryError):
    """Raised when operations are attempted before the library is initialized."""


class MoveLibrary:
    """
    High-level facade over the move store for UI layers (web/CLI).

    Dependencies:
    - `MoveDb` for persistence
    - `GifResolver` for GIF discovery (optional; GIF operations need it)
    """

    def __init__(self, *, db: MoveDb, resolver: GifResolver | None = None) -> None:
        self._db = db
        self._resolver = resolver
        self._initialized = False

    @property
    def db(self) -> MoveDb:
        return self._db

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def has_resolver(self) -> bool:
        return self._resolver is not None

    async def initialize(self, *, seed_csv: Path | None = None) -> int:
        """
        Prepare the library.

        Contract:
        - `MoveDb` must already be open (which also migrates it).
        - If the store is empty and `seed_csv` exists, it is imported.

        Returns the number of seeded moves.
        """
        if not self._db.is_open:
            raise MoveLibraryError("MoveDb is not open. Open it before initializing MoveLibrary.")

        await self._db.ensure_schema()
        self._initialized = True

        if seed_csv is None or await self._db.count() > 0:
            return 0
        if not seed_csv.is_file():
            logger.warning("Default dataset %s not found; starting with an empty store", seed_csv)
            return 0

        result = await self.import_csv(seed_csv.read_text(encoding="utf-8"))
        logger.info("Seeded empty store with %d move(s) from %s", result.added, seed_csv)
        return result.added

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise MoveLibraryNotReadyError("MoveLibrary is not initialized.")

    def _require_resolver(self) -> GifResolver:
        if self._resolver is None:
            raise MoveLibraryError("No GIF resolver configured.")
        return self._resolver

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------

    async def export_csv(self, *, balls: int | None = None) -> str:
        self._require_initialized()
        if balls is None:
            moves = await self._db.list_moves(order_by="name")
        else:
            moves = await self._db.query_by_balls(balls, order_by="name")
        return moves_to_csv(moves)

    async def import_csv(self, text: str, *, mode: ImportMode = "append") -> ImportResult:
        """
        Import CSV text.

        Modes:
        - append: every row becomes a new move
        - merge: rows whose Trick matches an existing name (case-insensitive)
          update that move; the rest are added
        - replace: the store is cleared first
        """
        self._require_initialized()
        parsed = moves_from_csv(text)

        if mode == "replace":
            await self._db.clear()
            mode = "append"

        added = 0
        updated = 0
        if mode == "append":
            added = len(await self._db.bulk_add(parsed.moves))
        elif mode == "merge":
            new_moves: list[Move] = []
            for position, move in enumerate(parsed.moves):
                # Blank cells never wipe existing values; neither does a defaulted ball count.
                fields: dict[str, Any] = {}
                for name in _MERGE_FIELDS:
                    if name == "balls" and position in parsed.defaulted_balls:
                        continue
                    value = getattr(move, name)
                    if value not in (None, ""):
                        fields[name] = value
                ids = await self._db.update_by_name(move.name, **fields)
                if ids:
                    updated += len(ids)
                else:
                    new_moves.append(move)
            added = len(await self._db.bulk_add(new_moves))
        else:
            raise ValueError(f"Unknown import mode: {mode!r}")

        logger.info("CSV import (%s): %d added, %d updated", mode, added, updated)
        return ImportResult(
            added=added,
            updated=updated,
            skipped_rows=len(parsed.skipped_rows),
            coerced_rows=len(parsed.coerced_rows),
        )

    # ------------------------------------------------------------------
    # GIF resolution
    # ------------------------------------------------------------------

    async def resolve_gif(self, move_id: int) -> str | None:
        """
        Resolve and store the GIF for one move.

        Returns the GIF URL, or None when nothing was found (the move is left
        unchanged in that case).

        Raises:
            NotFoundError: unknown move id.
        """
        self._require_initialized()
        resolver = self._require_resolver()
        move = await self._db.require(move_id)

        gif_url = await resolver.resolve(move.library_url)
        if gif_url is None:
            return None
        await self._db.update(move_id, gif_url=gif_url)
        return gif_url

    async def resolve_gifs(
        self,
        move_ids: Sequence[int] | None = None,
        *,
        balls: int | None = None,
    ) -> GifBatchResult:
        """
        Resolve GIFs for many moves and write hits back to the store.

        With explicit `move_ids`, every id is attempted (unknown ids count as
        failures). Without, every move that has a link but no GIF yet is
        attempted, optionally filtered by `balls`.
        """
        self._require_initialized()
        resolver = self._require_resolver()

        result = GifBatchResult()
        if move_ids is None:
            targets = await self._db.list_missing_gif(balls=balls)
        else:
            targets = []
            for move_id in move_ids:
                move = await self._db.get(move_id)
                if move is None:
                    logger.warning("Cannot resolve GIF for unknown move %s", move_id)
                    result.failed.append(int(move_id))
                else:
                    targets.append(move)

        result.total = len(targets) + len(result.failed)
        batch = await resolver.resolve_many((m.id, m.library_url) for m in targets)

        for move in targets:
            if move.id is None:
                continue
            gif_url = batch.resolved.get(move.id)
            if gif_url is None:
                result.failed.append(move.id)
                continue
            try:
                await self._db.update(move.id, gif_url=gif_url)
            except NotFoundError:
                logger.warning("Move %s disappeared before its GIF could be stored", move.id)
                result.failed.append(move.id)
                continue
            result.updated.append(move.id)

        logger.info(
            "GIF batch: %d updated, %d failed out of %d",
            result.updated_count,
            result.failed_count,
            result.total,
        )
        return result
