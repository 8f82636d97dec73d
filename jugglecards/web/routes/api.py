"""
REST API Routes for jugglecards.

Provides REST endpoints for the web UI and external tools:
- /api/status: Server status
- /api/moves/*: Move CRUD, CSV import/export, GIF resolution
- /api/practice/*: Practice allow-lists and flashcard draws
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from jugglecards import __version__
from jugglecards.core import CoreError, NotFoundError, ValidationError
from jugglecards.core.db.models import BALL_COUNTS, Move
from jugglecards.core.db.schema import SCHEMA_VERSION

if TYPE_CHECKING:
    from jugglecards.core.library import MoveLibrary
    from jugglecards.core.practice import PracticeSelection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["api"])

# References set during route registration
_move_library: MoveLibrary | None = None
_practice: PracticeSelection | None = None

_IMPORT_MODES = ("append", "merge", "replace")


def register_api_routes(
    app,
    move_library: MoveLibrary,
    practice: PracticeSelection | None = None,
) -> None:
    """
    Register API routes with the FastAPI app.

    Args:
        app: FastAPI application instance
        move_library: MoveLibrary for all move operations
        practice: Optional PracticeSelection for flashcard endpoints
    """
    global _move_library, _practice
    _move_library = move_library
    _practice = practice
    app.include_router(router)


def _library() -> MoveLibrary:
    if _move_library is None or not _move_library.initialized:
        raise HTTPException(status_code=503, detail="Library not initialized")
    return _move_library


def _practice_selection() -> PracticeSelection:
    if _practice is None:
        raise HTTPException(status_code=503, detail="Practice selection not available")
    return _practice


def _check_balls(balls: int) -> int:
    if balls not in BALL_COUNTS:
        raise HTTPException(status_code=422, detail="balls must be 3, 4 or 5")
    return balls


def _http_error(exc: CoreError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _move_from_payload(payload: dict[str, Any], *, move_id: int | None = None) -> Move:
    if not isinstance(payload.get("name", ""), str):
        raise HTTPException(status_code=422, detail="name must be a string")
    try:
        return Move(
            id=move_id,
            name=payload.get("name") or "",
            description=payload.get("description") or "",
            balls=payload.get("balls", 3),
            level=payload.get("level"),
            tags=payload.get("tags") or (),
            related_ids=payload.get("related_ids") or (),
            library_url=payload.get("library_url"),
            video=payload.get("video"),
            gif_url=payload.get("gif_url"),
        )
    except TypeError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None


# =============================================================================
# Server Status
# =============================================================================


@router.get("/api/status")
async def server_status() -> dict[str, Any]:
    """Get server status and basic info."""
    library = _library()
    return {
        "server": "jugglecards",
        "version": __version__,
        "schema_version": SCHEMA_VERSION,
        "moves": await library.db.count(),
        "gif_resolver_available": library.has_resolver,
    }


# =============================================================================
# Moves
# =============================================================================


@router.get("/api/moves")
async def list_moves(balls: int | None = None, sort: str = "name") -> dict[str, Any]:
    """List moves, optionally filtered by ball count.

    Query params:
        balls: 3, 4 or 5
        sort: name (default), level, balls or id
    """
    library = _library()
    try:
        if balls is None:
            moves = await library.db.list_moves(order_by=sort)
        else:
            moves = await library.db.query_by_balls(_check_balls(balls), order_by=sort)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from None
    return {"count": len(moves), "moves": [m.to_dict() for m in moves]}


@router.post("/api/moves", status_code=201)
async def create_move(payload: dict[str, Any]) -> dict[str, Any]:
    library = _library()
    try:
        move_id = await library.db.add(_move_from_payload(payload))
    except CoreError as e:
        raise _http_error(e) from None
    move = await library.db.require(move_id)
    return move.to_dict()


@router.delete("/api/moves")
async def clear_moves() -> dict[str, Any]:
    library = _library()
    removed = await library.db.clear()
    return {"removed": removed}


@router.get("/api/moves/export.csv", response_class=PlainTextResponse)
async def export_moves(balls: int | None = None) -> PlainTextResponse:
    library = _library()
    if balls is not None:
        _check_balls(balls)
    text = await library.export_csv(balls=balls)
    return PlainTextResponse(
        content=text,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="moves.csv"'},
    )


@router.post("/api/moves/import")
async def import_moves(request: Request, mode: str = "append") -> dict[str, Any]:
    """Import CSV text sent as the request body."""
    library = _library()
    if mode not in _IMPORT_MODES:
        raise HTTPException(status_code=422, detail=f"mode must be one of {_IMPORT_MODES}")
    body = await request.body()
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded") from None
    result = await library.import_csv(text, mode=mode)  # type: ignore[arg-type]
    return {
        "added": result.added,
        "updated": result.updated,
        "skipped_rows": result.skipped_rows,
        "coerced_rows": result.coerced_rows,
    }


@router.post("/api/moves/resolve-gifs")
async def resolve_gifs(payload: dict[str, Any] | None = None) -> dict[str, Any]:
    """Resolve GIFs in bulk.

    Body (optional):
        move_ids: explicit ids; otherwise every move with a link and no GIF
        balls: restrict the implicit selection to one ball count
    """
    library = _library()
    if not library.has_resolver:
        raise HTTPException(status_code=503, detail="GIF resolver not available")
    payload = payload or {}
    try:
        raw_ids = payload.get("move_ids")
        move_ids = [int(i) for i in raw_ids] if raw_ids is not None else None
        balls = int(payload["balls"]) if payload.get("balls") is not None else None
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=422, detail="move_ids must be a list of ints and balls an int"
        ) from None
    if balls is not None:
        _check_balls(balls)
    result = await library.resolve_gifs(move_ids, balls=balls)
    return result.to_dict()


@router.get("/api/moves/{move_id}")
async def get_move(move_id: int) -> dict[str, Any]:
    library = _library()
    move = await library.db.get(move_id)
    if move is None:
        raise HTTPException(status_code=404, detail="Move not found")
    return move.to_dict()


@router.put("/api/moves/{move_id}")
async def replace_move(move_id: int, payload: dict[str, Any]) -> dict[str, Any]:
    """Full replace; creates the move under this id if it does not exist."""
    library = _library()
    try:
        await library.db.put(_move_from_payload(payload, move_id=move_id))
    except CoreError as e:
        raise _http_error(e) from None
    move = await library.db.require(move_id)
    return move.to_dict()


@router.patch("/api/moves/{move_id}")
async def update_move(move_id: int, payload: dict[str, Any]) -> dict[str, Any]:
    library = _library()
    try:
        move = await library.db.update(move_id, **payload)
    except CoreError as e:
        raise _http_error(e) from None
    return move.to_dict()


@router.delete("/api/moves/{move_id}")
async def delete_move(move_id: int) -> dict[str, Any]:
    library = _library()
    if not await library.db.delete(move_id):
        raise HTTPException(status_code=404, detail="Move not found")
    return {"deleted": move_id}


@router.post("/api/moves/{move_id}/resolve-gif")
async def resolve_gif(move_id: int) -> dict[str, Any]:
    """Resolve one move's GIF. `gif_url` is null when nothing was found."""
    library = _library()
    if not library.has_resolver:
        raise HTTPException(status_code=503, detail="GIF resolver not available")
    try:
        gif_url = await library.resolve_gif(move_id)
    except CoreError as e:
        raise _http_error(e) from None
    return {"id": move_id, "gif_url": gif_url, "found": gif_url is not None}


# =============================================================================
# Practice
# =============================================================================


@router.get("/api/practice/{balls}/allowed")
async def get_allowed(balls: int) -> dict[str, Any]:
    practice = _practice_selection()
    ids = await practice.get_allowed(_check_balls(balls))
    return {"balls": balls, "move_ids": ids}


@router.put("/api/practice/{balls}/allowed")
async def set_allowed(balls: int, payload: dict[str, Any]) -> dict[str, Any]:
    practice = _practice_selection()
    raw = payload.get("move_ids", [])
    if not isinstance(raw, list):
        raise HTTPException(status_code=422, detail="move_ids must be a list")
    ids = await practice.set_allowed(_check_balls(balls), raw)
    return {"balls": balls, "move_ids": ids}


@router.get("/api/practice/{balls}/draw")
async def draw_card(balls: int, exclude: int | None = None) -> dict[str, Any]:
    practice = _practice_selection()
    move = await practice.draw(_check_balls(balls), exclude=exclude)
    return {"balls": balls, "move": move.to_dict() if move is not None else None}
