"""
jugglecards - Entry Point

Run with: python -m jugglecards [serve|import|export|resolve-gifs]
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from jugglecards import __version__
from jugglecards.config import Settings, load_settings
from jugglecards.core.gif_resolver import GifResolver
from jugglecards.core.library import MoveLibrary
from jugglecards.core.move_db import MoveDb
from jugglecards.server import JuggleServer

logger = logging.getLogger("jugglecards")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="jugglecards",
        description="jugglecards - a personal juggling move reference",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings file (TOML); defaults to the bundled settings",
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Move store file (overrides [store] path)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the REST API server (default)")
    serve.add_argument("--host", type=str, default=None, help="Host address to bind to")
    serve.add_argument("-p", "--port", type=int, default=None, help="HTTP port")

    imp = sub.add_parser("import", help="Import moves from a CSV file")
    imp.add_argument("csv_file", type=Path)
    imp.add_argument(
        "--mode",
        choices=("append", "merge", "replace"),
        default="append",
        help="append new rows, merge by name, or replace everything (default: append)",
    )

    exp = sub.add_parser("export", help="Export moves to CSV (stdout if no file)")
    exp.add_argument("csv_file", type=Path, nargs="?", default=None)
    exp.add_argument("--balls", type=int, choices=(3, 4, 5), default=None)

    res = sub.add_parser("resolve-gifs", help="Find GIFs for moves that have a link but no GIF")
    res.add_argument("--balls", type=int, choices=(3, 4, 5), default=None)

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(args.config)
    if args.db is not None:
        settings.store.path = args.db
    if getattr(args, "host", None):
        settings.web.host = args.host
    if getattr(args, "port", None):
        settings.web.port = args.port
    return settings


async def run_import(settings: Settings, csv_file: Path, mode: str) -> int:
    db = MoveDb(settings.store.path)
    await db.open()
    try:
        library = MoveLibrary(db=db)
        await library.initialize()
        result = await library.import_csv(csv_file.read_text(encoding="utf-8"), mode=mode)  # type: ignore[arg-type]
    finally:
        await db.close()
    print(
        f"added={result.added} updated={result.updated} "
        f"skipped={result.skipped_rows} coerced={result.coerced_rows}"
    )
    return 0


async def run_export(settings: Settings, csv_file: Path | None, balls: int | None) -> int:
    db = MoveDb(settings.store.path)
    await db.open()
    try:
        library = MoveLibrary(db=db)
        await library.initialize()
        text = await library.export_csv(balls=balls)
    finally:
        await db.close()
    if csv_file is None:
        sys.stdout.write(text)
    else:
        csv_file.write_text(text, encoding="utf-8")
        logger.info("Exported moves to %s", csv_file)
    return 0


async def run_resolve(settings: Settings, balls: int | None) -> int:
    db = MoveDb(settings.store.path)
    await db.open()
    try:
        async with GifResolver(
            base_url=settings.resolver.base_url,
            timeout=settings.resolver.timeout_seconds,
            user_agent=settings.resolver.user_agent,
        ) as resolver:
            library = MoveLibrary(db=db, resolver=resolver)
            await library.initialize()
            result = await library.resolve_gifs(balls=balls)
    finally:
        await db.close()
    print(f"updated={result.updated_count} failed={result.failed_count} total={result.total}")
    return 0


async def run_server(settings: Settings) -> None:
    """Start and run the server."""
    server = JuggleServer(settings)
    await server.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        settings = build_settings(args)
        command = args.command or "serve"
        if command == "serve":
            logger.info("Starting jugglecards server...")
            asyncio.run(run_server(settings))
            logger.info("Server stopped")
            return 0
        if command == "import":
            return asyncio.run(run_import(settings, args.csv_file, args.mode))
        if command == "export":
            return asyncio.run(run_export(settings, args.csv_file, args.balls))
        if command == "resolve-gifs":
            return asyncio.run(run_resolve(settings, args.balls))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    logger.error("Unknown command: %s", args.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
