"""
jugglecards - Main Server Module

This module contains the JuggleServer class that wires the move store, the
GIF resolver and the web server together and manages their lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from jugglecards.config import Settings
from jugglecards.core.gif_resolver import GifResolver
from jugglecards.core.library import MoveLibrary
from jugglecards.core.move_db import MoveDb
from jugglecards.core.practice import PracticeSelection
from jugglecards.web.server import WebServer

logger = logging.getLogger(__name__)


class JuggleServer:
    """
    Coordinates all components.

    The server manages:
    - The move store (SQLite, migrated on open)
    - The GIF resolver (shared HTTP client)
    - The move library facade (bootstrap import on an empty store)
    - The web server for the REST API
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

        self.move_db = MoveDb(settings.store.path)
        self.resolver = GifResolver(
            base_url=settings.resolver.base_url,
            timeout=settings.resolver.timeout_seconds,
            user_agent=settings.resolver.user_agent,
            bus=self.move_db.bus,
        )
        self.move_library = MoveLibrary(db=self.move_db, resolver=self.resolver)
        self.practice = PracticeSelection(self.move_db)
        self.web_server: WebServer | None = None

        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Start all server components."""
        logger.info("Starting jugglecards with store %s", self.settings.store.path)
        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.move_db.open()
        seeded = await self.move_library.initialize(seed_csv=self.settings.bootstrap.dataset)
        if seeded:
            logger.info("Loaded %d default move(s)", seeded)

        self.web_server = WebServer(move_library=self.move_library, practice=self.practice)
        await self.web_server.start(host=self.settings.web.host, port=self.settings.web.port)

        logger.info("jugglecards started on http://%s:%d", self.settings.web.host, self.settings.web.port)

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping jugglecards...")
        self._running = False

        if self.web_server:
            await self.web_server.stop()

        await self.resolver.aclose()

        # Close the store last, after all components are stopped.
        await self.move_db.close()

        if self._shutdown_event:
            self._shutdown_event.set()

        logger.info("jugglecards stopped")

    async def run(self) -> None:
        """
        Run the server until shutdown is requested (SIGINT or SIGTERM).
        """
        await self.start()

        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        if self._shutdown_event:
            await self._shutdown_event.wait()

        await self.stop()

    @property
    def is_running(self) -> bool:
        return self._running
