"""
Web Server Module for jugglecards.

This module provides the WebServer class that creates and manages the
FastAPI application and registers all routes. The browser UI (forms,
lists, flashcard timer) is a separate client of these endpoints.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from jugglecards import __version__
from jugglecards.web.routes.api import register_api_routes

if TYPE_CHECKING:
    from jugglecards.core.library import MoveLibrary
    from jugglecards.core.practice import PracticeSelection

logger = logging.getLogger(__name__)


class WebServer:
    """FastAPI-based web server for jugglecards."""

    def __init__(
        self,
        move_library: MoveLibrary,
        practice: PracticeSelection | None = None,
        *,
        cors_origins: list[str] | None = None,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            move_library: Move library facade (store + CSV + GIF resolution)
            practice: Optional practice selection for flashcard endpoints
            cors_origins: Allowed browser origins (default: any)
        """
        self.move_library = move_library
        self.practice = practice

        self.app = FastAPI(
            title="jugglecards",
            description="Personal juggling move reference",
            version=__version__,
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Server state
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._host = "127.0.0.1"
        self._port = 8420

        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "jugglecards"}

        register_api_routes(
            self.app,
            move_library=self.move_library,
            practice=self.practice,
        )

    async def start(self, host: str = "127.0.0.1", port: int = 8420) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            self._server = None
        if self._serve_task is not None:
            await self._serve_task
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        return self._port

    @property
    def host(self) -> str:
        return self._host
