"""
jugglecards Web Layer.

This package provides the HTTP/REST API layer, consumed by the browser UI
and by external tools.

Components:
- WebServer: FastAPI application with all routes
"""

from jugglecards.web.server import WebServer

__all__ = [
    "WebServer",
]
