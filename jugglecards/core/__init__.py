"""
Core domain package.

This package contains the move store, the CSV codec and the GIF resolver.
None of it depends on the web layer; consumers should usually import from
the specific module they need (e.g. `jugglecards.core.move_db`).
"""

from __future__ import annotations

__all__: list[str] = [
    "CoreError",
    "NotFoundError",
    "UnparseableSourceError",
    "ValidationError",
]


class CoreError(Exception):
    """Base class for core-layer exceptions."""


class ValidationError(CoreError):
    """Raised when a move record has an invalid shape at a write boundary."""


class NotFoundError(CoreError):
    """Raised when a move id cannot be found."""


class UnparseableSourceError(CoreError):
    """Raised when a reference URL does not match the trick page pattern."""
