"""
jugglecards - a personal reference tool for juggling moves.

Moves are kept in a local SQLite store, exchanged as CSV, and enriched with
animated illustrations discovered from their reference-site links.
"""

__version__ = "0.1.0"
__license__ = "GPL-2.0"

__all__ = ["__version__"]
