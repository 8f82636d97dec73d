"""
Configuration management for jugglecards.

Settings are loaded from a TOML file into dataclasses. The bundled
`settings.toml` next to this module holds the defaults; a user file can be
passed explicitly (CLI `--config`). Missing keys fall back to defaults.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent
PACKAGE_DIR = CONFIG_DIR.parent


@dataclass
class StoreSettings:
    path: Path = Path("jugglecards.sqlite3")


@dataclass
class ResolverSettings:
    base_url: str = "https://libraryofjuggling.com/JugglingGifs"
    timeout_seconds: float = 3.0
    user_agent: str = "jugglecards/0.1.0"


@dataclass
class WebSettings:
    host: str = "127.0.0.1"
    port: int = 8420


@dataclass
class BootstrapSettings:
    # Imported when the store is empty. None disables seeding.
    dataset: Path | None = PACKAGE_DIR / "data" / "default_moves.csv"


@dataclass
class Settings:
    """Loaded application settings."""

    store: StoreSettings = field(default_factory=StoreSettings)
    resolver: ResolverSettings = field(default_factory=ResolverSettings)
    web: WebSettings = field(default_factory=WebSettings)
    bootstrap: BootstrapSettings = field(default_factory=BootstrapSettings)


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        logger.warning("Ignoring config section [%s]: expected a table", name)
        return {}
    return section


def _resolve_path(value: str, base: Path) -> Path:
    """Relative dataset paths are taken relative to the config file."""
    path = Path(value).expanduser()
    return path if path.is_absolute() else base / path


def load_settings(config_path: Path | None = None) -> Settings:
    """
    Load settings from a TOML file.

    Args:
        config_path: Path to a settings file. If None, uses the bundled defaults.

    Returns:
        Loaded Settings instance.
    """
    if config_path is None:
        config_path = CONFIG_DIR / "settings.toml"

    logger.debug("Loading settings from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    defaults = Settings()

    store = _section(data, "store")
    resolver = _section(data, "resolver")
    web = _section(data, "web")
    bootstrap = _section(data, "bootstrap")

    dataset: Path | None = defaults.bootstrap.dataset
    if "dataset" in bootstrap:
        raw = str(bootstrap["dataset"]).strip()
        dataset = _resolve_path(raw, config_path.parent) if raw else None

    return Settings(
        store=StoreSettings(
            path=Path(str(store.get("path", defaults.store.path))).expanduser(),
        ),
        resolver=ResolverSettings(
            base_url=str(resolver.get("base_url", defaults.resolver.base_url)),
            timeout_seconds=float(
                resolver.get("timeout_seconds", defaults.resolver.timeout_seconds)
            ),
            user_agent=str(resolver.get("user_agent", defaults.resolver.user_agent)),
        ),
        web=WebSettings(
            host=str(web.get("host", defaults.web.host)),
            port=int(web.get("port", defaults.web.port)),
        ),
        bootstrap=BootstrapSettings(dataset=dataset),
    )


# Global singleton instance (lazy loaded)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings (lazy loaded singleton).

    Returns:
        The Settings instance.
    """
    global _settings

    if _settings is None:
        _settings = load_settings()

    return _settings


def reload_settings(config_path: Path | None = None) -> Settings:
    """
    Force reload of settings, optionally from a different file.

    Returns:
        The newly loaded Settings instance.
    """
    global _settings
    _settings = load_settings(config_path)
    return _settings
