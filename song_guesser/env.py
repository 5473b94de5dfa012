"""Environment-variable helpers and token-cache migration utilities."""

import logging
import os
from pathlib import Path

from .config import LEGACY_TOKEN_CACHE_PATH, TOKEN_CACHE_PATH

logger = logging.getLogger(__name__)

REQUIRED_SPOTIFY_ENV = ("SPOTIPY_CLIENT_ID", "SPOTIPY_CLIENT_SECRET", "SPOTIPY_REDIRECT_URI")


def load_env_file(path: Path = Path(".env"), override: bool = True) -> int:
    """Load simple KEY=VALUE pairs from a .env file into process env; returns keys set."""
    if not path.exists():
        return 0

    loaded = 0
    with path.open("r", encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            if line.startswith("export "):
                line = line[len("export ") :].strip()
            # Skip comments, blank lines, and malformed rows.
            if not line or line.startswith("#") or "=" not in line:
                continue

            # Split once so values containing '=' are preserved.
            key, value = line.split("=", 1)
            key = key.strip()
            if not key or (not override and key in os.environ):
                continue
            os.environ[key] = value.strip().strip("'\"")
            loaded += 1

    logger.debug("Loaded %d variables from %s", loaded, path)
    return loaded


def get_required_env(name: str) -> str:
    """Fetch a required environment variable or raise a clear error."""
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def missing_spotify_env() -> list[str]:
    """Names of the Spotify OAuth variables that are still unset."""
    return [name for name in REQUIRED_SPOTIFY_ENV if not os.getenv(name)]


def migrate_legacy_token_cache() -> bool:
    """Copy the legacy token cache to the current path when needed."""
    if not LEGACY_TOKEN_CACHE_PATH.exists() or TOKEN_CACHE_PATH.exists():
        return False

    try:
        TOKEN_CACHE_PATH.write_text(LEGACY_TOKEN_CACHE_PATH.read_text(encoding="utf-8"), encoding="utf-8")
    except OSError as exc:
        # Migration is best-effort; auth can still proceed normally.
        logger.warning("Could not migrate token cache from %s: %s", LEGACY_TOKEN_CACHE_PATH, exc)
        return False
    logger.info("Migrated token cache %s -> %s", LEGACY_TOKEN_CACHE_PATH, TOKEN_CACHE_PATH)
    return True
