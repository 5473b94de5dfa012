"""Preview-clip lookup through the Deezer public search API."""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from .config import DEEZER_SEARCH_URL, PREVIEW_LOOKUP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Preview:
    title: str
    artist: str
    preview_url: str
    image_url: str | None = None
    source: str = "Deezer"


def build_search_url(title: str, artist: str) -> str:
    query = urllib.parse.urlencode({"q": f"{title} {artist}".strip(), "limit": 1})
    return f"{DEEZER_SEARCH_URL}?{query}"


def parse_search_response(payload: Any) -> Preview | None:
    """Take the first hit that carries a playable preview."""
    if not isinstance(payload, dict):
        return None

    hits = payload.get("data")
    if not isinstance(hits, list):
        return None

    for hit in hits:
        if not isinstance(hit, dict):
            continue
        preview_url = hit.get("preview")
        title = hit.get("title")
        if not preview_url or not isinstance(title, str) or not title.strip():
            continue

        artist = hit.get("artist")
        album = hit.get("album")
        return Preview(
            title=title.strip(),
            artist=(artist.get("name") if isinstance(artist, dict) else None) or "Unknown Artist",
            preview_url=preview_url,
            image_url=album.get("cover_medium") if isinstance(album, dict) else None,
        )
    return None


def find_preview(title: str, artist: str, timeout: float = PREVIEW_LOOKUP_TIMEOUT_SECONDS) -> Preview | None:
    """Look up a preview clip for a track; lookup failures are logged and yield None."""
    url = build_search_url(title, artist)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            payload = json.loads(response.read().decode("utf-8"))
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        logger.warning("Preview lookup failed for %r by %s: %s", title, artist, exc)
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.warning("Preview lookup returned malformed data for %r: %s", title, exc)
        return None

    if isinstance(payload, dict) and payload.get("error"):
        logger.warning("Preview lookup rejected for %r: %s", title, payload["error"])
        return None

    preview = parse_search_response(payload)
    if preview is None:
        logger.info("No preview found for %r by %s", title, artist)
    return preview
