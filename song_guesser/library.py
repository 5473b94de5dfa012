"""Saved-track sync, local caching, and target selection."""

import json
import logging
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import spotipy
from spotipy.exceptions import SpotifyException

from .config import (
    ALBUM_PAGE_SIZE,
    ARTIST_ALBUM_GROUPS,
    LIBRARY_CACHE_PATH,
    SAVED_TRACKS_PAGE_SIZE,
    VARIANT_TITLE_KEYWORDS,
)

logger = logging.getLogger(__name__)


def extract_image_url(raw_track: dict[str, Any]) -> str | None:
    existing_image = raw_track.get("image_url")
    if isinstance(existing_image, str) and existing_image:
        return existing_image

    album = raw_track.get("album")
    if not isinstance(album, dict):
        return None

    images = album.get("images")
    if not isinstance(images, list):
        return None

    # Spotify lists images largest first; the cover is only shown as small ASCII art.
    for image in reversed(images):
        if isinstance(image, dict) and isinstance(image.get("url"), str) and image["url"]:
            return image["url"]
    return None


def normalize_track(raw_track: dict[str, Any] | None) -> dict[str, Any] | None:
    """Reduce a Spotify track payload (or a cached row) to the fields a round needs."""
    if not isinstance(raw_track, dict):
        return None

    uri = raw_track.get("uri")
    name = raw_track.get("name")
    if not uri or not isinstance(name, str) or not name.strip():
        return None

    raw_artists = raw_track.get("artists", [])
    artists: list[str] = []
    if isinstance(raw_artists, list):
        for artist in raw_artists:
            if isinstance(artist, dict):
                artist = artist.get("name", "")
            if isinstance(artist, str) and artist.strip():
                artists.append(artist.strip())
    if not artists:
        artists = ["Unknown Artist"]

    album = raw_track.get("album")
    if isinstance(album, dict):
        album = album.get("name")
    if not isinstance(album, str):
        album = ""

    duration_ms = raw_track.get("duration_ms", 0)
    if not isinstance(duration_ms, int):
        duration_ms = 0

    preview_url = raw_track.get("preview_url")
    if not isinstance(preview_url, str) or not preview_url:
        preview_url = None

    return {
        "uri": uri,
        "id": str(raw_track.get("id") or uri.rsplit(":", 1)[-1]),
        "name": name.strip(),
        "artists": artists,
        "album": album,
        "image_url": extract_image_url(raw_track),
        "duration_ms": duration_ms,
        "preview_url": preview_url,
    }


def fetch_library_from_spotify(sp: spotipy.Spotify) -> list[dict[str, Any]]:
    tracks: list[dict[str, Any]] = []
    seen_uris: set[str] = set()
    offset = 0

    while True:
        page = sp.current_user_saved_tracks(limit=SAVED_TRACKS_PAGE_SIZE, offset=offset) or {}
        items = page.get("items", [])
        if not items:
            break

        for item in items:
            track = normalize_track(item.get("track") if isinstance(item, dict) else None)
            if track and track["uri"] not in seen_uris:
                seen_uris.add(track["uri"])
                tracks.append(track)

        offset += len(items)
        print(f"\rSyncing Spotify library: {len(tracks)} tracks", end="", flush=True)
        if not page.get("next"):
            break

    print()
    logger.info("Fetched %d unique saved tracks", len(tracks))
    return tracks


def load_library_cache(path: Path = LIBRARY_CACHE_PATH) -> list[dict[str, Any]]:
    if not path.exists():
        return []

    try:
        with path.open("r", encoding="utf-8") as file:
            payload = json.load(file)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable library cache %s: %s", path, exc)
        return []

    if isinstance(payload, dict):
        raw_tracks = payload.get("tracks", [])
    elif isinstance(payload, list):
        raw_tracks = payload
    else:
        return []

    tracks: list[dict[str, Any]] = []
    for entry in raw_tracks:
        # Older caches stored raw saved-track items with the track nested one level down.
        if isinstance(entry, dict) and "track" in entry:
            entry = entry.get("track")
        track = normalize_track(entry if isinstance(entry, dict) else None)
        if track:
            tracks.append(track)
    return tracks


def save_library_cache(tracks: list[dict[str, Any]], path: Path = LIBRARY_CACHE_PATH) -> None:
    payload = {
        "synced_at_utc": datetime.now(timezone.utc).isoformat(),
        "track_count": len(tracks),
        "tracks": tracks,
    }

    with path.open("w", encoding="utf-8") as file:
        json.dump(payload, file)


def load_or_sync_library(sp: spotipy.Spotify, refresh_library: bool) -> list[dict[str, Any]]:
    if not refresh_library:
        cached_tracks = load_library_cache()
        if cached_tracks:
            print(f"Loaded {len(cached_tracks)} tracks from cache. Use --refresh-library to resync.")
            return cached_tracks

    print("Refreshing saved tracks from Spotify...")
    tracks = fetch_library_from_spotify(sp)
    save_library_cache(tracks)
    print(f"Saved {len(tracks)} tracks to {LIBRARY_CACHE_PATH}.")
    return tracks


def pick_random_track(
    library: list[dict[str, Any]],
    exclude_uri: str | None = None,
    rng: random.Random | None = None,
) -> dict[str, Any]:
    """Choose the next round's target, avoiding an immediate repeat when possible."""
    if not library:
        raise RuntimeError("Your saved-track library is empty. Save a few songs on Spotify and try again.")

    rng = rng or random
    candidates = [track for track in library if track["uri"] != exclude_uri] or library
    return rng.choice(candidates)


def primary_artist(track: dict[str, Any]) -> str:
    artists = track.get("artists") or []
    return artists[0] if artists else "Unknown Artist"


def search_artist(sp: spotipy.Spotify, query: str) -> dict[str, Any] | None:
    """Best Spotify match for an artist name, as ``{"id", "name"}``."""
    results = sp.search(q=query, type="artist", limit=1) or {}
    items = (results.get("artists") or {}).get("items") or []
    for artist in items:
        if isinstance(artist, dict) and artist.get("id"):
            return {"id": artist["id"], "name": artist.get("name") or query}
    return None


def _paged_items(fetch_page) -> list[dict[str, Any]]:
    items: list[dict[str, Any]] = []
    offset = 0
    while True:
        page = fetch_page(offset) or {}
        batch = page.get("items", [])
        if not batch:
            break
        items.extend(item for item in batch if isinstance(item, dict))
        offset += len(batch)
        if not page.get("next"):
            break
    return items


def fetch_artist_tracks(sp: spotipy.Spotify, artist_id: str) -> list[dict[str, Any]]:
    """Every track credited to the artist across their albums and singles, one per title."""
    albums = _paged_items(
        lambda offset: sp.artist_albums(
            artist_id,
            include_groups=ARTIST_ALBUM_GROUPS,
            limit=ALBUM_PAGE_SIZE,
            offset=offset,
        )
    )

    tracks: list[dict[str, Any]] = []
    seen_titles: set[tuple[str, str]] = set()
    for album in albums:
        album_id = album.get("id")
        if not album_id:
            continue
        try:
            items = _paged_items(
                lambda offset: sp.album_tracks(album_id, limit=ALBUM_PAGE_SIZE, offset=offset)
            )
        except SpotifyException as exc:
            logger.warning("Skipping album %r: %s", album.get("name"), exc)
            continue

        for item in items:
            # Compilations and features list tracks where the artist is not credited.
            credited = {artist.get("id") for artist in item.get("artists", []) if isinstance(artist, dict)}
            if artist_id not in credited:
                continue

            # Album track items carry no album; attach it so the cover can be shown.
            track = normalize_track(dict(item, album=album))
            if not track:
                continue
            title_key = (track["name"].lower(), track["artists"][0].lower())
            if title_key in seen_titles:
                continue
            seen_titles.add(title_key)
            tracks.append(track)

    logger.info("Found %d unique tracks across %d releases for artist %s", len(tracks), len(albums), artist_id)
    return tracks


def load_artist_library(sp: spotipy.Spotify, query: str) -> list[dict[str, Any]]:
    artist = search_artist(sp, query)
    if artist is None:
        raise RuntimeError(f"No Spotify artist found for {query!r}.")

    print(f"Loading songs by {artist['name']}...")
    tracks = fetch_artist_tracks(sp, artist["id"])
    if not tracks:
        raise RuntimeError(f"No songs found for {artist['name']}.")
    print(f"Found {len(tracks)} songs by {artist['name']}.")
    return tracks


def is_variant_title(name: str) -> bool:
    lowered = name.lower()
    return any(keyword in lowered for keyword in VARIANT_TITLE_KEYWORDS)


def pick_unplayed_track(
    tracks: list[dict[str, Any]],
    played_uris: set[str],
    rng: random.Random | None = None,
) -> dict[str, Any] | None:
    """Random track not played yet, preferring standard versions; None once all are used."""
    available = [track for track in tracks if track["uri"] not in played_uris]
    if not available:
        return None

    rng = rng or random
    standard = [track for track in available if not is_variant_title(track["name"])]
    return rng.choice(standard or available)
