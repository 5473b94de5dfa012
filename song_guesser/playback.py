"""Spotify Connect helpers for playing a round's listening window."""

import logging
import random
from typing import Any

import spotipy
from spotipy.exceptions import SpotifyException

logger = logging.getLogger(__name__)

# Keep snippets clear of the track's tail so the window is never cut short.
MIN_SNIPPET_REMAINING_MARGIN_MS = 1500


def resolve_device(sp: spotipy.Spotify, preferred_device_id: str | None = None) -> str | None:
    """Resolve a usable playback device, preferring the previous round's device."""
    try:
        devices = (sp.devices() or {}).get("devices", [])
    except SpotifyException as exc:
        logger.warning("Could not list Spotify devices: %s", exc)
        return None

    usable = [device for device in devices if not device.get("is_restricted", False) and device.get("id")]
    if not usable:
        return None

    if preferred_device_id and any(device["id"] == preferred_device_id for device in usable):
        return preferred_device_id

    for device in usable:
        if device.get("is_active"):
            return device["id"]
    return usable[0]["id"]


def choose_start_position(duration_ms: int, window_seconds: int, rng: random.Random | None = None) -> int:
    """Random offset that leaves the whole listening window inside the track."""
    rng = rng or random
    window_ms = max(1, window_seconds) * 1000
    max_start_ms = max(0, duration_ms - window_ms - MIN_SNIPPET_REMAINING_MARGIN_MS)
    return rng.randint(0, max_start_ms) if max_start_ms else 0


class SnippetPlayer:
    """Plays one track's snippet on a Spotify Connect device.

    Every replay within a round resumes from the same offset so the player
    hears the same part of the song each time.
    """

    def __init__(self, sp: spotipy.Spotify, device_id: str, track: dict[str, Any], window_seconds: int) -> None:
        self.sp = sp
        self.device_id = device_id
        self.track = track
        self.position_ms = choose_start_position(int(track.get("duration_ms") or 0), window_seconds)
        self.last_error: str | None = None
        self.playing = False

    def start(self) -> None:
        try:
            # Ensure the selected device is the current playback target.
            self.sp.transfer_playback(device_id=self.device_id, force_play=False)
            self.sp.start_playback(
                uris=[self.track["uri"]],
                device_id=self.device_id,
                position_ms=self.position_ms,
            )
        except SpotifyException as exc:
            self.last_error = str(exc)
            logger.warning("Could not start playback of %s: %s", self.track["uri"], exc)
            return
        self.last_error = None
        self.playing = True

    def stop(self) -> None:
        if self.playing:
            pause_playback(self.sp, self.device_id)
        self.playing = False


def pause_playback(sp: spotipy.Spotify, device_id: str | None) -> None:
    """Best-effort pause for cleanup at end of round/game."""
    if device_id:
        try:
            sp.pause_playback(device_id=device_id)
            return
        except SpotifyException as exc:
            # Device-specific pause can fail if the active device changed mid-round.
            logger.debug("Pause on device %s failed: %s", device_id, exc)

    try:
        sp.pause_playback()
    except SpotifyException as exc:
        logger.debug("Pause on active device failed: %s", exc)
