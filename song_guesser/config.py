"""Shared configuration constants used across the application."""

from pathlib import Path

# Spotify OAuth scopes needed for reading library and controlling playback.
SCOPE = "user-library-read user-read-playback-state user-modify-playback-state"

# Local file paths for auth token caching and the saved-track cache.
TOKEN_CACHE_PATH = Path(".spotifycache")
LEGACY_TOKEN_CACHE_PATH = Path(".cache")
LIBRARY_CACHE_PATH = Path("library_data.json")

SAVED_TRACKS_PAGE_SIZE = 50  # Spotify API max page size for saved tracks.

# Public search endpoint used to resolve a preview clip and canonical title.
DEEZER_SEARCH_URL = "https://api.deezer.com/search"
PREVIEW_LOOKUP_TIMEOUT_SECONDS = 8

# Per-difficulty round presets: (playback window seconds, max attempts, score multiplier).
DIFFICULTY_PRESETS = {
    "easy": (20, 3, 1),
    "medium": (10, 2, 2),
    "hard": (5, 1, 3),
}
DEFAULT_DIFFICULTY = "easy"

# Share of words that must overlap for a fuzzy title match.
MATCH_THRESHOLD = 0.9

# Scoring constants.
BASE_SCORE = 100
TIME_BONUS_PER_SECOND = 2
STREAK_BONUS = 10
FLAT_TIME_BONUS_SECONDS = 15

MAX_TERMINAL_WIDTH = 110
ASCII_PALETTE = ".:-=+*#%@"

# Artist game: which release groups to draw from, and title keywords marking alternate versions.
ARTIST_ALBUM_GROUPS = "album,single"
ALBUM_PAGE_SIZE = 50
VARIANT_TITLE_KEYWORDS = (
    "remix",
    "sped up",
    "slowed",
    "acoustic",
    "live",
    "demo",
    "instrumental",
    "karaoke",
)
