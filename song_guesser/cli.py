"""CLI entrypoint and high-level application orchestration."""

import argparse
import logging

from .config import DEFAULT_DIFFICULTY, DIFFICULTY_PRESETS
from .env import get_required_env, load_env_file, migrate_legacy_token_cache, missing_spotify_env
from .game import play_game
from .library import load_artist_library, load_or_sync_library
from .round import Difficulty
from .scoring import GameSession
from .spotify_client import close_sessions, create_spotify_client, describe_account


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI options controlling sync behavior and game runtime."""
    parser = argparse.ArgumentParser(description="Guess the song from your Spotify library")
    parser.add_argument(
        "--difficulty",
        choices=sorted(DIFFICULTY_PRESETS),
        default=DEFAULT_DIFFICULTY,
        help="easy: 20s/3 guesses, medium: 10s/2 guesses, hard: 5s/1 guess (default: easy).",
    )
    parser.add_argument(
        "--refresh-library",
        action="store_true",
        help="Re-fetch all saved tracks from Spotify and update local cache.",
    )
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=0,
        help="Optional maximum rounds. 0 means unlimited.",
    )
    parser.add_argument(
        "--live-time-bonus",
        action="store_true",
        help="Score the time bonus from the clock at the moment of the guess instead of a flat 15s.",
    )
    parser.add_argument(
        "--no-preview-lookup",
        action="store_true",
        help="Skip the Deezer preview lookup and use Spotify titles as answers.",
    )
    parser.add_argument(
        "--artist",
        metavar="NAME",
        help="Guess songs from one artist's albums and singles instead of your saved tracks.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr.")
    return parser.parse_args(argv)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: list[str] | None = None) -> None:
    """Run the full app lifecycle: setup, game loop, and shutdown."""
    args = parse_args(argv)
    configure_logging(args.verbose)
    # Load local env and migrate old token cache path before auth.
    load_env_file(override=False)
    migrate_legacy_token_cache()

    missing = missing_spotify_env()
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    print(f"Using redirect URI: {get_required_env('SPOTIPY_REDIRECT_URI')}")

    sp = create_spotify_client()
    try:
        print(f"Connected to Spotify account: {describe_account(sp)}")

        if args.artist:
            library = load_artist_library(sp, args.artist)
        else:
            library = load_or_sync_library(sp, refresh_library=args.refresh_library)
        session = GameSession(
            difficulty=Difficulty.parse(args.difficulty),
            live_time_bonus=args.live_time_bonus,
        )
        play_game(
            sp=sp,
            library=library,
            session=session,
            max_rounds=max(0, args.max_rounds),
            use_preview_lookup=not args.no_preview_lookup,
            avoid_repeats=bool(args.artist),
        )
    finally:
        # Ensure HTTP sessions are closed on normal exit or error.
        close_sessions(sp)
