"""Core game loop: round orchestration, scoring, and run summaries."""

import logging
from dataclasses import dataclass
from typing import Any

import spotipy

from .library import pick_random_track, pick_unplayed_track, primary_artist
from .playback import SnippetPlayer, resolve_device
from .preview import Preview, find_preview
from .round import GuessEvaluator, OutcomeKind, RejectReason, RoundConfig
from .scoring import GameSession
from .ui import (
    build_reveal_lines,
    build_round_lines,
    enter_alternate_screen,
    leave_alternate_screen,
    prompt_play_again,
    read_command,
    render_ascii_art,
    render_round_screen,
)

logger = logging.getLogger(__name__)


@dataclass
class RoundTarget:
    """Canonical answer and presentation details for one round."""

    track: dict[str, Any]
    title: str
    artist: str
    image_url: str | None
    source: str
    preview_url: str | None = None


def resolve_target(track: dict[str, Any], use_preview_lookup: bool = True) -> RoundTarget:
    """Pick the canonical answer for a track, preferring the preview service's naming."""
    preview: Preview | None = None
    if use_preview_lookup:
        preview = find_preview(track["name"], primary_artist(track))

    if preview is not None:
        return RoundTarget(
            track=track,
            title=preview.title,
            artist=preview.artist,
            image_url=preview.image_url or track.get("image_url"),
            source=preview.source,
            preview_url=preview.preview_url,
        )

    return RoundTarget(
        track=track,
        title=track["name"],
        artist=", ".join(track["artists"]),
        image_url=track.get("image_url"),
        source="Spotify",
        preview_url=track.get("preview_url"),
    )


class RoundShell:
    """Drives one ``GuessEvaluator`` from terminal input and Spotify playback."""

    def __init__(self, session: GameSession, target: RoundTarget, player: SnippetPlayer) -> None:
        self.session = session
        self.target = target
        self.player = player
        self.status = "Press /play to hear the snippet, then type the title."
        self.points = 0
        self.gave_up = False
        self.result: OutcomeKind | None = None
        self.evaluator = GuessEvaluator(
            target_title=target.title,
            target_artist=target.artist,
            difficulty=session.difficulty,
            on_start_audio=self.player.start,
            on_stop_audio=self.player.stop,
            on_tick_expired=self._on_tick_expired,
            on_correct=self._on_correct,
            on_incorrect=self._on_incorrect,
            on_exhausted=self._on_exhausted,
        )

    def _on_tick_expired(self) -> None:
        self.status = "Time is up for this listen. /play to hear it again."

    def _on_correct(self) -> None:
        self.result = OutcomeKind.CORRECT

    def _on_incorrect(self, attempts_remaining: int) -> None:
        if attempts_remaining == 1:
            self.status = "Incorrect! Last guess remaining, make it count!"
        else:
            self.status = f"Incorrect! You have {attempts_remaining} guesses left."

    def _on_exhausted(self) -> None:
        self.result = OutcomeKind.EXHAUSTED
        self.session.record_miss()

    def render(self, answer_buffer: str = "") -> None:
        render_round_screen(build_round_lines(self.session, self.evaluator.state, self.status), answer_buffer)

    def run(self) -> bool:
        """Play until the round is revealed; returns False when the player quits."""
        try:
            while not self.evaluator.state.is_finished:
                command, text = read_command(self.evaluator, self.render)
                if command == "quit":
                    return False
                if command == "play":
                    self.evaluator.start_playback()
                    if self.player.last_error:
                        self.status = f"Could not start playback: {self.player.last_error}"
                    else:
                        self.status = "Listening..."
                elif command == "stop":
                    self.evaluator.stop_playback()
                    self.status = "Stopped. /play to listen again."
                elif command == "give_up":
                    self.gave_up = True
                    self.evaluator.give_up()
                elif command == "reset":
                    self.session.reset()
                    self.status = f"Session reset. Total score so far: {self.session.total_score}."
                else:
                    self._submit(text)
            return True
        finally:
            self.evaluator.close()
            self.player.stop()

    def _submit(self, text: str) -> None:
        outcome = self.evaluator.submit_guess(text)
        if outcome.kind is OutcomeKind.REJECTED and outcome.reason is RejectReason.EMPTY_INPUT:
            self.status = "Please enter a guess."
        elif outcome.kind is OutcomeKind.CORRECT:
            self.points = self.session.record_correct(outcome.time_remaining_at_guess)

    def reveal_lines(self) -> list[str]:
        if self.result is OutcomeKind.CORRECT:
            headline = f"Correct! +{self.points} points"
        elif self.gave_up:
            headline = "You gave up."
        else:
            headline = "Out of guesses."
        return build_reveal_lines(
            title=self.target.title,
            artist=self.target.artist,
            source=self.target.source,
            headline=headline,
            session=self.session,
            preview_url=self.target.preview_url,
            cover_lines=render_ascii_art(self.target.image_url),
        )


def play_game(
    sp: spotipy.Spotify,
    library: list[dict[str, Any]],
    session: GameSession,
    max_rounds: int = 0,
    use_preview_lookup: bool = True,
    avoid_repeats: bool = False,
) -> GameSession:
    """Run rounds until the player quits, declines another round, or the limit is hit.

    With ``avoid_repeats`` every track is played at most once and the game ends
    when none are left.
    """
    if not library:
        raise RuntimeError("Need at least one saved track in your library to play.")

    device_id = resolve_device(sp)
    if not device_id:
        raise RuntimeError("No available Spotify devices. Open Spotify on any device and try again.")

    rounds_played = 0
    previous_uri: str | None = None
    played_uris: set[str] = set()
    end_message = ""

    while True:
        if max_rounds and rounds_played >= max_rounds:
            end_message = "Reached round limit."
            break

        # Re-resolve each round to tolerate device changes.
        device_id = resolve_device(sp, preferred_device_id=device_id)
        if not device_id:
            end_message = "No available playback device found."
            break

        if avoid_repeats:
            track = pick_unplayed_track(library, played_uris)
            if track is None:
                end_message = "No songs left to play."
                break
            played_uris.add(track["uri"])
        else:
            track = pick_random_track(library, exclude_uri=previous_uri)
        previous_uri = track["uri"]
        target = resolve_target(track, use_preview_lookup=use_preview_lookup)
        logger.debug("Round %d target: %s (%s)", session.round_number, target.title, target.source)

        window = RoundConfig.for_difficulty(session.difficulty).playback_window_seconds
        shell = RoundShell(session, target, SnippetPlayer(sp, device_id, track, window))

        alternate_screen_enabled = enter_alternate_screen()
        try:
            keep_playing = shell.run()
        finally:
            if alternate_screen_enabled:
                leave_alternate_screen()

        if not keep_playing:
            end_message = "Game ended by user."
            break

        rounds_played += 1
        print("\n".join(shell.reveal_lines()))
        if not prompt_play_again():
            break

    if end_message:
        print(end_message)
    print_summary(session)
    return session


def print_summary(session: GameSession) -> None:
    print("\nGame Over")
    print(f"Session score: {session.session_score}")
    print(f"Correct answers: {session.correct_answers}/{session.questions_answered} ({session.accuracy_pct}%)")
    print(f"Best streak: {session.best_streak}")
    if session.total_score != session.session_score:
        print(f"Total score (including resets): {session.total_score}")
