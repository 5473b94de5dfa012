"""Round state, guess evaluation, and the playback countdown for one song.

The transitions in this module are pure: each takes a ``RoundState`` and
returns a ``Transition`` holding the next state, an optional ``Outcome`` and
the events the presentation layer has to act on (start or stop audio, show a
reveal, and so on). ``GuessEvaluator`` wraps them with the single mutable
reference, a cooperative one-second tick and the shell callbacks.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

from .config import DIFFICULTY_PRESETS
from .matching import is_match

logger = logging.getLogger(__name__)


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"

    @classmethod
    def parse(cls, value: "str | Difficulty") -> "Difficulty":
        if isinstance(value, Difficulty):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(level.value for level in cls)
            raise ValueError(f"Unknown difficulty {value!r}; expected one of: {choices}") from None


@dataclass(frozen=True)
class RoundConfig:
    difficulty: Difficulty
    playback_window_seconds: int
    max_attempts: int
    score_multiplier: int

    @classmethod
    def for_difficulty(cls, difficulty: "str | Difficulty") -> "RoundConfig":
        level = Difficulty.parse(difficulty)
        window, attempts, multiplier = DIFFICULTY_PRESETS[level.value]
        return cls(
            difficulty=level,
            playback_window_seconds=window,
            max_attempts=attempts,
            score_multiplier=multiplier,
        )


class Phase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    AWAITING_REVEAL = "awaiting_reveal"
    REVEALED = "revealed"


class Event(Enum):
    PLAYBACK_STARTED = "playback_started"
    PLAYBACK_STOPPED = "playback_stopped"
    TICK = "tick"
    TICK_EXPIRED = "tick_expired"
    CORRECT = "correct"
    INCORRECT = "incorrect"
    EXHAUSTED = "exhausted"


class OutcomeKind(Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    EXHAUSTED = "exhausted"
    REJECTED = "rejected"


class RejectReason(Enum):
    EMPTY_INPUT = "empty_input"
    ROUND_OVER = "round_over"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    attempts_remaining: int | None = None
    time_remaining_at_guess: int | None = None
    reason: RejectReason | None = None

    @classmethod
    def correct(cls, time_remaining_at_guess: int) -> "Outcome":
        return cls(OutcomeKind.CORRECT, time_remaining_at_guess=time_remaining_at_guess)

    @classmethod
    def incorrect(cls, attempts_remaining: int) -> "Outcome":
        return cls(OutcomeKind.INCORRECT, attempts_remaining=attempts_remaining)

    @classmethod
    def exhausted(cls) -> "Outcome":
        return cls(OutcomeKind.EXHAUSTED, attempts_remaining=0)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "Outcome":
        return cls(OutcomeKind.REJECTED, reason=reason)


@dataclass(frozen=True)
class RoundState:
    config: RoundConfig
    target_title: str
    target_artist: str
    phase: Phase
    attempts_remaining: int
    time_remaining_seconds: int

    @property
    def is_finished(self) -> bool:
        return self.phase in (Phase.AWAITING_REVEAL, Phase.REVEALED)

    @property
    def is_playing(self) -> bool:
        return self.phase is Phase.PLAYING


@dataclass(frozen=True)
class Transition:
    state: RoundState
    outcome: Outcome | None = None
    events: tuple[Event, ...] = ()


def new_round(target_title: str, target_artist: str, difficulty: "str | Difficulty") -> RoundState:
    """Create the idle state for a fresh round with a full clock and attempt budget."""
    config = RoundConfig.for_difficulty(difficulty)
    return RoundState(
        config=config,
        target_title=target_title,
        target_artist=target_artist,
        phase=Phase.IDLE,
        attempts_remaining=config.max_attempts,
        time_remaining_seconds=config.playback_window_seconds,
    )


def _halt(state: RoundState, phase: Phase) -> tuple[RoundState, tuple[Event, ...]]:
    # Leaving Playing always resets the clock and tells the shell to silence audio.
    stopped = (Event.PLAYBACK_STOPPED,) if state.is_playing else ()
    halted = replace(state, phase=phase, time_remaining_seconds=state.config.playback_window_seconds)
    return halted, stopped


def start_playback(state: RoundState) -> Transition:
    """Begin (or restart) the listening window."""
    if state.is_finished:
        return Transition(state)

    playing = replace(
        state,
        phase=Phase.PLAYING,
        time_remaining_seconds=state.config.playback_window_seconds,
    )
    return Transition(playing, events=(Event.PLAYBACK_STARTED,))


def on_tick(state: RoundState) -> Transition:
    """Advance the countdown by one second; expiry returns the round to idle."""
    if not state.is_playing:
        return Transition(state)

    remaining = max(0, state.time_remaining_seconds - 1)
    if remaining > 0:
        return Transition(replace(state, time_remaining_seconds=remaining), events=(Event.TICK,))

    idle, stopped = _halt(state, Phase.IDLE)
    return Transition(idle, events=(Event.TICK_EXPIRED,) + stopped)


def stop_playback(state: RoundState) -> Transition:
    """Manual stop: same reset as expiry, without the expiry signal."""
    if not state.is_playing:
        return Transition(state)

    idle, stopped = _halt(state, Phase.IDLE)
    return Transition(idle, events=stopped)


def _exhaust(state: RoundState) -> Transition:
    revealed, stopped = _halt(replace(state, attempts_remaining=0), Phase.REVEALED)
    return Transition(revealed, Outcome.exhausted(), stopped + (Event.EXHAUSTED,))


def submit_guess(state: RoundState, raw_text: str) -> Transition:
    """Evaluate a typed guess against the round's target title."""
    if not raw_text or not raw_text.strip():
        return Transition(state, Outcome.rejected(RejectReason.EMPTY_INPUT))
    if state.is_finished:
        return Transition(state, Outcome.rejected(RejectReason.ROUND_OVER))

    if is_match(raw_text, state.target_title):
        # An idle clock is a refilled window, not listening time left.
        time_at_guess = state.time_remaining_seconds if state.is_playing else 0
        revealed, stopped = _halt(state, Phase.REVEALED)
        return Transition(revealed, Outcome.correct(time_at_guess), stopped + (Event.CORRECT,))

    attempts = max(0, state.attempts_remaining - 1)
    if attempts == 0:
        return _exhaust(state)

    # A miss with attempts left keeps the phase and the running clock as they are.
    return Transition(
        replace(state, attempts_remaining=attempts),
        Outcome.incorrect(attempts),
        (Event.INCORRECT,),
    )


def give_up(state: RoundState) -> Transition:
    """Forfeit the round regardless of attempts left."""
    if state.is_finished:
        return Transition(state, Outcome.rejected(RejectReason.ROUND_OVER))
    return _exhaust(state)


class GuessEvaluator:
    """Live round owned by the presentation shell.

    Holds the current ``RoundState``, the single pending tick deadline and the
    shell callbacks. Time is cooperative: the shell calls ``poll`` from its
    input loop and every whole second that has elapsed since the last tick is
    applied in order. Once ``close`` is called the round is discarded; all
    operations become no-ops and no tick is ever fired again.
    """

    def __init__(
        self,
        target_title: str,
        target_artist: str,
        difficulty: "str | Difficulty",
        on_start_audio: Callable[[], None] | None = None,
        on_stop_audio: Callable[[], None] | None = None,
        on_tick: Callable[[int], None] | None = None,
        on_tick_expired: Callable[[], None] | None = None,
        on_correct: Callable[[], None] | None = None,
        on_incorrect: Callable[[int], None] | None = None,
        on_exhausted: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state = new_round(target_title, target_artist, difficulty)
        self._clock = clock
        self._next_tick_at: float | None = None
        self._closed = False
        self._on_start_audio = on_start_audio
        self._on_stop_audio = on_stop_audio
        self._on_tick = on_tick
        self._on_tick_expired = on_tick_expired
        self._on_correct = on_correct
        self._on_incorrect = on_incorrect
        self._on_exhausted = on_exhausted

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def config(self) -> RoundConfig:
        return self._state.config

    @property
    def tick_armed(self) -> bool:
        return self._next_tick_at is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def start_playback(self) -> Transition:
        transition = self._apply(start_playback(self._state))
        if Event.PLAYBACK_STARTED in transition.events:
            # Restarting replaces the pending tick rather than adding a second one.
            self._next_tick_at = self._clock() + 1.0
        return transition

    def stop_playback(self) -> Transition:
        return self._apply(stop_playback(self._state))

    def tick(self) -> Transition:
        """Apply one tick immediately, independent of the clock."""
        transition = self._apply(on_tick(self._state))
        if self._next_tick_at is not None:
            self._next_tick_at += 1.0
        return transition

    def poll(self, now: float | None = None) -> int:
        """Fire every tick that is due at ``now``; returns how many fired."""
        if self._next_tick_at is None:
            return 0

        now = self._clock() if now is None else now
        fired = 0
        while self._next_tick_at is not None and now >= self._next_tick_at:
            self.tick()
            fired += 1
        return fired

    def seconds_until_tick(self, now: float | None = None) -> float | None:
        if self._next_tick_at is None:
            return None
        now = self._clock() if now is None else now
        return max(0.0, self._next_tick_at - now)

    def submit_guess(self, raw_text: str) -> Outcome:
        transition = self._apply(submit_guess(self._state, raw_text))
        if transition.outcome is None:
            # Only reachable after close(); treat the discarded round as over.
            return Outcome.rejected(RejectReason.ROUND_OVER)
        return transition.outcome

    def give_up(self) -> Outcome:
        transition = self._apply(give_up(self._state))
        if transition.outcome is None:
            return Outcome.rejected(RejectReason.ROUND_OVER)
        return transition.outcome

    def close(self) -> None:
        """Discard the round: cancel the tick and silence audio if it is still playing."""
        if self._closed:
            return
        if self._state.is_playing and self._on_stop_audio:
            self._on_stop_audio()
        self._next_tick_at = None
        self._closed = True

    def _apply(self, transition: Transition) -> Transition:
        if self._closed:
            return Transition(self._state)

        self._state = transition.state
        if not self._state.is_playing:
            self._next_tick_at = None

        for event in transition.events:
            logger.debug("Round event %s (%s)", event.value, self._state.phase.value)
            self._dispatch(event)
        return transition

    def _dispatch(self, event: Event) -> None:
        state = self._state
        if event is Event.PLAYBACK_STARTED and self._on_start_audio:
            self._on_start_audio()
        elif event is Event.PLAYBACK_STOPPED and self._on_stop_audio:
            self._on_stop_audio()
        elif event is Event.TICK and self._on_tick:
            self._on_tick(state.time_remaining_seconds)
        elif event is Event.TICK_EXPIRED and self._on_tick_expired:
            self._on_tick_expired()
        elif event is Event.CORRECT and self._on_correct:
            self._on_correct()
        elif event is Event.INCORRECT and self._on_incorrect:
            self._on_incorrect(state.attempts_remaining)
        elif event is Event.EXHAUSTED and self._on_exhausted:
            self._on_exhausted()
