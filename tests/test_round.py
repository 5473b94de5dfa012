import unittest
from unittest import mock

from song_guesser.round import (
    Difficulty,
    Event,
    GuessEvaluator,
    OutcomeKind,
    Phase,
    RejectReason,
    RoundConfig,
    give_up,
    new_round,
    on_tick,
    start_playback,
    stop_playback,
    submit_guess,
)


class FakeClock:

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRoundConfig(unittest.TestCase):

    def test_presets(self):
        expected = {
            "easy": (20, 3, 1),
            "medium": (10, 2, 2),
            "hard": (5, 1, 3),
        }
        for name, (window, attempts, multiplier) in expected.items():
            config = RoundConfig.for_difficulty(name)
            self.assertEqual(config.playback_window_seconds, window)
            self.assertEqual(config.max_attempts, attempts)
            self.assertEqual(config.score_multiplier, multiplier)

    def test_parse_is_case_insensitive(self):
        self.assertIs(Difficulty.parse(" Hard "), Difficulty.HARD)
        self.assertIs(Difficulty.parse(Difficulty.MEDIUM), Difficulty.MEDIUM)

    def test_unknown_difficulty(self):
        with self.assertRaises(ValueError):
            RoundConfig.for_difficulty("nightmare")


class TestTransitions(unittest.TestCase):

    def test_new_round_is_idle_with_full_budget(self):
        state = new_round("Shape of You", "Ed Sheeran", "easy")
        self.assertIs(state.phase, Phase.IDLE)
        self.assertEqual(state.attempts_remaining, 3)
        self.assertEqual(state.time_remaining_seconds, 20)

    def test_start_playback_resets_clock_and_signals(self):
        state = new_round("Song", "Artist", "medium")
        playing = start_playback(state).state
        playing = on_tick(on_tick(playing).state).state
        self.assertEqual(playing.time_remaining_seconds, 8)

        restarted = start_playback(playing)
        self.assertIs(restarted.state.phase, Phase.PLAYING)
        self.assertEqual(restarted.state.time_remaining_seconds, 10)
        self.assertEqual(restarted.events, (Event.PLAYBACK_STARTED,))

    def test_tick_only_counts_down_while_playing(self):
        state = new_round("Song", "Artist", "easy")
        transition = on_tick(state)
        self.assertEqual(transition.state, state)
        self.assertEqual(transition.events, ())

    def test_countdown_expiry_returns_to_idle_without_using_attempts(self):
        state = start_playback(new_round("Song", "Artist", "easy")).state
        events = []
        for _ in range(19):
            transition = on_tick(state)
            state = transition.state
            events.extend(transition.events)
            self.assertIs(state.phase, Phase.PLAYING)
        self.assertEqual(state.time_remaining_seconds, 1)
        self.assertEqual(events, [Event.TICK] * 19)

        final = on_tick(state)
        self.assertIs(final.state.phase, Phase.IDLE)
        self.assertEqual(final.state.time_remaining_seconds, 20)
        self.assertEqual(final.state.attempts_remaining, 3)
        self.assertEqual(final.events, (Event.TICK_EXPIRED, Event.PLAYBACK_STOPPED))
        self.assertNotIn(Event.EXHAUSTED, final.events)

    def test_manual_stop(self):
        state = start_playback(new_round("Song", "Artist", "hard")).state
        state = on_tick(state).state
        stopped = stop_playback(state)
        self.assertIs(stopped.state.phase, Phase.IDLE)
        self.assertEqual(stopped.state.time_remaining_seconds, 5)
        self.assertEqual(stopped.events, (Event.PLAYBACK_STOPPED,))

        again = stop_playback(stopped.state)
        self.assertEqual(again.events, ())

    def test_empty_guess_is_rejected_without_state_change(self):
        state = new_round("Song", "Artist", "easy")
        for blank in ("", "   ", "\t\n"):
            transition = submit_guess(state, blank)
            self.assertEqual(transition.state, state)
            self.assertIs(transition.outcome.kind, OutcomeKind.REJECTED)
            self.assertIs(transition.outcome.reason, RejectReason.EMPTY_INPUT)

    def test_correct_guess_reveals_and_stops_playback(self):
        state = start_playback(new_round("Shape of You", "Ed Sheeran", "easy")).state
        state = on_tick(on_tick(state).state).state

        transition = submit_guess(state, "shape of you")
        self.assertIs(transition.outcome.kind, OutcomeKind.CORRECT)
        self.assertEqual(transition.outcome.time_remaining_at_guess, 18)
        self.assertIs(transition.state.phase, Phase.REVEALED)
        self.assertEqual(transition.events, (Event.PLAYBACK_STOPPED, Event.CORRECT))

    def test_correct_guess_while_idle_has_no_stop_event(self):
        state = new_round("Shape of You", "Ed Sheeran", "easy")
        transition = submit_guess(state, "Shape Of You")
        self.assertEqual(transition.events, (Event.CORRECT,))
        self.assertEqual(transition.outcome.time_remaining_at_guess, 0)

    def test_guess_after_expiry_earns_no_time(self):
        state = start_playback(new_round("Song", "Artist", "hard")).state
        for _ in range(5):
            state = on_tick(state).state
        self.assertIs(state.phase, Phase.IDLE)
        self.assertEqual(state.time_remaining_seconds, 5)
        self.assertEqual(submit_guess(state, "song").outcome.time_remaining_at_guess, 0)

    def test_hard_round_exhausts_on_first_miss(self):
        state = new_round("Shape of You", "Ed Sheeran", "hard")
        self.assertEqual(state.attempts_remaining, 1)

        transition = submit_guess(state, "completely different")
        self.assertIs(transition.outcome.kind, OutcomeKind.EXHAUSTED)
        self.assertIs(transition.state.phase, Phase.REVEALED)
        self.assertEqual(transition.state.attempts_remaining, 0)
        self.assertEqual(transition.events, (Event.EXHAUSTED,))

    def test_easy_round_needs_three_misses(self):
        state = start_playback(new_round("Shape of You", "Ed Sheeran", "easy")).state

        first = submit_guess(state, "wrong one")
        self.assertIs(first.outcome.kind, OutcomeKind.INCORRECT)
        self.assertEqual(first.outcome.attempts_remaining, 2)

        second = submit_guess(first.state, "wrong two")
        self.assertEqual(second.state.attempts_remaining, 1)
        self.assertIs(second.state.phase, Phase.PLAYING)
        self.assertEqual(second.events, (Event.INCORRECT,))

        third = submit_guess(second.state, "wrong three")
        self.assertIs(third.outcome.kind, OutcomeKind.EXHAUSTED)
        self.assertIs(third.state.phase, Phase.REVEALED)
        self.assertEqual(third.events, (Event.PLAYBACK_STOPPED, Event.EXHAUSTED))

    def test_incorrect_guess_keeps_running_clock(self):
        state = start_playback(new_round("Song", "Artist", "medium")).state
        state = on_tick(state).state
        transition = submit_guess(state, "nope")
        self.assertEqual(transition.state.time_remaining_seconds, 9)
        self.assertIs(transition.state.phase, Phase.PLAYING)

    def test_finished_round_rejects_guesses(self):
        state = submit_guess(new_round("Song", "Artist", "hard"), "nope").state
        transition = submit_guess(state, "song")
        self.assertIs(transition.outcome.reason, RejectReason.ROUND_OVER)
        self.assertEqual(transition.state, state)
        self.assertEqual(start_playback(state).state, state)

    def test_give_up_with_full_budget(self):
        state = new_round("Song", "Artist", "easy")
        transition = give_up(state)
        self.assertIs(transition.outcome.kind, OutcomeKind.EXHAUSTED)
        self.assertIs(transition.state.phase, Phase.REVEALED)
        self.assertEqual(transition.state.attempts_remaining, 0)

    def test_give_up_twice(self):
        state = give_up(new_round("Song", "Artist", "easy")).state
        self.assertIs(give_up(state).outcome.reason, RejectReason.ROUND_OVER)

    def test_target_never_changes(self):
        state = new_round("Song", "Artist", "easy")
        for transition in (start_playback(state), submit_guess(state, "x"), give_up(state)):
            self.assertEqual(transition.state.target_title, "Song")
            self.assertEqual(transition.state.target_artist, "Artist")


class TestGuessEvaluator(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.callbacks = {
            name: mock.Mock(name=name)
            for name in (
                "on_start_audio",
                "on_stop_audio",
                "on_tick",
                "on_tick_expired",
                "on_correct",
                "on_incorrect",
                "on_exhausted",
            )
        }

    def make(self, difficulty="easy", title="Shape of You"):
        return GuessEvaluator(title, "Ed Sheeran", difficulty, clock=self.clock, **self.callbacks)

    def test_start_arms_single_tick(self):
        evaluator = self.make()
        self.assertFalse(evaluator.tick_armed)
        evaluator.start_playback()
        self.assertTrue(evaluator.tick_armed)
        self.callbacks["on_start_audio"].assert_called_once_with()
        self.assertEqual(evaluator.seconds_until_tick(), 1.0)

        self.clock.now += 0.5
        evaluator.start_playback()
        self.assertEqual(evaluator.seconds_until_tick(), 1.0)
        self.assertEqual(evaluator.state.time_remaining_seconds, 20)

    def test_poll_fires_elapsed_ticks(self):
        evaluator = self.make()
        evaluator.start_playback()

        self.assertEqual(evaluator.poll(), 0)
        self.clock.now += 3.2
        self.assertEqual(evaluator.poll(), 3)
        self.assertEqual(evaluator.state.time_remaining_seconds, 17)
        self.assertEqual(self.callbacks["on_tick"].call_args_list, [mock.call(19), mock.call(18), mock.call(17)])

    def test_expiry_disarms_tick_and_stops_audio(self):
        evaluator = self.make()
        evaluator.start_playback()
        self.clock.now += 60
        self.assertEqual(evaluator.poll(), 20)

        self.assertIs(evaluator.state.phase, Phase.IDLE)
        self.assertEqual(evaluator.state.time_remaining_seconds, 20)
        self.assertEqual(evaluator.state.attempts_remaining, 3)
        self.assertFalse(evaluator.tick_armed)
        self.callbacks["on_tick_expired"].assert_called_once_with()
        self.callbacks["on_stop_audio"].assert_called_once_with()
        self.callbacks["on_exhausted"].assert_not_called()

    def test_manual_stop_disarms_tick(self):
        evaluator = self.make()
        evaluator.start_playback()
        evaluator.stop_playback()
        self.assertFalse(evaluator.tick_armed)
        self.clock.now += 5
        self.assertEqual(evaluator.poll(), 0)
        self.callbacks["on_tick_expired"].assert_not_called()

    def test_incorrect_then_correct(self):
        evaluator = self.make()
        evaluator.start_playback()

        outcome = evaluator.submit_guess("thinking out loud")
        self.assertIs(outcome.kind, OutcomeKind.INCORRECT)
        self.callbacks["on_incorrect"].assert_called_once_with(2)
        self.assertTrue(evaluator.tick_armed)

        outcome = evaluator.submit_guess("Shape of You")
        self.assertIs(outcome.kind, OutcomeKind.CORRECT)
        self.callbacks["on_correct"].assert_called_once_with()
        self.callbacks["on_stop_audio"].assert_called_once_with()
        self.assertFalse(evaluator.tick_armed)

    def test_exhausted_callback(self):
        evaluator = self.make("hard")
        outcome = evaluator.submit_guess("nope")
        self.assertIs(outcome.kind, OutcomeKind.EXHAUSTED)
        self.callbacks["on_exhausted"].assert_called_once_with()
        self.callbacks["on_incorrect"].assert_not_called()

    def test_give_up_while_playing(self):
        evaluator = self.make()
        evaluator.start_playback()
        outcome = evaluator.give_up()
        self.assertIs(outcome.kind, OutcomeKind.EXHAUSTED)
        self.assertFalse(evaluator.tick_armed)
        self.callbacks["on_stop_audio"].assert_called_once_with()
        self.callbacks["on_exhausted"].assert_called_once_with()

    def test_empty_guess_consumes_nothing(self):
        evaluator = self.make()
        outcome = evaluator.submit_guess("  ")
        self.assertIs(outcome.reason, RejectReason.EMPTY_INPUT)
        self.assertEqual(evaluator.state.attempts_remaining, 3)
        self.callbacks["on_incorrect"].assert_not_called()

    def test_close_cancels_tick_and_ignores_later_calls(self):
        evaluator = self.make()
        evaluator.start_playback()
        evaluator.close()

        self.assertTrue(evaluator.closed)
        self.assertFalse(evaluator.tick_armed)
        self.callbacks["on_stop_audio"].assert_called_once_with()

        self.clock.now += 30
        self.assertEqual(evaluator.poll(), 0)
        self.assertIs(evaluator.submit_guess("Shape of You").reason, RejectReason.ROUND_OVER)
        evaluator.start_playback()
        self.assertFalse(evaluator.tick_armed)
        self.callbacks["on_correct"].assert_not_called()
        self.assertEqual(self.callbacks["on_start_audio"].call_count, 1)

    def test_callbacks_are_optional(self):
        evaluator = GuessEvaluator("Song", "Artist", "medium", clock=self.clock)
        evaluator.start_playback()
        self.clock.now += 11
        evaluator.poll()
        self.assertIs(evaluator.submit_guess("song").kind, OutcomeKind.CORRECT)


if __name__ == "__main__":
    unittest.main()
