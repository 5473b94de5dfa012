"""Round scoring and per-session streak bookkeeping."""

import math
from dataclasses import dataclass

from .config import BASE_SCORE, FLAT_TIME_BONUS_SECONDS, STREAK_BONUS, TIME_BONUS_PER_SECOND
from .round import Difficulty, RoundConfig


def calculate_score(time_remaining: float, difficulty: "str | Difficulty", streak: int) -> int:
    """Points for one correct answer: base + time bonus + streak bonus, scaled by difficulty."""
    multiplier = RoundConfig.for_difficulty(difficulty).score_multiplier
    time_bonus = math.floor(max(0.0, time_remaining) * TIME_BONUS_PER_SECOND)
    return (BASE_SCORE + time_bonus + max(0, streak) * STREAK_BONUS) * multiplier


@dataclass
class GameSession:
    difficulty: Difficulty = Difficulty.EASY
    live_time_bonus: bool = False
    current_streak: int = 0
    best_streak: int = 0
    session_score: int = 0
    total_score: int = 0
    questions_answered: int = 0
    correct_answers: int = 0
    misses: int = 0
    round_number: int = 1

    @property
    def accuracy_pct(self) -> float:
        if not self.questions_answered:
            return 0.0
        return round(self.correct_answers / self.questions_answered * 100, 2)

    def record_correct(self, time_remaining_at_guess: int | None = None) -> int:
        """Score a correct round with the streak as it stood before this answer."""
        if self.live_time_bonus and time_remaining_at_guess is not None:
            time_remaining = time_remaining_at_guess
        else:
            time_remaining = FLAT_TIME_BONUS_SECONDS

        points = calculate_score(time_remaining, self.difficulty, self.current_streak)
        self.correct_answers += 1
        self.questions_answered += 1
        self.round_number += 1
        self.current_streak += 1
        self.best_streak = max(self.best_streak, self.current_streak)
        self.session_score += points
        self.total_score += points
        return points

    def record_miss(self) -> None:
        self.questions_answered += 1
        self.misses += 1
        self.round_number += 1
        self.current_streak = 0

    def reset(self) -> None:
        """Start over within the same run; lifetime total is kept."""
        self.current_streak = 0
        self.session_score = 0
        self.questions_answered = 0
        self.correct_answers = 0
        self.misses = 0
        self.round_number = 1
