"""
FSRS Spaced Repetition Scheduler.

Implements the FSRS-4.5 memory model:
- Initial stability/difficulty from a rating-indexed table
- Difficulty update with mean reversion towards the Easy-rating default
- Stability growth after recall, sharp reset after a lapse
- Power forgetting curve: R(t, S) = (1 + FACTOR * t / S) ^ DECAY
- Interval = time at which R falls to the desired retention

Rating Scale:
1 - Again: recall failed
2 - Hard: recalled with serious difficulty
3 - Good: recalled after some hesitation
4 - Easy: recalled effortlessly

Everything here is pure: identical inputs and parameters always produce
bit-identical MemoryStates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from loguru import logger

from config import FSRS_DEFAULT_WEIGHTS
from course_engine.delivery.memory_state import (
    MemoryState,
    Phase,
    Rating,
    as_utc,
    is_lapse,
    next_phase,
)

if TYPE_CHECKING:
    from config import Settings

DECAY = -0.5
FACTOR = 19 / 81  # 0.9 ** (1 / DECAY) - 1, so that R(S, S) == 0.9

# =============================================================================
# FSRS Algorithm
# =============================================================================


@dataclass(frozen=True)
class SchedulerConfig:
    """Configuration for the FSRS scheduler."""

    weights: tuple[float, ...] = FSRS_DEFAULT_WEIGHTS
    desired_retention: float = 0.85
    minimum_interval: timedelta = timedelta(minutes=1)
    maximum_interval: timedelta = timedelta(days=36500)
    first_exposure: tuple[timedelta, ...] = field(
        default_factory=lambda: (
            timedelta(minutes=1),
            timedelta(minutes=5),
            timedelta(minutes=10),
            timedelta(minutes=30),
        )
    )
    difficulty_min: float = 1.0
    difficulty_max: float = 10.0
    stability_min: float = 0.01
    lapse_ceiling: float = 0.95

    @classmethod
    def from_settings(cls, settings: Settings) -> SchedulerConfig:
        return cls(
            weights=tuple(settings.fsrs_weights),
            desired_retention=settings.fsrs_desired_retention,
            minimum_interval=timedelta(minutes=settings.fsrs_minimum_interval_minutes),
            maximum_interval=timedelta(days=settings.fsrs_maximum_interval_days),
            first_exposure=tuple(timedelta(minutes=m) for m in settings.fsrs_first_exposure_minutes),
            lapse_ceiling=settings.fsrs_lapse_ceiling,
        )


class FSRSScheduler:
    """
    Implements the FSRS-4.5 spaced repetition algorithm.

    Each card carries:
    - Stability: how slowly the memory decays (days)
    - Difficulty: how hard the card is (1-10)
    - Phase: where the card is in the learning state machine
    """

    def __init__(self, config: SchedulerConfig | None = None):
        """
        Initialize FSRS scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
        """
        self.config = config or SchedulerConfig()
        self._w = self.config.weights

    # -------------------------------------------------------------------------
    # Forgetting curve
    # -------------------------------------------------------------------------

    @staticmethod
    def forgetting_curve(elapsed_days: float, stability: float) -> float:
        """Retrievability after `elapsed_days` for a memory of the given stability."""
        return (1 + FACTOR * elapsed_days / stability) ** DECAY

    def retrievability(self, state: MemoryState, now: datetime) -> float:
        """Probability of recalling the card at `now`."""
        return self.forgetting_curve(state.elapsed_days(now), state.stability)

    def next_interval(self, stability: float) -> timedelta:
        """Elapsed time at which retrievability falls to the desired retention."""
        days = stability / FACTOR * (self.config.desired_retention ** (1 / DECAY) - 1)
        # Clamp as a float first: huge stabilities would overflow timedelta.
        days = min(days, self.config.maximum_interval / timedelta(days=1))
        return max(timedelta(days=days), self.config.minimum_interval)

    # -------------------------------------------------------------------------
    # Memory model
    # -------------------------------------------------------------------------

    def initial_stability(self, rating: Rating) -> float:
        return max(self._w[rating - 1], 0.1)

    def initial_difficulty(self, rating: Rating) -> float:
        return self._clamp_difficulty(self._w[4] - self._w[5] * (rating - 3))

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """Harder ratings raise difficulty, easier ones lower it, with mean reversion."""
        raw = difficulty - self._w[6] * (rating - 3)
        reverted = self._w[7] * self.initial_difficulty(Rating.EASY) + (1 - self._w[7]) * raw
        return self._clamp_difficulty(reverted)

    def recall_stability(self, difficulty: float, stability: float, retrievability: float, rating: Rating) -> float:
        """Stability after a successful recall (Hard, Good or Easy)."""
        hard_penalty = self._w[15] if rating is Rating.HARD else 1.0
        easy_bonus = self._w[16] if rating is Rating.EASY else 1.0
        growth = (
            math.exp(self._w[8])
            * (11 - difficulty)
            * stability ** -self._w[9]
            * (math.exp((1 - retrievability) * self._w[10]) - 1)
            * hard_penalty
            * easy_bonus
        )
        return stability * (1 + growth)

    def forget_stability(self, difficulty: float, stability: float, retrievability: float) -> float:
        """
        Stability after a failed recall.

        Capped at `lapse_ceiling` times the previous stability, so a lapse
        always loses stability even after a long gap, where the raw formula
        can exceed S. Both terms are positive products, so the result is
        never floored upwards.
        """
        forgotten = (
            self._w[11]
            * difficulty ** -self._w[12]
            * ((stability + 1) ** self._w[13] - 1)
            * math.exp((1 - retrievability) * self._w[14])
        )
        return min(forgotten, stability * self.config.lapse_ceiling)

    # -------------------------------------------------------------------------
    # Review
    # -------------------------------------------------------------------------

    def review(self, state: MemoryState | None, rating: Rating, now: datetime, card_id: str | None = None) -> MemoryState:
        """
        Apply one rating to a card's memory state.

        Args:
            state: Current state, or None on first exposure
            rating: Learner's rating
            now: Review timestamp
            card_id: Required when `state` is None

        Returns:
            New MemoryState (the input is never mutated)
        """
        rating = Rating(rating)
        now = as_utc(now)

        if state is None:
            if card_id is None:
                raise ValueError("card_id is required for a first review")
            new_state = MemoryState(
                card_id=card_id,
                stability=self._clamp_stability(self.initial_stability(rating)),
                difficulty=self.initial_difficulty(rating),
                due=now + self.config.first_exposure[rating - 1],
                last_reviewed=now,
                repetitions=1,
                lapses=0,
                phase=next_phase(Phase.NEW, rating),
            )
            logger.debug(f"First review of {card_id}: {rating.name} -> S={new_state.stability:.4f}")
            return new_state

        r = self.retrievability(state, now)
        difficulty = self.next_difficulty(state.difficulty, rating)
        if rating is Rating.AGAIN:
            stability = self.forget_stability(state.difficulty, state.stability, r)
        else:
            stability = self._clamp_stability(
                self.recall_stability(state.difficulty, state.stability, r, rating)
            )

        new_state = MemoryState(
            card_id=state.card_id,
            stability=stability,
            difficulty=difficulty,
            due=now + self.next_interval(stability),
            last_reviewed=now,
            repetitions=state.repetitions + 1,
            lapses=state.lapses + (1 if is_lapse(state.phase, rating) else 0),
            phase=next_phase(state.phase, rating),
        )
        logger.debug(
            f"Review of {state.card_id}: {rating.name} at R={r:.4f}, "
            f"S {state.stability:.4f} -> {stability:.4f}, {state.phase.value} -> {new_state.phase.value}"
        )
        return new_state

    def _clamp_difficulty(self, value: float) -> float:
        return min(max(value, self.config.difficulty_min), self.config.difficulty_max)

    def _clamp_stability(self, value: float) -> float:
        return max(value, self.config.stability_min)
