"""
Memory State - per-learner, per-card scheduling state.

Key concepts:
- Stability (S): days until retrievability falls to 90%
- Difficulty (D): intrinsic hardness of the card (1-10 scale)
- Retrievability (R): probability of recall after t days
- Phase: New -> Learning -> Review, with Review -> Relearning -> Review on a lapse
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum, IntEnum


class Rating(IntEnum):
    """Learner's self-reported recall quality."""

    AGAIN = 1  # Retrieval failed
    HARD = 2  # Retrieved with high effort
    GOOD = 3  # Retrieved normally
    EASY = 4  # Retrieved fluently

    @classmethod
    def parse(cls, value: str | int | Rating) -> Rating:
        """Accept a Rating, its integer value or its (case-insensitive) name."""
        if isinstance(value, Rating):
            return value
        if isinstance(value, int):
            return cls(value)
        text = value.strip()
        if text.isdigit():
            return cls(int(text))
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown rating '{value}' (expected one of: again, hard, good, easy)") from None


class Phase(str, Enum):
    """Learning phase of a card for one learner."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


def next_phase(phase: Phase, rating: Rating) -> Phase:
    """Pure phase transition for one review."""
    if phase is Phase.NEW:
        return Phase.LEARNING
    if phase is Phase.REVIEW:
        return Phase.RELEARNING if rating is Rating.AGAIN else Phase.REVIEW
    # Learning and relearning graduate on a successful, confident recall.
    if rating in (Rating.GOOD, Rating.EASY):
        return Phase.REVIEW
    return phase


def is_lapse(phase: Phase, rating: Rating) -> bool:
    """Forgetting a card that had graduated to review."""
    return phase is Phase.REVIEW and rating is Rating.AGAIN


def as_utc(moment: datetime) -> datetime:
    """Normalise timestamps to aware UTC (naive values are taken as UTC)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class MemoryState:
    """Scheduling state of one card for one learner."""

    card_id: str
    stability: float
    difficulty: float
    due: datetime
    last_reviewed: datetime
    repetitions: int
    lapses: int
    phase: Phase

    def is_due(self, now: datetime) -> bool:
        """Check if this card is due for review."""
        return self.due <= as_utc(now)

    def elapsed_days(self, now: datetime) -> float:
        """Days since the last review (never negative)."""
        seconds = (as_utc(now) - self.last_reviewed).total_seconds()
        return max(0.0, seconds / 86400.0)
