"""
Learner progress models.

SQLAlchemy models for per-learner spaced repetition state:
- Registered learners
- Memory state per (learner, card)

Timestamps are stored as naive UTC; the state store re-attaches UTC on load.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class LearnerRow(Base):
    """A learner known to the engine."""

    __tablename__ = "learners"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    memory_states: Mapped[list[MemoryStateRow]] = relationship(
        back_populates="learner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<LearnerRow {self.id}>"


class MemoryStateRow(Base):
    """FSRS memory state of one card for one learner."""

    __tablename__ = "memory_states"

    learner_id: Mapped[str] = mapped_column(
        ForeignKey("learners.id", ondelete="CASCADE"), primary_key=True
    )
    card_id: Mapped[str] = mapped_column(Text, primary_key=True)

    stability: Mapped[float] = mapped_column(Float, nullable=False)
    difficulty: Mapped[float] = mapped_column(Float, nullable=False)
    due: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    last_reviewed: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    phase: Mapped[str] = mapped_column(Text, nullable=False)

    learner: Mapped[LearnerRow] = relationship(back_populates="memory_states")

    __table_args__ = (Index("idx_memory_states_due", "learner_id", "due"),)

    def __repr__(self) -> str:
        return f"<MemoryStateRow learner={self.learner_id} card={self.card_id} phase={self.phase}>"
