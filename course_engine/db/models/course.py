"""
Course version models.

Each accepted (graph, deck) pair is stored with its fingerprints and the
records it was built from, so the active course survives restarts.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CourseVersionRow(Base):
    """An accepted, mutually consistent (graph, deck) snapshot."""

    __tablename__ = "course_versions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    graph_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    deck_fingerprint: Mapped[str] = mapped_column(Text, nullable=False)
    graph_records: Mapped[list] = mapped_column(JSON, nullable=False)
    deck_records: Mapped[list] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    activated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    __table_args__ = (Index("idx_course_versions_active", "is_active"),)

    def __repr__(self) -> str:
        return (
            f"<CourseVersionRow {self.id} graph={self.graph_fingerprint[:8]} "
            f"deck={self.deck_fingerprint[:8]} active={self.is_active}>"
        )
