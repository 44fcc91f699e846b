"""
State Store for learner progress.

Provides persistence for:
- Registered learners
- FSRS memory state per (learner, card)

Two implementations share one interface: an in-memory store for tests and
ephemeral bots, and a SQLAlchemy store for durable deployments. Both return
MemoryStates whose floats and timestamps round-trip exactly.
"""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from typing import Protocol

from loguru import logger
from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from course_engine.db.database import init_db, make_session_factory, session_scope
from course_engine.db.models import LearnerRow, MemoryStateRow
from course_engine.delivery.memory_state import MemoryState, Phase, as_utc

# =============================================================================
# Interface
# =============================================================================


class StateStore(Protocol):
    """Storage of learners and their per-card memory states."""

    def add_learner(self, learner_id: str) -> bool: ...

    def has_learner(self, learner_id: str) -> bool: ...

    def remove_learner(self, learner_id: str) -> bool: ...

    def list_learners(self) -> list[str]: ...

    def load_states(self, learner_id: str) -> dict[str, MemoryState]: ...

    def get_state(self, learner_id: str, card_id: str) -> MemoryState | None: ...

    def save_state(self, learner_id: str, state: MemoryState) -> None: ...


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryStateStore:
    """Dictionary-backed state store (MemoryState is immutable, so no copies needed)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._states: dict[str, dict[str, MemoryState]] = {}

    def add_learner(self, learner_id: str) -> bool:
        with self._lock:
            if learner_id in self._states:
                return False
            self._states[learner_id] = {}
            return True

    def has_learner(self, learner_id: str) -> bool:
        with self._lock:
            return learner_id in self._states

    def remove_learner(self, learner_id: str) -> bool:
        with self._lock:
            return self._states.pop(learner_id, None) is not None

    def list_learners(self) -> list[str]:
        with self._lock:
            return sorted(self._states)

    def load_states(self, learner_id: str) -> dict[str, MemoryState]:
        with self._lock:
            return dict(self._states.get(learner_id, {}))

    def get_state(self, learner_id: str, card_id: str) -> MemoryState | None:
        with self._lock:
            return self._states.get(learner_id, {}).get(card_id)

    def save_state(self, learner_id: str, state: MemoryState) -> None:
        with self._lock:
            self._states.setdefault(learner_id, {})[state.card_id] = state


# =============================================================================
# SQLAlchemy store
# =============================================================================


class SqlStateStore:
    """
    SQLAlchemy-backed state persistence.

    Handles:
    - learner registration and deletion (with all their history)
    - one memory_states row per (learner, card), upserted on every review
    """

    def __init__(self, engine: Engine, create_tables: bool = True):
        self._engine = engine
        self._sessions: sessionmaker[Session] = make_session_factory(engine)
        if create_tables:
            init_db(engine)
        logger.info(f"SqlStateStore initialized at {engine.url.render_as_string(hide_password=True)}")

    def add_learner(self, learner_id: str) -> bool:
        with session_scope(self._sessions) as session:
            if session.get(LearnerRow, learner_id) is not None:
                return False
            session.add(LearnerRow(id=learner_id, created_at=_to_db(datetime.now(UTC))))
            return True

    def has_learner(self, learner_id: str) -> bool:
        with session_scope(self._sessions) as session:
            return session.get(LearnerRow, learner_id) is not None

    def remove_learner(self, learner_id: str) -> bool:
        with session_scope(self._sessions) as session:
            session.execute(delete(MemoryStateRow).where(MemoryStateRow.learner_id == learner_id))
            result = session.execute(delete(LearnerRow).where(LearnerRow.id == learner_id))
            return result.rowcount > 0

    def list_learners(self) -> list[str]:
        with session_scope(self._sessions) as session:
            return list(session.scalars(select(LearnerRow.id).order_by(LearnerRow.id)))

    def load_states(self, learner_id: str) -> dict[str, MemoryState]:
        with session_scope(self._sessions) as session:
            rows = session.scalars(select(MemoryStateRow).where(MemoryStateRow.learner_id == learner_id))
            return {row.card_id: _from_row(row) for row in rows}

    def get_state(self, learner_id: str, card_id: str) -> MemoryState | None:
        with session_scope(self._sessions) as session:
            row = session.get(MemoryStateRow, (learner_id, card_id))
            return _from_row(row) if row is not None else None

    def save_state(self, learner_id: str, state: MemoryState) -> None:
        with session_scope(self._sessions) as session:
            row = session.get(MemoryStateRow, (learner_id, state.card_id))
            if row is None:
                row = MemoryStateRow(learner_id=learner_id, card_id=state.card_id)
                session.add(row)
            row.stability = state.stability
            row.difficulty = state.difficulty
            row.due = _to_db(state.due)
            row.last_reviewed = _to_db(state.last_reviewed)
            row.repetitions = state.repetitions
            row.lapses = state.lapses
            row.phase = state.phase.value


def _to_db(moment: datetime) -> datetime:
    return as_utc(moment).replace(tzinfo=None)


def _from_db(moment: datetime) -> datetime:
    return moment.replace(tzinfo=UTC)


def _from_row(row: MemoryStateRow) -> MemoryState:
    return MemoryState(
        card_id=row.card_id,
        stability=float(row.stability),
        difficulty=float(row.difficulty),
        due=_from_db(row.due),
        last_reviewed=_from_db(row.last_reviewed),
        repetitions=int(row.repetitions),
        lapses=int(row.lapses),
        phase=Phase(row.phase),
    )
