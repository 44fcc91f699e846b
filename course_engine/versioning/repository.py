"""
Course Repository.

Persists accepted course versions so the active (graph, deck) pair survives a
restart. Only the records are stored; the graph and deck are rebuilt (and
therefore re-validated) on load.
"""

from __future__ import annotations

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import Engine, select, update
from sqlalchemy.orm import Session, sessionmaker

from course_engine.content.records import CardRecord, NodeRecord, load_card_records, load_node_records
from course_engine.db.database import init_db, make_session_factory, session_scope
from course_engine.db.models import CourseVersionRow


class CourseRepository:
    """SQLAlchemy storage of the active course version."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self._sessions: sessionmaker[Session] = make_session_factory(engine)
        if create_tables:
            init_db(engine)

    def save_active(
        self,
        graph_fingerprint: str,
        deck_fingerprint: str,
        graph_records: list[NodeRecord],
        deck_records: list[CardRecord],
    ) -> int:
        """Store a newly accepted version and mark it as the only active one."""
        with session_scope(self._sessions) as session:
            session.execute(update(CourseVersionRow).where(CourseVersionRow.is_active.is_(True)).values(is_active=False))
            row = CourseVersionRow(
                graph_fingerprint=graph_fingerprint,
                deck_fingerprint=deck_fingerprint,
                graph_records=[record.model_dump() for record in graph_records],
                deck_records=[record.model_dump() for record in deck_records],
                is_active=True,
                activated_at=datetime.now(UTC).replace(tzinfo=None),
            )
            session.add(row)
            session.flush()
            logger.debug(f"Stored course version {row.id} (graph={graph_fingerprint[:8]}, deck={deck_fingerprint[:8]})")
            return row.id

    def load_active(self) -> tuple[list[NodeRecord], list[CardRecord]] | None:
        """Records of the active version, or None if nothing was ever accepted."""
        with session_scope(self._sessions) as session:
            row = session.scalars(
                select(CourseVersionRow)
                .where(CourseVersionRow.is_active.is_(True))
                .order_by(CourseVersionRow.id.desc())
                .limit(1)
            ).first()
            if row is None:
                return None
            return load_node_records(row.graph_records), load_card_records(row.deck_records)

    def version_count(self) -> int:
        with session_scope(self._sessions) as session:
            return len(session.scalars(select(CourseVersionRow.id)).all())
