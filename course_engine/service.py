"""
Course Engine service.

Wires the version coordinator, the progress tracker and the visualization
builder together from settings. This is the surface a bot dispatcher or
the CLI talks to.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import Engine

from config import Settings, get_settings
from course_engine.adaptive.progress_tracker import ProgressTracker
from course_engine.content.card_store import Card
from course_engine.db.database import create_db_engine, init_db
from course_engine.delivery.memory_state import MemoryState, Rating
from course_engine.delivery.scheduler import FSRSScheduler, SchedulerConfig
from course_engine.delivery.state_store import InMemoryStateStore, SqlStateStore
from course_engine.errors import ValidationError
from course_engine.graph.visualization import NodeCategory, VisualizationDataBuilder
from course_engine.versioning.coordinator import (
    CardInput,
    CourseVersion,
    NodeInput,
    PendingUpdate,
    VersionCoordinator,
)
from course_engine.versioning.repository import CourseRepository


class CourseEngine:
    """Facade over course versioning, learner progress and visualization."""

    def __init__(
        self,
        coordinator: VersionCoordinator,
        tracker: ProgressTracker,
        visualization: VisualizationDataBuilder | None = None,
    ):
        self.coordinator = coordinator
        self.tracker = tracker
        self.visualization = visualization or VisualizationDataBuilder(tracker)

    @classmethod
    def from_settings(cls, settings: Settings | None = None, engine: Engine | None = None) -> CourseEngine:
        """Persistent engine backed by the configured database."""
        settings = settings or get_settings()
        engine = engine or create_db_engine(settings.database_url)
        init_db(engine)
        coordinator = VersionCoordinator(
            allow_empty_nodes=settings.allow_empty_nodes,
            repository=CourseRepository(engine, create_tables=False),
        )
        tracker = ProgressTracker(
            coordinator,
            store=SqlStateStore(engine, create_tables=False),
            scheduler=FSRSScheduler(SchedulerConfig.from_settings(settings)),
            freshness=timedelta(hours=settings.mastery_freshness_hours),
        )
        logger.debug(f"Course engine ready (active version: {coordinator.active_version()})")
        return cls(coordinator, tracker)

    @classmethod
    def in_memory(cls, settings: Settings | None = None) -> CourseEngine:
        """Engine without persistence, for tests and ephemeral sessions."""
        settings = settings or get_settings()
        coordinator = VersionCoordinator(allow_empty_nodes=settings.allow_empty_nodes)
        tracker = ProgressTracker(
            coordinator,
            store=InMemoryStateStore(),
            scheduler=FSRSScheduler(SchedulerConfig.from_settings(settings)),
            freshness=timedelta(hours=settings.mastery_freshness_hours),
        )
        return cls(coordinator, tracker)

    # =========================================================================
    # Course updates
    # =========================================================================

    def propose_update(self, graph_records: NodeInput, card_records: CardInput) -> CourseVersion:
        return self.coordinator.propose_update(graph_records, card_records)

    def active_errors(self) -> list[ValidationError]:
        return self.coordinator.active_errors()

    def check_update(self, graph_records: NodeInput, card_records: CardInput) -> list[ValidationError]:
        return self.coordinator.check(graph_records, card_records)

    def stage_graph(self, graph_records: NodeInput) -> PendingUpdate:
        return self.coordinator.stage_graph(graph_records)

    def stage_deck(self, card_records: CardInput) -> PendingUpdate:
        return self.coordinator.stage_deck(card_records)

    def confirm_update(self) -> CourseVersion:
        return self.coordinator.confirm()

    # =========================================================================
    # Learners
    # =========================================================================

    def register_learner(self, learner_id: str) -> bool:
        return self.tracker.register_learner(learner_id)

    def forget_learner(self, learner_id: str) -> None:
        self.tracker.forget_learner(learner_id)

    def next_card(self, learner_id: str, now: datetime | None = None) -> Card | None:
        return self.tracker.next_card(learner_id, now)

    def submit_review(
        self,
        learner_id: str,
        card_id: str,
        rating: Rating | int | str,
        now: datetime | None = None,
    ) -> MemoryState:
        return self.tracker.submit_review(learner_id, card_id, rating, now)

    def node_colors(self, learner_id: str, now: datetime | None = None) -> dict[str, NodeCategory]:
        return self.visualization.node_colors(learner_id, now)

    def graph_dot(self, learner_id: str, now: datetime | None = None) -> str:
        return self.visualization.to_dot(learner_id, now)
