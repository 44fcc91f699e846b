"""
Progress Tracker.

Decides which card a learner sees next and records review outcomes.

Gating rules:
- A node is unlocked when all its prerequisites are mastered
- Only cards of unlocked nodes are eligible
- A card is eligible if it was never reviewed or is due
- Eligible cards are ordered by (due, topological rank, card id), where an
  unreviewed card counts as due "now"

MemoryStates are keyed by (learner, card id) and outlive course updates: a
card that disappears from the deck keeps its history and resumes it if the
card comes back.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta

from loguru import logger

from course_engine.adaptive import mastery
from course_engine.content.card_store import Card
from course_engine.delivery.memory_state import MemoryState, Rating, as_utc, utcnow
from course_engine.delivery.scheduler import FSRSScheduler
from course_engine.delivery.state_store import InMemoryStateStore, StateStore
from course_engine.errors import UnknownCardError, UnknownLearnerError
from course_engine.versioning.coordinator import CourseSnapshot, VersionCoordinator


class ProgressTracker:
    """
    Per-learner card selection and review bookkeeping.

    Operations for the same learner are serialized; different learners
    proceed concurrently.
    """

    def __init__(
        self,
        coordinator: VersionCoordinator,
        store: StateStore | None = None,
        scheduler: FSRSScheduler | None = None,
        freshness: timedelta = timedelta(0),
    ):
        self.coordinator = coordinator
        self.store = store if store is not None else InMemoryStateStore()
        self.scheduler = scheduler or FSRSScheduler()
        self.freshness = freshness
        self._registry_lock = threading.Lock()
        self._learner_locks: dict[str, threading.Lock] = {}

    # =========================================================================
    # Learners
    # =========================================================================

    def register_learner(self, learner_id: str) -> bool:
        """Register a learner; returns False if they were already known."""
        with self._locked(learner_id):
            created = self.store.add_learner(learner_id)
        if created:
            logger.info(f"Registered learner {learner_id}")
        return created

    def forget_learner(self, learner_id: str) -> None:
        """Delete a learner together with all of their memory states."""
        with self._locked(learner_id):
            removed = self.store.remove_learner(learner_id)
        if not removed:
            raise UnknownLearnerError(learner_id)
        logger.info(f"Forgot learner {learner_id} and their review history")

    def has_learner(self, learner_id: str) -> bool:
        return self.store.has_learner(learner_id)

    def list_learners(self) -> list[str]:
        return self.store.list_learners()

    # =========================================================================
    # Card selection
    # =========================================================================

    def next_card(self, learner_id: str, now: datetime | None = None) -> Card | None:
        """
        The single most urgent eligible card, or None if nothing is eligible.

        Raises:
            UnknownLearnerError: learner is not registered
            NoActiveCourseError: no course has been accepted yet
        """
        now = as_utc(now) if now is not None else utcnow()
        with self._locked(learner_id):
            self._require_learner(learner_id)
            snapshot = self.coordinator.snapshot()
            states = self.store.load_states(learner_id)
            queue = self._eligible(snapshot, states, now)

        if not queue:
            logger.debug(f"No eligible card for {learner_id}")
            return None
        card = queue[0]
        logger.debug(f"Next card for {learner_id}: {card.id} (node {card.node_id})")
        return card

    def due_cards(self, learner_id: str, now: datetime | None = None) -> list[Card]:
        """Every eligible card in the order `next_card` would serve them."""
        now = as_utc(now) if now is not None else utcnow()
        with self._locked(learner_id):
            self._require_learner(learner_id)
            snapshot = self.coordinator.snapshot()
            states = self.store.load_states(learner_id)
            return self._eligible(snapshot, states, now)

    def _eligible(self, snapshot: CourseSnapshot, states: dict[str, MemoryState], now: datetime) -> list[Card]:
        graph, cards = snapshot.graph, snapshot.cards
        mastered = mastery.mastered_nodes(graph, cards, states, now, self.freshness)
        unlocked = mastery.unlocked_nodes(graph, mastered)

        candidates: list[tuple[datetime, int, str, Card]] = []
        for node_id in unlocked:
            rank = graph.topological_rank(node_id)
            for card in cards.cards_for(node_id):
                state = states.get(card.id)
                if state is None:
                    candidates.append((now, rank, card.id, card))
                elif state.is_due(now):
                    candidates.append((state.due, rank, card.id, card))

        candidates.sort(key=lambda item: item[:3])
        return [item[3] for item in candidates]

    # =========================================================================
    # Reviews
    # =========================================================================

    def submit_review(
        self,
        learner_id: str,
        card_id: str,
        rating: Rating | int | str,
        now: datetime | None = None,
    ) -> MemoryState:
        """
        Record a rating and store the rescheduled memory state.

        Raises:
            UnknownLearnerError: learner is not registered
            UnknownCardError: card is not in the active deck
            NoActiveCourseError: no course has been accepted yet
            ValueError: rating cannot be parsed
        """
        rating = Rating.parse(rating)
        now = as_utc(now) if now is not None else utcnow()
        with self._locked(learner_id):
            self._require_learner(learner_id)
            snapshot = self.coordinator.snapshot()
            if card_id not in snapshot.cards:
                logger.warning(f"Review for unknown card {card_id} from {learner_id}")
                raise UnknownCardError(card_id)

            previous = self.store.get_state(learner_id, card_id)
            state = self.scheduler.review(previous, rating, now, card_id=card_id)
            self.store.save_state(learner_id, state)

        logger.info(
            f"{learner_id} rated {card_id} {rating.name}: {state.phase.value}, "
            f"next due {state.due.isoformat()}"
        )
        return state

    # =========================================================================
    # Progress queries
    # =========================================================================

    def memory_state(self, learner_id: str, card_id: str) -> MemoryState | None:
        self._require_learner(learner_id)
        return self.store.get_state(learner_id, card_id)

    def memory_states(self, learner_id: str) -> dict[str, MemoryState]:
        self._require_learner(learner_id)
        return self.store.load_states(learner_id)

    def mastered_nodes(self, learner_id: str, now: datetime | None = None) -> frozenset[str]:
        return self._mastery(learner_id, self.coordinator.snapshot(), now)

    def blocking_prerequisites(
        self, learner_id: str, node_id: str, now: datetime | None = None, transitive: bool = False
    ) -> list[str]:
        """Unmastered prerequisites that keep `node_id` locked (empty when unlocked)."""
        snapshot = self.coordinator.snapshot()
        if node_id not in snapshot.graph:
            raise KeyError(node_id)
        mastered = self._mastery(learner_id, snapshot, now)
        return mastery.blocking_prerequisites(snapshot.graph, node_id, mastered, transitive=transitive)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _mastery(self, learner_id: str, snapshot: CourseSnapshot, now: datetime | None) -> frozenset[str]:
        now = as_utc(now) if now is not None else utcnow()
        self._require_learner(learner_id)
        states = self.store.load_states(learner_id)
        return mastery.mastered_nodes(snapshot.graph, snapshot.cards, states, now, self.freshness)

    def _require_learner(self, learner_id: str) -> None:
        if not self.store.has_learner(learner_id):
            raise UnknownLearnerError(learner_id)

    @contextmanager
    def _locked(self, learner_id: str) -> Iterator[None]:
        # Entries are never dropped: a thread still waiting on a forgotten
        # learner's lock must serialize with any later re-registration.
        with self._registry_lock:
            lock = self._learner_locks.setdefault(learner_id, threading.Lock())
        with lock:
            yield
