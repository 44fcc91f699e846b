"""
Version Coordinator.

Owns the single active (CourseGraph, CardStore) pair and replaces it
atomically. A proposal is validated as a whole: the graph first, then the
deck against that candidate graph. Only a fully valid pair is ever swapped
in; a rejected proposal leaves the active course untouched and its errors
are kept for `active_errors()`.

Readers take one `snapshot()` per operation and never observe a graph from
one version combined with a deck from another.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from loguru import logger

from course_engine.content.card_store import CardStore
from course_engine.content.records import CardRecord, NodeRecord, load_card_records, load_node_records
from course_engine.errors import (
    CourseValidationError,
    IncompleteUpdateError,
    NoActiveCourseError,
    ValidationError,
)
from course_engine.graph.course_graph import CourseGraph
from course_engine.versioning.repository import CourseRepository

NodeInput = Iterable[Mapping[str, Any] | NodeRecord]
CardInput = Iterable[Mapping[str, Any] | CardRecord]


@dataclass(frozen=True)
class CourseVersion:
    """Identity of an accepted (graph, deck) pair."""

    graph_fingerprint: str
    deck_fingerprint: str

    @property
    def short(self) -> str:
        return f"{self.graph_fingerprint[:8]}/{self.deck_fingerprint[:8]}"


@dataclass(frozen=True)
class CourseSnapshot:
    """An immutable, mutually consistent view of the active course."""

    version: CourseVersion
    graph: CourseGraph
    cards: CardStore


@dataclass(frozen=True)
class PendingUpdate:
    """What has been staged so far for a two-step update."""

    graph_staged: bool
    deck_staged: bool

    @property
    def complete(self) -> bool:
        return self.graph_staged and self.deck_staged


class VersionCoordinator:
    """
    Validates course proposals and swaps the active version.

    Writers are serialized by a lock; readers never take it. The active
    snapshot is a single attribute replaced in one assignment.
    """

    def __init__(self, allow_empty_nodes: bool = False, repository: CourseRepository | None = None):
        self.allow_empty_nodes = allow_empty_nodes
        self._repository = repository
        self._write_lock = threading.RLock()
        self._active: CourseSnapshot | None = None
        self._errors: list[ValidationError] = []
        self._staged_graph: list[NodeRecord] | None = None
        self._staged_deck: list[CardRecord] | None = None

        if repository is not None:
            self._restore()

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(self) -> CourseSnapshot:
        """The active course; raises NoActiveCourseError before the first acceptance."""
        active = self._active
        if active is None:
            raise NoActiveCourseError()
        return active

    def has_active(self) -> bool:
        return self._active is not None

    def active_version(self) -> CourseVersion | None:
        active = self._active
        return active.version if active is not None else None

    def active_errors(self) -> list[ValidationError]:
        """Errors of the most recent rejected proposal (empty after an acceptance)."""
        with self._write_lock:
            return list(self._errors)

    # =========================================================================
    # Validation
    # =========================================================================

    def check(self, graph_records: NodeInput, card_records: CardInput) -> list[ValidationError]:
        """Dry run: every error a proposal would be rejected with."""
        _, errors = self._build(load_node_records(graph_records), load_card_records(card_records))
        return errors

    def _build(
        self, nodes: list[NodeRecord], cards: list[CardRecord]
    ) -> tuple[CourseSnapshot | None, list[ValidationError]]:
        graph_errors = CourseGraph.check(nodes)
        if graph_errors:
            # Still report deck problems, checked against the node ids we were given.
            deck_errors = CardStore.check(cards, {node.id for node in nodes}, self.allow_empty_nodes)
            return None, [*graph_errors, *deck_errors]

        graph = CourseGraph.validate(nodes)
        deck_errors = CardStore.check(cards, graph, self.allow_empty_nodes)
        if deck_errors:
            return None, list(deck_errors)

        store = CardStore.validate(cards, graph, self.allow_empty_nodes)
        graph = graph.with_cards(store.card_ids_by_node())
        version = CourseVersion(graph_fingerprint=graph.fingerprint(), deck_fingerprint=store.fingerprint())
        return CourseSnapshot(version=version, graph=graph, cards=store), []

    # =========================================================================
    # Updates
    # =========================================================================

    def propose_update(self, graph_records: NodeInput, card_records: CardInput) -> CourseVersion:
        """
        Validate a (graph, deck) pair and make it the active course.

        Args:
            graph_records: Node records (mappings or NodeRecord)
            card_records: Card records (mappings or CardRecord)

        Returns:
            The version now active

        Raises:
            CourseValidationError: the pair is invalid; the active course is unchanged
            pydantic.ValidationError: a record is malformed
        """
        nodes = load_node_records(graph_records)
        cards = load_card_records(card_records)

        with self._write_lock:
            candidate, errors = self._build(nodes, cards)
            if candidate is None:
                self._errors = errors
                logger.warning(f"Course update rejected with {len(errors)} error(s)")
                raise CourseValidationError(errors)

            self._errors = []
            active = self._active
            if active is not None and active.version == candidate.version:
                logger.info(f"Course version {candidate.version.short} is already active")
                return active.version

            if self._repository is not None:
                self._repository.save_active(
                    candidate.version.graph_fingerprint,
                    candidate.version.deck_fingerprint,
                    candidate.graph.records(),
                    candidate.cards.records(),
                )
            self._active = candidate
            logger.info(
                f"Activated course version {candidate.version.short} "
                f"({len(candidate.graph)} nodes, {len(candidate.cards)} cards)"
            )
            return candidate.version

    def stage_graph(self, graph_records: NodeInput) -> PendingUpdate:
        """Stage a new graph; it is not served until `confirm()`."""
        nodes = load_node_records(graph_records)
        with self._write_lock:
            self._staged_graph = nodes
            logger.info(f"Staged graph with {len(nodes)} node(s)")
            return self.pending()

    def stage_deck(self, card_records: CardInput) -> PendingUpdate:
        """Stage a new deck; it is not served until `confirm()`."""
        cards = load_card_records(card_records)
        with self._write_lock:
            self._staged_deck = cards
            logger.info(f"Staged deck with {len(cards)} card(s)")
            return self.pending()

    def pending(self) -> PendingUpdate:
        with self._write_lock:
            return PendingUpdate(
                graph_staged=self._staged_graph is not None,
                deck_staged=self._staged_deck is not None,
            )

    def confirm(self) -> CourseVersion:
        """
        Propose the staged pair.

        Raises:
            IncompleteUpdateError: graph or deck has not been staged
            CourseValidationError: the staged pair is invalid (staging is kept)
        """
        with self._write_lock:
            if self._staged_graph is None:
                raise IncompleteUpdateError("graph")
            if self._staged_deck is None:
                raise IncompleteUpdateError("deck")
            version = self.propose_update(self._staged_graph, self._staged_deck)
            self._staged_graph = None
            self._staged_deck = None
            return version

    def discard_pending(self) -> None:
        with self._write_lock:
            self._staged_graph = None
            self._staged_deck = None

    # =========================================================================
    # Persistence
    # =========================================================================

    def _restore(self) -> None:
        stored = self._repository.load_active()
        if stored is None:
            logger.info("No stored course version to restore")
            return
        nodes, cards = stored
        candidate, errors = self._build(nodes, cards)
        if candidate is None:
            # Settings such as allow_empty_nodes may have changed since it was stored.
            self._errors = errors
            logger.warning(f"Stored course version no longer validates ({len(errors)} error(s)); starting empty")
            return
        self._active = candidate
        logger.info(f"Restored course version {candidate.version.short}")
