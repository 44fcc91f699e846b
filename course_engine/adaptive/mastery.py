"""
Concept mastery derivation.

Mastery is never stored: it is recomputed from MemoryState snapshots every
time it is needed, so course updates can never leave a stale cache behind.

A card is retained when it has graduated to Review and is not due within the
freshness window. A node is mastered when all of its cards are retained.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta

from course_engine.content.card_store import CardStore
from course_engine.delivery.memory_state import MemoryState, Phase, as_utc
from course_engine.graph.course_graph import CourseGraph


def card_is_retained(state: MemoryState | None, now: datetime, freshness: timedelta = timedelta(0)) -> bool:
    """True if the card contributes to its node's mastery."""
    if state is None:
        return False
    return state.phase is Phase.REVIEW and state.due > as_utc(now) + freshness


def node_mastered(
    node_id: str,
    cards: CardStore,
    states: Mapping[str, MemoryState],
    now: datetime,
    freshness: timedelta = timedelta(0),
) -> bool:
    """All cards of the node are retained (a node without cards counts as mastered)."""
    return all(card_is_retained(states.get(card.id), now, freshness) for card in cards.cards_for(node_id))


def mastered_nodes(
    graph: CourseGraph,
    cards: CardStore,
    states: Mapping[str, MemoryState],
    now: datetime,
    freshness: timedelta = timedelta(0),
) -> frozenset[str]:
    """The learner's current mastery set."""
    return frozenset(
        node_id for node_id in graph.ordered_node_ids() if node_mastered(node_id, cards, states, now, freshness)
    )


def unlocked_nodes(graph: CourseGraph, mastery_set: frozenset[str]) -> frozenset[str]:
    """Nodes whose prerequisites are all mastered."""
    return frozenset(node_id for node_id in graph.ordered_node_ids() if graph.prerequisites_satisfied(node_id, mastery_set))


def blocking_prerequisites(
    graph: CourseGraph, node_id: str, mastery_set: frozenset[str], transitive: bool = False
) -> list[str]:
    """
    Prerequisites of `node_id` that are not yet mastered, sorted by rank.

    With `transitive`, every unmastered ancestor is reported, not only the
    direct prerequisites.
    """
    required = graph.ancestors(node_id) if transitive else graph.prerequisites_of(node_id)
    missing = required - mastery_set
    return sorted(missing, key=graph.topological_rank)
