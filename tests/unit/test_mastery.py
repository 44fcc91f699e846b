"""
Unit tests for mastery derivation from memory states.
"""

from datetime import timedelta

import pytest

from course_engine.adaptive import mastery
from course_engine.delivery.memory_state import MemoryState, Phase


def state(card_id, now, phase=Phase.REVIEW, due_in=timedelta(days=3)):
    return MemoryState(
        card_id=card_id,
        stability=4.0,
        difficulty=5.0,
        due=now + due_in,
        last_reviewed=now - timedelta(days=1),
        repetitions=2,
        lapses=0,
        phase=phase,
    )


@pytest.fixture
def snapshot(coordinator):
    return coordinator.snapshot()


class TestCardRetention:
    def test_review_card_not_due_is_retained(self, now):
        assert mastery.card_is_retained(state("a1", now), now)

    def test_unreviewed_card_not_retained(self, now):
        assert not mastery.card_is_retained(None, now)

    def test_learning_card_not_retained(self, now):
        assert not mastery.card_is_retained(state("a1", now, phase=Phase.LEARNING), now)

    def test_due_card_not_retained(self, now):
        assert not mastery.card_is_retained(state("a1", now, due_in=timedelta(0)), now)

    def test_freshness_window(self, now):
        s = state("a1", now, due_in=timedelta(hours=6))
        assert mastery.card_is_retained(s, now)
        assert not mastery.card_is_retained(s, now, freshness=timedelta(hours=12))


class TestNodeMastery:
    def test_node_needs_all_cards(self, snapshot, now):
        states = {"a1": state("a1", now)}
        assert not mastery.node_mastered("A", snapshot.cards, states, now)
        states["a2"] = state("a2", now)
        assert mastery.node_mastered("A", snapshot.cards, states, now)

    def test_node_without_cards_counts_as_mastered(self, snapshot, now):
        assert mastery.node_mastered("not-in-deck", snapshot.cards, {}, now)

    def test_mastered_and_unlocked_sets(self, snapshot, now):
        states = {"a1": state("a1", now), "a2": state("a2", now)}
        mastered = mastery.mastered_nodes(snapshot.graph, snapshot.cards, states, now)
        assert mastered == frozenset({"A"})
        assert mastery.unlocked_nodes(snapshot.graph, mastered) == frozenset({"A", "B", "D"})

    def test_mastery_expires_when_cards_fall_due(self, snapshot, now):
        states = {"a1": state("a1", now), "a2": state("a2", now)}
        later = now + timedelta(days=4)
        assert mastery.mastered_nodes(snapshot.graph, snapshot.cards, states, later) == frozenset()

    def test_blocking_prerequisites(self, snapshot):
        assert mastery.blocking_prerequisites(snapshot.graph, "C", frozenset()) == ["B"]
        assert mastery.blocking_prerequisites(snapshot.graph, "C", frozenset({"B"})) == []

    def test_transitive_blocking_prerequisites(self, snapshot):
        assert mastery.blocking_prerequisites(snapshot.graph, "C", frozenset(), transitive=True) == ["A", "B"]
        assert mastery.blocking_prerequisites(snapshot.graph, "C", frozenset({"A"}), transitive=True) == ["B"]
