"""
Unit tests for VersionCoordinator proposals, staging and snapshots.
"""

import threading

import pytest

from course_engine.errors import (
    CourseValidationError,
    ErrorKind,
    IncompleteUpdateError,
    NoActiveCourseError,
)
from course_engine.versioning.coordinator import VersionCoordinator


class TestProposeUpdate:
    def test_first_proposal_activates(self, chain_nodes, chain_cards):
        coordinator = VersionCoordinator()
        assert not coordinator.has_active()
        version = coordinator.propose_update(chain_nodes, chain_cards)
        assert coordinator.active_version() == version
        assert coordinator.active_errors() == []

    def test_snapshot_before_activation(self):
        with pytest.raises(NoActiveCourseError):
            VersionCoordinator().snapshot()

    def test_cycle_rejected_and_active_unchanged(self, coordinator, chain_nodes, chain_cards):
        before = coordinator.snapshot()
        cyclic = [dict(n, prerequisites=["C"]) if n["id"] == "A" else n for n in chain_nodes]
        with pytest.raises(CourseValidationError) as exc_info:
            coordinator.propose_update(cyclic, chain_cards)

        assert coordinator.snapshot() is before
        errors = coordinator.active_errors()
        assert errors == exc_info.value.errors
        (cycle_error,) = errors
        assert cycle_error.kind is ErrorKind.CYCLE
        assert set(cycle_error.cycle) == {"A", "B", "C"}

    def test_orphan_card_rejected(self, coordinator, chain_nodes, chain_cards):
        cards = [*chain_cards, {"id": "x1", "node_id": "X", "question": "Q", "answer": "A"}]
        with pytest.raises(CourseValidationError):
            coordinator.propose_update(chain_nodes, cards)
        (error,) = coordinator.active_errors()
        assert error.kind is ErrorKind.ORPHAN_CARD
        assert error.node_id == "X"

    def test_graph_and_deck_errors_reported_together(self, chain_nodes, chain_cards):
        coordinator = VersionCoordinator()
        nodes = [*chain_nodes, {"id": "E", "prerequisites": ["ghost"]}]
        cards = [*chain_cards, {"id": "x1", "node_id": "X", "question": "Q", "answer": "A"}]
        with pytest.raises(CourseValidationError):
            coordinator.propose_update(nodes, cards)
        kinds = {error.kind for error in coordinator.active_errors()}
        assert kinds == {ErrorKind.UNKNOWN_REFERENCE, ErrorKind.ORPHAN_CARD, ErrorKind.NODE_WITHOUT_CARDS}

    def test_accepted_proposal_clears_errors(self, coordinator, chain_nodes, chain_cards):
        with pytest.raises(CourseValidationError):
            coordinator.propose_update([{"id": "A", "prerequisites": ["A"]}], chain_cards)
        assert coordinator.active_errors()
        coordinator.propose_update(chain_nodes, chain_cards)
        assert coordinator.active_errors() == []

    def test_active_errors_returns_a_copy(self, coordinator, chain_cards):
        with pytest.raises(CourseValidationError):
            coordinator.propose_update([{"id": "A", "prerequisites": ["A"]}], chain_cards)
        coordinator.active_errors().clear()
        assert coordinator.active_errors()

    def test_reproposal_is_idempotent(self, coordinator, chain_nodes, chain_cards):
        before = coordinator.snapshot()
        version = coordinator.propose_update(list(reversed(chain_nodes)), chain_cards)
        assert version == before.version
        assert coordinator.snapshot() is before

    def test_text_edit_changes_deck_version_only(self, coordinator, chain_nodes, chain_cards):
        before = coordinator.active_version()
        edited = [dict(c, question="Edited?") if c["id"] == "b1" else c for c in chain_cards]
        after = coordinator.propose_update(chain_nodes, edited)
        assert after.graph_fingerprint == before.graph_fingerprint
        assert after.deck_fingerprint != before.deck_fingerprint

    def test_snapshot_graph_carries_card_ids(self, coordinator):
        snapshot = coordinator.snapshot()
        assert snapshot.graph.nodes["A"].card_ids == frozenset({"a1", "a2"})

    def test_empty_nodes_allowed_by_setting(self, chain_nodes, chain_cards):
        cards = [c for c in chain_cards if c["node_id"] != "D"]
        with pytest.raises(CourseValidationError):
            VersionCoordinator().propose_update(chain_nodes, cards)
        VersionCoordinator(allow_empty_nodes=True).propose_update(chain_nodes, cards)

    def test_check_is_a_dry_run(self, coordinator, chain_cards):
        before = coordinator.snapshot()
        errors = coordinator.check([{"id": "A", "prerequisites": ["A"]}], chain_cards)
        assert errors
        assert coordinator.snapshot() is before
        assert coordinator.active_errors() == []


class TestStagedUpdate:
    def test_graph_alone_does_not_change_active(self, coordinator, chain_nodes):
        before = coordinator.snapshot()
        pending = coordinator.stage_graph([*chain_nodes, {"id": "E", "prerequisites": ["D"]}])
        assert pending.graph_staged and not pending.deck_staged
        assert coordinator.snapshot() is before
        with pytest.raises(IncompleteUpdateError) as exc_info:
            coordinator.confirm()
        assert exc_info.value.missing == "deck"

    def test_deck_alone_cannot_confirm(self, coordinator, chain_cards):
        coordinator.stage_deck(chain_cards)
        with pytest.raises(IncompleteUpdateError) as exc_info:
            coordinator.confirm()
        assert exc_info.value.missing == "graph"

    def test_confirm_activates_staged_pair(self, coordinator, chain_nodes, chain_cards):
        coordinator.stage_graph([*chain_nodes, {"id": "E", "prerequisites": ["D"]}])
        pending = coordinator.stage_deck([*chain_cards, {"id": "e1", "node_id": "E", "question": "Q", "answer": "A"}])
        assert pending.complete
        coordinator.confirm()
        assert "E" in coordinator.snapshot().graph
        assert not coordinator.pending().graph_staged

    def test_invalid_staged_pair_keeps_staging(self, coordinator, chain_nodes, chain_cards):
        before = coordinator.snapshot()
        coordinator.stage_graph([*chain_nodes, {"id": "E", "prerequisites": ["D"]}])
        coordinator.stage_deck(chain_cards)
        with pytest.raises(CourseValidationError):
            coordinator.confirm()
        assert coordinator.snapshot() is before
        assert coordinator.pending().complete

    def test_discard_pending(self, coordinator, chain_nodes):
        coordinator.stage_graph(chain_nodes)
        coordinator.discard_pending()
        assert not coordinator.pending().graph_staged


class TestAtomicSwap:
    def test_readers_never_see_mixed_versions(self, coordinator, chain_nodes, chain_cards):
        variants = [
            (chain_nodes, chain_cards),
            (
                [*chain_nodes, {"id": "E", "prerequisites": ["A"]}],
                [*chain_cards, {"id": "e1", "node_id": "E", "question": "Q", "answer": "A"}],
            ),
        ]
        stop = threading.Event()
        mismatches = []

        def read():
            while not stop.is_set():
                snapshot = coordinator.snapshot()
                if any(card.node_id not in snapshot.graph for card in snapshot.cards):
                    mismatches.append(snapshot.version)

        reader = threading.Thread(target=read)
        reader.start()
        for i in range(50):
            coordinator.propose_update(*variants[i % 2])
        stop.set()
        reader.join()
        assert mismatches == []
