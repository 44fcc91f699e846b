"""
Unit tests for CardStore validation and lookups.
"""

import pytest

from course_engine.content.card_store import CardStore
from course_engine.content.records import load_card_records, load_node_records
from course_engine.errors import DeckValidationError, ErrorKind
from course_engine.graph.course_graph import CourseGraph


@pytest.fixture
def graph(chain_nodes):
    return CourseGraph.validate(load_node_records(chain_nodes))


def card(card_id, node_id, question="Q", answer="A"):
    return {"id": card_id, "node_id": node_id, "question": question, "answer": answer}


class TestDeckValidation:
    def test_valid_deck(self, graph, chain_cards):
        store = CardStore.validate(load_card_records(chain_cards), graph)
        assert len(store) == 5
        assert "a1" in store
        assert store.get("missing") is None

    def test_orphan_card_names_missing_node(self, graph, chain_cards):
        records = load_card_records([*chain_cards, card("z1", "Z")])
        (error,) = CardStore.check(records, graph)
        assert error.kind is ErrorKind.ORPHAN_CARD
        assert error.card_id == "z1"
        assert error.node_id == "Z"

    def test_duplicate_card(self, graph, chain_cards):
        records = load_card_records([*chain_cards, card("a1", "B")])
        (error,) = CardStore.check(records, graph)
        assert error.kind is ErrorKind.DUPLICATE_CARD
        assert error.card_id == "a1"

    def test_node_without_cards_rejected_by_default(self, graph, chain_cards):
        records = load_card_records([c for c in chain_cards if c["node_id"] != "D"])
        (error,) = CardStore.check(records, graph)
        assert error.kind is ErrorKind.NODE_WITHOUT_CARDS
        assert error.node_id == "D"

    def test_node_without_cards_allowed_when_enabled(self, graph, chain_cards):
        records = load_card_records([c for c in chain_cards if c["node_id"] != "D"])
        assert CardStore.check(records, graph, allow_empty_nodes=True) == []

    def test_check_against_bare_node_ids(self, chain_cards):
        records = load_card_records([*chain_cards, card("z1", "Z")])
        errors = CardStore.check(records, {"A", "B", "C", "D"})
        assert [e.kind for e in errors] == [ErrorKind.ORPHAN_CARD]

    def test_validate_raises(self, graph):
        with pytest.raises(DeckValidationError) as exc_info:
            CardStore.validate(load_card_records([card("z1", "Z")]), graph, allow_empty_nodes=True)
        assert exc_info.value.errors[0].kind is ErrorKind.ORPHAN_CARD


class TestQueries:
    def test_cards_for_sorted_by_id(self, graph):
        records = load_card_records([card("a2", "A"), card("a1", "A"), card("b1", "B")])
        store = CardStore.validate(records, graph, allow_empty_nodes=True)
        assert [c.id for c in store.cards_for("A")] == ["a1", "a2"]
        assert store.cards_for("C") == ()

    def test_fingerprint_tracks_text_changes(self, graph, chain_cards):
        original = CardStore.validate(load_card_records(chain_cards), graph)
        edited = [dict(c, answer="Changed") if c["id"] == "a1" else c for c in chain_cards]
        changed = CardStore.validate(load_card_records(edited), graph)
        assert original.fingerprint() != changed.fingerprint()

    def test_fingerprint_ignores_order(self, graph, chain_cards):
        first = CardStore.validate(load_card_records(chain_cards), graph)
        second = CardStore.validate(load_card_records(list(reversed(chain_cards))), graph)
        assert first.fingerprint() == second.fingerprint()

    def test_records_round_trip(self, graph, chain_cards):
        store = CardStore.validate(load_card_records(chain_cards), graph)
        assert sorted(r.id for r in store.records()) == store.ids()
