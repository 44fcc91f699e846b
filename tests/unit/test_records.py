"""
Unit tests for input record shape checks and JSON file loading.
"""

import json

import pydantic
import pytest

from course_engine.content.records import (
    NodeRecord,
    load_card_records,
    load_node_records,
    read_deck_file,
    read_graph_file,
)


class TestRecordShape:
    def test_ids_are_stripped(self):
        (record,) = load_node_records([{"id": "  A ", "prerequisites": [" B "]}])
        assert record.id == "A"
        assert record.prerequisites == ["B"]

    def test_blank_id_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            load_node_records([{"id": "   "}])

    def test_unknown_field_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            load_card_records([{"id": "a1", "node_id": "A", "question": "Q", "answer": "A", "extra": 1}])

    def test_missing_answer_rejected(self):
        with pytest.raises(pydantic.ValidationError):
            load_card_records([{"id": "a1", "node_id": "A", "question": "Q"}])

    def test_prerequisites_default_to_empty(self):
        (record,) = load_node_records([{"id": "A"}])
        assert record.prerequisites == []

    def test_models_pass_through(self):
        record = NodeRecord(id="A", prerequisites=[])
        assert load_node_records([record]) == [record]


class TestFiles:
    def test_read_wrapped_graph(self, tmp_path, chain_nodes):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps({"nodes": chain_nodes}), encoding="utf-8")
        assert [r.id for r in read_graph_file(path)] == ["A", "B", "C", "D"]

    def test_read_bare_deck_list(self, tmp_path, chain_cards):
        path = tmp_path / "deck.json"
        path.write_text(json.dumps(chain_cards), encoding="utf-8")
        assert len(read_deck_file(path)) == len(chain_cards)
