"""
Input records produced by the external course-text parser.

The engine never parses raw course text. It receives already-tokenized
node and card records, shape-checks them here, and then runs the structural
graph/deck validation in CourseGraph and CardStore.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class NodeRecord(BaseModel):
    """One concept with the ids of the concepts it requires."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    prerequisites: list[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _strip_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("node id must not be blank")
        return value

    @field_validator("prerequisites")
    @classmethod
    def _strip_prerequisites(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value]


class CardRecord(BaseModel):
    """One question/answer pair bound to a node."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    node_id: str = Field(min_length=1)
    question: str
    answer: str

    @field_validator("id", "node_id")
    @classmethod
    def _strip_ids(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("ids must not be blank")
        return value


_NODE_LIST = TypeAdapter(list[NodeRecord])
_CARD_LIST = TypeAdapter(list[CardRecord])


def load_node_records(data: Iterable[Mapping[str, Any] | NodeRecord]) -> list[NodeRecord]:
    """Shape-check raw node payloads (raises pydantic.ValidationError)."""
    return _NODE_LIST.validate_python(
        [item.model_dump() if isinstance(item, NodeRecord) else item for item in data]
    )


def load_card_records(data: Iterable[Mapping[str, Any] | CardRecord]) -> list[CardRecord]:
    """Shape-check raw card payloads (raises pydantic.ValidationError)."""
    return _CARD_LIST.validate_python(
        [item.model_dump() if isinstance(item, CardRecord) else item for item in data]
    )


def read_graph_file(path: Path) -> list[NodeRecord]:
    """Load `{"nodes": [...]}` (or a bare list) from a JSON file."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("nodes", [])
    return load_node_records(payload)


def read_deck_file(path: Path) -> list[CardRecord]:
    """Load `{"cards": [...]}` (or a bare list) from a JSON file."""
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("cards", [])
    return load_card_records(payload)
