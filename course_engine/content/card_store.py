"""
Card Store: question/answer records bound to course nodes.

Every card belongs to exactly one node of the graph it was validated against.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from loguru import logger

from course_engine.content.fingerprint import fingerprint
from course_engine.content.records import CardRecord
from course_engine.errors import DeckError, DeckValidationError, ErrorKind
from course_engine.graph.course_graph import CourseGraph


@dataclass(frozen=True)
class Card:
    """A single question/answer unit."""

    id: str
    node_id: str
    question: str
    answer: str

    @classmethod
    def from_record(cls, record: CardRecord) -> Card:
        return cls(id=record.id, node_id=record.node_id, question=record.question, answer=record.answer)

    def to_record(self) -> CardRecord:
        return CardRecord(id=self.id, node_id=self.node_id, question=self.question, answer=self.answer)


@dataclass(frozen=True, eq=False)
class CardStore:
    """Immutable deck indexed by card id and by owning node."""

    cards: Mapping[str, Card]
    _by_node: Mapping[str, tuple[Card, ...]] = field(repr=False)

    @staticmethod
    def check(
        records: Iterable[CardRecord],
        graph: CourseGraph | Collection[str],
        allow_empty_nodes: bool = False,
    ) -> list[DeckError]:
        """
        Return every deck rule violation against the candidate graph.

        `graph` may also be a bare collection of node ids, so a deck can be
        checked even when its graph failed validation.
        """
        node_ids = graph.ordered_node_ids() if isinstance(graph, CourseGraph) else sorted(set(graph))
        known = set(node_ids)
        errors: list[DeckError] = []
        seen: set[str] = set()
        covered: set[str] = set()

        for record in records:
            if record.id in seen:
                errors.append(
                    DeckError(
                        kind=ErrorKind.DUPLICATE_CARD,
                        card_id=record.id,
                        node_id=record.node_id,
                        message=f"Card '{record.id}' is defined more than once",
                    )
                )
                continue
            seen.add(record.id)
            if record.node_id not in known:
                errors.append(
                    DeckError(
                        kind=ErrorKind.ORPHAN_CARD,
                        card_id=record.id,
                        node_id=record.node_id,
                        message=f"Card '{record.id}' belongs to node '{record.node_id}', which the graph does not define",
                    )
                )
                continue
            covered.add(record.node_id)

        if not allow_empty_nodes:
            for node_id in node_ids:
                if node_id not in covered:
                    errors.append(
                        DeckError(
                            kind=ErrorKind.NODE_WITHOUT_CARDS,
                            node_id=node_id,
                            message=f"Graph has node '{node_id}', but the deck has no card for it",
                        )
                    )

        return errors

    @classmethod
    def validate(
        cls,
        records: Iterable[CardRecord],
        graph: CourseGraph,
        allow_empty_nodes: bool = False,
    ) -> CardStore:
        """Build a deck, raising DeckValidationError on any violation."""
        records = list(records)
        errors = cls.check(records, graph, allow_empty_nodes=allow_empty_nodes)
        if errors:
            logger.debug(f"Deck validation failed with {len(errors)} error(s)")
            raise DeckValidationError(errors)
        return cls.from_cards(Card.from_record(record) for record in records)

    @classmethod
    def from_cards(cls, cards: Iterable[Card]) -> CardStore:
        by_id = {card.id: card for card in cards}
        by_node: dict[str, list[Card]] = {}
        for card in sorted(by_id.values(), key=lambda c: c.id):
            by_node.setdefault(card.node_id, []).append(card)
        return cls(cards=by_id, _by_node={node_id: tuple(group) for node_id, group in by_node.items()})

    # =========================================================================
    # Queries
    # =========================================================================

    def __contains__(self, card_id: object) -> bool:
        return card_id in self.cards

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(sorted(self.cards.values(), key=lambda c: c.id))

    def get(self, card_id: str) -> Card | None:
        return self.cards.get(card_id)

    def ids(self) -> list[str]:
        return sorted(self.cards)

    def cards_for(self, node_id: str) -> tuple[Card, ...]:
        """Cards owned by a node, ordered by card id."""
        return self._by_node.get(node_id, ())

    def card_ids_by_node(self) -> dict[str, list[str]]:
        return {node_id: [card.id for card in cards] for node_id, cards in self._by_node.items()}

    def records(self) -> list[CardRecord]:
        return [card.to_record() for card in self]

    def fingerprint(self) -> str:
        payload = [
            {"id": card.id, "node_id": card.node_id, "question": card.question, "answer": card.answer}
            for card in self
        ]
        return fingerprint(payload)
