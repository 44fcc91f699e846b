"""
Course Graph: validated DAG of course concepts.

Nodes live in an arena (``dict[node_id, Node]``) and reference their
prerequisites by id. Edges are implicit, derived from each node's
prerequisite set (node -> prerequisite).

Validation rules:
- duplicate node ids
- prerequisites naming nodes that do not exist
- the same prerequisite listed twice by one node
- cycles (each reported with a concrete ordered list of node ids)
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from loguru import logger

from course_engine.content.fingerprint import fingerprint
from course_engine.content.records import NodeRecord
from course_engine.errors import ErrorKind, GraphError, GraphValidationError

# DFS colours
_WHITE, _GREY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class Node:
    """A course concept."""

    id: str
    prerequisites: frozenset[str] = frozenset()
    card_ids: frozenset[str] = frozenset()


@dataclass(frozen=True, eq=False)
class CourseGraph:
    """
    Immutable, validated prerequisite graph.

    Build it with ``CourseGraph.validate(records)``; the constructor assumes
    the arena has already been checked.
    """

    nodes: Mapping[str, Node]
    _ranks: Mapping[str, int] = field(repr=False)
    _dependents: Mapping[str, frozenset[str]] = field(repr=False)
    _records: tuple[NodeRecord, ...] = field(repr=False)

    # =========================================================================
    # Construction & validation
    # =========================================================================

    @staticmethod
    def check(records: Iterable[NodeRecord]) -> list[GraphError]:
        """Return every rule violation found in the candidate records."""
        records = list(records)
        errors: list[GraphError] = []

        arena: dict[str, list[str]] = {}
        for record in records:
            if record.id in arena:
                errors.append(
                    GraphError(
                        kind=ErrorKind.DUPLICATE_NODE,
                        node_id=record.id,
                        message=f"Node '{record.id}' is defined more than once",
                    )
                )
                continue
            arena[record.id] = list(record.prerequisites)

        for node_id, prerequisites in arena.items():
            seen: set[str] = set()
            for prerequisite in prerequisites:
                if prerequisite in seen:
                    errors.append(
                        GraphError(
                            kind=ErrorKind.DUPLICATE_EDGE,
                            node_id=node_id,
                            related_id=prerequisite,
                            message=f"Node '{node_id}' lists prerequisite '{prerequisite}' more than once",
                        )
                    )
                    continue
                seen.add(prerequisite)
                if prerequisite not in arena:
                    errors.append(
                        GraphError(
                            kind=ErrorKind.UNKNOWN_REFERENCE,
                            node_id=node_id,
                            related_id=prerequisite,
                            message=f"Node '{node_id}' requires unknown node '{prerequisite}'",
                        )
                    )

        for cycle in _find_cycles(arena):
            errors.append(
                GraphError(
                    kind=ErrorKind.CYCLE,
                    node_id=cycle[0],
                    cycle=cycle,
                    message=f"Prerequisites of '{cycle[0]}' form a cycle: {', '.join(cycle)}",
                )
            )

        return errors

    @classmethod
    def validate(cls, records: Iterable[NodeRecord]) -> CourseGraph:
        """Build a graph from records, raising GraphValidationError on any violation."""
        records = tuple(records)
        errors = cls.check(records)
        if errors:
            logger.debug(f"Graph validation failed with {len(errors)} error(s)")
            raise GraphValidationError(errors)
        return cls._build(records, {})

    @classmethod
    def _build(cls, records: tuple[NodeRecord, ...], card_ids: Mapping[str, Iterable[str]]) -> CourseGraph:
        nodes = {
            record.id: Node(
                id=record.id,
                prerequisites=frozenset(record.prerequisites),
                card_ids=frozenset(card_ids.get(record.id, ())),
            )
            for record in records
        }
        dependents: dict[str, set[str]] = {node_id: set() for node_id in nodes}
        for node in nodes.values():
            for prerequisite in node.prerequisites:
                dependents[prerequisite].add(node.id)

        return cls(
            nodes=nodes,
            _ranks=_topological_ranks(nodes),
            _dependents={node_id: frozenset(ids) for node_id, ids in dependents.items()},
            _records=records,
        )

    def with_cards(self, card_ids: Mapping[str, Iterable[str]]) -> CourseGraph:
        """Return a copy with each node's associated card ids bound."""
        return self._build(self._records, card_ids)

    # =========================================================================
    # Queries
    # =========================================================================

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.ordered_node_ids())

    def topological_rank(self, node_id: str) -> int:
        """Position in a stable total order (prerequisites first, ties by id)."""
        return self._ranks[node_id]

    def ordered_node_ids(self) -> list[str]:
        return sorted(self.nodes, key=self._ranks.__getitem__)

    def prerequisites_of(self, node_id: str) -> frozenset[str]:
        return self.nodes[node_id].prerequisites

    def dependents_of(self, node_id: str) -> frozenset[str]:
        return self._dependents[node_id]

    def prerequisites_satisfied(self, node_id: str, mastery_set: set[str] | frozenset[str]) -> bool:
        """True iff every prerequisite of the node is in the mastery set."""
        return self.nodes[node_id].prerequisites <= mastery_set

    def roots(self) -> list[str]:
        """Nodes without prerequisites, in rank order."""
        return [node_id for node_id in self.ordered_node_ids() if not self.nodes[node_id].prerequisites]

    def leaves(self) -> list[str]:
        """Top-level nodes that nothing depends on, in rank order."""
        return [node_id for node_id in self.ordered_node_ids() if not self._dependents[node_id]]

    def ancestors(self, node_id: str) -> set[str]:
        """All transitive prerequisites of a node."""
        seen: set[str] = set()
        stack = list(self.nodes[node_id].prerequisites)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.nodes[current].prerequisites)
        return seen

    def edges(self) -> list[tuple[str, str]]:
        """(node, prerequisite) pairs in deterministic order."""
        return [
            (node_id, prerequisite)
            for node_id in self.ordered_node_ids()
            for prerequisite in sorted(self.nodes[node_id].prerequisites)
        ]

    def records(self) -> list[NodeRecord]:
        return list(self._records)

    def fingerprint(self) -> str:
        payload = sorted(
            ({"id": node.id, "prerequisites": sorted(node.prerequisites)} for node in self.nodes.values()),
            key=lambda item: item["id"],
        )
        return fingerprint(payload)


# =============================================================================
# Graph algorithms
# =============================================================================


def _find_cycles(arena: Mapping[str, list[str]]) -> list[tuple[str, ...]]:
    """
    Three-colour iterative DFS over known edges.

    Every back edge closes a cycle; the cycle is the slice of the current DFS
    path from the back edge's target. Rotations of the same cycle are
    reported once.
    """
    colour = dict.fromkeys(arena, _WHITE)
    cycles: list[tuple[str, ...]] = []
    seen: set[tuple[str, ...]] = set()

    for start in sorted(arena):
        if colour[start] != _WHITE:
            continue
        path: list[str] = [start]
        position = {start: 0}
        colour[start] = _GREY
        stack = [iter(sorted(set(arena[start])))]

        while stack:
            advanced = False
            for prerequisite in stack[-1]:
                if prerequisite not in arena:
                    continue
                if colour[prerequisite] == _GREY:
                    cycle = tuple(path[position[prerequisite]:])
                    key = _normalise(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)
                elif colour[prerequisite] == _WHITE:
                    colour[prerequisite] = _GREY
                    position[prerequisite] = len(path)
                    path.append(prerequisite)
                    stack.append(iter(sorted(set(arena[prerequisite]))))
                    advanced = True
                    break
            if not advanced:
                finished = path.pop()
                del position[finished]
                colour[finished] = _BLACK
                stack.pop()

    return cycles


def _normalise(cycle: tuple[str, ...]) -> tuple[str, ...]:
    pivot = cycle.index(min(cycle))
    return cycle[pivot:] + cycle[:pivot]


def _topological_ranks(nodes: Mapping[str, Node]) -> dict[str, int]:
    """Kahn's algorithm with a min-heap on node id."""
    pending = {node_id: len(node.prerequisites) for node_id, node in nodes.items()}
    dependents: dict[str, list[str]] = {node_id: [] for node_id in nodes}
    for node in nodes.values():
        for prerequisite in node.prerequisites:
            dependents[prerequisite].append(node.id)

    ready = [node_id for node_id, count in pending.items() if count == 0]
    heapq.heapify(ready)
    ranks: dict[str, int] = {}
    while ready:
        node_id = heapq.heappop(ready)
        ranks[node_id] = len(ranks)
        for dependent in dependents[node_id]:
            pending[dependent] -= 1
            if pending[dependent] == 0:
                heapq.heappush(ready, dependent)
    return ranks
