"""
Visualization data for a learner's view of the course graph.

Classifies every node into one of four categories and renders the graph
as Graphviz DOT source. Rendering DOT to an image is left to the caller.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from course_engine.adaptive import mastery
from course_engine.delivery.memory_state import as_utc, utcnow

if TYPE_CHECKING:
    from course_engine.adaptive.progress_tracker import ProgressTracker
    from course_engine.versioning.coordinator import CourseSnapshot


class NodeCategory(str, Enum):
    LOCKED = "locked"
    UNLOCKED_UNSTARTED = "unlocked_unstarted"
    LEARNING = "learning"
    MASTERED = "mastered"


# Fill colours used in the DOT output
CATEGORY_COLORS: dict[NodeCategory, str] = {
    NodeCategory.LOCKED: "#d9d9d9",
    NodeCategory.UNLOCKED_UNSTARTED: "#ffffff",
    NodeCategory.LEARNING: "#ffd966",
    NodeCategory.MASTERED: "#93c47d",
}

FINISH_NODE = "__finish__"


class VisualizationDataBuilder:
    """Read-only view of progress over the active course graph."""

    def __init__(self, tracker: ProgressTracker):
        self.tracker = tracker

    def node_colors(self, learner_id: str, now: datetime | None = None) -> dict[str, NodeCategory]:
        """
        Category of every node for one learner.

        - prerequisites not all mastered: LOCKED
        - node mastered: MASTERED
        - any of its cards reviewed: LEARNING
        - otherwise: UNLOCKED_UNSTARTED
        """
        return self._categorize(learner_id, self.tracker.coordinator.snapshot(), now)

    def _categorize(self, learner_id: str, snapshot: CourseSnapshot, now: datetime | None) -> dict[str, NodeCategory]:
        now = as_utc(now) if now is not None else utcnow()
        states = self.tracker.memory_states(learner_id)
        graph, cards = snapshot.graph, snapshot.cards
        mastered = mastery.mastered_nodes(graph, cards, states, now, self.tracker.freshness)

        colors: dict[str, NodeCategory] = {}
        for node_id in graph.ordered_node_ids():
            if not graph.prerequisites_satisfied(node_id, mastered):
                colors[node_id] = NodeCategory.LOCKED
            elif node_id in mastered:
                colors[node_id] = NodeCategory.MASTERED
            elif any(card.id in states for card in cards.cards_for(node_id)):
                colors[node_id] = NodeCategory.LEARNING
            else:
                colors[node_id] = NodeCategory.UNLOCKED_UNSTARTED
        return colors

    def to_dot(self, learner_id: str, now: datetime | None = None) -> str:
        """Graphviz DOT source, with edges pointing from prerequisite to dependent."""
        snapshot = self.tracker.coordinator.snapshot()
        colors = self._categorize(learner_id, snapshot, now)
        graph = snapshot.graph

        lines = [
            "digraph course {",
            "    rankdir=LR;",
            '    node [shape=box, style="rounded,filled", fontname="Helvetica"];',
        ]
        for node_id, category in colors.items():
            attrs = [f'fillcolor="{CATEGORY_COLORS[category]}"']
            if category is NodeCategory.UNLOCKED_UNSTARTED:
                attrs.append("penwidth=2.5")
            lines.append(f"    {_quote(node_id)} [{', '.join(attrs)}];")
        for node_id, prerequisite in graph.edges():
            lines.append(f"    {_quote(prerequisite)} -> {_quote(node_id)};")
        if len(graph):
            lines.append(f'    {_quote(FINISH_NODE)} [label="Finish", shape=doublecircle, fillcolor="#ffffff"];')
            for leaf in graph.leaves():
                lines.append(f"    {_quote(leaf)} -> {_quote(FINISH_NODE)};")
        lines.append("}")
        return "\n".join(lines) + "\n"


def _quote(identifier: str) -> str:
    escaped = identifier.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
