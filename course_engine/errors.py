"""
Error taxonomy for the course engine.

Validation problems (graph and deck) are collected as values and reported as
a list; runtime problems (unknown card, unknown learner, half-staged updates)
are raised as exceptions carrying an ErrorKind so the bot layer can map them
to user-facing messages without string matching.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    """Machine-readable error categories."""

    # Graph rules
    CYCLE = "cycle"
    UNKNOWN_REFERENCE = "unknown_reference"
    DUPLICATE_NODE = "duplicate_node"
    DUPLICATE_EDGE = "duplicate_edge"

    # Deck rules
    ORPHAN_CARD = "orphan_card"
    DUPLICATE_CARD = "duplicate_card"
    NODE_WITHOUT_CARDS = "node_without_cards"

    # Runtime
    UNKNOWN_CARD = "unknown_card"
    UNKNOWN_LEARNER = "unknown_learner"
    INCOMPLETE_UPDATE = "incomplete_update"
    NO_ACTIVE_COURSE = "no_active_course"


# =============================================================================
# Validation errors (values)
# =============================================================================


@dataclass(frozen=True)
class GraphError:
    """A rule violation in a candidate course graph."""

    kind: ErrorKind
    node_id: str
    message: str
    related_id: str | None = None
    cycle: tuple[str, ...] = field(default_factory=tuple)

    def describe(self) -> str:
        if self.kind is ErrorKind.CYCLE:
            path = " -> ".join([*self.cycle, self.cycle[0]]) if self.cycle else self.node_id
            return f"Cycle in prerequisites: {path}"
        return self.message


@dataclass(frozen=True)
class DeckError:
    """A rule violation in a candidate card deck."""

    kind: ErrorKind
    message: str
    card_id: str | None = None
    node_id: str | None = None

    def describe(self) -> str:
        return self.message


ValidationError = GraphError | DeckError


# =============================================================================
# Exceptions
# =============================================================================


class CourseEngineError(Exception):
    """Base class for every recoverable engine failure."""

    kind: ErrorKind | None = None


class GraphValidationError(CourseEngineError):
    """Raised when a candidate graph breaks one or more rules."""

    def __init__(self, errors: Sequence[GraphError]):
        self.errors: list[GraphError] = list(errors)
        super().__init__(f"Course graph is invalid ({len(self.errors)} error(s))")


class DeckValidationError(CourseEngineError):
    """Raised when a candidate deck breaks one or more rules."""

    def __init__(self, errors: Sequence[DeckError]):
        self.errors: list[DeckError] = list(errors)
        super().__init__(f"Card deck is invalid ({len(self.errors)} error(s))")


class CourseValidationError(CourseEngineError):
    """Raised when a proposed (graph, deck) pair is rejected."""

    def __init__(self, errors: Sequence[ValidationError]):
        self.errors: list[ValidationError] = list(errors)
        super().__init__(f"Course update rejected ({len(self.errors)} error(s))")


class UnknownCardError(CourseEngineError):
    """The card is not part of the active deck."""

    kind = ErrorKind.UNKNOWN_CARD

    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(f"Card '{card_id}' does not exist in the active course")


class UnknownLearnerError(CourseEngineError):
    """The learner was never registered (or has been forgotten)."""

    kind = ErrorKind.UNKNOWN_LEARNER

    def __init__(self, learner_id: str):
        self.learner_id = learner_id
        super().__init__(f"Learner '{learner_id}' is not registered")


class IncompleteUpdateError(CourseEngineError):
    """A staged update is missing its graph or its deck half."""

    kind = ErrorKind.INCOMPLETE_UPDATE

    def __init__(self, missing: str):
        self.missing = missing
        super().__init__(f"Cannot confirm course update: no {missing} has been staged")


class NoActiveCourseError(CourseEngineError):
    """No course version has been accepted yet."""

    kind = ErrorKind.NO_ACTIVE_COURSE

    def __init__(self) -> None:
        super().__init__("No course has been activated yet")
