"""
Delivery layer.

Components:
- MemoryState / Rating / Phase: per-card scheduling state
- FSRSScheduler: FSRS-4.5 memory model
- StateStore: in-memory and SQLAlchemy persistence of memory states
"""
from course_engine.delivery.memory_state import MemoryState, Phase, Rating
from course_engine.delivery.scheduler import FSRSScheduler, SchedulerConfig
from course_engine.delivery.state_store import InMemoryStateStore, SqlStateStore, StateStore

__all__ = [
    "FSRSScheduler",
    "InMemoryStateStore",
    "MemoryState",
    "Phase",
    "Rating",
    "SchedulerConfig",
    "SqlStateStore",
    "StateStore",
]
