"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
from datetime import UTC, datetime

import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from course_engine.adaptive.progress_tracker import ProgressTracker  # noqa: E402
from course_engine.delivery.state_store import InMemoryStateStore  # noqa: E402
from course_engine.versioning.coordinator import VersionCoordinator  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def now():
    """A fixed review clock."""
    return datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


@pytest.fixture
def settings():
    """Settings that never touch the user's home directory or .env file."""
    return Settings(_env_file=None, database_url="sqlite:///:memory:")


@pytest.fixture
def chain_nodes():
    """A -> B -> C chain plus an independent root D (B requires A, C requires B)."""
    return [
        {"id": "A", "prerequisites": []},
        {"id": "B", "prerequisites": ["A"]},
        {"id": "C", "prerequisites": ["B"]},
        {"id": "D", "prerequisites": []},
    ]


@pytest.fixture
def chain_cards():
    """Two cards for A, one for each other node."""
    return [
        {"id": "a1", "node_id": "A", "question": "What is A?", "answer": "The first concept"},
        {"id": "a2", "node_id": "A", "question": "Why A?", "answer": "Because"},
        {"id": "b1", "node_id": "B", "question": "What is B?", "answer": "Built on A"},
        {"id": "c1", "node_id": "C", "question": "What is C?", "answer": "Built on B"},
        {"id": "d1", "node_id": "D", "question": "What is D?", "answer": "Independent"},
    ]


@pytest.fixture
def coordinator(chain_nodes, chain_cards):
    """A coordinator with the chain course already active."""
    coordinator = VersionCoordinator()
    coordinator.propose_update(chain_nodes, chain_cards)
    return coordinator


@pytest.fixture
def tracker(coordinator):
    """In-memory tracker with learner 'alice' registered."""
    tracker = ProgressTracker(coordinator, store=InMemoryStateStore())
    tracker.register_learner("alice")
    return tracker
