"""
Adaptive gating.

Components:
- mastery: pure derivation of mastered and unlocked nodes
- ProgressTracker: next-card selection and review submission per learner
"""
from course_engine.adaptive.mastery import mastered_nodes, unlocked_nodes
from course_engine.adaptive.progress_tracker import ProgressTracker

__all__ = [
    "ProgressTracker",
    "mastered_nodes",
    "unlocked_nodes",
]
