"""
Course Graph Engine.

Prerequisite-gated spaced repetition over a versioned course graph:
- graph: course DAG validation, ranking and visualization
- content: input records and the card deck
- delivery: FSRS scheduling and memory-state storage
- adaptive: mastery derivation and the per-learner progress tracker
- versioning: atomic (graph, deck) version swaps
"""

__version__ = "1.0.0"
