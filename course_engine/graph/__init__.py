"""Course graph: a validated DAG of concepts and their prerequisites."""
from course_engine.graph.course_graph import CourseGraph, Node

__all__ = [
    "CourseGraph",
    "Node",
]
