# SQLAlchemy models
from .base import Base
from .course import CourseVersionRow
from .progress import LearnerRow, MemoryStateRow

__all__ = [
    "Base",
    "CourseVersionRow",
    "LearnerRow",
    "MemoryStateRow",
]
