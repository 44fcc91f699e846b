"""Course versioning: validated, atomic replacement of the active course."""
from course_engine.versioning.coordinator import CourseSnapshot, CourseVersion, PendingUpdate, VersionCoordinator
from course_engine.versioning.repository import CourseRepository

__all__ = [
    "CourseRepository",
    "CourseSnapshot",
    "CourseVersion",
    "PendingUpdate",
    "VersionCoordinator",
]
