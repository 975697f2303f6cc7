"""核心 SQLAlchemy 模型导出。"""

from gradeflow.models.assignment import Assignment
from gradeflow.models.classroom import Enrollment, SchoolClass
from gradeflow.models.enums import (
    AssignmentStatus,
    AssignmentType,
    EntityKind,
    SubmissionStatus,
    UserRole,
)
from gradeflow.models.submission import Feedback, Submission
from gradeflow.models.user import User

__all__ = [
    "Assignment",
    "AssignmentStatus",
    "AssignmentType",
    "Enrollment",
    "EntityKind",
    "Feedback",
    "SchoolClass",
    "Submission",
    "SubmissionStatus",
    "User",
    "UserRole",
]
