"""业务枚举定义 - 角色、作业类型与状态、提交状态。"""

import enum


class UserRole(str, enum.Enum):
    """用户角色枚举。"""
    TEACHER = "teacher"
    STUDENT = "student"


class AssignmentType(str, enum.Enum):
    """作业类型。"""
    ESSAY = "essay"
    MULTIPLE_CHOICE = "multiple_choice"
    SHORT_ANSWER = "short_answer"
    PROJECT = "project"
    OTHER = "other"


class AssignmentStatus(str, enum.Enum):
    """作业状态。"""
    OPEN = "open"          # 开放提交
    CLOSED = "closed"      # 已截止
    GRADED = "graded"      # 已全部评分


class SubmissionStatus(str, enum.Enum):
    """提交状态机：submitted → ai_graded → teacher_reviewed，只进不退。"""
    SUBMITTED = "submitted"                # 已提交，等待自动评分
    AI_GRADED = "ai_graded"                # 已由自动评分给出结果
    TEACHER_REVIEWED = "teacher_reviewed"  # 教师已复核

    @property
    def rank(self) -> int:
        return _SUBMISSION_ORDER.index(self)

    def can_advance_to(self, target: "SubmissionStatus") -> bool:
        """同状态视为合法（复核幂等），倒退不合法。"""
        return target.rank >= self.rank


_SUBMISSION_ORDER = [
    SubmissionStatus.SUBMITTED,
    SubmissionStatus.AI_GRADED,
    SubmissionStatus.TEACHER_REVIEWED,
]


class EntityKind(str, enum.Enum):
    """权限判定时使用的实体类别。"""
    USER = "user"
    CLASS = "class"
    ENROLLMENT = "enrollment"
    ASSIGNMENT = "assignment"
    SUBMISSION = "submission"
    FEEDBACK = "feedback"
