"""服务层的输入/输出数据契约。

输入模型在服务边界校验，失败统一转换为带逐字段错误的 ValidationError；
输出模型支持 ``from_attributes``，可直接由 ORM 实体构造。
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from gradeflow.db import as_utc
from gradeflow.exceptions import ValidationError
from gradeflow.models.enums import (
    AssignmentStatus,
    AssignmentType,
    SubmissionStatus,
    UserRole,
)


# === 输入 ===

class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: UserRole
    department: Optional[str] = None


class ClassCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class AssignmentCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    class_id: int
    type: AssignmentType
    due_date: datetime
    status: AssignmentStatus = AssignmentStatus.OPEN
    rubric: Optional[Dict[str, Any]] = None

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AssignmentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    due_date: Optional[datetime] = None
    status: Optional[AssignmentStatus] = None
    rubric: Optional[Dict[str, Any]] = None

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else value


class SubmissionCreate(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("提交内容不能为空")
        return value


class ReviewInput(BaseModel):
    """教师复核的入参，``expected_version`` 用于检测并发覆盖。"""

    teacher_score: Optional[int] = Field(default=None, ge=0, le=100)
    teacher_comments: Optional[str] = None
    rubric_scores: Optional[Dict[str, int]] = None
    expected_version: Optional[int] = None

    @field_validator("rubric_scores")
    @classmethod
    def _rubric_range(cls, value: Optional[Dict[str, int]]) -> Optional[Dict[str, int]]:
        if value is None:
            return value
        for name, score in value.items():
            if not 0 <= score <= 100:
                raise ValueError(f"{name} 的分数必须在 0-100 之间")
        return value


# === 输出 ===

class UserRead(BaseModel):
    id: int
    username: str
    first_name: str
    last_name: str
    role: UserRole
    department: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClassRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    teacher_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class EnrollmentRead(BaseModel):
    id: int
    student_id: int
    class_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class AssignmentRead(BaseModel):
    id: int
    title: str
    description: str
    class_id: int
    type: AssignmentType
    due_date: datetime
    status: AssignmentStatus
    rubric: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class AssignmentWithStats(AssignmentRead):
    class_name: str
    submission_count: int
    total_students: int


class AIComments(BaseModel):
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    comments: str = ""


class FeedbackRead(BaseModel):
    id: int
    submission_id: int
    ai_score: Optional[int] = None
    teacher_score: Optional[int] = None
    effective_score: Optional[int] = None
    ai_comments: Optional[AIComments] = None
    teacher_comments: Optional[str] = None
    rubric_scores: Dict[str, Any] = Field(default_factory=dict)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubmissionRead(BaseModel):
    id: int
    assignment_id: int
    student_id: int
    content: str
    status: SubmissionStatus
    submitted_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubmissionDetails(SubmissionRead):
    student_name: str
    assignment_title: str
    feedback: Optional[FeedbackRead] = None


class SubmitResult(BaseModel):
    """提交结果：评分失败时提交依然成功，``grading_status`` 为 pending；
    教师已先行评分时为 superseded。"""

    submission: SubmissionRead
    feedback: Optional[FeedbackRead] = None
    grading_status: str
    grading_error: Optional[str] = None

    model_config = {"from_attributes": True}


class StudentStats(BaseModel):
    pending_assignments: int
    completed_assignments: int
    average_score: Optional[int] = None


M = TypeVar("M", bound=BaseModel)


def parse_input(schema: Type[M], data: Any) -> M:
    """在服务边界校验入参，失败时转换为带逐字段错误的 ValidationError。"""

    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return schema.model_validate(dict(data) if isinstance(data, Mapping) else data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
