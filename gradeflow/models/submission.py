"""提交与反馈模型定义。"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Enum, ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, validates
from sqlalchemy.types import JSON

from gradeflow.db import Base, UTCDateTime
from gradeflow.exceptions import InvalidTransitionError
from gradeflow.models.enums import SubmissionStatus


class Submission(Base):
    """作业提交。

    状态只能沿 submitted → ai_graded → teacher_reviewed 前进，
    由 ``_validate_status`` 在任何写入路径上强制。
    """

    __tablename__ = "submissions"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 关联
    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False, index=True
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SubmissionStatus] = mapped_column(
        Enum(SubmissionStatus), default=SubmissionStatus.SUBMITTED, nullable=False
    )

    # 时间戳
    submitted_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @validates("status")
    def _validate_status(self, key: str, value):
        target = SubmissionStatus(value)
        current = self.status
        if current is None:
            if target != SubmissionStatus.SUBMITTED:
                raise InvalidTransitionError("新提交的初始状态必须是 submitted")
            return target
        if not SubmissionStatus(current).can_advance_to(target):
            raise InvalidTransitionError(
                f"提交状态不能从 {SubmissionStatus(current).value} 回退到 {target.value}",
                {"from": SubmissionStatus(current).value, "to": target.value},
            )
        return target

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, assignment_id={self.assignment_id}, status={self.status})>"


class Feedback(Base):
    """评分反馈，与提交一一对应。

    ``teacher_score`` 存在时优先于 ``ai_score``；``version`` 每次教师写入递增，
    用于发现并发覆盖。
    """

    __tablename__ = "feedbacks"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[int] = mapped_column(
        ForeignKey("submissions.id"), nullable=False, unique=True
    )

    ai_score: Mapped[Optional[int]] = mapped_column(Integer)       # 0-100
    teacher_score: Mapped[Optional[int]] = mapped_column(Integer)  # 0-100

    # 格式: {"strengths": [...], "improvements": [...], "comments": "..."}
    ai_comments: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    teacher_comments: Mapped[Optional[str]] = mapped_column(Text)

    # 格式: {"content": 80, "organization": 70, ...}
    rubric_scores: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def effective_score(self) -> Optional[int]:
        if self.teacher_score is not None:
            return self.teacher_score
        return self.ai_score

    def __repr__(self) -> str:
        return f"<Feedback(id={self.id}, submission_id={self.submission_id})>"
