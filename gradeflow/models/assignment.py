"""作业模型定义。"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from gradeflow.db import Base, UTCDateTime
from gradeflow.models.enums import AssignmentStatus, AssignmentType


class Assignment(Base):
    """作业，隶属于唯一的班级。"""

    __tablename__ = "assignments"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    class_id: Mapped[int] = mapped_column(
        ForeignKey("classes.id"), nullable=False, index=True
    )
    type: Mapped[AssignmentType] = mapped_column(Enum(AssignmentType), nullable=False)
    due_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[AssignmentStatus] = mapped_column(
        Enum(AssignmentStatus), default=AssignmentStatus.OPEN, nullable=False
    )

    # 评分标准
    # 格式: {"criteria": [{"name": "Content", "weight": 30, "description": "..."}]}
    rubric: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)

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

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, title={self.title}, type={self.type.value})>"
