"""用户模型定义 - 教师/学生双角色。"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Enum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from gradeflow.db import Base, UTCDateTime
from gradeflow.exceptions import ValidationError
from gradeflow.models.enums import UserRole


class User(Base):
    """用户模型。

    - 教师：班级的拥有者、作业的发布者、提交的复核者
    - 学生：选课者、作业的提交者
    角色在创建后不可修改。
    """

    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @validates("role")
    def _validate_role(self, key: str, value):
        role = UserRole(value)
        if self.role is not None and UserRole(self.role) != role:
            raise ValidationError.for_field("role", "用户角色创建后不可修改")
        return role

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, role={self.role.value})>"
