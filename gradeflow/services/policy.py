"""访问策略：集中判断调用方能否读写某个实体。

所有权限判断只在这里实现，与传输层无关，便于单独测试。归属关系沿
feedback → submission → assignment → class 链条由关系索引推导。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Type, Union

from gradeflow.db import Base
from gradeflow.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from gradeflow.models import (
    Assignment,
    Enrollment,
    EntityKind,
    Feedback,
    SchoolClass,
    Submission,
    User,
    UserRole,
)
from gradeflow.services.relationships import RelationshipIndex
from gradeflow.services.store import EntityStore

_MODELS: Dict[EntityKind, Type[Base]] = {
    EntityKind.USER: User,
    EntityKind.CLASS: SchoolClass,
    EntityKind.ENROLLMENT: Enrollment,
    EntityKind.ASSIGNMENT: Assignment,
    EntityKind.SUBMISSION: Submission,
    EntityKind.FEEDBACK: Feedback,
}


@dataclass(frozen=True)
class Caller:
    """发起请求的身份：只关心 id 与角色。"""

    id: int
    role: UserRole

    @classmethod
    def of(cls, user: User) -> "Caller":
        return cls(id=user.id, role=UserRole(user.role))

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT


class AccessPolicy:
    """读写权限判定。"""

    def __init__(self, store: EntityStore, index: RelationshipIndex) -> None:
        self.store = store
        self.index = index

    # === 判定 ===

    def can_read(self, caller: Optional[Caller], kind: Union[EntityKind, str], entity_id: int) -> bool:
        if caller is None:
            return False
        kind = EntityKind(kind)
        if kind == EntityKind.USER:
            return self._can_read_user(caller, entity_id)

        class_id = self._class_id_of(kind, entity_id)
        if class_id is None:
            return False
        if caller.is_teacher:
            return self.index.is_owner(caller.id, class_id)
        if kind in (EntityKind.CLASS, EntityKind.ASSIGNMENT):
            return self.index.is_enrolled(caller.id, class_id)
        return self._student_id_of(kind, entity_id) == caller.id

    def can_write(self, caller: Optional[Caller], kind: Union[EntityKind, str], entity_id: int) -> bool:
        if caller is None:
            return False
        kind = EntityKind(kind)
        if kind == EntityKind.USER:
            return caller.id == entity_id and self.store.get(User, entity_id) is not None

        class_id = self._class_id_of(kind, entity_id)
        if class_id is None:
            return False
        if caller.is_teacher:
            # 提交内容归学生所有，教师只能通过复核改变提交状态
            if kind == EntityKind.SUBMISSION:
                return False
            return self.index.is_owner(caller.id, class_id)
        if kind == EntityKind.SUBMISSION:
            return self._student_id_of(kind, entity_id) == caller.id
        return False

    def can_review(self, caller: Optional[Caller], submission_id: int) -> bool:
        """只有提交所属班级的拥有者教师可以复核或手动评分。"""
        if caller is None or not caller.is_teacher:
            return False
        class_id = self.index.class_id_of_submission(submission_id)
        return class_id is not None and self.index.is_owner(caller.id, class_id)

    # === 边界断言 ===

    def require_caller(self, caller: Optional[Caller]) -> Caller:
        if caller is None:
            raise UnauthenticatedError()
        return caller

    def require_role(self, caller: Optional[Caller], role: UserRole) -> Caller:
        caller = self.require_caller(caller)
        if caller.role != role:
            label = "教师" if role == UserRole.TEACHER else "学生"
            raise ForbiddenError(f"需要{label}权限")
        return caller

    def ensure_read(self, caller: Optional[Caller], kind: Union[EntityKind, str], entity_id: int) -> None:
        caller = self.require_caller(caller)
        kind = EntityKind(kind)
        self._ensure_exists(kind, entity_id)
        if not self.can_read(caller, kind, entity_id):
            raise ForbiddenError(f"无权查看该{kind.value}", {"kind": kind.value, "id": entity_id})

    def ensure_write(self, caller: Optional[Caller], kind: Union[EntityKind, str], entity_id: int) -> None:
        caller = self.require_caller(caller)
        kind = EntityKind(kind)
        self._ensure_exists(kind, entity_id)
        if not self.can_write(caller, kind, entity_id):
            raise ForbiddenError(f"无权修改该{kind.value}", {"kind": kind.value, "id": entity_id})

    def ensure_review(self, caller: Optional[Caller], submission_id: int) -> None:
        caller = self.require_caller(caller)
        self._ensure_exists(EntityKind.SUBMISSION, submission_id)
        if not self.can_review(caller, submission_id):
            raise ForbiddenError("只有班级的任课教师可以评阅该提交", {"submission_id": submission_id})

    # === 内部 ===

    def _ensure_exists(self, kind: EntityKind, entity_id: int) -> None:
        model = _MODELS[kind]
        if self.store.get(model, entity_id) is None:
            raise NotFoundError(model.__name__, entity_id)

    def _class_id_of(self, kind: EntityKind, entity_id: int) -> Optional[int]:
        if kind == EntityKind.CLASS:
            cls = self.store.get(SchoolClass, entity_id)
            return cls.id if cls else None
        if kind == EntityKind.ENROLLMENT:
            enrollment = self.store.get(Enrollment, entity_id)
            return enrollment.class_id if enrollment else None
        if kind == EntityKind.ASSIGNMENT:
            return self.index.class_id_of_assignment(entity_id)
        if kind == EntityKind.SUBMISSION:
            return self.index.class_id_of_submission(entity_id)
        if kind == EntityKind.FEEDBACK:
            return self.index.class_id_of_feedback(entity_id)
        return None

    def _student_id_of(self, kind: EntityKind, entity_id: int) -> Optional[int]:
        if kind == EntityKind.ENROLLMENT:
            enrollment = self.store.get(Enrollment, entity_id)
            return enrollment.student_id if enrollment else None
        if kind == EntityKind.FEEDBACK:
            feedback = self.store.get(Feedback, entity_id)
            if feedback is None:
                return None
            entity_id = feedback.submission_id
        submission = self.store.get(Submission, entity_id)
        return submission.student_id if submission else None

    def _can_read_user(self, caller: Caller, user_id: int) -> bool:
        if caller.id == user_id:
            return self.store.get(User, user_id) is not None
        if caller.is_teacher:
            # 教师可以查看自己班级里的学生
            return any(
                self.index.is_enrolled(user_id, cls.id)
                for cls in self.index.classes_owned_by(caller.id)
            )
        # 学生可以查看自己所在班级的任课教师
        return any(cls.teacher_id == user_id for cls in self.index.classes_enrolled_in(caller.id))
