"""关系索引：从实体存储派生班级归属、选课与作业归属关系。

不保存任何独立状态。按 teacher_id / student_id / class_id 的查询都走
模型上声明的数据库索引，而不是全表扫描。
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import select

from gradeflow.models import (
    Assignment,
    Enrollment,
    Feedback,
    SchoolClass,
    Submission,
    User,
    UserRole,
)
from gradeflow.services.store import EntityStore


class RelationshipIndex:
    """回答“教师/学生 X 有哪些班级”“班级 Y 有哪些作业”等问题。"""

    def __init__(self, store: EntityStore) -> None:
        self.store = store

    # === 班级 ===

    def classes_owned_by(self, teacher_id: int) -> List[SchoolClass]:
        return self.store.find(
            SchoolClass, SchoolClass.teacher_id == teacher_id, order_by=[SchoolClass.id]
        )

    def classes_enrolled_in(self, student_id: int) -> List[SchoolClass]:
        stmt = (
            select(SchoolClass)
            .join(Enrollment, Enrollment.class_id == SchoolClass.id)
            .where(Enrollment.student_id == student_id)
            .order_by(SchoolClass.id)
        )
        with self.store.transaction() as session:
            return list(session.scalars(stmt).all())

    def is_owner(self, teacher_id: int, class_id: int) -> bool:
        cls = self.store.get(SchoolClass, class_id)
        return cls is not None and cls.teacher_id == teacher_id

    def is_enrolled(self, student_id: int, class_id: int) -> bool:
        return self.enrollment_of(student_id, class_id) is not None

    def enrollment_of(self, student_id: int, class_id: int) -> Optional[Enrollment]:
        return self.store.first(
            Enrollment,
            Enrollment.student_id == student_id,
            Enrollment.class_id == class_id,
        )

    # === 成员 ===

    def students_of(self, class_id: int) -> List[User]:
        """班级内已选课的学生（仅 role=student）。"""
        stmt = (
            select(User)
            .join(Enrollment, Enrollment.student_id == User.id)
            .where(Enrollment.class_id == class_id, User.role == UserRole.STUDENT)
            .order_by(User.id)
        )
        with self.store.transaction() as session:
            return list(session.scalars(stmt).all())

    def count_students(self, class_id: int) -> int:
        return len(self.students_of(class_id))

    # === 作业与提交 ===

    def assignments_of(self, class_id: int) -> List[Assignment]:
        return self.assignments_in([class_id])

    def assignments_in(self, class_ids: Iterable[int]) -> List[Assignment]:
        ids = list(class_ids)
        if not ids:
            return []
        return self.store.find(
            Assignment, Assignment.class_id.in_(ids), order_by=[Assignment.id]
        )

    def submissions_of_assignment(self, assignment_id: int) -> List[Submission]:
        return self.store.find(
            Submission,
            Submission.assignment_id == assignment_id,
            order_by=[Submission.id],
        )

    def submissions_of_student(
        self, student_id: int, assignment_id: Optional[int] = None
    ) -> List[Submission]:
        criteria = [Submission.student_id == student_id]
        if assignment_id is not None:
            criteria.append(Submission.assignment_id == assignment_id)
        return self.store.find(Submission, *criteria, order_by=[Submission.id])

    def feedback_for(self, submission_id: int) -> Optional[Feedback]:
        return self.store.first(Feedback, Feedback.submission_id == submission_id)

    # === 归属链 ===

    def class_id_of_assignment(self, assignment_id: int) -> Optional[int]:
        assignment = self.store.get(Assignment, assignment_id)
        return assignment.class_id if assignment else None

    def class_id_of_submission(self, submission_id: int) -> Optional[int]:
        submission = self.store.get(Submission, submission_id)
        if submission is None:
            return None
        return self.class_id_of_assignment(submission.assignment_id)

    def class_id_of_feedback(self, feedback_id: int) -> Optional[int]:
        feedback = self.store.get(Feedback, feedback_id)
        if feedback is None:
            return None
        return self.class_id_of_submission(feedback.submission_id)
