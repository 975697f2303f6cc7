"""聚合视图：仪表盘、待复核队列与学生统计。

每次调用都基于当前实体状态重新计算，不做任何缓存。
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select

from gradeflow.models import Assignment, SchoolClass, Submission, SubmissionStatus, User
from gradeflow.schemas.gradebook import (
    AssignmentRead,
    AssignmentWithStats,
    FeedbackRead,
    StudentStats,
    SubmissionDetails,
    SubmissionRead,
)
from gradeflow.services.lifecycle import effective_score
from gradeflow.services.relationships import RelationshipIndex
from gradeflow.services.store import EntityStore

UNKNOWN_CLASS = "Unknown Class"
UNKNOWN_STUDENT = "Unknown Student"
UNKNOWN_ASSIGNMENT = "Unknown Assignment"

COMPLETED_STATUSES = (SubmissionStatus.AI_GRADED, SubmissionStatus.TEACHER_REVIEWED)


def round_half_up(value: float) -> int:
    return int(value + 0.5)


class AggregateViews:
    def __init__(self, store: EntityStore, index: RelationshipIndex) -> None:
        self.store = store
        self.index = index

    def recent_assignments(self, teacher_id: int, limit: int = 5) -> List[AssignmentWithStats]:
        """教师名下班级的作业，按创建时间倒序。"""

        class_ids = [cls.id for cls in self.index.classes_owned_by(teacher_id)]
        if not class_ids:
            return []
        assignments = self.store.find(
            Assignment,
            Assignment.class_id.in_(class_ids),
            order_by=[Assignment.created_at.desc(), Assignment.id.desc()],
            limit=limit,
        )

        results = []
        for assignment in assignments:
            cls = self.store.get(SchoolClass, assignment.class_id)
            base = AssignmentRead.model_validate(assignment).model_dump()
            results.append(
                AssignmentWithStats(
                    **base,
                    class_name=cls.name if cls else UNKNOWN_CLASS,
                    submission_count=self.store.count(
                        Submission, Submission.assignment_id == assignment.id
                    ),
                    total_students=self.index.count_students(assignment.class_id),
                )
            )
        return results

    def pending_reviews(self, teacher_id: int) -> List[SubmissionDetails]:
        """教师名下班级中状态恰为 ai_graded 的提交。"""

        class_ids = [cls.id for cls in self.index.classes_owned_by(teacher_id)]
        if not class_ids:
            return []
        stmt = (
            select(Submission)
            .join(Assignment, Assignment.id == Submission.assignment_id)
            .where(
                Assignment.class_id.in_(class_ids),
                Submission.status == SubmissionStatus.AI_GRADED,
            )
            .order_by(Submission.submitted_at, Submission.id)
        )
        with self.store.transaction() as session:
            submissions = list(session.scalars(stmt).all())
            return [self.details_of(submission) for submission in submissions]

    def student_stats(self, student_id: int) -> StudentStats:
        assignment_ids = {
            assignment.id
            for assignment in self.index.assignments_in(
                cls.id for cls in self.index.classes_enrolled_in(student_id)
            )
        }
        submissions = self.index.submissions_of_student(student_id)
        submitted_ids = {submission.assignment_id for submission in submissions}

        completed = [s for s in submissions if s.status in COMPLETED_STATUSES]
        scores = [
            score
            for score in (effective_score(self.index.feedback_for(s.id)) for s in completed)
            if score is not None
        ]
        average: Optional[int] = None
        if scores:
            average = round_half_up(sum(scores) / len(scores))

        return StudentStats(
            pending_assignments=len(assignment_ids - submitted_ids),
            completed_assignments=len(completed),
            average_score=average,
        )

    def details_of(self, submission: Submission) -> SubmissionDetails:
        """提交附带学生姓名、作业标题与反馈。"""

        student = self.store.get(User, submission.student_id)
        assignment = self.store.get(Assignment, submission.assignment_id)
        feedback = self.index.feedback_for(submission.id)
        return SubmissionDetails(
            **SubmissionRead.model_validate(submission).model_dump(),
            student_name=student.full_name if student else UNKNOWN_STUDENT,
            assignment_title=assignment.title if assignment else UNKNOWN_ASSIGNMENT,
            feedback=FeedbackRead.model_validate(feedback) if feedback else None,
        )
