"""提交生命周期：submitted → ai_graded → teacher_reviewed。

提交先落库（状态 submitted），再在锁外调用评分方；评分结果在第二个
独立的原子单元中写入：创建 Feedback 与状态迁移要么同时发生，要么都不发生。
评分失败不会回滚提交，也不在这里重试。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple, Union

from gradeflow.exceptions import ConflictError, ForbiddenError, OracleError, ValidationError
from gradeflow.models import (
    Assignment,
    AssignmentStatus,
    EntityKind,
    Feedback,
    Submission,
    SubmissionStatus,
)
from gradeflow.schemas.gradebook import ReviewInput, SubmissionCreate, parse_input
from gradeflow.services.grading import AssignmentContext, GradingOracle, parse_grading_payload
from gradeflow.services.policy import AccessPolicy, Caller
from gradeflow.services.relationships import RelationshipIndex
from gradeflow.services.store import EntityStore, touch

logger = logging.getLogger(__name__)


def effective_score(feedback: Optional[Feedback]) -> Optional[int]:
    """教师分优先，其次自动评分，都没有时为 ``None``。"""
    if feedback is None:
        return None
    if feedback.teacher_score is not None:
        return feedback.teacher_score
    return feedback.ai_score


@dataclass
class SubmitOutcome:
    """``submit`` / ``retry_grading`` 的结果。评分失败时 ``feedback`` 为空。"""

    submission: Submission
    feedback: Optional[Feedback] = None
    grading_error: Optional[str] = None

    @property
    def grading_status(self) -> str:
        """本次写入了自动评分为 graded；教师已先行评分、自动评分被丢弃为
        superseded；其余为 pending。
        """
        if self.feedback is not None:
            return "graded"
        if self.grading_error is None and self.submission.status != SubmissionStatus.SUBMITTED:
            return "superseded"
        return "pending"


class SubmissionLifecycle:
    def __init__(
        self,
        store: EntityStore,
        index: RelationshipIndex,
        policy: AccessPolicy,
        oracle: GradingOracle,
    ) -> None:
        self.store = store
        self.index = index
        self.policy = policy
        self.oracle = oracle

    # === 提交 ===

    def submit(
        self,
        caller: Optional[Caller],
        assignment_id: int,
        student_id: int,
        content: Any,
    ) -> SubmitOutcome:
        """学生提交作业，随后同步调用一次自动评分。"""

        caller = self.policy.require_caller(caller)
        payload = parse_input(SubmissionCreate, {"content": content})

        with self.store.transaction():
            assignment = self.store.require(Assignment, assignment_id)
            if not caller.is_student or caller.id != student_id:
                raise ForbiddenError("只能以学生本人身份提交作业")
            if not self.index.is_enrolled(student_id, assignment.class_id):
                raise ForbiddenError(
                    "未加入该作业所属班级",
                    {"assignment_id": assignment_id, "class_id": assignment.class_id},
                )
            if assignment.status != AssignmentStatus.OPEN:
                raise ConflictError(
                    "作业已不再接受提交", {"status": AssignmentStatus(assignment.status).value}
                )
            existing = self.index.submissions_of_student(student_id, assignment_id)
            if existing:
                raise ConflictError(
                    "已提交过该作业，请勿重复提交", {"submission_id": existing[0].id}
                )
            submission = self.store.create(
                Submission,
                {
                    "assignment_id": assignment_id,
                    "student_id": student_id,
                    "content": payload.content,
                },
            )
            context = AssignmentContext.from_assignment(assignment)

        logger.info(
            "submission %s created for assignment %s by student %s",
            submission.id,
            assignment_id,
            student_id,
        )
        return self._grade(submission, context)

    def retry_grading(self, caller: Optional[Caller], submission_id: int) -> SubmitOutcome:
        """对仍处于 submitted 的提交重新调用一次自动评分。"""

        caller = self.policy.require_caller(caller)
        with self.store.transaction():
            submission = self.store.require(Submission, submission_id)
            allowed = self.policy.can_review(caller, submission_id) or (
                caller.is_student
                and self.policy.can_write(caller, EntityKind.SUBMISSION, submission_id)
            )
            if not allowed:
                raise ForbiddenError("无权重新评分该提交", {"submission_id": submission_id})
            if (
                submission.status != SubmissionStatus.SUBMITTED
                or self.index.feedback_for(submission_id) is not None
            ):
                raise ConflictError(
                    "只有等待自动评分的提交可以重新评分",
                    {"status": SubmissionStatus(submission.status).value},
                )
            assignment = self.store.require(Assignment, submission.assignment_id)
            context = AssignmentContext.from_assignment(assignment)

        logger.info("retrying automated grading for submission %s", submission_id)
        return self._grade(submission, context)

    # === 教师评阅 ===

    def review(
        self,
        caller: Optional[Caller],
        feedback_id: int,
        data: Union[ReviewInput, Mapping[str, Any]],
    ) -> Feedback:
        """教师复核：合并教师字段，提交状态迁移到 teacher_reviewed。

        重复以相同参数调用不会改变 ``version``，只刷新 ``updated_at``。
        """

        caller = self.policy.require_caller(caller)
        payload = parse_input(ReviewInput, data)

        with self.store.transaction() as session:
            feedback = self.store.require(Feedback, feedback_id)
            self.policy.ensure_review(caller, feedback.submission_id)
            if payload.expected_version is not None and payload.expected_version != feedback.version:
                raise ConflictError(
                    "反馈已被其他人修改",
                    {"expected_version": payload.expected_version, "version": feedback.version},
                )

            changed = False
            if payload.teacher_score is not None and payload.teacher_score != feedback.teacher_score:
                feedback.teacher_score = payload.teacher_score
                changed = True
            if (
                payload.teacher_comments is not None
                and payload.teacher_comments != feedback.teacher_comments
            ):
                feedback.teacher_comments = payload.teacher_comments
                changed = True
            if payload.rubric_scores is not None:
                merged = {**(feedback.rubric_scores or {}), **payload.rubric_scores}
                if merged != feedback.rubric_scores:
                    feedback.rubric_scores = merged
                    changed = True
            if changed:
                feedback.version += 1
            touch(feedback)

            submission = session.get(Submission, feedback.submission_id)
            submission.status = SubmissionStatus.TEACHER_REVIEWED
            touch(submission)
            session.flush()

        logger.info(
            "feedback %s reviewed by teacher %s (version=%s)", feedback_id, caller.id, feedback.version
        )
        return feedback

    def grade_manually(
        self,
        caller: Optional[Caller],
        submission_id: int,
        data: Union[ReviewInput, Mapping[str, Any]],
    ) -> Feedback:
        """为尚无反馈的提交直接给出教师评分。"""

        caller = self.policy.require_caller(caller)
        payload = parse_input(ReviewInput, data)
        if payload.teacher_score is None:
            raise ValidationError.for_field("teacher_score", "手动评分必须给出分数")

        with self.store.transaction() as session:
            self.policy.ensure_review(caller, submission_id)
            existing = self.index.feedback_for(submission_id)
            if existing is not None:
                raise ConflictError(
                    "该提交已有反馈，请使用复核接口", {"feedback_id": existing.id}
                )
            feedback = self.store.create(
                Feedback,
                {
                    "submission_id": submission_id,
                    "teacher_score": payload.teacher_score,
                    "teacher_comments": payload.teacher_comments,
                    "rubric_scores": dict(payload.rubric_scores or {}),
                },
            )
            submission = session.get(Submission, submission_id)
            submission.status = SubmissionStatus.TEACHER_REVIEWED
            touch(submission)
            session.flush()

        logger.info("submission %s graded manually by teacher %s", submission_id, caller.id)
        return feedback

    # === 内部 ===

    def _grade(self, submission: Submission, context: AssignmentContext) -> SubmitOutcome:
        # 评分调用不持有存储锁
        try:
            result = parse_grading_payload(self.oracle.grade(submission.content, context))
        except OracleError as exc:
            logger.warning("grading failed for submission %s: %s", submission.id, exc.message)
            return SubmitOutcome(submission=submission, grading_error=exc.message)
        except Exception as exc:
            logger.exception("grading oracle raised unexpectedly for submission %s", submission.id)
            return SubmitOutcome(submission=submission, grading_error=f"自动评分失败: {exc}")

        submission, feedback = self._apply_grading(submission.id, result)
        return SubmitOutcome(submission=submission, feedback=feedback)

    def _apply_grading(self, submission_id: int, result) -> Tuple[Submission, Optional[Feedback]]:
        with self.store.transaction() as session:
            submission = session.get(Submission, submission_id)
            if (
                submission.status != SubmissionStatus.SUBMITTED
                or self.index.feedback_for(submission_id) is not None
            ):
                logger.info(
                    "discarding automated grade for submission %s (status=%s)",
                    submission_id,
                    SubmissionStatus(submission.status).value,
                )
                return submission, None

            feedback = self.store.create(
                Feedback,
                {
                    "submission_id": submission_id,
                    "ai_score": result.score,
                    "ai_comments": result.feedback.model_dump(),
                    "rubric_scores": dict(result.rubric_scores),
                },
            )
            submission.status = SubmissionStatus.AI_GRADED
            touch(submission)
            session.flush()

        logger.info("submission %s graded automatically: score=%s", submission_id, result.score)
        return submission, feedback
