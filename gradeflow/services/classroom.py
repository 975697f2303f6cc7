"""用户、班级、选课与作业的业务操作，以及面向单个调用方的列表查询。

列表结果按调用方身份逐行过滤：学生永远只能列出自己的提交。
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from gradeflow.exceptions import ConflictError, NotFoundError, ValidationError
from gradeflow.models import (
    Assignment,
    EntityKind,
    Enrollment,
    Feedback,
    SchoolClass,
    Submission,
    User,
    UserRole,
)
from gradeflow.schemas.gradebook import (
    AssignmentCreate,
    AssignmentUpdate,
    ClassCreate,
    SubmissionDetails,
    UserCreate,
    parse_input,
)
from gradeflow.security import hash_password
from gradeflow.services.aggregates import AggregateViews
from gradeflow.services.policy import AccessPolicy, Caller
from gradeflow.services.relationships import RelationshipIndex
from gradeflow.services.store import EntityStore

logger = logging.getLogger(__name__)

Payload = Union[Mapping[str, Any], Any]


class ClassroomService:
    """封装班级与作业相关的创建、更新和查询逻辑。"""

    def __init__(
        self,
        store: EntityStore,
        index: RelationshipIndex,
        policy: AccessPolicy,
        views: AggregateViews,
    ) -> None:
        self.store = store
        self.index = index
        self.policy = policy
        self.views = views

    # === 用户 ===

    def register_user(self, data: Payload) -> User:
        payload = parse_input(UserCreate, data)
        with self.store.transaction():
            if self.find_user_by_username(payload.username) is not None:
                raise ConflictError("用户名已存在", {"username": payload.username})
            user = self.store.create(
                User,
                {
                    "username": payload.username,
                    "password_hash": hash_password(payload.password),
                    "role": payload.role,
                    "first_name": payload.first_name,
                    "last_name": payload.last_name,
                    "department": payload.department,
                },
            )
        logger.info("registered %s %s (id=%s)", user.role.value, user.username, user.id)
        return user

    def find_user_by_username(self, username: str) -> Optional[User]:
        return self.store.first(User, User.username == username)

    def get_user(self, caller: Optional[Caller], user_id: int) -> User:
        self.policy.ensure_read(caller, EntityKind.USER, user_id)
        return self.store.require(User, user_id)

    # === 班级 ===

    def create_class(self, caller: Optional[Caller], data: Payload) -> SchoolClass:
        caller = self.policy.require_role(caller, UserRole.TEACHER)
        payload = parse_input(ClassCreate, data)
        with self.store.transaction():
            teacher = self.store.require(User, caller.id)
            if not teacher.is_teacher:
                raise ValidationError.for_field("teacher_id", "班级的拥有者必须是教师")
            cls = self.store.create(
                SchoolClass,
                {"name": payload.name, "description": payload.description, "teacher_id": caller.id},
            )
        logger.info("class %s created by teacher %s", cls.id, caller.id)
        return cls

    def list_classes(self, caller: Optional[Caller]) -> List[SchoolClass]:
        caller = self.policy.require_caller(caller)
        if caller.is_teacher:
            return self.index.classes_owned_by(caller.id)
        return self.index.classes_enrolled_in(caller.id)

    def get_class(self, caller: Optional[Caller], class_id: int) -> SchoolClass:
        self.policy.ensure_read(caller, EntityKind.CLASS, class_id)
        return self.store.require(SchoolClass, class_id)

    def enroll(self, caller: Optional[Caller], class_id: int, student_id: int) -> Enrollment:
        """由班级的任课教师把学生加入班级。"""

        with self.store.transaction():
            self.policy.ensure_write(caller, EntityKind.CLASS, class_id)
            student = self.store.get(User, student_id)
            if student is None:
                raise NotFoundError("User", student_id)
            if not student.is_student:
                raise ValidationError.for_field("student_id", "只能将学生加入班级")
            if self.index.is_enrolled(student_id, class_id):
                raise ConflictError(
                    "学生已在该班级中", {"student_id": student_id, "class_id": class_id}
                )
            enrollment = self.store.create(
                Enrollment, {"student_id": student_id, "class_id": class_id}
            )
        logger.info("student %s enrolled in class %s", student_id, class_id)
        return enrollment

    def list_students(self, caller: Optional[Caller], class_id: int) -> List[User]:
        self.policy.ensure_write(caller, EntityKind.CLASS, class_id)
        return self.index.students_of(class_id)

    # === 作业 ===

    def create_assignment(self, caller: Optional[Caller], data: Payload) -> Assignment:
        caller = self.policy.require_role(caller, UserRole.TEACHER)
        payload = parse_input(AssignmentCreate, data)
        with self.store.transaction():
            self.policy.ensure_write(caller, EntityKind.CLASS, payload.class_id)
            assignment = self.store.create(Assignment, payload.model_dump())
        logger.info("assignment %s created in class %s", assignment.id, payload.class_id)
        return assignment

    def update_assignment(
        self, caller: Optional[Caller], assignment_id: int, data: Payload
    ) -> Assignment:
        payload = parse_input(AssignmentUpdate, data)
        changes = payload.model_dump(exclude_unset=True)
        for field in ("title", "description", "due_date", "status"):
            if field in changes and changes[field] is None:
                raise ValidationError.for_field(field, "该字段不能为空")
        with self.store.transaction():
            self.policy.ensure_write(caller, EntityKind.ASSIGNMENT, assignment_id)
            assignment = self.store.update(Assignment, assignment_id, changes)
        return assignment

    def get_assignment(self, caller: Optional[Caller], assignment_id: int) -> Assignment:
        self.policy.ensure_read(caller, EntityKind.ASSIGNMENT, assignment_id)
        return self.store.require(Assignment, assignment_id)

    def list_assignments(
        self, caller: Optional[Caller], class_id: Optional[int] = None
    ) -> List[Assignment]:
        caller = self.policy.require_caller(caller)
        if class_id is not None:
            self.policy.ensure_read(caller, EntityKind.CLASS, class_id)
            return self.index.assignments_of(class_id)
        if caller.is_teacher:
            classes = self.index.classes_owned_by(caller.id)
        else:
            classes = self.index.classes_enrolled_in(caller.id)
        return self.index.assignments_in(cls.id for cls in classes)

    # === 提交与反馈 ===

    def list_submissions_for_assignment(
        self, caller: Optional[Caller], assignment_id: int
    ) -> List[SubmissionDetails]:
        """教师看到全部提交；学生只看到自己的提交。"""

        self.policy.ensure_read(caller, EntityKind.ASSIGNMENT, assignment_id)
        if caller.is_teacher:
            submissions = self.index.submissions_of_assignment(assignment_id)
        else:
            submissions = self.index.submissions_of_student(caller.id, assignment_id)
        return [self.views.details_of(submission) for submission in submissions]

    def list_my_submissions(self, caller: Optional[Caller]) -> List[SubmissionDetails]:
        caller = self.policy.require_role(caller, UserRole.STUDENT)
        return [
            self.views.details_of(submission)
            for submission in self.index.submissions_of_student(caller.id)
        ]

    def get_submission(self, caller: Optional[Caller], submission_id: int) -> SubmissionDetails:
        self.policy.ensure_read(caller, EntityKind.SUBMISSION, submission_id)
        return self.views.details_of(self.store.require(Submission, submission_id))

    def get_feedback(self, caller: Optional[Caller], feedback_id: int) -> Feedback:
        self.policy.ensure_read(caller, EntityKind.FEEDBACK, feedback_id)
        return self.store.require(Feedback, feedback_id)
