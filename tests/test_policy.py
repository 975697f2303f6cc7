import pytest

from conftest import make_user
from gradeflow.exceptions import ForbiddenError, NotFoundError, UnauthenticatedError
from gradeflow.models import EntityKind, UserRole


@pytest.fixture
def graded(services, world):
    """学生 S 与同班学生 S3 各有一份已自动评分的提交。"""
    classmate = make_user(services, "classmate", UserRole.STUDENT)
    services.classroom.enroll(world.teacher, world.cls.id, classmate.id)

    mine = services.lifecycle.submit(world.student, world.assignment.id, world.student.id, "mine")
    theirs = services.lifecycle.submit(classmate, world.assignment.id, classmate.id, "theirs")
    world.classmate = classmate
    world.mine = mine
    world.theirs = theirs
    return world


def test_teacher_reads_and_writes_owned_entities(services, graded):
    policy = services.policy
    teacher = graded.teacher

    assert policy.can_read(teacher, EntityKind.CLASS, graded.cls.id)
    assert policy.can_write(teacher, EntityKind.CLASS, graded.cls.id)
    assert policy.can_write(teacher, EntityKind.ASSIGNMENT, graded.assignment.id)
    assert policy.can_read(teacher, EntityKind.SUBMISSION, graded.mine.submission.id)
    assert policy.can_write(teacher, EntityKind.FEEDBACK, graded.mine.feedback.id)
    assert policy.can_review(teacher, graded.mine.submission.id)


def test_teacher_cannot_write_submission_content(services, graded):
    assert not services.policy.can_write(
        graded.teacher, EntityKind.SUBMISSION, graded.mine.submission.id
    )


def test_other_teacher_is_denied(services, graded):
    stranger = make_user(services, "stranger", UserRole.TEACHER)
    policy = services.policy

    assert not policy.can_read(stranger, EntityKind.CLASS, graded.cls.id)
    assert not policy.can_read(stranger, EntityKind.SUBMISSION, graded.mine.submission.id)
    assert not policy.can_review(stranger, graded.mine.submission.id)
    with pytest.raises(ForbiddenError):
        policy.ensure_read(stranger, EntityKind.ASSIGNMENT, graded.assignment.id)


def test_student_access_isolation(services, graded):
    policy = services.policy
    student = graded.student

    assert policy.can_read(student, EntityKind.SUBMISSION, graded.mine.submission.id)
    assert policy.can_write(student, EntityKind.SUBMISSION, graded.mine.submission.id)
    assert policy.can_read(student, EntityKind.FEEDBACK, graded.mine.feedback.id)
    assert not policy.can_write(student, EntityKind.FEEDBACK, graded.mine.feedback.id)

    assert not policy.can_read(student, EntityKind.SUBMISSION, graded.theirs.submission.id)
    assert not policy.can_read(student, EntityKind.FEEDBACK, graded.theirs.feedback.id)
    with pytest.raises(ForbiddenError):
        services.classroom.get_submission(student, graded.theirs.submission.id)


def test_student_lists_only_own_submissions(services, graded):
    rows = services.classroom.list_submissions_for_assignment(
        graded.student, graded.assignment.id
    )
    assert [row.student_id for row in rows] == [graded.student.id]

    teacher_rows = services.classroom.list_submissions_for_assignment(
        graded.teacher, graded.assignment.id
    )
    assert {row.student_id for row in teacher_rows} == {graded.student.id, graded.classmate.id}


def test_student_reads_classes_only_when_enrolled(services, graded):
    policy = services.policy
    assert policy.can_read(graded.student, EntityKind.CLASS, graded.cls.id)
    assert policy.can_read(graded.student, EntityKind.ASSIGNMENT, graded.assignment.id)
    assert not policy.can_write(graded.student, EntityKind.ASSIGNMENT, graded.assignment.id)
    assert not policy.can_read(graded.outsider, EntityKind.CLASS, graded.cls.id)
    assert not policy.can_read(graded.outsider, EntityKind.ASSIGNMENT, graded.assignment.id)


def test_user_visibility(services, graded):
    policy = services.policy
    assert policy.can_read(graded.student, EntityKind.USER, graded.student.id)
    assert policy.can_read(graded.teacher, EntityKind.USER, graded.student.id)
    assert policy.can_read(graded.student, EntityKind.USER, graded.teacher.id)
    assert not policy.can_read(graded.teacher, EntityKind.USER, graded.outsider.id)
    assert not policy.can_read(graded.student, EntityKind.USER, graded.classmate.id)
    assert not policy.can_write(graded.teacher, EntityKind.USER, graded.student.id)


def test_enrollment_visibility(services, world):
    enrollment = services.index.enrollment_of(world.student.id, world.cls.id)
    policy = services.policy

    assert policy.can_read(world.teacher, EntityKind.ENROLLMENT, enrollment.id)
    assert policy.can_read(world.student, EntityKind.ENROLLMENT, enrollment.id)
    assert not policy.can_read(world.outsider, EntityKind.ENROLLMENT, enrollment.id)


def test_missing_caller_and_entity(services, world):
    policy = services.policy
    assert not policy.can_read(None, EntityKind.CLASS, world.cls.id)
    with pytest.raises(UnauthenticatedError):
        policy.ensure_read(None, EntityKind.CLASS, world.cls.id)
    with pytest.raises(NotFoundError):
        policy.ensure_read(world.teacher, EntityKind.SUBMISSION, 404)


def test_require_role(services, world):
    with pytest.raises(ForbiddenError):
        services.policy.require_role(world.student, UserRole.TEACHER)
    assert services.policy.require_role(world.teacher, UserRole.TEACHER) == world.teacher
