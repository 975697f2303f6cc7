from datetime import datetime, timedelta, timezone

from conftest import make_user
from gradeflow.exceptions import OracleError
from gradeflow.models import AssignmentType, UserRole
from gradeflow.services.aggregates import round_half_up


def add_assignment(services, world, title):
    return services.classroom.create_assignment(
        world.teacher,
        {
            "title": title,
            "description": "...",
            "class_id": world.cls.id,
            "type": AssignmentType.SHORT_ANSWER,
            "due_date": datetime.now(timezone.utc) + timedelta(days=3),
        },
    )


def test_student_stats_after_review(services, world):
    add_assignment(services, world, "Extra 1")
    add_assignment(services, world, "Extra 2")
    outcome = services.lifecycle.submit(
        world.student, world.assignment.id, world.student.id, "my essay"
    )
    services.lifecycle.review(
        world.teacher, outcome.feedback.id, {"teacher_score": 90, "teacher_comments": "nice"}
    )

    stats = services.views.student_stats(world.student.id)

    assert stats.completed_assignments == 1
    assert stats.average_score == 90
    assert stats.pending_assignments == 3 - 1


def test_student_stats_without_grades(services, world, oracle):
    oracle.error = OracleError("down")
    services.lifecycle.submit(world.student, world.assignment.id, world.student.id, "x")

    stats = services.views.student_stats(world.student.id)

    assert stats.completed_assignments == 0
    assert stats.average_score is None
    assert stats.pending_assignments == 0


def test_student_stats_average_rounds_half_up(services, world, oracle):
    second = add_assignment(services, world, "Second")
    services.lifecycle.submit(world.student, world.assignment.id, world.student.id, "a")
    oracle.result = oracle.result.model_copy(update={"score": 90})
    services.lifecycle.submit(world.student, second.id, world.student.id, "b")

    # (85 + 90) / 2 = 87.5
    assert services.views.student_stats(world.student.id).average_score == 88


def test_round_half_up():
    assert round_half_up(87.5) == 88
    assert round_half_up(86.5) == 87
    assert round_half_up(86.49) == 86


def test_recent_assignments_newest_first_with_counts(services, world):
    add_assignment(services, world, "Second")
    third = add_assignment(services, world, "Third")
    classmate = make_user(services, "classmate", UserRole.STUDENT)
    services.classroom.enroll(world.teacher, world.cls.id, classmate.id)
    services.lifecycle.submit(world.student, third.id, world.student.id, "done")

    recent = services.views.recent_assignments(world.teacher.id, limit=2)

    assert [a.title for a in recent] == ["Third", "Second"]
    assert recent[0].class_name == "Class C"
    assert recent[0].submission_count == 1
    assert recent[0].total_students == 2
    assert recent[1].submission_count == 0


def test_recent_assignments_for_teacher_without_classes(services, world):
    other = make_user(services, "other_teacher", UserRole.TEACHER)
    assert services.views.recent_assignments(other.id) == []


def test_pending_reviews_lists_only_ai_graded(services, world, oracle):
    classmate = make_user(services, "classmate", UserRole.STUDENT)
    services.classroom.enroll(world.teacher, world.cls.id, classmate.id)

    graded = services.lifecycle.submit(world.student, world.assignment.id, world.student.id, "a")
    oracle.error = OracleError("down")
    services.lifecycle.submit(classmate, world.assignment.id, classmate.id, "b")

    pending = services.views.pending_reviews(world.teacher.id)

    assert [p.id for p in pending] == [graded.submission.id]
    assert pending[0].student_name == "Student Test"
    assert pending[0].assignment_title == "Essay A"
    assert pending[0].feedback.ai_score == 85
    assert pending[0].feedback.effective_score == 85


def test_pending_reviews_scoped_to_teacher(services, world):
    services.lifecycle.submit(world.student, world.assignment.id, world.student.id, "a")
    other = make_user(services, "other_teacher", UserRole.TEACHER)
    assert services.views.pending_reviews(other.id) == []
