import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from gradeflow.config import Settings
from gradeflow.main import create_app
from gradeflow.models import AssignmentType, UserRole
from gradeflow.services import build_services
from gradeflow.services.grading import GradingResult
from gradeflow.services.policy import Caller

SCENARIO_RESULT = {
    "score": 85,
    "rubricScores": {"content": 4},
    "feedback": {"strengths": ["clear"], "improvements": ["depth"], "comments": "good"},
}


class FakeOracle:
    """可编排的评分方：记录调用，按需返回结果或抛出异常。"""

    def __init__(self):
        self.result = GradingResult.model_validate(SCENARIO_RESULT)
        self.error = None
        self.calls = []
        self.before_return = None

    def grade(self, content, context):
        self.calls.append((content, context))
        if self.before_return is not None:
            self.before_return()
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite:///:memory:",
        grading_provider="heuristic",
        secret_key="test-secret",
    )


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def services(settings, oracle):
    """每个测试一个全新的内存存储。"""
    container = build_services(settings, oracle)
    try:
        yield container
    finally:
        container.close()


@pytest.fixture
def client(settings, services):
    app = create_app(settings, services)
    with TestClient(app) as c:
        yield c


def make_user(services, username, role):
    user = services.classroom.register_user(
        {
            "username": username,
            "password": "password123",
            "first_name": username.capitalize(),
            "last_name": "Test",
            "role": role,
        }
    )
    return Caller.of(user)


@pytest.fixture
def world(services):
    """教师 T 拥有班级 C，学生 S 已选课，S2 未选课；A 为开放中的作文作业。"""
    teacher = make_user(services, "teacher", UserRole.TEACHER)
    student = make_user(services, "student", UserRole.STUDENT)
    outsider = make_user(services, "outsider", UserRole.STUDENT)

    cls = services.classroom.create_class(teacher, {"name": "Class C"})
    services.classroom.enroll(teacher, cls.id, student.id)
    assignment = services.classroom.create_assignment(
        teacher,
        {
            "title": "Essay A",
            "description": "Write about your summer.",
            "class_id": cls.id,
            "type": AssignmentType.ESSAY,
            "due_date": datetime.now(timezone.utc) + timedelta(days=7),
        },
    )
    return SimpleNamespace(
        teacher=teacher,
        student=student,
        outsider=outsider,
        cls=cls,
        assignment=assignment,
    )
