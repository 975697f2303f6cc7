from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from gradeflow.exceptions import OracleError


def register(client: TestClient, username: str, role: str):
    response = client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "password": "password123",
            "first_name": username.capitalize(),
            "last_name": "Test",
            "role": role,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def get_auth_headers(client: TestClient, username: str, password: str = "password123"):
    response = client.post(
        "/api/v1/auth/login",
        data={"username": username, "password": password},
    )
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


def setup_classroom(client: TestClient):
    register(client, "teacher1", "teacher")
    student = register(client, "student1", "student")
    teacher_headers = get_auth_headers(client, "teacher1")
    student_headers = get_auth_headers(client, "student1")

    response = client.post(
        "/api/v1/classes", json={"name": "Class C"}, headers=teacher_headers
    )
    assert response.status_code == 201, response.text
    class_id = response.json()["id"]

    response = client.post(
        f"/api/v1/classes/{class_id}/enroll",
        json={"student_id": student["id"]},
        headers=teacher_headers,
    )
    assert response.status_code == 201, response.text

    response = client.post(
        "/api/v1/assignments",
        json={
            "title": "Essay A",
            "description": "Write about your summer.",
            "class_id": class_id,
            "type": "essay",
            "due_date": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
        },
        headers=teacher_headers,
    )
    assert response.status_code == 201, response.text
    return teacher_headers, student_headers, class_id, response.json()["id"]


def test_register_and_login(client: TestClient):
    data = register(client, "user1", "student")
    assert data["username"] == "user1"
    assert data["role"] == "student"
    assert "password_hash" not in data

    headers = get_auth_headers(client, "user1")
    response = client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json()["id"] == data["id"]


def test_register_duplicate_username(client: TestClient):
    register(client, "user1", "student")
    response = client.post(
        "/api/v1/auth/register",
        json={
            "username": "user1",
            "password": "x",
            "first_name": "A",
            "last_name": "B",
            "role": "teacher",
        },
    )
    assert response.status_code == 409
    assert response.json()["error"] == "conflict"


def test_register_validation_errors(client: TestClient):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "user1", "password": "x", "role": "admin"},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    fields = {v["field"] for v in body["violations"]}
    assert "body.role" in fields
    assert "body.first_name" in fields


def test_login_invalid_password(client: TestClient):
    register(client, "user2", "student")
    response = client.post(
        "/api/v1/auth/login",
        data={"username": "user2", "password": "wrongpassword"},
    )
    assert response.status_code == 401


def test_requests_without_token_are_unauthenticated(client: TestClient):
    assert client.get("/api/v1/classes").status_code == 401
    response = client.get("/api/v1/classes", headers={"Authorization": "Bearer forged.token"})
    assert response.status_code == 401
    assert response.json()["error"] == "unauthenticated"


def test_submission_workflow(client: TestClient):
    teacher_headers, student_headers, class_id, assignment_id = setup_classroom(client)

    # 学生提交，自动评分成功
    response = client.post(
        f"/api/v1/assignments/{assignment_id}/submit",
        json={"content": "my essay"},
        headers=student_headers,
    )
    assert response.status_code == 201, response.text
    result = response.json()
    assert result["grading_status"] == "graded"
    assert result["submission"]["status"] == "ai_graded"
    assert result["feedback"]["ai_score"] == 85
    submission_id = result["submission"]["id"]
    feedback_id = result["feedback"]["id"]

    # 教师待复核队列
    response = client.get("/api/v1/submissions/pending", headers=teacher_headers)
    assert response.status_code == 200
    pending = response.json()
    assert [p["id"] for p in pending] == [submission_id]
    assert pending[0]["student_name"] == "Student1 Test"

    # 教师复核
    response = client.put(
        f"/api/v1/feedback/{feedback_id}",
        json={"teacher_score": 90, "teacher_comments": "nice"},
        headers=teacher_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["effective_score"] == 90

    response = client.get(f"/api/v1/submissions/{submission_id}", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "teacher_reviewed"
    assert response.json()["feedback"]["teacher_comments"] == "nice"

    assert client.get("/api/v1/submissions/pending", headers=teacher_headers).json() == []

    response = client.get("/api/v1/student/stats", headers=student_headers)
    assert response.json() == {
        "pending_assignments": 0,
        "completed_assignments": 1,
        "average_score": 90,
    }

    response = client.get("/api/v1/assignments/recent", headers=teacher_headers)
    assert response.status_code == 200
    recent = response.json()
    assert recent[0]["submission_count"] == 1
    assert recent[0]["total_students"] == 1


def test_submit_with_oracle_failure_then_manual_grade(client: TestClient, oracle):
    teacher_headers, student_headers, _, assignment_id = setup_classroom(client)
    oracle.error = OracleError("model timeout")

    response = client.post(
        f"/api/v1/assignments/{assignment_id}/submit",
        json={"content": "my essay"},
        headers=student_headers,
    )
    assert response.status_code == 201
    result = response.json()
    assert result["grading_status"] == "pending"
    assert result["grading_error"] == "model timeout"
    assert result["feedback"] is None
    submission_id = result["submission"]["id"]

    response = client.post(
        f"/api/v1/submissions/{submission_id}/grade",
        json={"teacher_score": 75},
        headers=teacher_headers,
    )
    assert response.status_code == 201, response.text
    assert response.json()["teacher_score"] == 75

    response = client.post(
        f"/api/v1/submissions/{submission_id}/retry-grading", headers=student_headers
    )
    assert response.status_code == 409


def test_retry_grading_endpoint(client: TestClient, oracle):
    _, student_headers, _, assignment_id = setup_classroom(client)
    oracle.error = OracleError("model timeout")
    result = client.post(
        f"/api/v1/assignments/{assignment_id}/submit",
        json={"content": "my essay"},
        headers=student_headers,
    ).json()

    oracle.error = None
    response = client.post(
        f"/api/v1/submissions/{result['submission']['id']}/retry-grading",
        headers=student_headers,
    )
    assert response.status_code == 200, response.text
    assert response.json()["grading_status"] == "graded"


def test_access_errors_are_distinguishable(client: TestClient):
    teacher_headers, student_headers, class_id, assignment_id = setup_classroom(client)
    register(client, "outsider", "student")
    outsider_headers = get_auth_headers(client, "outsider")

    response = client.post(
        f"/api/v1/assignments/{assignment_id}/submit",
        json={"content": "..."},
        headers=outsider_headers,
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"

    response = client.get("/api/v1/assignments/999", headers=teacher_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"

    response = client.post(
        "/api/v1/classes", json={"name": "Nope"}, headers=student_headers
    )
    assert response.status_code == 403

    response = client.get(f"/api/v1/classes/{class_id}/students", headers=student_headers)
    assert response.status_code == 403


def test_student_views(client: TestClient):
    teacher_headers, student_headers, class_id, assignment_id = setup_classroom(client)

    response = client.get("/api/v1/student/assignments", headers=student_headers)
    assert response.status_code == 200
    assert [a["id"] for a in response.json()] == [assignment_id]

    response = client.get("/api/v1/classes", headers=student_headers)
    assert [c["id"] for c in response.json()] == [class_id]

    response = client.get("/api/v1/student/stats", headers=teacher_headers)
    assert response.status_code == 403


def test_update_assignment_status(client: TestClient):
    teacher_headers, student_headers, _, assignment_id = setup_classroom(client)

    response = client.patch(
        f"/api/v1/assignments/{assignment_id}",
        json={"status": "closed"},
        headers=teacher_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "closed"

    response = client.patch(
        f"/api/v1/assignments/{assignment_id}",
        json={"status": "open"},
        headers=student_headers,
    )
    assert response.status_code == 403


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_due_date_offset_is_kept_over_http(client: TestClient):
    teacher_headers, student_headers, _, assignment_id = setup_classroom(client)

    response = client.patch(
        f"/api/v1/assignments/{assignment_id}",
        json={"due_date": "2026-10-20T10:00:00+08:00"},
        headers=teacher_headers,
    )
    assert response.status_code == 200, response.text

    response = client.get(f"/api/v1/assignments/{assignment_id}", headers=student_headers)
    assert response.status_code == 200
    due = datetime.fromisoformat(response.json()["due_date"].replace("Z", "+00:00"))
    assert due == datetime(2026, 10, 20, 2, 0, tzinfo=timezone.utc)
