"""End-to-end tests through the HTTP API."""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from assessment_engine.core.security import create_access_token
from assessment_engine.main import create_app
from assessment_engine.models.membership import RoomMembership

from .conftest import OTHER_ROOM_ID, OTHER_STUDENT_ID, ROOM_ID, STUDENT_ID, TEACHER_ID

OUTSIDER_TEACHER_ID = 2
ADMIN_ID = 900


def _headers(user_id, roles, acting=None):
    headers = {"Authorization": f"Bearer {create_access_token(user_id, roles)}"}
    if acting:
        headers["X-Acting-Role"] = acting
    return headers


TEACHER = _headers(TEACHER_ID, ["teacher"])
STUDENT = _headers(STUDENT_ID, ["student"])
OTHER_STUDENT = _headers(OTHER_STUDENT_ID, ["student"])
OUTSIDER_TEACHER = _headers(OUTSIDER_TEACHER_ID, ["teacher"])
ADMIN = _headers(ADMIN_ID, ["admin"])


@pytest.fixture
def client(database, events, roster, db_session):
    db_session.add(
        RoomMembership(room_id=OTHER_ROOM_ID, user_id=OUTSIDER_TEACHER_ID, role="teacher")
    )
    db_session.commit()
    app = create_app(database=database, event_sink=events)
    with TestClient(app) as test_client:
        yield test_client


def _create_assessment(client, **fields):
    body = {"room_id": ROOM_ID, "title": "Chemistry quiz"}
    body.update(fields)
    response = client.post("/api/v1/assessments/", json=body, headers=TEACHER)
    assert response.status_code == 201, response.text
    return response.json()


def _publish(client, assessment_id):
    response = client.patch(
        f"/api/v1/assessments/{assessment_id}", json={"state": "published"}, headers=TEACHER
    )
    assert response.status_code == 200, response.text


def _add_question(client, assessment_id, body):
    response = client.post(
        f"/api/v1/questions/assessment/{assessment_id}", json=body, headers=TEACHER
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def objective_quiz(client):
    """Published quiz with a multi-select (weight 3) and a boolean (weight 1)."""
    assessment = _create_assessment(client)
    multi = _add_question(
        client,
        assessment["id"],
        {
            "kind": "select",
            "prompt": "Which are noble gases?",
            "weight": "3.0",
            "position": 0,
            "options": [
                {"text": "He", "is_correct": True, "position": 0},
                {"text": "Ne", "is_correct": True, "position": 1},
                {"text": "O", "is_correct": False, "position": 2},
                {"text": "Ar", "is_correct": True, "position": 3},
            ],
        },
    )
    boolean = _add_question(
        client,
        assessment["id"],
        {"kind": "boolean", "prompt": "Helium is lighter than air", "weight": "1.0",
         "position": 1, "boolean_key": True},
    )
    _publish(client, assessment["id"])
    return assessment, multi, boolean


@pytest.fixture
def manual_quiz(client):
    """Published quiz with a boolean (weight 1) and a free response (weight 3)."""
    assessment = _create_assessment(client)
    boolean = _add_question(
        client,
        assessment["id"],
        {"kind": "boolean", "prompt": "Ice floats", "weight": "1.0", "position": 0,
         "boolean_key": True},
    )
    free = _add_question(
        client,
        assessment["id"],
        {"kind": "free_response", "prompt": "Why does ice float?", "weight": "3.0",
         "position": 1},
    )
    _publish(client, assessment["id"])
    return assessment, boolean, free


def _start(client, assessment_id, headers=STUDENT):
    return client.post("/api/v1/attempts/", json={"assessment_id": assessment_id}, headers=headers)


class TestHealthAndAuth:
    def test_probes(self, client):
        assert client.get("/api/v1/health/live").json() == {"status": "ok"}
        assert client.get("/api/v1/health/db").json() == {"status": "ok"}

    def test_missing_token(self, client):
        response = client.get("/api/v1/assessments/room/10")
        assert response.status_code == 401

    def test_bad_token(self, client):
        response = client.get(
            "/api/v1/assessments/room/10", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    def test_acting_role_must_be_held(self, client):
        headers = _headers(STUDENT_ID, ["student"], acting="teacher")
        response = client.get(f"/api/v1/assessments/room/{ROOM_ID}", headers=headers)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    def test_student_cannot_create_assessment(self, client):
        response = client.post(
            "/api/v1/assessments/", json={"room_id": ROOM_ID, "title": "x"}, headers=STUDENT
        )
        assert response.status_code == 403

    def test_teacher_outside_room(self, client):
        response = client.post(
            "/api/v1/assessments/", json={"room_id": ROOM_ID, "title": "x"},
            headers=OUTSIDER_TEACHER,
        )
        assert response.status_code == 403

    def test_admin_bypasses_roster(self, client):
        response = client.post(
            "/api/v1/assessments/", json={"room_id": ROOM_ID, "title": "x"}, headers=ADMIN
        )
        assert response.status_code == 201


class TestAssessmentEndpoints:
    def test_students_do_not_see_drafts(self, client):
        draft = _create_assessment(client, title="Draft")

        listing = client.get(f"/api/v1/assessments/room/{ROOM_ID}", headers=STUDENT)
        single = client.get(f"/api/v1/assessments/{draft['id']}", headers=STUDENT)

        assert listing.json() == []
        assert single.status_code == 404
        assert single.json()["code"] == "ASSESSMENT_NOT_FOUND"

    def test_invalid_window(self, client):
        response = client.post(
            "/api/v1/assessments/",
            json={
                "room_id": ROOM_ID,
                "title": "Bad",
                "opens_at": "2030-01-02T00:00:00Z",
                "closes_at": "2030-01-01T00:00:00Z",
            },
            headers=TEACHER,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_ASSESSMENT"

    def test_invalid_question_is_rejected(self, client):
        assessment = _create_assessment(client)
        response = client.post(
            f"/api/v1/questions/assessment/{assessment['id']}",
            json={"kind": "select", "prompt": "?", "options": [{"text": "only"}]},
            headers=TEACHER,
        )
        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_QUESTION"

    def test_weight_with_three_decimals_is_rejected(self, client):
        assessment = _create_assessment(client)
        response = client.post(
            f"/api/v1/questions/assessment/{assessment['id']}",
            json={"kind": "boolean", "prompt": "?", "weight": "0.004", "boolean_key": True},
            headers=TEACHER,
        )
        assert response.status_code == 422


class TestAttemptFlow:
    def test_objective_attempt_end_to_end(self, client, events, objective_quiz):
        assessment, multi, boolean = objective_quiz

        started = _start(client, assessment["id"])
        assert started.status_code == 201
        attempt_id = started.json()["attempt_id"]
        assert Decimal(started.json()["total_weight"]) == Decimal("4")

        resumed = _start(client, assessment["id"])
        assert resumed.status_code == 200
        assert resumed.json()["attempt_id"] == attempt_id
        assert resumed.json()["resumed"] is True

        # the key never reaches the student before grading
        view = client.get(f"/api/v1/attempts/{attempt_id}", headers=STUDENT).json()
        assert view["key_revealed"] is False
        assert all(o["is_correct"] is None for o in view["questions"][0]["options"])

        he, ne = multi["options"][0]["id"], multi["options"][1]["id"]
        saved = client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": multi["id"], "selected_option_ids": [he, ne]},
            headers=STUDENT,
        )
        assert saved.status_code == 200, saved.text
        client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": boolean["id"], "boolean_response": True},
            headers=STUDENT,
        )

        submitted = client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT)
        assert submitted.status_code == 200, submitted.text
        body = submitted.json()
        assert body["state"] == "graded"
        assert Decimal(body["mark"]) == Decimal("7.5")
        assert events.names() == ["attempt_submitted", "attempt_graded"]

        again = client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT)
        assert again.status_code == 400
        assert again.json()["code"] == "ALREADY_SUBMITTED"

        view = client.get(f"/api/v1/attempts/{attempt_id}", headers=STUDENT).json()
        assert view["key_revealed"] is True
        assert view["questions"][1]["boolean_key"] is True

    def test_other_student_cannot_open_attempt(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]

        response = client.get(f"/api/v1/attempts/{attempt_id}", headers=OTHER_STUDENT)

        assert response.status_code == 403

    def test_student_outside_room_cannot_start(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        stranger = _headers(555, ["student"])
        assert _start(client, assessment["id"], headers=stranger).status_code == 403

    def test_attempt_limit(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]
        client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT)

        response = _start(client, assessment["id"])

        assert response.status_code == 422
        assert response.json()["code"] == "ATTEMPTS_EXHAUSTED"

    def test_student_removed_from_room_cannot_answer_or_submit(
        self, client, db_session, roster, objective_quiz
    ):
        assessment, _, boolean = objective_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]

        student_row = next(row for row in roster if row.user_id == STUDENT_ID)
        student_row.active = False
        db_session.commit()

        saved = client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": boolean["id"], "boolean_response": True},
            headers=STUDENT,
        )
        submitted = client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT)

        assert saved.status_code == 403
        assert submitted.status_code == 403

    def test_answer_for_question_outside_attempt(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]

        response = client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": 999999, "boolean_response": True},
            headers=STUDENT,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "QUESTION_NOT_IN_ATTEMPT"

    def test_assessment_locks_after_submission(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]
        client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT)

        response = client.patch(
            f"/api/v1/assessments/{assessment['id']}",
            json={"questions_to_show": 1},
            headers=TEACHER,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "ASSESSMENT_LOCKED"


class TestManualGradingFlow:
    def test_grade_publish_release(self, client, events, manual_quiz):
        assessment, boolean, free = manual_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]
        client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": boolean["id"], "boolean_response": True},
            headers=STUDENT,
        )
        free_answer = client.put(
            f"/api/v1/attempts/{attempt_id}/answers",
            json={"question_id": free["id"], "text_response": "It is less dense"},
            headers=STUDENT,
        ).json()

        submitted = client.post(f"/api/v1/attempts/{attempt_id}/submit", headers=STUDENT).json()
        assert submitted["state"] == "submitted"
        assert submitted["requires_manual_review"] is True

        review = client.get(
            f"/api/v1/assessments/{assessment['id']}/attempts?pending_only=true", headers=TEACHER
        ).json()
        assert [a["id"] for a in review] == [attempt_id]

        grading = client.get(f"/api/v1/attempts/{attempt_id}/grading", headers=TEACHER).json()
        assert grading["key_revealed"] is True

        pending = client.post(f"/api/v1/attempts/{attempt_id}/publish", headers=TEACHER)
        assert pending.status_code == 400
        assert pending.json()["code"] == "PENDING_MANUAL_GRADES"

        too_high = client.put(
            f"/api/v1/attempts/{attempt_id}/answers/{free_answer['id']}/grade",
            json={"obtained_weight": "3.5"},
            headers=TEACHER,
        )
        assert too_high.status_code == 422
        assert too_high.json()["code"] == "SCORE_EXCEEDS_MAX_WEIGHT"

        graded = client.put(
            f"/api/v1/attempts/{attempt_id}/answers/{free_answer['id']}/grade",
            json={"obtained_weight": "2.0", "feedback": "Mention hydrogen bonds"},
            headers=TEACHER,
        )
        assert graded.status_code == 200, graded.text

        published = client.post(f"/api/v1/attempts/{attempt_id}/publish", headers=TEACHER)
        assert published.status_code == 200, published.text
        assert Decimal(published.json()["mark"]) == Decimal("7.5")

        released = client.post(f"/api/v1/attempts/{attempt_id}/release", headers=TEACHER)
        assert released.status_code == 200
        assert released.json()["state"] == "published"

        assert events.names() == [
            "attempt_submitted",
            "attempt_graded",
            "attempt_results_released",
        ]

    def test_outsider_teacher_cannot_grade(self, client, manual_quiz):
        assessment, _, _ = manual_quiz
        attempt_id = _start(client, assessment["id"]).json()["attempt_id"]

        response = client.get(f"/api/v1/attempts/{attempt_id}/grading", headers=OUTSIDER_TEACHER)

        assert response.status_code == 403


class TestStatisticsEndpoint:
    def test_statistics_after_two_students(self, client, objective_quiz):
        assessment, multi, boolean = objective_quiz

        first = _start(client, assessment["id"]).json()["attempt_id"]
        client.put(
            f"/api/v1/attempts/{first}/answers",
            json={"question_id": boolean["id"], "boolean_response": True},
            headers=STUDENT,
        )
        client.post(f"/api/v1/attempts/{first}/submit", headers=STUDENT)

        second = _start(client, assessment["id"], headers=OTHER_STUDENT).json()["attempt_id"]
        option_ids = [o["id"] for o in multi["options"] if o["is_correct"]]
        client.put(
            f"/api/v1/attempts/{second}/answers",
            json={"question_id": multi["id"], "selected_option_ids": option_ids},
            headers=OTHER_STUDENT,
        )
        client.put(
            f"/api/v1/attempts/{second}/answers",
            json={"question_id": boolean["id"], "boolean_response": True},
            headers=OTHER_STUDENT,
        )
        client.post(f"/api/v1/attempts/{second}/submit", headers=OTHER_STUDENT)

        response = client.get(
            f"/api/v1/assessments/{assessment['id']}/statistics", headers=TEACHER
        )
        assert response.status_code == 200, response.text
        stats = response.json()

        # marks: 2.5 and 10.0
        assert stats["general"]["total_students"] == 2
        assert stats["general"]["graded_attempts"] == 2
        assert Decimal(stats["general"]["mean_mark"]) == Decimal("6.25")
        assert stats["general"]["passed"] == 1
        assert stats["general"]["failed"] == 1
        assert stats["mark_distribution"]["0-3.99"] == 1
        assert stats["mark_distribution"]["9-10"] == 1
        assert stats["students"][0]["student_id"] == OTHER_STUDENT_ID

        by_question = {q["question_id"]: q for q in stats["questions"]}
        assert by_question[boolean["id"]]["correct_answers"] == 2
        assert by_question[multi["id"]]["correct_answers"] == 1

    def test_students_cannot_read_statistics(self, client, objective_quiz):
        assessment, _, _ = objective_quiz
        response = client.get(
            f"/api/v1/assessments/{assessment['id']}/statistics", headers=STUDENT
        )
        assert response.status_code == 403
