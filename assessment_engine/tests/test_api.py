"""
API integration tests for the assessment engine.

These tests run the full FastAPI application, including its lifespan,
against a throwaway SQLite database and check the response envelopes and
error status codes.
"""

import pytest
from fastapi.testclient import TestClient

from assessment_engine.config import Settings
from assessment_engine.main import create_app
from assessment_engine.tests.conftest import (
    COURSE_ID, assessment_payload, choice_question_payload, selection_answer, choice_answer
)


@pytest.fixture
def client(tmp_path, roster):
    app_settings = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    app = create_app(app_settings, roster=roster)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def assessment(client):
    response = client.post("/api/assessments", json=assessment_payload(startDate="2020-01-01T00:00:00Z"))
    assert response.status_code == 201
    return response.json()["data"]


@pytest.fixture
def questions(client, assessment):
    response = client.post("/api/questions", json={"assessmentId": assessment["id"], **choice_question_payload()})
    assert response.status_code == 201
    return client.get(f"/api/assessments/{assessment['id']}/questions").json()["data"]


def submission_body(assessment, questions, respondent="s1", marker="ta1", value="Yes", is_draft=False):
    selection, choice = questions
    return {
        "assessmentId": assessment["id"],
        "respondentId": respondent,
        "markerId": marker,
        "isDraft": is_draft,
        "answers": [selection_answer(selection["id"], respondent), choice_answer(choice["id"], value)],
    }


def test_create_assessment(client, assessment):
    assert assessment["courseId"] == COURSE_ID
    assert assessment["isReleased"] is False
    assert assessment["currentReleaseNumber"] == 0
    assert assessment["startDate"] == "2020-01-01T00:00:00"

    response = client.get(f"/api/assessments/{assessment['id']}")
    assert response.json()["status"] == "success"

    questions = client.get(f"/api/assessments/{assessment['id']}/questions").json()["data"]
    assert [q["type"] for q in questions] == ["Team Member Selection"]
    assert questions[0]["isLocked"] is True


def test_invalid_assessment(client):
    response = client.post("/api/assessments", json=assessment_payload(granularity="cohort"))
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"

    response = client.post("/api/assessments", json={"courseId": COURSE_ID})
    assert response.status_code == 422


def test_unknown_assessment(client):
    response = client.get("/api/assessments/no-such-assessment")
    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "NotFound"


def test_update_assessment(client, assessment):
    url = f"/api/assessments/{assessment['id']}"

    response = client.patch(url, json={"assessmentName": "Milestone 2", "endDate": "2030-06-30T12:00:00Z"})
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["assessmentName"] == "Milestone 2"
    assert updated["endDate"] == "2030-06-30T12:00:00"
    assert updated["startDate"] == assessment["startDate"]
    assert updated["courseId"] == COURSE_ID

    response = client.patch(url, json={"endDate": "2019-12-31T00:00:00Z"})
    assert response.status_code == 422
    assert response.json()["code"] == "ValidationError"
    assert client.get(url).json()["data"]["endDate"] == "2030-06-30T12:00:00"

    response = client.patch(url, json={"endDate": None})
    assert response.json()["data"]["endDate"] is None

    assert client.patch("/api/assessments/no-such-assessment", json={"description": "x"}).status_code == 404


def test_granularity_fixed_after_assignment(client, assessment):
    url = f"/api/assessments/{assessment['id']}"
    client.post(f"{url}/assignment-set")

    response = client.patch(url, json={"granularity": "team", "teamSetId": "project-teams"})
    assert response.status_code == 409
    assert response.json()["code"] == "InvalidState"
    assert client.get(url).json()["data"]["granularity"] == "individual"


def test_question_management(client, assessment, questions):
    selection, choice = questions
    assert choice["position"] == 1

    response = client.patch(f"/api/questions/{selection['id']}", json={"text": "Renamed"})
    assert response.status_code == 423
    assert response.json()["code"] == "Locked"

    response = client.patch(f"/api/questions/{choice['id']}", json={"type": "Scale"})
    assert response.status_code == 422

    response = client.post("/api/questions", json={"assessmentId": assessment["id"],
                                                   "type": "Team Member Selection", "text": "Again"})
    assert response.status_code == 422

    response = client.post("/api/questions", json=choice_question_payload())
    assert response.status_code == 422


def test_release_and_recall(client, assessment, questions):
    response = client.post(f"/api/assessments/{assessment['id']}/release")
    assert response.status_code == 200
    assert response.json()["data"] == {"isReleased": True, "currentReleaseNumber": 1}

    _, choice = questions
    response = client.delete(f"/api/questions/{choice['id']}")
    assert response.status_code == 423

    response = client.post(f"/api/assessments/{assessment['id']}/recall")
    assert response.json()["data"] == {"isReleased": False, "currentReleaseNumber": 1}


def test_release_without_questions(client, assessment):
    response = client.post(f"/api/assessments/{assessment['id']}/release")
    assert response.status_code == 409
    assert response.json()["code"] == "InvalidState"


def test_submission_flow(client, assessment, questions):
    assessment_id = assessment["id"]
    response = client.post(f"/api/assessments/{assessment_id}/assignment-set", json={"tasPerTeamOrUser": 1})
    assert response.status_code == 200
    assignment_set = response.json()["data"]
    assert assignment_set["assignments"][0] == {"user": "s1", "tas": ["ta1"], "memberIds": ["s1"]}
    assert assignment_set["unassignedTargets"] == []

    response = client.post("/api/submissions", json=submission_body(assessment, questions, is_draft=True))
    assert response.status_code == 200
    draft = response.json()["data"]
    assert draft["isDraft"] is True
    assert draft["score"] == 10

    response = client.post("/api/submissions", json=submission_body(assessment, questions))
    submission = response.json()["data"]
    assert submission["id"] == draft["id"]
    assert submission["isDraft"] is False
    assert submission["isOutdated"] is False

    response = client.post("/api/submissions", json=submission_body(assessment, questions, value="Maybe"))
    assert response.status_code == 409
    assert response.json()["code"] == "AlreadyFinalized"

    response = client.delete(f"/api/submissions/{submission['id']}")
    assert response.status_code == 409

    response = client.get(f"/api/assessments/{assessment_id}/assignment-set/tas/ta1", params={"unmarked": True})
    assert [a["user"] for a in response.json()["data"]] == ["s3"]

    results = client.get(f"/api/assessments/{assessment_id}/results").json()["data"]
    by_student = {r["studentId"]: r for r in results}
    assert by_student["s1"]["averageScore"] == 10
    assert by_student["s1"]["marks"][0]["marker"] == "ta1"
    assert by_student["s2"]["averageScore"] == 0

    response = client.post(f"/api/submissions/{submission['id']}/adjust-score", json={"adjustedScore": 6})
    assert response.json()["data"]["adjustedScore"] == 6
    results = client.get(f"/api/assessments/{assessment_id}/results").json()["data"]
    assert {r["studentId"]: r["averageScore"] for r in results}["s1"] == 6


def test_missing_required_answers(client, assessment, questions):
    body = submission_body(assessment, questions)
    body["answers"] = []
    response = client.post("/api/submissions", json=body)

    assert response.status_code == 422
    assert response.json()["details"]["missingQuestionIds"] == [q["id"] for q in questions]


def test_type_mismatch(client, assessment, questions):
    body = submission_body(assessment, questions)
    body["answers"][1]["type"] = "Scale Answer"
    body["answers"][1]["value"] = 3
    response = client.post("/api/submissions", json=body)

    assert response.status_code == 422
    assert response.json()["code"] == "TypeMismatch"


def test_malformed_submission_request(client, assessment):
    response = client.post("/api/submissions", json={"assessmentId": assessment["id"], "respondentId": "s1"})
    assert response.status_code == 422
    assert response.json()["details"][0]["location"] == ["body", "markerId"]


def test_manual_assignment_update(client, assessment, questions):
    assessment_id = assessment["id"]
    response = client.put(f"/api/assessments/{assessment_id}/assignment-set", json={"assignments": []})
    assert response.status_code == 404

    client.post(f"/api/assessments/{assessment_id}/assignment-set")
    assignments = [{"user": s, "tas": ["ta2"]} for s in ("s1", "s2", "s3")]
    response = client.put(f"/api/assessments/{assessment_id}/assignment-set", json={"assignments": assignments})
    assert response.status_code == 200
    assert all(a["tas"] == ["ta2"] for a in response.json()["data"]["assignments"])

    response = client.put(f"/api/assessments/{assessment_id}/assignment-set",
                          json={"assignments": assignments[:1]})
    assert response.status_code == 422
