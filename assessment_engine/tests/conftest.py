"""
Shared fixtures for the assessment engine tests.

Database tests run against a throwaway SQLite file per test, so every test
starts from an empty schema.
"""

import datetime
from typing import List, Tuple

import pytest
import pytest_asyncio

from assessment_engine.database.init_db import (
    initialize_database, create_schema, close_database, get_session_factory
)
from assessment_engine.assessments.collaborators import InMemoryRoster, Team, NotificationSender
from assessment_engine.assessments.aggregator import ResultAggregator
from assessment_engine.assessments.services import AssessmentService
from assessment_engine.assessments.release import ReleaseController
from assessment_engine.assessments.submission_service import SubmissionService
from assessment_engine.assessments.assignment_service import AssignmentService

COURSE_ID = "CS3203"
TEAM_SET_ID = "project-teams"


def assessment_payload(**overrides) -> dict:
    payload = {
        "courseId": COURSE_ID,
        "assessmentName": "Milestone 1",
        "startDate": (datetime.datetime.utcnow() - datetime.timedelta(days=1)).isoformat(),
        "granularity": "individual",
    }
    payload.update(overrides)
    return payload


def choice_question_payload(**overrides) -> dict:
    payload = {
        "type": "Multiple Choice",
        "text": "Did the team meet the milestone?",
        "isRequired": True,
        "isScored": True,
        "options": [
            {"text": "Yes", "points": 10},
            {"text": "Maybe", "points": 0},
        ],
    }
    payload.update(overrides)
    return payload


def selection_answer(question_id: str, *students: str) -> dict:
    return {"question": question_id, "type": "Team Member Selection Answer",
            "selectedUserIds": list(students)}


def choice_answer(question_id: str, value: str) -> dict:
    return {"question": question_id, "type": "Multiple Choice Answer", "value": value}


class RecordingNotifier(NotificationSender):
    def __init__(self, fail: bool = False):
        self.sent: List[Tuple[str, str]] = []
        self.fail = fail

    async def send(self, recipient_id: str, text: str) -> None:
        if self.fail:
            raise ConnectionError("mail server unavailable")
        self.sent.append((recipient_id, text))


@pytest.fixture
def roster():
    return (
        InMemoryRoster()
        .add_students(COURSE_ID, ["s1", "s2", "s3"])
        .add_tas(COURSE_ID, ["ta1", "ta2"])
        .add_team(COURSE_ID, Team(id="team-1", member_ids=["s1", "s2"], ta_id="ta2"), TEAM_SET_ID)
        .add_team(COURSE_ID, Team(id="team-2", member_ids=["s3"]), TEAM_SET_ID)
    )


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    await initialize_database(f"sqlite+aiosqlite:///{tmp_path / 'assessments.db'}")
    await create_schema()
    yield get_session_factory()
    await close_database()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def aggregator(session_factory, roster):
    return ResultAggregator(session_factory, roster)


@pytest.fixture
def assessment_service(session_factory):
    return AssessmentService(session_factory)


@pytest.fixture
def release_controller(session_factory, roster, notifier, aggregator):
    return ReleaseController(session_factory, roster, notifier, aggregator)


@pytest.fixture
def submission_service(session_factory, roster, aggregator):
    return SubmissionService(session_factory, roster, aggregator)


@pytest.fixture
def assignment_service(session_factory, roster, aggregator):
    return AssignmentService(session_factory, roster, aggregator)
