"""
FastAPI dependencies wiring services to the database and collaborators.

Collaborators and settings live on ``app.state`` (set by ``create_app``);
tests replace any of these through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from assessment_engine.config import Settings
from assessment_engine.database import init_db
from assessment_engine.assessments.collaborators import RosterProvider, NotificationSender
from assessment_engine.assessments.aggregator import ResultAggregator
from assessment_engine.assessments.services import AssessmentService
from assessment_engine.assessments.release import ReleaseController
from assessment_engine.assessments.submission_service import SubmissionService
from assessment_engine.assessments.assignment_service import AssignmentService


def get_session_factory():
    return init_db.get_session_factory()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_roster(request: Request) -> RosterProvider:
    return request.app.state.roster


def get_notifier(request: Request) -> NotificationSender:
    return request.app.state.notifier


def get_aggregator(
    session_factory=Depends(get_session_factory),
    roster: RosterProvider = Depends(get_roster),
) -> ResultAggregator:
    return ResultAggregator(session_factory, roster)


def get_assessment_service(session_factory=Depends(get_session_factory)) -> AssessmentService:
    return AssessmentService(session_factory)


def get_release_controller(
    session_factory=Depends(get_session_factory),
    roster: RosterProvider = Depends(get_roster),
    notifier: NotificationSender = Depends(get_notifier),
    aggregator: ResultAggregator = Depends(get_aggregator),
) -> ReleaseController:
    return ReleaseController(session_factory, roster, notifier, aggregator)


def get_submission_service(
    session_factory=Depends(get_session_factory),
    roster: RosterProvider = Depends(get_roster),
    aggregator: ResultAggregator = Depends(get_aggregator),
    settings: Settings = Depends(get_settings),
) -> SubmissionService:
    return SubmissionService(session_factory, roster, aggregator,
                             enforce_submission_period=settings.ENFORCE_SUBMISSION_PERIOD)


def get_assignment_service(
    session_factory=Depends(get_session_factory),
    roster: RosterProvider = Depends(get_roster),
    aggregator: ResultAggregator = Depends(get_aggregator),
    settings: Settings = Depends(get_settings),
) -> AssignmentService:
    return AssignmentService(session_factory, roster, aggregator,
                             default_tas_per_target=settings.DEFAULT_TAS_PER_TARGET)
