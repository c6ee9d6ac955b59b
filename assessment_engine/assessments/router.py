"""
Internal Assessment API

HTTP endpoints for assessments, questions, release/recall, submissions,
assignment sets and results. Endpoints return the standard ``APIResponse``
envelope; engine errors are mapped to status codes by the handlers
registered in ``assessment_engine.api``.
"""

import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel, Field

from assessment_engine.api import APIResponse
from assessment_engine.common.exceptions import ValidationError
from assessment_engine.common.logger import app_logger
from assessment_engine.assessments.services import AssessmentService
from assessment_engine.assessments.release import ReleaseController
from assessment_engine.assessments.submission_service import SubmissionService
from assessment_engine.assessments.assignment_service import AssignmentService
from assessment_engine.assessments.aggregator import ResultAggregator
from assessment_engine.assessments.dependencies import (
    get_assessment_service, get_release_controller, get_submission_service,
    get_assignment_service, get_aggregator
)

logger = app_logger.getChild("assessments.router")

router = APIRouter()


# Request Models
class CreateAssessmentRequest(BaseModel):
    courseId: str = Field(..., description="Course the assessment belongs to")
    assessmentName: str = Field(..., description="Display name")
    startDate: datetime.datetime = Field(..., description="Opening of the submission period")
    endDate: Optional[datetime.datetime] = Field(None, description="Close of the submission period")
    description: str = ""
    maxMarks: Optional[float] = Field(None, ge=0)
    granularity: str = Field("individual", description="'individual' or 'team'")
    teamSetId: Optional[str] = Field(None, description="Team set graded by a team assessment")


class UpdateAssessmentRequest(BaseModel):
    assessmentName: Optional[str] = None
    description: Optional[str] = None
    startDate: Optional[datetime.datetime] = None
    endDate: Optional[datetime.datetime] = Field(None, description="null removes the closing date")
    maxMarks: Optional[float] = Field(None, ge=0)
    granularity: Optional[str] = None
    teamSetId: Optional[str] = None


class SaveSubmissionRequest(BaseModel):
    assessmentId: str
    respondentId: str = Field(..., description="Graded team or student")
    markerId: str = Field(..., description="TA filling in the submission")
    answers: List[Dict[str, Any]] = Field(default_factory=list)
    isDraft: bool = True


class AdjustScoreRequest(BaseModel):
    adjustedScore: Optional[float] = Field(..., description="Override score; null clears it")


class GenerateAssignmentSetRequest(BaseModel):
    tasPerTeamOrUser: Optional[int] = Field(None, description="TAs assigned to each team or user")


class UpdateAssignmentSetRequest(BaseModel):
    assignments: List[Dict[str, Any]]


# Assessments
@router.post("/assessments", status_code=201)
async def create_assessment_endpoint(
    request: CreateAssessmentRequest,
    service: AssessmentService = Depends(get_assessment_service),
):
    assessment = await service.create_assessment(request.model_dump())
    return APIResponse.success(assessment.to_dict(), "Assessment created")


@router.get("/assessments/{assessment_id}")
async def get_assessment_endpoint(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service),
):
    assessment = await service.get_assessment(assessment_id)
    return APIResponse.success(assessment.to_dict())


@router.patch("/assessments/{assessment_id}")
async def update_assessment_endpoint(
    assessment_id: str,
    request: UpdateAssessmentRequest,
    service: AssessmentService = Depends(get_assessment_service),
):
    assessment = await service.update_assessment(assessment_id, request.model_dump(exclude_unset=True))
    return APIResponse.success(assessment.to_dict(), "Assessment updated")


@router.delete("/assessments/{assessment_id}")
async def delete_assessment_endpoint(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service),
):
    await service.delete_assessment(assessment_id)
    return APIResponse.success(None, "Assessment deleted")


# Questions
@router.get("/assessments/{assessment_id}/questions")
async def list_questions_endpoint(
    assessment_id: str,
    service: AssessmentService = Depends(get_assessment_service),
):
    questions = await service.list_questions(assessment_id)
    return APIResponse.success([q.to_dict() for q in questions])


@router.post("/questions", status_code=201)
async def create_question_endpoint(
    payload: Dict[str, Any] = Body(...),
    service: AssessmentService = Depends(get_assessment_service),
):
    assessment_id = payload.get("assessmentId")
    if not assessment_id:
        raise ValidationError("assessmentId is required", {"assessmentId": "required"})
    data = {k: v for k, v in payload.items() if k != "assessmentId"}
    question = await service.add_question(assessment_id, data)
    return APIResponse.success(question.to_dict(), "Question created")


@router.patch("/questions/{question_id}")
async def update_question_endpoint(
    question_id: str,
    payload: Dict[str, Any] = Body(...),
    service: AssessmentService = Depends(get_assessment_service),
):
    data = {k: v for k, v in payload.items() if k != "assessmentId"}
    question = await service.update_question(question_id, data)
    return APIResponse.success(question.to_dict(), "Question updated")


@router.delete("/questions/{question_id}")
async def delete_question_endpoint(
    question_id: str,
    service: AssessmentService = Depends(get_assessment_service),
):
    await service.delete_question(question_id)
    return APIResponse.success(None, "Question deleted")


# Release / recall
@router.post("/assessments/{assessment_id}/release")
async def release_assessment_endpoint(
    assessment_id: str,
    controller: ReleaseController = Depends(get_release_controller),
):
    assessment = await controller.release(assessment_id)
    return APIResponse.success(assessment.release_state(), "Assessment released")


@router.post("/assessments/{assessment_id}/recall")
async def recall_assessment_endpoint(
    assessment_id: str,
    controller: ReleaseController = Depends(get_release_controller),
):
    assessment = await controller.recall(assessment_id)
    return APIResponse.success(assessment.release_state(), "Assessment recalled")


# Submissions
@router.post("/submissions")
async def save_submission_endpoint(
    request: SaveSubmissionRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    view = await service.save_submission(
        assessment_id=request.assessmentId,
        respondent_id=request.respondentId,
        marker_id=request.markerId,
        answers=request.answers,
        is_draft=request.isDraft,
    )
    return APIResponse.success(view.to_dict(), "Submission saved")


@router.get("/submissions/{submission_id}")
async def get_submission_endpoint(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
):
    view = await service.get_submission(submission_id)
    return APIResponse.success(view.to_dict())


@router.delete("/submissions/{submission_id}")
async def delete_submission_endpoint(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
):
    await service.delete_submission(submission_id)
    return APIResponse.success(None, "Submission deleted")


@router.post("/submissions/{submission_id}/adjust-score")
async def adjust_score_endpoint(
    submission_id: str,
    request: AdjustScoreRequest,
    service: SubmissionService = Depends(get_submission_service),
):
    view = await service.adjust_score(submission_id, request.adjustedScore)
    return APIResponse.success(view.to_dict(), "Score adjusted")


@router.get("/assessments/{assessment_id}/submissions")
async def list_submissions_endpoint(
    assessment_id: str,
    markerId: Optional[str] = Query(None),
    service: SubmissionService = Depends(get_submission_service),
):
    views = await service.list_submissions(assessment_id, markerId)
    return APIResponse.success([v.to_dict() for v in views])


# Results
@router.get("/assessments/{assessment_id}/results")
async def get_results_endpoint(
    assessment_id: str,
    aggregator: ResultAggregator = Depends(get_aggregator),
):
    results = await aggregator.get_results(assessment_id)
    return APIResponse.success([r.to_dict() for r in results])


# Assignment sets
@router.post("/assessments/{assessment_id}/assignment-set")
async def generate_assignment_set_endpoint(
    assessment_id: str,
    request: Optional[GenerateAssignmentSetRequest] = None,
    service: AssignmentService = Depends(get_assignment_service),
):
    tas_per_target = request.tasPerTeamOrUser if request else None
    assignment_set = await service.regenerate_assignment_set(assessment_id, tas_per_target)
    return APIResponse.success(assignment_set.to_dict(), "Assignment set generated")


@router.get("/assessments/{assessment_id}/assignment-set")
async def get_assignment_set_endpoint(
    assessment_id: str,
    service: AssignmentService = Depends(get_assignment_service),
):
    assignment_set = await service.get_assignment_set(assessment_id)
    return APIResponse.success(assignment_set.to_dict())


@router.put("/assessments/{assessment_id}/assignment-set")
async def update_assignment_set_endpoint(
    assessment_id: str,
    request: UpdateAssignmentSetRequest,
    service: AssignmentService = Depends(get_assignment_service),
):
    assignment_set = await service.update_assignment_set(assessment_id, request.assignments)
    return APIResponse.success(assignment_set.to_dict(), "Assignment set updated")


@router.get("/assessments/{assessment_id}/assignment-set/tas/{ta_id}")
async def get_ta_assignments_endpoint(
    assessment_id: str,
    ta_id: str,
    unmarked: bool = Query(False, description="Only targets without a final submission from the TA"),
    service: AssignmentService = Depends(get_assignment_service),
):
    assignment_set = await service.get_assignment_set(assessment_id)
    assignments = await service.get_assignments_for_ta(assessment_id, ta_id, unmarked_only=unmarked)
    return APIResponse.success([a.to_dict(assignment_set.granularity) for a in assignments])


logger.debug(f"Assessment router loaded with {len(router.routes)} routes")
