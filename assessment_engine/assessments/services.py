"""
Assessment Services

Use cases for creating assessments and editing their questions. Each public
method runs in one transaction; questions of a released assessment cannot
be added, and locked questions cannot be changed or removed.
"""

from typing import Any, Dict, List

from assessment_engine.common.exceptions import (
    NotFoundError, ValidationError, InvalidStateError, LockedError
)
from assessment_engine.common.logger import app_logger
from assessment_engine.assessments.models import Assessment
from assessment_engine.assessments.questions import (
    Question, question_from_dict, parse_question_type, team_member_selection_question
)
from assessment_engine.assessments.scoring import questions_total_marks
from assessment_engine.assessments.repositories import Repositories, unit_of_work

logger = app_logger.getChild("assessments.services")

EDITABLE_ASSESSMENT_FIELDS = (
    "assessmentName", "description", "startDate", "endDate", "maxMarks", "granularity", "teamSetId"
)


async def _load_assessment(repos: Repositories, assessment_id: str, for_update: bool = False) -> Assessment:
    assessment = await repos.assessments.get(assessment_id, for_update=for_update)
    if assessment is None:
        raise NotFoundError("Assessment", assessment_id)
    return assessment


async def _refresh_total_marks(repos: Repositories, assessment: Assessment) -> None:
    questions = await repos.questions.list_for_assessment(assessment.id)
    assessment.questions_total_marks = questions_total_marks(questions)
    await repos.assessments.save(assessment)


class AssessmentService:
    """Assessment and question management."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def create_assessment(self, payload: Dict[str, Any]) -> Assessment:
        """
        Create an assessment together with its reserved student selection question.

        Raises:
            ValidationError: If the payload is incomplete or inconsistent
        """
        assessment = Assessment.from_dict(payload)
        async with unit_of_work(self.session_factory) as repos:
            await repos.assessments.add(assessment)
            await repos.questions.add(assessment.id, team_member_selection_question())

        logger.info(f"Created assessment {assessment.id} ('{assessment.assessment_name}') "
                    f"for course {assessment.course_id}")
        return assessment

    async def get_assessment(self, assessment_id: str) -> Assessment:
        async with unit_of_work(self.session_factory) as repos:
            return await _load_assessment(repos, assessment_id)

    async def update_assessment(self, assessment_id: str, payload: Dict[str, Any]) -> Assessment:
        """
        Update the editable fields of an assessment.

        Fields absent from ``payload`` keep their current values; the merged
        assessment is validated as a whole, so ``endDate`` may not end up
        before ``startDate``. Who is graded (``granularity`` and, for team
        assessments, ``teamSetId``) is fixed once an assignment set exists.

        Raises:
            NotFoundError: If the assessment does not exist
            ValidationError: If a field is not editable or the result is invalid
            InvalidStateError: If grading targets change after assignments were made
        """
        not_editable = sorted(k for k in payload if k not in EDITABLE_ASSESSMENT_FIELDS)
        if not_editable:
            raise ValidationError(f"Fields cannot be updated: {', '.join(not_editable)}",
                                  {k: payload[k] for k in not_editable})
        if "granularity" in payload and payload["granularity"] is None:
            raise ValidationError("granularity cannot be null", {"granularity": None})

        async with unit_of_work(self.session_factory) as repos:
            assessment = await _load_assessment(repos, assessment_id, for_update=True)
            data = assessment.to_dict()
            data.update(payload)
            updated = Assessment.from_dict(data)

            targets_changed = (
                updated.granularity is not assessment.granularity
                or (updated.is_team_based and updated.team_set_id != assessment.team_set_id)
            )
            if targets_changed and await repos.assignment_sets.exists(assessment_id):
                raise InvalidStateError("Cannot change who is graded once an assignment set exists")

            for name in ("assessment_name", "description", "start_date", "end_date",
                         "max_marks", "granularity", "team_set_id"):
                setattr(assessment, name, getattr(updated, name))
            await repos.assessments.save(assessment)

        logger.info(f"Updated assessment {assessment_id}: {', '.join(sorted(payload))}")
        return assessment

    async def delete_assessment(self, assessment_id: str) -> None:
        """Delete an assessment with its questions, submissions, assignments and results."""
        async with unit_of_work(self.session_factory) as repos:
            await _load_assessment(repos, assessment_id, for_update=True)
            await repos.assessments.delete(assessment_id)
        logger.info(f"Deleted assessment {assessment_id}")

    async def list_questions(self, assessment_id: str) -> List[Question]:
        async with unit_of_work(self.session_factory) as repos:
            await _load_assessment(repos, assessment_id)
            return await repos.questions.list_for_assessment(assessment_id)

    async def add_question(self, assessment_id: str, payload: Dict[str, Any]) -> Question:
        """
        Append a question to an unreleased assessment.

        Args:
            assessment_id: The assessment
            payload: Question payload; ``id`` and ``isLocked`` are ignored

        Returns:
            The created question with its assigned ID and position

        Raises:
            NotFoundError: If the assessment does not exist
            InvalidStateError: If the assessment is released
            ValidationError: If the payload is invalid or names a reserved type
        """
        if parse_question_type(payload.get("type")).is_reserved:
            raise ValidationError(f"{payload.get('type')} questions are managed by the system",
                                  {"type": payload.get("type")})

        async with unit_of_work(self.session_factory) as repos:
            assessment = await _load_assessment(repos, assessment_id, for_update=True)
            if assessment.is_released:
                raise InvalidStateError("Cannot add questions to a released assessment")

            data = dict(payload)
            data.pop("id", None)
            data["isLocked"] = False
            data["position"] = await repos.questions.next_position(assessment_id)
            question = question_from_dict(data)

            await repos.questions.add(assessment_id, question)
            await _refresh_total_marks(repos, assessment)

        logger.info(f"Added {question.type} question {question.id} to assessment {assessment_id}")
        return question

    async def update_question(self, question_id: str, payload: Dict[str, Any]) -> Question:
        """
        Update an unlocked question.

        Fields absent from ``payload`` keep their current values. The variant
        cannot change.

        Raises:
            NotFoundError: If the question does not exist
            LockedError: If the question is locked
            ValidationError: If the type changes or the result is invalid
        """
        async with unit_of_work(self.session_factory) as repos:
            existing = await repos.questions.get(question_id)
            if existing is None:
                raise NotFoundError("Question", question_id)
            if existing.is_locked:
                raise LockedError(question_id)
            if "type" in payload and payload["type"] != existing.type:
                raise ValidationError("Cannot change the type of an existing question",
                                      {"type": payload["type"]})

            data = existing.to_dict()
            data.update(payload)
            data["id"] = existing.id
            data["type"] = existing.type
            data["isLocked"] = False
            question = question_from_dict(data)

            await repos.questions.save(question)
            assessment_id = await repos.questions.assessment_id_of(question_id)
            assessment = await _load_assessment(repos, assessment_id, for_update=True)
            await _refresh_total_marks(repos, assessment)

        logger.info(f"Updated question {question_id}")
        return question

    async def delete_question(self, question_id: str) -> None:
        """
        Raises:
            NotFoundError: If the question does not exist
            LockedError: If the question is locked
        """
        async with unit_of_work(self.session_factory) as repos:
            existing = await repos.questions.get(question_id)
            if existing is None:
                raise NotFoundError("Question", question_id)
            if existing.is_locked:
                raise LockedError(question_id)

            assessment_id = await repos.questions.assessment_id_of(question_id)
            await repos.questions.delete(question_id)
            assessment = await _load_assessment(repos, assessment_id, for_update=True)
            await _refresh_total_marks(repos, assessment)

        logger.info(f"Deleted question {question_id} from assessment {assessment_id}")
