"""
Submission Service

Drives the submission lifecycle: NonExistent -> Draft -> Final, with draft
overwrite and draft deletion. Saving a final submission or adjusting its
score recomputes the affected results in the same transaction.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from assessment_engine.common.exceptions import (
    NotFoundError, ValidationError, InvalidStateError, AlreadyFinalizedError
)
from assessment_engine.common.logger import app_logger, with_context
from assessment_engine.common.serialization import is_number
from assessment_engine.assessments.models import Assessment
from assessment_engine.assessments.answers import answer_from_dict
from assessment_engine.assessments.collaborators import RosterProvider
from assessment_engine.assessments.submissions import (
    Submission, check_answers, ensure_complete, score_answers
)
from assessment_engine.assessments.aggregator import ResultAggregator
from assessment_engine.assessments.repositories import unit_of_work

logger = app_logger.getChild("assessments.submission_service")


@dataclass
class SubmissionView:
    """A submission together with the release counter it is judged against."""

    submission: Submission
    current_release_number: int

    @property
    def is_outdated(self) -> bool:
        return self.submission.is_outdated(self.current_release_number)

    def to_dict(self) -> Dict[str, Any]:
        return self.submission.to_dict(self.current_release_number)


class SubmissionService:
    def __init__(
        self,
        session_factory,
        roster: RosterProvider,
        aggregator: ResultAggregator,
        enforce_submission_period: bool = True,
    ):
        self.session_factory = session_factory
        self.roster = roster
        self.aggregator = aggregator
        self.enforce_submission_period = enforce_submission_period

    def _check_participants(self, assessment: Assessment, respondent_id: str, marker_id: str) -> None:
        if assessment.is_team_based:
            known = {team.id for team in self.roster.get_teams(assessment.course_id, assessment.team_set_id)}
            if respondent_id not in known:
                raise NotFoundError("Team", respondent_id)
        elif respondent_id not in self.roster.get_students(assessment.course_id):
            raise NotFoundError("Student", respondent_id)

        if marker_id not in self.roster.get_tas(assessment.course_id):
            raise NotFoundError("Marker", marker_id)

    async def save_submission(
        self,
        assessment_id: str,
        respondent_id: str,
        marker_id: str,
        answers: List[Dict[str, Any]],
        is_draft: bool = True,
    ) -> SubmissionView:
        """
        Create a submission or overwrite the marker's draft for the respondent.

        Answers replace any previous answers entirely and are re-scored from
        scratch. Saving with ``is_draft=False`` finalizes the submission and
        requires every required question to be answered.

        Args:
            assessment_id: The assessment
            respondent_id: The graded team or student
            marker_id: The TA filling in the submission
            answers: Answer payloads
            is_draft: False to finalize

        Returns:
            The stored submission

        Raises:
            NotFoundError: If the assessment, respondent, marker or an answered question is unknown
            InvalidStateError: If the assessment is outside its submission period
            ValidationError: If answers are malformed; ``MissingRequiredAnswersError``
                lists unanswered required questions when finalizing
            TypeMismatchError: If an answer does not match its question's variant
            AlreadyFinalizedError: If the existing submission is final
        """
        log = with_context("assessments.submission_service", assessment_id=assessment_id,
                           respondent_id=respondent_id, marker_id=marker_id)
        parsed_answers = [answer_from_dict(answer) for answer in answers]

        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)
            self._check_participants(assessment, respondent_id, marker_id)

            now = datetime.datetime.utcnow()
            if self.enforce_submission_period and not assessment.accepts_submissions_at(now):
                raise InvalidStateError("Assessment is not open for submissions")

            questions = await repos.questions.list_for_assessment(assessment_id)
            check_answers(questions, parsed_answers, individual_granularity=not assessment.is_team_based)
            if not is_draft:
                ensure_complete(questions, parsed_answers)
            score = score_answers(questions, parsed_answers)

            existing = await repos.submissions.find(assessment_id, respondent_id, marker_id, for_update=True)
            if existing is None:
                submission = Submission(
                    assessment_id=assessment_id,
                    respondent_id=respondent_id,
                    marker_id=marker_id,
                    answers=parsed_answers,
                    is_draft=is_draft,
                    score=score,
                    submission_release_number=assessment.current_release_number,
                )
                try:
                    await repos.submissions.add(submission)
                except IntegrityError:
                    log.warning("Concurrent submission insert; overwriting the stored one")
                    existing = await repos.submissions.find(
                        assessment_id, respondent_id, marker_id, for_update=True
                    )

            if existing is not None:
                if existing.is_final:
                    raise AlreadyFinalizedError(existing.id)
                existing.answers = parsed_answers
                existing.score = score
                existing.adjusted_score = None
                existing.is_draft = is_draft
                existing.submission_release_number = assessment.current_release_number
                existing.updated_at = now
                await repos.submissions.save(existing)
                submission = existing

            if submission.is_final:
                await self.aggregator.recompute_for_respondent(repos, assessment, respondent_id)

        log.info(f"Saved {'draft' if submission.is_draft else 'final'} submission {submission.id} "
                 f"with score {submission.score}")
        return SubmissionView(submission, assessment.current_release_number)

    async def get_submission(self, submission_id: str) -> SubmissionView:
        async with unit_of_work(self.session_factory) as repos:
            submission = await repos.submissions.get(submission_id)
            if submission is None:
                raise NotFoundError("Submission", submission_id)
            assessment = await repos.assessments.get(submission.assessment_id)
        return SubmissionView(submission, assessment.current_release_number)

    async def list_submissions(self, assessment_id: str, marker_id: Optional[str] = None) -> List[SubmissionView]:
        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)
            submissions = await repos.submissions.list_for_assessment(assessment_id, marker_id)
        return [SubmissionView(s, assessment.current_release_number) for s in submissions]

    async def delete_submission(self, submission_id: str) -> None:
        """
        Delete a draft submission.

        Raises:
            NotFoundError: If the submission does not exist
            InvalidStateError: If the submission is final
        """
        async with unit_of_work(self.session_factory) as repos:
            submission = await repos.submissions.get(submission_id, for_update=True)
            if submission is None:
                raise NotFoundError("Submission", submission_id)
            if submission.is_final:
                raise InvalidStateError("Cannot delete a finalized submission")
            await repos.submissions.delete(submission_id)

        logger.info(f"Deleted draft submission {submission_id}")

    async def adjust_score(self, submission_id: str, adjusted_score: Optional[float]) -> SubmissionView:
        """
        Set or clear the grader override of a submission's score.

        Raises:
            NotFoundError: If the submission does not exist
            ValidationError: If the adjusted score is negative or not a number
        """
        if adjusted_score is not None and (not is_number(adjusted_score) or adjusted_score < 0):
            raise ValidationError("adjustedScore must be a non-negative number",
                                  {"adjustedScore": adjusted_score})

        async with unit_of_work(self.session_factory) as repos:
            submission = await repos.submissions.get(submission_id, for_update=True)
            if submission is None:
                raise NotFoundError("Submission", submission_id)
            assessment = await repos.assessments.get(submission.assessment_id)

            submission.adjusted_score = adjusted_score
            submission.updated_at = datetime.datetime.utcnow()
            await repos.submissions.save(submission)

            if submission.is_final:
                await self.aggregator.recompute_for_respondent(repos, assessment, submission.respondent_id)

        logger.info(f"Adjusted score of submission {submission_id} to {adjusted_score}")
        return SubmissionView(submission, assessment.current_release_number)
