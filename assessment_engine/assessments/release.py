"""
Release/Recall Controller

Releasing an assessment locks all of its questions and starts a new release
epoch (``current_release_number``). Stored results are recomputed in the
same transaction so their marks are flagged against the new epoch.
Recalling only reopens the assessment; questions stay locked. Both
transitions are idempotent.
"""

from assessment_engine.common.exceptions import NotFoundError, InvalidStateError
from assessment_engine.common.logger import app_logger, with_context
from assessment_engine.assessments.models import Assessment
from assessment_engine.assessments.collaborators import RosterProvider, NotificationSender
from assessment_engine.assessments.aggregator import ResultAggregator
from assessment_engine.assessments.repositories import unit_of_work

logger = app_logger.getChild("assessments.release")


class ReleaseController:
    def __init__(
        self,
        session_factory,
        roster: RosterProvider,
        notifier: NotificationSender,
        aggregator: ResultAggregator,
    ):
        self.session_factory = session_factory
        self.roster = roster
        self.notifier = notifier
        self.aggregator = aggregator

    async def release(self, assessment_id: str) -> Assessment:
        """
        Release an assessment to its graders.

        Raises:
            NotFoundError: If the assessment does not exist
            InvalidStateError: If the assessment has no questions of its own
        """
        log = with_context("assessments.release", assessment_id=assessment_id)

        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id, for_update=True)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)
            if assessment.is_released:
                log.info("Assessment already released")
                return assessment

            questions = await repos.questions.list_for_assessment(assessment_id)
            if not any(not q.question_type.is_reserved for q in questions):
                raise InvalidStateError("Cannot release an assessment without questions")

            for question in questions:
                if not question.is_locked:
                    question.is_locked = True
                    await repos.questions.save(question)

            assessment.is_released = True
            assessment.current_release_number += 1
            await repos.assessments.save(assessment)

            # Re-flag stored marks against the new epoch.
            stored = await repos.results.list_for_assessment(assessment_id)
            await self.aggregator.recompute_all(repos, assessment, [r.student_id for r in stored])

        log.info(f"Released as release #{assessment.current_release_number}")
        await self._notify_graders(assessment)
        return assessment

    async def recall(self, assessment_id: str) -> Assessment:
        """
        Withdraw a released assessment. Questions remain locked.

        Raises:
            NotFoundError: If the assessment does not exist
        """
        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id, for_update=True)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)
            if not assessment.is_released:
                return assessment

            assessment.is_released = False
            await repos.assessments.save(assessment)

        logger.info(f"Recalled assessment {assessment_id}")
        return assessment

    async def _notify_graders(self, assessment: Assessment) -> None:
        text = f"Assessment '{assessment.assessment_name}' has been released for grading."
        for ta_id in self.roster.get_tas(assessment.course_id):
            try:
                await self.notifier.send(ta_id, text)
            except Exception as e:
                logger.error(f"Failed to notify {ta_id} about release of {assessment.id}: {e}")
