"""
Result Aggregator

Keeps ``AssessmentResult`` rows in line with assignments and final
submissions. Every recompute rebuilds a result from current ground truth,
so calls may be repeated or race each other without drifting.
"""

from typing import List, Optional

from assessment_engine.common.exceptions import NotFoundError, ValidationError
from assessment_engine.common.logger import app_logger, log_execution_time
from assessment_engine.assessments.models import Assessment
from assessment_engine.assessments.collaborators import RosterProvider
from assessment_engine.assessments.assignment import AssessmentAssignmentSet
from assessment_engine.assessments.results import (
    AssessmentResult, aggregate_marks, average_score
)
from assessment_engine.assessments.repositories import Repositories, unit_of_work

logger = app_logger.getChild("assessments.aggregator")


def students_in_scope(roster: RosterProvider, assessment: Assessment) -> List[str]:
    """Students graded by an assessment, according to the roster."""
    if assessment.is_team_based:
        students: List[str] = []
        for team in roster.get_teams(assessment.course_id, assessment.team_set_id):
            students.extend(m for m in team.member_ids if m not in students)
        return students
    return roster.get_students(assessment.course_id)


async def load_assignment_set(repos: Repositories, assessment_id: str) -> Optional[AssessmentAssignmentSet]:
    """The assessment's assignment set, or None when there is none or it cannot be read."""
    try:
        return await repos.assignment_sets.get(assessment_id)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Unreadable assignment set for assessment {assessment_id}, "
                       f"results will have no mark entries: {e}")
        return None


class ResultAggregator:
    """Recomputes and serves per-student assessment results."""

    def __init__(self, session_factory, roster: RosterProvider):
        self.session_factory = session_factory
        self.roster = roster

    async def recompute_in(
        self,
        repos: Repositories,
        assessment: Assessment,
        student_id: str,
        assignment_set: Optional[AssessmentAssignmentSet] = None,
    ) -> AssessmentResult:
        """
        Rebuild one student's result inside the caller's transaction.

        A student without an assignment gets a result with no entries.

        Args:
            repos: Repositories of the running unit of work
            assessment: The assessment
            student_id: The student
            assignment_set: The set to use; loaded when not given

        Returns:
            The stored result
        """
        if assignment_set is None:
            assignment_set = await load_assignment_set(repos, assessment.id)

        assignment = assignment_set.assignment_for_student(student_id) if assignment_set else None
        if assignment is None:
            logger.warning(f"No assignment for student {student_id} in assessment {assessment.id}; "
                           f"result will have no mark entries")
            final_submissions = {}
        else:
            final_submissions = await repos.submissions.final_by_marker(assessment.id, assignment.target_id)

        marks = aggregate_marks(assignment, final_submissions, assessment.current_release_number)
        result = AssessmentResult(
            assessment_id=assessment.id,
            student_id=student_id,
            marks=marks,
            average_score=average_score(marks),
        )

        existing = await repos.results.get(assessment.id, student_id)
        if existing is not None and existing.same_content(result):
            return existing
        return await repos.results.upsert(result)

    async def recompute_for_respondent(
        self, repos: Repositories, assessment: Assessment, respondent_id: str
    ) -> List[AssessmentResult]:
        """Rebuild the results of every student a respondent (team or student) stands for."""
        assignment_set = await load_assignment_set(repos, assessment.id)
        assignment = assignment_set.assignment_for_target(respondent_id) if assignment_set else None

        if assignment is not None:
            student_ids = assignment.member_ids
        elif not assessment.is_team_based:
            student_ids = [respondent_id]
        else:
            logger.warning(f"Team {respondent_id} is not in the assignment set of assessment {assessment.id}")
            return []

        return [
            await self.recompute_in(repos, assessment, student_id, assignment_set)
            for student_id in student_ids
        ]

    async def recompute_all(
        self, repos: Repositories, assessment: Assessment, student_ids: List[str]
    ) -> List[AssessmentResult]:
        assignment_set = await load_assignment_set(repos, assessment.id)
        return [
            await self.recompute_in(repos, assessment, student_id, assignment_set)
            for student_id in student_ids
        ]

    async def recompute_result(self, assessment_id: str, student_id: str) -> AssessmentResult:
        """
        Rebuild one student's result in its own transaction.

        Raises:
            NotFoundError: If the assessment does not exist
        """
        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)
            return await self.recompute_in(repos, assessment, student_id)

    @log_execution_time(logger)
    async def get_results(self, assessment_id: str) -> List[AssessmentResult]:
        """
        Get the result of every student in scope, creating missing ones.

        Raises:
            NotFoundError: If the assessment does not exist
        """
        async with unit_of_work(self.session_factory) as repos:
            assessment = await repos.assessments.get(assessment_id)
            if assessment is None:
                raise NotFoundError("Assessment", assessment_id)

            assignment_set = await load_assignment_set(repos, assessment.id)
            student_ids = students_in_scope(self.roster, assessment)
            if assignment_set is not None:
                student_ids.extend(s for s in assignment_set.student_ids() if s not in student_ids)

            existing = {r.student_id: r for r in await repos.results.list_for_assessment(assessment_id)}
            results = []
            for student_id in student_ids:
                result = existing.get(student_id)
                if result is None:
                    result = await self.recompute_in(repos, assessment, student_id, assignment_set)
                results.append(result)

        logger.debug(f"Served {len(results)} results for assessment {assessment_id}")
        return results
