"""
Assignment Service

Generates, edits and queries the assignment set of an assessment. A new or
edited set replaces the previous one and the results of every affected
student are recomputed in the same transaction.
"""

from typing import Any, Dict, List, Optional

from assessment_engine.common.exceptions import NotFoundError, ValidationError
from assessment_engine.common.logger import app_logger, log_execution_time
from assessment_engine.assessments.models import Assessment
from assessment_engine.assessments.collaborators import RosterProvider
from assessment_engine.assessments.assignment import (
    AssessmentAssignmentSet, Assignment, GradingTarget,
    build_assignment_set, validate_manual_assignments
)
from assessment_engine.assessments.aggregator import ResultAggregator, load_assignment_set
from assessment_engine.assessments.repositories import Repositories, unit_of_work

logger = app_logger.getChild("assessments.assignment_service")


class AssignmentService:
    def __init__(
        self,
        session_factory,
        roster: RosterProvider,
        aggregator: ResultAggregator,
        default_tas_per_target: int = 1,
    ):
        self.session_factory = session_factory
        self.roster = roster
        self.aggregator = aggregator
        self.default_tas_per_target = default_tas_per_target

    @staticmethod
    async def _lock_assessment(repos: Repositories, assessment_id: str) -> Assessment:
        assessment = await repos.assessments.get(assessment_id, for_update=True)
        if assessment is None:
            raise NotFoundError("Assessment", assessment_id)
        return assessment

    def _targets(self, assessment: Assessment) -> List[GradingTarget]:
        if assessment.is_team_based:
            return [
                GradingTarget(id=team.id, member_ids=list(team.member_ids), preferred_ta_id=team.ta_id)
                for team in self.roster.get_teams(assessment.course_id, assessment.team_set_id)
            ]
        return [
            GradingTarget(id=student_id, member_ids=[student_id])
            for student_id in self.roster.get_students(assessment.course_id)
        ]

    async def _store(
        self, repos: Repositories, assessment: Assessment, assignment_set: AssessmentAssignmentSet
    ) -> AssessmentAssignmentSet:
        previous = await load_assignment_set(repos, assessment.id)
        stored = await repos.assignment_sets.replace(assignment_set)

        affected = stored.student_ids()
        if previous is not None:
            affected.extend(s for s in previous.student_ids() if s not in affected)
        await self.aggregator.recompute_all(repos, assessment, affected)
        return stored

    @log_execution_time(logger)
    async def regenerate_assignment_set(
        self, assessment_id: str, tas_per_target: Optional[int] = None
    ) -> AssessmentAssignmentSet:
        """
        Build a fresh assignment set from the roster and replace the current one.

        Args:
            assessment_id: The assessment
            tas_per_target: TAs per team/student; the configured default when None

        Returns:
            The stored set; targets without any TA are listed in ``unassigned_targets``

        Raises:
            NotFoundError: If the assessment does not exist
            ValidationError: If ``tas_per_target`` is below 1
        """
        async with unit_of_work(self.session_factory) as repos:
            assessment = await self._lock_assessment(repos, assessment_id)
            assignment_set = build_assignment_set(
                assessment_id,
                assessment.granularity,
                self._targets(assessment),
                self.roster.get_tas(assessment.course_id),
                tas_per_target if tas_per_target is not None else self.default_tas_per_target,
            )
            stored = await self._store(repos, assessment, assignment_set)

        if stored.unassigned_targets:
            logger.warning(f"Assessment {assessment_id}: {len(stored.unassigned_targets)} target(s) "
                           f"have no grading TA: {stored.unassigned_targets}")
        logger.info(f"Regenerated assignment set of assessment {assessment_id} "
                    f"with {len(stored.assignments)} assignments")
        return stored

    async def update_assignment_set(
        self, assessment_id: str, assignments: List[Dict[str, Any]]
    ) -> AssessmentAssignmentSet:
        """
        Replace the TAs of an existing set by hand.

        Raises:
            NotFoundError: If the assessment or its assignment set does not exist
            ValidationError: If coverage changes or an unknown TA is named
        """
        if not isinstance(assignments, list):
            raise ValidationError("assignments must be a list")
        parsed = [Assignment.from_dict(a) for a in assignments]

        async with unit_of_work(self.session_factory) as repos:
            assessment = await self._lock_assessment(repos, assessment_id)
            current = await repos.assignment_sets.get(assessment_id)
            if current is None:
                raise NotFoundError("AssessmentAssignmentSet", assessment_id)
            known_tas = self.roster.get_tas(assessment.course_id)
            current.assignments = validate_manual_assignments(current, parsed, known_tas)
            stored = await self._store(repos, assessment, current)

        logger.info(f"Updated assignment set of assessment {assessment_id}")
        return stored

    async def get_assignment_set(self, assessment_id: str) -> AssessmentAssignmentSet:
        async with unit_of_work(self.session_factory) as repos:
            if await repos.assessments.get(assessment_id) is None:
                raise NotFoundError("Assessment", assessment_id)
            assignment_set = await repos.assignment_sets.get(assessment_id)
        if assignment_set is None:
            raise NotFoundError("AssessmentAssignmentSet", assessment_id)
        return assignment_set

    async def get_assignments_for_ta(
        self, assessment_id: str, ta_id: str, unmarked_only: bool = False
    ) -> List[Assignment]:
        """
        Assignments a TA is responsible for.

        Args:
            assessment_id: The assessment
            ta_id: The TA
            unmarked_only: Only targets the TA has no final submission for
        """
        async with unit_of_work(self.session_factory) as repos:
            if await repos.assessments.get(assessment_id) is None:
                raise NotFoundError("Assessment", assessment_id)
            assignment_set = await repos.assignment_sets.get(assessment_id)
            if assignment_set is None:
                raise NotFoundError("AssessmentAssignmentSet", assessment_id)

            assignments = assignment_set.assignments_for_ta(ta_id)
            if unmarked_only:
                submissions = await repos.submissions.list_for_assessment(assessment_id, marker_id=ta_id)
                marked = {s.respondent_id for s in submissions if s.is_final}
                assignments = [a for a in assignments if a.target_id not in marked]
        return assignments
