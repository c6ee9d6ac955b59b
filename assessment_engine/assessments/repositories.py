"""
Assessment Repositories

SQLAlchemy-backed repositories mapping table rows to the domain dataclasses.
Repositories never open transactions themselves: every use case runs inside
one ``unit_of_work`` block, which commits on success, rolls back on any
error, and turns driver failures into ``DatabaseError``.
"""

import datetime
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from sqlalchemy import select, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from assessment_engine.common.exceptions import DatabaseError
from assessment_engine.common.logger import app_logger
from assessment_engine.database.models import (
    AssessmentRecord, QuestionRecord, SubmissionRecord, AssignmentSetRecord, ResultRecord
)
from assessment_engine.assessments.models import Assessment, Granularity
from assessment_engine.assessments.questions import Question, question_from_dict
from assessment_engine.assessments.answers import answer_from_dict
from assessment_engine.assessments.submissions import Submission
from assessment_engine.assessments.assignment import AssessmentAssignmentSet, Assignment
from assessment_engine.assessments.results import AssessmentResult, MarkEntry

logger = app_logger.getChild("assessments.repositories")


class AssessmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_record(self, assessment_id: str, for_update: bool = False) -> Optional[AssessmentRecord]:
        stmt = select(AssessmentRecord).where(AssessmentRecord.id == assessment_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, assessment_id: str, for_update: bool = False) -> Optional[Assessment]:
        record = await self._get_record(assessment_id, for_update)
        return self._to_domain(record) if record else None

    async def add(self, assessment: Assessment) -> None:
        record = AssessmentRecord(id=assessment.id, created_at=assessment.created_at)
        record.update(self._to_columns(assessment))
        self.session.add(record)
        await self.session.flush()

    async def save(self, assessment: Assessment) -> None:
        record = await self._get_record(assessment.id)
        record.update(self._to_columns(assessment))
        await self.session.flush()

    async def delete(self, assessment_id: str) -> None:
        # Children are removed explicitly as well, for backends without FK enforcement.
        for table in (ResultRecord, AssignmentSetRecord, SubmissionRecord, QuestionRecord):
            await self.session.execute(delete(table).where(table.assessment_id == assessment_id))
        await self.session.execute(delete(AssessmentRecord).where(AssessmentRecord.id == assessment_id))

    @staticmethod
    def _to_columns(assessment: Assessment) -> dict:
        return {
            "course_id": assessment.course_id,
            "assessment_name": assessment.assessment_name,
            "description": assessment.description,
            "start_date": assessment.start_date,
            "end_date": assessment.end_date,
            "max_marks": assessment.max_marks,
            "questions_total_marks": assessment.questions_total_marks,
            "granularity": assessment.granularity.value,
            "team_set_id": assessment.team_set_id,
            "is_released": assessment.is_released,
            "current_release_number": assessment.current_release_number,
        }

    @staticmethod
    def _to_domain(record: AssessmentRecord) -> Assessment:
        return Assessment(
            id=record.id,
            course_id=record.course_id,
            assessment_name=record.assessment_name,
            description=record.description,
            start_date=record.start_date,
            end_date=record.end_date,
            max_marks=record.max_marks,
            questions_total_marks=record.questions_total_marks,
            granularity=Granularity(record.granularity),
            team_set_id=record.team_set_id,
            is_released=record.is_released,
            current_release_number=record.current_release_number,
            created_at=record.created_at,
        )


class QuestionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_record(self, question_id: str) -> Optional[QuestionRecord]:
        result = await self.session.execute(select(QuestionRecord).where(QuestionRecord.id == question_id))
        return result.scalar_one_or_none()

    async def get(self, question_id: str) -> Optional[Question]:
        record = await self._get_record(question_id)
        return question_from_dict(record.config, validate=False) if record else None

    async def assessment_id_of(self, question_id: str) -> Optional[str]:
        result = await self.session.execute(
            select(QuestionRecord.assessment_id).where(QuestionRecord.id == question_id)
        )
        return result.scalar_one_or_none()

    async def list_for_assessment(self, assessment_id: str) -> List[Question]:
        result = await self.session.execute(
            select(QuestionRecord)
            .where(QuestionRecord.assessment_id == assessment_id)
            .order_by(QuestionRecord.position, QuestionRecord.created_at)
        )
        return [question_from_dict(r.config, validate=False) for r in result.scalars().all()]

    async def next_position(self, assessment_id: str) -> int:
        result = await self.session.execute(
            select(func.max(QuestionRecord.position)).where(QuestionRecord.assessment_id == assessment_id)
        )
        highest = result.scalar_one_or_none()
        return 0 if highest is None else highest + 1

    async def add(self, assessment_id: str, question: Question) -> None:
        record = QuestionRecord(id=question.id, assessment_id=assessment_id)
        record.update(self._to_columns(question))
        self.session.add(record)
        await self.session.flush()

    async def save(self, question: Question) -> None:
        record = await self._get_record(question.id)
        record.update(self._to_columns(question))
        await self.session.flush()

    async def delete(self, question_id: str) -> None:
        await self.session.execute(delete(QuestionRecord).where(QuestionRecord.id == question_id))

    @staticmethod
    def _to_columns(question: Question) -> dict:
        return {
            "type": question.type,
            "position": question.position,
            "is_locked": question.is_locked,
            "is_required": question.is_required,
            "config": question.to_dict(),
        }


class SubmissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_record(self, submission_id: str, for_update: bool = False) -> Optional[SubmissionRecord]:
        stmt = select(SubmissionRecord).where(SubmissionRecord.id == submission_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, submission_id: str, for_update: bool = False) -> Optional[Submission]:
        record = await self._get_record(submission_id, for_update)
        return self._to_domain(record) if record else None

    async def find(self, assessment_id: str, respondent_id: str, marker_id: str,
                   for_update: bool = False) -> Optional[Submission]:
        stmt = select(SubmissionRecord).where(
            SubmissionRecord.assessment_id == assessment_id,
            SubmissionRecord.respondent_id == respondent_id,
            SubmissionRecord.marker_id == marker_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        return self._to_domain(record) if record else None

    async def list_for_assessment(self, assessment_id: str, marker_id: Optional[str] = None) -> List[Submission]:
        stmt = select(SubmissionRecord).where(SubmissionRecord.assessment_id == assessment_id)
        if marker_id is not None:
            stmt = stmt.where(SubmissionRecord.marker_id == marker_id)
        result = await self.session.execute(stmt.order_by(SubmissionRecord.created_at))
        return [self._to_domain(r) for r in result.scalars().all()]

    async def final_by_marker(self, assessment_id: str, respondent_id: str) -> Dict[str, Submission]:
        """Final submissions for a respondent, keyed by marker."""
        result = await self.session.execute(
            select(SubmissionRecord).where(
                SubmissionRecord.assessment_id == assessment_id,
                SubmissionRecord.respondent_id == respondent_id,
                SubmissionRecord.is_draft.is_(False),
            )
        )
        return {r.marker_id: self._to_domain(r) for r in result.scalars().all()}

    async def add(self, submission: Submission) -> None:
        """
        Insert a new submission.

        Raises:
            IntegrityError: If one already exists for the same
                (assessment, respondent, marker); the savepoint is rolled back
                and the surrounding transaction stays usable.
        """
        record = SubmissionRecord(id=submission.id, created_at=submission.created_at)
        record.update(self._to_columns(submission))
        async with self.session.begin_nested():
            self.session.add(record)
            await self.session.flush()

    async def save(self, submission: Submission) -> None:
        record = await self._get_record(submission.id)
        record.update(self._to_columns(submission))
        await self.session.flush()

    async def delete(self, submission_id: str) -> None:
        await self.session.execute(delete(SubmissionRecord).where(SubmissionRecord.id == submission_id))

    @staticmethod
    def _to_columns(submission: Submission) -> dict:
        return {
            "assessment_id": submission.assessment_id,
            "respondent_id": submission.respondent_id,
            "marker_id": submission.marker_id,
            "is_draft": submission.is_draft,
            "score": submission.score,
            "adjusted_score": submission.adjusted_score,
            "submission_release_number": submission.submission_release_number,
            "answers": [answer.to_dict() for answer in submission.answers],
            "updated_at": submission.updated_at,
        }

    @staticmethod
    def _to_domain(record: SubmissionRecord) -> Submission:
        return Submission(
            id=record.id,
            assessment_id=record.assessment_id,
            respondent_id=record.respondent_id,
            marker_id=record.marker_id,
            answers=[answer_from_dict(a) for a in record.answers],
            is_draft=record.is_draft,
            score=record.score,
            adjusted_score=record.adjusted_score,
            submission_release_number=record.submission_release_number,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class AssignmentSetRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, assessment_id: str) -> Optional[AssessmentAssignmentSet]:
        result = await self.session.execute(
            select(AssignmentSetRecord).where(AssignmentSetRecord.assessment_id == assessment_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return AssessmentAssignmentSet(
            id=record.id,
            assessment_id=record.assessment_id,
            granularity=Granularity(record.granularity),
            assignments=[Assignment.from_dict(a) for a in record.assignments],
            updated_at=record.updated_at,
        )

    async def exists(self, assessment_id: str) -> bool:
        result = await self.session.execute(
            select(AssignmentSetRecord.id).where(AssignmentSetRecord.assessment_id == assessment_id)
        )
        return result.scalar_one_or_none() is not None

    async def replace(self, assignment_set: AssessmentAssignmentSet) -> AssessmentAssignmentSet:
        """Store ``assignment_set`` as the assessment's only set, in a single row write."""
        result = await self.session.execute(
            select(AssignmentSetRecord)
            .where(AssignmentSetRecord.assessment_id == assignment_set.assessment_id)
            .with_for_update()
        )
        record = result.scalar_one_or_none()
        assignment_set.updated_at = datetime.datetime.utcnow()
        columns = {
            "granularity": assignment_set.granularity.value,
            "assignments": [a.to_dict(assignment_set.granularity) for a in assignment_set.assignments],
            "updated_at": assignment_set.updated_at,
        }
        if record is None:
            record = AssignmentSetRecord(id=assignment_set.id, assessment_id=assignment_set.assessment_id)
            self.session.add(record)
        else:
            assignment_set.id = record.id
        record.update(columns)
        await self.session.flush()
        return assignment_set


class ResultRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_record(self, assessment_id: str, student_id: str) -> Optional[ResultRecord]:
        result = await self.session.execute(
            select(ResultRecord).where(
                ResultRecord.assessment_id == assessment_id,
                ResultRecord.student_id == student_id,
            )
        )
        return result.scalar_one_or_none()

    async def get(self, assessment_id: str, student_id: str) -> Optional[AssessmentResult]:
        record = await self._get_record(assessment_id, student_id)
        return self._to_domain(record) if record else None

    async def list_for_assessment(self, assessment_id: str) -> List[AssessmentResult]:
        result = await self.session.execute(
            select(ResultRecord)
            .where(ResultRecord.assessment_id == assessment_id)
            .order_by(ResultRecord.student_id)
        )
        return [self._to_domain(r) for r in result.scalars().all()]

    async def upsert(self, result: AssessmentResult) -> AssessmentResult:
        """Create the (assessment, student) result or update it in place."""
        columns = {
            "average_score": result.average_score,
            "marks": [mark.to_dict() for mark in result.marks],
            "updated_at": result.updated_at,
        }
        record = await self._get_record(result.assessment_id, result.student_id)
        if record is None:
            record = ResultRecord(id=result.id, assessment_id=result.assessment_id,
                                  student_id=result.student_id)
            record.update(columns)
            try:
                async with self.session.begin_nested():
                    self.session.add(record)
                    await self.session.flush()
                return result
            except IntegrityError:
                # A concurrent recompute created it first; overwrite theirs.
                record = await self._get_record(result.assessment_id, result.student_id)

        result.id = record.id
        record.update(columns)
        await self.session.flush()
        return result

    @staticmethod
    def _to_domain(record: ResultRecord) -> AssessmentResult:
        return AssessmentResult(
            id=record.id,
            assessment_id=record.assessment_id,
            student_id=record.student_id,
            marks=[MarkEntry.from_dict(m) for m in record.marks],
            average_score=record.average_score,
            updated_at=record.updated_at,
        )


class Repositories:
    """The repositories of one unit of work, sharing its session."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.assessments = AssessmentRepository(session)
        self.questions = QuestionRepository(session)
        self.submissions = SubmissionRepository(session)
        self.assignment_sets = AssignmentSetRepository(session)
        self.results = ResultRepository(session)


@asynccontextmanager
async def unit_of_work(session_factory) -> AsyncIterator[Repositories]:
    """
    Run a block in one database transaction.

    Domain errors raised inside the block roll the transaction back and
    propagate unchanged; SQLAlchemy errors are re-raised as ``DatabaseError``.
    """
    async with session_factory() as session:
        try:
            async with session.begin():
                yield Repositories(session)
        except SQLAlchemyError as e:
            logger.error(f"Transaction rolled back: {e}")
            raise DatabaseError(str(e), original_exception=e)
