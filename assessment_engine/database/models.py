"""
Table definitions for the assessment engine.

Variant-specific question configuration, submission answers, assignment
entries and mark entries are stored as JSON documents; everything that is
queried or constrained on lives in ordinary columns.
"""

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, UniqueConstraint, Index
)

from assessment_engine.database.base import ModelBase


class AssessmentRecord(ModelBase):
    __tablename__ = "assessments"

    id = Column(String(36), primary_key=True)
    course_id = Column(String(64), nullable=False, index=True)
    assessment_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=True)
    max_marks = Column(Float, nullable=True)
    questions_total_marks = Column(Float, nullable=False, default=0)
    granularity = Column(String(16), nullable=False)
    team_set_id = Column(String(64), nullable=True)
    is_released = Column(Boolean, nullable=False, default=False)
    current_release_number = Column(Integer, nullable=False, default=0)


class QuestionRecord(ModelBase):
    __tablename__ = "questions"
    __table_args__ = (
        Index("ix_questions_assessment_position", "assessment_id", "position"),
    )

    id = Column(String(36), primary_key=True)
    assessment_id = Column(String(36), ForeignKey("assessments.id", ondelete="CASCADE"),
                           nullable=False)
    type = Column(String(32), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    is_locked = Column(Boolean, nullable=False, default=False)
    is_required = Column(Boolean, nullable=False, default=False)
    config = Column(JSON, nullable=False)


class SubmissionRecord(ModelBase):
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assessment_id", "respondent_id", "marker_id",
                         name="uq_submissions_assessment_respondent_marker"),
    )

    id = Column(String(36), primary_key=True)
    assessment_id = Column(String(36), ForeignKey("assessments.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    respondent_id = Column(String(64), nullable=False)
    marker_id = Column(String(64), nullable=False)
    is_draft = Column(Boolean, nullable=False, default=True)
    score = Column(Float, nullable=False, default=0)
    adjusted_score = Column(Float, nullable=True)
    submission_release_number = Column(Integer, nullable=False, default=0)
    answers = Column(JSON, nullable=False)


class AssignmentSetRecord(ModelBase):
    __tablename__ = "assignment_sets"

    id = Column(String(36), primary_key=True)
    assessment_id = Column(String(36), ForeignKey("assessments.id", ondelete="CASCADE"),
                           nullable=False, unique=True)
    granularity = Column(String(16), nullable=False)
    assignments = Column(JSON, nullable=False)


class ResultRecord(ModelBase):
    __tablename__ = "assessment_results"
    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id",
                         name="uq_assessment_results_assessment_student"),
    )

    id = Column(String(36), primary_key=True)
    assessment_id = Column(String(36), ForeignKey("assessments.id", ondelete="CASCADE"),
                           nullable=False, index=True)
    student_id = Column(String(64), nullable=False)
    average_score = Column(Float, nullable=False, default=0)
    marks = Column(JSON, nullable=False)
