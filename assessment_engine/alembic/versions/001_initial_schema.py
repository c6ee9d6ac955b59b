"""Initial database schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        'assessments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('course_id', sa.String(64), nullable=False),
        sa.Column('assessment_name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('max_marks', sa.Float(), nullable=True),
        sa.Column('questions_total_marks', sa.Float(), nullable=False),
        sa.Column('granularity', sa.String(16), nullable=False),
        sa.Column('team_set_id', sa.String(64), nullable=True),
        sa.Column('is_released', sa.Boolean(), nullable=False),
        sa.Column('current_release_number', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_assessments'),
    )
    op.create_index('ix_assessments_course_id', 'assessments', ['course_id'])

    op.create_table(
        'questions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_locked', sa.Boolean(), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_questions'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE',
                                name='fk_questions_assessment_id_assessments'),
    )
    op.create_index('ix_questions_assessment_position', 'questions', ['assessment_id', 'position'])

    op.create_table(
        'submissions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('respondent_id', sa.String(64), nullable=False),
        sa.Column('marker_id', sa.String(64), nullable=False),
        sa.Column('is_draft', sa.Boolean(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('adjusted_score', sa.Float(), nullable=True),
        sa.Column('submission_release_number', sa.Integer(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_submissions'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE',
                                name='fk_submissions_assessment_id_assessments'),
        sa.UniqueConstraint('assessment_id', 'respondent_id', 'marker_id',
                            name='uq_submissions_assessment_respondent_marker'),
    )
    op.create_index('ix_submissions_assessment_id', 'submissions', ['assessment_id'])

    op.create_table(
        'assignment_sets',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('granularity', sa.String(16), nullable=False),
        sa.Column('assignments', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_assignment_sets'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE',
                                name='fk_assignment_sets_assessment_id_assessments'),
        sa.UniqueConstraint('assessment_id', name='uq_assignment_sets_assessment_id'),
    )

    op.create_table(
        'assessment_results',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('student_id', sa.String(64), nullable=False),
        sa.Column('average_score', sa.Float(), nullable=False),
        sa.Column('marks', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_assessment_results'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE',
                                name='fk_assessment_results_assessment_id_assessments'),
        sa.UniqueConstraint('assessment_id', 'student_id',
                            name='uq_assessment_results_assessment_student'),
    )
    op.create_index('ix_assessment_results_assessment_id', 'assessment_results', ['assessment_id'])


def downgrade():
    op.drop_table('assessment_results')
    op.drop_table('assignment_sets')
    op.drop_table('submissions')
    op.drop_table('questions')
    op.drop_table('assessments')
