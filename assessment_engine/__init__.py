"""
Internal Assessment Engine

This package implements the grading core of a course-management dashboard:
a polymorphic questionnaire model, deterministic distribution of grading work
across teaching assistants, a draft/final submission lifecycle, release and
recall of assessments, and per-student result aggregation.

The engine is exposed as a FastAPI application (see ``assessment_engine.main``)
backed by an async SQLAlchemy store.
"""

__version__ = "0.1.0"
