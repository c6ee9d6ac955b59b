"""
Common Components

Shared infrastructure used by every part of the assessment engine:
1. Logging - Centralized logging configuration
2. Error Handling - The error taxonomy surfaced to callers
"""

from assessment_engine.common.logger import app_logger
from assessment_engine.common.exceptions import (
    BaseError, DatabaseError, ValidationError, TypeMismatchError,
    AlreadyFinalizedError, InvalidStateError, LockedError, NotFoundError,
    MissingRequiredAnswersError
)

__all__ = [
    'app_logger',
    'BaseError',
    'DatabaseError',
    'ValidationError',
    'TypeMismatchError',
    'AlreadyFinalizedError',
    'InvalidStateError',
    'LockedError',
    'NotFoundError',
    'MissingRequiredAnswersError',
]
