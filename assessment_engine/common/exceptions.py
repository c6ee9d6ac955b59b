"""
Common Exception Classes

This module defines the error taxonomy raised by the assessment engine.
Every error carries a ``code`` naming its taxonomy entry; the HTTP layer
uses it verbatim in error responses.
"""

from typing import Optional, Any, List


class BaseError(Exception):
    """Base class for all custom exceptions."""

    code = "Error"

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception

    @property
    def details(self) -> Optional[Any]:
        """Structured details for the caller, if any."""
        return None


class DatabaseError(BaseError):
    """Exception raised for database-related errors."""

    code = "DatabaseError"

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the database error.

        Args:
            message: Error message
            original_exception: Original database exception
        """
        super().__init__(f"Database error: {message}", original_exception)


class ValidationError(BaseError):
    """Exception raised for malformed question, answer or request data."""

    code = "ValidationError"

    def __init__(self, message: str, errors: Optional[dict] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message naming the violated rule
            errors: Dictionary of validation errors
        """
        super().__init__(f"Validation error: {message}")
        self.errors = errors or {}

    @property
    def details(self) -> Optional[Any]:
        return self.errors or None


class MissingRequiredAnswersError(ValidationError):
    """Exception raised when finalizing a submission with unanswered required questions."""

    def __init__(self, missing_question_ids: List[str]):
        """
        Initialize the error.

        Args:
            missing_question_ids: IDs of required questions without a non-empty answer
        """
        super().__init__(
            f"{len(missing_question_ids)} required question(s) have no answer",
            {"missingQuestionIds": list(missing_question_ids)}
        )
        self.missing_question_ids = list(missing_question_ids)


class TypeMismatchError(BaseError):
    """Exception raised when an answer variant does not match its question variant."""

    code = "TypeMismatch"

    def __init__(self, question_id: Any, expected: str, actual: str):
        super().__init__(
            f"Answer for question {question_id} must be of type '{expected}', got '{actual}'"
        )
        self.question_id = question_id
        self.expected = expected
        self.actual = actual

    @property
    def details(self) -> Optional[Any]:
        return {"questionId": self.question_id, "expected": self.expected, "actual": self.actual}


class AlreadyFinalizedError(BaseError):
    """Exception raised when overwriting a submission that is no longer a draft."""

    code = "AlreadyFinalized"

    def __init__(self, submission_id: Any):
        super().__init__(f"Submission {submission_id} is already finalized")
        self.submission_id = submission_id


class InvalidStateError(BaseError):
    """Exception raised when an operation is not permitted in the entity's current state."""

    code = "InvalidState"


class LockedError(BaseError):
    """Exception raised when mutating a locked question."""

    code = "Locked"

    def __init__(self, question_id: Any):
        super().__init__(f"Cannot modify a locked question ({question_id})")
        self.question_id = question_id


class NotFoundError(BaseError):
    """Exception raised when a resource is not found."""

    code = "NotFound"

    def __init__(self, resource_type: str, resource_id: Any):
        """
        Initialize the not found error.

        Args:
            resource_type: Type of resource that wasn't found
            resource_id: ID of the resource that wasn't found
        """
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id
