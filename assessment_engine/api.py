"""
Shared API utilities for the assessment engine.

This module provides:
- The standard response envelope
- Exception handlers mapping engine errors to HTTP responses
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assessment_engine.common.exceptions import (
    BaseError, DatabaseError, ValidationError, TypeMismatchError, NotFoundError,
    AlreadyFinalizedError, InvalidStateError, LockedError
)
from assessment_engine.common.logger import app_logger

logger = app_logger.getChild("api")

# Checked in order against the raised error's class hierarchy.
ERROR_STATUS_CODES = {
    ValidationError: 422,
    TypeMismatchError: 422,
    NotFoundError: 404,
    AlreadyFinalizedError: 409,
    InvalidStateError: 409,
    LockedError: 423,
    DatabaseError: 500,
}


class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            message: Error message
            details: Optional error details
            code: Optional error code

        Returns:
            Response dictionary
        """
        response = {
            "status": "error",
            "message": message
        }

        if details:
            response["details"] = details

        if code:
            response["code"] = code

        return response


def status_code_for(exc: BaseError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 400


async def engine_exception_handler(request: Request, exc: BaseError) -> JSONResponse:
    """
    Translate an engine error into an error envelope.

    The body's ``code`` is the error's taxonomy name; ``details`` carries
    structured data such as the IDs of unanswered required questions.
    """
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected with {exc.code}: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=APIResponse.error(exc.message, exc.details, exc.code)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=422,
        content=APIResponse.error("Validation error", error_details, ValidationError.code)
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BaseError, engine_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
