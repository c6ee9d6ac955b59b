"""
Tests for the shared infrastructure: error taxonomy, HTTP status mapping,
contextual logging and value conversions.
"""

import json
import datetime
import logging

import pytest

from assessment_engine.api import APIResponse, status_code_for
from assessment_engine.common.exceptions import (
    BaseError, DatabaseError, ValidationError, MissingRequiredAnswersError, TypeMismatchError,
    AlreadyFinalizedError, InvalidStateError, LockedError, NotFoundError
)
from assessment_engine.common.logger import LoggerAdapter, JsonFormatter, configure_logger, with_context
from assessment_engine.common.serialization import parse_datetime, as_naive_utc, is_number


@pytest.mark.parametrize("error, status, code", [
    (ValidationError("bad"), 422, "ValidationError"),
    (MissingRequiredAnswersError(["q1"]), 422, "ValidationError"),
    (TypeMismatchError("q1", "Scale Answer", "Number Answer"), 422, "TypeMismatch"),
    (NotFoundError("Assessment", "a1"), 404, "NotFound"),
    (AlreadyFinalizedError("s1"), 409, "AlreadyFinalized"),
    (InvalidStateError("closed"), 409, "InvalidState"),
    (LockedError("q1"), 423, "Locked"),
    (DatabaseError("down"), 500, "DatabaseError"),
    (BaseError("other"), 400, "Error"),
])
def test_error_taxonomy(error, status, code):
    assert status_code_for(error) == status
    assert error.code == code


def test_error_messages():
    assert NotFoundError("Question", "q9").message == "Question with ID q9 not found"
    assert LockedError("q1").message == "Cannot modify a locked question (q1)"
    assert ValidationError("bad", {"field": "x"}).details == {"field": "x"}


def test_error_envelope():
    assert APIResponse.error("Nope", None, "NotFound") == {"status": "error", "message": "Nope", "code": "NotFound"}
    assert APIResponse.success([1]) == {"status": "success", "message": "Success", "data": [1]}


def test_logger_adapter_context():
    adapter = with_context("tests", assessment_id="a1")
    message, kwargs = adapter.process("Saved", {})

    assert message == "Saved [assessment_id=a1]"
    assert kwargs["extra"]["data"] == {"assessment_id": "a1"}

    nested = adapter.with_context(marker_id="ta1")
    assert isinstance(nested, LoggerAdapter)
    assert nested.extra == {"assessment_id": "a1", "marker_id": "ta1"}


def test_json_formatter_includes_context():
    record = logging.LogRecord("assessment_engine", logging.INFO, __file__, 1, "hello", None, None)
    record.data = {"assessment_id": "a1"}
    output = JsonFormatter().format(record)
    assert '"assessment_id": "a1"' in output
    assert '"message": "hello"' in output


def test_configure_logger_writes_json_file(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"
    logger = configure_logger("assessment_engine_file_test", level="debug", use_json=True, log_file=str(log_file))
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    LoggerAdapter(logger, {"assessment_id": "a1"}).info("Released")
    for handler in logger.handlers:
        handler.close()

    entry = json.loads(log_file.read_text().strip())
    assert entry["message"] == "Released [assessment_id=a1]"
    assert entry["assessment_id"] == "a1"
    assert entry["level"] == "INFO"


def test_parse_datetime():
    parsed = parse_datetime("2024-03-01T10:00:00Z")
    assert parsed.tzinfo is not None
    assert as_naive_utc(parsed) == datetime.datetime(2024, 3, 1, 10, 0)
    assert parse_datetime(datetime.date(2024, 3, 1)) == datetime.datetime(2024, 3, 1)
    assert parse_datetime("") is None
    with pytest.raises(ValueError):
        parse_datetime("yesterday")


def test_is_number():
    assert is_number(3) and is_number(2.5)
    assert not is_number(True)
    assert not is_number("3")
