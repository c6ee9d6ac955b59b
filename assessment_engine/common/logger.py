"""
Application Logger

Logging setup for the assessment engine. All modules log through children of
the ``assessment_engine`` logger so that level, format and handlers are
controlled from one place (``LOG_LEVEL``, ``LOG_JSON`` and ``LOG_FILE``).
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
import asyncio
from typing import Dict, Any, Optional, Union, Callable, TypeVar

APP_LOGGER_NAME = "assessment_engine"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'with_context',
    'app_logger',
    'log_execution_time'
]


class JsonFormatter(logging.Formatter):
    """
    Renders each record as one JSON line.

    Context attached through ``LoggerAdapter`` (the record's ``data`` dict)
    is merged into the top level, so ``assessment_id`` and friends can be
    filtered on directly.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno
        }
        if record.exc_info:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }
        data = getattr(record, 'data', None)
        if isinstance(data, dict):
            entry.update(data)
        return json.dumps(entry, default=str)


def _file_handler(log_file: str) -> Optional[logging.Handler]:
    log_dir = os.path.dirname(log_file)
    try:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        return logging.FileHandler(log_file)
    except OSError as e:
        sys.stderr.write(f"Could not open log file {log_file}: {e}\n")
        return None


def configure_logger(
    name: str = APP_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    (Re)configure a logger: replaces its handlers with a stdout handler and,
    when ``log_file`` is given, a file handler sharing the same formatter.

    Args:
        name: Logger name
        level: Level name or number
        use_json: Emit one JSON object per record instead of plain text
        log_file: Optional path; missing directories are created

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    formatter = JsonFormatter() if use_json else logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handler = _file_handler(log_file)
        if handler is not None:
            handlers.append(handler)

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adds context (assessment, respondent, marker...) to every record.

    The context is appended to the message as ``key=value`` pairs and stored
    in the record's ``data`` attribute for ``JsonFormatter``.
    """

    def __init__(self, logger: logging.Logger, context: Dict[str, Any] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = kwargs.copy()
        extra = dict(kwargs.get('extra') or {})
        data = dict(extra.get('data') or {})
        data.update(self.extra)
        extra['data'] = data
        kwargs['extra'] = extra

        if self.extra:
            context = " ".join(f"{key}={value}" for key, value in self.extra.items())
            msg = f"{msg} [{context}]"
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """A new adapter carrying this adapter's context plus ``context``."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def with_context(name: str = None, **context) -> LoggerAdapter:
    """Adapter over ``app_logger`` (or its child ``name``) carrying ``context``."""
    logger = app_logger.getChild(name) if name else app_logger
    return LoggerAdapter(logger, context)


def _app_logger_from_env() -> logging.Logger:
    logger = logging.getLogger(APP_LOGGER_NAME)
    if logger.handlers:
        return logger
    return configure_logger(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        use_json=os.environ.get("LOG_JSON", "false").lower() == "true",
        log_file=os.environ.get("LOG_FILE"),
    )


app_logger = _app_logger_from_env()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Log how long the decorated function or coroutine function takes.

    Durations are logged at DEBUG; failures are logged at ERROR with the
    elapsed time and re-raised.
    """
    def decorator(func: F) -> F:
        def report(start_time: float, error: Optional[Exception] = None) -> None:
            elapsed = time.time() - start_time
            target = logger or app_logger
            if error is None:
                target.debug(f"{func.__name__} executed in {elapsed:.3f} seconds")
            else:
                target.error(f"{func.__name__} failed after {elapsed:.3f} seconds: {error}")

        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    report(start_time, e)
                    raise
                report(start_time)
                return result
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                report(start_time, e)
                raise
            report(start_time)
            return result
        return wrapper
    return decorator
