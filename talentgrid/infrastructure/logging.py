"""
Centralized logging configuration for the evaluation service.

Log records carry the evaluation they concern: ``employee_id``,
``cycle_id`` and ``meeting_id`` are picked up from the arguments of
service operations, and ``request_id`` is set per HTTP request. The
context lives in a ``ContextVar`` so concurrent requests served from the
threadpool never see each other's values.
"""

from __future__ import annotations

import inspect
import json
import logging
import logging.config
import os
import time
from collections.abc import Callable, Mapping
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any, ParamSpec, TypeVar

from .config import ENVIRONMENT_ALIASES, LoggingConfig

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER = "talentgrid"
CONTEXT_FIELDS = ("request_id", "operation", "employee_id", "cycle_id", "meeting_id")
# Service arguments copied into the log context when an operation starts
TRACKED_ARGUMENTS = ("employee_id", "cycle_id", "meeting_id")

_context: ContextVar[Mapping[str, Any]] = ContextVar(
    "talentgrid_log_context", default=MappingProxyType({})
)


def current_context() -> dict[str, Any]:
    """Copy of the context attached to records logged right now."""
    return dict(_context.get())


def clear_context() -> None:
    _context.set(MappingProxyType({}))


class LogContext:
    """
    Temporary logging context, restored on exit.

    Example:
        >>> with LogContext(employee_id=7, cycle_id=2):
        ...     logger.info("Saving bulk record")
    """

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self._token: Token[Mapping[str, Any]] | None = None

    def __enter__(self) -> LogContext:
        self._token = _context.set(MappingProxyType({**_context.get(), **self.context}))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None


class ContextFilter(logging.Filter):
    """Copy the current logging context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context.get().items():
            setattr(record, key, value)
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, including any evaluation context."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        entry.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        for key in ("error_type", "error_message", "error_details"):
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure the ``talentgrid`` loggers from a ``LoggingConfig``.

    Console output uses the structured formatter only when
    ``config.structured`` is set; the rotating log file is always JSON.

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", file_path="./logs/talentgrid.log"))
    """
    config = config or LoggingConfig()
    handlers: dict[str, dict[str, Any]] = {}

    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "structured" if config.structured else "standard",
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }

    file_handler = config.get_file_handler_config()
    if file_handler is not None:
        Path(file_handler["filename"]).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {**file_handler, "formatter": "structured", "filters": ["context"]}

    if not handlers:
        handlers["null"] = {"class": "logging.NullHandler"}

    names = list(handlers)
    quiet = {"level": "WARNING", "handlers": names, "propagate": False}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {"()": StructuredFormatter},
                "standard": {
                    "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                },
            },
            "filters": {"context": {"()": ContextFilter}},
            "handlers": handlers,
            "loggers": {
                ROOT_LOGGER: {"level": config.level, "handlers": names, "propagate": False},
                "sqlalchemy.engine": quiet,
                "uvicorn.access": quiet,
            },
            "root": {"level": config.level, "handlers": names},
        }
    )


def auto_configure_logging() -> None:
    """Configure logging from the APP_ENVIRONMENT variable."""
    env = os.getenv("APP_ENVIRONMENT", "development").strip().lower()
    env = ENVIRONMENT_ALIASES.get(env, env)
    setup_logging(LoggingConfig.for_environment(env))
    get_logger(__name__).info("Logging configured for %s environment", env)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under ``talentgrid``.

    Example:
        >>> get_logger("bulk").name
        'talentgrid.bulk'
    """
    if name == ROOT_LOGGER or name.startswith(f"{ROOT_LOGGER}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def _tracked_arguments(signature: inspect.Signature, args: tuple, kwargs: dict) -> dict[str, Any]:
    try:
        bound = signature.bind_partial(*args, **kwargs)
    except TypeError:
        return {}
    return {
        name: bound.arguments[name]
        for name in TRACKED_ARGUMENTS
        if bound.arguments.get(name) is not None
    }


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for service operations.

    Logs start, completion time and failure, and puts any ``employee_id``,
    ``cycle_id`` or ``meeting_id`` argument into the logging context for
    the duration of the call.

    Example:
        >>> @log_operation("create_self_evaluation")
        ... def create_self_evaluation(session, cycle_id: int, employee_id: int, competencies):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        signature = inspect.signature(func)
        func_logger = logger or get_logger(func.__module__)

        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            context = _tracked_arguments(signature, args, kwargs)
            with LogContext(operation=operation, **context):
                func_logger.info("Starting %s", operation)
                started = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    func_logger.error("Failed %s: %s", operation, e, exc_info=True)
                    raise
                func_logger.info(
                    "Completed %s in %.3fs", operation, time.perf_counter() - started
                )
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for repository methods; logs their duration at DEBUG.

    Example:
        >>> @log_database_operation("cycle.create")
        ... def create(self, **fields):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            logger = get_logger("database")
            started = time.perf_counter()
            with LogContext(operation=f"db_{operation}"):
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    logger.error(
                        "Database operation %s failed after %.3fs: %s",
                        operation,
                        time.perf_counter() - started,
                        e,
                        exc_info=True,
                    )
                    raise
                logger.debug(
                    "Database operation %s completed in %.3fs",
                    operation,
                    time.perf_counter() - started,
                )
                return result

        return wrapper

    return decorator


# Initialize logging when module is imported
if not logging.getLogger().handlers:
    auto_configure_logging()
