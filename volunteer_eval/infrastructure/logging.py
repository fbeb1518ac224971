"""
Centralized logging for the volunteer evaluation service.

Log records carry the request context (acting user, operation and the
volunteer concerned) so a refused freeze or evaluation can be traced back to
who asked for it. The context lives in a ``ContextVar`` because FastAPI runs
synchronous routes on a thread pool.
"""

from __future__ import annotations

import json
import logging
import logging.config
import time
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar, cast

from .config import LoggingConfig, Settings, get_settings
from .exceptions import DatabaseError, VolunteerEvaluationError

P = ParamSpec("P")
R = TypeVar("R")

ROOT_LOGGER = "volunteer_eval"
CONTEXT_FIELDS = ("user_id", "user_role", "operation", "volunteer_id", "evaluation_id")

_context: ContextVar[dict[str, Any]] = ContextVar("volunteer_eval_log_context", default={})


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, including any request context present."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            if exc_type is not None and exc_value is not None:
                log_entry["exception"] = {
                    "type": exc_type.__name__,
                    "message": str(exc_value),
                    "traceback": self.formatException((exc_type, exc_value, exc_tb)),
                }

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Copies the current request context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _context.get().items():
            setattr(record, key, value)
        return True


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure the package loggers from a LoggingConfig.

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", file_path=None, structured=False))
    """
    config = config or LoggingConfig()
    level = config.level
    formatter = "structured" if config.structured else "standard"

    handlers: dict[str, dict[str, Any]] = {}
    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": formatter,
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }
    file_handler = config.get_file_handler_config()
    if file_handler:
        Path(file_handler["filename"]).parent.mkdir(parents=True, exist_ok=True)
        # file output is always JSON
        handlers["file"] = {
            **file_handler,
            "level": level,
            "formatter": "structured",
            "filters": ["context"],
        }
    names = list(handlers)

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
            "handlers": cast(dict[str, Any], handlers),
            "loggers": {
                ROOT_LOGGER: {"level": level, "handlers": names, "propagate": False},
                "sqlalchemy.engine": {"level": "WARNING", "handlers": names, "propagate": False},
                "uvicorn.access": {"level": "WARNING", "handlers": names, "propagate": False},
            },
            "root": {"level": level, "handlers": names},
        }
    )


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure logging for the running environment.

    Testing logs warnings only and writes nothing; production writes JSON to
    the configured file without console output; development logs readable
    lines to the console and the file.
    """
    settings = settings or get_settings()
    environment = settings.app.environment

    if environment == "testing":
        setup_logging(
            LoggingConfig(level="WARNING", file_path=None, structured=False, console_enabled=False)
        )
    elif environment == "production":
        setup_logging(
            settings.logging.model_copy(update={"structured": True, "console_enabled": False})
        )
    else:
        setup_logging(settings.logging.model_copy(update={"structured": False}))

    get_logger(__name__).info(f"Logging configured for {environment} environment")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger namespaced under the package root logger.

    Example:
        >>> get_logger("database").name
        'volunteer_eval.database'
    """
    prefix = f"{ROOT_LOGGER}."
    full = name if name.startswith(prefix) or name == ROOT_LOGGER else f"{prefix}{name}"
    return logging.getLogger(full)


def set_context(**kwargs: Any) -> None:
    """
    Add fields to the current request's logging context.

    Example:
        >>> set_context(user_id=3, volunteer_id=12)
    """
    _context.set({**_context.get(), **kwargs})


def clear_context() -> None:
    _context.set({})


def current_context() -> dict[str, Any]:
    return dict(_context.get())


class LogContext:
    """Context manager for temporary logging context."""

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self.previous_context: dict[str, Any] = {}

    def __enter__(self) -> LogContext:
        self.previous_context = _context.get()
        set_context(**self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        _context.set(self.previous_context)


def _is_expected(error: Exception) -> bool:
    """Application errors a caller can act on; storage failures are not among them."""
    return isinstance(error, VolunteerEvaluationError) and not isinstance(error, DatabaseError)


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for service operations.

    Not found, conflict, validation and permission errors are logged as
    warnings without a traceback; anything else is logged as an error.

    Example:
        >>> @log_operation("create_evaluation")
        ... def create_evaluation(session, actor, data):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            func_logger = logger or get_logger(func.__module__)

            with LogContext(operation=operation):
                func_logger.debug(f"Starting {operation}")
                started = time.perf_counter()
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    if _is_expected(e):
                        func_logger.warning(f"{operation} rejected: {e}")
                    else:
                        func_logger.error(f"Failed {operation}: {str(e)}", exc_info=True)
                    raise
                func_logger.info(f"Completed {operation} in {time.perf_counter() - started:.3f}s")
                return result

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator for repository methods with timing.

    Example:
        >>> @log_database_operation("create_freeze_record")
        ... def create_freeze(self, volunteer_id, year):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            logger = get_logger("database")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - started
                if _is_expected(e):
                    logger.debug(f"db_{operation} raised {type(e).__name__} after {elapsed:.3f}s")
                else:
                    logger.error(f"db_{operation} failed after {elapsed:.3f}s: {str(e)}", exc_info=True)
                raise
            logger.debug(f"db_{operation} completed in {time.perf_counter() - started:.3f}s")
            return result

        return wrapper

    return decorator


if not logging.getLogger().handlers:
    configure_logging()
