import logging
import time
import uuid
from contextlib import contextmanager
from typing import Any, Generator, Optional

import structlog

from hospital_reports.core.config import AppConstants, get_settings


def setup_logging(log_level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Both structlog loggers and plain ``logging`` loggers (uvicorn, SQLAlchemy)
    end up in the same handler and share the same renderer.

    Args:
        log_level: Override for the configured LOG_LEVEL
        json_logs: Render JSON lines instead of the console format
    """
    settings = get_settings()
    level = (log_level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.LOG_JSON

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_logs:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta] + renderers,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    # SQL statement logging is controlled by DB_ECHO, not LOG_LEVEL
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_log_level() -> str:
    """Return the effective root log level name."""
    return logging.getLevelName(logging.getLogger().getEffectiveLevel())


def bind_correlation_id(correlation_id: str) -> None:
    """Attach a correlation ID to every log event of the current context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)


@contextmanager
def operation_timer(operation_name: str, logger: Any = None, **context) -> Generator[str, None, None]:
    """
    Context manager for timing operations with automatic logging.

    Args:
        operation_name: Name of the operation
        logger: structlog logger to emit on (defaults to this module's)
        **context: Additional context to include in logs
    """
    log = logger or structlog.get_logger(__name__)
    start_time = time.time()
    operation_id = str(uuid.uuid4())

    log.debug(
        "Operation started",
        operation_name=operation_name,
        operation_id=operation_id,
        **context
    )

    try:
        yield operation_id
    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        log.error(
            "Operation failed",
            operation_name=operation_name,
            operation_id=operation_id,
            duration_ms=round(duration_ms, 2),
            error_type=type(e).__name__,
            error_message=str(e),
            **context
        )
        raise
    else:
        duration_ms = (time.time() - start_time) * 1000
        is_slow = duration_ms > AppConstants.SLOW_OPERATION_MS

        # Log as warning if operation took too long
        emit = log.warning if is_slow else log.info
        emit(
            "Operation completed",
            operation_name=operation_name,
            operation_id=operation_id,
            duration_ms=round(duration_ms, 2),
            is_slow_operation=is_slow,
            **context
        )


__all__ = ["setup_logging", "get_log_level", "bind_correlation_id", "operation_timer"]
