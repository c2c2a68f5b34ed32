"""
Quote History Logging Module

Structured logging with correlation IDs and Rich or JSON output.
"""

from __future__ import annotations

import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import LogLevel, settings

# Context variable for correlation ID tracking
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

console = Console(stderr=True)


def get_correlation_id() -> str:
    """Get the current correlation ID or generate a new one."""
    current_id = correlation_id.get()
    if not current_id:
        current_id = str(uuid.uuid4())[:8]
        correlation_id.set(current_id)
    return current_id


def set_correlation_id(cid: Optional[str] = None) -> str:
    """Set a new correlation ID and return it."""
    if cid is None:
        cid = str(uuid.uuid4())[:8]
    correlation_id.set(cid)
    return cid


def add_correlation_id(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add correlation ID to all log entries."""
    event_dict["correlation_id"] = get_correlation_id()
    return event_dict


def add_process_info(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Add process information to log entries."""
    event_dict["pid"] = os.getpid()
    event_dict["component"] = "quotehistory"
    return event_dict


def configure_logging(
    log_level: LogLevel = LogLevel.INFO,
    use_json: bool = False,
    use_rich: bool = True
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: The minimum log level to output
        use_json: Whether to use JSON formatting (for production)
        use_rich: Whether to use Rich formatting (for development)
    """
    level = getattr(logging, log_level.value)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_correlation_id,
        add_process_info,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    if use_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=use_rich)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(processor=renderer)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    if use_rich and not use_json:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    else:
        handler = logging.StreamHandler(sys.stderr)

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger with the given name.

    Args:
        name: Logger name, typically __name__

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


class Timer:
    """Context manager for timing operations with automatic logging."""

    def __init__(
        self,
        logger: structlog.BoundLogger,
        operation: str,
        **context: Any
    ):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self) -> Timer:
        self.start_time = time.perf_counter()
        self.logger.debug(
            f"Starting {self.operation}",
            operation=self.operation,
            **self.context
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is None:
            return
        self.duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.debug(
                f"Completed {self.operation}",
                operation=self.operation,
                duration_seconds=round(self.duration, 3),
                **self.context
            )
        else:
            self.logger.error(
                f"Failed {self.operation}",
                operation=self.operation,
                duration_seconds=round(self.duration, 3),
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
                **self.context
            )


# Initialize logging with current settings
configure_logging(
    log_level=settings.log_level,
    use_json=False,
    use_rich=True
)
