"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger.json import JsonFormatter

from customer_intel.config import get_settings

MASKED = "***"


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    # Configure standard library logging
    log_level = getattr(logging, settings.log_level)

    if settings.log_format == "json":
        # JSON logging for production
        handler = logging.StreamHandler(sys.stdout)
        formatter = JsonFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
        )
        handler.setFormatter(formatter)
    else:
        # Human-readable logging for development
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Tracebacks are rendered inline by the console renderer
    if settings.log_format == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *renderers,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def mask_email(fields: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``fields`` with any email address replaced by a mask."""
    masked = dict(fields)
    if masked.get("email"):
        masked["email"] = MASKED
    return masked


class ServiceLogger:
    """Specialized logger for repository operations."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_operation(self, operation: str, **kwargs: Any) -> None:
        """Log a repository operation before it runs."""
        self.logger.debug(
            "repository_operation",
            component=self.component,
            operation=operation,
            **mask_email(kwargs),
        )

    def log_success(
        self,
        operation: str,
        duration_ms: float,
        **kwargs: Any,
    ) -> None:
        """Log a completed operation."""
        self.logger.info(
            "repository_success",
            component=self.component,
            operation=operation,
            duration_ms=round(duration_ms, 3),
            **mask_email(kwargs),
        )

    def log_failure(
        self,
        operation: str,
        code: str,
        error: str,
        **kwargs: Any,
    ) -> None:
        """Log an operation rejected with a typed error."""
        self.logger.warning(
            "repository_failure",
            component=self.component,
            operation=operation,
            code=code,
            error=error,
            **mask_email(kwargs),
        )

    def log_error(self, operation: str, error: str, **kwargs: Any) -> None:
        """Log an unexpected error together with its traceback."""
        self.logger.error(
            "repository_error",
            component=self.component,
            operation=operation,
            error=error,
            exc_info=True,
            **mask_email(kwargs),
        )
