"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of specwatch, licensed under the MIT License.
See LICENSE file for details.
"""

"""Logging infrastructure with request correlation and error tracking.

Observed requests carry credentials in their headers, so everything logged
through this module passes a redactor first. Each observed request runs under
its own correlation ID, which lets the log lines of one request/response pair
be grouped even when many requests are served concurrently.
"""

import contextvars
import json
import logging
import os
import re
import sys
import uuid
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from datetime import datetime
from re import Pattern
from typing import Any

from rich.logging import RichHandler

LOGGER_NAMESPACE = "specwatch"

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "specwatch_correlation_id", default=None
)


def new_correlation_id() -> str:
    return f"specwatch-{uuid.uuid4()}"


def get_correlation_id() -> str:
    """Get the correlation ID of the current context, creating one if needed."""
    current = _correlation_id.get()
    if current is None:
        current = new_correlation_id()
        _correlation_id.set(current)
    return current


@contextmanager
def correlation_id(value: str | None = None) -> Iterator[str]:
    """
    Run a block under a correlation ID.

    Args:
    ----
        value: ID to use, or None to generate a new one

    Yields:
    ------
        str: The active correlation ID

    """
    token = _correlation_id.set(value or new_correlation_id())
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


class LogRedactor:
    """
    Redacts credentials from log messages.
    """

    def __init__(self) -> None:
        self.patterns: dict[str, Pattern] = {
            "bearer_token": re.compile(r"(Bearer|Basic)\s+([A-Za-z0-9\-._~+/]+=*)", re.IGNORECASE),
            "authorization": re.compile(
                r'(authorization|x-[a-z0-9-]*(?:key|token|secret)[a-z0-9-]*)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]+)',
                re.IGNORECASE,
            ),
            "api_key": re.compile(
                r'(api[_-]?key|token|password|secret)["\']?\s*[:=]\s*["\']?([^"\'&\s,}]{4,})', re.IGNORECASE
            ),
        }

    def redact(self, message: Any) -> Any:
        if not isinstance(message, str):
            return message
        message = self.patterns["bearer_token"].sub(r"\1 [REDACTED]", message)
        message = self.patterns["authorization"].sub(r"\1: [REDACTED]", message)
        return self.patterns["api_key"].sub(r"\1: [REDACTED]", message)


redactor = LogRedactor()


class ContextFilter(logging.Filter):
    """Stamps records with the correlation ID and redacts their message."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        if isinstance(record.msg, str):
            record.msg = redactor.redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(redactor.redact(arg) for arg in record.args)
        return True


class ContextAdapter(logging.LoggerAdapter):
    """
    Logger adapter that attaches structured context to every record.

    Context given to the adapter and context passed per call with the
    ``context=`` keyword are merged and stored on the record as
    ``context_data``.
    """

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = dict(self.extra or {})
        context.update(kwargs.pop("context", None) or {})
        extra = dict(kwargs.get("extra") or {})
        if context:
            extra["context_data"] = context
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **context: Any) -> "ContextAdapter":
        merged = dict(self.extra or {})
        merged.update(context)
        return ContextAdapter(self.logger, merged)


class JSONFormatter(logging.Formatter):
    """
    Formatter that outputs log records as JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "correlation_id"):
            log_data["correlation_id"] = record.correlation_id

        if getattr(record, "context_data", None):
            log_data["context"] = record.context_data

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, default=str)


class RichContextFormatter(logging.Formatter):
    """
    Formatter for Rich console output with context data appended.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        context = getattr(record, "context_data", None)
        if context:
            message = f"{message} " + " ".join(f"[{k}={v}]" for k, v in context.items())

        if hasattr(record, "correlation_id"):
            message = f"{message} [correlation_id={record.correlation_id}]"

        return message


class ErrorTracker:
    """
    Collects isolated failures so they can be reported without failing the caller.

    The inference pipeline and patch functions run on behalf of a server that
    must keep serving; their failures are recorded here and logged instead of
    being raised.

    """

    def __init__(self, logger: logging.Logger | logging.LoggerAdapter | None = None) -> None:
        self.errors: list[dict[str, Any]] = []
        self.logger = logger or get_logger(f"{LOGGER_NAMESPACE}.error_tracker")

    def add_error(self, error: Exception, context: dict[str, Any] | None = None, log: bool = True) -> None:
        """
        Add an error to the tracker.

        Args:
        ----
            error: The exception that occurred
            context: Additional context information
            log: Whether to log the error as well as tracking it

        """
        error_info = {
            "error_type": type(error).__name__,
            "message": str(error),
            "timestamp": datetime.now().isoformat(),
            "correlation_id": get_correlation_id(),
            "context": context or {},
        }
        self.errors.append(error_info)

        if log:
            self.logger.error(
                f"Error tracked: {error_info['error_type']}: {error_info['message']}",
                extra={"context_data": context or {}},
                exc_info=error,
            )

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def get_error_summary(self) -> dict[str, Any]:
        """
        Get a summary of tracked errors.

        Returns
        -------
            total_errors, per-type counts and the first and last error

        """
        error_types: dict[str, int] = {}
        for error in self.errors:
            error_types[error["error_type"]] = error_types.get(error["error_type"], 0) + 1

        return {
            "total_errors": len(self.errors),
            "error_types": error_types,
            "first_error": self.errors[0] if self.errors else None,
            "last_error": self.errors[-1] if self.errors else None,
        }

    def clear(self) -> None:
        self.errors = []


def configure_logging(
    level: int | str = logging.INFO,
    log_file: str | None = None,
    json_format: bool = False,
    include_timestamp: bool = True,
    use_rich: bool = True,
    debug: bool = False,
) -> None:
    """
    Configure the specwatch logger hierarchy.

    The host application's root logger is left alone; only loggers under the
    ``specwatch`` namespace get handlers.

    Args:
    ----
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL or integer)
        log_file: Optional path to log file
        json_format: Whether to use JSON format for logs
        include_timestamp: Whether to include timestamps in logs
        use_rich: Whether to use Rich for console output
        debug: Whether to force debug mode

    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    if debug:
        level = logging.DEBUG

    format_str = (
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        if include_timestamp
        else "[%(levelname)s] %(name)s: %(message)s"
    )

    handlers: list[logging.Handler] = []
    if use_rich and not json_format:
        rich_handler = RichHandler(rich_tracebacks=True, markup=False, show_time=include_timestamp)
        rich_handler.setFormatter(RichContextFormatter("%(message)s"))
        handlers.append(rich_handler)
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(console_handler)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(format_str))
        handlers.append(file_handler)

    logger = logging.getLogger(LOGGER_NAMESPACE)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    for handler in handlers:
        handler.addFilter(ContextFilter())
        logger.addHandler(handler)

    logger.debug(f"Logging configured with level {logging.getLevelName(level)}")


def get_logger(name: str, **context: Any) -> ContextAdapter:
    """
    Get a context-aware logger.

    Args:
    ----
        name: Name of the logger, typically under the specwatch namespace
        **context: Context attached to every record logged through it

    Returns:
    -------
        A ContextAdapter wrapping the named logger

    """
    return ContextAdapter(logging.getLogger(name), context)
