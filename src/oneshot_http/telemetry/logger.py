"""
Structured logging for oneshot-http.

Provides context-aware logging with sensitive data masking.
"""

from __future__ import annotations

import json
import logging
import re
import sys
import time
from contextvars import ContextVar
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

# Context variable for request-scoped logging context
_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


class LogLevel(str, Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_logging_level(self) -> int:
        """Convert to standard logging level."""
        return getattr(logging, self.value)


@dataclass
class LogContext:
    """Request-scoped logging context.

    Attributes:
        request_id: Unique request identifier
        method: HTTP method of the request
        url: Request URL
        extra: Additional context fields
    """

    request_id: str | None = None
    method: str | None = None
    url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        if self.request_id:
            result["request_id"] = self.request_id
        if self.method:
            result["method"] = self.method
        if self.url:
            result["url"] = self.url
        result.update(self.extra)
        return result

    def with_extra(self, **kwargs: Any) -> LogContext:
        """Create new context with additional fields."""
        return LogContext(
            request_id=self.request_id,
            method=self.method,
            url=self.url,
            extra={**self.extra, **kwargs},
        )


def get_log_context() -> LogContext:
    """Get current logging context."""
    data = _log_context.get()
    if not data:
        return LogContext()
    known = {k: data[k] for k in ("request_id", "method", "url") if k in data}
    extra = {k: v for k, v in data.items() if k not in known}
    return LogContext(**known, extra=extra)


def set_log_context(context: LogContext) -> None:
    """Set logging context for current async context."""
    _log_context.set(context.to_dict())


def clear_log_context() -> None:
    """Clear logging context."""
    _log_context.set(None)


class SensitiveDataMasker:
    """Masks sensitive data in log messages."""

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        # Bearer / basic credentials
        (r"(Bearer\s+)([^\s\"']+)", r"\1***REDACTED***"),
        (r"(Basic\s+)([A-Za-z0-9+/=]+)", r"\1***REDACTED***"),
        # Authorization and cookie headers
        (r"(Authorization[\"']?\s*[:=]\s*[\"']?)([^\"'\s]+)", r"\1***REDACTED***"),
        (r"((?:Set-)?Cookie[\"']?\s*[:=]\s*[\"']?)([^\"'\n]+)", r"\1***REDACTED***"),
        # API keys in text or query strings
        (r"(api[_-]?key[\"']?\s*[:=]\s*[\"']?)([^\"'\s&]+)", r"\1***REDACTED***"),
        (r"([?&](?:access_)?token=)([^&\s]+)", r"\1***REDACTED***"),
    ]

    SENSITIVE_KEYS: ClassVar[tuple[str, ...]] = (
        "authorization",
        "cookie",
        "key",
        "token",
        "secret",
        "password",
    )

    def __init__(self, patterns: list[tuple[str, str]] | None = None) -> None:
        """Initialize masker with patterns.

        Args:
            patterns: List of (pattern, replacement) tuples
        """
        self._patterns = [
            (re.compile(p, re.IGNORECASE), r)
            for p, r in (patterns or self.DEFAULT_PATTERNS)
        ]

    def mask(self, text: str) -> str:
        """Mask sensitive data in text."""
        result = text
        for pattern, replacement in self._patterns:
            result = pattern.sub(replacement, result)
        return result

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Mask sensitive data in dictionary."""
        result: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = key.lower()
            if any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS):
                result[key] = "***REDACTED***"
            elif isinstance(value, str):
                result[key] = self.mask(value)
            elif isinstance(value, dict):
                result[key] = self.mask_dict(value)
            elif isinstance(value, list):
                result[key] = [
                    self.mask_dict(v) if isinstance(v, dict) else v for v in value
                ]
            else:
                result[key] = value
        return result


class JsonFormatter(logging.Formatter):
    """JSON log formatter."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_timestamp: bool = True,
    ) -> None:
        super().__init__()
        self._masker = masker or SensitiveDataMasker()
        self._include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": self._masker.mask(record.getMessage()),
        }

        if self._include_timestamp:
            log_data["timestamp"] = time.strftime(
                "%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)
            ) + f".{int(record.msecs):03d}Z"

        context = get_log_context()
        if context_dict := context.to_dict():
            log_data["context"] = self._masker.mask_dict(context_dict)

        if hasattr(record, "extra_fields"):
            log_data.update(self._masker.mask_dict(record.extra_fields))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter."""

    def __init__(
        self,
        masker: SensitiveDataMasker | None = None,
        include_context: bool = True,
    ) -> None:
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self._masker = masker or SensitiveDataMasker()
        self._include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as text."""
        original_msg = record.msg
        record.msg = self._masker.mask(str(record.msg))

        result = super().format(record)

        record.msg = original_msg

        fields: dict[str, Any] = {}
        if self._include_context:
            fields.update(get_log_context().to_dict())
        if hasattr(record, "extra_fields"):
            fields.update(record.extra_fields)
        if fields:
            masked = self._masker.mask_dict(fields)
            result = f"{result} | " + " ".join(f"{k}={v}" for k, v in masked.items())

        return result


class OneshotLogger:
    """Logger for oneshot-http with structured logging support.

    Example:
        >>> logger = OneshotLogger.get_logger("oneshot_http.client")
        >>> logger.debug("Request issued", method="GET", url="https://example.com")
    """

    _loggers: ClassVar[dict[str, logging.Logger]] = {}
    _level: ClassVar[LogLevel] = LogLevel.INFO
    _formatter: ClassVar[logging.Formatter | None] = None
    _handler: ClassVar[logging.Handler | None] = None

    @classmethod
    def configure(
        cls,
        level: LogLevel = LogLevel.INFO,
        format: str = "json",
        stream: Any = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Configure global logging settings.

        Args:
            level: Log level
            format: Output format ('json' or 'text')
            stream: Output stream (default: stderr)
            masker: Sensitive data masker
        """
        cls._level = level

        if format == "json":
            cls._formatter = JsonFormatter(masker=masker)
        else:
            cls._formatter = TextFormatter(masker=masker)

        cls._handler = logging.StreamHandler(stream or sys.stderr)
        cls._handler.setFormatter(cls._formatter)
        cls._handler.setLevel(level.to_logging_level())

        for logger in cls._loggers.values():
            logger.handlers.clear()
            logger.addHandler(cls._handler)
            logger.setLevel(level.to_logging_level())

    @classmethod
    def get_logger(cls, name: str) -> OneshotLogger:
        """Get or create a logger."""
        if name not in cls._loggers:
            logger = logging.getLogger(name)
            logger.setLevel(cls._level.to_logging_level())

            if cls._handler:
                logger.handlers.clear()
                logger.addHandler(cls._handler)
            elif not logger.handlers:
                handler = logging.StreamHandler(sys.stderr)
                handler.setFormatter(TextFormatter())
                logger.addHandler(handler)

            logger.propagate = False
            cls._loggers[name] = logger

        return cls(cls._loggers[name])

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        """Underlying logger name."""
        return self._logger.name

    def _log(
        self, level: int, msg: str, exc_info: Any = False, **kwargs: Any
    ) -> None:
        extra = {"extra_fields": kwargs} if kwargs else {}
        self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, **kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, **kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, **kwargs)

    def error(self, msg: str, exc_info: Any = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, exc_info=True, **kwargs)


def get_logger(name: str) -> OneshotLogger:
    """Get a logger instance."""
    return OneshotLogger.get_logger(name)
