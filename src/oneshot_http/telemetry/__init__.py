"""
Telemetry module for oneshot-http.

Provides structured logging with request-scoped context and masking.
"""

from oneshot_http.telemetry.logger import (
    JsonFormatter,
    LogContext,
    LogLevel,
    OneshotLogger,
    SensitiveDataMasker,
    TextFormatter,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
)

__all__ = [
    "JsonFormatter",
    "LogContext",
    "LogLevel",
    "OneshotLogger",
    "SensitiveDataMasker",
    "TextFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
]
