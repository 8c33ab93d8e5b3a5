"""Error hierarchy for oneshot-http.

Every request ends with at most one of these errors, delivered through the
stream's error channel.
"""

from oneshot_http.errors.base import (
    ErrorContext,
    HttpStatusError,
    OneshotHttpError,
    RequestBuildError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
)
from oneshot_http.errors.classification import (
    DEFAULT_ERROR_MESSAGE,
    ErrorKind,
    StatusClass,
    classify_status,
    extract_error_message,
    is_error_status,
)

__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "ErrorContext",
    "ErrorKind",
    "HttpStatusError",
    "OneshotHttpError",
    "RequestBuildError",
    "RequestTimeoutError",
    "ResponseDecodeError",
    "StatusClass",
    "TransportError",
    "classify_status",
    "extract_error_message",
    "is_error_status",
]
