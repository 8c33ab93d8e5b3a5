"""Error classification for HTTP exchanges.

Maps failures to the five kinds a request can end with and extracts
best-effort messages from error response bodies.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

DEFAULT_ERROR_MESSAGE = "An error occurred"


class ErrorKind(str, Enum):
    """Terminal failure kinds."""

    INVALID_REQUEST = "invalid_request"
    """Malformed URL, unsupported content type or unencodable body."""

    HTTP_STATUS = "http_status"
    """Remote answered with a status code >= 400."""

    DECODE = "decode"
    """Success status but the body is not valid JSON for the result type."""

    TRANSPORT = "transport"
    """Connection-level failure reported by the transport."""

    TIMEOUT = "timeout"
    """No terminal outcome within the configured window."""

    OTHER = "other"
    """Unknown failure."""


class StatusClass(str, Enum):
    """Coarse HTTP status classes."""

    INFORMATIONAL = "informational"
    SUCCESS = "success"
    REDIRECT = "redirect"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


def classify_status(status_code: int) -> StatusClass:
    """Classify an HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        Status class
    """
    if status_code >= 500:
        return StatusClass.SERVER_ERROR
    if status_code >= 400:
        return StatusClass.CLIENT_ERROR
    if status_code >= 300:
        return StatusClass.REDIRECT
    if status_code >= 200:
        return StatusClass.SUCCESS
    return StatusClass.INFORMATIONAL


def is_error_status(status_code: int) -> bool:
    """Check whether a status code ends the request with an error."""
    return status_code >= 400


def extract_error_message(body: Any) -> str | None:
    """Extract error message from response body.

    Supports:
    - Simple: {"message": "..."}
    - Envelope: {"error": {"message": "..."}} or {"error": "..."}

    Args:
        body: Response body (parsed JSON)

    Returns:
        Error message if found, None otherwise
    """
    if not isinstance(body, dict):
        return None

    msg = body.get("message")
    if isinstance(msg, str) and msg:
        return msg

    error = body.get("error")
    if isinstance(error, dict):
        msg = error.get("message")
        if isinstance(msg, str) and msg:
            return msg
    elif isinstance(error, str) and error:
        return error

    return None
