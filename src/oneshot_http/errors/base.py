"""Base error classes for oneshot-http.

Provides a layered error hierarchy:
- OneshotHttpError: Base class for all library errors
- RequestBuildError: Invalid request options (raised before any I/O)
- HttpStatusError: Remote answered with a status >= 400
- ResponseDecodeError: Success status but unusable body
- TransportError: Connection-level failures
- RequestTimeoutError: No terminal outcome within the configured window
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from oneshot_http.errors.classification import ErrorKind

if TYPE_CHECKING:
    from pydantic import ValidationError as PydanticValidationError


@dataclass
class ErrorContext:
    """Structured error context for diagnostics.

    Provides actionable information for debugging and error handling.
    """

    field_path: str | None = None
    """Path to the problematic field (e.g., 'params.limit')"""

    details: dict[str, Any] = field(default_factory=dict)
    """Additional details about the error"""

    source: str | None = None
    """Error source (e.g., 'builder', 'transport', 'response')"""

    hint: str | None = None
    """Actionable hint for resolving the error"""

    def __str__(self) -> str:
        parts = []
        if self.source:
            parts.append(f"[{self.source}]")
        if self.field_path:
            parts.append(f"at '{self.field_path}'")
        if self.hint:
            parts.append(f"(hint: {self.hint})")
        return " ".join(parts)


class OneshotHttpError(Exception):
    """Base class for all oneshot-http errors.

    Every failure a request can end with is delivered through the stream's
    error channel as an instance of this class.

    Attributes:
        message: Human-readable error message
        context: Optional structured error context
    """

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
    ) -> None:
        self.message = message
        self.context = context or ErrorContext()
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message."""
        ctx_str = str(self.context)
        if ctx_str:
            return f"{self.message} {ctx_str}"
        return self.message

    def with_hint(self, hint: str) -> OneshotHttpError:
        """Add a hint to this error."""
        self.context.hint = hint
        return self


class RequestBuildError(OneshotHttpError):
    """The request options could not be turned into a wire request.

    Raised when:
    - The URL is not an absolute http(s) URL
    - The content type is not one of json, text, form
    - The body cannot be encoded for its content type
    - An options mapping fails validation
    """

    kind = ErrorKind.INVALID_REQUEST

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        field: str | None = None,
        value: Any = None,
    ) -> None:
        ctx = context or ErrorContext(source="builder")
        if field:
            ctx.field_path = field
        if value is not None:
            ctx.details["value"] = value
        super().__init__(message, ctx)
        self.field = field
        self.value = value

    @classmethod
    def from_validation(cls, exc: PydanticValidationError) -> RequestBuildError:
        """Create from a pydantic validation failure on request options."""
        first = exc.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        if loc in ("content_type", "contentType"):
            message = f"Unsupported content type: {first.get('input')!r}"
        else:
            message = f"Invalid request options: {first.get('msg', 'validation failed')}"
        error = cls(message, field=loc or None, value=first.get("input"))
        error.__cause__ = exc
        return error


class HttpStatusError(OneshotHttpError):
    """The server answered with an error status (>= 400).

    Attributes:
        status_code: HTTP status code
        body: Response body parsed as JSON, if it was JSON
        headers: Response headers
    """

    kind = ErrorKind.HTTP_STATUS

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: Any = None,
        headers: dict[str, str] | None = None,
        url: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="response")
        ctx.details["status_code"] = status_code
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        """Return the ``{"status", "message"}`` failure record."""
        return {"status": self.status_code, "message": self.message}


class ResponseDecodeError(OneshotHttpError):
    """A success response whose body is not valid JSON for the result type."""

    kind = ErrorKind.DECODE

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: bytes | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = ErrorContext(source="response")
        if status_code is not None:
            ctx.details["status_code"] = status_code
        super().__init__(message, ctx)
        self.status_code = status_code
        self.body = body
        self.__cause__ = cause


class TransportError(OneshotHttpError):
    """Error during HTTP transport.

    Raised when:
    - Network connection failure
    - DNS resolution failure
    - SSL/TLS errors
    - Connection closed before a response arrived
    """

    kind = ErrorKind.TRANSPORT

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        *,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or ErrorContext(source="transport")
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.url = url
        self.__cause__ = cause


class RequestTimeoutError(OneshotHttpError):
    """No terminal outcome was reached within the request timeout."""

    kind = ErrorKind.TIMEOUT

    def __init__(
        self,
        message: str = "Request timed out",
        *,
        timeout_ms: int | None = None,
        url: str | None = None,
    ) -> None:
        ctx = ErrorContext(source="transport")
        if timeout_ms is not None:
            ctx.details["timeout_ms"] = timeout_ms
        if url:
            ctx.details["url"] = url
        super().__init__(message, ctx)
        self.timeout_ms = timeout_ms
        self.url = url
