"""
Response reconciler: turns transport events into one terminal outcome.

State machine::

    IDLE -> AWAITING_HEADERS -> AWAITING_BODY -> TERMINATED

Any state may jump to TERMINATED on error, timeout or abort. Once
TERMINATED, every further event is ignored.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from oneshot_http.client.cancel import CancelReason
from oneshot_http.errors import (
    DEFAULT_ERROR_MESSAGE,
    HttpStatusError,
    OneshotHttpError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
    classify_status,
    extract_error_message,
    is_error_status,
)
from oneshot_http.telemetry import get_logger
from oneshot_http.transport.base import ResponseHead

if TYPE_CHECKING:
    from oneshot_http.client.cancel import CancelToken
    from oneshot_http.client.stream import Observer
    from oneshot_http.transport.base import Connection, TransportEvent

logger = get_logger(__name__)

T = TypeVar("T")


class ReconcilerState(str, Enum):
    """Reconciler lifecycle states."""

    IDLE = "idle"
    AWAITING_HEADERS = "awaiting_headers"
    AWAITING_BODY = "awaiting_body"
    TERMINATED = "terminated"


class ResponseReconciler(Generic[T]):
    """Drives an observer to exactly one terminal event.

    Example:
        >>> reconciler = ResponseReconciler(observer, result_type=dict)
        >>> reconciler.begin(connection)
        >>> reconciler.on_response(200, {})
        >>> reconciler.on_data(b'{"ok": true}')
        >>> reconciler.on_end()  # observer.next({"ok": True}); observer.complete()
    """

    def __init__(
        self,
        observer: Observer[T],
        *,
        result_type: Any = Any,
        token: CancelToken | None = None,
        url: str | None = None,
        timeout_ms: int | None = None,
        request_id: str | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            observer: Sink for the terminal outcome
            result_type: Type the JSON body is validated against
            token: Cancel token carrying the timeout timer
            url: Request URL, attached to errors
            timeout_ms: Configured timeout, attached to timeout errors
            request_id: Identifier used in log records
        """
        self._observer = observer
        self._adapter: TypeAdapter[Any] | None = (
            None if result_type is Any else TypeAdapter(result_type)
        )
        self._token = token
        self._url = url
        self._timeout_ms = timeout_ms
        self._request_id = request_id
        self._state = ReconcilerState.IDLE
        self._connection: Connection | None = None
        self._status_code: int | None = None
        self._headers: dict[str, str] = {}
        self._buffer = bytearray()

        if token is not None:
            token.on_cancel(self._on_cancel)

    @property
    def state(self) -> ReconcilerState:
        """Current state."""
        return self._state

    @property
    def terminated(self) -> bool:
        """Whether a terminal event was produced (or the request aborted)."""
        return self._state is ReconcilerState.TERMINATED

    @property
    def status_code(self) -> int | None:
        """Status code of the response, once known."""
        return self._status_code

    def begin(self, connection: Connection | None = None) -> None:
        """Mark the request as issued."""
        if self._state is not ReconcilerState.IDLE:
            return
        self._connection = connection
        self._state = ReconcilerState.AWAITING_HEADERS

    def dispatch(self, event: TransportEvent) -> None:
        """Route a transport event to its handler."""
        if isinstance(event, ResponseHead):
            self.on_response(event.status_code, event.headers)
        else:
            self.on_data(event)

    def on_response(self, status_code: int, headers: dict[str, str] | None = None) -> None:
        """Handle the status line and headers."""
        if self._state is not ReconcilerState.AWAITING_HEADERS:
            return
        self._status_code = status_code
        self._headers = dict(headers or {})
        self._state = ReconcilerState.AWAITING_BODY

    def on_data(self, chunk: bytes) -> None:
        """Accumulate a body chunk."""
        if self._state is not ReconcilerState.AWAITING_BODY:
            return
        self._buffer.extend(chunk)

    def on_end(self) -> None:
        """Handle end of body."""
        if self._state is ReconcilerState.TERMINATED:
            return
        if self._state is not ReconcilerState.AWAITING_BODY or self._status_code is None:
            self._fail(
                TransportError(
                    "Connection closed before a response was received",
                    url=self._url,
                )
            )
            return

        body = bytes(self._buffer)
        if is_error_status(self._status_code):
            self._fail(self._status_error(self._status_code, body))
            return

        try:
            value = self._decode(body)
        except ResponseDecodeError as e:
            self._fail(e)
            return
        self._succeed(value)

    def on_error(self, error: BaseException) -> None:
        """Handle a transport failure.

        Once an error status is known it takes precedence: a failure while
        reading the error body still ends with HttpStatusError.
        """
        if self._state is ReconcilerState.TERMINATED:
            return
        if self._awaiting_error_body():
            status_error = self._status_error(self._status_code, bytes(self._buffer))
            status_error.__cause__ = error
            self._fail(status_error)
            return
        if not isinstance(error, OneshotHttpError):
            error = TransportError(
                f"Transport failure: {error}",
                url=self._url,
                cause=error if isinstance(error, Exception) else None,
            )
        self._fail(error)

    def on_timeout(self) -> None:
        """Handle expiry of the request timer."""
        if self._state is ReconcilerState.TERMINATED:
            return
        if self._awaiting_error_body():
            self._fail(self._status_error(self._status_code, bytes(self._buffer)))
        else:
            self._fail(RequestTimeoutError(timeout_ms=self._timeout_ms, url=self._url))
        self._destroy_connection()

    def abort(self) -> None:
        """Downstream went away: release everything, emit nothing."""
        if self._state is ReconcilerState.TERMINATED:
            return
        self._terminate()
        self._destroy_connection()
        logger.debug("Request aborted by unsubscribe", request_id=self._request_id)

    def _on_cancel(self, reason: CancelReason) -> None:
        if reason is CancelReason.TIMEOUT:
            self.on_timeout()
        else:
            self.abort()

    def _awaiting_error_body(self) -> bool:
        return (
            self._state is ReconcilerState.AWAITING_BODY
            and self._status_code is not None
            and is_error_status(self._status_code)
        )

    def _status_error(self, status_code: int, body: bytes) -> HttpStatusError:
        parsed: Any = None
        if body:
            try:
                parsed = json.loads(body)
            except (ValueError, RecursionError):
                parsed = None
        message = extract_error_message(parsed) or DEFAULT_ERROR_MESSAGE
        return HttpStatusError(
            message,
            status_code=status_code,
            body=parsed,
            headers=self._headers,
            url=self._url,
        )

    def _decode(self, body: bytes) -> Any:
        # Deeply nested documents exhaust the decoder's recursion limit
        try:
            payload = json.loads(body)
        except (ValueError, RecursionError) as e:
            raise ResponseDecodeError(
                f"Response body is not valid JSON: {e}",
                status_code=self._status_code,
                body=body,
                cause=e,
            ) from e

        if self._adapter is None:
            return payload
        try:
            return self._adapter.validate_python(payload)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Response body does not match the result type: {e.error_count()} error(s)",
                status_code=self._status_code,
                body=body,
                cause=e,
            ) from e

    def _terminate(self) -> None:
        self._state = ReconcilerState.TERMINATED
        self._buffer.clear()
        if self._token is not None:
            self._token.release()

    def _destroy_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is not None:
            connection.destroy()

    def _succeed(self, value: Any) -> None:
        self._terminate()
        logger.debug(
            "Request completed",
            request_id=self._request_id,
            status_code=self._status_code,
        )
        try:
            self._observer.next(value)
        finally:
            self._observer.complete()

    def _fail(self, error: OneshotHttpError) -> None:
        self._terminate()
        if isinstance(error, RequestTimeoutError):
            logger.warning(
                "Request timed out",
                request_id=self._request_id,
                timeout_ms=self._timeout_ms,
            )
        elif isinstance(error, HttpStatusError):
            logger.info(
                "Request failed",
                request_id=self._request_id,
                kind=error.kind.value,
                status_code=error.status_code,
                status_class=classify_status(error.status_code).value,
                error=error.message,
            )
        else:
            logger.info(
                "Request failed",
                request_id=self._request_id,
                kind=error.kind.value,
                error=error.message,
            )
        self._observer.error(error)
