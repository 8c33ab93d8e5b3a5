"""Tests for the response reconciler."""

from __future__ import annotations

import asyncio
import io
import json
from typing import Any

import pytest
from pydantic import BaseModel

from oneshot_http.client import CancelReason, CancelToken, ReconcilerState, ResponseReconciler
from oneshot_http.errors import (
    HttpStatusError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
)
from oneshot_http.telemetry import LogLevel, OneshotLogger
from oneshot_http.transport import ResponseHead


class RecordingObserver:
    """Observer recording every event it receives."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def next(self, value: Any) -> None:
        self.events.append(("next", value))

    def error(self, error: BaseException) -> None:
        self.events.append(("error", error))

    def complete(self) -> None:
        self.events.append(("complete", None))

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


class FakeConnection:
    """Connection stub counting destroy calls."""

    def __init__(self) -> None:
        self.destroy_calls = 0

    def destroy(self) -> None:
        self.destroy_calls += 1


class User(BaseModel):
    id: int
    name: str


def make_reconciler(**kwargs: Any) -> tuple[ResponseReconciler[Any], RecordingObserver, FakeConnection]:
    observer = RecordingObserver()
    connection = FakeConnection()
    reconciler: ResponseReconciler[Any] = ResponseReconciler(observer, url="https://x.test/", **kwargs)
    reconciler.begin(connection)  # type: ignore[arg-type]
    return reconciler, observer, connection


class TestStateMachine:
    """Tests for state transitions."""

    def test_transitions(self) -> None:
        """Test the happy path walks every state."""
        observer = RecordingObserver()
        reconciler: ResponseReconciler[Any] = ResponseReconciler(observer)
        assert reconciler.state == ReconcilerState.IDLE

        reconciler.begin()
        assert reconciler.state == ReconcilerState.AWAITING_HEADERS

        reconciler.on_response(200, {"content-type": "application/json"})
        assert reconciler.state == ReconcilerState.AWAITING_BODY
        assert reconciler.status_code == 200

        reconciler.on_data(b"[1, 2]")
        reconciler.on_end()
        assert reconciler.state == ReconcilerState.TERMINATED
        assert observer.events == [("next", [1, 2]), ("complete", None)]

    def test_chunks_accumulate_in_order(self) -> None:
        """Test multi-chunk bodies are joined in arrival order."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(200)
        for chunk in (b'{"na', b'me": "', "café".encode(), b'"}'):
            reconciler.on_data(chunk)
        reconciler.on_end()
        assert observer.events[0] == ("next", {"name": "café"})

    def test_dispatch(self) -> None:
        """Test transport events are routed by type."""
        reconciler, observer, _ = make_reconciler()
        reconciler.dispatch(ResponseHead(201, {}))
        reconciler.dispatch(b'{"ok": true}')
        reconciler.on_end()
        assert observer.events[0] == ("next", {"ok": True})

    def test_data_before_headers_ignored(self) -> None:
        """Test chunks are only accepted after the response head."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_data(b"garbage")
        reconciler.on_response(200)
        reconciler.on_data(b"1")
        reconciler.on_end()
        assert observer.events[0] == ("next", 1)

    def test_end_before_headers_is_transport_error(self) -> None:
        """Test a connection closing without a response."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_end()
        assert observer.kinds == ["error"]
        assert isinstance(observer.events[0][1], TransportError)


class TestOutcomes:
    """Tests for terminal outcome classification."""

    def test_error_status_with_message(self) -> None:
        """Test status >= 400 extracts the body's message."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(404)
        reconciler.on_data(b'{"message":"not found"}')
        reconciler.on_end()

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, HttpStatusError)
        assert error.to_dict() == {"status": 404, "message": "not found"}
        assert error.body == {"message": "not found"}

    def test_error_status_without_body(self) -> None:
        """Test the generic message when no body is present."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(500)
        reconciler.on_end()
        error = observer.events[0][1]
        assert error.to_dict() == {"status": 500, "message": "An error occurred"}

    def test_error_status_with_unparseable_body(self) -> None:
        """Test the generic message when the body is not JSON."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(502)
        reconciler.on_data(b"<html>Bad Gateway</html>")
        reconciler.on_end()
        error = observer.events[0][1]
        assert error.message == "An error occurred"
        assert error.body is None

    def test_error_status_body_never_decoded_as_result(self) -> None:
        """Test a JSON error body is not validated against the result type."""
        reconciler, observer, _ = make_reconciler(result_type=User)
        reconciler.on_response(422)
        reconciler.on_data(b'{"error": {"message": "invalid"}}')
        reconciler.on_end()
        error = observer.events[0][1]
        assert isinstance(error, HttpStatusError)
        assert error.message == "invalid"

    def test_decode_failure(self) -> None:
        """Test a success status with a non-JSON body."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(200)
        reconciler.on_data(b"not-json")
        reconciler.on_end()

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, ResponseDecodeError)
        assert isinstance(error.__cause__, ValueError)

    def test_empty_success_body_is_decode_failure(self) -> None:
        """Test an empty body is not valid JSON."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(204)
        reconciler.on_end()
        assert isinstance(observer.events[0][1], ResponseDecodeError)

    def test_deeply_nested_body_is_decode_failure(self) -> None:
        """Test JSON nested past the decoder's recursion limit."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(200)
        reconciler.on_data(b"[" * 100000 + b"]" * 100000)
        reconciler.on_end()

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, ResponseDecodeError)
        assert isinstance(error.__cause__, RecursionError)

    def test_deeply_nested_error_body(self) -> None:
        """Test an undecodable error body falls back to the generic message."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(500)
        reconciler.on_data(b"[" * 100000 + b"]" * 100000)
        reconciler.on_end()
        error = observer.events[0][1]
        assert error.to_dict() == {"status": 500, "message": "An error occurred"}

    def test_error_status_survives_body_failure(self) -> None:
        """Test a transport failure while reading an error body keeps the status."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_response(503)
        reconciler.on_data(b'{"mess')
        cause = ConnectionResetError("reset")
        reconciler.on_error(cause)

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, HttpStatusError)
        assert error.to_dict() == {"status": 503, "message": "An error occurred"}
        assert error.__cause__ is cause

    def test_error_status_survives_body_stall(self) -> None:
        """Test a timeout while reading an error body keeps the status."""
        reconciler, observer, connection = make_reconciler(timeout_ms=100)
        reconciler.on_response(500)
        reconciler.on_timeout()

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, HttpStatusError)
        assert error.status_code == 500
        assert connection.destroy_calls == 1

    def test_result_type_validation(self) -> None:
        """Test bodies are validated into the declared result type."""
        reconciler, observer, _ = make_reconciler(result_type=User)
        reconciler.on_response(200)
        reconciler.on_data(b'{"id": 1, "name": "Ada"}')
        reconciler.on_end()
        assert observer.events[0] == ("next", User(id=1, name="Ada"))

    def test_result_type_mismatch(self) -> None:
        """Test JSON that does not fit the result type is a decode failure."""
        reconciler, observer, _ = make_reconciler(result_type=User)
        reconciler.on_response(200)
        reconciler.on_data(b'{"id": "x"}')
        reconciler.on_end()
        assert observer.kinds == ["error"]
        assert isinstance(observer.events[0][1], ResponseDecodeError)

    def test_transport_error_wrapped(self) -> None:
        """Test foreign exceptions become TransportError."""
        reconciler, observer, _ = make_reconciler()
        cause = ConnectionResetError("reset by peer")
        reconciler.on_error(cause)
        error = observer.events[0][1]
        assert isinstance(error, TransportError)
        assert error.__cause__ is cause

    def test_library_error_passed_through(self) -> None:
        """Test library errors are not wrapped twice."""
        reconciler, observer, _ = make_reconciler()
        original = TransportError("Connection failed")
        reconciler.on_error(original)
        assert observer.events[0][1] is original


class TestTermination:
    """Tests for the at-most-one terminal event guarantee."""

    def test_duplicate_events_after_success(self) -> None:
        """Test every event after termination is ignored."""
        reconciler, observer, connection = make_reconciler()
        reconciler.on_response(200)
        reconciler.on_data(b'{"a": 1}')
        reconciler.on_end()

        reconciler.on_end()
        reconciler.on_data(b"more")
        reconciler.on_response(500)
        reconciler.on_error(RuntimeError("late"))
        reconciler.on_timeout()
        reconciler.abort()

        assert observer.kinds == ["next", "complete"]
        assert connection.destroy_calls == 0

    def test_duplicate_events_after_error(self) -> None:
        """Test nothing follows an error."""
        reconciler, observer, _ = make_reconciler()
        reconciler.on_error(RuntimeError("boom"))
        reconciler.on_response(200)
        reconciler.on_data(b"1")
        reconciler.on_end()
        reconciler.on_error(RuntimeError("again"))
        assert observer.kinds == ["error"]

    def test_timeout_destroys_connection_once(self) -> None:
        """Test timeout emits one error and destroys the connection once."""
        reconciler, observer, connection = make_reconciler(timeout_ms=100)
        reconciler.on_timeout()
        reconciler.on_timeout()
        reconciler.on_response(200)
        reconciler.on_end()

        assert observer.kinds == ["error"]
        error = observer.events[0][1]
        assert isinstance(error, RequestTimeoutError)
        assert error.timeout_ms == 100
        assert connection.destroy_calls == 1

    def test_failing_value_handler_still_completes(self) -> None:
        """Test completion is delivered even when the value handler raises."""

        class RaisingObserver(RecordingObserver):
            def next(self, value: Any) -> None:
                super().next(value)
                raise RuntimeError("handler failed")

        observer = RaisingObserver()
        reconciler: ResponseReconciler[Any] = ResponseReconciler(observer)
        reconciler.begin()
        reconciler.on_response(200)
        reconciler.on_data(b"1")

        with pytest.raises(RuntimeError, match="handler failed"):
            reconciler.on_end()
        assert observer.kinds == ["next", "complete"]
        assert reconciler.terminated

    def test_abort_is_silent(self) -> None:
        """Test abort releases the connection without emitting."""
        reconciler, observer, connection = make_reconciler()
        reconciler.on_response(200)
        reconciler.abort()
        reconciler.on_end()
        assert observer.events == []
        assert connection.destroy_calls == 1
        assert reconciler.terminated


class TestTimerRelease:
    """Tests for timer handling through the cancel token."""

    @pytest.mark.asyncio
    async def test_timer_cleared_on_success(self) -> None:
        """Test the timer never fires after a successful outcome."""
        token = CancelToken(timeout=0.05)
        reconciler, observer, connection = make_reconciler(token=token)
        reconciler.on_response(200)
        reconciler.on_data(b"true")
        reconciler.on_end()

        assert token.is_released
        await asyncio.sleep(0.1)
        assert observer.kinds == ["next", "complete"]
        assert not token.is_cancelled
        assert connection.destroy_calls == 0

    @pytest.mark.asyncio
    async def test_timer_cleared_on_error(self) -> None:
        """Test the timer is released on error paths too."""
        token = CancelToken(timeout=0.05)
        reconciler, observer, _ = make_reconciler(token=token)
        reconciler.on_error(RuntimeError("boom"))
        await asyncio.sleep(0.1)
        assert observer.kinds == ["error"]
        assert token.is_released
        assert not token.timer_active

    @pytest.mark.asyncio
    async def test_timer_fires(self) -> None:
        """Test the token's timeout drives on_timeout."""
        token = CancelToken(timeout=0.01)
        reconciler, observer, connection = make_reconciler(token=token, timeout_ms=10)
        await asyncio.sleep(0.05)
        assert observer.kinds == ["error"]
        assert isinstance(observer.events[0][1], RequestTimeoutError)
        assert connection.destroy_calls == 1
        assert token.reason == CancelReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_user_cancel_aborts(self) -> None:
        """Test a user cancel routes to abort."""
        token = CancelToken(timeout=1.0)
        reconciler, observer, connection = make_reconciler(token=token)
        token.cancel(CancelReason.USER_REQUEST)
        await asyncio.sleep(0)
        assert observer.events == []
        assert connection.destroy_calls == 1
        assert not token.timer_active


class TestOutcomeLogging:
    """Tests for outcome log records."""

    def test_status_class_logged(self) -> None:
        """Test HTTP failures are logged with their status class."""
        stream = io.StringIO()
        OneshotLogger.configure(level=LogLevel.DEBUG, format="json", stream=stream)
        try:
            reconciler, _, _ = make_reconciler(request_id="req-1")
            reconciler.on_response(502)
            reconciler.on_end()
        finally:
            OneshotLogger.configure(level=LogLevel.INFO, format="text")

        records = [json.loads(line) for line in stream.getvalue().splitlines()]
        failed = [r for r in records if r["message"] == "Request failed"]
        assert failed[-1]["status_code"] == 502
        assert failed[-1]["status_class"] == "server_error"
        assert failed[-1]["request_id"] == "req-1"
