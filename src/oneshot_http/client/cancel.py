"""
Request cancellation control.

A CancelToken carries the per-request timeout timer and the callbacks that
release the transport connection when a request is cancelled.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from oneshot_http.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class CancelReason(str, Enum):
    """Reasons for cancellation."""

    USER_REQUEST = "user_request"
    TIMEOUT = "timeout"


@dataclass
class CancelState:
    """State of a cancellation token.

    Attributes:
        cancelled: Whether cancellation was requested
        reason: Reason for cancellation
        timestamp: Time of cancellation
    """

    cancelled: bool = False
    reason: CancelReason | None = None
    timestamp: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class CancelToken:
    """Cancellation token for one in-flight request.

    The optional timeout starts counting as soon as the token is created and
    cancels the token with ``CancelReason.TIMEOUT`` when it elapses. Once the
    request terminates normally the token is released: the timer is stopped
    and registered callbacks are dropped.

    Example:
        >>> token = CancelToken(timeout=5.0)
        >>> token.on_cancel(lambda reason: connection.destroy())
        >>> # ... request finishes
        >>> token.release()
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize cancellation token.

        Args:
            timeout: Optional timeout in seconds
        """
        self._state = CancelState()
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[CancelReason], Any]] = []
        self._timeout = timeout
        self._timeout_task: asyncio.Task[None] | None = None
        self._released = False

        if timeout:
            self._start_timeout()

    def _start_timeout(self) -> None:
        """Start the timeout task on the running loop."""
        async def timeout_handler() -> None:
            await asyncio.sleep(self._timeout)  # type: ignore[arg-type]
            if not self._state.cancelled:
                self.cancel(CancelReason.TIMEOUT)

        loop = asyncio.get_running_loop()
        self._timeout_task = loop.create_task(timeout_handler())

    def _stop_timeout(self) -> None:
        task = self._timeout_task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The timer may be stopped from inside its own callback chain
        if task is not current:
            task.cancel()

    def cancel(
        self,
        reason: CancelReason = CancelReason.USER_REQUEST,
        **metadata: Any,
    ) -> bool:
        """Request cancellation.

        Args:
            reason: Reason for cancellation
            **metadata: Additional metadata

        Returns:
            True if cancellation was newly requested, False if the token was
            already cancelled or released
        """
        if self._state.cancelled or self._released:
            return False

        self._state.cancelled = True
        self._state.reason = reason
        self._state.timestamp = time.time()
        self._state.metadata.update(metadata)

        self._event.set()

        self._stop_timeout()

        for callback in list(self._callbacks):
            try:
                callback(reason)
            except Exception:
                logger.exception("Cancel callback failed", reason=reason.value)

        return True

    def release(self) -> None:
        """Stop the timer and drop callbacks without cancelling."""
        if self._released:
            return
        self._released = True
        self._stop_timeout()
        self._callbacks.clear()

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested."""
        return self._state.cancelled

    @property
    def is_released(self) -> bool:
        """Check if the token was released."""
        return self._released

    @property
    def timer_active(self) -> bool:
        """Whether the timeout timer is still pending."""
        return self._timeout_task is not None and not self._timeout_task.done()

    @property
    def reason(self) -> CancelReason | None:
        """Get cancellation reason."""
        return self._state.reason

    @property
    def state(self) -> CancelState:
        """Get full cancellation state."""
        return self._state

    async def wait(self) -> CancelReason:
        """Wait until cancellation is requested."""
        await self._event.wait()
        return self._state.reason or CancelReason.USER_REQUEST

    def on_cancel(self, callback: Callable[[CancelReason], Any]) -> CancelToken:
        """Register a callback to be called on cancellation.

        Args:
            callback: Callback function

        Returns:
            Self for chaining
        """
        if self._released:
            return self
        self._callbacks.append(callback)
        if self._state.cancelled and self._state.reason:
            callback(self._state.reason)
        return self
