"""
Single-value push stream.

A SingleStream is cold: nothing happens until it is subscribed (or
awaited). Each subscription runs the producer once and receives at most one
value followed by completion, or exactly one error.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Generic, Protocol, TypeVar

from oneshot_http.telemetry import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

logger = get_logger(__name__)

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


class Observer(Protocol[T_contra]):
    """Sink a producer pushes its terminal outcome into."""

    def next(self, value: T_contra) -> None: ...

    def error(self, error: BaseException) -> None: ...

    def complete(self) -> None: ...


class Subscriber(Generic[T]):
    """Observer bound to one subscription.

    Guards the stream contract: one value at most, nothing after error or
    complete, nothing after unsubscribe. The producer's teardown runs exactly
    once, on termination or unsubscribe, whichever comes first.
    """

    def __init__(
        self,
        on_next: Callable[[T], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
    ) -> None:
        self._on_next = on_next
        self._on_error = on_error
        self._on_complete = on_complete
        self._closed = False
        self._has_value = False
        self._teardown: Callable[[], None] | None = None

    @property
    def closed(self) -> bool:
        """Whether the subscription has ended."""
        return self._closed

    def next(self, value: T) -> None:
        """Deliver the value."""
        if self._closed or self._has_value:
            return
        self._has_value = True
        if self._on_next is not None:
            self._on_next(value)

    def error(self, error: BaseException) -> None:
        """Deliver a terminal error."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._on_error is not None:
                self._on_error(error)
            else:
                logger.warning("Unhandled stream error", error=str(error))
        finally:
            self._finalize()

    def complete(self) -> None:
        """Signal completion."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._on_complete is not None:
                self._on_complete()
        finally:
            self._finalize()

    def unsubscribe(self) -> None:
        """Stop receiving events and run the producer's teardown."""
        if self._closed:
            return
        self._closed = True
        self._finalize()

    def add_teardown(self, teardown: Callable[[], None]) -> None:
        """Register the producer's teardown; runs at once if already closed."""
        if self._closed:
            teardown()
            return
        self._teardown = teardown

    def _finalize(self) -> None:
        teardown, self._teardown = self._teardown, None
        if teardown is not None:
            teardown()


class Subscription:
    """Handle returned by ``SingleStream.subscribe``."""

    def __init__(self, subscriber: Subscriber[Any]) -> None:
        self._subscriber = subscriber

    @property
    def closed(self) -> bool:
        """Whether the subscription has ended."""
        return self._subscriber.closed

    def unsubscribe(self) -> None:
        """Release the request behind this subscription."""
        self._subscriber.unsubscribe()

    cancel = unsubscribe


class SingleStream(Generic[T]):
    """Cancellable stream of exactly one terminal outcome.

    Example:
        >>> stream = ajax({"url": "https://api.example.com/items"})
        >>> items = await stream
        >>> # or, push-based:
        >>> sub = stream.subscribe(on_next=print, on_error=handle)
        >>> sub.unsubscribe()  # releases the connection if still in flight
    """

    def __init__(
        self,
        producer: Callable[[Subscriber[T]], Callable[[], None] | None],
    ) -> None:
        """Initialize the stream.

        Args:
            producer: Called once per subscription with the subscriber; may
                return a teardown callable
        """
        self._producer = producer

    def subscribe(
        self,
        on_next: Callable[[T], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        on_complete: Callable[[], Any] | None = None,
    ) -> Subscription:
        """Start the producer and attach callbacks.

        Errors raised by the producer are delivered to ``on_error``.
        """
        subscriber: Subscriber[T] = Subscriber(on_next, on_error, on_complete)
        try:
            teardown = self._producer(subscriber)
        except Exception as e:
            subscriber.error(e)
            return Subscription(subscriber)

        if teardown is not None:
            subscriber.add_teardown(teardown)
        return Subscription(subscriber)

    async def first(self) -> T | None:
        """Subscribe and wait for the outcome.

        Returns:
            The emitted value, or None if the stream completed empty

        Raises:
            OneshotHttpError: The error the stream terminated with
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T | None] = loop.create_future()

        def on_next(value: T) -> None:
            if not future.done():
                future.set_result(value)

        def on_error(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        def on_complete() -> None:
            if not future.done():
                future.set_result(None)

        subscription = self.subscribe(on_next, on_error, on_complete)
        try:
            return await future
        finally:
            # Releases the request if the awaiting task was cancelled
            subscription.unsubscribe()

    def __await__(self) -> Generator[Any, None, T | None]:
        return self.first().__await__()
