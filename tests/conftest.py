"""Root pytest fixtures for oneshot-http tests."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from oneshot_http.transport import Connection, ResponseHead, Transport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable

    from oneshot_http.transport import TransportEvent
    from oneshot_http.types import WireRequest


class ScriptedConnection(Connection):
    """Connection replaying a fixed list of events.

    After the script it either ends, raises ``error``, or hangs forever when
    ``hang`` is set. ``destroy()`` cancels the iterating task like the httpx
    connection does.
    """

    def __init__(
        self,
        request: WireRequest,
        script: Iterable[TransportEvent],
        *,
        hang: bool = False,
        error: Exception | None = None,
    ) -> None:
        self.request = request
        self.script = list(script)
        self.hang = hang
        self.error = error
        self.written = bytearray()
        self.destroy_calls = 0
        self.closed = False
        self._task: asyncio.Task[Any] | None = None

    @property
    def destroyed(self) -> bool:
        return self.destroy_calls > 0

    def write(self, body: bytes) -> None:
        self.written.extend(body)

    async def events(self) -> AsyncIterator[TransportEvent]:
        self._task = asyncio.current_task()
        try:
            for event in self.script:
                await asyncio.sleep(0)
                yield event
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True

    def destroy(self) -> None:
        self.destroy_calls += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()


class ScriptedTransport(Transport):
    """Transport handing out ScriptedConnections."""

    def __init__(
        self,
        script: Iterable[TransportEvent] = (),
        *,
        hang: bool = False,
        error: Exception | None = None,
        open_error: Exception | None = None,
    ) -> None:
        self.script = list(script)
        self.hang = hang
        self.error = error
        self.open_error = open_error
        self.connections: list[ScriptedConnection] = []

    def open(self, request: WireRequest) -> ScriptedConnection:
        if self.open_error is not None:
            raise self.open_error
        connection = ScriptedConnection(
            request, self.script, hang=self.hang, error=self.error
        )
        self.connections.append(connection)
        return connection

    @property
    def last(self) -> ScriptedConnection:
        return self.connections[-1]


def json_response(status_code: int, body: bytes, *chunks: bytes) -> list[TransportEvent]:
    """Script a response: head, then ``body`` (plus optional extra chunks)."""
    events: list[TransportEvent] = [
        ResponseHead(status_code, {"content-type": "application/json"})
    ]
    if body:
        events.append(body)
    events.extend(chunks)
    return events


@pytest.fixture
def scripted_transport() -> Callable[..., ScriptedTransport]:
    """Factory for scripted transports."""
    return ScriptedTransport


@pytest.fixture
def scripted_response() -> Callable[..., list[TransportEvent]]:
    """Factory for scripted response event lists."""
    return json_response
