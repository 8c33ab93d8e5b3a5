"""
Transport collaborator interface.

A transport opens one connection per request. The connection accepts the
request body, then delivers the response as an async sequence of events:
one ResponseHead followed by zero or more body chunks. Normal exhaustion
means end of body; a raised exception means transport failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from oneshot_http.types.wire import WireRequest


@dataclass(frozen=True)
class ResponseHead:
    """Status line and headers of a response."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    reason_phrase: str = ""


TransportEvent = Union[ResponseHead, bytes]


class Connection(ABC):
    """One in-flight HTTP exchange."""

    @abstractmethod
    def write(self, body: bytes) -> None:
        """Queue request body bytes before the request is sent."""

    @abstractmethod
    def events(self) -> AsyncIterator[TransportEvent]:
        """Send the request and iterate over response events."""

    @abstractmethod
    def destroy(self) -> None:
        """Forcibly abort the exchange. Safe to call more than once."""

    @property
    @abstractmethod
    def destroyed(self) -> bool:
        """Whether destroy() was called."""


class Transport(ABC):
    """Factory for connections."""

    @abstractmethod
    def open(self, request: WireRequest) -> Connection:
        """Create a connection for a wire request."""

    async def close(self) -> None:
        """Release transport-wide resources."""
