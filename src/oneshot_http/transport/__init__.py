"""
Transport layer - HTTP I/O for a single exchange.

Provides the connection protocol the reconciler consumes and an
httpx-based implementation.
"""

from oneshot_http.transport.base import (
    Connection,
    ResponseHead,
    Transport,
    TransportEvent,
)
from oneshot_http.transport.http import HttpxConnection, HttpxTransport

__all__ = [
    "Connection",
    "HttpxConnection",
    "HttpxTransport",
    "ResponseHead",
    "Transport",
    "TransportEvent",
]
