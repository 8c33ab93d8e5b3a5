"""oneshot-http: single-request HTTP client with a cancellable result stream.

Each call performs exactly one HTTP round-trip and ends with exactly one
outcome: a decoded JSON value, or an error.
"""
from __future__ import annotations

from oneshot_http.client import (
    AjaxClient,
    CancelReason,
    CancelToken,
    ReconcilerState,
    ResponseReconciler,
    SingleStream,
    Subscription,
    ajax,
    build_wire_request,
    delete,
    get,
    patch,
    post,
    put,
)
from oneshot_http.errors import (
    ErrorKind,
    HttpStatusError,
    OneshotHttpError,
    RequestBuildError,
    RequestTimeoutError,
    ResponseDecodeError,
    TransportError,
)
from oneshot_http.transport import Connection, HttpxTransport, ResponseHead, Transport
from oneshot_http.types import ContentType, HttpMethod, RequestSpec, WireRequest

__version__ = "0.1.0"

__all__ = [
    # Client
    "AjaxClient",
    "CancelReason",
    "CancelToken",
    "ReconcilerState",
    "ResponseReconciler",
    "SingleStream",
    "Subscription",
    "ajax",
    "build_wire_request",
    "delete",
    "get",
    "patch",
    "post",
    "put",
    # Errors
    "ErrorKind",
    "HttpStatusError",
    "OneshotHttpError",
    "RequestBuildError",
    "RequestTimeoutError",
    "ResponseDecodeError",
    "TransportError",
    # Transport
    "Connection",
    "HttpxTransport",
    "ResponseHead",
    "Transport",
    # Types
    "ContentType",
    "HttpMethod",
    "RequestSpec",
    "WireRequest",
    # Version
    "__version__",
]
