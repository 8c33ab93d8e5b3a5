"""
Type definitions for oneshot-http.
"""

from oneshot_http.types.request import (
    DEFAULT_TIMEOUT_MS,
    ContentType,
    HttpMethod,
    ParamValue,
    RequestSpec,
)
from oneshot_http.types.wire import WireRequest

__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "ContentType",
    "HttpMethod",
    "ParamValue",
    "RequestSpec",
    "WireRequest",
]
