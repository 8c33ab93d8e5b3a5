"""
Client module - request building, response reconciliation and entry points.
"""

from oneshot_http.client.builder import (
    build_headers,
    build_path,
    build_wire_request,
    encode_form,
    encode_json,
    encode_text,
    stringify_value,
)
from oneshot_http.client.cancel import CancelReason, CancelState, CancelToken
from oneshot_http.client.core import (
    AjaxClient,
    RequestOptions,
    ajax,
    delete,
    get,
    get_default_transport,
    patch,
    post,
    put,
    resolve_spec,
    set_default_transport,
)
from oneshot_http.client.reconciler import ReconcilerState, ResponseReconciler
from oneshot_http.client.stream import Observer, SingleStream, Subscriber, Subscription

__all__ = [
    "AjaxClient",
    "CancelReason",
    "CancelState",
    "CancelToken",
    "Observer",
    "ReconcilerState",
    "RequestOptions",
    "ResponseReconciler",
    "SingleStream",
    "Subscriber",
    "Subscription",
    "ajax",
    "build_headers",
    "build_path",
    "build_wire_request",
    "delete",
    "encode_form",
    "encode_json",
    "encode_text",
    "get",
    "get_default_transport",
    "patch",
    "post",
    "put",
    "resolve_spec",
    "set_default_transport",
    "stringify_value",
]
