"""Single-request HTTP entry points.

``ajax()`` returns a cold SingleStream. Subscribing builds the wire request,
starts the timeout timer, opens a transport connection and pumps its events
into a ResponseReconciler.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, TypeVar, Union

from pydantic import ValidationError

from oneshot_http.client.builder import build_wire_request
from oneshot_http.client.cancel import CancelReason, CancelToken
from oneshot_http.client.reconciler import ResponseReconciler
from oneshot_http.client.stream import SingleStream
from oneshot_http.errors import RequestBuildError
from oneshot_http.telemetry import get_logger
from oneshot_http.transport import HttpxTransport, Transport
from oneshot_http.types.request import HttpMethod, RequestSpec

if TYPE_CHECKING:
    from collections.abc import Callable

    from oneshot_http.client.stream import Subscriber
    from oneshot_http.transport.base import Connection

logger = get_logger(__name__)

T = TypeVar("T")

RequestOptions = Union[RequestSpec, Mapping[str, Any]]

_default_transport: Transport | None = None

# Strong references to in-flight pump tasks; the loop only keeps weak ones
_pump_tasks: set[asyncio.Task[None]] = set()


def get_default_transport() -> Transport:
    """Get the transport used when none is passed."""
    global _default_transport
    if _default_transport is None:
        _default_transport = HttpxTransport()
    return _default_transport


def set_default_transport(transport: Transport | None) -> None:
    """Replace the transport used when none is passed (None restores httpx)."""
    global _default_transport
    _default_transport = transport


def resolve_spec(
    options: RequestOptions,
    overrides: Mapping[str, Any] | None = None,
    default_headers: Mapping[str, str] | None = None,
) -> RequestSpec:
    """Validate options into a RequestSpec.

    Args:
        options: RequestSpec or mapping of its fields
        overrides: Fields replacing those in ``options``
        default_headers: Headers placed under the request's own headers

    Raises:
        RequestBuildError: If the options do not validate
    """
    if isinstance(options, RequestSpec) and not overrides and not default_headers:
        return options

    if isinstance(options, RequestSpec):
        data = {name: getattr(options, name) for name in RequestSpec.model_fields}
    elif isinstance(options, Mapping):
        data = dict(options)
    else:
        raise RequestBuildError(
            "Request options must be a RequestSpec or a mapping",
            value=type(options).__name__,
        )

    if overrides:
        data.update(overrides)
    if default_headers:
        data["headers"] = {**default_headers, **dict(data.get("headers") or {})}

    try:
        return RequestSpec.model_validate(data)
    except ValidationError as e:
        raise RequestBuildError.from_validation(e) from e


def _handle(reconciler: ResponseReconciler[Any], handler: Callable[..., None], *args: Any) -> None:
    """Run a reconciler handler; a failure before termination ends the request."""
    try:
        handler(*args)
    except Exception as e:
        if reconciler.terminated:
            raise
        reconciler.on_error(e)


async def _pump(connection: Connection, reconciler: ResponseReconciler[Any]) -> None:
    """Feed transport events into the reconciler until the exchange ends."""
    events = connection.events().__aiter__()
    try:
        while not reconciler.terminated:
            try:
                event = await events.__anext__()
            except StopAsyncIteration:
                _handle(reconciler, reconciler.on_end)
                return
            except Exception as e:
                reconciler.on_error(e)
                return
            _handle(reconciler, reconciler.dispatch, event)
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


def _log_pump_failure(task: asyncio.Task[None]) -> None:
    _pump_tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Stream callback raised", exc_info=exc)


def _request(
    options: RequestOptions,
    result_type: Any,
    transport: Transport | None,
    overrides: Mapping[str, Any] | None = None,
    default_headers: Mapping[str, str] | None = None,
) -> SingleStream[Any]:
    def produce(subscriber: Subscriber[Any]) -> Callable[[], None] | None:
        try:
            spec = resolve_spec(options, overrides, default_headers)
            wire = build_wire_request(spec)
        except RequestBuildError as e:
            subscriber.error(e)
            return None

        request_id = uuid.uuid4().hex[:12]
        active = transport or get_default_transport()

        # The timer starts when the request is issued
        token = CancelToken(timeout=spec.timeout_seconds)
        reconciler: ResponseReconciler[Any] = ResponseReconciler(
            subscriber,
            result_type=result_type,
            token=token,
            url=wire.url,
            timeout_ms=spec.timeout,
            request_id=request_id,
        )
        logger.debug(
            "Request issued",
            request_id=request_id,
            method=wire.method.value,
            url=wire.url,
            timeout_ms=spec.timeout,
        )

        try:
            connection = active.open(wire)
            if wire.body is not None:
                connection.write(wire.body)
        except Exception as e:
            reconciler.on_error(e)
            return None

        reconciler.begin(connection)
        task = asyncio.get_running_loop().create_task(_pump(connection, reconciler))
        _pump_tasks.add(task)
        task.add_done_callback(_log_pump_failure)

        def teardown() -> None:
            token.cancel(CancelReason.USER_REQUEST)

        return teardown

    return SingleStream(produce)


def ajax(
    options: RequestOptions,
    result_type: type[T] | Any = Any,
    *,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """Perform one HTTP round-trip.

    Args:
        options: RequestSpec or a mapping of its fields (``contentType`` is
            accepted as an alias of ``content_type``)
        result_type: Type the JSON response is validated against
        transport: Transport to use (default: shared HttpxTransport)

    Returns:
        Cold stream emitting the decoded value then completing, or one
        OneshotHttpError

    Example:
        >>> items = await ajax(
        ...     {"url": "https://api.example.com/items", "params": {"limit": 10}},
        ...     list[Item],
        ... )
    """
    return _request(options, result_type, transport)


def _verb_overrides(method: HttpMethod, url: str, body: Any) -> dict[str, Any]:
    overrides: dict[str, Any] = {"url": url, "method": method}
    if body is not None:
        overrides["body"] = body
    return overrides


def get(
    url: str,
    body: Any = None,
    options: RequestOptions | None = None,
    *,
    result_type: type[T] | Any = Any,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """GET ``url``."""
    return _request(options or {}, result_type, transport, _verb_overrides(HttpMethod.GET, url, body))


def post(
    url: str,
    body: Any = None,
    options: RequestOptions | None = None,
    *,
    result_type: type[T] | Any = Any,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """POST ``body`` to ``url``."""
    return _request(options or {}, result_type, transport, _verb_overrides(HttpMethod.POST, url, body))


def put(
    url: str,
    body: Any = None,
    options: RequestOptions | None = None,
    *,
    result_type: type[T] | Any = Any,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """PUT ``body`` to ``url``."""
    return _request(options or {}, result_type, transport, _verb_overrides(HttpMethod.PUT, url, body))


def patch(
    url: str,
    body: Any = None,
    options: RequestOptions | None = None,
    *,
    result_type: type[T] | Any = Any,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """PATCH ``url`` with ``body``."""
    return _request(options or {}, result_type, transport, _verb_overrides(HttpMethod.PATCH, url, body))


def delete(
    url: str,
    body: Any = None,
    options: RequestOptions | None = None,
    *,
    result_type: type[T] | Any = Any,
    transport: Transport | None = None,
) -> SingleStream[T]:
    """DELETE ``url``."""
    return _request(options or {}, result_type, transport, _verb_overrides(HttpMethod.DELETE, url, body))


class AjaxClient:
    """Client bound to one transport and a set of default headers.

    Example:
        >>> async with AjaxClient(headers={"Authorization": "Bearer ..."}) as client:
        ...     user = await client.get("https://api.example.com/me", result_type=User)
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            transport: Transport to use (default: a new HttpxTransport)
            headers: Headers sent with every request; request headers win
        """
        self._transport = transport or HttpxTransport()
        self._headers = dict(headers or {})

    @property
    def transport(self) -> Transport:
        """The transport requests are sent through."""
        return self._transport

    def request(
        self,
        options: RequestOptions,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """Perform one request through this client's transport."""
        return _request(options, result_type, self._transport, default_headers=self._headers)

    def _send(
        self,
        method: HttpMethod,
        url: str,
        body: Any,
        options: RequestOptions | None,
        result_type: Any,
    ) -> SingleStream[Any]:
        return _request(
            options or {},
            result_type,
            self._transport,
            _verb_overrides(method, url, body),
            self._headers,
        )

    def get(
        self,
        url: str,
        body: Any = None,
        options: RequestOptions | None = None,
        *,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """GET ``url``."""
        return self._send(HttpMethod.GET, url, body, options, result_type)

    def post(
        self,
        url: str,
        body: Any = None,
        options: RequestOptions | None = None,
        *,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """POST ``body`` to ``url``."""
        return self._send(HttpMethod.POST, url, body, options, result_type)

    def put(
        self,
        url: str,
        body: Any = None,
        options: RequestOptions | None = None,
        *,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """PUT ``body`` to ``url``."""
        return self._send(HttpMethod.PUT, url, body, options, result_type)

    def patch(
        self,
        url: str,
        body: Any = None,
        options: RequestOptions | None = None,
        *,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """PATCH ``url`` with ``body``."""
        return self._send(HttpMethod.PATCH, url, body, options, result_type)

    def delete(
        self,
        url: str,
        body: Any = None,
        options: RequestOptions | None = None,
        *,
        result_type: type[T] | Any = Any,
    ) -> SingleStream[T]:
        """DELETE ``url``."""
        return self._send(HttpMethod.DELETE, url, body, options, result_type)

    async def close(self) -> None:
        """Close the transport."""
        await self._transport.close()

    async def __aenter__(self) -> AjaxClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
