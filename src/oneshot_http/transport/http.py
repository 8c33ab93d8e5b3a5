"""HTTP transport using httpx.

Provides:
- One connection per request, no pooling unless a client is supplied
- Raw chunk delivery of the response body
- Forced abort of an in-flight exchange
- Proxy support
"""

from __future__ import annotations

import asyncio
import importlib.util
import os
from typing import TYPE_CHECKING, Any

import httpx

from oneshot_http.errors import TransportError
from oneshot_http.transport.base import Connection, ResponseHead, Transport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from oneshot_http.transport.base import TransportEvent
    from oneshot_http.types.wire import WireRequest


_UA_VERSION: str | None = None


def _http2_enabled() -> bool:
    """Enable HTTP/2 only when optional dependency is present."""
    return importlib.util.find_spec("h2") is not None


def _trust_env_enabled() -> bool:
    """Use env proxy settings only when explicitly enabled."""
    return os.getenv("ONESHOT_HTTP_TRUST_ENV", "0") == "1"


def _get_ua_version() -> str:
    """Get package version for User-Agent (cached)."""
    global _UA_VERSION
    if _UA_VERSION is None:
        try:
            from importlib.metadata import version

            _UA_VERSION = version("oneshot-http")
        except Exception:
            _UA_VERSION = "0.1.0"
    return _UA_VERSION


def _wrap_http_error(e: httpx.HTTPError, url: str) -> TransportError:
    if isinstance(e, httpx.ConnectError):
        return TransportError(f"Connection failed: {e}", url=url, cause=e)
    if isinstance(e, httpx.TimeoutException):
        return TransportError(f"Transport timed out: {e}", url=url, cause=e)
    return TransportError(f"HTTP error: {e}", url=url, cause=e)


class HttpxConnection(Connection):
    """A single exchange driven by httpx.

    ``events()`` must be iterated inside a task; ``destroy()`` cancels that
    task, which unwinds the open response and closes the socket.
    """

    def __init__(
        self,
        request: WireRequest,
        *,
        client: httpx.AsyncClient | None = None,
        default_headers: dict[str, str] | None = None,
        proxy: str | None = None,
        http2: bool = False,
        trust_env: bool = False,
    ) -> None:
        self._request = request
        self._client = client
        self._default_headers = default_headers or {}
        self._proxy = proxy
        self._http2 = http2
        self._trust_env = trust_env
        self._body = bytearray()
        self._task: asyncio.Task[Any] | None = None
        self._destroyed = False

    @property
    def destroyed(self) -> bool:
        """Whether destroy() was called."""
        return self._destroyed

    def write(self, body: bytes) -> None:
        """Queue request body bytes."""
        self._body.extend(body)

    def _build_headers(self) -> dict[str, str]:
        headers = dict(self._request.headers)
        present = {key.lower() for key in headers}
        for key, value in self._default_headers.items():
            if key.lower() not in present:
                headers[key] = value
        return headers

    def _new_client(self) -> httpx.AsyncClient:
        # The per-request timer governs; httpx must not time out on its own
        return httpx.AsyncClient(
            timeout=None,
            proxy=self._proxy,
            http2=self._http2,
            trust_env=self._trust_env,
            follow_redirects=False,
        )

    async def events(self) -> AsyncIterator[TransportEvent]:
        """Send the request and yield the head and body chunks."""
        url = self._request.url
        if self._destroyed:
            raise TransportError("Connection destroyed before sending", url=url)
        self._task = asyncio.current_task()

        owns_client = self._client is None
        client = self._client or self._new_client()
        try:
            request = client.build_request(
                self._request.method.value,
                url,
                headers=self._build_headers(),
                content=bytes(self._body) if self._body else None,
            )
            try:
                response = await client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise _wrap_http_error(e, url) from e

            try:
                yield ResponseHead(
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    reason_phrase=response.reason_phrase,
                )
                try:
                    async for chunk in response.aiter_bytes():
                        yield chunk
                except httpx.HTTPError as e:
                    raise _wrap_http_error(e, url) from e
            finally:
                await response.aclose()
        finally:
            if owns_client:
                await client.aclose()

    def destroy(self) -> None:
        """Abort the exchange by cancelling the task iterating it."""
        if self._destroyed:
            return
        self._destroyed = True
        if self._task is not None and not self._task.done():
            self._task.cancel()


class HttpxTransport(Transport):
    """Transport backed by httpx.

    By default every connection gets its own ``httpx.AsyncClient`` that is
    closed with the exchange. Pass ``client`` to share one; its lifecycle is
    then the caller's.

    Example:
        >>> async with HttpxTransport(proxy="http://proxy:3128") as transport:
        ...     value = await ajax({"url": "https://api.example.com"}, transport=transport)
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        proxy: str | None = None,
        http2: bool | None = None,
    ) -> None:
        """Initialize HTTP transport.

        Args:
            client: Externally managed client to send requests with
            headers: Headers added to every request unless already set
            proxy: Proxy URL
            http2: Force HTTP/2 on or off (default: on when h2 is installed)
        """
        self._client = client
        self._trust_env = _trust_env_enabled()

        # Resolve proxy: default to direct connection unless trust_env is enabled.
        if proxy is not None:
            self._proxy = proxy
        elif self._trust_env:
            self._proxy = os.getenv("ONESHOT_HTTP_PROXY_URL")
        else:
            self._proxy = None

        self._http2 = _http2_enabled() if http2 is None else http2
        self._headers = {"User-Agent": f"oneshot-http/{_get_ua_version()}"}
        if headers:
            self._headers.update(headers)

    @property
    def proxy(self) -> str | None:
        """Resolved proxy URL."""
        return self._proxy

    @property
    def headers(self) -> dict[str, str]:
        """Default headers."""
        return dict(self._headers)

    def open(self, request: WireRequest) -> HttpxConnection:
        """Create a connection for a wire request."""
        return HttpxConnection(
            request,
            client=self._client,
            default_headers=self._headers,
            proxy=self._proxy,
            http2=self._http2,
            trust_env=self._trust_env,
        )

    async def close(self) -> None:
        """Nothing to release; a supplied client is owned by the caller."""

    async def __aenter__(self) -> HttpxTransport:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
