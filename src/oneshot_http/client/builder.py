"""
Request builder: turns a RequestSpec into a WireRequest.

The builder is a pure function of its input. Caller-owned data is never
mutated; a fresh header mapping is built for every request.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from oneshot_http.errors import RequestBuildError
from oneshot_http.types.request import ContentType, RequestSpec
from oneshot_http.types.wire import WireRequest

_SCHEMES = frozenset({"http", "https"})

# Headers always owned by the builder once a body is produced
_COMPUTED_HEADERS = frozenset({"content-type", "content-length"})


def stringify_value(value: Any) -> str:
    """Render a scalar the way it appears in query strings and form bodies.

    Booleans become ``true``/``false``, ``None`` becomes ``null`` and
    integral floats lose their fractional part. Containers are rendered as
    compact JSON.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return str(value)


def encode_json(body: Any) -> bytes:
    """Encode a body as compact UTF-8 JSON."""
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json")
    try:
        text = json.dumps(body, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise RequestBuildError(
            f"Body is not JSON serializable: {e}", field="body"
        ) from e
    return text.encode("utf-8")


def encode_form(body: Any) -> bytes:
    """Encode a mapping as application/x-www-form-urlencoded."""
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json")
    if not isinstance(body, Mapping):
        raise RequestBuildError(
            "Form body must be a mapping",
            field="body",
            value=type(body).__name__,
        )
    pairs = [(str(key), stringify_value(value)) for key, value in body.items()]
    return urlencode(pairs).encode("ascii")


def encode_text(body: Any) -> bytes:
    """Encode an already-textual payload."""
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    raise RequestBuildError(
        "Text body must be str or bytes",
        field="body",
        value=type(body).__name__,
    )


_ENCODERS: dict[ContentType, Callable[[Any], bytes]] = {
    ContentType.JSON: encode_json,
    ContentType.TEXT: encode_text,
    ContentType.FORM: encode_form,
}


def _parse_url(raw: str) -> httpx.URL:
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as e:
        raise RequestBuildError(f"Invalid URL: {e}", field="url", value=raw) from e

    if url.scheme not in _SCHEMES or not url.host:
        raise RequestBuildError(
            "Invalid URL: expected an absolute http(s) URL",
            field="url",
            value=raw,
        ).with_hint("URLs must look like https://host/path")
    return url


def build_path(url: httpx.URL, params: Mapping[str, Any] | None = None) -> str:
    """Build path+query, appending params after any query already present.

    Keys are never de-duplicated: a key present in both the URL and params
    appears twice.
    """
    path, _, query = url.raw_path.decode("ascii").partition("?")
    if params:
        extra = urlencode([(key, stringify_value(value)) for key, value in params.items()])
        query = f"{query}&{extra}" if query else extra
    path = path or "/"
    return f"{path}?{query}" if query else path


def build_headers(
    headers: Mapping[str, str],
    content_type: ContentType | None,
    body: bytes | None,
) -> dict[str, str]:
    """Layer computed headers over caller headers.

    Without a body the caller's headers are copied unchanged.
    """
    if body is None or content_type is None:
        return dict(headers)

    merged = {
        key: value
        for key, value in headers.items()
        if key.lower() not in _COMPUTED_HEADERS
    }
    merged["Content-Type"] = content_type.mime_type
    merged["Content-Length"] = str(len(body))
    return merged


def build_wire_request(spec: RequestSpec) -> WireRequest:
    """Derive wire parameters from a request spec.

    Args:
        spec: Request description

    Returns:
        Wire request ready for the transport

    Raises:
        RequestBuildError: If the URL is invalid or the body cannot be encoded
    """
    url = _parse_url(spec.url)

    body: bytes | None = None
    if spec.has_body:
        encoder = _ENCODERS.get(spec.content_type)
        if encoder is None:
            raise RequestBuildError(
                f"Unsupported content type: {spec.content_type!r}",
                field="content_type",
                value=spec.content_type,
            )
        body = encoder(spec.body)

    return WireRequest(
        scheme=url.scheme,
        hostname=url.host,
        netloc=url.netloc.decode("ascii"),
        path=build_path(url, spec.params),
        method=spec.method,
        headers=build_headers(spec.headers, spec.content_type, body),
        body=body,
    )
