"""
Fully resolved request parameters handed to the transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from oneshot_http.types.request import HttpMethod


@dataclass(frozen=True)
class WireRequest:
    """Wire-level request.

    Attributes:
        scheme: "http" or "https"
        hostname: Host without port
        netloc: Host with port when one was given
        path: Path including the query string
        method: HTTP method
        headers: Final headers, Content-Type/Content-Length included when a
            body is present
        body: Encoded body bytes, None when the request carries no body
    """

    scheme: str
    hostname: str
    netloc: str
    path: str
    method: HttpMethod
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None

    @property
    def url(self) -> str:
        """Absolute URL of the request."""
        return f"{self.scheme}://{self.netloc}{self.path}"

    @property
    def content_length(self) -> int | None:
        """Declared Content-Length, if any."""
        for key, value in self.headers.items():
            if key.lower() == "content-length":
                return int(value)
        return None
