"""
Declarative request description.

A RequestSpec is built fresh by the caller for every call and consumed once.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TIMEOUT_MS = 5000

ParamValue = Union[str, int, float, bool]


class HttpMethod(str, Enum):
    """Supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ContentType(str, Enum):
    """Body encodings a request can declare."""

    JSON = "json"
    TEXT = "text"
    FORM = "form"

    @property
    def mime_type(self) -> str:
        """MIME type sent in the Content-Type header."""
        return _MIME_TYPES[self]


_MIME_TYPES: dict[ContentType, str] = {
    ContentType.JSON: "application/json",
    ContentType.TEXT: "text/plain",
    ContentType.FORM: "application/x-www-form-urlencoded",
}


class RequestSpec(BaseModel):
    """Description of one HTTP call.

    Example:
        >>> spec = RequestSpec(
        ...     url="https://api.example.com/items",
        ...     params={"limit": 10, "active": True},
        ... )
        >>> spec.method
        <HttpMethod.GET: 'GET'>
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    url: str = Field(description="Absolute http(s) URL")
    method: HttpMethod = Field(default=HttpMethod.GET)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default=None, description="Payload, encoded per content_type")
    content_type: ContentType = Field(default=ContentType.JSON, alias="contentType")
    params: dict[str, ParamValue] | None = Field(
        default=None, description="Query parameters appended to the URL"
    )
    timeout: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0, description="Milliseconds")

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.upper()
        return value

    @field_validator("content_type", mode="before")
    @classmethod
    def _lower_content_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @property
    def has_body(self) -> bool:
        """Whether a body should be encoded."""
        return self.body is not None

    @property
    def timeout_seconds(self) -> float:
        """Timeout converted to seconds."""
        return self.timeout / 1000.0
