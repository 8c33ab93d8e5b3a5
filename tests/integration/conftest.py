"""
Integration test helper utilities.

Shared fixtures for end-to-end tests through the httpx transport.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from oneshot_http.client import set_default_transport

if TYPE_CHECKING:
    from collections.abc import Iterator

API_BASE = "https://api.example.com"


@pytest.fixture(autouse=True)
def fresh_default_transport() -> Iterator[None]:
    """Make each test build its own default transport from the environment."""
    set_default_transport(None)
    yield
    set_default_transport(None)


@pytest.fixture
def api_base() -> str:
    """Base URL every mocked endpoint lives under."""
    return API_BASE
