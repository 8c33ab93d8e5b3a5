#!/usr/bin/env python3
"""
Basic request example.

This example demonstrates the ways to perform a single HTTP round-trip
with oneshot-http: awaiting, subscribing, and cancelling.

Usage:
    python examples/basic_request.py
"""

import asyncio

from pydantic import BaseModel

from oneshot_http import (
    AjaxClient,
    HttpStatusError,
    OneshotHttpError,
    RequestSpec,
    ajax,
    post,
)
from oneshot_http.telemetry import LogLevel, OneshotLogger


class Post(BaseModel):
    id: int
    title: str
    body: str
    userId: int


BASE_URL = "https://jsonplaceholder.typicode.com"


async def main() -> None:
    """Run basic request example."""
    OneshotLogger.configure(level=LogLevel.DEBUG, format="text")

    # Method 1: Await the stream directly
    posts = await ajax(
        {"url": f"{BASE_URL}/posts", "params": {"userId": 1}},
        list[Post],
    )
    print(f"Fetched {len(posts)} posts, first: {posts[0].title!r}")
    print()

    # Method 2: Per-verb helper with a body
    created = await post(
        f"{BASE_URL}/posts",
        {"title": "hello", "body": "from oneshot-http", "userId": 1},
    )
    print(f"Created: {created}")
    print()

    # Method 3: Subscribe with callbacks, then cancel
    done = asyncio.Event()
    subscription = ajax(RequestSpec(url=f"{BASE_URL}/posts/1", timeout=2000), Post).subscribe(
        on_next=lambda p: print(f"Got post {p.id}"),
        on_error=lambda e: (print(f"Failed: {e}"), done.set()),
        on_complete=done.set,
    )
    await done.wait()
    subscription.unsubscribe()  # no-op once terminated
    print()

    # Method 4: Client with default headers and error handling
    async with AjaxClient(headers={"Accept": "application/json"}) as client:
        try:
            await client.get(f"{BASE_URL}/posts/0", result_type=Post)
        except HttpStatusError as e:
            print(f"HTTP error: {e.to_dict()}")
        except OneshotHttpError as e:
            print(f"Request failed ({e.kind.value}): {e}")


if __name__ == "__main__":
    asyncio.run(main())
