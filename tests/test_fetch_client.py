"""Tests for the HTTP fetch backend."""
import asyncio

import httpx

from groceryscan.fetch.client import FetchClient
from groceryscan.fetch.rate_limit import RateLimiter

PAGES = {
    "/search/milk/1": (200, '<div class="tile">Whole Milk</div>'),
    "/search/milk/2": (200, "<p>No results</p>"),
}


def handler(request: httpx.Request) -> httpx.Response:
    status, body = PAGES.get(request.url.path, (404, "Not found"))
    return httpx.Response(status, text=body)


def make_client() -> FetchClient:
    fetcher = FetchClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    fetcher.rate_limiter = RateLimiter(0)
    return fetcher


def test_fetch_page_statuses():
    """Test container detection and 404 as end of results."""

    async def run():
        async with make_client() as fetcher:
            return [
                await fetcher.fetch_page(f"https://shop.test{path}", ".tile")
                for path in ("/search/milk/1", "/search/milk/2", "/search/milk/3")
            ]

    found, empty, missing = asyncio.run(run())
    assert "Whole Milk" in found
    assert empty is None
    assert missing is None
