"""Common interface for page fetchers."""
from typing import Optional


class FetchError(RuntimeError):
    """Navigation failed (network error, timeout, bad status)."""


class PageFetcher:
    """Fetches a search results page and waits for its product container.

    ``fetch_page`` returns the page HTML, or ``None`` when the container never
    appeared (end of results). Navigation failures raise ``FetchError``.
    """

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def fetch_page(self, url: str, container_selector: str) -> Optional[str]:
        raise NotImplementedError


def create_fetcher(backend: str) -> PageFetcher:
    """Build the configured fetcher backend."""
    if backend == "browser":
        from groceryscan.fetch.browser import BrowserFetcher
        return BrowserFetcher()
    if backend == "http":
        from groceryscan.fetch.client import FetchClient
        return FetchClient()
    raise ValueError(f"Unknown fetch backend: {backend}")
