"""Headless Chromium fetcher for script-rendered result pages."""
import logging
from typing import Optional

from playwright.async_api import (
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from groceryscan.config import config
from groceryscan.fetch.base import FetchError, PageFetcher
from groceryscan.fetch.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = frozenset({"image", "stylesheet", "font", "media"})

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


async def _block_heavy_resources(route, request) -> None:
    if request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserFetcher(PageFetcher):
    """Playwright backend. One page is reused for a whole crawl."""

    def __init__(self, headless: bool | None = None):
        self.headless = config.HEADLESS if headless is None else headless
        self.rate_limiter = RateLimiter(config.RATE_PER_DOMAIN)
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    async def start(self) -> None:
        self._pw = await async_playwright().start()
        self._browser = await self._pw.chromium.launch(headless=self.headless, args=LAUNCH_ARGS)
        self._context = await self._browser.new_context(
            user_agent=config.USER_AGENT,
            viewport={"width": 1366, "height": 768},
        )
        self._page = await self._context.new_page()
        await self._page.route("**/*", _block_heavy_resources)
        logger.info("Browser initialized")

    async def close(self) -> None:
        if self._context:
            await self._context.close()
        if self._browser:
            await self._browser.close()
        if self._pw:
            await self._pw.stop()
        self._pw = self._browser = self._context = self._page = None

    async def fetch_page(self, url: str, container_selector: str) -> Optional[str]:
        if self._page is None:
            raise FetchError("Browser not initialized")

        await self.rate_limiter.acquire(url)
        try:
            await self._page.goto(
                url,
                wait_until="networkidle",
                timeout=config.NAVIGATION_TIMEOUT * 1000,
            )
        except PlaywrightError as e:
            raise FetchError(f"Navigation failed for {url}: {e}") from e

        try:
            await self._page.wait_for_selector(
                container_selector, timeout=config.CONTENT_TIMEOUT * 1000
            )
        except PlaywrightTimeoutError:
            logger.info(f"No product container on {url}")
            return None

        return await self._page.content()
