"""HTTP fetcher with retries, rate limiting and container detection."""
import logging
from typing import Optional
import httpx
from selectolax.parser import HTMLParser
from tenacity import (
    RetryError,
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from groceryscan.config import config
from groceryscan.fetch.base import FetchError, PageFetcher
from groceryscan.fetch.rate_limit import RateLimiter

logger = logging.getLogger(__name__)


def is_retryable_status(response: httpx.Response) -> bool:
    """Check if status code is retryable."""
    return response.status_code in (429, 500, 502, 503, 504)


class FetchClient(PageFetcher):
    """Plain HTTP backend. Never loads images, stylesheets or fonts."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        limits = httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        )
        self.client = client or httpx.AsyncClient(
            http2=True,
            timeout=config.NAVIGATION_TIMEOUT,
            follow_redirects=True,
            limits=limits,
            headers={"User-Agent": config.USER_AGENT, "Accept-Language": "en-GB,en;q=0.9"},
        )
        self.rate_limiter = RateLimiter(config.RATE_PER_DOMAIN)

    async def close(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(config.MAX_RETRIES),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError)),
        reraise=True,
    )
    async def fetch(self, url: str) -> Optional[httpx.Response]:
        """GET a URL with rate limiting and retries. Returns None on 404."""
        await self.rate_limiter.acquire(url)
        try:
            response = await self.client.get(url)
            if response.status_code == 404:
                return None
            if is_retryable_status(response):
                response.raise_for_status()
            return response
        except httpx.HTTPStatusError as e:
            logger.warning(f"HTTP {e.response.status_code} for {url}")
            raise
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning(f"Network error for {url}: {e}")
            raise

    async def fetch_page(self, url: str, container_selector: str) -> Optional[str]:
        try:
            response = await self.fetch(url)
        except (httpx.HTTPError, RetryError) as e:
            raise FetchError(f"Navigation failed for {url}: {e}") from e

        if response is None:
            logger.debug(f"404 for {url}, treating as end of results")
            return None
        if response.status_code >= 400:
            raise FetchError(f"HTTP {response.status_code} for {url}")

        html = response.text
        if HTMLParser(html).css_first(container_selector) is None:
            return None
        return html
