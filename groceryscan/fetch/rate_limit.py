"""Per-host politeness floor between requests."""
import asyncio
import logging
import time
from collections import defaultdict
from typing import Dict
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforces a minimum interval between requests to the same host.

    The interval is a floor: callers may wait longer (page and term delays),
    never shorter.
    """

    def __init__(self, rate_per_second: float):
        self.min_interval = 1.0 / rate_per_second if rate_per_second > 0 else 0.0
        self._last_request: Dict[str, float] = defaultdict(float)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def host_of(url: str) -> str:
        parsed = urlparse(url)
        return f"{parsed.scheme}://{parsed.netloc}"

    async def acquire(self, url: str) -> float:
        """Wait until the host may be hit again. Returns seconds waited."""
        host = self.host_of(url)
        waited = 0.0
        async with self._locks[host]:
            elapsed = time.monotonic() - self._last_request[host]
            if self._last_request[host] and elapsed < self.min_interval:
                waited = self.min_interval - elapsed
                logger.debug(f"Rate limit: sleeping {waited:.2f}s before {host}")
                await asyncio.sleep(waited)
            self._last_request[host] = time.monotonic()
        return waited
