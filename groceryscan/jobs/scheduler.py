"""Orchestrator: crawl, refresh, cleanup and backup operations plus a periodic job loop."""
import asyncio
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional

from groceryscan.config import BACKUP_DIR, config
from groceryscan.jobs.crawler import RetailerCrawler
from groceryscan.match.matcher import IngredientMatcher
from groceryscan.parse.models import ScrapeResult
from groceryscan.store.catalog import CatalogStore

logger = logging.getLogger(__name__)


class Orchestrator:
    """Triggers crawls, index refreshes, catalog cleanup and backups."""

    def __init__(
        self,
        store: CatalogStore,
        crawler: RetailerCrawler,
        matcher: IngredientMatcher,
        backup_dir: Optional[Path] = None,
    ):
        self.store = store
        self.crawler = crawler
        self.matcher = matcher
        self.backup_dir = Path(backup_dir or BACKUP_DIR)

    async def crawl_all_now(self, retailers: Optional[list[str]] = None) -> list[ScrapeResult]:
        """Crawl, then rebuild every index so new prices become searchable."""
        results = await self.crawler.crawl_all(retailers)
        await self.matcher.refresh_all_indexes()
        return results

    async def refresh_indexes_now(self) -> dict[str, bool]:
        return await self.matcher.refresh_all_indexes()

    async def cleanup_now(self, days: int | None = None) -> dict[str, int]:
        days = config.RETENTION_DAYS if days is None else days
        deleted = await self.store.purge_older_than(days)
        deleted["duplicates"] = await self.store.remove_duplicate_products()
        return deleted

    async def backup_now(self, keep: int | None = None) -> Path:
        """Snapshot the catalog, then delete all but the newest ``keep`` snapshots."""
        keep = config.BACKUP_KEEP if keep is None else keep
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = await self.store.backup(self.backup_dir / f"products_{timestamp}.db")

        # Names sort chronologically
        backups = sorted(self.backup_dir.glob("products_*.db"))
        for old in backups[:-keep]:
            old.unlink()
            logger.info(f"Removed old backup {old.name}")
        return path

    async def run_forever(self, tick_seconds: float = 60.0) -> None:
        """Run each job whenever its interval has elapsed. Job failures are logged."""
        jobs: list[tuple[str, float, Callable[[], Awaitable]]] = [
            ("crawl", config.CRAWL_INTERVAL_HOURS * 3600, self.crawl_all_now),
            ("index-refresh", config.INDEX_REFRESH_INTERVAL_HOURS * 3600, self.refresh_indexes_now),
            ("cleanup", config.CLEANUP_INTERVAL_HOURS * 3600, self.cleanup_now),
            ("backup", config.BACKUP_INTERVAL_HOURS * 3600, self.backup_now),
        ]
        last_run = {name: time.monotonic() for name, _, _ in jobs}
        logger.info(f"Scheduler started with jobs: {[name for name, _, _ in jobs]}")

        while True:
            now = time.monotonic()
            for name, interval, job in jobs:
                if now - last_run[name] < interval:
                    continue
                last_run[name] = now
                await self.run_job(name, job)
            await asyncio.sleep(tick_seconds)

    async def run_job(self, name: str, job: Callable[[], Awaitable]) -> bool:
        logger.info(f"Starting scheduled job: {name}")
        try:
            await job()
        except Exception as e:
            logger.error(f"Scheduled job {name} failed: {e}", exc_info=True)
            return False
        logger.info(f"Scheduled job {name} completed")
        return True
