"""Retailer crawler: search-term driven catalog acquisition."""
import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Iterable, Optional

from groceryscan.config import config
from groceryscan.fetch.base import FetchError, PageFetcher, create_fetcher
from groceryscan.fetch.endpoints import get_search_url
from groceryscan.jobs.metrics import CrawlMetrics
from groceryscan.jobs.metrics_exporter import MetricsExporter
from groceryscan.jobs.run_control import RunControl, is_successful_run
from groceryscan.parse.models import Product, ScrapeResult
from groceryscan.parse.products import extract_products
from groceryscan.retailers import DEFAULT_RETAILERS, SEARCH_TERMS, RetailerConfig, get_retailer
from groceryscan.store.catalog import CatalogStore

logger = logging.getLogger(__name__)


class RetailerCrawler:
    """Crawls retailers one after another, one search term at a time."""

    def __init__(
        self,
        store: CatalogStore,
        fetcher_factory: Optional[Callable[[], PageFetcher]] = None,
        search_terms: Optional[list[str]] = None,
        max_terms: Optional[int] = None,
        max_pages: Optional[int] = None,
        page_delay: Optional[float] = None,
        retailer_delay: Optional[float] = None,
        run_control: Optional[RunControl] = None,
        metrics_exporter: Optional[MetricsExporter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.fetcher_factory = fetcher_factory or (lambda: create_fetcher(config.FETCH_BACKEND))
        self.search_terms = list(search_terms) if search_terms is not None else list(SEARCH_TERMS)
        self.max_terms = config.MAX_SEARCH_TERMS if max_terms is None else max_terms
        self.max_pages = config.MAX_PAGES_PER_TERM if max_pages is None else max_pages
        self.page_delay = config.PAGE_DELAY_SECONDS if page_delay is None else page_delay
        self.retailer_delay = config.RETAILER_DELAY_SECONDS if retailer_delay is None else retailer_delay
        self.run_control = run_control or RunControl()
        self.metrics_exporter = metrics_exporter
        self.sleep = sleep
        self.run_id = str(uuid.uuid4())

    @property
    def terms(self) -> list[str]:
        """The bounded prefix of the vocabulary crawled per retailer."""
        return self.search_terms[: self.max_terms]

    async def crawl_all(self, retailers: Optional[Iterable[str]] = None) -> list[ScrapeResult]:
        """Crawl retailers sequentially. A failing retailer never stops the others."""
        keys = list(retailers) if retailers is not None else list(DEFAULT_RETAILERS)
        logger.info(f"Crawl {self.run_id} starting for {keys}")
        results: list[ScrapeResult] = []

        for i, key in enumerate(keys):
            should_stop, reason = self.run_control.should_stop()
            if should_stop:
                results.append(ScrapeResult(retailer=key, errors=[f"Deadline reached: {reason}"]))
                continue

            try:
                logger.info(f"Starting crawl for {key}")
                result = await self.crawl_retailer(key)
            except Exception as e:
                logger.error(f"Failed to crawl {key}: {e}", exc_info=True)
                result = ScrapeResult(retailer=key, products_scraped=0, errors=[str(e)], success=False)
            results.append(result)

            if self.metrics_exporter:
                await self.metrics_exporter.export_result(result)

            if i < len(keys) - 1:
                await self.sleep(self.retailer_delay)

        self._final_report(results)
        return results

    async def crawl_retailer(self, retailer: RetailerConfig | str) -> ScrapeResult:
        """Crawl one retailer and upsert everything it found in one transaction.

        Per-term failures are collected in ``errors``. Anything that breaks
        the whole retailer (browser launch, database) is recorded as a failed
        run and re-raised.
        """
        if isinstance(retailer, str):
            retailer = get_retailer(retailer)

        terms = self.terms
        metrics = CrawlMetrics(retailer.key, len(terms))
        run_id = await self.store.record_scrape_start(retailer.key)
        errors: list[str] = []
        found: dict[str, Product] = {}
        deadline_hit = False

        try:
            async with self.fetcher_factory() as fetcher:
                for i, term in enumerate(terms):
                    should_stop, reason = self.run_control.should_stop()
                    if should_stop:
                        errors.append(f"Deadline reached: {reason}")
                        deadline_hit = True
                        break

                    try:
                        for product in await self.crawl_term(fetcher, retailer, term, metrics, errors):
                            found[product.id] = product
                    except Exception as e:
                        message = f'Error scraping "{term}": {e}'
                        errors.append(message)
                        metrics.increment("term_errors")
                        logger.warning(message)
                    metrics.increment("terms_done")

                    if i < len(terms) - 1:
                        await self.sleep(retailer.rate_limit_ms / 1000)

            products = list(found.values())
            if products:
                await self.store.upsert_products(retailer.key, products)
                logger.info(f"Saved {len(products)} products for {retailer.key}")

            # An unfinished vocabulary is never a successful run
            success = not deadline_hit and is_successful_run(metrics.counters["term_errors"], len(terms))
            duration_ms = metrics.elapsed_ms()
            await self.store.record_scrape_complete(run_id, len(products), errors, success, duration_ms)
            metrics.report()

            return ScrapeResult(
                retailer=retailer.key,
                products_scraped=len(products),
                errors=errors,
                duration_ms=duration_ms,
                success=success,
            )
        except Exception as e:
            await self.store.record_scrape_complete(
                run_id, 0, errors + [str(e)], False, metrics.elapsed_ms()
            )
            raise

    async def crawl_term(
        self,
        fetcher: PageFetcher,
        retailer: RetailerConfig,
        term: str,
        metrics: CrawlMetrics,
        errors: list[str],
    ) -> list[Product]:
        """Fetch up to max_pages result pages for one term.

        A page without the product container, or with no usable products,
        ends pagination. A navigation failure also ends it: the failure is
        recorded as a term error and products from earlier pages are kept.
        """
        products: list[Product] = []
        for page in range(1, self.max_pages + 1):
            url = get_search_url(retailer, term, page)
            logger.debug(f"Scraping {retailer.key} page {page} for {term!r}")

            try:
                html = await fetcher.fetch_page(url, retailer.selectors.product_container)
            except FetchError as e:
                message = f'Error scraping "{term}": {e}'
                errors.append(message)
                metrics.increment("term_errors")
                logger.warning(f"{message} (page {page}, keeping {len(products)} products)")
                break
            metrics.increment("pages")
            if html is None:
                logger.info(f"No products found on page {page} for {term!r}")
                break

            page_products, invalid = extract_products(html, retailer)
            metrics.increment("products", len(page_products))
            metrics.increment("invalid_records", invalid)
            if not page_products:
                break
            products.extend(page_products)

            if page < self.max_pages:
                await self.sleep(self.page_delay)
        return products

    def _final_report(self, results: list[ScrapeResult]) -> None:
        total = sum(r.products_scraped for r in results)
        successful = sum(1 for r in results if r.success)
        logger.info("=" * 60)
        logger.info(f"CRAWL REPORT {self.run_id}")
        for r in results:
            status = "OK" if r.success else "FAILED"
            logger.info(
                f"{status:6} {r.retailer}: {r.products_scraped} products, "
                f"{len(r.errors)} errors, {r.duration_ms / 1000:.0f}s"
            )
        logger.info(f"Total products: {total} | Successful retailers: {successful}/{len(results)}")
        logger.info("=" * 60)
