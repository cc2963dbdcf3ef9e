"""Counters for one retailer crawl."""
import time
import logging
from collections import defaultdict
from typing import Dict

logger = logging.getLogger(__name__)


class CrawlMetrics:
    """Track pages, products and failures for one retailer run."""

    def __init__(self, retailer: str, total_terms: int):
        self.retailer = retailer
        self.total_terms = total_terms
        self.start_time = time.monotonic()
        self.counters: Dict[str, int] = defaultdict(int)

    def increment(self, key: str, amount: int = 1) -> None:
        self.counters[key] += amount

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def report(self) -> None:
        """Log current progress."""
        done = self.counters["terms_done"]
        logger.info(
            f"{self.retailer}: terms {done}/{self.total_terms} | "
            f"pages: {self.counters['pages']} | "
            f"products: {self.counters['products']} | "
            f"invalid: {self.counters['invalid_records']} | "
            f"term errors: {self.counters['term_errors']}"
        )

    def get_summary(self) -> Dict:
        return {
            "retailer": self.retailer,
            "total_terms": self.total_terms,
            "terms_done": self.counters["terms_done"],
            "pages": self.counters["pages"],
            "products": self.counters["products"],
            "invalid_records": self.counters["invalid_records"],
            "term_errors": self.counters["term_errors"],
            "elapsed_ms": self.elapsed_ms(),
        }
