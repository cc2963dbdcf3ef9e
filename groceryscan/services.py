"""Wire the store, crawler, matcher and comparator together."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from groceryscan.compare.basket import BasketComparator
from groceryscan.config import CATALOG_DB
from groceryscan.jobs.crawler import RetailerCrawler
from groceryscan.jobs.metrics_exporter import MetricsExporter
from groceryscan.jobs.run_control import RunControl
from groceryscan.jobs.scheduler import Orchestrator
from groceryscan.match.matcher import IngredientMatcher
from groceryscan.store.catalog import CatalogStore


@dataclass
class Services:
    store: CatalogStore
    crawler: RetailerCrawler
    matcher: IngredientMatcher
    comparator: BasketComparator
    orchestrator: Orchestrator


def build_services(
    db_path: Path = CATALOG_DB,
    stop_after_minutes: Optional[float] = None,
    export_metrics: bool = True,
    backup_dir: Optional[Path] = None,
) -> Services:
    store = CatalogStore(db_path)
    crawler = RetailerCrawler(store, run_control=RunControl(stop_after_minutes=stop_after_minutes))
    if export_metrics:
        crawler.metrics_exporter = MetricsExporter(crawler.run_id)
    matcher = IngredientMatcher(store)
    comparator = BasketComparator(matcher, store)
    return Services(
        store=store,
        crawler=crawler,
        matcher=matcher,
        comparator=comparator,
        orchestrator=Orchestrator(store, crawler, matcher, backup_dir=backup_dir),
    )
