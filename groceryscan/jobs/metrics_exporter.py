"""Append crawl results to a JSONL file for observability."""
import time
from pathlib import Path
from typing import Dict
import aiofiles
import orjson

from groceryscan.config import METRICS_FILE
from groceryscan.parse.models import ScrapeResult


class MetricsExporter:
    """Writes one JSON line per retailer crawl."""

    def __init__(self, run_id: str, metrics_file: Path = METRICS_FILE):
        self.run_id = run_id
        self.metrics_file = Path(metrics_file)

    async def export_result(self, result: ScrapeResult, counters: Dict | None = None) -> None:
        line = {
            "ts": time.time(),
            "run_id": self.run_id,
            "retailer": result.retailer,
            "success": result.success,
            "products_scraped": result.products_scraped,
            "errors": len(result.errors),
            "duration_ms": result.duration_ms,
        }
        if counters:
            line["counters"] = counters
        async with aiofiles.open(self.metrics_file, "ab") as f:
            await f.write(orjson.dumps(line) + b"\n")
