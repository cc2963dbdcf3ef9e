"""In-memory fuzzy search over one retailer's catalog.

Scores run from 0.0 (exact) to 1.0 (nothing in common); lower is better.
Each indexed field is scored separately by comparing every query token with
its closest field token. Fields scoring above the threshold are noise and
ignored; the product score is the weighted mean of the remaining fields.
"""
import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from difflib import SequenceMatcher
from functools import lru_cache
from typing import Callable, Iterable, Optional

from groceryscan.config import config
from groceryscan.match.normalize import tokenize
from groceryscan.parse.models import Product, utcnow

logger = logging.getLogger(__name__)

FIELD_WEIGHTS: tuple[tuple[str, float], ...] = (
    ("name", 0.7),
    ("searchable_text", 0.5),
    ("category", 0.3),
    ("brand", 0.2),
)
MIN_TOKEN_LENGTH = 2
# Token pairs less similar than this count as a complete miss
TOKEN_MIN_SIMILARITY = 0.7


@lru_cache(maxsize=100_000)
def token_similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    return SequenceMatcher(None, a, b).ratio()


def field_score(query_tokens: list[str], field_tokens: tuple[str, ...]) -> Optional[float]:
    """Mean per-token distance of the query against one field. None if field empty."""
    if not field_tokens or not query_tokens:
        return None
    total = 0.0
    for q in query_tokens:
        best = max(token_similarity(q, f) for f in field_tokens)
        total += 1.0 - best if best >= TOKEN_MIN_SIMILARITY else 1.0
    return total / len(query_tokens)


def build_searchable_text(product: Product) -> str:
    parts = [
        product.name,
        product.category,
        product.subcategory,
        product.brand,
        product.size,
        product.unit,
    ]
    return " ".join(p for p in parts if p).lower()


@dataclass(frozen=True)
class SearchHit:
    product: Product
    score: float


class _Entry:
    __slots__ = ("product", "fields")

    def __init__(self, product: Product):
        self.product = product
        self.fields = {
            "name": tuple(tokenize(product.name)),
            "searchable_text": tuple(tokenize(build_searchable_text(product))),
            "category": tuple(tokenize(product.category or "")),
            "brand": tuple(tokenize(product.brand or "")),
        }


class SearchableIndex:
    """Immutable fuzzy index. Rebuild by constructing a new one."""

    def __init__(self, retailer: str, products: Iterable[Product], threshold: float | None = None):
        self.retailer = retailer
        self.threshold = config.MATCH_THRESHOLD if threshold is None else threshold
        self._entries = tuple(_Entry(p) for p in products)
        self.built_at: datetime = utcnow()
        self.search_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def score(self, entry: _Entry, query_tokens: list[str]) -> Optional[float]:
        weighted = 0.0
        weight_sum = 0.0
        for field, weight in FIELD_WEIGHTS:
            s = field_score(query_tokens, entry.fields[field])
            if s is None or s > self.threshold:
                continue
            weighted += s * weight
            weight_sum += weight
        if weight_sum == 0:
            return None
        return round(weighted / weight_sum, 6)

    def search(self, query: str, limit: int = 5) -> list[SearchHit]:
        """Best hits for a query, ascending by score (stable for ties)."""
        self.search_count += 1
        query_tokens = [t for t in tokenize(query) if len(t) >= MIN_TOKEN_LENGTH]
        if not query_tokens:
            return []

        hits = []
        for entry in self._entries:
            s = self.score(entry, query_tokens)
            if s is not None:
                hits.append(SearchHit(entry.product, s))
        hits.sort(key=lambda h: h.score)
        return hits[:limit]


class IndexProvider:
    """Owns one SearchableIndex per retailer and rebuilds it when stale.

    Readers always get a complete index: rebuilds construct a new index and
    then swap the reference.
    """

    def __init__(
        self,
        store,
        refresh_minutes: float | None = None,
        threshold: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        minutes = config.INDEX_REFRESH_MINUTES if refresh_minutes is None else refresh_minutes
        self.max_age_seconds = minutes * 60
        self.threshold = threshold
        self.clock = clock
        self._indexes: dict[str, SearchableIndex] = {}
        self._built_at: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self.build_count = 0

    def _is_fresh(self, retailer: str) -> bool:
        built = self._built_at.get(retailer)
        return built is not None and (self.clock() - built) <= self.max_age_seconds

    async def get(self, retailer: str) -> SearchableIndex:
        """Index for a retailer, building it first if missing or stale."""
        if not self._is_fresh(retailer):
            async with self._locks[retailer]:
                if not self._is_fresh(retailer):
                    await self.rebuild(retailer)
        return self._indexes[retailer]

    async def rebuild(self, retailer: str) -> SearchableIndex:
        logger.info(f"Updating search index for {retailer}")
        products = await self.store.get_products(retailer)
        index = SearchableIndex(retailer, products, threshold=self.threshold)
        self._indexes[retailer] = index
        self._built_at[retailer] = self.clock()
        self.build_count += 1
        logger.info(f"Search index updated for {retailer} with {len(index)} products")
        return index

    async def refresh_all(self, retailers: Iterable[str]) -> dict[str, bool]:
        """Force a rebuild for every retailer. Failures are logged, not raised."""
        results = {}
        for retailer in retailers:
            try:
                await self.rebuild(retailer)
                results[retailer] = True
            except Exception as e:
                logger.error(f"Failed to refresh index for {retailer}: {e}")
                results[retailer] = False
        return results

    def stats(self, retailers: Iterable[str]) -> dict[str, dict]:
        stats = {}
        for retailer in retailers:
            index = self._indexes.get(retailer)
            stats[retailer] = {
                "products": len(index) if index else 0,
                "last_update": index.built_at.isoformat() if index else None,
            }
        return stats
