"""Resolve free-text ingredient names to retailer catalog products."""
import asyncio
import logging
from typing import Any, Iterable, Optional

from groceryscan.config import config
from groceryscan.match.index import IndexProvider, SearchableIndex, SearchHit
from groceryscan.match.normalize import normalize_ingredient, remove_stop_words
from groceryscan.parse.models import IngredientMatch, MatchCacheEntry, ProductMatch
from groceryscan.retailers import DEFAULT_RETAILERS

logger = logging.getLogger(__name__)

# (max score, confidence); anything worse gets FLOOR_CONFIDENCE
CONFIDENCE_BUCKETS: tuple[tuple[float, float], ...] = (
    (0.1, 0.95),
    (0.2, 0.85),
    (0.3, 0.75),
    (0.4, 0.65),
    (0.5, 0.55),
)
FLOOR_CONFIDENCE = 0.45

NORMALIZED_LIMIT = 5
RAW_LIMIT = 3
NO_STOP_WORDS_LIMIT = 3

UNKNOWN_INGREDIENT = "Unknown"


def calculate_confidence(
    score: float,
    buckets: tuple[tuple[float, float], ...] = CONFIDENCE_BUCKETS,
    floor: float = FLOOR_CONFIDENCE,
) -> float:
    """Bucket a match score (lower is better) into a coarse confidence label."""
    for upper, confidence in buckets:
        if score <= upper:
            return confidence
    return floor


class MatchCache:
    """Literal-text match cache on top of the catalog store."""

    def __init__(self, store):
        self.store = store

    async def get(self, ingredient: str, retailer: str) -> list[ProductMatch]:
        cached = await self.store.get_cached_matches(ingredient, retailer)
        return [
            ProductMatch(product=product, confidence=entry.confidence, score=entry.score)
            for entry, product in cached
        ]

    async def put(self, ingredient: str, retailer: str, matches: list[ProductMatch]) -> None:
        await self.store.put_cached_matches(
            [
                MatchCacheEntry(
                    ingredient_name=ingredient,
                    product_id=m.product.id,
                    confidence=m.confidence,
                    score=m.score,
                    retailer=retailer,
                )
                for m in matches
            ]
        )


class IngredientMatcher:
    """Fuzzy ingredient matching with per-retailer indexes and a result cache."""

    def __init__(
        self,
        store,
        index_provider: Optional[IndexProvider] = None,
        cache: Optional[MatchCache] = None,
        retailers: Optional[Iterable[str]] = None,
        max_matches: int | None = None,
    ):
        self.store = store
        self.indexes = index_provider or IndexProvider(store)
        self.cache = cache or MatchCache(store)
        self.retailers = list(retailers) if retailers is not None else list(DEFAULT_RETAILERS)
        self.max_matches = config.MAX_MATCHES if max_matches is None else max_matches

    async def match_ingredients(
        self, ingredients: list[Any], retailers: Optional[Iterable[str]] = None
    ) -> dict[str, list[IngredientMatch]]:
        """Match against several retailers concurrently.

        A failing retailer yields an empty list; the others are unaffected.
        """
        retailers = list(retailers) if retailers is not None else self.retailers

        async def safe_match(retailer: str) -> list[IngredientMatch]:
            try:
                return await self.match_for_retailer(ingredients, retailer)
            except Exception as e:
                logger.error(f"Error matching ingredients for {retailer}: {e}")
                return []

        results = await asyncio.gather(*(safe_match(r) for r in retailers))
        return dict(zip(retailers, results))

    async def match_for_retailer(self, ingredients: list[Any], retailer: str) -> list[IngredientMatch]:
        """One IngredientMatch per input, in input order. Raises on retailer failure."""
        return [await self.match_ingredient(ingredient, retailer) for ingredient in ingredients]

    async def match_ingredient(self, ingredient: Any, retailer: str) -> IngredientMatch:
        if not ingredient or not isinstance(ingredient, str):
            logger.warning(f"Skipping invalid ingredient: {ingredient!r}")
            return IngredientMatch(ingredient=UNKNOWN_INGREDIENT, matches=[])

        cached = await self.cache.get(ingredient, retailer)
        if cached:
            logger.debug(f"Cache hit for {ingredient!r} at {retailer}")
            return IngredientMatch(ingredient=ingredient, matches=cached)

        index = await self.indexes.get(retailer)
        hits = self.search_ingredient(index, ingredient)
        if not hits:
            logger.info(f"No match for {ingredient!r} at {retailer}")
            return IngredientMatch(ingredient=ingredient, matches=[])

        matches = [
            ProductMatch(product=hit.product, confidence=calculate_confidence(hit.score), score=hit.score)
            for hit in hits
        ]
        await self.cache.put(ingredient, retailer, matches)
        return IngredientMatch(ingredient=ingredient, matches=matches)

    def search_ingredient(self, index: SearchableIndex, ingredient: str) -> list[SearchHit]:
        """Union of three search strategies, deduplicated, best first."""
        clean = normalize_ingredient(ingredient)
        results = [
            *index.search(clean, limit=NORMALIZED_LIMIT),
            *index.search(ingredient, limit=RAW_LIMIT),
            *index.search(remove_stop_words(clean), limit=NO_STOP_WORDS_LIMIT),
        ]

        seen = set()
        unique = []
        for hit in results:
            if hit.product.id in seen:
                continue
            seen.add(hit.product.id)
            unique.append(hit)

        unique.sort(key=lambda h: h.score)
        return unique[: self.max_matches]

    async def refresh_all_indexes(self) -> dict[str, bool]:
        return await self.indexes.refresh_all(self.retailers)

    def index_stats(self) -> dict[str, dict]:
        return self.indexes.stats(self.retailers)
