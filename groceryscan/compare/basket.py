"""Basket comparison: cost a list of ingredients at every retailer."""
import asyncio
import hashlib
import logging
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from groceryscan.compare.fallback import estimate_price
from groceryscan.match.matcher import IngredientMatcher
from groceryscan.parse.models import (
    BasketComparison,
    IngredientMatch,
    Product,
    RetailerTotal,
    StoreLocation,
)
from groceryscan.retailers import DEFAULT_RETAILERS, RETAILERS

logger = logging.getLogger(__name__)

UK_POSTCODE_RE = re.compile(r"^[A-Z]{1,2}[0-9R][0-9A-Z]? [0-9][ABD-HJLNP-UW-Z]{2}$", re.IGNORECASE)


class BasketValidationError(ValueError):
    """Bad comparison request. Rejected before any matching happens."""


def is_valid_postcode(postcode: Any) -> bool:
    return isinstance(postcode, str) and bool(UK_POSTCODE_RE.match(postcode.strip()))


def round_money(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def store_location(retailer: str, postcode: str) -> StoreLocation:
    """Mock nearest store. Distance is a stable 1-9 mile estimate per postcode."""
    config = RETAILERS.get(retailer)
    digest = hashlib.md5(f"{retailer}:{postcode.upper()}".encode("utf-8")).hexdigest()
    distance = 1 + (int(digest[:8], 16) / 0xFFFFFFFF) * 8
    return StoreLocation(
        name=(config.store_name or config.name) if config else retailer,
        address=f"Near {postcode.strip().upper()}",
        distance_miles=round(distance, 1),
    )


class BasketComparator:
    """Ranks retailers by the total cost of a basket of ingredients."""

    def __init__(
        self,
        matcher: IngredientMatcher,
        store=None,
        retailers: Optional[Iterable[str]] = None,
        multipliers: Optional[dict[str, float]] = None,
    ):
        self.matcher = matcher
        self.store = store if store is not None else matcher.store
        self.retailers = list(retailers) if retailers is not None else list(DEFAULT_RETAILERS)
        self.multipliers = multipliers

    def validate(self, ingredients: Any, postcode: Any) -> None:
        if not isinstance(ingredients, list) or not ingredients:
            raise BasketValidationError("No ingredients provided")
        for ingredient in ingredients:
            if not isinstance(ingredient, str) or not ingredient.strip():
                raise BasketValidationError(f"Invalid ingredient: {ingredient!r}")
        if not is_valid_postcode(postcode):
            raise BasketValidationError("Invalid postcode provided")

    async def compare_basket(self, ingredients: list[str], postcode: str) -> BasketComparison:
        """Totals for every retailer, cheapest first.

        A retailer whose matching fails makes the whole comparison fail.
        """
        self.validate(ingredients, postcode)

        tasks = [
            asyncio.create_task(self.matcher.match_for_retailer(ingredients, retailer))
            for retailer in self.retailers
        ]
        try:
            per_retailer = await asyncio.gather(*tasks)
        except Exception:
            # First failure wins; siblings are cancelled and their outcomes collected
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        stores = [
            self.calculate_store_total(retailer, matches, ingredients, postcode)
            for retailer, matches in zip(self.retailers, per_retailer)
        ]
        stores.sort(key=lambda s: s.total_cost)

        logger.info(
            f"Compared {len(ingredients)} ingredients across {len(stores)} retailers; "
            f"cheapest: {stores[0].retailer} £{stores[0].total_cost:.2f}"
        )
        return BasketComparison(postcode=postcode.strip().upper(), stores=stores)

    def calculate_store_total(
        self,
        retailer: str,
        matches: list[IngredientMatch],
        ingredients: list[str],
        postcode: str,
    ) -> RetailerTotal:
        total = 0.0
        estimated = False
        missing = []
        successful = []

        for ingredient, match in zip(ingredients, matches):
            if match.matches:
                # max() keeps the first of equally confident matches
                best = max(match.matches, key=lambda m: m.confidence)
                total += best.product.price
                successful.append(IngredientMatch(ingredient=match.ingredient, matches=[best]))
            else:
                total += estimate_price(ingredient, retailer, self.multipliers)
                estimated = True
                missing.append(ingredient)

        return RetailerTotal(
            retailer=retailer,
            total_cost=round_money(total),
            estimated_total=estimated,
            ingredient_matches=successful,
            missing_ingredients=missing,
            store_location=store_location(retailer, postcode),
        )

    # Catalog lookups exposed alongside the comparison

    async def search_products(self, query: str, retailer: Optional[str] = None) -> list[Product]:
        if not query or not isinstance(query, str):
            raise BasketValidationError("Invalid query parameter. Must be a non-empty string.")
        return await self.store.search_products_by_name(query, retailer)

    async def products_by_category(self, category: str, retailer: Optional[str] = None) -> list[Product]:
        return await self.store.products_by_category(category, retailer)

    async def recent_price_changes(self, days: int = 7) -> list[dict]:
        if not isinstance(days, int) or days < 1 or days > 30:
            raise BasketValidationError("Invalid days parameter. Must be a number between 1 and 30.")
        return await self.store.recent_price_changes(days)

    async def store_stats(self) -> dict[str, dict]:
        return await self.store.store_stats()

    async def test_match(self, ingredient: str, retailer: Optional[str] = None) -> dict[str, IngredientMatch]:
        """Match one ingredient against one retailer, or all of them."""
        if not ingredient or not isinstance(ingredient, str):
            raise BasketValidationError("Invalid ingredient. Must be a non-empty string.")
        retailers = [retailer] if retailer else self.retailers
        return {r: await self.matcher.match_ingredient(ingredient, r) for r in retailers}
