"""Tests for basket comparison."""
import asyncio

import pytest

from groceryscan.compare.basket import (
    BasketComparator,
    BasketValidationError,
    is_valid_postcode,
    round_money,
    store_location,
)
from groceryscan.match.index import IndexProvider
from groceryscan.match.matcher import IngredientMatcher
from groceryscan.parse.models import IngredientMatch, ProductMatch


class StubMatcher:
    """Returns canned matches per retailer and records calls."""

    def __init__(self, matches=None, failing=()):
        self.store = None
        self.matches = matches or {}
        self.failing = set(failing)
        self.calls = []

    async def match_for_retailer(self, ingredients, retailer):
        self.calls.append(retailer)
        if retailer in self.failing:
            raise RuntimeError(f"matching failed for {retailer}")
        canned = self.matches.get(retailer, {})
        return [IngredientMatch(ingredient=i, matches=canned.get(i, [])) for i in ingredients]


def _match(product, confidence=0.95, score=0.0):
    return ProductMatch(product=product, confidence=confidence, score=score)


def test_postcode_validation():
    """Test UK postcode format check."""
    assert is_valid_postcode("SW1A 1AA")
    assert is_valid_postcode("sw1a 1aa")
    assert is_valid_postcode("M1 1AE")
    assert not is_valid_postcode("SW1A1AA")
    assert not is_valid_postcode("12345")
    assert not is_valid_postcode(None)


@pytest.mark.parametrize(
    "ingredients,postcode",
    [
        ([], "SW1A 1AA"),
        ("milk", "SW1A 1AA"),
        (None, "SW1A 1AA"),
        (["milk", "  "], "SW1A 1AA"),
        (["milk", 3], "SW1A 1AA"),
        (["milk"], "not a postcode"),
        (["milk"], None),
    ],
)
def test_invalid_requests_rejected_before_matching(ingredients, postcode):
    """Test that validation fails before any matcher call."""
    matcher = StubMatcher()
    comparator = BasketComparator(matcher, retailers=["tesco", "asda"])

    with pytest.raises(BasketValidationError):
        asyncio.run(comparator.compare_basket(ingredients, postcode))
    assert matcher.calls == []


def test_unmatched_ingredient_uses_fallback(store):
    """Test fallback pricing when no retailer has a match."""
    matcher = IngredientMatcher(store, IndexProvider(store, threshold=0.6), retailers=["r1", "r2"])
    comparator = BasketComparator(matcher, retailers=["r1", "r2"], multipliers={"r1": 1.0, "r2": 0.95})

    comparison = asyncio.run(comparator.compare_basket(["saffron"], "SW1A 1AA"))

    assert [s.retailer for s in comparison.stores] == ["r2", "r1"]
    assert [s.total_cost for s in comparison.stores] == [2.38, 2.50]
    for total in comparison.stores:
        assert total.estimated_total is True
        assert total.missing_ingredients == ["saffron"]
        assert total.ingredient_matches == []


def test_stores_sorted_by_total(make_product):
    """Test cheapest-first ordering and matched totals."""
    matcher = StubMatcher(
        {
            "tesco": {"milk": [_match(make_product("Milk", 1.45))], "bread": [_match(make_product("Bread", 1.20))]},
            "asda": {"milk": [_match(make_product("Milk", 1.30, retailer="asda"))],
                     "bread": [_match(make_product("Bread", 1.00, retailer="asda"))]},
        }
    )
    comparator = BasketComparator(matcher, retailers=["tesco", "asda"])

    comparison = asyncio.run(comparator.compare_basket(["milk", "bread"], "sw1a 1aa"))

    assert comparison.postcode == "SW1A 1AA"
    assert [(s.retailer, s.total_cost) for s in comparison.stores] == [("asda", 2.30), ("tesco", 2.65)]
    assert all(not s.estimated_total for s in comparison.stores)
    assert all(s.missing_ingredients == [] for s in comparison.stores)
    for earlier, later in zip(comparison.stores, comparison.stores[1:]):
        assert earlier.total_cost <= later.total_cost


def test_partial_match_marks_total_estimated(make_product):
    """Test a basket with one matched and one estimated ingredient."""
    matcher = StubMatcher({"tesco": {"milk": [_match(make_product("Milk", 1.45))]}})
    comparator = BasketComparator(matcher, retailers=["tesco"], multipliers={"tesco": 1.0})

    comparison = asyncio.run(comparator.compare_basket(["milk", "saffron"], "SW1A 1AA"))

    total = comparison.stores[0]
    assert total.total_cost == 3.95
    assert total.estimated_total is True
    assert total.missing_ingredients == ["saffron"]
    assert [m.ingredient for m in total.ingredient_matches] == ["milk"]


def test_best_match_prefers_confidence_then_first(make_product):
    """Test best-match selection among candidates."""
    first = make_product("Milk A", 1.50)
    second = make_product("Milk B", 0.90)
    weaker = make_product("Milk C", 0.10)
    matcher = StubMatcher(
        {"tesco": {"milk": [_match(weaker, 0.55, 0.45), _match(first), _match(second)]}}
    )
    comparator = BasketComparator(matcher, retailers=["tesco"])

    comparison = asyncio.run(comparator.compare_basket(["milk"], "SW1A 1AA"))

    total = comparison.stores[0]
    assert total.total_cost == 1.50
    assert total.ingredient_matches[0].matches[0].product.name == "Milk A"


def test_matcher_failure_fails_comparison():
    """Test that a retailer matching failure propagates."""
    matcher = StubMatcher(failing=["asda"])
    comparator = BasketComparator(matcher, retailers=["tesco", "asda"])

    with pytest.raises(RuntimeError):
        asyncio.run(comparator.compare_basket(["milk"], "SW1A 1AA"))


def test_round_money_half_up():
    """Test two-decimal rounding."""
    assert round_money(2.375) == 2.38
    assert round_money(0.1 + 0.2) == 0.3
    assert round_money(2.5) == 2.5


def test_store_location_is_stable():
    """Test that the mock store location is deterministic."""
    first = store_location("tesco", "SW1A 1AA")
    assert first == store_location("tesco", "sw1a 1aa")
    assert 1 <= first.distance_miles <= 9
    assert first.name == "Tesco Superstore"


def test_lookup_validation(store):
    """Test validation on catalog lookups."""
    comparator = BasketComparator(IngredientMatcher(store), retailers=["tesco"])

    with pytest.raises(BasketValidationError):
        asyncio.run(comparator.search_products(""))
    with pytest.raises(BasketValidationError):
        asyncio.run(comparator.recent_price_changes(31))
    with pytest.raises(BasketValidationError):
        asyncio.run(comparator.test_match(""))
    assert asyncio.run(comparator.recent_price_changes(7)) == []


class SlowAndFailingMatcher:
    """One retailer fails at once while the other is still matching."""

    def __init__(self):
        self.store = None
        self.cancelled = []

    async def match_for_retailer(self, ingredients, retailer):
        if retailer == "asda":
            raise RuntimeError("matching failed for asda")
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            self.cancelled.append(retailer)
            raise
        return []


def test_matcher_failure_cancels_other_retailers():
    """Test that a failing retailer cancels the still-running ones."""
    matcher = SlowAndFailingMatcher()
    comparator = BasketComparator(matcher, retailers=["tesco", "asda"])

    with pytest.raises(RuntimeError, match="asda"):
        asyncio.run(comparator.compare_basket(["milk"], "SW1A 1AA"))
    assert matcher.cancelled == ["tesco"]
