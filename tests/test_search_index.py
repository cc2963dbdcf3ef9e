"""Tests for the fuzzy search index and its provider."""
import asyncio

import pytest

from groceryscan.match.index import IndexProvider, SearchableIndex, field_score, token_similarity


def test_exact_token_matches_score_zero(make_product):
    """Test that a query token present in the name is a perfect match."""
    index = SearchableIndex(
        "tesco",
        [
            make_product("Organic Baby Spinach"),
            make_product("Spinach Leaves 200g"),
            make_product("Semi Skimmed Milk"),
        ],
        threshold=0.6,
    )
    hits = index.search("spinach", limit=5)

    assert [h.product.name for h in hits] == ["Organic Baby Spinach", "Spinach Leaves 200g"]
    assert all(h.score == 0.0 for h in hits)


def test_typo_scores_close(make_product):
    """Test that a small misspelling still matches with a low score."""
    index = SearchableIndex("tesco", [make_product("Baby Spinach")], threshold=0.6)
    hits = index.search("spinch")

    assert len(hits) == 1
    assert 0 < hits[0].score <= 0.1


def test_dissimilar_query_has_no_hits(make_product):
    """Test that weak token similarity is rejected."""
    index = SearchableIndex("tesco", [make_product("Salmon Fillets"), make_product("Whole Milk")], threshold=0.6)
    assert token_similarity("saffron", "salmon") < 0.7
    assert index.search("saffron") == []


def test_short_and_empty_queries(make_product):
    """Test that one-character tokens are ignored."""
    index = SearchableIndex("tesco", [make_product("A Milk")], threshold=0.6)
    assert index.search("a") == []
    assert index.search("") == []


def test_limit_and_search_count(make_product):
    """Test result limiting and the search counter."""
    index = SearchableIndex("tesco", [make_product(f"Milk {i}", slug=str(i)) for i in range(8)], threshold=0.6)
    assert len(index) == 8
    assert len(index.search("milk", limit=3)) == 3
    assert index.search_count == 1


def test_field_score_partial_query():
    """Test that an unmatched query token counts as a full miss."""
    assert field_score(["baby", "spinach"], ("baby", "spinach")) == 0.0
    assert field_score(["baby", "saffron"], ("baby", "spinach")) == pytest.approx(0.5)
    assert field_score(["milk"], ()) is None


class FakeStore:
    def __init__(self, products):
        self.products = products
        self.calls = 0

    async def get_products(self, retailer):
        self.calls += 1
        if retailer == "broken":
            raise RuntimeError("database is locked")
        return self.products


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_provider_rebuilds_when_stale(make_product):
    """Test lazy rebuild after the refresh window."""
    store = FakeStore([make_product("Whole Milk")])
    clock = FakeClock()
    provider = IndexProvider(store, refresh_minutes=30, threshold=0.6, clock=clock)

    async def run():
        first = await provider.get("tesco")
        clock.now += 10 * 60
        second = await provider.get("tesco")
        assert first is second
        assert provider.build_count == 1

        store.products = [make_product("Whole Milk"), make_product("Skimmed Milk")]
        clock.now += 31 * 60
        third = await provider.get("tesco")
        assert third is not first
        assert len(third) == 2
        assert provider.build_count == 2

    asyncio.run(run())


def test_provider_refresh_all_isolates_failures(make_product):
    """Test that one failing retailer does not stop the others."""
    store = FakeStore([make_product("Whole Milk")])
    provider = IndexProvider(store, threshold=0.6)

    result = asyncio.run(provider.refresh_all(["tesco", "broken", "asda"]))

    assert result == {"tesco": True, "broken": False, "asda": True}
    stats = provider.stats(["tesco", "broken"])
    assert stats["tesco"]["products"] == 1
    assert stats["broken"] == {"products": 0, "last_update": None}
