"""Shared fixtures: a temporary catalog database and a product factory."""
import asyncio
from datetime import datetime
from typing import Optional

import pytest

from groceryscan.parse.models import Product, make_product_id
from groceryscan.store.catalog import CatalogStore


@pytest.fixture
def store(tmp_path):
    """Initialized catalog store backed by a throwaway sqlite file."""
    catalog = CatalogStore(tmp_path / "products.db")
    asyncio.run(catalog.initialize())
    return catalog


@pytest.fixture
def make_product():
    def _make(
        name: str,
        price: float = 1.0,
        retailer: str = "tesco",
        slug: Optional[str] = None,
        category: Optional[str] = None,
        availability: str = "in_stock",
        last_updated: Optional[datetime] = None,
        scraped_at: Optional[datetime] = None,
    ) -> Product:
        url = f"https://{retailer}.test/products/{slug or name.lower().replace(' ', '-')}"
        fields = {}
        if last_updated is not None:
            fields["last_updated"] = last_updated
        if scraped_at is not None:
            fields["scraped_at"] = scraped_at
        return Product(
            id=make_product_id(retailer, url),
            name=name,
            price=price,
            retailer=retailer,
            product_url=url,
            category=category,
            availability=availability,
            **fields,
        )

    return _make
