"""Tests for product extraction from search result pages."""
import pytest

from groceryscan.fetch.endpoints import get_search_url
from groceryscan.parse.models import RawProduct, make_product_id
from groceryscan.parse.products import (
    categorize_product,
    extract_products,
    extract_raw_products,
    parse_availability,
    parse_price,
)
from groceryscan.retailers import RETAILERS, RetailerConfig, SelectorSet, get_retailer

SHOP = RetailerConfig(
    key="shop",
    name="Shop",
    base_url="https://shop.test",
    search_endpoint="https://shop.test/search?q={query}&page={page}",
    selectors=SelectorSet(
        product_container=".tile",
        name=".title",
        price=".price",
        availability=".stock",
        image="img",
        category=".crumbs a",
        product_link="a.link",
    ),
    rate_limit_ms=0,
)


def test_parse_price():
    """Test price extraction from display text."""
    assert parse_price("£1.50") == 1.5
    assert parse_price("Now £2 each") == 2.0
    assert parse_price("3.25") == 3.25


def test_parse_price_unusable():
    """Test that missing prices parse as zero."""
    assert parse_price("") == 0.0
    assert parse_price(None) == 0.0
    assert parse_price("Price unavailable") == 0.0


def test_parse_availability():
    """Test availability text mapping."""
    assert parse_availability("Out of stock") == "out_of_stock"
    assert parse_availability("Currently unavailable") == "out_of_stock"
    assert parse_availability("Low stock - hurry") == "limited_stock"
    assert parse_availability("") == "in_stock"
    assert parse_availability("Add to basket") == "in_stock"


def test_categorize_product():
    """Test keyword categorization with pantry default."""
    assert categorize_product("Semi Skimmed Milk 2L") == "Dairy & Eggs"
    assert categorize_product("British Chicken Breast") == "Meat & Fish"
    assert categorize_product("Frozen Peas") == "Frozen"
    assert categorize_product("Basmati Rice") == "Pantry & Canned"


def test_raw_product_collapses_whitespace():
    """Test that raw fields are whitespace-normalized."""
    raw = RawProduct(name="  Baby \n  Spinach  ", price_text=" £1.00 ")
    assert raw.name == "Baby Spinach"
    assert raw.price_text == "£1.00"


def test_extract_products():
    """Test extraction, URL resolution and stable ids."""
    html = """
    <div class="crumbs"><a>Groceries</a><a>Fresh Vegetables</a></div>
    <div class="tile">
        <a class="link" href="/products/spinach"><span class="title">Baby Spinach 200g</span></a>
        <span class="price">£1.10</span>
        <span class="stock">Low stock</span>
        <img src="/img/spinach.jpg">
    </div>
    <div class="tile">
        <a class="link" href="https://shop.test/products/kale"><span class="title">Curly Kale</span></a>
        <span class="price">£0.95</span>
    </div>
    """
    products, invalid = extract_products(html, SHOP)

    assert invalid == 0
    assert [p.name for p in products] == ["Baby Spinach 200g", "Curly Kale"]
    spinach = products[0]
    assert spinach.price == 1.10
    assert spinach.product_url == "https://shop.test/products/spinach"
    assert spinach.image_url == "https://shop.test/img/spinach.jpg"
    assert spinach.availability == "limited_stock"
    assert spinach.category == "Fresh Vegetables"
    assert spinach.retailer == "shop"
    assert spinach.id == make_product_id("shop", "https://shop.test/products/spinach")


def test_extract_products_drops_incomplete_records():
    """Test that records without name, price or link are dropped and counted."""
    html = """
    <div class="tile"><a class="link" href="/p/1"><span class="title">No Price</span></a></div>
    <div class="tile"><span class="title">No Link</span><span class="price">£1.00</span></div>
    <div class="tile"><a class="link" href="/p/3"></a><span class="price">£1.00</span></div>
    <div class="tile"><a class="link" href="/p/4"><span class="title">Free Sample</span></a>
        <span class="price">£0.00</span></div>
    <div class="tile"><a class="link" href="/p/5"><span class="title">Eggs x6</span></a>
        <span class="price">£1.80</span></div>
    """
    products, invalid = extract_products(html, SHOP)

    assert invalid == 4
    assert len(products) == 1
    assert products[0].name == "Eggs x6"
    assert products[0].category == "Dairy & Eggs"


def test_extract_products_empty_page():
    """Test empty and container-less pages."""
    assert extract_products("", SHOP) == ([], 0)
    assert extract_products("<html><body>No results</body></html>", SHOP) == ([], 0)


def test_extract_raw_products_tesco_layout():
    """Test the Tesco selector set against a result tile."""
    html = """
    <ul>
      <li data-auto="product-tile">
        <a data-auto="product-tile--link" href="/groceries/en-GB/products/254656543">
          <span data-auto="product-tile--title">Tesco British Whole Milk 2.272L</span>
        </a>
        <p data-auto="price-details">£1.45</p>
      </li>
    </ul>
    """
    tesco = get_retailer("tesco")
    raw = extract_raw_products(html, tesco.selectors)
    assert len(raw) == 1
    assert raw[0].name == "Tesco British Whole Milk 2.272L"

    products, invalid = extract_products(html, tesco)
    assert invalid == 0
    assert products[0].product_url == "https://www.tesco.com/groceries/en-GB/products/254656543"


def test_get_search_url_encodes_query():
    """Test search URL templating."""
    url = get_search_url(RETAILERS["tesco"], "olive oil", 2)
    assert url == "https://www.tesco.com/groceries/en-GB/search?query=olive%20oil&page=2"

    assert get_search_url(RETAILERS["sainsburys"], "milk", 3) == "https://www.sainsburys.co.uk/gol-ui/SearchResults/milk/3"


def test_get_retailer_unknown():
    """Test lookup of an unconfigured retailer."""
    with pytest.raises(ValueError):
        get_retailer("waitrose")
