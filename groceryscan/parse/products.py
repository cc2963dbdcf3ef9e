"""Selector-driven extraction of product records from search result pages."""
import logging
import re
from typing import Optional
from urllib.parse import urljoin

from pydantic import ValidationError
from selectolax.parser import HTMLParser, Node

from groceryscan.parse.models import Availability, Product, RawProduct, make_product_id, utcnow
from groceryscan.retailers import RetailerConfig, SelectorSet

logger = logging.getLogger(__name__)

PRICE_RE = re.compile(r"£?(\d+\.?\d*)")

CATEGORY_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("Dairy & Eggs", ("milk", "cheese", "yogurt", "butter", "egg")),
    ("Meat & Fish", ("chicken", "beef", "pork", "fish", "salmon", "meat")),
    ("Fresh Produce", ("apple", "banana", "orange", "potato", "carrot", "onion")),
    ("Bakery", ("bread", "cake", "muffin", "pastry")),
    ("Frozen", ("frozen",)),
    ("Beverages", ("drink", "juice", "water", "coffee", "tea")),
]
DEFAULT_CATEGORY = "Pantry & Canned"


def parse_price(text: str) -> float:
    """First currency-prefixed decimal in the text, or 0.0 (unusable)."""
    if not text:
        return 0.0
    match = PRICE_RE.search(text)
    if not match:
        return 0.0
    try:
        return float(match.group(1))
    except ValueError:
        return 0.0


def parse_availability(text: str) -> Availability:
    """Map free availability text onto the three catalog states."""
    lowered = (text or "").lower()
    if "out of stock" in lowered or "unavailable" in lowered or "sold out" in lowered:
        return "out_of_stock"
    if "low stock" in lowered or "limited" in lowered:
        return "limited_stock"
    return "in_stock"


def categorize_product(name: str) -> str:
    """Rough category from product name keywords."""
    lowered = name.lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def _text(node: Node, selector: str) -> str:
    if not selector:
        return ""
    found = node.css_first(selector)
    return found.text(strip=True) if found else ""


def _attr(node: Node, selector: str, *names: str) -> str:
    if not selector:
        return ""
    found = node.css_first(selector)
    if found is None:
        return ""
    for name in names:
        value = found.attributes.get(name)
        if value:
            return value
    return ""


def extract_raw_products(html: str, selectors: SelectorSet) -> list[RawProduct]:
    """Pull name/price/image/link text out of every product container."""
    if not html:
        return []

    parser = HTMLParser(html)
    page_category = ""
    if selectors.category:
        crumbs = [n.text(strip=True) for n in parser.css(selectors.category) if n.text(strip=True)]
        page_category = crumbs[-1] if crumbs else ""

    records = []
    for container in parser.css(selectors.product_container):
        records.append(
            RawProduct(
                name=_text(container, selectors.name),
                price_text=_text(container, selectors.price),
                image_ref=_attr(container, selectors.image, "src", "data-src"),
                link_ref=_attr(container, selectors.product_link, "href"),
                availability_text=_text(container, selectors.availability),
                category_text=page_category,
            )
        )
    return records


def promote(raw: RawProduct, retailer: RetailerConfig) -> Optional[Product]:
    """Validate a raw record and turn it into a Product, or None if unusable."""
    price = parse_price(raw.price_text)
    if not raw.name or price <= 0 or not raw.link_ref:
        return None

    product_url = urljoin(retailer.base_url + "/", raw.link_ref)
    image_url = urljoin(retailer.base_url + "/", raw.image_ref) if raw.image_ref else None
    now = utcnow()
    try:
        return Product(
            id=make_product_id(retailer.key, product_url),
            name=raw.name,
            price=price,
            availability=parse_availability(raw.availability_text),
            image_url=image_url,
            category=raw.category_text or categorize_product(raw.name),
            retailer=retailer.key,
            product_url=product_url,
            scraped_at=now,
            last_updated=now,
        )
    except ValidationError as e:
        logger.debug(f"Dropping invalid product {raw.name!r}: {e}")
        return None


def extract_products(html: str, retailer: RetailerConfig) -> tuple[list[Product], int]:
    """Extract products from one page. Returns (products, invalid_record_count)."""
    products = []
    invalid = 0
    for raw in extract_raw_products(html, retailer.selectors):
        product = promote(raw, retailer)
        if product is None:
            invalid += 1
            continue
        products.append(product)
    if invalid:
        logger.warning(f"{retailer.key}: dropped {invalid} incomplete product records")
    return products, invalid
