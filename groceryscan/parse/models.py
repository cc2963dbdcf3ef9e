"""Data models for catalog records, matches and basket comparisons."""
import hashlib
from datetime import datetime, timezone
from typing import Literal, Optional
from pydantic import BaseModel, Field, field_validator

Availability = Literal["in_stock", "out_of_stock", "limited_stock"]


def utcnow() -> datetime:
    """Naive UTC timestamp, second precision (matches the sqlite text columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def make_product_id(retailer: str, product_url: str) -> str:
    """Stable product id: same (retailer, url) always yields the same id."""
    digest = hashlib.md5(f"{retailer}:{product_url}".encode("utf-8")).hexdigest()
    return f"{retailer}_{digest[:12]}"


class Product(BaseModel):
    """One retailer's catalog entry."""

    id: str = Field(..., description="make_product_id(retailer, product_url)")
    name: str
    price: float = Field(..., ge=0)
    currency: Literal["GBP"] = "GBP"
    availability: Availability = "in_stock"
    image_url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[str] = None
    unit: Optional[str] = None
    retailer: str
    product_url: str = ""
    scraped_at: datetime = Field(default_factory=utcnow, description="First seen")
    last_updated: datetime = Field(default_factory=utcnow)


class RawProduct(BaseModel):
    """Product fields as they come off a result page, before validation."""

    name: str = ""
    price_text: str = ""
    image_ref: str = ""
    link_ref: str = ""
    availability_text: str = ""
    category_text: str = ""

    @field_validator("name", "price_text", "image_ref", "link_ref", "availability_text", "category_text")
    @classmethod
    def _strip(cls, value: str) -> str:
        return " ".join(value.split()) if value else ""


class PriceHistoryEntry(BaseModel):
    """Immutable price/availability observation."""

    product_id: str
    price: float
    availability: Availability
    recorded_at: datetime = Field(default_factory=utcnow)


class MatchCacheEntry(BaseModel):
    """Memoized match of one literal ingredient text against one retailer product."""

    ingredient_name: str
    product_id: str
    confidence: float = Field(..., ge=0, le=1)
    score: float
    retailer: str
    created_at: datetime = Field(default_factory=utcnow)


class ScrapeResult(BaseModel):
    """Outcome of crawling one retailer."""

    retailer: str
    products_scraped: int = 0
    errors: list[str] = Field(default_factory=list)
    duration_ms: int = 0
    success: bool = False


class ScrapeRun(ScrapeResult):
    """Audit row for one crawler invocation against one retailer."""

    id: int
    started_at: datetime
    completed_at: Optional[datetime] = None


class ProductMatch(BaseModel):
    product: Product
    confidence: float
    score: float


class IngredientMatch(BaseModel):
    ingredient: str
    matches: list[ProductMatch] = Field(default_factory=list)


class StoreLocation(BaseModel):
    name: str
    address: str
    distance_miles: float


class RetailerTotal(BaseModel):
    """Basket cost at one retailer."""

    retailer: str
    total_cost: float
    estimated_total: bool = False
    ingredient_matches: list[IngredientMatch] = Field(default_factory=list)
    missing_ingredients: list[str] = Field(default_factory=list)
    store_location: Optional[StoreLocation] = None


class BasketComparison(BaseModel):
    """Retailer totals, cheapest first."""

    postcode: str
    stores: list[RetailerTotal]
    comparison_timestamp: datetime = Field(default_factory=utcnow)
