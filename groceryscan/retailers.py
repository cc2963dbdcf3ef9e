"""Retailer configuration and the shared search-term vocabulary.

Adding a retailer means adding an entry to ``RETAILERS``; the crawler only
ever sees a ``RetailerConfig``.
"""
from pydantic import BaseModel, Field


class SelectorSet(BaseModel):
    """CSS selectors locating product fields on a search results page."""

    product_container: str
    name: str
    price: str
    availability: str = ""
    image: str = ""
    category: str = ""
    product_link: str


class RetailerConfig(BaseModel):
    """Everything the crawler and comparator need to know about one retailer."""

    key: str
    name: str
    base_url: str
    search_endpoint: str = Field(..., description="URL template with {query} and {page}")
    selectors: SelectorSet
    rate_limit_ms: int = Field(2000, ge=0, description="Delay between search terms")
    price_multiplier: float = Field(1.0, gt=0, description="Fallback price adjustment")
    store_name: str = ""


RETAILERS: dict[str, RetailerConfig] = {
    "tesco": RetailerConfig(
        key="tesco",
        name="Tesco",
        base_url="https://www.tesco.com",
        search_endpoint="https://www.tesco.com/groceries/en-GB/search?query={query}&page={page}",
        selectors=SelectorSet(
            product_container='[data-auto="product-tile"]',
            name='[data-auto="product-tile--title"]',
            price='[data-auto="price-details"]',
            availability='[data-auto="product-tile--availability"]',
            image='[data-auto="product-tile--image"] img',
            category='[data-auto="breadcrumbs"] a',
            product_link='a[data-auto="product-tile--link"]',
        ),
        rate_limit_ms=2000,
        price_multiplier=1.0,
        store_name="Tesco Superstore",
    ),
    "asda": RetailerConfig(
        key="asda",
        name="ASDA",
        base_url="https://groceries.asda.com",
        search_endpoint="https://groceries.asda.com/search/{query}?page={page}",
        selectors=SelectorSet(
            product_container='[data-auto-id="pod"]',
            name='[data-auto-id="pod-link"] h3',
            price='[data-auto-id="pod-price"]',
            availability='[data-auto-id="pod-availability"]',
            image='[data-auto-id="pod-image"] img',
            category=".breadcrumb a",
            product_link='[data-auto-id="pod-link"]',
        ),
        rate_limit_ms=2500,
        price_multiplier=0.95,
        store_name="ASDA Supercentre",
    ),
    "sainsburys": RetailerConfig(
        key="sainsburys",
        name="Sainsbury's",
        base_url="https://www.sainsburys.co.uk",
        search_endpoint="https://www.sainsburys.co.uk/gol-ui/SearchResults/{query}/{page}",
        selectors=SelectorSet(
            product_container='[data-test-id="product-tile"]',
            name='[data-test-id="product-tile-description"] a',
            price='[data-test-id="product-tile-price"]',
            availability='[data-test-id="product-tile-availability"]',
            image='[data-test-id="product-tile-image"] img',
            category='[data-test-id="breadcrumb"] a',
            product_link='[data-test-id="product-tile-description"] a',
        ),
        rate_limit_ms=3000,
        price_multiplier=1.05,
        store_name="Sainsbury's Superstore",
    ),
    "morrisons": RetailerConfig(
        key="morrisons",
        name="Morrisons",
        base_url="https://groceries.morrisons.com",
        search_endpoint="https://groceries.morrisons.com/search?entry={query}&page={page}",
        selectors=SelectorSet(
            product_container=".fops-item",
            name=".fops-item-details h4 a",
            price=".fops-price",
            availability=".fops-availability",
            image=".fops-item-image img",
            category=".breadcrumb a",
            product_link=".fops-item-details h4 a",
        ),
        rate_limit_ms=2000,
        price_multiplier=0.98,
        store_name="Morrisons Supermarket",
    ),
}

DEFAULT_RETAILERS: list[str] = list(RETAILERS)

SEARCH_TERMS: list[str] = [
    # Basic ingredients
    "milk", "bread", "eggs", "butter", "cheese", "flour", "sugar", "salt", "pepper",
    "olive oil", "vegetable oil", "onions", "garlic", "tomatoes", "potatoes", "carrots",
    "chicken", "beef", "pork", "fish", "salmon", "rice", "pasta", "lentils", "beans",
    # Dairy & alternatives
    "yogurt", "cream", "cottage cheese", "cheddar", "mozzarella", "parmesan",
    "almond milk", "oat milk", "soy milk", "coconut milk",
    # Fruits & vegetables
    "apples", "bananas", "oranges", "lemons", "limes", "strawberries", "blueberries",
    "spinach", "lettuce", "broccoli", "cauliflower", "bell peppers", "mushrooms",
    "avocado", "cucumber", "celery", "ginger", "herbs", "basil", "parsley",
    # Pantry staples
    "canned tomatoes", "coconut oil", "honey", "maple syrup", "vanilla extract",
    "baking powder", "baking soda", "vinegar", "soy sauce", "stock", "broth",
    # Proteins
    "chicken breast", "chicken thighs", "ground beef", "pork chops", "bacon",
    "tofu", "tempeh", "nuts", "almonds", "walnuts", "cashews", "seeds",
    # Grains & carbs
    "quinoa", "brown rice", "white rice", "oats", "barley", "couscous",
    "whole wheat bread", "sourdough", "bagels", "tortillas", "noodles",
]


def get_retailer(key: str) -> RetailerConfig:
    """Look up a retailer by key."""
    try:
        return RETAILERS[key]
    except KeyError:
        raise ValueError(f"No configuration found for retailer: {key}") from None
