"""Price estimates for ingredients with no catalog match."""
from groceryscan.retailers import RETAILERS

# Keyword -> base price (GBP). First keyword contained in the ingredient wins.
CATEGORY_PRICES: dict[str, float] = {
    # Meat & Fish
    "chicken": 5.50, "beef": 8.00, "pork": 6.00, "salmon": 7.50, "fish": 6.00,
    # Dairy
    "milk": 1.20, "cheese": 3.50, "butter": 2.50, "cream": 2.00, "yogurt": 2.80,
    # Vegetables
    "onion": 1.00, "potato": 1.50, "carrot": 1.20, "tomato": 2.50, "pepper": 2.00,
    "garlic": 0.80, "ginger": 1.50,
    # Fruits
    "apple": 2.50, "banana": 1.50, "orange": 2.00, "lemon": 1.50, "lime": 1.50,
    # Pantry
    "rice": 2.00, "pasta": 1.50, "flour": 1.20, "sugar": 1.50, "salt": 0.80,
    "oil": 3.00, "vinegar": 2.00, "sauce": 2.50,
}
DEFAULT_BASE_PRICE = 2.50


def base_price(ingredient: str) -> float:
    lowered = ingredient.lower()
    for keyword, price in CATEGORY_PRICES.items():
        if keyword in lowered:
            return price
    return DEFAULT_BASE_PRICE


def retailer_multiplier(retailer: str, multipliers: dict[str, float] | None = None) -> float:
    if multipliers and retailer in multipliers:
        return multipliers[retailer]
    config = RETAILERS.get(retailer)
    return config.price_multiplier if config else 1.0


def estimate_price(ingredient: str, retailer: str, multipliers: dict[str, float] | None = None) -> float:
    """Category base price adjusted by the retailer's static multiplier."""
    return base_price(ingredient) * retailer_multiplier(retailer, multipliers)
