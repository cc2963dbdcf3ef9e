"""URL builders for retailer search endpoints."""
from urllib.parse import quote

from groceryscan.retailers import RetailerConfig


def get_search_url(retailer: RetailerConfig, query: str, page: int) -> str:
    """Fill the retailer's search template for one query and 1-based page."""
    return (
        retailer.search_endpoint
        .replace("{query}", quote(query, safe=""))
        .replace("{page}", str(page))
    )

