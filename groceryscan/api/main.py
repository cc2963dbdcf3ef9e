"""FastAPI main application."""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from groceryscan.compare.basket import BasketValidationError
from groceryscan.config import Config, config
from groceryscan.retailers import DEFAULT_RETAILERS
from groceryscan.services import Services, build_services

logger = logging.getLogger(__name__)

app = FastAPI(title="Grocery Price Comparison API", version="0.1.0")

# API Key security (if configured)
API_KEY_HEADER = APIKeyHeader(name="X-API-KEY", auto_error=False)


def verify_api_key(api_key: str = Depends(API_KEY_HEADER)) -> bool:
    """Verify API key if configured."""
    expected_key = config.API_KEY
    if expected_key:
        if not api_key or api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API key")
    return True


_services: Optional[Services] = None


def get_services() -> Services:
    global _services
    if _services is None:
        _services = build_services()
    return _services


@app.on_event("startup")
async def startup():
    """Initialize on startup."""
    services = app.dependency_overrides.get(get_services, get_services)()
    await services.store.initialize()


class CompareRequest(BaseModel):
    """Ingredients are validated by the comparator so bad input maps to 400."""
    ingredients: Any = None
    postcode: Any = None


class CrawlRequest(BaseModel):
    retailers: Optional[list[str]] = None


class TestMatchRequest(BaseModel):
    ingredient: Any = None
    retailer: Optional[str] = None


def _bad_request(e: Exception) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


@app.get("/health")
async def health():
    """Health check endpoint (no auth required)."""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
    }


@app.post("/api/compare-prices")
async def compare_prices(
    request: CompareRequest,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    try:
        comparison = await services.comparator.compare_basket(request.ingredients, request.postcode)
    except BasketValidationError as e:
        raise _bad_request(e)
    except Exception as e:
        logger.error(f"Price comparison failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to compare prices")
    return {"success": True, "data": comparison.model_dump(mode="json")}


@app.post("/api/crawl", status_code=202)
async def trigger_crawl(
    request: CrawlRequest,
    background_tasks: BackgroundTasks,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    """Start a crawl in the background; progress lands in scrape runs."""
    retailers = request.retailers or list(DEFAULT_RETAILERS)
    unknown = [r for r in retailers if r not in DEFAULT_RETAILERS]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown retailers: {unknown}")
    background_tasks.add_task(services.orchestrator.crawl_all_now, retailers)
    return {"success": True, "message": "Crawl started", "retailers": retailers}


@app.post("/api/indexes/refresh")
async def refresh_indexes(
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    refreshed = await services.orchestrator.refresh_indexes_now()
    return {"success": all(refreshed.values()), "data": refreshed}


@app.get("/api/products/search")
async def search_products(
    query: str = Query(""),
    retailer: Optional[str] = None,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    try:
        products = await services.comparator.search_products(query, retailer)
    except BasketValidationError as e:
        raise _bad_request(e)
    return {"success": True, "data": [p.model_dump(mode="json") for p in products]}


@app.get("/api/products/category/{category}")
async def products_by_category(
    category: str,
    retailer: Optional[str] = None,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    products = await services.comparator.products_by_category(category, retailer)
    return {"success": True, "data": [p.model_dump(mode="json") for p in products]}


@app.get("/api/price-changes")
async def price_changes(
    days: int = 7,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    try:
        changes = await services.comparator.recent_price_changes(days)
    except BasketValidationError as e:
        raise _bad_request(e)
    return {"success": True, "data": changes}


@app.get("/api/stats")
async def stats(
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    return {
        "success": True,
        "data": {
            "stores": await services.comparator.store_stats(),
            "indexes": services.matcher.index_stats(),
            "recent_runs": [r.model_dump(mode="json") for r in await services.store.get_scrape_runs(10)],
        },
    }


@app.post("/api/test-match")
async def test_match(
    request: TestMatchRequest,
    services: Services = Depends(get_services),
    _: bool = Depends(verify_api_key),
):
    try:
        matches = await services.comparator.test_match(request.ingredient, request.retailer)
    except BasketValidationError as e:
        raise _bad_request(e)
    return {
        "success": True,
        "data": {retailer: m.model_dump(mode="json") for retailer, m in matches.items()},
    }


if __name__ == "__main__":
    import uvicorn
    from groceryscan.logging_conf import setup_logging

    setup_logging()
    Config.validate()
    uvicorn.run(app, host="0.0.0.0", port=8000)
