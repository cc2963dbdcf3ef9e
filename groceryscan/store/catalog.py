"""SQLite catalog: products, price history, match cache and scrape runs."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import AsyncIterator, Optional

import aiosqlite
import orjson

from groceryscan.config import CATALOG_DB
from groceryscan.parse.models import (
    MatchCacheEntry,
    PriceHistoryEntry,
    Product,
    ScrapeRun,
    utcnow,
)

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS products (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    price REAL NOT NULL,
    currency TEXT NOT NULL DEFAULT 'GBP',
    availability TEXT NOT NULL DEFAULT 'in_stock',
    image_url TEXT,
    category TEXT,
    subcategory TEXT,
    brand TEXT,
    size TEXT,
    unit TEXT,
    retailer TEXT NOT NULL,
    product_url TEXT NOT NULL,
    scraped_at TIMESTAMP NOT NULL,
    last_updated TIMESTAMP NOT NULL,
    UNIQUE (retailer, product_url)
);
CREATE INDEX IF NOT EXISTS idx_products_retailer ON products(retailer);
CREATE INDEX IF NOT EXISTS idx_products_name ON products(name);

CREATE TABLE IF NOT EXISTS price_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    price REAL NOT NULL,
    availability TEXT NOT NULL,
    recorded_at TIMESTAMP NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_price_history_product ON price_history(product_id, recorded_at);

CREATE TABLE IF NOT EXISTS ingredient_matches (
    ingredient_name TEXT NOT NULL,
    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    confidence REAL NOT NULL,
    score REAL NOT NULL,
    retailer TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL,
    PRIMARY KEY (ingredient_name, product_id, retailer)
);
CREATE INDEX IF NOT EXISTS idx_matches_lookup ON ingredient_matches(ingredient_name, retailer);

CREATE TABLE IF NOT EXISTS scrape_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    retailer TEXT NOT NULL,
    started_at TIMESTAMP NOT NULL,
    completed_at TIMESTAMP,
    products_scraped INTEGER DEFAULT 0,
    errors_count INTEGER DEFAULT 0,
    error_details TEXT,
    success INTEGER DEFAULT 0,
    duration_ms INTEGER DEFAULT 0
);
"""

PRODUCT_UPSERT = """
INSERT INTO products (
    id, name, price, currency, availability, image_url, category,
    subcategory, brand, size, unit, retailer, product_url,
    scraped_at, last_updated
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
    name = excluded.name,
    price = excluded.price,
    availability = excluded.availability,
    image_url = excluded.image_url,
    category = excluded.category,
    subcategory = excluded.subcategory,
    brand = excluded.brand,
    size = excluded.size,
    unit = excluded.unit,
    last_updated = excluded.last_updated
"""


def _ts(value: datetime) -> str:
    return value.isoformat(sep=" ", timespec="seconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_product(row: aiosqlite.Row) -> Product:
    return Product(
        id=row["id"],
        name=row["name"],
        price=row["price"],
        currency=row["currency"],
        availability=row["availability"],
        image_url=row["image_url"],
        category=row["category"],
        subcategory=row["subcategory"],
        brand=row["brand"],
        size=row["size"],
        unit=row["unit"],
        retailer=row["retailer"],
        product_url=row["product_url"],
        scraped_at=_parse_ts(row["scraped_at"]),
        last_updated=_parse_ts(row["last_updated"]),
    )


class CatalogStore:
    """Durable catalog storage. Pure data access, no matching logic."""

    def __init__(self, db_path: Path = CATALOG_DB):
        self.db_path = Path(db_path)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def initialize(self) -> None:
        """Create tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode = WAL")
            await db.executescript(SCHEMA)
            await db.commit()
        logger.info(f"Catalog database initialized at {self.db_path}")

    # Products

    async def upsert_products(self, retailer: str, products: list[Product]) -> int:
        """Upsert a retailer's products in one transaction.

        Appends a price history row for every product whose price or
        availability differs from its latest history entry.
        """
        if not products:
            return 0
        for product in products:
            if product.retailer != retailer:
                raise ValueError(f"Product {product.id} belongs to {product.retailer}, not {retailer}")
        # Same id twice in a batch: last one wins
        products = list({product.id: product for product in products}.values())

        async with self._connect() as db:
            try:
                history_rows = []
                for product in products:
                    await db.execute(
                        PRODUCT_UPSERT,
                        (
                            product.id,
                            product.name,
                            product.price,
                            product.currency,
                            product.availability,
                            product.image_url,
                            product.category,
                            product.subcategory,
                            product.brand,
                            product.size,
                            product.unit,
                            product.retailer,
                            product.product_url,
                            _ts(product.scraped_at),
                            _ts(product.last_updated),
                        ),
                    )
                    cursor = await db.execute(
                        """
                        SELECT price, availability FROM price_history
                        WHERE product_id = ?
                        ORDER BY recorded_at DESC, id DESC LIMIT 1
                        """,
                        (product.id,),
                    )
                    last = await cursor.fetchone()
                    if last is None or last["price"] != product.price or last["availability"] != product.availability:
                        history_rows.append((product.id, product.price, product.availability, _ts(product.last_updated)))

                if history_rows:
                    await db.executemany(
                        """
                        INSERT INTO price_history (product_id, price, availability, recorded_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        history_rows,
                    )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.info(f"Upserted {len(products)} products for {retailer} ({len(history_rows)} price changes)")
        return len(products)

    async def get_products(self, retailer: str) -> list[Product]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT * FROM products WHERE retailer = ? ORDER BY name", (retailer,)
            )
            return [_row_to_product(row) for row in await cursor.fetchall()]

    async def get_product(self, product_id: str) -> Optional[Product]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM products WHERE id = ?", (product_id,))
            row = await cursor.fetchone()
            return _row_to_product(row) if row else None

    async def count_products(self, retailer: Optional[str] = None) -> int:
        sql = "SELECT COUNT(*) FROM products"
        params: tuple = ()
        if retailer:
            sql += " WHERE retailer = ?"
            params = (retailer,)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            row = await cursor.fetchone()
            return row[0]

    async def search_products_by_name(self, query: str, retailer: Optional[str] = None) -> list[Product]:
        """Substring search on product name (case-insensitive), max 100 rows."""
        sql = "SELECT * FROM products WHERE name LIKE ?"
        params: list = [f"%{query}%"]
        if retailer:
            sql += " AND retailer = ?"
            params.append(retailer)
        sql += " ORDER BY name LIMIT 100"
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            return [_row_to_product(row) for row in await cursor.fetchall()]

    async def products_by_category(self, category: str, retailer: Optional[str] = None) -> list[Product]:
        sql = "SELECT * FROM products WHERE category LIKE ?"
        params: list = [f"%{category}%"]
        if retailer:
            sql += " AND retailer = ?"
            params.append(retailer)
        sql += " ORDER BY retailer, name"
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            return [_row_to_product(row) for row in await cursor.fetchall()]

    async def remove_duplicate_products(self) -> int:
        """Keep one row per (retailer, product_url)."""
        async with self._connect() as db:
            cursor = await db.execute(
                """
                DELETE FROM products
                WHERE id NOT IN (
                    SELECT MIN(id) FROM products GROUP BY product_url, retailer
                )
                """
            )
            await db.commit()
            removed = cursor.rowcount
        logger.info(f"Removed {removed} duplicate products")
        return removed

    # Price history

    async def append_price_history(self, product_id: str, price: float, availability: str) -> None:
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO price_history (product_id, price, availability, recorded_at)
                VALUES (?, ?, ?, ?)
                """,
                (product_id, price, availability, _ts(utcnow())),
            )
            await db.commit()

    async def get_price_history(self, product_id: str) -> list[PriceHistoryEntry]:
        """Observations for one product, oldest first."""
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT product_id, price, availability, recorded_at FROM price_history
                WHERE product_id = ? ORDER BY recorded_at, id
                """,
                (product_id,),
            )
            rows = await cursor.fetchall()
        return [
            PriceHistoryEntry(
                product_id=row["product_id"],
                price=row["price"],
                availability=row["availability"],
                recorded_at=_parse_ts(row["recorded_at"]),
            )
            for row in rows
        ]

    async def recent_price_changes(self, days: int = 7) -> list[dict]:
        """Products whose current price differs from a price seen in the last N days."""
        cutoff = _ts(utcnow() - timedelta(days=days))
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT p.name, p.retailer, p.price, p.category,
                       ph.price AS previous_price, ph.recorded_at,
                       ROUND(((p.price - ph.price) / ph.price) * 100, 2) AS price_change_percent
                FROM products p
                JOIN price_history ph ON p.id = ph.product_id
                WHERE ph.recorded_at >= ? AND p.price != ph.price AND ph.price > 0
                ORDER BY ABS(price_change_percent) DESC
                LIMIT 50
                """,
                (cutoff,),
            )
            return [dict(row) for row in await cursor.fetchall()]

    # Match cache

    async def get_cached_matches(
        self, ingredient: str, retailer: Optional[str] = None
    ) -> list[tuple[MatchCacheEntry, Product]]:
        """Cached matches for the literal ingredient text, best score first."""
        sql = """
            SELECT im.ingredient_name, im.product_id, im.confidence, im.score,
                   im.retailer AS match_retailer, im.created_at, p.*
            FROM ingredient_matches im
            JOIN products p ON im.product_id = p.id
            WHERE im.ingredient_name = ?
        """
        params: list = [ingredient]
        if retailer:
            sql += " AND im.retailer = ?"
            params.append(retailer)
        sql += " ORDER BY im.score ASC, im.confidence DESC LIMIT 10"

        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()

        results = []
        for row in rows:
            entry = MatchCacheEntry(
                ingredient_name=row["ingredient_name"],
                product_id=row["product_id"],
                confidence=row["confidence"],
                score=row["score"],
                retailer=row["match_retailer"],
                created_at=_parse_ts(row["created_at"]),
            )
            results.append((entry, _row_to_product(row)))
        return results

    async def put_cached_match(self, entry: MatchCacheEntry) -> None:
        await self.put_cached_matches([entry])

    async def put_cached_matches(self, entries: list[MatchCacheEntry]) -> None:
        """Insert or overwrite cache rows keyed by (ingredient, product, retailer)."""
        if not entries:
            return
        async with self._connect() as db:
            await db.executemany(
                """
                INSERT OR REPLACE INTO ingredient_matches
                (ingredient_name, product_id, confidence, score, retailer, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    (e.ingredient_name, e.product_id, e.confidence, e.score, e.retailer, _ts(e.created_at))
                    for e in entries
                ],
            )
            await db.commit()

    # Scrape runs

    async def record_scrape_start(self, retailer: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "INSERT INTO scrape_runs (retailer, started_at) VALUES (?, ?)",
                (retailer, _ts(utcnow())),
            )
            await db.commit()
            return cursor.lastrowid

    async def record_scrape_complete(
        self,
        run_id: int,
        products_scraped: int,
        errors: list[str],
        success: bool,
        duration_ms: int,
    ) -> None:
        async with self._connect() as db:
            await db.execute(
                """
                UPDATE scrape_runs
                SET completed_at = ?, products_scraped = ?, errors_count = ?,
                    error_details = ?, success = ?, duration_ms = ?
                WHERE id = ? AND completed_at IS NULL
                """,
                (
                    _ts(utcnow()),
                    products_scraped,
                    len(errors),
                    orjson.dumps(errors).decode() if errors else None,
                    int(success),
                    duration_ms,
                    run_id,
                ),
            )
            await db.commit()

    async def get_scrape_runs(self, limit: int = 20, retailer: Optional[str] = None) -> list[ScrapeRun]:
        sql = "SELECT * FROM scrape_runs"
        params: list = []
        if retailer:
            sql += " WHERE retailer = ?"
            params.append(retailer)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)
        async with self._connect() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()
        return [
            ScrapeRun(
                id=row["id"],
                retailer=row["retailer"],
                started_at=_parse_ts(row["started_at"]),
                completed_at=_parse_ts(row["completed_at"]),
                products_scraped=row["products_scraped"] or 0,
                errors=orjson.loads(row["error_details"]) if row["error_details"] else [],
                success=bool(row["success"]),
                duration_ms=row["duration_ms"] or 0,
            )
            for row in rows
        ]

    # Maintenance

    async def purge_older_than(self, days: int) -> dict[str, int]:
        """Delete rows older than N days. Returns deleted counts per table."""
        cutoff = _ts(utcnow() - timedelta(days=days))
        deleted = {}
        async with self._connect() as db:
            for table, column in (
                ("price_history", "recorded_at"),
                ("ingredient_matches", "created_at"),
                ("scrape_runs", "started_at"),
                ("products", "last_updated"),
            ):
                cursor = await db.execute(f"DELETE FROM {table} WHERE {column} < ?", (cutoff,))
                deleted[table] = cursor.rowcount
            await db.commit()
        logger.info(f"Purged rows older than {days} days: {deleted}")
        return deleted

    async def backup(self, target_path: Path) -> Path:
        """Copy the live database to target_path using SQLite's online backup."""
        target_path = Path(target_path)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db, aiosqlite.connect(target_path) as target:
            await db.backup(target)
        logger.info(f"Catalog backed up to {target_path}")
        return target_path

    async def store_stats(self) -> dict[str, dict]:
        """Per-retailer product count, average price and latest update."""
        async with self._connect() as db:
            cursor = await db.execute(
                """
                SELECT retailer,
                       COUNT(*) AS total_products,
                       ROUND(AVG(price), 2) AS avg_price,
                       MAX(last_updated) AS last_updated
                FROM products
                GROUP BY retailer
                """
            )
            return {row["retailer"]: dict(row) for row in await cursor.fetchall()}
