#!/usr/bin/env python3
"""Utility script to inspect and clean the catalog database."""
import sqlite3
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from groceryscan.config import CATALOG_DB

TABLES = ("products", "price_history", "ingredient_matches", "scrape_runs")


def show_stats() -> None:
    """Show statistics about the catalog database."""
    conn = sqlite3.connect(CATALOG_DB)
    cursor = conn.cursor()

    print(f"Catalog database: {CATALOG_DB}")
    for table in TABLES:
        cursor.execute(f"SELECT COUNT(*) FROM {table}")
        print(f"{table}: {cursor.fetchone()[0]} rows")

    cursor.execute("SELECT retailer, COUNT(*), MAX(last_updated) FROM products GROUP BY retailer")
    for retailer, count, last_updated in cursor.fetchall():
        print(f"  {retailer}: {count} products (last update {last_updated})")

    cursor.execute(
        "SELECT retailer, started_at, success, products_scraped, errors_count "
        "FROM scrape_runs ORDER BY started_at DESC LIMIT 5"
    )
    runs = cursor.fetchall()
    if runs:
        print("Latest scrape runs:")
        for retailer, started_at, success, products, errors in runs:
            status = "OK" if success else "FAILED"
            print(f"  {started_at} {retailer:12} {status:6} {products} products, {errors} errors")

    conn.close()


def purge(days: int) -> None:
    """Delete history, cached matches, runs and stale products older than N days."""
    cutoff = (datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days)).isoformat(
        sep=" ", timespec="seconds"
    )
    conn = sqlite3.connect(CATALOG_DB)
    conn.execute("PRAGMA foreign_keys = ON")
    cursor = conn.cursor()

    for table, column in (
        ("price_history", "recorded_at"),
        ("ingredient_matches", "created_at"),
        ("scrape_runs", "started_at"),
        ("products", "last_updated"),
    ):
        cursor.execute(f"DELETE FROM {table} WHERE {column} < ?", (cutoff,))
        print(f"Deleted {cursor.rowcount} rows from {table} older than {days} days")
    conn.commit()

    conn.close()


def delete_all() -> None:
    """Delete all rows from the catalog database."""
    conn = sqlite3.connect(CATALOG_DB)
    conn.execute("PRAGMA foreign_keys = ON")
    cursor = conn.cursor()

    # children first
    for table in ("price_history", "ingredient_matches", "scrape_runs", "products"):
        cursor.execute(f"DELETE FROM {table}")
        print(f"Deleted {cursor.rowcount} rows from {table}")
    conn.commit()

    conn.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python scripts/clean_catalog.py stats            # Show statistics")
        print("  python scripts/clean_catalog.py purge <days>     # Delete data older than <days>")
        print("  python scripts/clean_catalog.py delete-all       # Delete everything")
        sys.exit(1)

    if not Path(CATALOG_DB).exists():
        print(f"Catalog database not found: {CATALOG_DB}")
        sys.exit(1)

    command = sys.argv[1]

    if command == "stats":
        show_stats()
    elif command == "purge":
        if len(sys.argv) < 3:
            print("Error: Please provide number of days")
            sys.exit(1)
        purge(int(sys.argv[2]))
    elif command == "delete-all":
        confirm = input("Are you sure you want to delete ALL catalog data? (yes/no): ")
        if confirm.lower() == "yes":
            delete_all()
        else:
            print("Cancelled")
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
