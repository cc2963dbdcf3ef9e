"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys

from groceryscan.compare.basket import BasketValidationError
from groceryscan.config import Config, config
from groceryscan.logging_conf import setup_logging
from groceryscan.retailers import DEFAULT_RETAILERS
from groceryscan.services import Services, build_services

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Grocery catalog crawler and basket comparison")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Crawl retailers now, then refresh indexes")
    crawl.add_argument(
        "--retailer",
        action="append",
        choices=DEFAULT_RETAILERS,
        help="Retailer to crawl (repeatable, default: all)",
    )
    crawl.add_argument(
        "--stop-after-minutes",
        type=float,
        default=None,
        help="Stop crawling after M minutes",
    )
    crawl.add_argument(
        "--backend",
        choices=["browser", "http"],
        default=None,
        help=f"Fetch backend (default: {config.FETCH_BACKEND})",
    )
    crawl.add_argument(
        "--max-terms",
        type=int,
        default=None,
        help=f"Search terms per retailer (default: {config.MAX_SEARCH_TERMS})",
    )

    sub.add_parser("refresh", help="Rebuild all search indexes now")

    compare = sub.add_parser("compare", help="Compare a basket of ingredients")
    compare.add_argument("ingredients", nargs="+", help="Ingredient names")
    compare.add_argument("--postcode", required=True, help="UK postcode, e.g. 'SW1A 1AA'")

    cleanup = sub.add_parser("cleanup", help="Purge old rows and duplicate products")
    cleanup.add_argument(
        "--days",
        type=int,
        default=config.RETENTION_DAYS,
        help=f"Delete data older than N days (default: {config.RETENTION_DAYS})",
    )

    backup = sub.add_parser("backup", help="Snapshot the catalog database and prune old snapshots")
    backup.add_argument(
        "--keep",
        type=int,
        default=config.BACKUP_KEEP,
        help=f"Snapshots to keep (default: {config.BACKUP_KEEP})",
    )

    sub.add_parser("schedule", help="Run the periodic crawl/refresh/cleanup/backup loop")

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, services: Services) -> int:
    await services.store.initialize()

    if args.command == "crawl":
        results = await services.orchestrator.crawl_all_now(args.retailer)
        return 0 if any(r.success for r in results) else 1

    if args.command == "refresh":
        refreshed = await services.orchestrator.refresh_indexes_now()
        for retailer, stats in services.matcher.index_stats().items():
            logger.info(f"{retailer}: {stats['products']} products indexed")
        return 0 if all(refreshed.values()) else 1

    if args.command == "compare":
        comparison = await services.comparator.compare_basket(args.ingredients, args.postcode)
        print(comparison.model_dump_json(indent=2))
        return 0

    if args.command == "cleanup":
        deleted = await services.orchestrator.cleanup_now(args.days)
        logger.info(f"Cleanup complete: {deleted}")
        return 0

    if args.command == "backup":
        path = await services.orchestrator.backup_now(args.keep)
        logger.info(f"Backup written to {path}")
        return 0

    if args.command == "schedule":
        await services.orchestrator.run_forever()
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else None)

    # Override config from args
    if getattr(args, "backend", None):
        config.FETCH_BACKEND = args.backend
    if getattr(args, "max_terms", None):
        config.MAX_SEARCH_TERMS = args.max_terms

    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    services = build_services(stop_after_minutes=getattr(args, "stop_after_minutes", None))
    try:
        exit_code = asyncio.run(run_command(args, services))
    except BasketValidationError as e:
        logger.error(f"Invalid request: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
