"""Configuration management from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("DATA_DIR", str(PROJECT_ROOT / "data")))
CATALOG_DB = Path(os.getenv("DB_PATH", str(DATA_DIR / "products.db")))
METRICS_FILE = DATA_DIR / "metrics.jsonl"
BACKUP_DIR = Path(os.getenv("BACKUP_DIR", str(DATA_DIR / "backups")))

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)


class Config:
    """Application configuration."""

    # Crawler
    FETCH_BACKEND: str = os.getenv("FETCH_BACKEND", "browser")  # browser | http
    HEADLESS: bool = os.getenv("HEADLESS", "true").lower() != "false"
    USER_AGENT: str = os.getenv(
        "USER_AGENT",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    )
    MAX_SEARCH_TERMS: int = int(os.getenv("MAX_SEARCH_TERMS", "20"))
    MAX_PAGES_PER_TERM: int = int(os.getenv("MAX_PAGES_PER_TERM", "3"))
    PAGE_DELAY_SECONDS: float = float(os.getenv("PAGE_DELAY_SECONDS", "1.0"))
    RETAILER_DELAY_SECONDS: float = float(os.getenv("RETAILER_DELAY_SECONDS", "5.0"))
    RATE_PER_DOMAIN: float = float(os.getenv("RATE_PER_DOMAIN", "1.0"))
    NAVIGATION_TIMEOUT: int = int(os.getenv("NAVIGATION_TIMEOUT", "30"))
    CONTENT_TIMEOUT: int = int(os.getenv("CONTENT_TIMEOUT", "10"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))
    # A retailer run succeeds when errored terms < terms * ratio
    SUCCESS_ERROR_RATIO: float = float(os.getenv("SUCCESS_ERROR_RATIO", "0.5"))

    # Matcher
    INDEX_REFRESH_MINUTES: int = int(os.getenv("INDEX_REFRESH_MINUTES", "30"))
    MATCH_THRESHOLD: float = float(os.getenv("MATCH_THRESHOLD", "0.6"))
    MAX_MATCHES: int = int(os.getenv("MAX_MATCHES", "10"))

    # Catalog retention
    RETENTION_DAYS: int = int(os.getenv("RETENTION_DAYS", "30"))

    # Scheduler (hours)
    CRAWL_INTERVAL_HOURS: float = float(os.getenv("CRAWL_INTERVAL_HOURS", "48"))
    INDEX_REFRESH_INTERVAL_HOURS: float = float(os.getenv("INDEX_REFRESH_INTERVAL_HOURS", "6"))
    CLEANUP_INTERVAL_HOURS: float = float(os.getenv("CLEANUP_INTERVAL_HOURS", "168"))
    BACKUP_INTERVAL_HOURS: float = float(os.getenv("BACKUP_INTERVAL_HOURS", "24"))

    # Backups kept after each run
    BACKUP_KEEP: int = int(os.getenv("BACKUP_KEEP", "7"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text")  # text | json

    # API Security
    API_KEY: str | None = os.getenv("API_KEY")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration values."""
        errors = []
        if cls.FETCH_BACKEND not in ("browser", "http"):
            errors.append("FETCH_BACKEND must be 'browser' or 'http'")
        if not 0 < cls.SUCCESS_ERROR_RATIO <= 1:
            errors.append("SUCCESS_ERROR_RATIO must be in (0, 1]")
        if cls.MAX_SEARCH_TERMS < 1:
            errors.append("MAX_SEARCH_TERMS must be >= 1")
        if cls.MAX_PAGES_PER_TERM < 1:
            errors.append("MAX_PAGES_PER_TERM must be >= 1")
        if cls.PAGE_DELAY_SECONDS < 0 or cls.RETAILER_DELAY_SECONDS < 0:
            errors.append("Delays must be non-negative")
        if cls.RETENTION_DAYS < 1:
            errors.append("RETENTION_DAYS must be >= 1")
        if cls.BACKUP_KEEP < 1:
            errors.append("BACKUP_KEEP must be >= 1")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")


config = Config()
