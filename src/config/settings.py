# src/config/settings.py

"""Central configuration for the listing aggregator."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the listing aggregator."""

    # --- Scraping ---
    REQUEST_DELAY: float = 1.5          # Seconds between requests
    REQUEST_TIMEOUT: int = 15           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 60.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Trigger authorization ---
    AGGREGATOR_SYNC_KEY: str | None = (
        os.getenv("AGGREGATOR_SYNC_KEY") or None
    )
    CRON_SECRET: str | None = os.getenv("CRON_SECRET") or None

    # --- eBay Browse API ---
    EBAY_APP_ID: str | None = os.getenv("EBAY_APP_ID") or None
    EBAY_CERT_ID: str | None = os.getenv("EBAY_CERT_ID") or None
    EBAY_SEARCH_LIMIT: int = 25
    EBAY_TOKEN_REFRESH_MARGIN: float = 60.0

    # --- Matching ---
    MATCH_THRESHOLD: float = 0.4        # Max distance for a confident match
    MIN_MATCH_LENGTH: int = 3           # Shorter strings over-match
    MATCH_FIELD_WEIGHTS: dict[str, float] = {
        "name": 0.6,
        "brand": 0.2,
        "tags": 0.2,
    }
    # Iteration order decides which brand wins when several aliases hit
    BRAND_ALIASES: dict[str, str] = {
        "crk": "Chris Reeve Knives",
        "chris reeve": "Chris Reeve Knives",
        "bm": "Benchmade",
        "spydie": "Spyderco",
        "zt": "Zero Tolerance",
        "mt": "Microtech",
        "rick hinderer": "Hinderer",
        "hinderer knives": "Hinderer",
        "victorinox": "Victorinox",
        "sak": "Victorinox",
        "leatherman": "Leatherman",
    }

    # --- Sync ---
    MAX_CONCURRENT_PAIRS: int = 8       # (source, product) pairs in flight
    PER_SOURCE_CONCURRENCY: int = 1     # Adapters are not shared across threads
    SYNC_DEADLINE: float | None = 600.0  # Seconds; None disables
    LISTING_WRITE_POLICY: str = "upsert"  # "upsert" or "append"
    STALE_AFTER_MISSED_RUNS: int = 3
    DEFAULT_LISTING_TYPE: str = "buy_now"
    DEFAULT_LOCATION_COUNTRY: str = "US"

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    SELECTORS_PATH: Path = BASE_DIR / "src" / "config" / "selectors.json"
    DB_PATH: Path = Path(
        os.getenv("AGGREGATOR_DB_PATH")
        or BASE_DIR / "data" / "aggregator.db"
    )
    LOGS_DIR: Path = BASE_DIR / "logs"

    # --- Sources (slug -> adapter class) ---
    SOURCE_ADAPTERS: dict[str, str] = {
        "ebay": "src.scrapers.ebay_client.EbayClient",
        "bladehq": "src.scrapers.retail_scrapers.BladeHQScraper",
        "knifecenter": "src.scrapers.retail_scrapers.KnifeCenterScraper",
        "dlt-trading": "src.scrapers.retail_scrapers.DLTTradingScraper",
        "knivesshipfree": (
            "src.scrapers.retail_scrapers.KnivesShipFreeScraper"
        ),
    }

    # Source classes run by the master sync, in order
    SOURCE_CLASSES: list[str] = ["api", "retail"]
