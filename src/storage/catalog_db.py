# src/storage/catalog_db.py

"""SQLite-backed catalog, listing and price-history store."""

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.config.settings import Settings
from src.models.catalog import CanonicalProduct, Source
from src.models.listing import ExternalListing, PricePoint

logger = logging.getLogger("aggregator.storage")

# Session / tracking params that vary between searches for the same item
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "hash", "_trkparms", "_trksid", "amdata", "mkevt", "mkcid",
    "mkrid", "campid", "toolid", "customid", "srsltid", "gclid",
    "fbclid", "ref", "_pos", "_sid", "_ss", "_psq", "_fid", "_v",
})

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS products (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    slug       TEXT    NOT NULL UNIQUE,
    brand      TEXT    NOT NULL,
    name       TEXT    NOT NULL,
    category   TEXT    NOT NULL DEFAULT '',
    tags       TEXT    NOT NULL DEFAULT '[]',
    msrp       REAL
);

CREATE TABLE IF NOT EXISTS sources (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    slug        TEXT    NOT NULL UNIQUE,
    name        TEXT    NOT NULL,
    source_type TEXT    NOT NULL DEFAULT 'retail',
    is_active   INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS external_listings (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id        INTEGER NOT NULL
                      REFERENCES products(id) ON DELETE CASCADE,
    source_id         INTEGER NOT NULL
                      REFERENCES sources(id) ON DELETE CASCADE,
    external_id       TEXT,
    external_key      TEXT    NOT NULL,
    title             TEXT    NOT NULL,
    price             REAL    NOT NULL,
    currency          TEXT    NOT NULL DEFAULT 'USD',
    condition         TEXT    NOT NULL DEFAULT '',
    in_stock          INTEGER NOT NULL DEFAULT 1,
    url               TEXT    NOT NULL,
    image_url         TEXT,
    shipping_cost     REAL,
    shipping_estimate TEXT,
    location_country  TEXT,
    seller_name       TEXT,
    listing_type      TEXT    NOT NULL DEFAULT 'buy_now',
    last_seen_at      TEXT    NOT NULL,
    missed_runs       INTEGER NOT NULL DEFAULT 0,
    is_stale          INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_listings_source_key
    ON external_listings(source_id, external_key);

CREATE INDEX IF NOT EXISTS idx_listings_product
    ON external_listings(product_id);

CREATE TABLE IF NOT EXISTS price_history (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id  INTEGER NOT NULL
                REFERENCES products(id) ON DELETE CASCADE,
    source_id   INTEGER NOT NULL
                REFERENCES sources(id) ON DELETE CASCADE,
    price       REAL    NOT NULL,
    in_stock    INTEGER NOT NULL DEFAULT 1,
    recorded_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_product_date
    ON price_history(product_id, recorded_at);
"""

_LISTING_COLUMNS = (
    "product_id, source_id, external_id, external_key, title, price, "
    "currency, condition, in_stock, url, image_url, shipping_cost, "
    "shipping_estimate, location_country, seller_name, listing_type, "
    "last_seen_at"
)


def normalize_url(raw_url: str) -> str:
    """Strip tracking/session query params to get a stable listing URL."""
    parsed = urlparse(raw_url.strip())
    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
        and not k.lower().startswith("utm_")
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme,
        parsed.netloc.lower(),
        parsed.path.rstrip("/"),
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


def listing_key(listing: ExternalListing) -> str:
    """Identity of a listing within its source.

    The source's own id when it has one, otherwise the normalised URL.
    """
    if listing.external_id:
        return f"id:{listing.external_id}"
    return f"url:{normalize_url(listing.url)}"


class CatalogDB:
    """SQLite store for the catalog, observed listings and price history.

    A single connection is shared between worker threads; every write
    transaction runs under an internal lock and commits atomically.
    """

    def __init__(
        self, db_path: Path | None = None,
    ) -> None:
        path = db_path or Settings.DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(_SCHEMA)
        logger.debug("CatalogDB opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # ── Catalog maintenance ──────────────────────────────

    def add_product(
        self,
        slug: str,
        brand: str,
        name: str,
        category: str = "",
        tags: list[str] | tuple[str, ...] = (),
        msrp: float | None = None,
    ) -> CanonicalProduct:
        """Insert a canonical product and return it with its id."""
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO products "
                "(slug, brand, name, category, tags, msrp) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (slug, brand, name, category, json.dumps(list(tags)), msrp),
            )
        return CanonicalProduct(
            id=int(cur.lastrowid or 0),
            slug=slug,
            brand=brand,
            name=name,
            category=category,
            tags=tuple(tags),
            msrp=msrp,
        )

    def add_source(
        self,
        slug: str,
        name: str,
        source_type: str = "retail",
        is_active: bool = True,
    ) -> Source:
        """Insert a listing source and return it with its id."""
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO sources (slug, name, source_type, is_active) "
                "VALUES (?, ?, ?, ?)",
                (slug, name, source_type, int(is_active)),
            )
        return Source(
            id=int(cur.lastrowid or 0),
            slug=slug,
            name=name,
            source_type=source_type,
            is_active=is_active,
        )

    # ── Catalog reads ────────────────────────────────────

    def get_products(self) -> list[CanonicalProduct]:
        """Return the full catalog in id order."""
        rows = self._conn.execute(
            "SELECT id, slug, brand, name, category, tags, msrp "
            "FROM products ORDER BY id",
        ).fetchall()
        return [
            CanonicalProduct(
                id=r[0],
                slug=r[1],
                brand=r[2],
                name=r[3],
                category=r[4],
                tags=tuple(str(t) for t in json.loads(r[5] or "[]")),
                msrp=r[6],
            )
            for r in rows
        ]

    def get_product_by_slug(
        self, slug: str,
    ) -> CanonicalProduct | None:
        for product in self.get_products():
            if product.slug == slug:
                return product
        return None

    def get_active_sources(
        self, source_type: str | None = None,
    ) -> list[Source]:
        """Return active sources, optionally limited to one class."""
        sql = (
            "SELECT id, slug, name, source_type, is_active "
            "FROM sources WHERE is_active = 1"
        )
        params: tuple[str, ...] = ()
        if source_type is not None:
            sql += " AND source_type = ?"
            params = (source_type,)
        rows = self._conn.execute(sql + " ORDER BY id", params).fetchall()
        return [
            Source(
                id=r[0],
                slug=r[1],
                name=r[2],
                source_type=r[3],
                is_active=bool(r[4]),
            )
            for r in rows
        ]

    # ── Recording ────────────────────────────────────────

    def _listing_values(
        self, listing: ExternalListing, key: str,
    ) -> tuple[object, ...]:
        return (
            listing.product_id,
            listing.source_id,
            listing.external_id,
            key,
            listing.title,
            listing.price,
            listing.currency,
            listing.condition,
            int(listing.in_stock),
            listing.url,
            listing.image_url,
            listing.shipping_cost,
            listing.shipping_estimate,
            listing.location_country,
            listing.seller_name,
            listing.listing_type,
            listing.last_seen_at.isoformat(),
        )

    def _write_listing(
        self,
        cur: sqlite3.Cursor,
        listing: ExternalListing,
        policy: str,
    ) -> None:
        key = listing_key(listing)
        values = self._listing_values(listing, key)
        if policy == "upsert":
            row = cur.execute(
                "SELECT id FROM external_listings "
                "WHERE source_id = ? AND external_key = ? "
                "ORDER BY id DESC LIMIT 1",
                (listing.source_id, key),
            ).fetchone()
            if row is not None:
                cur.execute(
                    "UPDATE external_listings SET "
                    "product_id=?, source_id=?, external_id=?, "
                    "external_key=?, title=?, price=?, currency=?, "
                    "condition=?, in_stock=?, url=?, image_url=?, "
                    "shipping_cost=?, shipping_estimate=?, "
                    "location_country=?, seller_name=?, listing_type=?, "
                    "last_seen_at=?, missed_runs=0, is_stale=0 "
                    "WHERE id = ?",
                    (*values, row[0]),
                )
                return
        cur.execute(
            f"INSERT INTO external_listings ({_LISTING_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            values,
        )

    def record_pair(
        self,
        listings: list[ExternalListing],
        price_point: PricePoint | None = None,
        policy: str | None = None,
    ) -> int:
        """Write one (source, product) pair's listings and price point.

        Everything is committed in a single transaction: on any error
        nothing of the pair is stored.  Returns the listings written.
        """
        write_policy = policy or Settings.LISTING_WRITE_POLICY
        if write_policy not in ("upsert", "append"):
            msg = f"Unknown listing write policy: {write_policy}"
            raise ValueError(msg)

        with self._lock, self._conn:
            cur = self._conn.cursor()
            for listing in listings:
                self._write_listing(cur, listing, write_policy)
            if price_point is not None:
                cur.execute(
                    "INSERT INTO price_history "
                    "(product_id, source_id, price, in_stock, recorded_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        price_point.product_id,
                        price_point.source_id,
                        price_point.price,
                        int(price_point.in_stock),
                        price_point.recorded_at.isoformat(),
                    ),
                )
        return len(listings)

    def mark_unseen(
        self,
        source_id: int,
        seen_at: datetime,
        stale_after: int | None = None,
    ) -> int:
        """Age listings of a source that were not refreshed at *seen_at*.

        Each call bumps ``missed_runs`` for those listings and flags them
        stale once the count reaches *stale_after*.  Returns the number
        of listings newly flagged stale.
        """
        limit = (
            Settings.STALE_AFTER_MISSED_RUNS
            if stale_after is None
            else stale_after
        )
        ts = seen_at.isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE external_listings "
                "SET missed_runs = missed_runs + 1 "
                "WHERE source_id = ? AND last_seen_at < ?",
                (source_id, ts),
            )
            cur = self._conn.execute(
                "UPDATE external_listings SET is_stale = 1 "
                "WHERE source_id = ? AND is_stale = 0 "
                "AND missed_runs >= ?",
                (source_id, limit),
            )
        flagged = cur.rowcount
        if flagged:
            logger.info(
                "Flagged %d stale listings for source %d",
                flagged,
                source_id,
            )
        return flagged

    # ── Querying ─────────────────────────────────────────

    def count_listings(
        self,
        source_id: int | None = None,
        include_stale: bool = True,
    ) -> int:
        sql = "SELECT COUNT(id) FROM external_listings WHERE 1 = 1"
        params: list[object] = []
        if source_id is not None:
            sql += " AND source_id = ?"
            params.append(source_id)
        if not include_stale:
            sql += " AND is_stale = 0"
        row = self._conn.execute(sql, params).fetchone()
        return int(row[0])

    def get_listings(
        self, product_id: int, include_stale: bool = False,
    ) -> list[dict[str, object]]:
        """Return listings for a product, cheapest first."""
        sql = (
            "SELECT l.title, l.price, l.currency, l.in_stock, l.url, "
            "       s.slug, l.listing_type, l.last_seen_at, l.is_stale "
            "FROM external_listings l "
            "JOIN sources s ON s.id = l.source_id "
            "WHERE l.product_id = ?"
        )
        if not include_stale:
            sql += " AND l.is_stale = 0"
        rows = self._conn.execute(
            sql + " ORDER BY l.price ASC", (product_id,),
        ).fetchall()
        return [
            {
                "title": r[0],
                "price": r[1],
                "currency": r[2],
                "in_stock": bool(r[3]),
                "url": r[4],
                "source": r[5],
                "listing_type": r[6],
                "last_seen_at": r[7],
                "is_stale": bool(r[8]),
            }
            for r in rows
        ]

    def get_price_history(
        self,
        product_id: int,
        source_id: int | None = None,
    ) -> list[PricePoint]:
        """Return the price series for a product, oldest first."""
        sql = (
            "SELECT product_id, source_id, price, in_stock, recorded_at "
            "FROM price_history WHERE product_id = ?"
        )
        params: list[object] = [product_id]
        if source_id is not None:
            sql += " AND source_id = ?"
            params.append(source_id)
        rows = self._conn.execute(
            sql + " ORDER BY recorded_at ASC, id ASC", params,
        ).fetchall()
        return [
            PricePoint(
                product_id=r[0],
                source_id=r[1],
                price=r[2],
                in_stock=bool(r[3]),
                recorded_at=datetime.fromisoformat(r[4]),
            )
            for r in rows
        ]

    def get_trend_summary(
        self, product_id: int,
    ) -> dict[str, object] | None:
        """Compute min / max / avg / latest price for a product."""
        row = self._conn.execute(
            "SELECT MIN(price), MAX(price), AVG(price), COUNT(id) "
            "FROM price_history WHERE product_id = ?",
            (product_id,),
        ).fetchone()
        if row is None or row[3] == 0:
            return None
        latest_row = self._conn.execute(
            "SELECT price FROM price_history WHERE product_id = ? "
            "ORDER BY recorded_at DESC, id DESC LIMIT 1",
            (product_id,),
        ).fetchone()
        return {
            "min": row[0],
            "max": row[1],
            "avg": round(row[2], 2),
            "count": row[3],
            "latest": latest_row[0] if latest_row else 0.0,
        }
