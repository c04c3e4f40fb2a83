# src/services/sync_orchestrator.py

"""Fan a sync run out over every (source, product) pair."""

import asyncio
import importlib
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from src.config.settings import Settings
from src.filters.listing_validator import ListingValidator
from src.filters.product_matcher import ProductMatcher
from src.models.catalog import CanonicalProduct, Source
from src.models.listing import ExternalListing, PricePoint, RawListing
from src.models.sync_result import SyncResult
from src.scrapers.base_scraper import SourceAdapter
from src.services.errors import SyncConfigurationError
from src.storage.catalog_db import CatalogDB, listing_key

logger = logging.getLogger("aggregator.orchestrator")


@dataclass
class PairOutcome:
    """What one (source, product) pair contributed to a run."""

    listings: int = 0
    matched: int = 0
    invalid: int = 0
    price_recorded: bool = False
    keys: frozenset[str] = field(default_factory=frozenset)
    matched_keys: frozenset[str] = field(default_factory=frozenset)


def _load_adapter_class(dotted_path: str) -> type[Any]:
    """Dynamically import an adapter class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def build_search_query(product: CanonicalProduct) -> str:
    """Brand plus the product name without the brand, to keep queries short."""
    remainder = product.name.replace(product.brand, "").strip()
    return " ".join(f"{product.brand} {remainder}".split())


def best_in_stock_price(listings: Iterable[RawListing]) -> float | None:
    """Lowest in-stock price, or ``None`` when nothing is in stock."""
    prices = [item.price for item in listings if item.in_stock]
    return min(prices) if prices else None


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class SyncOrchestrator:
    """Run ingestion passes: search, resolve, persist, record prices.

    Every (source, product) pair is an independent task.  A failing
    pair is recorded in the run's errors and never stops its siblings.
    """

    def __init__(
        self,
        store: CatalogDB,
        matcher: ProductMatcher | None = None,
        adapters: Mapping[str, SourceAdapter] | None = None,
        max_concurrency: int | None = None,
        per_source_concurrency: int | None = None,
        deadline: float | None = None,
        write_policy: str | None = None,
    ) -> None:
        self.store = store
        self.matcher = matcher or ProductMatcher()
        self._adapters = adapters
        self.max_concurrency = (
            max_concurrency or Settings.MAX_CONCURRENT_PAIRS
        )
        self.per_source_concurrency = (
            per_source_concurrency or Settings.PER_SOURCE_CONCURRENCY
        )
        self.deadline = (
            deadline if deadline is not None else Settings.SYNC_DEADLINE
        )
        self.write_policy = write_policy or Settings.LISTING_WRITE_POLICY

    # ── Adapters ─────────────────────────────────────────

    def _adapter_for(self, slug: str) -> SourceAdapter | None:
        if self._adapters is not None:
            return self._adapters.get(slug)
        dotted_path = Settings.SOURCE_ADAPTERS.get(slug)
        if dotted_path is None:
            return None
        adapter: SourceAdapter = _load_adapter_class(dotted_path)()
        return adapter

    def _resolve_adapters(
        self,
        sources: Sequence[Source],
        result: SyncResult,
    ) -> list[tuple[Source, SourceAdapter]]:
        """Pair each active source with its adapter.

        A missing adapter is a configuration defect: the source is
        skipped as a whole and one error is recorded for it.
        """
        resolved: list[tuple[Source, SourceAdapter]] = []
        for source in sources:
            if not source.is_active:
                logger.debug("Skipping inactive source %s", source.slug)
                continue
            try:
                adapter = self._adapter_for(source.slug)
            except Exception as exc:
                logger.error(
                    "Adapter for %s failed to initialise: %s",
                    source.slug,
                    exc,
                    exc_info=True,
                )
                result.errors.append(
                    f"adapter for {source.slug} failed to initialise: "
                    f"{_describe(exc)}"
                )
                continue
            if adapter is None:
                logger.error("No adapter registered for %s", source.slug)
                result.errors.append(f"no adapter for {source.slug}")
                continue
            resolved.append((source, adapter))
        return resolved

    # ── Per-pair work ────────────────────────────────────

    def _resolve_listings(
        self,
        source: Source,
        queried: CanonicalProduct,
        raws: Sequence[RawListing],
        catalog: Sequence[CanonicalProduct],
        synced_at: datetime,
    ) -> tuple[list[ExternalListing], list[ExternalListing]]:
        """Match each raw listing against the full catalog.

        Listings the matcher cannot place stay with the product that
        was searched for, so none are dropped.  Also returns the subset
        the matcher placed.
        """
        listings: list[ExternalListing] = []
        matched: list[ExternalListing] = []
        for raw in raws:
            product = self.matcher.match(raw.title, catalog)
            resolved = product is not None
            if product is None:
                product = queried
            listing = ExternalListing(
                product_id=product.id,
                source_id=source.id,
                external_id=raw.external_id,
                title=raw.title,
                price=raw.price,
                currency=raw.currency,
                condition=raw.condition,
                in_stock=raw.in_stock,
                url=raw.url,
                image_url=raw.image_url,
                shipping_cost=raw.shipping_cost,
                shipping_estimate=raw.shipping_estimate,
                location_country=(
                    raw.location_country
                    or Settings.DEFAULT_LOCATION_COUNTRY
                ),
                seller_name=raw.seller_name or source.name,
                listing_type=(
                    raw.listing_type or Settings.DEFAULT_LISTING_TYPE
                ),
                last_seen_at=synced_at,
            )
            listings.append(listing)
            if resolved:
                matched.append(listing)
        return listings, matched

    async def _run_pair(
        self,
        source: Source,
        adapter: SourceAdapter,
        product: CanonicalProduct,
        catalog: Sequence[CanonicalProduct],
        synced_at: datetime,
        gate: asyncio.Semaphore,
        source_gate: asyncio.Semaphore,
        commits: dict[
            asyncio.Task[PairOutcome], asyncio.Future[PairOutcome]
        ],
    ) -> PairOutcome:
        # Source gate first so queued pairs of one source hold no global slot
        async with source_gate, gate:
            query = build_search_query(product)
            logger.debug("[%s] Searching '%s'", source.slug, query)
            found = await asyncio.to_thread(adapter.search, query)

            raws, invalid = ListingValidator.validate(
                list(found or []), source.slug,
            )
            listings, matched = self._resolve_listings(
                source, product, raws, catalog, synced_at,
            )

            price_point: PricePoint | None = None
            best_price = best_in_stock_price(raws)
            if best_price is not None:
                price_point = PricePoint(
                    product_id=product.id,
                    source_id=source.id,
                    price=best_price,
                    in_stock=True,
                    recorded_at=synced_at,
                )

            async def commit() -> PairOutcome:
                written = await asyncio.to_thread(
                    self.store.record_pair,
                    listings,
                    price_point,
                    self.write_policy,
                )
                return PairOutcome(
                    listings=written,
                    matched=len(matched),
                    invalid=invalid,
                    price_recorded=price_point is not None,
                    keys=frozenset(map(listing_key, listings)),
                    matched_keys=frozenset(map(listing_key, matched)),
                )

            # A started write always finishes; the deadline only drops its task
            write = asyncio.ensure_future(commit())
            task = asyncio.current_task()
            if task is not None:
                commits[task] = write
            return await asyncio.shield(write)

    # ── Run ──────────────────────────────────────────────

    async def run_sync(
        self,
        sources: Sequence[Source],
        products: Sequence[CanonicalProduct],
        deadline: float | None = None,
    ) -> SyncResult:
        """Run one ingestion pass over ``sources`` x ``products``.

        Raises SyncConfigurationError when either list is empty; every
        other failure is recorded in the returned result.
        """
        if not sources:
            msg = "No active sources to sync"
            raise SyncConfigurationError(msg)
        if not products:
            msg = "No products to sync"
            raise SyncConfigurationError(msg)

        synced_at = datetime.now(timezone.utc)
        result = SyncResult(synced_at=synced_at)
        catalog = list(products)
        timeout = deadline if deadline is not None else self.deadline

        gate = asyncio.Semaphore(self.max_concurrency)
        tasks: dict[
            asyncio.Task[PairOutcome], tuple[Source, CanonicalProduct]
        ] = {}
        commits: dict[
            asyncio.Task[PairOutcome], asyncio.Future[PairOutcome]
        ] = {}
        for source, adapter in self._resolve_adapters(sources, result):
            result.by_source[source.slug] = 0
            source_gate = asyncio.Semaphore(self.per_source_concurrency)
            for product in catalog:
                task = asyncio.create_task(self._run_pair(
                    source, adapter, product, catalog,
                    synced_at, gate, source_gate, commits,
                ))
                tasks[task] = (source, product)

        if not tasks:
            return result

        logger.info(
            "Sync started: %d pairs across %d sources",
            len(tasks),
            len(result.by_source),
        )
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        finished: dict[
            asyncio.Task[PairOutcome], asyncio.Future[PairOutcome]
        ] = {task: task for task in done}
        late_commits = 0
        if pending:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            # Pairs already writing when the deadline hit still commit
            in_flight = {t: commits[t] for t in pending if t in commits}
            await asyncio.gather(*in_flight.values(), return_exceptions=True)
            finished.update(in_flight)
            late_commits = len(in_flight)
            result.timed_out = True
            logger.warning(
                "Sync deadline of %ss exceeded, %d pairs abandoned, "
                "%d in-flight writes committed",
                timeout,
                len(pending) - late_commits,
                late_commits,
            )

        failed_sources: set[str] = set()
        seen: dict[str, set[str]] = {slug: set() for slug in result.by_source}
        seen_matched: dict[str, set[str]] = {
            slug: set() for slug in result.by_source
        }
        for task, (source, product) in tasks.items():
            future = finished.get(task)
            if future is None:
                continue
            exc = future.exception()
            if exc is not None:
                failed_sources.add(source.slug)
                logger.error(
                    "Pair %s/%s failed: %s",
                    source.slug,
                    product.name,
                    exc,
                    exc_info=exc,
                )
                result.errors.append(
                    f"{source.slug}/{product.name}: {_describe(exc)}"
                )
                continue
            outcome = future.result()
            if self.write_policy == "upsert":
                seen[source.slug] |= outcome.keys
                seen_matched[source.slug] |= outcome.matched_keys
            else:
                result.by_source[source.slug] += outcome.listings
                result.total_matched += outcome.matched
            result.invalid_listings += outcome.invalid
            result.price_points += int(outcome.price_recorded)

        # Upserts collapse a listing found by several queries into one row
        if self.write_policy == "upsert":
            for slug, keys in seen.items():
                result.by_source[slug] = len(keys)
            result.total_matched = sum(
                len(keys) for keys in seen_matched.values()
            )
        result.total_listings = sum(result.by_source.values())

        if pending:
            note = (
                f"sync deadline of {timeout}s exceeded; "
                f"{len(pending) - late_commits} pair(s) abandoned"
            )
            if late_commits:
                note += f", {late_commits} in-flight pair(s) committed"
            result.errors.append(note)
        elif self.write_policy == "upsert":
            await self._age_unseen(sources, result, failed_sources)

        logger.info(
            "Sync finished: %d listings (%d matched), %d errors",
            result.total_listings,
            result.total_matched,
            len(result.errors),
        )
        return result

    async def _age_unseen(
        self,
        sources: Sequence[Source],
        result: SyncResult,
        failed_sources: set[str],
    ) -> None:
        """Age listings of every fully successful source not seen this run."""
        for source in sources:
            if (
                source.slug not in result.by_source
                or source.slug in failed_sources
            ):
                continue
            await asyncio.to_thread(
                self.store.mark_unseen, source.id, result.synced_at,
            )
