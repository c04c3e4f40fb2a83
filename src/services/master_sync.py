# src/services/master_sync.py

"""Run every source class for a single external trigger."""

import asyncio
import logging
from datetime import datetime, timezone

from src.config.settings import Settings
from src.models.sync_result import MasterSyncResult, SyncResult
from src.services.sync_orchestrator import SyncOrchestrator
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("aggregator.master_sync")


class MasterSyncCoordinator:
    """Invoke the orchestrator once per source class, in order.

    Classes run sequentially and independently: one class failing,
    even before it starts, never prevents the next from running.
    Repeated runs only add observations, so triggering twice is safe.
    """

    def __init__(
        self,
        store: CatalogDB,
        orchestrator: SyncOrchestrator | None = None,
        source_classes: list[str] | None = None,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator or SyncOrchestrator(store)
        self.source_classes = list(
            source_classes or Settings.SOURCE_CLASSES
        )

    async def run_class(self, source_class: str) -> SyncResult:
        """Sync one source class against a fresh read of the catalog.

        Raises SyncConfigurationError when the class has no active
        sources or the catalog is empty.
        """
        sources = await asyncio.to_thread(
            self.store.get_active_sources, source_class,
        )
        products = await asyncio.to_thread(self.store.get_products)
        logger.info(
            "Running %s sync: %d sources, %d products",
            source_class,
            len(sources),
            len(products),
        )
        return await self.orchestrator.run_sync(sources, products)

    async def run_all(self) -> MasterSyncResult:
        """Run every configured class and collect their payloads."""
        master = MasterSyncResult(synced_at=datetime.now(timezone.utc))
        for source_class in self.source_classes:
            try:
                result = await self.run_class(source_class)
            except Exception as exc:
                logger.error(
                    "%s sync failed: %s",
                    source_class,
                    exc,
                    exc_info=True,
                )
                master.errors.append(f"{source_class} sync: {exc}")
                master.results[source_class] = {
                    "success": False,
                    "error": str(exc),
                }
                continue
            master.results[source_class] = result.to_payload()
        return master
