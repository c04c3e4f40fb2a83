# tests/test_master_sync.py

"""Tests for the per-class master sync coordinator."""

import tempfile
import threading
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from src.models.listing import RawListing
from src.models.sync_result import MasterSyncResult
from src.services.master_sync import MasterSyncCoordinator
from src.services.sync_orchestrator import SyncOrchestrator
from src.storage.catalog_db import CatalogDB


class _CannedAdapter:
    def __init__(self, slug: str, listings: list[RawListing]) -> None:
        self.slug = slug
        self.listings = listings

    def search(self, query: str) -> list[RawListing]:
        return list(self.listings)


def _sebenza(price: float, item_id: str) -> RawListing:
    return RawListing(
        title="Chris Reeve Sebenza 31 Large",
        price=price,
        url=f"https://www.ebay.com/itm/{item_id}",
        external_id=item_id,
    )


class TestMasterSyncCoordinator(unittest.IsolatedAsyncioTestCase):
    """run_all runs each source class independently."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.store = CatalogDB(db_path=Path(self.tmp_dir) / "test.db")
        self.product = self.store.add_product(
            "crk-sebenza-31", "Chris Reeve Knives", "Sebenza 31",
        )
        self.ebay = self.store.add_source("ebay", "eBay", source_type="api")
        self.bladehq = self.store.add_source("bladehq", "BladeHQ")
        self.adapters = {
            "ebay": _CannedAdapter("ebay", [_sebenza(420.0, "v1|1")]),
            "bladehq": _CannedAdapter("bladehq", [_sebenza(495.0, "101")]),
        }

    def tearDown(self) -> None:
        self.store.close()

    def _coordinator(self, policy: str = "upsert") -> MasterSyncCoordinator:
        orch = SyncOrchestrator(
            self.store, adapters=self.adapters, write_policy=policy,
        )
        return MasterSyncCoordinator(self.store, orchestrator=orch)

    async def test_runs_every_class(self) -> None:
        master = await self._coordinator().run_all()

        self.assertIsInstance(master, MasterSyncResult)
        self.assertEqual(list(master.results), ["api", "retail"])
        self.assertEqual(master.results["api"]["by_source"], {"ebay": 1})
        self.assertEqual(
            master.results["retail"]["by_source"], {"bladehq": 1},
        )
        self.assertEqual(master.errors, [])

    async def test_class_failure_does_not_block_next(self) -> None:
        """The api class has no active sources; retail still runs."""
        self.store._conn.execute(
            "UPDATE sources SET is_active = 0 WHERE slug = 'ebay'",
        )
        self.store._conn.commit()

        master = await self._coordinator().run_all()

        self.assertEqual(
            master.results["api"],
            {"success": False, "error": "No active sources to sync"},
        )
        self.assertEqual(master.errors, ["api sync: No active sources to sync"])
        self.assertTrue(master.results["retail"]["success"])
        self.assertEqual(master.results["retail"]["total_listings"], 1)

    async def test_unexpected_error_is_contained(self) -> None:
        retail = await SyncOrchestrator(
            self.store, adapters=self.adapters,
        ).run_sync([self.bladehq], [self.product])
        orch = MagicMock()
        orch.run_sync = AsyncMock(
            side_effect=[RuntimeError("database is locked"), retail],
        )
        coordinator = MasterSyncCoordinator(self.store, orchestrator=orch)

        master = await coordinator.run_all()

        self.assertEqual(master.errors, ["api sync: database is locked"])
        self.assertFalse(master.results["api"]["success"])
        self.assertTrue(master.results["retail"]["success"])

    async def test_repeat_upsert_run_is_idempotent_for_listings(self) -> None:
        coordinator = self._coordinator("upsert")
        await coordinator.run_all()
        await coordinator.run_all()

        self.assertEqual(self.store.count_listings(), 2)
        self.assertEqual(
            len(self.store.get_price_history(self.product.id)), 4,
        )

    async def test_repeat_append_run_keeps_every_observation(self) -> None:
        coordinator = self._coordinator("append")
        await coordinator.run_all()
        await coordinator.run_all()

        self.assertEqual(self.store.count_listings(), 4)

    async def test_run_class_reads_catalog_fresh(self) -> None:
        coordinator = self._coordinator()
        self.store.add_product("benchmade-bugout-535", "Benchmade", "Bugout 535")

        result = await coordinator.run_class("retail")

        self.assertEqual(result.price_points, 2)
        self.assertEqual(result.by_source, {"bladehq": 1})

    async def test_catalog_reads_leave_event_loop_thread(self) -> None:
        loop_thread = threading.get_ident()
        reader_threads: list[int] = []
        store = MagicMock()

        def _read(*_args: object) -> list[object]:
            reader_threads.append(threading.get_ident())
            return []

        store.get_active_sources.side_effect = _read
        store.get_products.side_effect = _read
        orch = MagicMock()
        orch.run_sync = AsyncMock(return_value=None)

        await MasterSyncCoordinator(store, orchestrator=orch).run_class("api")

        store.get_active_sources.assert_called_once_with("api")
        self.assertEqual(len(reader_threads), 2)
        self.assertNotIn(loop_thread, reader_threads)
        orch.run_sync.assert_awaited_once_with([], [])

    def test_payload_shape(self) -> None:
        master = MasterSyncResult(synced_at=datetime.now(timezone.utc))
        master.results["api"] = {"success": True}
        payload = master.to_payload()
        self.assertEqual(
            set(payload), {"success", "synced_at", "results"},
        )
        master.errors.append("retail sync: boom")
        self.assertEqual(master.to_payload()["errors"], ["retail sync: boom"])


if __name__ == "__main__":
    unittest.main()
