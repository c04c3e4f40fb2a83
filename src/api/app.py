# src/api/app.py

"""HTTP trigger surface for sync runs."""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse

from src.services.auth import authorize_trigger
from src.services.errors import SyncConfigurationError, UnauthorizedError
from src.services.master_sync import MasterSyncCoordinator
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("aggregator.api")


def _unauthorized() -> JSONResponse:
    return JSONResponse({"error": "Unauthorized"}, status_code=401)


def create_app(
    coordinator: MasterSyncCoordinator | None = None,
) -> FastAPI:
    """Build the FastAPI app around a coordinator (default: on-disk DB)."""
    app = FastAPI(title="Listing Aggregator", version="1.0.0")
    sync = coordinator or MasterSyncCoordinator(CatalogDB())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/aggregator/sync")
    async def run_master_sync(
        authorization: Optional[str] = Header(None),
        x_cron_secret: Optional[str] = Header(None),
    ) -> Any:
        """Run every source class; per-class failures land in ``errors``."""
        try:
            authorize_trigger(authorization, x_cron_secret)
        except UnauthorizedError:
            return _unauthorized()
        result = await sync.run_all()
        return result.to_payload()

    @app.post("/api/aggregator/sync/{source_class}")
    async def run_class_sync(
        source_class: str,
        authorization: Optional[str] = Header(None),
        x_cron_secret: Optional[str] = Header(None),
    ) -> Any:
        """Run a single source class."""
        try:
            authorize_trigger(authorization, x_cron_secret)
        except UnauthorizedError:
            return _unauthorized()

        if source_class not in sync.source_classes:
            return JSONResponse(
                {"error": f"Unknown source class: {source_class}"},
                status_code=404,
            )

        try:
            result = await sync.run_class(source_class)
        except SyncConfigurationError as exc:
            return JSONResponse({"error": exc.message}, status_code=400)
        except Exception as exc:
            logger.error(
                "%s sync failed: %s", source_class, exc, exc_info=True,
            )
            return JSONResponse(
                {"error": "Sync failed", "details": str(exc)},
                status_code=500,
            )
        return result.to_payload()

    return app
