# src/models/sync_result.py

"""Result containers returned by sync runs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class SyncResult:
    """Outcome of one orchestrator pass over a set of sources."""

    synced_at: datetime
    total_listings: int = 0
    total_matched: int = 0
    invalid_listings: int = 0
    price_points: int = 0
    by_source: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    timed_out: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Serialise to the JSON shape returned by the trigger surface.

        ``errors`` is omitted entirely when the run had none.
        """
        payload: dict[str, Any] = {
            "success": True,
            "total_listings": self.total_listings,
            "by_source": dict(self.by_source),
            "total_matched": self.total_matched,
            "invalid_listings": self.invalid_listings,
            "price_points": self.price_points,
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload


@dataclass
class MasterSyncResult:
    """Combined outcome of every source class for one trigger."""

    synced_at: datetime
    results: dict[str, dict[str, Any]] = field(
        default_factory=lambda: dict[str, dict[str, Any]]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "synced_at": self.synced_at.isoformat(),
            "results": dict(self.results),
        }
        if self.errors:
            payload["errors"] = list(self.errors)
        return payload
