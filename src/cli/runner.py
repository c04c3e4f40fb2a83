# src/cli/runner.py

"""Headless CLI commands: sync runs, price history, API server."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from src.services.errors import SyncConfigurationError
from src.services.master_sync import MasterSyncCoordinator
from src.storage.catalog_db import CatalogDB

logger = logging.getLogger("aggregator.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_class_table(name: str, payload: dict[str, Any]) -> None:
    """Render one source class's per-source counts."""
    table = Table(
        title=f"{name} sync",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Source", style="magenta")
    table.add_column("Listings", justify="right", style="green")

    by_source: dict[str, int] = payload.get("by_source", {})
    for slug, count in sorted(by_source.items()):
        table.add_row(slug, f"{count:,}")
    table.add_row(
        "[bold]total[/bold]",
        f"[bold]{payload.get('total_listings', 0):,}[/bold]",
    )
    Console().print(table)


def _emit(payload: dict[str, Any], output_format: str) -> None:
    if output_format == "table":
        results: dict[str, dict[str, Any]] = payload.get(
            "results", {"sync": payload}
        )
        for name, class_payload in results.items():
            if class_payload.get("success") is False:
                _err.print(
                    f"[red]{name}: {class_payload.get('error')}[/red]"
                )
                continue
            _print_class_table(name, class_payload)
    else:
        json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
        sys.stdout.write("\n")


async def cli_sync(
    source_class: str | None,
    output_format: str,
    db_path: str | None,
) -> int:
    """Run a sync and return an exit code (0=ok, 1=fail)."""
    store = CatalogDB(Path(db_path) if db_path else None)
    coordinator = MasterSyncCoordinator(store)
    try:
        if source_class is None:
            _err.print("[bold]Running full sync...[/bold]")
            master = await coordinator.run_all()
            payload = master.to_payload()
        else:
            if source_class not in coordinator.source_classes:
                valid = ", ".join(coordinator.source_classes)
                _err.print(
                    f"[red]Unknown source class: {source_class}[/red]"
                )
                _err.print(f"[dim]Available: {valid}[/dim]")
                return 1
            _err.print(f"[bold]Running {source_class} sync...[/bold]")
            try:
                result = await coordinator.run_class(source_class)
            except SyncConfigurationError as exc:
                _err.print(f"[red]{exc.message}[/red]")
                return 1
            payload = result.to_payload()
    finally:
        store.close()

    for error_msg in payload.get("errors", []):
        _err.print(f"[yellow]Error: {error_msg}[/yellow]")

    _emit(payload, output_format)
    return 0


def show_history(product_slug: str, db_path: str | None) -> int:
    """Print the price history and trend summary for a product."""
    store = CatalogDB(Path(db_path) if db_path else None)
    try:
        product = store.get_product_by_slug(product_slug)
        if product is None:
            _err.print(f"[red]Unknown product: {product_slug}[/red]")
            return 1

        sources = {
            s.id: s.slug for s in store.get_active_sources()
        }
        history = store.get_price_history(product.id)
        summary = store.get_trend_summary(product.id)
    finally:
        store.close()

    if not history:
        _err.print("[yellow]No price history recorded yet.[/yellow]")
        return 0

    table = Table(
        title=f"{product.brand} {product.name}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Recorded", style="dim")
    table.add_column("Source", style="magenta")
    table.add_column("Price", justify="right", style="green")
    for point in history:
        table.add_row(
            point.recorded_at.strftime("%Y-%m-%d %H:%M"),
            sources.get(point.source_id, str(point.source_id)),
            f"${point.price:,.2f}",
        )
    Console().print(table)

    if summary:
        _err.print(
            f"[dim]min ${summary['min']:,.2f} · "
            f"max ${summary['max']:,.2f} · "
            f"avg ${summary['avg']:,.2f} · "
            f"latest ${summary['latest']:,.2f} "
            f"({summary['count']} points)[/dim]"
        )
    return 0


def serve(host: str, port: int, db_path: str | None = None) -> None:
    """Serve the HTTP trigger surface with uvicorn."""
    import uvicorn

    from src.api.app import create_app

    store = CatalogDB(Path(db_path) if db_path else None)
    app = create_app(MasterSyncCoordinator(store))
    try:
        uvicorn.run(app, host=host, port=port)
    finally:
        store.close()
