# main.py

"""Entry point for the listing aggregator (sync, history, API server)."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("aggregator.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    classes = ", ".join(Settings.SOURCE_CLASSES)

    parser = argparse.ArgumentParser(
        prog="aggregator",
        description="Multi-source listing aggregation and price tracking.",
        epilog=f"Source classes: {classes}",
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--sync",
        action="store_true",
        default=False,
        help="Run a sync over every active source.",
    )
    mode.add_argument(
        "--history",
        default=None,
        metavar="PRODUCT_SLUG",
        help="Show the recorded price history of a product.",
    )
    mode.add_argument(
        "--serve",
        action="store_true",
        default=False,
        help="Serve the HTTP sync trigger.",
    )
    parser.add_argument(
        "-c",
        "--source-class",
        default=None,
        dest="source_class",
        help="Limit --sync to one source class.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format for --sync (default: json).",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help="SQLite database path (default: data/aggregator.db).",
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    return parser


def main() -> None:
    """Route to the requested command."""
    parser = _build_parser()
    args = parser.parse_args()

    if args.sync:
        setup_logging("sync")
        from src.cli.runner import cli_sync

        exit_code = asyncio.run(
            cli_sync(
                source_class=args.source_class,
                output_format=args.output_format,
                db_path=args.db_path,
            )
        )
        sys.exit(exit_code)
    elif args.history:
        setup_logging("history")
        from src.cli.runner import show_history

        sys.exit(show_history(args.history, args.db_path))
    else:
        log_file = setup_logging("serve", console_level=logging.INFO)
        logger.info("Serving sync trigger, log file: %s", log_file)
        from src.cli.runner import serve

        serve(args.host, args.port, args.db_path)


if __name__ == "__main__":
    main()
