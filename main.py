# main.py

"""Entry point for the comparador price lookup CLI."""

import argparse
import asyncio
import logging
import sys

from comparador.config.logging_config import setup_logging
from comparador.config.settings import Settings

logger = logging.getLogger("comparador.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    valid_ids = ", ".join(s["id"] for s in Settings.AVAILABLE_SOURCES)

    parser = argparse.ArgumentParser(
        prog="comparador",
        description="Peruvian retail price comparison.",
        epilog=f"Available sources: {valid_ids}",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Product name. Omit when using --barcode or --image.",
    )
    parser.add_argument(
        "-b",
        "--barcode",
        default=None,
        help="Product barcode (EAN/UPC).",
    )
    parser.add_argument(
        "-i",
        "--image",
        default=None,
        dest="image_path",
        help="Path to a product photo.",
    )
    parser.add_argument(
        "-s",
        "--sources",
        default=None,
        help="Comma-separated source IDs (default: all).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--history",
        action="store_true",
        default=False,
        help="Record the search and its offers in the history DB.",
    )
    return parser


def _run_cli(args: argparse.Namespace) -> None:
    """Run one headless lookup and exit."""
    from comparador.cli.runner import cli_search

    exit_code = asyncio.run(
        cli_search(
            query=args.query,
            barcode=args.barcode,
            image_path=args.image_path,
            source_csv=args.sources,
            output_format=args.output_format,
            record_history=args.history,
        )
    )
    sys.exit(exit_code)


def main() -> None:
    """Parse arguments and run one product lookup."""
    log_file = setup_logging()
    logger.info("comparador starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if not (args.query or args.barcode or args.image_path):
        parser.error("provide a query, --barcode or --image")
    _run_cli(args)


if __name__ == "__main__":
    main()
