# comparador/cli/runner.py

"""Headless CLI runner: identify, aggregate and print offers."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from comparador.config.settings import Settings
from comparador.models.offer import Offer
from comparador.models.product import (
    IdentificationInput,
    IdentifiedProduct,
    ResolutionFailure,
)
from comparador.services.price_finder import (
    PipelineError,
    build_default_finder,
)
from comparador.storage.search_history_db import SearchHistoryDB

logger = logging.getLogger("comparador.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def resolve_sources(source_csv: str | None) -> list[str] | None:
    """Validate a comma-separated list of source IDs.

    Returns ``None`` (all sources) when *source_csv* is ``None``.
    Raises ``SystemExit`` on unknown IDs.
    """
    if source_csv is None:
        return None
    available = {s["id"] for s in Settings.AVAILABLE_SOURCES}
    requested = [
        s.strip() for s in source_csv.split(",") if s.strip()
    ]
    unknown = [r for r in requested if r not in available]
    if unknown:
        _err.print(
            f"[red]Unknown source(s): {', '.join(unknown)}[/red]"
        )
        valid = ", ".join(sorted(available))
        _err.print(f"[dim]Available: {valid}[/dim]")
        raise SystemExit(1)
    return requested


def _print_table(offers: list[Offer]) -> None:
    """Render a Rich table of offers to stdout, cheapest first."""
    table = Table(
        title="Offers",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Product", max_width=50)
    table.add_column("Price", justify="right", style="green")
    table.add_column("Shipping", justify="right")
    table.add_column("Platform", style="magenta")
    table.add_column("URL", overflow="fold", style="dim")

    for idx, o in enumerate(offers, 1):
        table.add_row(
            str(idx),
            o.name[:50],
            f"{o.currency} {o.price:,.2f}",
            "Gratis" if o.shipping == 0 else f"{o.shipping:,.2f}",
            o.platform,
            o.url,
        )

    Console().print(table)


def _emit(
    product: IdentifiedProduct | None,
    offers: list[Offer],
    output_format: str,
) -> None:
    if output_format == "table":
        _print_table(offers)
        return
    payload: dict[str, object] = {
        "product": product.to_dict() if product else None,
        "offers": [o.to_dict() for o in offers],
    }
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _read_image(image_path: str | None) -> bytes | None:
    if image_path is None:
        return None
    try:
        return Path(image_path).read_bytes()
    except OSError as exc:
        _err.print(f"[red]Cannot read image: {exc}[/red]")
        raise SystemExit(1) from exc


async def cli_search(
    query: str | None,
    barcode: str | None,
    image_path: str | None,
    source_csv: str | None,
    output_format: str,
    record_history: bool = False,
) -> int:
    """Run one lookup and return an exit code.

    0 = offers found, 1 = nothing found or not identified,
    2 = internal pipeline error.
    """
    source_ids = resolve_sources(source_csv)
    history = SearchHistoryDB() if record_history else None
    finder = build_default_finder(source_ids, history)

    identification = IdentificationInput(
        barcode=barcode,
        image_bytes=_read_image(image_path),
        free_text=query,
    )
    _err.print(
        f"[bold]Searching:[/bold] {query or barcode or image_path}  "
        f"[dim]sources={', '.join(finder.engine.adapter_ids)}[/dim]"
    )

    try:
        result = await finder.identify_and_price(identification)
        await finder.drain()
    except PipelineError as exc:
        _err.print(f"[red]Error: {exc}[/red]")
        return 2
    finally:
        if history is not None:
            history.close()

    if isinstance(result, ResolutionFailure):
        tried = ", ".join(s.value for s in result.attempted) or "none"
        _err.print(
            f"[yellow]Not found: {result.reason} (tried: {tried})[/yellow]"
        )
        return 1

    _err.print(
        f"[dim]Identified '{result.product.canonical_name}' via "
        f"{result.product.source_of_identification.value} "
        f"({result.product.confidence.label})[/dim]"
    )
    if result.is_empty:
        _err.print("[yellow]No offers found.[/yellow]")
        _emit(result.product, [], output_format)
        return 1

    _err.print(f"[green]✓ {len(result.offers)} offers[/green]")
    _emit(result.product, result.offers, output_format)
    return 0

