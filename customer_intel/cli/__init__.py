"""
Command-Line Interface

Commands:
    customer-intel research   - Run the whole pipeline for one customer in-process
    customer-intel init-store - Declare every collection in a store
    customer-intel show       - Show which entities exist for a domain

Usage:
    # Research a customer, persisting to ./intel_store
    customer-intel research acme.com --legal-name "Acme GmbH"

    # Dry run against the in-memory store
    customer-intel research acme.com --legal-name "Acme GmbH" --memory

    # Inspect results
    customer-intel show acme.com --store ./intel_store
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

__all__ = ["main", "app"]

app = typer.Typer(
    name="customer-intel",
    help="Staged company research pipeline",
    no_args_is_help=True,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path], store: Optional[Path]):
    from customer_intel.config import IntelConfig

    config = IntelConfig.from_file(config_file) if config_file else IntelConfig()
    if store is not None:
        config = config.with_overrides(store_path=str(store))
    return config


@app.callback()
def _root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    load_dotenv()
    _configure_logging(verbose)


@app.command()
def research(
    domain: str = typer.Argument(..., help="Customer web domain, e.g. acme.com"),
    legal_name: str = typer.Option(..., "--legal-name", "-n", help="Registered legal name"),
    store: Optional[Path] = typer.Option(
        None,
        "--store", "-s",
        help="Entity store directory (default from configuration)",
    ),
    memory: bool = typer.Option(
        False,
        "--memory",
        help="Use an in-memory store; nothing is persisted",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config", "-c",
        help="TOML configuration file",
        exists=True,
    ),
) -> None:
    """Run the pipeline for one customer until every queue is drained."""

    async def _run() -> None:
        from customer_intel.messaging import queues
        from customer_intel.messaging.memory import InMemoryMessageBus
        from customer_intel.pipeline.wiring import build_pipeline, open_runtime
        from customer_intel.storage.collections import COLLECTIONS

        config = _load_config(config_file, store)
        deps = await open_runtime(config, memory=memory)

        try:
            pipeline = build_pipeline(deps)
            with console.status(f"Researching {domain}..."):
                metrics = await pipeline.research(domain, legal_name)

            table = Table(title=f"Stored entities ({'memory' if memory else config.store_path})")
            table.add_column("Collection", style="cyan")
            table.add_column("Count", justify="right", style="green")
            for schema in COLLECTIONS:
                table.add_row(schema.name, str(await deps.store.count(schema.name)))
            console.print(table)

            console.print(Panel(
                f"  Processed: {metrics.processed}\n"
                f"  Retries: {metrics.retries}\n"
                f"  Dead-lettered: {metrics.dead_lettered}",
                title="Worker",
                border_style="green" if not metrics.dead_lettered else "yellow",
            ))

            bus = deps.bus
            if isinstance(bus, InMemoryMessageBus):
                for letter in bus.dead_letters():
                    console.print(f"[red]{letter.envelope.queue}[/] {letter.reason}")
                for alert in bus.peek(queues.OPERATOR_ALERTS):
                    console.print(
                        f"[yellow]Batch {alert['batch_id']} {alert['state']}[/] "
                        f"({alert['storage_area_name']})"
                    )
        finally:
            await deps.close()

    asyncio.run(_run())


@app.command("init-store")
def init_store(
    store: Optional[Path] = typer.Option(
        None,
        "--store", "-s",
        help="Entity store directory (default from configuration)",
    ),
) -> None:
    """Create a store and declare every collection."""

    async def _run() -> None:
        from customer_intel.pipeline.wiring import open_store

        config = _load_config(None, store)
        entity_store = await open_store(config)
        try:
            console.print(
                f"[green]Declared {len(entity_store.collections)} collections in {config.store_path}[/]"
            )
        finally:
            await entity_store.close()

    asyncio.run(_run())


@app.command()
def show(
    domain: str = typer.Argument(..., help="Company web domain"),
    store: Optional[Path] = typer.Option(
        None,
        "--store", "-s",
        help="Entity store directory (default from configuration)",
    ),
) -> None:
    """Show which entities exist for a domain."""

    async def _run() -> None:
        from customer_intel.pipeline.wiring import open_store
        from customer_intel.storage import collections
        from customer_intel.storage.base import identity_of

        config = _load_config(None, store)
        entity_store = await open_store(config)

        try:
            table = Table(title=domain)
            table.add_column("Collection", style="cyan")
            table.add_column("Stored", justify="center")

            for name in (
                collections.MASTER_DATA,
                collections.ASSESSMENT,
                collections.COMPETITORS,
                collections.NEWS,
                collections.MARKET_ANALYSIS,
                collections.IT_STRATEGY,
                collections.SERVICE_MATCHING,
                collections.MEETING_PREP,
            ):
                entity = await entity_store.get_by_key(name, domain)
                table.add_row(name, "[green]yes[/]" if entity is not None else "[dim]no[/]")

            comparisons = await entity_store.find(
                collections.COMPETITION_ANALYSIS, where={"customer_domain": domain.strip().lower()}
            )
            table.add_row(collections.COMPETITION_ANALYSIS, str(len(comparisons)))
            console.print(table)

            competitors = await entity_store.links_from(
                collections.MASTER_DATA, identity_of(domain), "competing_companies"
            )
            if competitors:
                console.print(f"Linked competitors: {len(competitors)}")
        finally:
            await entity_store.close()

    asyncio.run(_run())


def main() -> None:
    """Entry point for the CLI."""
    app()
