"""Fetch command printing a single page as markdown."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from micrawl.services.files import format_bytes
from micrawl.services.models import PageDocument
from micrawl.services.scraper import ScrapeError, ScraperService

console = Console(stderr=True)


def fetch_command(
    url: str = typer.Argument(..., help="URL to fetch"),
    driver: str = typer.Option(
        "playwright", "-d", "--driver", help="Driver: playwright, http, or auto"
    ),
    timeout_ms: int = typer.Option(
        60_000, "-t", "--timeout", help="Timeout in milliseconds"
    ),
    readability: bool = typer.Option(
        True, "--readability/--no-readability", help="Extract main content first"
    ),
    output: Path | None = typer.Option(None, "-o", "--output"),
) -> None:
    """Fetch a page and print its markdown, or write it to a file."""
    try:
        document = asyncio.run(_fetch(url, driver, timeout_ms, readability))
    except ScrapeError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    if output is None:
        typer.echo(document.markdown)
        return

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(document.markdown, encoding="utf-8")
    console.print(
        f"[green]Saved[/green] {document.title} to {output} "
        f"({format_bytes(output.stat().st_size)})"
    )


async def _fetch(
    url: str, driver: str, timeout_ms: int, readability: bool
) -> PageDocument:
    service = ScraperService()
    try:
        return await service.scrape(
            url, driver=driver, timeout_ms=timeout_ms, readability=readability
        )
    finally:
        await service.close()
