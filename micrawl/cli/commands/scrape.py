"""Scrape command streaming batch records as NDJSON."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from micrawl.core.config import get_settings
from micrawl.core.url_validation import UrlNormalizationError
from micrawl.drivers.dispatcher import create_default_registry
from micrawl.services.batch import (
    BatchExecutor,
    BatchValidationError,
    build_scrape_jobs,
    encode_record,
)
from micrawl.services.models import ContentFormat

console = Console(stderr=True)


def scrape_command(
    urls: list[str] = typer.Argument(None, help="URLs to scrape"),
    file: Path | None = typer.Option(
        None, "-f", "--file", help="File with one URL per line"
    ),
    text_only: bool | None = typer.Option(
        None, "--text-only/--full", help="Capture visible text or full content"
    ),
    timeout_ms: int | None = typer.Option(
        None, "-t", "--timeout", help="Per-page timeout in milliseconds"
    ),
    wait_for_selector: str | None = typer.Option(
        None, "-s", "--selector", help="CSS selector to wait for before capture"
    ),
    formats: list[ContentFormat] = typer.Option(
        [], "--format", help="Output format (repeatable): html, markdown"
    ),
    driver: str | None = typer.Option(
        None, "-d", "--driver", help="Driver: playwright, http, or auto"
    ),
    readability: bool | None = typer.Option(
        None, "--readability/--no-readability", help="Readability for markdown"
    ),
) -> None:
    """Scrape URLs, writing one JSON record per line to stdout.

    Progress, results, and the final summary are printed as they arrive. A
    summary table is printed to stderr. Exits with code 1 if any page failed.

    Args:
        urls: URLs to scrape.
        file: Optional file with additional URLs.
        text_only: Capture visible text instead of full HTML.
        timeout_ms: Per-page timeout budget.
        wait_for_selector: Selector that must appear before capture.
        formats: Requested content formats.
        driver: Driver choice.
        readability: Readability extraction for markdown output.
    """
    resolved_urls = _merge_urls(urls or [], file)
    if not resolved_urls:
        typer.echo("No URLs provided", err=True)
        raise typer.Exit(code=1)

    try:
        jobs = build_scrape_jobs(
            resolved_urls,
            get_settings(),
            capture_text_only=text_only,
            timeout_ms=timeout_ms,
            wait_for_selector=wait_for_selector,
            output_formats=tuple(dict.fromkeys(formats)) or None,
            driver=driver,
            readability=readability,
        )
    except (UrlNormalizationError, BatchValidationError) as exc:
        console.print(f"[red]Rejected batch:[/red] {exc}")
        raise typer.Exit(code=2) from exc

    summary = asyncio.run(_stream(jobs))
    _print_summary(summary)

    if summary.get("failed"):
        raise typer.Exit(code=1)


def _merge_urls(urls: list[str], file: Path | None) -> list[str]:
    merged = [url.strip() for url in urls if url.strip()]
    if file is None:
        return merged
    if not file.exists():
        raise typer.BadParameter(f"URL file not found: {file}")
    file_urls = [line.strip() for line in file.read_text().splitlines()]
    merged.extend([url for url in file_urls if url and not url.startswith("#")])
    return merged


async def _stream(jobs: list[Any]) -> dict[str, Any]:
    registry = create_default_registry()
    summary: dict[str, Any] = {}
    try:
        async for record in BatchExecutor(registry).stream(jobs):
            typer.echo(encode_record(record), nl=False)
            if "summary" in record:
                summary = record["summary"]
    finally:
        await registry.close_all()
    return summary


def _print_summary(summary: dict[str, Any]) -> None:
    table = Table(title="Scrape summary")
    table.add_column("Succeeded", style="green")
    table.add_column("Failed", style="red")
    table.add_column("Drivers")
    drivers = ", ".join(
        f"{name}={count}" for name, count in summary.get("drivers", {}).items()
    )
    table.add_row(
        str(summary.get("succeeded", 0)), str(summary.get("failed", 0)), drivers
    )
    console.print(table)

    for failure in summary.get("failures", []):
        console.print(f"[red]Failed:[/red] {failure['targetUrl']} {failure['message']}")
