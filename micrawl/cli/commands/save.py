"""Save command writing scraped pages to a docs directory."""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from micrawl.core.config import get_settings
from micrawl.services.files import SaveResult, format_bytes, save_document
from micrawl.services.scraper import ScrapeError, ScraperService

console = Console(stderr=True)


def save_command(
    urls: list[str] = typer.Argument(..., help="URLs to save"),
    out_dir: Path | None = typer.Option(
        None, "-o", "--out-dir", help="Output directory (defaults to MICRAWL_DOCS_DIR)"
    ),
    crawl: bool = typer.Option(
        False, "--crawl", help="Follow same-origin links from each URL"
    ),
    max_depth: int = typer.Option(2, "--max-depth", help="Crawl depth"),
    max_pages: int = typer.Option(20, "--max-pages", help="Pages per crawl"),
    driver: str = typer.Option("playwright", "-d", "--driver"),
    timeout_ms: int = typer.Option(60_000, "-t", "--timeout"),
    front_matter: bool = typer.Option(True, "--front-matter/--no-front-matter"),
    organize: bool = typer.Option(
        True, "--by-domain/--flat", help="Save under per-domain directories"
    ),
) -> None:
    """Scrape pages and save them as markdown files.

    Exits with code 1 if nothing could be saved.
    """
    target_dir = out_dir or get_settings().docs_dir
    saved = asyncio.run(
        _save(
            urls,
            target_dir,
            crawl=crawl,
            max_depth=max_depth,
            max_pages=max_pages,
            driver=driver,
            timeout_ms=timeout_ms,
            front_matter=front_matter,
            organize=organize,
        )
    )

    total = sum(result.size for result in saved)
    console.print(
        f"Saved {len(saved)} page(s) to {target_dir} ({format_bytes(total)})"
    )
    if not saved:
        raise typer.Exit(code=1)


async def _save(
    urls: list[str],
    out_dir: Path,
    *,
    crawl: bool,
    max_depth: int,
    max_pages: int,
    driver: str,
    timeout_ms: int,
    front_matter: bool,
    organize: bool,
) -> list[SaveResult]:
    service = ScraperService()
    saved: list[SaveResult] = []
    try:
        for url in urls:
            if crawl:
                async for document in service.crawl(
                    url,
                    max_depth=max_depth,
                    max_pages=max_pages,
                    timeout_ms=timeout_ms,
                    driver=driver,
                ):
                    saved.append(
                        _report(
                            save_document(
                                document,
                                out_dir,
                                front_matter=front_matter,
                                organize_by_domain=organize,
                                depth=document.depth,
                            )
                        )
                    )
                continue

            try:
                document = await service.scrape(
                    url, driver=driver, timeout_ms=timeout_ms
                )
            except ScrapeError as exc:
                console.print(f"[red]{exc}[/red]")
                continue
            saved.append(
                _report(
                    save_document(
                        document,
                        out_dir,
                        front_matter=front_matter,
                        organize_by_domain=organize,
                    )
                )
            )
    finally:
        await service.close()
    return saved


def _report(result: SaveResult) -> SaveResult:
    verb = "Updated" if result.existed else "Created"
    console.print(f"[green]{verb}[/green] {result.filepath} ({format_bytes(result.size)})")
    return result
