"""Typer application entry point for the micrawl CLI."""

import typer

from micrawl.cli.commands import fetch as fetch_command
from micrawl.cli.commands import health as health_command
from micrawl.cli.commands import save as save_command
from micrawl.cli.commands import scrape as scrape_command
from micrawl.core.config import get_settings
from micrawl.core.logger import get_logger

app = typer.Typer(no_args_is_help=True, name="micrawl")


@app.callback()
def main(
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (defaults to SCRAPER_LOG_LEVEL)"
    ),
) -> None:
    """Scrape web pages with a headless browser or plain HTTP."""
    get_logger("micrawl", log_level=log_level or get_settings().log_level)


app.command(name="scrape", help="Scrape URLs and stream NDJSON records")(
    scrape_command.scrape_command
)
app.command(name="fetch", help="Fetch one page as markdown")(
    fetch_command.fetch_command
)
app.command(name="save", help="Save pages or a crawl as markdown files")(
    save_command.save_command
)
app.command(name="health", help="Check that a driver can load pages")(
    health_command.health_command
)


if __name__ == "__main__":
    app()
