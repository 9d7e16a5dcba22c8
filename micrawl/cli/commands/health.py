"""Health command probing a scrape driver."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from micrawl.drivers.dispatcher import create_default_registry

console = Console()


def health_command(
    driver: str = typer.Option(
        "playwright", "-d", "--driver", help="Driver to probe: playwright or http"
    ),
) -> None:
    """Check that a driver can load the configured healthcheck page."""
    error = asyncio.run(_verify(driver))
    if error is not None:
        console.print(f"[red]unhealthy[/red] {driver}: {error}")
        raise typer.Exit(code=1)
    console.print(f"[green]healthy[/green] {driver}")


async def _verify(driver_name: str) -> str | None:
    registry = create_default_registry()
    try:
        driver = registry.get(driver_name)
    except KeyError:
        return f"unknown driver (choose from {', '.join(registry.names)})"
    try:
        await driver.verify()
    except Exception as exc:  # noqa: BLE001
        return str(exc) or type(exc).__name__
    finally:
        await registry.close_all()
    return None
