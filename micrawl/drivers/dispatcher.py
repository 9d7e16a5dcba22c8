"""Driver selection and the registry of available drivers."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from micrawl.core.config import Settings, get_settings
from micrawl.core.interfaces import PhaseEmitter, ScrapeDriver
from micrawl.drivers.http import HttpDriver
from micrawl.drivers.playwright import PlaywrightDriver
from micrawl.services.models import (
    DriverName,
    ScrapeDriverPosition,
    ScrapeDriverResult,
    ScrapeJob,
)

logger = logging.getLogger(__name__)


def choose_auto_driver(job: ScrapeJob) -> str:
    """Pick a driver for a job from its characteristics.

    A selector hint needs a real DOM. Otherwise the lightweight driver is
    chosen only when nothing in the job needs a browser: no custom viewport,
    locale or timezone, and text-only capture.

    Args:
        job: Job to route

    Returns:
        ``"playwright"`` or ``"http"``
    """
    if job.wait_for_selector:
        return DriverName.PLAYWRIGHT.value

    dom_sensitive = (
        job.viewport is not None
        or job.locale is not None
        or job.timezone_id is not None
        or not job.capture_text_only
    )
    return DriverName.PLAYWRIGHT.value if dom_sensitive else DriverName.HTTP.value


def resolve_driver_name(job: ScrapeJob, settings: Settings | None = None) -> str:
    """Return the requested driver name, resolving ``auto`` to a concrete one.

    An omitted choice uses the configured default. Unknown names are returned
    unchanged; the registry decides what to do with them.
    """
    requested = job.driver
    if requested is None:
        requested = (settings or get_settings()).default_driver

    name = requested.value if isinstance(requested, DriverName) else str(requested)
    if name == DriverName.AUTO.value:
        return choose_auto_driver(job)
    return name


class DriverRegistry:
    """Name-to-driver mapping used to resolve and run jobs.

    Example:
        >>> registry = DriverRegistry([PlaywrightDriver(), HttpDriver()])
        >>> driver = registry.resolve(job)
    """

    def __init__(
        self,
        drivers: Iterable[ScrapeDriver] = (),
        settings: Settings | None = None,
    ) -> None:
        self._drivers: dict[str, ScrapeDriver] = {}
        self._settings = settings
        for driver in drivers:
            self.register(driver)

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def names(self) -> list[str]:
        return list(self._drivers)

    def register(self, driver: ScrapeDriver) -> None:
        """Add a driver, replacing any registered under the same name."""
        self._drivers[driver.name] = driver

    def get(self, name: str) -> ScrapeDriver:
        """Return a registered driver by name.

        Raises:
            KeyError: If no driver is registered under ``name``
        """
        return self._drivers[name]

    def resolve(self, job: ScrapeJob) -> ScrapeDriver:
        """Return the driver that should run ``job``.

        Unknown names fall back to the full-render driver with a warning.
        """
        name = resolve_driver_name(job, self.settings)
        driver = self._drivers.get(name)
        if driver is not None:
            return driver

        logger.warning(
            "Unknown driver requested, falling back to playwright",
            extra={"driver": name, "target_url": job.target_url},
        )
        return self._drivers[DriverName.PLAYWRIGHT.value]

    async def run_job(
        self,
        job: ScrapeJob,
        job_id: str,
        position: ScrapeDriverPosition,
        emit_phase: PhaseEmitter | None = None,
        driver: ScrapeDriver | None = None,
    ) -> ScrapeDriverResult:
        """Run a job, tagging the result with the driver's name.

        Args:
            job: Job to run
            job_id: Batch identifier
            position: Job coordinates within the batch
            emit_phase: Optional phase hook passed to the driver
            driver: Driver already resolved for the job; resolved here if omitted
        """
        if driver is None:
            driver = self.resolve(job)
        result = await driver.run(job, job_id, position, emit_phase)
        if result.driver is None:
            result = replace(result, driver=driver.name)
        return result

    async def close_all(self) -> None:
        """Close every driver, logging and discarding close errors."""
        for name, driver in self._drivers.items():
            try:
                await driver.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Failed to close driver",
                    extra={"driver": name, "error": str(exc)},
                )


def create_default_registry(settings: Settings | None = None) -> DriverRegistry:
    """Build a registry with the Playwright and HTTP drivers."""
    return DriverRegistry(
        [PlaywrightDriver(settings=settings), HttpDriver(settings=settings)],
        settings=settings,
    )
