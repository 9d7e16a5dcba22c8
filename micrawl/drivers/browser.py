"""Shared Chromium lifecycle for the Playwright driver.

One browser process is launched lazily and reused by every full-render job in
the process. Jobs only ever open and close their own contexts and pages.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from collections.abc import Callable
from typing import Any

from playwright.async_api import Browser, Playwright, async_playwright

from micrawl.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

SYSTEM_CHROMIUM_CANDIDATES = ("chromium", "chromium-browser", "google-chrome")

# Flags for running a system Chromium inside containers
CONTAINER_LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)


class BrowserManager:
    """Owns the shared browser handle and its in-flight launch.

    ``acquire()`` returns the cached browser, or awaits the single in-flight
    launch so concurrent callers share one launch (or one failure). A failed
    launch is forgotten so the next call retries. When the browser
    disconnects, both caches are cleared and the next ``acquire()`` relaunches.

    Example:
        >>> manager = BrowserManager()
        >>> browser = await manager.acquire()
        >>> await manager.shutdown()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._settings = settings
        self._playwright_factory = playwright_factory
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._launch_task: asyncio.Task[Browser] | None = None
        self._executable_resolved = False
        self._executable_path: str | None = None

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def browser(self) -> Browser | None:
        """Currently cached browser, if one is ready."""
        return self._browser

    def resolve_executable_path(self) -> str | None:
        """Resolve the Chromium executable once per manager.

        An explicit ``chromium_binary`` setting wins. On Linux a system
        Chromium on ``PATH`` is used when present. Otherwise None selects
        Playwright's bundled build.
        """
        if self._executable_resolved:
            return self._executable_path

        path = self.settings.chromium_binary
        if path is None and sys.platform.startswith("linux"):
            path = next(
                (
                    found
                    for found in map(shutil.which, SYSTEM_CHROMIUM_CANDIDATES)
                    if found
                ),
                None,
            )

        self._executable_path = path
        self._executable_resolved = True
        logger.debug("Resolved Chromium executable", extra={"executable_path": path})
        return path

    async def acquire(self) -> Browser:
        """Return the shared browser, launching it on first use.

        Raises:
            Exception: Whatever the launch raised; the launch is retried on
                the next call.
        """
        if self._browser is not None:
            return self._browser

        if self._launch_task is None:
            self._launch_task = asyncio.create_task(self._launch())
        task = self._launch_task

        try:
            return await asyncio.shield(task)
        except Exception:
            if self._launch_task is task:
                self._launch_task = None
            raise

    async def _launch(self) -> Browser:
        if self._playwright is None:
            self._playwright = await self._playwright_factory().start()

        launch_options: dict[str, Any] = {"headless": True}
        executable_path = self.resolve_executable_path()
        if executable_path:
            launch_options["executable_path"] = executable_path
            launch_options["args"] = list(CONTAINER_LAUNCH_ARGS)

        browser = await self._playwright.chromium.launch(**launch_options)
        browser.on("disconnected", self._handle_disconnect)
        self._browser = browser
        logger.info(
            "Launched shared Chromium browser",
            extra={"executable_path": executable_path or "bundled"},
        )
        return browser

    def _handle_disconnect(self, browser: Browser) -> None:
        if self._browser is not None and self._browser is not browser:
            return
        logger.warning("Shared browser disconnected")
        self._browser = None
        self._launch_task = None

    async def shutdown(self) -> None:
        """Close the shared browser and stop Playwright. Safe to call repeatedly."""
        browser = self._browser
        task = self._launch_task
        playwright = self._playwright
        self._browser = None
        self._launch_task = None
        self._playwright = None

        if task is not None and not task.done():
            task.cancel()

        if browser is not None:
            try:
                await browser.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to close shared browser", extra={"error": str(exc)})

        if playwright is not None:
            try:
                await playwright.stop()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to stop Playwright", extra={"error": str(exc)})
