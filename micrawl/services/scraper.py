"""Scraper service returning markdown for single pages and small crawls."""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from collections.abc import AsyncIterator
from dataclasses import replace

from micrawl.core.url_validation import UrlNormalizationError, canonicalize_url
from micrawl.drivers.dispatcher import DriverRegistry, create_default_registry
from micrawl.services.models import (
    ContentFormat,
    PageDocument,
    ScrapeDriverPosition,
    ScrapeJob,
    ScrapeSuccess,
)

logger = logging.getLogger(__name__)


class ScrapeError(RuntimeError):
    """Raised when a page cannot be turned into markdown."""


class ScraperService:
    """Service for scraping pages to markdown through the driver registry.

    Example:
        >>> service = ScraperService()
        >>> document = await service.scrape("https://example.com")
        >>> document.title
        'Example Domain'
    """

    def __init__(self, registry: DriverRegistry | None = None) -> None:
        """Initialize the scraper service.

        Args:
            registry: Driver registry; the Playwright/HTTP default if omitted
        """
        self._registry = registry or create_default_registry()

    @property
    def registry(self) -> DriverRegistry:
        return self._registry

    async def scrape(
        self,
        url: str,
        driver: str = "playwright",
        timeout_ms: int = 60_000,
        readability: bool = True,
    ) -> PageDocument:
        """Scrape a single URL to markdown.

        Args:
            url: Page to scrape
            driver: Driver name (playwright, http, or auto)
            timeout_ms: Time budget for the page
            readability: Reduce the page to its main content before converting

        Returns:
            PageDocument with the page's markdown and same-origin links

        Raises:
            ScrapeError: If the URL is invalid, the job fails, or no markdown
                was produced
        """
        try:
            target_url = canonicalize_url(url)
        except UrlNormalizationError as exc:
            raise ScrapeError(f"Failed to scrape {url}: {exc}") from exc

        job = ScrapeJob(
            target_url=target_url,
            capture_text_only=False,
            timeout_ms=timeout_ms,
            output_formats=(ContentFormat.MARKDOWN,),
            driver=driver,
            readability=readability,
        )
        position = ScrapeDriverPosition(index=1, total=1, target_url=target_url)
        job_id = f"scrape-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"

        result = await self._registry.run_job(job, job_id, position)

        if not isinstance(result, ScrapeSuccess):
            reason = result.errors[0].message if result.errors else "Scrape failed"
            raise ScrapeError(f"Failed to scrape {url}: {reason}")

        page = result.page
        markdown = page.content(ContentFormat.MARKDOWN)
        if markdown is None:
            raise ScrapeError(f"No markdown content returned for {url}")

        return PageDocument(
            url=page.url,
            title=page.title or "Untitled",
            markdown=markdown.body,
            links=page.metadata.same_origin_links if page.metadata else (),
            duration_ms=page.duration_ms,
        )

    async def crawl(
        self,
        start_url: str,
        max_depth: int = 2,
        max_pages: int = 20,
        timeout_ms: int = 60_000,
        readability: bool = True,
        driver: str = "playwright",
    ) -> AsyncIterator[PageDocument]:
        """Breadth-first crawl of same-origin links from ``start_url``.

        Pages that fail are logged and skipped; they do not count toward
        ``max_pages``.

        Args:
            start_url: First page to scrape (depth 0)
            max_depth: Deepest link distance to follow
            max_pages: Maximum number of pages to yield
            timeout_ms: Time budget per page
            readability: Reduce each page to its main content
            driver: Driver name used for every page

        Yields:
            PageDocument for each scraped page, with ``depth`` set
        """
        queue: deque[tuple[str, int]] = deque([(start_url, 0)])
        visited: set[str] = set()
        scraped = 0

        while queue and scraped < max_pages:
            url, depth = queue.popleft()
            try:
                identity = canonicalize_url(url)
            except UrlNormalizationError:
                identity = url
            if identity in visited:
                continue
            visited.add(identity)

            try:
                document = await self.scrape(
                    url, driver=driver, timeout_ms=timeout_ms, readability=readability
                )
            except ScrapeError as exc:
                logger.warning(
                    "Skipping page that failed during crawl",
                    extra={"target_url": url, "depth": depth, "error": str(exc)},
                )
                continue

            scraped += 1
            yield replace(document, depth=depth)

            if depth < max_depth:
                queue.extend((link, depth + 1) for link in document.links)

    async def close(self) -> None:
        """Close every driver in the registry."""
        await self._registry.close_all()
