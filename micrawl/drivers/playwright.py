"""Full-render driver backed by a shared headless Chromium."""

from __future__ import annotations

import logging
import random
import re
from typing import Any
from urllib.parse import urlsplit

from playwright.async_api import BrowserContext, Page, Response, Route

from micrawl.core.config import Settings, get_settings
from micrawl.core.filters import (
    is_blocked_domain,
    is_blocked_extension,
    should_skip_resource_type,
)
from micrawl.core.interfaces import PhaseEmitter
from micrawl.drivers.browser import BrowserManager
from micrawl.drivers.markdown import convert_to_markdown
from micrawl.drivers.shared import (
    DEFAULT_CONTENT_TYPE,
    JobClock,
    build_extra_headers,
    build_failure,
    error_text,
    map_error_message,
    negotiate_contents,
    notify_phase,
)
from micrawl.services.models import (
    LoadStrategy,
    PageMetadata,
    ScrapedPage,
    ScrapeDriverPosition,
    ScrapeDriverResult,
    ScrapeJob,
    ScrapePhase,
    ScrapeSuccess,
)

logger = logging.getLogger(__name__)

READINESS_WAIT_CAP_MS = 10_000
HEALTHCHECK_TIMEOUT_MS = 5_000

# Structured payloads are returned byte-exact instead of as rendered DOM
RAW_BODY_CONTENT_TYPES = re.compile(
    r"application/(json|ld\+json)|text/(plain|csv)", re.IGNORECASE
)

DESKTOP_USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_4_1) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.4.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0",
)

# Runs in the page; mirrors the HTTP driver's BeautifulSoup extraction
METADATA_SCRIPT = """
() => {
  const meta = (selector) => {
    const value = document.querySelector(selector)?.content?.trim();
    return value ? value : null;
  };
  const description =
    meta('meta[name="description"]') ?? meta('meta[property="og:description"]');
  const keywords = meta('meta[name="keywords"]');
  const author =
    meta('meta[name="author"]') ?? meta('meta[property="article:author"]');

  let canonicalUrl = null;
  const canonicalRaw = document.querySelector('link[rel="canonical"]')?.href?.trim();
  if (canonicalRaw) {
    try {
      const resolved = new URL(canonicalRaw, window.location.href);
      resolved.hash = "";
      canonicalUrl = resolved.href;
    } catch (error) {
      canonicalUrl = null;
    }
  }

  const sameOriginLinks = [];
  const seen = new Set();
  document.querySelectorAll("a[href]").forEach((anchor) => {
    const href = anchor.getAttribute("href");
    if (!href) return;
    try {
      const resolved = new URL(href, window.location.href);
      if (!["http:", "https:"].includes(resolved.protocol)) return;
      if (resolved.origin !== window.location.origin) return;
      resolved.hash = "";
      if (seen.has(resolved.href)) return;
      seen.add(resolved.href);
      sameOriginLinks.push(resolved.href);
    } catch (error) {
      return;
    }
  });

  return { description, keywords, author, canonicalUrl, sameOriginLinks };
}
"""


def generate_user_agent() -> str:
    """Return a desktop browser user agent string."""
    return random.choice(DESKTOP_USER_AGENTS)


def build_context_options(job: ScrapeJob, settings: Settings) -> dict[str, Any]:
    """Derive browser context options from the job, falling back to settings.

    Args:
        job: Job carrying optional viewport/locale/timezone/UA/proxy overrides
        settings: Source of defaults

    Returns:
        Keyword arguments for ``Browser.new_context``
    """
    viewport = job.viewport
    options: dict[str, Any] = {
        "ignore_https_errors": False,
        "viewport": {
            "width": viewport.width if viewport else settings.default_viewport_width,
            "height": viewport.height if viewport else settings.default_viewport_height,
        },
        "locale": job.locale or settings.default_locale,
        "timezone_id": job.timezone_id or settings.default_timezone,
        "user_agent": job.user_agent
        or settings.default_user_agent
        or generate_user_agent(),
    }
    if job.outbound_proxy_url:
        options["proxy"] = {"server": job.outbound_proxy_url}
    return options


async def intercept_request(route: Route) -> None:
    """Abort ad/analytics hosts, skipped resource types, and blocked files."""
    request = route.request
    url = request.url
    hostname = urlsplit(url).hostname or ""

    if (
        is_blocked_domain(hostname)
        or should_skip_resource_type(request.resource_type)
        or is_blocked_extension(url)
    ):
        await route.abort()
        return
    await route.continue_()


def _to_metadata(raw: dict[str, Any]) -> PageMetadata:
    keywords = None
    if raw.get("keywords"):
        keywords = tuple(
            keyword.strip() for keyword in raw["keywords"].split(",") if keyword.strip()
        ) or None
    return PageMetadata(
        description=raw.get("description") or None,
        keywords=keywords,
        author=raw.get("author") or None,
        canonical_url=raw.get("canonicalUrl") or None,
        same_origin_links=tuple(raw.get("sameOriginLinks") or ()),
    )


class PlaywrightDriver:
    """Driver that renders pages in headless Chromium.

    Each job gets a fresh browser context and page on the shared browser.
    Sub-resources that cannot change the captured document are aborted, and
    best-effort readiness waits give client-rendered pages time to populate.
    """

    name = "playwright"

    def __init__(
        self,
        browser_manager: BrowserManager | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            browser_manager: Owner of the shared browser; one is created if omitted
            settings: Settings override; the process-wide settings by default
        """
        self._settings = settings
        self.browser_manager = browser_manager or BrowserManager(settings=settings)

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    async def run(
        self,
        job: ScrapeJob,
        job_id: str,
        position: ScrapeDriverPosition,
        emit_phase: PhaseEmitter | None = None,
    ) -> ScrapeDriverResult:
        """Render the job's target and build a success or handled failure."""
        clock = JobClock()
        load_strategy = (
            LoadStrategy.WAIT_FOR_SELECTOR
            if job.wait_for_selector
            else LoadStrategy.LOAD_EVENT
        )
        logger.info(
            "Starting scrape job",
            extra={"job_id": job_id, "target_url": job.target_url},
        )

        context: BrowserContext | None = None
        page: Page | None = None
        http_status_code: int | None = None

        try:
            if is_blocked_extension(job.target_url):
                raise ValueError(
                    f"Disallowed file extension: {urlsplit(job.target_url).path}"
                )

            browser = await self.browser_manager.acquire()
            context = await browser.new_context(
                **build_context_options(job, self.settings)
            )
            await context.route("**/*", intercept_request)

            page = await context.new_page()
            page.set_default_timeout(job.timeout_ms)

            extra_headers = build_extra_headers(job)
            if extra_headers:
                await page.set_extra_http_headers(extra_headers)

            logger.info(
                "Navigating to URL",
                extra={"job_id": job_id, "target_url": job.target_url},
            )
            await notify_phase(emit_phase, ScrapePhase.NAVIGATING, job_id)
            response = await page.goto(
                job.target_url, wait_until="load", timeout=job.timeout_ms
            )
            if response is not None:
                http_status_code = response.status

            await self._wait_until_ready(page, job, job_id)

            if job.wait_for_selector:
                await page.wait_for_selector(
                    job.wait_for_selector, timeout=job.timeout_ms
                )

            await notify_phase(emit_phase, ScrapePhase.CAPTURING, job_id)

            body, content_type = await self._resolve_body(page, response, job)
            finished_at, duration_ms = clock.stop()
            metadata = await self._collect_metadata(page, job_id)
            readability = job.readability is not False
            contents = negotiate_contents(
                job,
                body,
                content_type,
                lambda source: convert_to_markdown(
                    source, job.target_url, readability=readability
                ),
            )

            scraped = ScrapedPage(
                url=job.target_url,
                title=await page.title(),
                http_status_code=http_status_code,
                started_at=clock.started_at,
                finished_at=finished_at,
                duration_ms=duration_ms,
                load_strategy=load_strategy,
                contents=contents,
                metadata=metadata,
            )
        except Exception as exc:  # noqa: BLE001
            raw_message = error_text(exc)
            failure = build_failure(
                job,
                job_id,
                position,
                clock,
                load_strategy,
                map_error_message(exc),
                raw_message,
                http_status_code=http_status_code,
            )
            logger.error(
                "Scrape job failed",
                extra={
                    "job_id": job_id,
                    "target_url": job.target_url,
                    "error": raw_message,
                    "duration_ms": clock.elapsed_ms(),
                },
            )
            return failure
        finally:
            await self._cleanup(page, context, job_id)

        logger.info(
            "Scrape job completed successfully",
            extra={
                "job_id": job_id,
                "target_url": job.target_url,
                "bytes": scraped.contents[0].bytes,
                "status": http_status_code,
                "duration_ms": scraped.duration_ms,
            },
        )
        return ScrapeSuccess(job_id=job_id, position=position, page=scraped)

    async def _wait_until_ready(self, page: Page, job: ScrapeJob, job_id: str) -> None:
        """Wait for ``<body>`` and a network-idle window, tolerating timeouts."""
        readiness_timeout = min(job.timeout_ms, READINESS_WAIT_CAP_MS)

        try:
            await page.wait_for_selector("body", timeout=readiness_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.info(
                "Timed out waiting for <body> during scrape",
                extra={"job_id": job_id, "target_url": job.target_url, "error": str(exc)},
            )

        try:
            await page.wait_for_load_state("networkidle", timeout=readiness_timeout)
        except Exception as exc:  # noqa: BLE001
            logger.info(
                "Timed out waiting for network idle during scrape",
                extra={"job_id": job_id, "target_url": job.target_url, "error": str(exc)},
            )

    async def _resolve_body(
        self, page: Page, response: Response | None, job: ScrapeJob
    ) -> tuple[str, str]:
        if job.capture_text_only:
            text = await page.evaluate("() => document.body?.innerText ?? ''")
            return text or "", DEFAULT_CONTENT_TYPE

        if response is not None:
            content_type = response.headers.get("content-type")
            if content_type and RAW_BODY_CONTENT_TYPES.search(content_type):
                raw = await response.body()
                return (raw or b"").decode("utf-8", errors="replace"), content_type
            return await page.content(), content_type or DEFAULT_CONTENT_TYPE

        return await page.content(), DEFAULT_CONTENT_TYPE

    async def _collect_metadata(self, page: Page, job_id: str) -> PageMetadata | None:
        try:
            raw = await page.evaluate(METADATA_SCRIPT)
            return _to_metadata(raw or {})
        except Exception as exc:  # noqa: BLE001
            logger.debug(
                "Metadata extraction failed",
                extra={"job_id": job_id, "error": str(exc)},
            )
            return None

    async def _cleanup(
        self, page: Page | None, context: BrowserContext | None, job_id: str
    ) -> None:
        if page is not None:
            try:
                await page.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Failed to close page", extra={"job_id": job_id, "error": str(exc)}
                )
        if context is not None:
            try:
                await context.close()
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Failed to close context",
                    extra={"job_id": job_id, "error": str(exc)},
                )

    async def verify(self) -> None:
        """Launch (or reuse) the browser and load the healthcheck page.

        Raises:
            RuntimeError: If navigation returns no response or a status >= 400
            Exception: Any launch, navigation, or readiness error
        """
        healthcheck_url = self.settings.healthcheck_url
        browser = await self.browser_manager.acquire()
        context = await browser.new_context()
        try:
            page = await context.new_page()
            try:
                response = await page.goto(
                    healthcheck_url,
                    wait_until="domcontentloaded",
                    timeout=HEALTHCHECK_TIMEOUT_MS,
                )
                if response is None:
                    raise RuntimeError("Healthcheck navigation did not return a response")
                if response.status >= 400:
                    raise RuntimeError(
                        "Healthcheck navigation responded with status "
                        f"{response.status} for {healthcheck_url}"
                    )
                await page.wait_for_load_state(
                    "domcontentloaded", timeout=HEALTHCHECK_TIMEOUT_MS
                )
            finally:
                await page.close()
        finally:
            await context.close()

    async def close(self) -> None:
        """Shut down the shared browser."""
        await self.browser_manager.shutdown()
