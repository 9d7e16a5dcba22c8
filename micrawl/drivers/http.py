"""Lightweight driver that fetches a page with a single HTTP request."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup, ParserRejectedMarkup

from micrawl.core.config import Settings, get_settings
from micrawl.core.filters import is_blocked_extension
from micrawl.core.interfaces import PhaseEmitter
from micrawl.drivers.html import extract_metadata, extract_text, extract_title, parse_html
from micrawl.drivers.markdown import convert_to_markdown
from micrawl.drivers.shared import (
    DEFAULT_CONTENT_TYPE,
    TIMEOUT_MESSAGE,
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

HEALTHCHECK_TIMEOUT_SECONDS = 5.0


class HttpDriver:
    """Driver that retrieves pages without executing JavaScript.

    One GET per job, bounded by the job's timeout. The body is parsed for
    title, metadata and links. There is no readiness wait: a single response
    body has no DOM lifecycle to wait on.

    Example:
        >>> driver = HttpDriver()
        >>> result = await driver.run(job, "batch-1", position)
    """

    name = "http"

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            settings: Settings override; the process-wide settings by default
            transport: Optional httpx transport, used by tests
        """
        self._settings = settings
        self._transport = transport

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    def _client(self, timeout_ms: int, proxy: str | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_ms / 1000),
            follow_redirects=True,
            proxy=proxy,
            transport=self._transport,
        )

    async def run(
        self,
        job: ScrapeJob,
        job_id: str,
        position: ScrapeDriverPosition,
        emit_phase: PhaseEmitter | None = None,
    ) -> ScrapeDriverResult:
        """Fetch the job's target and build a success or handled failure."""
        clock = JobClock()
        logger.info(
            "Starting HTTP scrape",
            extra={"job_id": job_id, "target_url": job.target_url},
        )

        if is_blocked_extension(job.target_url):
            message = f"Disallowed file extension: {urlsplit(job.target_url).path}"
            return build_failure(
                job, job_id, position, clock, LoadStrategy.LOAD_EVENT, message, message
            )

        headers = build_extra_headers(job)
        if job.user_agent:
            headers["user-agent"] = job.user_agent

        await notify_phase(emit_phase, ScrapePhase.NAVIGATING, job_id)
        try:
            client = self._client(job.timeout_ms, job.outbound_proxy_url)
        except ValueError as exc:
            raw_message = error_text(exc)
            logger.error(
                "HTTP client configuration rejected",
                extra={"job_id": job_id, "target_url": job.target_url, "error": raw_message},
            )
            return build_failure(
                job, job_id, position, clock, LoadStrategy.LOAD_EVENT,
                map_error_message(raw_message), raw_message,
            )

        try:
            async with client, asyncio.timeout(job.timeout_ms / 1000):
                response = await client.get(job.target_url, headers=headers)
        except (httpx.TimeoutException, TimeoutError) as exc:
            raw_message = f"Request aborted after {job.timeout_ms}ms timeout"
            logger.error(
                "HTTP scrape timed out",
                extra={
                    "job_id": job_id,
                    "target_url": job.target_url,
                    "error": str(exc) or raw_message,
                },
            )
            return build_failure(
                job, job_id, position, clock, LoadStrategy.LOAD_EVENT,
                TIMEOUT_MESSAGE, raw_message,
            )
        except httpx.HTTPError as exc:
            raw_message = error_text(exc)
            logger.error(
                "HTTP scrape failed",
                extra={"job_id": job_id, "target_url": job.target_url, "error": raw_message},
            )
            return build_failure(
                job, job_id, position, clock, LoadStrategy.LOAD_EVENT,
                map_error_message(raw_message), raw_message,
            )

        status_code = response.status_code
        if not response.is_success:
            message = f"HTTP {status_code} {response.reason_phrase}".strip()
            logger.warning(
                "HTTP scrape received non-OK status",
                extra={"job_id": job_id, "target_url": job.target_url, "status": status_code},
            )
            return build_failure(
                job, job_id, position, clock, LoadStrategy.LOAD_EVENT,
                message, message, http_status_code=status_code,
            )

        await notify_phase(emit_phase, ScrapePhase.CAPTURING, job_id)

        html = response.text
        content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE)
        page_url = str(response.url)
        soup: BeautifulSoup | None
        try:
            soup = parse_html(html)
        except ParserRejectedMarkup as exc:
            logger.warning(
                "HTML parser rejected markup",
                extra={"job_id": job_id, "target_url": job.target_url, "error": str(exc)},
            )
            soup = None

        metadata: PageMetadata | None = None
        if soup is not None:
            try:
                metadata = extract_metadata(soup, page_url)
            except Exception as exc:  # noqa: BLE001
                logger.debug(
                    "Metadata extraction failed",
                    extra={"job_id": job_id, "target_url": job.target_url, "error": str(exc)},
                )

        body = extract_text(html) if job.capture_text_only else html
        readability = job.readability is True
        contents = negotiate_contents(
            job,
            body,
            content_type,
            lambda _: convert_to_markdown(html, page_url, readability=readability),
        )

        finished_at, duration_ms = clock.stop()
        page = ScrapedPage(
            url=job.target_url,
            title=extract_title(soup) if soup is not None else None,
            http_status_code=status_code,
            started_at=clock.started_at,
            finished_at=finished_at,
            duration_ms=duration_ms,
            load_strategy=LoadStrategy.LOAD_EVENT,
            contents=contents,
            metadata=metadata,
        )

        logger.info(
            "HTTP scrape completed",
            extra={
                "job_id": job_id,
                "target_url": job.target_url,
                "status": status_code,
                "bytes": len(response.content),
                "duration_ms": duration_ms,
            },
        )
        return ScrapeSuccess(job_id=job_id, position=position, page=page)

    async def verify(self) -> None:
        """GET the configured healthcheck URL.

        Raises:
            RuntimeError: If the healthcheck responds with a non-2xx status
            httpx.HTTPError: If the request itself fails
        """
        url = self.settings.healthcheck_url
        async with self._client(int(HEALTHCHECK_TIMEOUT_SECONDS * 1000)) as client:
            response = await client.get(url)
        if not response.is_success:
            raise RuntimeError(
                "HTTP driver healthcheck failed with status "
                f"{response.status_code} {response.reason_phrase}"
            )

    async def close(self) -> None:
        """Nothing to release; each job uses its own client."""
        return None
