"""Helpers shared by the HTTP and Playwright drivers.

Covers request header construction, phase notification, error-message
mapping, timing, output-format negotiation, and failure envelopes.
"""

from __future__ import annotations

import base64
import inspect
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

import httpx

from micrawl.core.interfaces import PhaseEmitter
from micrawl.services.models import (
    ContentFormat,
    LoadStrategy,
    ScrapedContent,
    ScrapeDriverPosition,
    ScrapeErrorDetail,
    ScrapeFailure,
    ScrapeFailureMeta,
    ScrapeJob,
    ScrapePhase,
)

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Timed out while loading the page"
DNS_MESSAGE = "DNS resolution failed for the requested host"
CONNECTION_MESSAGE = "Connection error encountered while fetching the page"

# Evaluated in order against the raw error text; first match wins.
# Unmatched errors pass through verbatim.
ERROR_MESSAGE_TABLE: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"time(d)?\s?out", re.IGNORECASE), TIMEOUT_MESSAGE),
    (
        re.compile(
            r"net::ERR_NAME_NOT_RESOLVED|name or service not known|"
            r"nodename nor servname|getaddrinfo failed|temporary failure in name resolution",
            re.IGNORECASE,
        ),
        DNS_MESSAGE,
    ),
    (
        re.compile(
            r"net::ERR_CONNECTION|connection refused|connection reset",
            re.IGNORECASE,
        ),
        CONNECTION_MESSAGE,
    ),
)

MARKDOWN_CONTENT_TYPE = "text/markdown"
DEFAULT_CONTENT_TYPE = "text/html"


def build_extra_headers(job: ScrapeJob) -> dict[str, str]:
    """Build request headers from basic-auth credentials and overrides.

    Args:
        job: Job carrying optional credentials and header overrides

    Returns:
        Header mapping; empty when the job supplies neither
    """
    headers: dict[str, str] = {}

    if job.basic_auth_credentials is not None:
        credentials = (
            f"{job.basic_auth_credentials.username}:"
            f"{job.basic_auth_credentials.password}"
        )
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        headers["Authorization"] = f"Basic {encoded}"

    if job.header_overrides:
        headers.update(job.header_overrides)

    return headers


async def notify_phase(
    emitter: PhaseEmitter | None, phase: ScrapePhase, job_id: str | None = None
) -> None:
    """Report a phase to the observer hook without letting it fail the job."""
    if emitter is None:
        return
    try:
        result = emitter(phase)
        if inspect.isawaitable(result):
            await result
    except Exception as exc:  # noqa: BLE001
        logger.debug(
            "Failed to report phase",
            extra={"phase": phase.value, "job_id": job_id, "error": str(exc)},
        )


def error_text(error: BaseException) -> str:
    """Return the error's message, falling back to its class name."""
    return str(error) or type(error).__name__


def map_error_message(error: BaseException | str) -> str:
    """Map an exception or raw message to a user-facing failure message.

    Args:
        error: Exception raised while running a job, or its raw text

    Returns:
        Canonical message from ERROR_MESSAGE_TABLE, or the raw text

    Example:
        >>> map_error_message("page.goto: net::ERR_NAME_NOT_RESOLVED at https://x.invalid/")
        'DNS resolution failed for the requested host'
    """
    if isinstance(error, (TimeoutError, httpx.TimeoutException)):
        return TIMEOUT_MESSAGE
    if isinstance(error, BaseException):
        if type(error).__name__ == "TimeoutError":
            return TIMEOUT_MESSAGE
        message = error_text(error)
    else:
        message = error

    for pattern, canonical in ERROR_MESSAGE_TABLE:
        if pattern.search(message):
            return canonical
    return message


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO8601 string with milliseconds."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


@dataclass
class JobClock:
    """Wall-clock bookkeeping for one job run."""

    started_at: str = field(default_factory=utc_now_iso)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def stop(self) -> tuple[str, int]:
        """Return the finish timestamp and the duration in milliseconds."""
        return utc_now_iso(), self.elapsed_ms()


def negotiate_contents(
    job: ScrapeJob,
    body: str,
    content_type: str,
    to_markdown: Callable[[str], str],
) -> tuple[ScrapedContent, ...]:
    """Produce content entries for the job's requested formats.

    An HTML entry is produced unless markdown was requested exclusively. A
    markdown conversion failure is logged and drops only the markdown entry.
    When nothing was produced, the HTML entry is returned so a successful
    page always carries at least one entry.

    Args:
        job: Job whose output formats are negotiated
        body: Resolved page body
        content_type: Declared content type of the body
        to_markdown: Converter applied to the body when markdown is requested

    Returns:
        Non-empty tuple of content entries in negotiation order
    """
    formats = job.requested_formats
    include_html = ContentFormat.HTML in formats
    include_markdown = ContentFormat.MARKDOWN in formats

    html_entry = ScrapedContent.from_body(ContentFormat.HTML, content_type, body)
    contents: list[ScrapedContent] = []

    if include_html or not include_markdown:
        contents.append(html_entry)

    if include_markdown:
        try:
            markdown = to_markdown(body)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Markdown conversion failed",
                extra={"target_url": job.target_url, "error": error_text(exc)},
            )
        else:
            contents.append(
                ScrapedContent.from_body(
                    ContentFormat.MARKDOWN, MARKDOWN_CONTENT_TYPE, markdown
                )
            )

    if not contents:
        contents.append(html_entry)

    return tuple(contents)


def build_failure(
    job: ScrapeJob,
    job_id: str,
    position: ScrapeDriverPosition,
    clock: JobClock,
    load_strategy: LoadStrategy,
    message: str,
    raw_message: str,
    http_status_code: int | None = None,
) -> ScrapeFailure:
    """Build a handled-failure envelope carrying one error detail."""
    finished_at, duration_ms = clock.stop()
    meta = ScrapeFailureMeta(
        target_url=job.target_url,
        started_at=clock.started_at,
        finished_at=finished_at,
        duration_ms=duration_ms,
        load_strategy=load_strategy,
    )
    detail = ScrapeErrorDetail(
        target_url=job.target_url,
        message=message,
        raw_message=raw_message or message,
        http_status_code=http_status_code,
        meta=meta,
    )
    return ScrapeFailure(job_id=job_id, position=position, errors=(detail,))
