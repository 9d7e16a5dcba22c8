"""Service-layer data models for scrape jobs, results, and stream records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ScrapePhase(str, Enum):
    """Lifecycle stage of a single job, streamed to observers."""

    QUEUED = "queued"
    NAVIGATING = "navigating"
    CAPTURING = "capturing"
    COMPLETED = "completed"


class RecordStatus(str, Enum):
    """Status tag carried by every stream record."""

    PROGRESS = "progress"
    SUCCESS = "success"
    FAIL = "fail"
    ERROR = "error"


class LoadStrategy(str, Enum):
    """Readiness criterion that gated content capture."""

    LOAD_EVENT = "load-event"
    WAIT_FOR_SELECTOR = "wait-for-selector"


class ContentFormat(str, Enum):
    """Representations a page can be captured in."""

    HTML = "html"
    MARKDOWN = "markdown"


class DriverName(str, Enum):
    """Retrieval strategies a job can request."""

    PLAYWRIGHT = "playwright"
    HTTP = "http"
    AUTO = "auto"


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


@dataclass(frozen=True)
class Viewport:
    """Browser viewport dimensions in pixels."""

    width: int
    height: int


@dataclass(frozen=True)
class BasicAuthCredentials:
    """Credentials sent as an HTTP Basic ``Authorization`` header."""

    username: str
    password: str


@dataclass(frozen=True)
class ScrapeJob:
    """Input descriptor for one target URL.

    Args:
        target_url: Canonical URL to scrape
        capture_text_only: Capture visible text instead of full content
        timeout_ms: Time budget for the job in milliseconds
        wait_for_selector: CSS selector that must appear before capture
        viewport: Browser viewport override
        locale: Browser locale override
        timezone_id: Browser timezone override
        user_agent: User agent override
        outbound_proxy_url: Proxy server used for the job's traffic
        header_overrides: Extra request headers
        basic_auth_credentials: HTTP Basic credentials
        output_formats: Requested content formats, in order
        driver: Explicit driver choice; None uses the configured default
        readability: Readability extraction for markdown; None means default
    """

    target_url: str
    capture_text_only: bool = False
    timeout_ms: int = 45_000
    wait_for_selector: str | None = None
    viewport: Viewport | None = None
    locale: str | None = None
    timezone_id: str | None = None
    user_agent: str | None = None
    outbound_proxy_url: str | None = None
    header_overrides: Mapping[str, str] | None = None
    basic_auth_credentials: BasicAuthCredentials | None = None
    output_formats: tuple[ContentFormat, ...] = (ContentFormat.HTML,)
    driver: DriverName | str | None = None
    readability: bool | None = None

    @property
    def requested_formats(self) -> tuple[ContentFormat, ...]:
        """Requested formats, defaulting to HTML when none were given."""
        return self.output_formats or (ContentFormat.HTML,)


@dataclass(frozen=True)
class ScrapeDriverPosition:
    """A job's coordinates within its batch.

    Args:
        index: 1-based position of the job
        total: Number of jobs in the batch
        target_url: Canonical target URL of the job
    """

    index: int
    total: int
    target_url: str


@dataclass(frozen=True)
class ScrapedContent:
    """One representation of a scraped page.

    ``bytes`` is always the UTF-8 encoded length of ``body``.
    """

    format: ContentFormat
    content_type: str
    body: str
    bytes: int

    def __post_init__(self) -> None:
        expected = len(self.body.encode("utf-8"))
        if self.bytes != expected:
            raise ValueError(
                f"Content byte length {self.bytes} does not match body ({expected})"
            )

    @classmethod
    def from_body(
        cls, format: ContentFormat, content_type: str, body: str
    ) -> ScrapedContent:
        return cls(
            format=format,
            content_type=content_type,
            body=body,
            bytes=len(body.encode("utf-8")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format.value,
            "contentType": self.content_type,
            "body": self.body,
            "bytes": self.bytes,
        }


@dataclass(frozen=True)
class PageMetadata:
    """Document-level metadata extracted from a page."""

    description: str | None = None
    keywords: tuple[str, ...] | None = None
    author: str | None = None
    canonical_url: str | None = None
    same_origin_links: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "description": self.description,
                "keywords": list(self.keywords) if self.keywords else None,
                "author": self.author,
                "canonicalUrl": self.canonical_url,
                "sameOriginLinks": list(self.same_origin_links),
            }
        )


@dataclass(frozen=True)
class ScrapedPage:
    """Successful result of running a job.

    Args:
        url: Final URL of the page
        title: Page title, if any
        http_status_code: Status of the main document response, if known
        started_at: ISO8601 start timestamp
        finished_at: ISO8601 finish timestamp
        duration_ms: Wall-clock duration of the job
        load_strategy: Readiness criterion used
        contents: Captured representations; never empty
        metadata: Extracted page metadata, if extraction succeeded
    """

    url: str
    title: str | None
    http_status_code: int | None
    started_at: str
    finished_at: str
    duration_ms: int
    load_strategy: LoadStrategy
    contents: tuple[ScrapedContent, ...]
    metadata: PageMetadata | None = None

    def __post_init__(self) -> None:
        if not self.contents:
            raise ValueError("A scraped page must carry at least one content entry")

    def content(self, format: ContentFormat) -> ScrapedContent | None:
        """Return the first content entry in the given format."""
        return next((entry for entry in self.contents if entry.format == format), None)

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "url": self.url,
                "title": self.title,
                "httpStatusCode": self.http_status_code,
                "startedAt": self.started_at,
                "finishedAt": self.finished_at,
                "durationMs": self.duration_ms,
                "loadStrategy": self.load_strategy.value,
                "contents": [entry.to_dict() for entry in self.contents],
                "metadata": self.metadata.to_dict() if self.metadata else None,
            }
        )


@dataclass(frozen=True)
class ScrapeFailureMeta:
    """Timing and strategy details attached to a failure."""

    target_url: str
    started_at: str
    finished_at: str
    duration_ms: int
    load_strategy: LoadStrategy

    def to_dict(self) -> dict[str, Any]:
        return {
            "targetUrl": self.target_url,
            "startedAt": self.started_at,
            "finishedAt": self.finished_at,
            "durationMs": self.duration_ms,
            "loadStrategy": self.load_strategy.value,
        }


@dataclass(frozen=True)
class ScrapeErrorDetail:
    """One structured failure.

    Args:
        target_url: URL of the failed job
        message: User-facing message mapped from the underlying error
        raw_message: Underlying error text, kept for diagnostics
        http_status_code: Response status, when one was received
        meta: Timing and strategy details, when the job ran
    """

    target_url: str
    message: str
    raw_message: str
    http_status_code: int | None = None
    meta: ScrapeFailureMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "targetUrl": self.target_url,
                "message": self.message,
                "rawMessage": self.raw_message,
                "httpStatusCode": self.http_status_code,
                "meta": self.meta.to_dict() if self.meta else None,
            }
        )


@dataclass(frozen=True)
class ScrapeSuccess:
    """Driver result for a job that produced a page."""

    job_id: str
    position: ScrapeDriverPosition
    page: ScrapedPage
    driver: str | None = None

    @property
    def status(self) -> RecordStatus:
        return RecordStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "status": self.status.value,
                "jobId": self.job_id,
                "index": self.position.index,
                "total": self.position.total,
                "targetUrl": self.position.target_url,
                "phase": ScrapePhase.COMPLETED.value,
                "driver": self.driver,
                "data": {"page": self.page.to_dict()},
            }
        )


@dataclass(frozen=True)
class ScrapeFailure:
    """Driver result for a job that ended in a handled failure."""

    job_id: str
    position: ScrapeDriverPosition
    errors: tuple[ScrapeErrorDetail, ...]
    driver: str | None = None

    @property
    def status(self) -> RecordStatus:
        return RecordStatus.FAIL

    def to_dict(self) -> dict[str, Any]:
        return _compact(
            {
                "status": self.status.value,
                "jobId": self.job_id,
                "index": self.position.index,
                "total": self.position.total,
                "targetUrl": self.position.target_url,
                "phase": ScrapePhase.COMPLETED.value,
                "driver": self.driver,
                "errors": [error.to_dict() for error in self.errors],
            }
        )


ScrapeDriverResult = ScrapeSuccess | ScrapeFailure


@dataclass
class ProgressCounters:
    """Running tally for one batch.

    ``completed`` and ``remaining`` are derived, so ``completed + remaining ==
    total`` and ``succeeded + failed == completed`` hold at every snapshot.
    """

    total: int
    succeeded: int = 0
    failed: int = 0

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed

    @property
    def remaining(self) -> int:
        return self.total - self.completed

    def record_success(self) -> None:
        self._check_capacity()
        self.succeeded += 1

    def record_failure(self) -> None:
        self._check_capacity()
        self.failed += 1

    def _check_capacity(self) -> None:
        if self.completed >= self.total:
            raise RuntimeError(f"All {self.total} jobs are already accounted for")

    def snapshot(self) -> dict[str, int]:
        return {
            "completed": self.completed,
            "remaining": self.remaining,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


@dataclass(frozen=True)
class PageDocument:
    """Markdown rendition of a single page, as returned by the scraper facade.

    Args:
        url: Final page URL
        title: Page title ("Untitled" when the page has none)
        markdown: Converted markdown body
        links: Same-origin links discovered on the page
        duration_ms: Time spent scraping the page
        depth: Link distance from the crawl's start page
    """

    url: str
    title: str
    markdown: str
    links: tuple[str, ...] = field(default_factory=tuple)
    duration_ms: int = 0
    depth: int = 0
