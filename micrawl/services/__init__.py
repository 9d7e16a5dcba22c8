"""Service layer for scrape jobs, batches, and markdown persistence."""

from micrawl.services.models import (
    ContentFormat,
    DriverName,
    LoadStrategy,
    PageDocument,
    RecordStatus,
    ScrapedContent,
    ScrapedPage,
    ScrapeDriverPosition,
    ScrapeErrorDetail,
    ScrapeFailure,
    ScrapeJob,
    ScrapePhase,
    ScrapeSuccess,
)

__all__ = [
    "ContentFormat",
    "DriverName",
    "LoadStrategy",
    "PageDocument",
    "RecordStatus",
    "ScrapedContent",
    "ScrapedPage",
    "ScrapeDriverPosition",
    "ScrapeErrorDetail",
    "ScrapeFailure",
    "ScrapeJob",
    "ScrapePhase",
    "ScrapeSuccess",
]
