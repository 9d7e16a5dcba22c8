"""Unit tests for the markdown scraper service and its crawler."""

import pytest

from micrawl.core.config import Settings
from micrawl.drivers.dispatcher import DriverRegistry
from micrawl.drivers.shared import JobClock, build_failure
from micrawl.services.models import (
    ContentFormat,
    LoadStrategy,
    PageMetadata,
    ScrapedContent,
    ScrapedPage,
    ScrapeSuccess,
)
from micrawl.services.scraper import ScrapeError, ScraperService

SITE = {
    "https://example.com/": ["https://example.com/a", "https://example.com/b"],
    "https://example.com/a": ["https://example.com/", "https://example.com/a/deeper"],
    "https://example.com/b": ["https://example.com/a#again"],
    "https://example.com/a/deeper": [],
}


def _markdown_success(job, job_id, position, links=(), title="Page"):
    page = ScrapedPage(
        url=job.target_url,
        title=title,
        http_status_code=200,
        started_at="2026-01-01T00:00:00.000Z",
        finished_at="2026-01-01T00:00:00.020Z",
        duration_ms=20,
        load_strategy=LoadStrategy.LOAD_EVENT,
        contents=(
            ScrapedContent.from_body(
                ContentFormat.MARKDOWN, "text/markdown", f"# {job.target_url}"
            ),
        ),
        metadata=PageMetadata(same_origin_links=tuple(links)),
    )
    return ScrapeSuccess(job_id=job_id, position=position, page=page)


@pytest.fixture
def site_registry(fake_driver_cls, settings: Settings) -> DriverRegistry:
    async def serve(job, job_id, position):
        if job.target_url not in SITE:
            return build_failure(
                job, job_id, position, JobClock(), LoadStrategy.LOAD_EVENT,
                "HTTP 404 Not Found", "HTTP 404 Not Found", http_status_code=404,
            )
        return _markdown_success(job, job_id, position, links=SITE[job.target_url])

    return DriverRegistry(
        [fake_driver_cls("playwright", serve), fake_driver_cls("http", serve)],
        settings=settings,
    )


@pytest.mark.asyncio
async def test_scrape_returns_document(site_registry: DriverRegistry) -> None:
    service = ScraperService(registry=site_registry)

    document = await service.scrape("https://EXAMPLE.com/a/")

    assert document.url == "https://example.com/a"
    assert document.title == "Page"
    assert document.markdown == "# https://example.com/a"
    assert document.links == ("https://example.com/", "https://example.com/a/deeper")
    assert document.duration_ms == 20


@pytest.mark.asyncio
async def test_scrape_requests_markdown_only(fake_driver_cls, settings: Settings) -> None:
    seen = []

    async def capture(job, job_id, position):
        seen.append(job)
        return _markdown_success(job, job_id, position)

    registry = DriverRegistry([fake_driver_cls("http", capture)], settings=settings)
    await ScraperService(registry=registry).scrape(
        "https://example.com/", driver="http", timeout_ms=9_000, readability=False
    )

    job = seen[0]
    assert job.output_formats == (ContentFormat.MARKDOWN,)
    assert job.capture_text_only is False
    assert job.timeout_ms == 9_000
    assert job.driver == "http"
    assert job.readability is False


@pytest.mark.asyncio
async def test_scrape_untitled_page(fake_driver_cls, settings: Settings) -> None:
    async def untitled(job, job_id, position):
        return _markdown_success(job, job_id, position, title=None)

    registry = DriverRegistry([fake_driver_cls("playwright", untitled)], settings=settings)
    document = await ScraperService(registry=registry).scrape("https://example.com/")

    assert document.title == "Untitled"


@pytest.mark.asyncio
async def test_scrape_failure_raises(site_registry: DriverRegistry) -> None:
    service = ScraperService(registry=site_registry)

    with pytest.raises(ScrapeError, match="HTTP 404 Not Found"):
        await service.scrape("https://example.com/missing")


@pytest.mark.asyncio
async def test_scrape_invalid_url_raises(site_registry: DriverRegistry) -> None:
    with pytest.raises(ScrapeError, match="Unsupported URL protocol"):
        await ScraperService(registry=site_registry).scrape("ftp://example.com/")


@pytest.mark.asyncio
async def test_scrape_without_markdown_raises(
    fake_driver_cls, success_builder, settings: Settings
) -> None:
    async def html_only(job, job_id, position):
        return success_builder(job, job_id, position)

    registry = DriverRegistry([fake_driver_cls("playwright", html_only)], settings=settings)

    with pytest.raises(ScrapeError, match="No markdown content"):
        await ScraperService(registry=registry).scrape("https://example.com/")


@pytest.mark.asyncio
async def test_crawl_is_breadth_first_and_deduplicated(site_registry: DriverRegistry) -> None:
    service = ScraperService(registry=site_registry)

    documents = [doc async for doc in service.crawl("https://example.com/", max_depth=2)]

    assert [(doc.url, doc.depth) for doc in documents] == [
        ("https://example.com/", 0),
        ("https://example.com/a", 1),
        ("https://example.com/b", 1),
        ("https://example.com/a/deeper", 2),
    ]


@pytest.mark.asyncio
async def test_crawl_respects_depth_and_page_limits(site_registry: DriverRegistry) -> None:
    service = ScraperService(registry=site_registry)

    shallow = [doc.url async for doc in service.crawl("https://example.com/", max_depth=0)]
    limited = [
        doc.url async for doc in service.crawl("https://example.com/", max_pages=2)
    ]

    assert shallow == ["https://example.com/"]
    assert limited == ["https://example.com/", "https://example.com/a"]


@pytest.mark.asyncio
async def test_crawl_skips_failed_pages(fake_driver_cls, settings: Settings) -> None:
    async def serve(job, job_id, position):
        if job.target_url.endswith("/broken"):
            return build_failure(
                job, job_id, position, JobClock(), LoadStrategy.LOAD_EVENT,
                "HTTP 500 Internal Server Error", "HTTP 500 Internal Server Error",
            )
        links = ["https://example.com/broken", "https://example.com/ok"]
        return _markdown_success(
            job, job_id, position, links=links if job.target_url.endswith(".com/") else ()
        )

    registry = DriverRegistry([fake_driver_cls("playwright", serve)], settings=settings)
    urls = [doc.url async for doc in ScraperService(registry=registry).crawl("https://example.com/")]

    assert urls == ["https://example.com/", "https://example.com/ok"]


@pytest.mark.asyncio
async def test_close_closes_drivers(fake_registry: DriverRegistry, playwright_fake) -> None:
    await ScraperService(registry=fake_registry).close()
    assert playwright_fake.closed is True
