"""Shared pytest fixtures for micrawl unit tests.

Provides an in-memory driver that satisfies the ScrapeDriver protocol so the
batch executor, API, and CLI can be exercised without a browser or network.
"""

from collections.abc import Awaitable, Callable, Iterator
from typing import Any

import pytest

from micrawl.core.config import Settings, get_settings
from micrawl.drivers.dispatcher import DriverRegistry
from micrawl.drivers.shared import notify_phase
from micrawl.services.batch import BatchExecutor
from micrawl.services.models import (
    ContentFormat,
    LoadStrategy,
    ScrapedContent,
    ScrapedPage,
    ScrapeDriverPosition,
    ScrapeDriverResult,
    ScrapeJob,
    ScrapePhase,
    ScrapeSuccess,
)

Handler = Callable[[ScrapeJob, str, ScrapeDriverPosition], Awaitable[ScrapeDriverResult]]


def build_success(
    job: ScrapeJob,
    job_id: str,
    position: ScrapeDriverPosition,
    body: str = "<html><head><title>Example</title></head><body>Hi</body></html>",
) -> ScrapeSuccess:
    """Build a successful result carrying one HTML content entry."""
    page = ScrapedPage(
        url=job.target_url,
        title="Example",
        http_status_code=200,
        started_at="2026-01-01T00:00:00.000Z",
        finished_at="2026-01-01T00:00:00.010Z",
        duration_ms=10,
        load_strategy=LoadStrategy.LOAD_EVENT,
        contents=(ScrapedContent.from_body(ContentFormat.HTML, "text/html", body),),
    )
    return ScrapeSuccess(job_id=job_id, position=position, page=page)


class FakeDriver:
    """In-memory driver that reports both phases and returns a canned result."""

    def __init__(
        self,
        name: str,
        handler: Handler | None = None,
        verify_error: Exception | None = None,
    ) -> None:
        self.name = name
        self.handler = handler
        self.verify_error = verify_error
        self.calls: list[str] = []
        self.closed = False

    async def run(
        self,
        job: ScrapeJob,
        job_id: str,
        position: ScrapeDriverPosition,
        emit_phase=None,
    ) -> ScrapeDriverResult:
        self.calls.append(job.target_url)
        await notify_phase(emit_phase, ScrapePhase.NAVIGATING, job_id)
        await notify_phase(emit_phase, ScrapePhase.CAPTURING, job_id)
        if self.handler is not None:
            return await self.handler(job, job_id, position)
        return build_success(job, job_id, position)

    async def verify(self) -> None:
        if self.verify_error is not None:
            raise self.verify_error

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Iterator[None]:
    """Resolve settings fresh in every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment."""
    return Settings(_env_file=None)


@pytest.fixture
def playwright_fake() -> FakeDriver:
    return FakeDriver("playwright")


@pytest.fixture
def http_fake() -> FakeDriver:
    return FakeDriver("http")


@pytest.fixture
def fake_registry(
    playwright_fake: FakeDriver, http_fake: FakeDriver, settings: Settings
) -> DriverRegistry:
    """Registry holding the fake playwright and http drivers."""
    return DriverRegistry([playwright_fake, http_fake], settings=settings)


@pytest.fixture
def fake_driver_cls() -> type[FakeDriver]:
    """FakeDriver class, for tests that need custom handlers."""
    return FakeDriver


@pytest.fixture
def success_builder() -> Callable[..., ScrapeSuccess]:
    return build_success


async def collect_batch(
    registry: DriverRegistry, jobs: list[ScrapeJob], batch_id: str | None = None
) -> list[dict[str, Any]]:
    return [record async for record in BatchExecutor(registry).stream(jobs, batch_id)]


def terminal_records(records: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Success, fail and error records, without the closing summary."""
    return [
        record
        for record in records
        if record["status"] in {"success", "fail", "error"} and "summary" not in record
    ]


@pytest.fixture
def collect() -> Callable[..., Awaitable[list[dict[str, Any]]]]:
    """Run a batch to completion and return its records in order."""
    return collect_batch


@pytest.fixture
def terminal() -> Callable[[list[dict[str, Any]]], list[dict[str, Any]]]:
    return terminal_records
