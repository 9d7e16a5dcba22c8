"""Unit tests for the Playwright driver.

The browser, context, page, and response are mocked so every test runs
without launching Chromium.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from micrawl.core.config import Settings
from micrawl.drivers.playwright import (
    DESKTOP_USER_AGENTS,
    METADATA_SCRIPT,
    PlaywrightDriver,
    build_context_options,
    generate_user_agent,
    intercept_request,
)
from micrawl.drivers.shared import DNS_MESSAGE, TIMEOUT_MESSAGE
from micrawl.services.models import (
    ContentFormat,
    LoadStrategy,
    ScrapeDriverPosition,
    ScrapeFailure,
    ScrapeJob,
    ScrapePhase,
    ScrapeSuccess,
    Viewport,
)

URL = "https://example.com/app"
HTML = "<html><head><title>App</title></head><body><h1>Rendered</h1></body></html>"


def _position(url: str = URL) -> ScrapeDriverPosition:
    return ScrapeDriverPosition(index=1, total=1, target_url=url)


def _mock_browser(
    content_type: str = "text/html",
    status: int = 200,
    metadata: dict[str, Any] | None = None,
) -> tuple[MagicMock, AsyncMock, AsyncMock]:
    response = MagicMock()
    response.status = status
    response.headers = {"content-type": content_type}
    response.body = AsyncMock(return_value=b'{"ok": true}')

    page = AsyncMock()
    page.set_default_timeout = MagicMock()
    page.goto.return_value = response
    page.content.return_value = HTML
    page.title.return_value = "App"

    async def evaluate(script: str) -> Any:
        if script == METADATA_SCRIPT:
            return metadata or {"sameOriginLinks": ["https://example.com/next"]}
        return "Rendered text"

    page.evaluate.side_effect = evaluate

    context = AsyncMock()
    context.new_page.return_value = page

    browser = AsyncMock()
    browser.new_context.return_value = context

    manager = MagicMock()
    manager.acquire = AsyncMock(return_value=browser)
    manager.shutdown = AsyncMock()
    return manager, context, page


@pytest.mark.asyncio
async def test_run_success_full_render(settings: Settings) -> None:
    manager, context, page = _mock_browser(
        metadata={
            "description": "An app",
            "keywords": "a, b",
            "canonicalUrl": "https://example.com/app",
            "sameOriginLinks": ["https://example.com/next"],
        }
    )
    phases: list[ScrapePhase] = []
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(
        ScrapeJob(target_url=URL, timeout_ms=30_000), "batch-1", _position(), phases.append
    )

    assert isinstance(result, ScrapeSuccess)
    assert phases == [ScrapePhase.NAVIGATING, ScrapePhase.CAPTURING]
    assert result.page.title == "App"
    assert result.page.http_status_code == 200
    assert result.page.load_strategy == LoadStrategy.LOAD_EVENT
    assert result.page.contents[0].body == HTML
    assert result.page.metadata is not None
    assert result.page.metadata.description == "An app"
    assert result.page.metadata.keywords == ("a", "b")
    assert result.page.metadata.same_origin_links == ("https://example.com/next",)

    page.goto.assert_awaited_once_with(URL, wait_until="load", timeout=30_000)
    page.set_default_timeout.assert_called_once_with(30_000)
    page.wait_for_selector.assert_awaited_once_with("body", timeout=10_000)
    page.wait_for_load_state.assert_awaited_once_with("networkidle", timeout=10_000)
    context.route.assert_awaited_once_with("**/*", intercept_request)
    page.close.assert_awaited_once()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_text_only_uses_inner_text(settings: Settings) -> None:
    manager, _, page = _mock_browser()
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(
        ScrapeJob(target_url=URL, capture_text_only=True), "batch-1", _position()
    )

    assert isinstance(result, ScrapeSuccess)
    assert result.page.contents[0].body == "Rendered text"
    page.content.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_json_response_is_returned_raw(settings: Settings) -> None:
    manager, _, page = _mock_browser(content_type="application/json")
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=URL), "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)
    assert result.page.contents[0].body == '{"ok": true}'
    assert result.page.contents[0].content_type == "application/json"
    page.content.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_markdown_output(settings: Settings) -> None:
    manager, _, _ = _mock_browser()
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)
    job = ScrapeJob(target_url=URL, output_formats=(ContentFormat.MARKDOWN,))

    result = await driver.run(job, "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)
    assert [entry.format for entry in result.page.contents] == [ContentFormat.MARKDOWN]
    assert "Rendered" in result.page.contents[0].body


@pytest.mark.asyncio
async def test_run_with_selector_records_strategy(settings: Settings) -> None:
    manager, _, page = _mock_browser()
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)
    job = ScrapeJob(target_url=URL, wait_for_selector="#app", timeout_ms=5_000)

    result = await driver.run(job, "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)
    assert result.page.load_strategy == LoadStrategy.WAIT_FOR_SELECTOR
    page.wait_for_selector.assert_any_await("#app", timeout=5_000)
    page.wait_for_selector.assert_any_await("body", timeout=5_000)


@pytest.mark.asyncio
async def test_run_readiness_timeouts_are_not_fatal(settings: Settings) -> None:
    manager, _, page = _mock_browser()
    page.wait_for_load_state.side_effect = PlaywrightTimeoutError("networkidle timeout")
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=URL), "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)


@pytest.mark.asyncio
async def test_run_selector_timeout_is_failure(settings: Settings) -> None:
    manager, context, page = _mock_browser()

    async def wait_for_selector(selector: str, timeout: int) -> None:
        if selector == "#never":
            raise PlaywrightTimeoutError("Timeout 5000ms exceeded.")

    page.wait_for_selector.side_effect = wait_for_selector
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)
    job = ScrapeJob(target_url=URL, wait_for_selector="#never", timeout_ms=5_000)

    result = await driver.run(job, "batch-1", _position())

    assert isinstance(result, ScrapeFailure)
    detail = result.errors[0]
    assert detail.message == TIMEOUT_MESSAGE
    assert detail.raw_message == "Timeout 5000ms exceeded."
    assert detail.http_status_code == 200
    assert detail.meta is not None
    assert detail.meta.load_strategy == LoadStrategy.WAIT_FOR_SELECTOR
    page.close.assert_awaited_once()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_navigation_error_is_mapped(settings: Settings) -> None:
    manager, _, page = _mock_browser()
    page.goto.side_effect = RuntimeError(
        "page.goto: net::ERR_NAME_NOT_RESOLVED at https://example.com/app"
    )
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=URL), "batch-1", _position())

    assert isinstance(result, ScrapeFailure)
    assert result.errors[0].message == DNS_MESSAGE
    assert "ERR_NAME_NOT_RESOLVED" in result.errors[0].raw_message


@pytest.mark.asyncio
async def test_run_blocked_extension_never_launches(settings: Settings) -> None:
    manager, _, _ = _mock_browser()
    url = "https://example.com/archive.zip"
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=url), "batch-1", _position(url))

    assert isinstance(result, ScrapeFailure)
    assert result.errors[0].message == "Disallowed file extension: /archive.zip"
    manager.acquire.assert_not_awaited()


@pytest.mark.asyncio
async def test_run_metadata_failure_keeps_page(settings: Settings) -> None:
    manager, _, page = _mock_browser()

    async def evaluate(script: str) -> Any:
        raise RuntimeError("Execution context was destroyed")

    page.evaluate.side_effect = evaluate
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=URL), "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)
    assert result.page.metadata is None


@pytest.mark.asyncio
async def test_run_cleanup_errors_do_not_fail_job(settings: Settings) -> None:
    manager, context, page = _mock_browser()
    page.close.side_effect = RuntimeError("page already closed")
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    result = await driver.run(ScrapeJob(target_url=URL), "batch-1", _position())

    assert isinstance(result, ScrapeSuccess)
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_verify_rejects_error_status(settings: Settings) -> None:
    manager, context, page = _mock_browser(status=500)
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    with pytest.raises(RuntimeError, match="status 500"):
        await driver.verify()

    page.close.assert_awaited_once()
    context.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_verify_healthy(settings: Settings) -> None:
    manager, _, page = _mock_browser()
    driver = PlaywrightDriver(browser_manager=manager, settings=settings)

    await driver.verify()

    page.goto.assert_awaited_once_with(
        settings.healthcheck_url, wait_until="domcontentloaded", timeout=5_000
    )


@pytest.mark.asyncio
async def test_close_shuts_down_browser(settings: Settings) -> None:
    manager, _, _ = _mock_browser()
    await PlaywrightDriver(browser_manager=manager, settings=settings).close()
    manager.shutdown.assert_awaited_once()


class TestContextOptions:
    def test_defaults_from_settings(self, settings: Settings) -> None:
        options = build_context_options(ScrapeJob(target_url=URL), settings)

        assert options["viewport"] == {"width": 1920, "height": 1080}
        assert options["locale"] == "en-US"
        assert options["timezone_id"] == "America/New_York"
        assert options["user_agent"] in DESKTOP_USER_AGENTS
        assert options["ignore_https_errors"] is False
        assert "proxy" not in options

    def test_job_overrides(self, settings: Settings) -> None:
        job = ScrapeJob(
            target_url=URL,
            viewport=Viewport(800, 600),
            locale="de-DE",
            timezone_id="Europe/Berlin",
            user_agent="custom-agent",
            outbound_proxy_url="http://proxy.local:3128",
        )
        options = build_context_options(job, settings)

        assert options["viewport"] == {"width": 800, "height": 600}
        assert options["locale"] == "de-DE"
        assert options["timezone_id"] == "Europe/Berlin"
        assert options["user_agent"] == "custom-agent"
        assert options["proxy"] == {"server": "http://proxy.local:3128"}

    def test_configured_user_agent(self) -> None:
        settings = Settings(_env_file=None, default_user_agent="fixed-agent")
        options = build_context_options(ScrapeJob(target_url=URL), settings)
        assert options["user_agent"] == "fixed-agent"

    def test_generated_user_agent_is_desktop(self) -> None:
        assert generate_user_agent() in DESKTOP_USER_AGENTS


class TestInterceptRequest:
    @staticmethod
    def _route(url: str, resource_type: str = "document") -> AsyncMock:
        route = AsyncMock()
        route.request = MagicMock()
        route.request.url = url
        route.request.resource_type = resource_type
        return route

    @pytest.mark.asyncio
    async def test_continues_documents(self) -> None:
        route = self._route("https://example.com/app.js", "script")
        await intercept_request(route)
        route.continue_.assert_awaited_once()
        route.abort.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_aborts_analytics(self) -> None:
        route = self._route("https://www.google-analytics.com/collect", "xhr")
        await intercept_request(route)
        route.abort.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aborts_images(self) -> None:
        route = self._route("https://example.com/logo.png", "image")
        await intercept_request(route)
        route.abort.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_aborts_blocked_files(self) -> None:
        route = self._route("https://example.com/files/manual.pdf", "other")
        await intercept_request(route)
        route.abort.assert_awaited_once()
        route.continue_.assert_not_awaited()
