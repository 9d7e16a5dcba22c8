"""MCP stdio server exposing page fetching and doc saving as agent tools.

Tools:
    fetch_page: Return a page as markdown (large pages are truncated)
    save_docs: Save one page, a list of pages, or a crawl to a docs directory

Example:
    micrawl-mcp
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from micrawl.core.config import get_settings
from micrawl.core.logger import get_logger
from micrawl.services.files import SaveResult, format_bytes, save_document
from micrawl.services.scraper import ScraperService

logger = logging.getLogger(__name__)

server = Server("micrawl-mcp")

# Roughly 2000 tokens of markdown
MAX_PREVIEW_CHARS = 8000

TOOLS = [
    Tool(
        name="fetch_page",
        description=(
            "Fetch clean documentation from a URL and return it as markdown. "
            "Example: 'Get the content from https://hono.dev/docs/getting-started'"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "URL to fetch"},
            },
            "required": ["url"],
        },
    ),
    Tool(
        name="save_docs",
        description=(
            "Save documentation to the local filesystem. Supports a single page, "
            "a list of pages, or a whole site. Example: 'Save https://hono.dev/docs to ./docs'"
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "url": {
                    "description": "Single URL, or array of URLs to save",
                    "oneOf": [
                        {"type": "string"},
                        {"type": "array", "items": {"type": "string"}, "minItems": 1},
                    ],
                },
                "outDir": {
                    "type": "string",
                    "description": "Directory to save files (default: ./docs or MICRAWL_DOCS_DIR)",
                },
                "crawl": {
                    "type": "boolean",
                    "default": False,
                    "description": "Follow same-origin links to save an entire site",
                },
                "maxPages": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 100,
                    "default": 20,
                    "description": "Maximum pages when crawling",
                },
                "maxDepth": {
                    "type": "integer",
                    "minimum": 0,
                    "maximum": 5,
                    "default": 2,
                    "description": "Link depth when crawling",
                },
            },
            "required": ["url"],
        },
    ),
]


class ToolError(Exception):
    """Tool failure whose message is shown to the agent as an error result."""


def _suggestions(message: str) -> list[str]:
    lowered = message.lower()
    suggestions: list[str] = []

    if "timeout" in lowered or "timed out" in lowered or "etimedout" in lowered:
        suggestions.append("Try increasing timeout: set SCRAPER_DEFAULT_TIMEOUT_MS=120000")
        suggestions.append("Or use the HTTP driver for static pages")
    if "dns" in lowered or "getaddrinfo" in lowered or "enotfound" in lowered:
        suggestions.append("Check that the URL is correct and reachable")
        suggestions.append("If behind a VPN, ensure the connection is active")
    if "403" in message or "forbidden" in lowered:
        suggestions.append("The site may block scrapers; try the HTTP driver instead")
        suggestions.append("Some sites require authentication or have anti-bot protection")
    if "404" in message or "not found" in lowered:
        suggestions.append("Verify the URL exists and is publicly accessible")
    if "err_ssl" in lowered or "certificate" in lowered:
        suggestions.append("SSL certificate issue; the site may have an invalid HTTPS setup")

    return suggestions


def format_tool_error(operation: str, url: str, error: BaseException | str) -> str:
    """Render a failure with actionable suggestions for the agent.

    Args:
        operation: Verb describing the attempted action (fetch, save)
        url: Target URL
        error: Exception or message describing the failure

    Returns:
        Multi-line error text
    """
    message = str(error)
    text = f"Failed to {operation} {url}\n\nError: {message}"
    suggestions = _suggestions(message)
    if suggestions:
        text += "\n\nSuggestions:\n" + "\n".join(f"  - {item}" for item in suggestions)
    return text


def _summarize(header: str, saved: list[SaveResult], errors: list[str]) -> str:
    total_bytes = sum(result.size for result in saved)
    overwritten = sum(1 for result in saved if result.existed)
    lines = [
        header,
        f"   New: {len(saved) - overwritten}, Overwritten: {overwritten}",
        f"   Total size: {format_bytes(total_bytes)}",
        "",
    ]
    lines.extend(
        f"{index}. {result.filepath} ({format_bytes(result.size)})"
        + (" [overwritten]" if result.existed else "")
        for index, result in enumerate(saved, start=1)
    )
    if errors:
        lines.extend(["", "Errors:", *errors])
    return "\n".join(lines)


async def fetch_page(service: ScraperService, arguments: dict[str, Any]) -> str:
    """Fetch a page and return its markdown, truncated past MAX_PREVIEW_CHARS."""
    url = arguments["url"]
    try:
        document = await service.scrape(url, readability=True)
    except Exception as exc:  # noqa: BLE001
        raise ToolError(format_tool_error("fetch", url, exc)) from exc

    markdown = document.markdown
    if len(markdown) <= MAX_PREVIEW_CHARS:
        return f"# {document.title}\n\nURL: {document.url}\n\n{markdown}"

    remaining = len(markdown) - MAX_PREVIEW_CHARS
    return (
        f"# {document.title}\n\n"
        f"URL: {document.url}\n"
        f"Content is large ({format_bytes(len(markdown))}). "
        f"Showing first {format_bytes(MAX_PREVIEW_CHARS)}...\n\n"
        f"{markdown[:MAX_PREVIEW_CHARS]}\n\n"
        "---\n"
        f"[... {remaining} more characters truncated]\n\n"
        "To save the full content, use save_docs instead."
    )


async def save_docs(service: ScraperService, arguments: dict[str, Any]) -> str:
    """Save one URL, a list of URLs, or a crawl as markdown files."""
    url = arguments["url"]
    out_dir = Path(arguments.get("outDir") or get_settings().docs_dir)
    saved: list[SaveResult] = []
    errors: list[str] = []

    if isinstance(url, list):
        for single_url in url:
            try:
                document = await service.scrape(single_url, readability=True)
                saved.append(save_document(document, out_dir, organize_by_domain=True))
            except Exception as exc:  # noqa: BLE001
                errors.append(f"{single_url}: {exc}")
        return _summarize(
            f"Saved {len(saved)}/{len(url)} pages to {out_dir}", saved, errors
        )

    try:
        if arguments.get("crawl"):
            async for document in service.crawl(
                url,
                max_depth=int(arguments.get("maxDepth", 2)),
                max_pages=int(arguments.get("maxPages", 20)),
                readability=True,
            ):
                try:
                    saved.append(
                        save_document(
                            document,
                            out_dir,
                            organize_by_domain=True,
                            depth=document.depth,
                        )
                    )
                except OSError as exc:
                    errors.append(f"Failed to save {document.url}: {exc}")
            return _summarize(
                f"Crawled and saved {len(saved)} pages to {out_dir}", saved, errors
            )

        document = await service.scrape(url, readability=True)
        result = save_document(document, out_dir, organize_by_domain=True)
    except Exception as exc:  # noqa: BLE001
        raise ToolError(format_tool_error("save", url, exc)) from exc

    warning = " [overwritten existing file]" if result.existed else ""
    return (
        f"Saved: {result.filepath} ({format_bytes(result.size)}){warning}\n\n"
        f"Title: {document.title}\nURL: {document.url}"
    )


HANDLERS = {
    "fetch_page": fetch_page,
    "save_docs": save_docs,
}

_service: ScraperService | None = None


def get_service() -> ScraperService:
    """Return the scraper service shared by every tool call."""
    global _service
    if _service is None:
        _service = ScraperService()
    return _service


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return TOOLS


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls.

    Raised errors are turned into ``isError`` results by the MCP server, so a
    ToolError's message reaches the agent verbatim.

    Args:
        name: Tool name.
        arguments: Tool arguments.

    Returns:
        List of text content responses.
    """
    handler = HANDLERS.get(name)
    if handler is None:
        raise ToolError(f"Unknown tool: {name}")

    logger.info("Tool called", extra={"tool": name})
    try:
        text = await handler(get_service(), arguments)
    except ToolError as exc:
        logger.warning("Tool failed", extra={"tool": name, "error": str(exc)})
        raise
    return [TextContent(type="text", text=text)]


async def run_server() -> None:
    """Run the MCP server over stdio until the client disconnects."""
    get_logger("micrawl", log_level=get_settings().log_level)
    logger.info("Starting micrawl MCP server")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        if _service is not None:
            await _service.close()
        logger.info("micrawl MCP server stopped")


def main() -> None:
    """Main entry point."""
    asyncio.run(run_server())


if __name__ == "__main__":
    main()
