"""HTML to markdown conversion with optional readability extraction."""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from markdownify import ATX, MarkdownConverter
from readability import Document

logger = logging.getLogger(__name__)

_CONVERTER = MarkdownConverter(heading_style=ATX, bullets="-")

_NON_CONTENT_TAGS = ("script", "style", "noscript")

_SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")


def _readable_fragment(html: str) -> str:
    """Return readability's main-content fragment, or the input when it finds none."""
    try:
        summary = Document(html).summary(html_partial=True)
    except Exception as exc:  # noqa: BLE001
        logger.debug("Readability extraction failed", extra={"error": str(exc)})
        return html
    text = BeautifulSoup(summary, "html.parser").get_text(strip=True)
    return summary if text else html


def _resolve_relative_urls(soup: BeautifulSoup, base_url: str) -> None:
    """Resolve href/src attributes against the page URL in place."""
    for tag in soup.find_all(href=True):
        href = str(tag["href"]).strip()
        if href and not href.startswith(_SKIPPED_HREF_PREFIXES):
            tag["href"] = urljoin(base_url, href)
    for tag in soup.find_all(src=True):
        src = str(tag["src"]).strip()
        if src and not src.startswith(("data:", "javascript:")):
            tag["src"] = urljoin(base_url, src)


def convert_to_markdown(html: str, base_url: str, readability: bool = True) -> str:
    """Convert an HTML document to markdown.

    Args:
        html: Raw HTML (or text) body of the page
        base_url: Page URL used to absolutize relative links
        readability: Reduce the document to its main content first

    Returns:
        Markdown text with collapsed blank lines

    Raises:
        Exception: Any parser or converter error. Callers treat a raise as
            "no markdown for this page".
    """
    source = _readable_fragment(html) if readability else html
    soup = BeautifulSoup(source, "html.parser")
    for tag in soup(_NON_CONTENT_TAGS):
        tag.decompose()
    _resolve_relative_urls(soup, base_url)
    markdown = _CONVERTER.convert_soup(soup)
    return re.sub(r"\n{3,}", "\n\n", markdown).strip()
