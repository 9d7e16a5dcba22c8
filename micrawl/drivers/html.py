"""HTML parsing for pages fetched without a browser."""

from __future__ import annotations

import re
from urllib.parse import urldefrag, urljoin, urlsplit

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from micrawl.services.models import PageMetadata

_WHITESPACE = re.compile(r"\s+")
_TAG = re.compile(r"<[^>]*>")
_NON_TEXT_BLOCK = re.compile(
    r"<(script|style|noscript)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def _origin(url: str) -> tuple[str, str, int | None]:
    parts = urlsplit(url)
    port = parts.port
    if port is None:
        port = {"http": 80, "https": 443}.get(parts.scheme)
    return parts.scheme, (parts.hostname or ""), port


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if not isinstance(tag, Tag):
        return None
    content = tag.get("content")
    if not isinstance(content, str):
        return None
    return content.strip() or None


def extract_title(soup: BeautifulSoup) -> str | None:
    """Return the text of the first ``<title>`` tag, entity-decoded and trimmed."""
    title = soup.find("title")
    if title is None:
        return None
    return title.get_text().strip()


def extract_same_origin_links(soup: BeautifulSoup, page_url: str) -> tuple[str, ...]:
    """Resolve anchors against the page URL and keep same-origin http(s) links.

    Fragments are stripped and duplicates dropped, preserving document order.
    """
    page_origin = _origin(page_url)
    seen: set[str] = set()
    links: list[str] = []

    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href:
            continue
        try:
            resolved, _ = urldefrag(urljoin(page_url, href))
            parts = urlsplit(resolved)
            origin = _origin(resolved)
        except ValueError:
            continue
        if parts.scheme not in ("http", "https") or origin != page_origin:
            continue
        if resolved in seen:
            continue
        seen.add(resolved)
        links.append(resolved)

    return tuple(links)


def extract_metadata(soup: BeautifulSoup, page_url: str) -> PageMetadata:
    """Extract description, keywords, author, canonical URL and links.

    Args:
        soup: Parsed page
        page_url: URL the page was fetched from

    Returns:
        PageMetadata with absent fields left as None
    """
    description = _meta_content(soup, name="description") or _meta_content(
        soup, property="og:description"
    )

    keywords: tuple[str, ...] | None = None
    raw_keywords = _meta_content(soup, name="keywords")
    if raw_keywords:
        keywords = tuple(
            keyword.strip() for keyword in raw_keywords.split(",") if keyword.strip()
        ) or None

    author = _meta_content(soup, name="author") or _meta_content(
        soup, property="article:author"
    )

    canonical_url = None
    canonical = soup.find("link", rel="canonical", href=True)
    if isinstance(canonical, Tag):
        href = str(canonical["href"]).strip()
        if href:
            canonical_url, _ = urldefrag(urljoin(page_url, href))

    return PageMetadata(
        description=description,
        keywords=keywords,
        author=author,
        canonical_url=canonical_url,
        same_origin_links=extract_same_origin_links(soup, page_url),
    )


def extract_text(html: str) -> str:
    """Strip scripts, styles and tags, returning whitespace-collapsed text."""
    try:
        soup = parse_html(html)
    except ParserRejectedMarkup:
        text = _TAG.sub(" ", _NON_TEXT_BLOCK.sub(" ", html))
        return _WHITESPACE.sub(" ", text).strip()
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return _WHITESPACE.sub(" ", soup.get_text(" ")).strip()
