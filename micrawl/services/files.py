"""Persistence of scraped markdown to a docs directory."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlsplit

from micrawl.services.models import PageDocument

MAX_FILENAME_LENGTH = 100
_SIZE_UNITS = ("B", "KB", "MB", "GB")


@dataclass(frozen=True)
class SaveResult:
    """Outcome of writing one markdown file.

    Args:
        filepath: Path the markdown was written to
        existed: Whether the file was overwritten
        size: Final size of the file in bytes
    """

    filepath: Path
    existed: bool
    size: int


def format_bytes(size: int) -> str:
    """Render a byte count with one decimal place, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(_SIZE_UNITS) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 1)
    if value == int(value):
        return f"{int(value)} {_SIZE_UNITS[exponent]}"
    return f"{value} {_SIZE_UNITS[exponent]}"


def url_to_filename(url: str) -> str:
    """Turn a URL into a lower-case slug usable as a file name.

    Example:
        >>> url_to_filename("https://docs.example.com/guide/intro?x=1")
        'docs-example-com-guide-intro-x-1'
    """
    slug = re.sub(r"^https?://", "", url, flags=re.IGNORECASE)
    slug = re.sub(r"[^a-z0-9]+", "-", slug, flags=re.IGNORECASE).strip("-")
    return slug[:MAX_FILENAME_LENGTH].lower()


def _with_md_suffix(filename: str) -> str:
    return filename if filename.endswith(".md") else f"{filename}.md"


def organized_path(url: str, base_dir: Path) -> tuple[Path, str]:
    """Return the per-domain directory and file name for a URL.

    The ``www.`` prefix is dropped from the domain directory.
    """
    hostname = urlsplit(url).hostname or "unknown"
    domain = re.sub(r"^www\.", "", hostname)
    return base_dir / domain, _with_md_suffix(url_to_filename(url))


def with_frontmatter(
    markdown: str,
    url: str,
    title: str,
    scraped_at: str | None = None,
    depth: int | None = None,
) -> str:
    """Prefix markdown with a YAML front matter block.

    String values are JSON-quoted so titles containing colons or quotes stay
    valid YAML.
    """
    scraped_at = scraped_at or datetime.now(timezone.utc).isoformat()
    lines = [
        "---",
        f"url: {json.dumps(url)}",
        f"title: {json.dumps(title)}",
        f"scraped_at: {json.dumps(scraped_at)}",
    ]
    if depth is not None:
        lines.append(f"depth: {depth}")
    lines.extend(["---", ""])
    return "\n".join(lines) + markdown


def save_markdown(out_dir: Path, filename: str, content: str) -> SaveResult:
    """Write markdown to ``out_dir``, creating the directory if needed."""
    out_dir.mkdir(parents=True, exist_ok=True)
    filepath = out_dir / _with_md_suffix(filename)
    existed = filepath.exists()
    filepath.write_text(content, encoding="utf-8")
    return SaveResult(filepath=filepath, existed=existed, size=filepath.stat().st_size)


def save_document(
    document: PageDocument,
    out_dir: Path,
    filename: str | None = None,
    front_matter: bool = True,
    organize_by_domain: bool = False,
    depth: int | None = None,
) -> SaveResult:
    """Save a scraped page as a markdown file.

    Args:
        document: Page to save
        out_dir: Base output directory
        filename: Explicit file name; derived from the URL if omitted
        front_matter: Prefix the file with url/title/scraped_at front matter
        organize_by_domain: Save under a per-domain subdirectory
        depth: Crawl depth recorded in the front matter

    Returns:
        SaveResult describing the written file
    """
    directory = out_dir
    name = filename or url_to_filename(document.url)

    if organize_by_domain:
        directory, name = organized_path(document.url, out_dir)

    content = (
        with_frontmatter(document.markdown, document.url, document.title, depth=depth)
        if front_matter
        else document.markdown
    )
    return save_markdown(directory, name, content)
