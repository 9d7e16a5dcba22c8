"""Request filters shared by target validation and browser interception.

The same predicates decide whether a scrape target is rejected before any
network activity and whether a sub-resource is aborted while a page loads.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import urlsplit

DISALLOWED_FILE_EXTENSIONS = frozenset(
    {
        ".pdf",
        ".zip",
        ".rar",
        ".7z",
        ".tar",
        ".gz",
        ".bz2",
        ".mp4",
        ".mp3",
        ".avi",
        ".mov",
        ".mkv",
        ".flac",
        ".wav",
        ".woff",
        ".woff2",
        ".ttf",
        ".otf",
    }
)

ANALYTICS_AND_AD_DOMAINS = (
    ".doubleclick.",
    ".google-analytics.",
    ".googletagmanager.",
    ".googlesyndication.",
    ".googletagservices.",
    ".adservice.",
    ".adnxs.",
    ".ads-twitter.",
    ".facebook.",
    ".clarity.",
    ".nr-data.",
    ".bing.",
    ".amazon-adsystem.",
)

# Resource types that do not change the captured document
RESOURCE_TYPES_TO_SKIP = frozenset({"image", "media", "font", "stylesheet"})


def url_extension(url: str) -> str:
    """Return the lower-cased extension of the URL path's final segment."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    return PurePosixPath(path).suffix.lower()


def is_blocked_extension(url: str) -> bool:
    """Return True when the URL path ends in a disallowed file extension.

    Args:
        url: Absolute URL of the target or sub-resource.

    Example:
        >>> is_blocked_extension("https://example.com/report.PDF")
        True
    """
    return url_extension(url) in DISALLOWED_FILE_EXTENSIONS


def is_blocked_domain(hostname: str) -> bool:
    """Return True when the hostname contains an analytics/ad-network fragment."""
    host = hostname.lower()
    return any(fragment in host for fragment in ANALYTICS_AND_AD_DOMAINS)


def should_skip_resource_type(resource_type: str) -> bool:
    """Return True for resource classes that are aborted during page load."""
    return resource_type.lower() in RESOURCE_TYPES_TO_SKIP
