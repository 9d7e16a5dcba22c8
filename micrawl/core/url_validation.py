"""URL canonicalization for scrape batches.

Every target URL is reduced to a canonical form before a job is created. The
canonical string is the job's identity: two inputs that canonicalize to the
same string are the same target, and a batch containing both is rejected.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

UrlNormalizationIssue = Literal["invalid_url", "unsupported_protocol", "duplicate_url"]

SUPPORTED_SCHEMES = frozenset({"http", "https"})

_DEFAULT_PORTS = {"http": 80, "https": 443}


class UrlNormalizationError(ValueError):
    """Raised when a URL cannot be canonicalized.

    Attributes:
        issue: Machine-readable reason (invalid_url, unsupported_protocol,
            duplicate_url)
        detail: The offending raw URL, scheme, or canonical form
    """

    def __init__(
        self, message: str, issue: UrlNormalizationIssue, detail: str | None = None
    ) -> None:
        super().__init__(message)
        self.issue = issue
        self.detail = detail


def _trim_path(path: str) -> str:
    if path in ("", "/"):
        return "/"
    trimmed = path.rstrip("/")
    return trimmed or "/"


def _build_netloc(scheme: str, raw_url: str, parsed_netloc: str) -> str:
    parsed = urlsplit(f"{scheme}://{parsed_netloc}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise UrlNormalizationError(
            f"Invalid URL: {raw_url}", "invalid_url", raw_url
        ) from exc

    hostname = parsed.hostname
    if not hostname:
        raise UrlNormalizationError(f"Invalid URL: {raw_url}", "invalid_url", raw_url)

    host = f"[{hostname}]" if ":" in hostname else hostname
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        host = f"{host}:{port}"

    userinfo, _, _ = parsed_netloc.rpartition("@")
    return f"{userinfo}@{host}" if userinfo else host


def canonicalize_url(raw_url: str) -> str:
    """Normalize a URL string into its canonical form.

    Strips the fragment, lower-cases scheme and host, drops default ports,
    trims trailing slashes from the path (a bare path becomes ``/``), and
    sorts query parameters by key so parameter order does not affect identity.

    Args:
        raw_url: URL as supplied by the caller.

    Returns:
        Canonical URL string.

    Raises:
        UrlNormalizationError: ``invalid_url`` if the string is not an absolute
            URL with a host, ``unsupported_protocol`` if the scheme is not
            http or https.

    Examples:
        >>> canonicalize_url("https://Example.com/docs/?b=2&a=1#intro")
        'https://example.com/docs?a=1&b=2'
        >>> canonicalize_url("https://example.com")
        'https://example.com/'
    """
    candidate = raw_url.strip() if isinstance(raw_url, str) else ""
    try:
        parsed = urlsplit(candidate)
    except ValueError as exc:
        raise UrlNormalizationError(
            f"Invalid URL: {raw_url}", "invalid_url", str(raw_url)
        ) from exc

    scheme = parsed.scheme.lower()
    if not scheme:
        raise UrlNormalizationError(f"Invalid URL: {raw_url}", "invalid_url", raw_url)

    if scheme not in SUPPORTED_SCHEMES:
        raise UrlNormalizationError(
            f"Unsupported URL protocol: {scheme}:",
            "unsupported_protocol",
            f"{scheme}:",
        )

    netloc = _build_netloc(scheme, raw_url, parsed.netloc)
    path = _trim_path(parsed.path)

    query = ""
    if parsed.query:
        params = parse_qsl(parsed.query, keep_blank_values=True)
        params.sort(key=lambda pair: pair[0])
        query = urlencode(params)

    return urlunsplit((scheme, netloc, path, query, ""))


def canonicalize_url_list(urls: Iterable[str]) -> list[str]:
    """Canonicalize a batch of URLs, rejecting duplicates.

    Args:
        urls: Raw URLs in caller order.

    Returns:
        Canonical URLs in the same order.

    Raises:
        UrlNormalizationError: On the first URL that fails canonicalization, or
            with issue ``duplicate_url`` when two inputs share a canonical form.
    """
    normalized: list[str] = []
    seen: set[str] = set()

    for candidate in urls:
        canonical = canonicalize_url(candidate)
        if canonical in seen:
            raise UrlNormalizationError(
                f"Duplicate target URL detected: {canonical}",
                "duplicate_url",
                canonical,
            )
        seen.add(canonical)
        normalized.append(canonical)

    return normalized
