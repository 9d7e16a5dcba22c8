"""Tests for BeautifulSoup-based page parsing."""

import pytest
from bs4 import ParserRejectedMarkup

from micrawl.drivers.html import (
    extract_metadata,
    extract_same_origin_links,
    extract_text,
    extract_title,
    parse_html,
)

PAGE_URL = "https://docs.example.com/guide/intro"

PAGE = """
<html>
  <head>
    <title>  Intro &amp; Setup  </title>
    <meta name="description" content=" Getting started ">
    <meta name="keywords" content="python, scraping, , docs">
    <meta property="article:author" content="Ada">
    <link rel="canonical" href="/guide/intro#top">
  </head>
  <body>
    <a href="/guide/next">Next</a>
    <a href="next#section">Relative</a>
    <a href="/guide/next#again">Duplicate with fragment</a>
    <a href="https://other.example.com/">Other origin</a>
    <a href="http://docs.example.com/insecure">Other scheme</a>
    <a href="mailto:team@example.com">Mail</a>
    <a href="">Empty</a>
  </body>
</html>
"""


def test_extract_title_decodes_and_trims() -> None:
    assert extract_title(parse_html(PAGE)) == "Intro & Setup"


def test_extract_title_missing() -> None:
    assert extract_title(parse_html("<p>no title</p>")) is None


def test_same_origin_links_are_resolved_and_deduplicated() -> None:
    links = extract_same_origin_links(parse_html(PAGE), PAGE_URL)

    assert links == (
        "https://docs.example.com/guide/next",
    )


def test_same_origin_links_respect_default_port() -> None:
    soup = parse_html('<a href="https://docs.example.com:443/a">a</a>')
    assert extract_same_origin_links(soup, PAGE_URL) == ("https://docs.example.com:443/a",)


def test_extract_metadata_fields() -> None:
    metadata = extract_metadata(parse_html(PAGE), PAGE_URL)

    assert metadata.description == "Getting started"
    assert metadata.keywords == ("python", "scraping", "docs")
    assert metadata.author == "Ada"
    assert metadata.canonical_url == "https://docs.example.com/guide/intro"
    assert metadata.same_origin_links == ("https://docs.example.com/guide/next",)


def test_extract_metadata_falls_back_to_open_graph() -> None:
    html = '<meta property="og:description" content="From OG"><meta name="author" content="Bo">'
    metadata = extract_metadata(parse_html(html), PAGE_URL)

    assert metadata.description == "From OG"
    assert metadata.author == "Bo"
    assert metadata.keywords is None
    assert metadata.canonical_url is None


def test_extract_metadata_blank_keywords_are_absent() -> None:
    metadata = extract_metadata(parse_html('<meta name="keywords" content=" , ,">'), PAGE_URL)
    assert metadata.keywords is None


def test_extract_text_drops_scripts_and_collapses_whitespace() -> None:
    html = """
    <html><head><style>p { color: red }</style></head>
    <body><script>var x = 1;</script><h1>Hello</h1>
    <p>  world
       again </p><noscript>enable js</noscript></body></html>
    """
    assert extract_text(html) == "Hello world again"


def test_extract_text_falls_back_when_parser_rejects_markup(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def reject(html: str) -> None:
        raise ParserRejectedMarkup("expected name token")

    monkeypatch.setattr("micrawl.drivers.html.parse_html", reject)
    html = "<p>Kept <b>text</b></p><SCRIPT>drop()</script>\n<br/>tail"

    assert extract_text(html) == "Kept text tail"
