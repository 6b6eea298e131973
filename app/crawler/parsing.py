"""
Scan-based extraction from feeds and HTML pages.

Feed items and anchors are pulled out with bounded regular-expression scans,
not a DOM: no JavaScript, no layout. Callers only see
:func:`extract_feed_items`, :func:`extract_links` and
:func:`extract_text_content`, so a structural parser can replace any of them
without touching the pipeline.

Nothing here raises on malformed input; bad markup yields fewer (or zero)
items. :func:`parse_publication_date` is the exception and raises
:class:`ParseError`, which the feed ingester absorbs.
"""
from __future__ import annotations

import hashlib
import html
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import NamedTuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from app.crawler.errors import ParseError

PUBLICATION_MARKERS = ("/insight", "/publication", "/report", "/article")
NON_CONTENT_TAGS = ["script", "style", "nav", "header", "footer", "aside"]

_ITEM_RE = re.compile(r"<item(?:\s[^>]*)?>(.*?)</item>", re.IGNORECASE | re.DOTALL)
_ANCHOR_RE = re.compile(
    r"""<a\b[^>]*?\bhref\s*=\s*["']([^"']+)["'][^>]*>([^<]*)</a>""",
    re.IGNORECASE,
)
_ENTITY_RE = re.compile(r"&[a-z]+;", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_TAG_PATTERNS: dict[str, re.Pattern[str]] = {}


class FeedItem(NamedTuple):
    title: str | None
    link: str | None
    pub_date: str | None
    description: str | None = None


class Link(NamedTuple):
    url: str
    title: str


def _tag_pattern(tag: str) -> re.Pattern[str]:
    pattern = _TAG_PATTERNS.get(tag)
    if pattern is None:
        t = re.escape(tag)
        pattern = re.compile(
            rf"<{t}(?:\s[^>]*)?>\s*<!\[CDATA\[(.*?)\]\]>\s*</{t}>|<{t}(?:\s[^>]*)?>([^<]*)</{t}>",
            re.IGNORECASE | re.DOTALL,
        )
        _TAG_PATTERNS[tag] = pattern
    return pattern


def extract_tag(xml: str, tag: str) -> str | None:
    """Body of the first ``<tag>`` in *xml*; CDATA bodies are returned verbatim."""
    match = _tag_pattern(tag).search(xml)
    if not match:
        return None
    if match.group(1) is not None:
        value = match.group(1).strip()
    else:
        value = html.unescape(match.group(2)).strip()
    return value or None


def extract_feed_items(text: str) -> list[FeedItem]:
    """Every ``<item>`` block of an RSS document, in document order."""
    if not text:
        return []
    items: list[FeedItem] = []
    for match in _ITEM_RE.finditer(text):
        block = match.group(1)
        items.append(FeedItem(
            title=extract_tag(block, "title"),
            link=extract_tag(block, "link"),
            pub_date=extract_tag(block, "pubDate"),
            description=extract_tag(block, "description"),
        ))
    return items


def _resolve_href(href: str, scheme: str, netloc: str) -> str | None:
    href = html.unescape(href.strip())
    if href.startswith("//"):
        return f"{scheme}:{href}"
    if href.startswith("/"):
        return f"{scheme}://{netloc}{href}"
    if href.lower().startswith(("http://", "https://")):
        return href
    # relative paths, fragments, mailto:, javascript:
    return None


def extract_links(page_html: str, base_url: str) -> list[Link]:
    """Same-host publication links on *page_html*, de-duplicated, in page order."""
    if not page_html:
        return []
    base = urlsplit(base_url)
    base_host = base.netloc.lower()
    seen: set[str] = set()
    links: list[Link] = []
    for match in _ANCHOR_RE.finditer(page_html):
        url = _resolve_href(match.group(1), base.scheme, base.netloc)
        if url is None or url in seen:
            continue
        parts = urlsplit(url)
        if parts.netloc.lower() != base_host:
            continue
        if not any(marker in parts.path for marker in PUBLICATION_MARKERS):
            continue
        seen.add(url)
        title = _WHITESPACE_RE.sub(" ", html.unescape(match.group(2))).strip()
        links.append(Link(url=url, title=title))
    return links


def extract_text_content(page_html: str) -> str:
    """Flat plain text of a page with navigation/boilerplate blocks removed."""
    if not page_html or not page_html.strip():
        return ""
    # Named entities become plain spaces before the parser can decode them
    page_html = _ENTITY_RE.sub(" ", page_html)
    soup = BeautifulSoup(page_html, "html.parser")
    for tag in soup(NON_CONTENT_TAGS):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def url_hash(url: str) -> str:
    """Dedup key for a document: sha256 of its URL, hex encoded."""
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def infer_document_type(title: str) -> str:
    lower = (title or "").lower()
    if "report" in lower:
        return "report"
    if "benchmark" in lower:
        return "benchmark"
    if "analysis" in lower:
        return "analysis"
    if "whitepaper" in lower or "white paper" in lower:
        return "whitepaper"
    return "insight"


def parse_publication_date(value: str) -> datetime:
    """RFC 822 (RSS) or ISO-8601 date as naive UTC. Raises ParseError otherwise."""
    raw = (value or "").strip()
    if not raw:
        raise ParseError("empty publication date")
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ParseError(f"unrecognised publication date: {raw!r}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
