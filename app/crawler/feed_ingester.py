"""
Feed ingester: RSS items -> pending ResearchDocument rows.

Dedup key is sha256(link); re-ingesting an unchanged feed inserts nothing.
"""
from __future__ import annotations

import logging
from datetime import datetime
from urllib.parse import urlsplit
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler import db as db_handler
from app.crawler.errors import CrawlerError, ParseError
from app.crawler.fetcher import FEED_ACCEPT, HttpFetcher
from app.crawler.organizations import get_trust_weight
from app.crawler.parsing import extract_feed_items, parse_publication_date, url_hash

logger = logging.getLogger(__name__)


def _publication_date(raw: str | None, link: str) -> datetime | None:
    if not raw:
        return None
    try:
        return parse_publication_date(raw)
    except ParseError as exc:
        logger.debug("[feed] %s: %s; storing without a date", link, exc)
        return None


def _is_fetchable(link: str) -> bool:
    """Absolute http(s) URL with a host and no whitespace or control characters."""
    if any(not ch.isprintable() or ch.isspace() for ch in link):
        return False
    parts = urlsplit(link)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


async def ingest_feed(
    db: AsyncSession,
    fetcher: HttpFetcher,
    feed_url: str,
    organization_id: UUID,
    source_type: str,
) -> int:
    """Fetch *feed_url* and insert unseen items. Returns the number inserted.

    Raises FetchError when the feed cannot be retrieved.
    """
    body = await fetcher.fetch_text(feed_url, accept=FEED_ACCEPT)
    items = extract_feed_items(body)
    confidence = get_trust_weight(source_type)

    inserted = 0
    for item in items:
        if not item.title or not item.link:
            continue
        if not _is_fetchable(item.link):
            logger.info("[feed] %s: skipping item with unusable link %r", feed_url, item.link)
            continue
        created = await db_handler.insert_document_if_new(
            db,
            organization_id=organization_id,
            source_type=source_type,
            title=item.title,
            url=item.link,
            hash_sha256=url_hash(item.link),
            document_type="insight",
            confidence_score=confidence,
            publication_date=_publication_date(item.pub_date, item.link),
            summary=item.description,
        )
        if created:
            inserted += 1

    if not await db_handler.safe_commit(db):
        raise CrawlerError(f"could not persist documents from {feed_url}")
    logger.info("[feed] %s: %s item(s), %s new", feed_url, len(items), inserted)
    return inserted
