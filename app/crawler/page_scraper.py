"""
Page scraper: an organization's publications index -> pending ResearchDocument rows.

Every candidate link is re-checked against the compliance gate; a link found
on an allowed index page is not allowed by association.
"""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler import db as db_handler
from app.crawler.compliance import ComplianceGate
from app.crawler.errors import CrawlerError
from app.crawler.fetcher import HTML_ACCEPT, HttpFetcher
from app.crawler.organizations import CrawlPolicy, get_trust_weight
from app.crawler.parsing import extract_links, infer_document_type, url_hash

logger = logging.getLogger(__name__)

UNTITLED = "Untitled Document"


async def scrape_publications_page(
    db: AsyncSession,
    fetcher: HttpFetcher,
    gate: ComplianceGate,
    url: str,
    organization_id: UUID,
    source_type: str,
    policy: CrawlPolicy,
    *,
    max_links: int = 20,
) -> int:
    """Fetch the index page at *url* and insert unseen publication links.

    Returns the number of documents inserted. Raises FetchError when the page
    cannot be retrieved.
    """
    page_html = await fetcher.fetch_text(url, accept=HTML_ACCEPT)
    candidates = extract_links(page_html, url)[:max_links]
    confidence = get_trust_weight(source_type)

    inserted = 0
    denied = 0
    for link in candidates:
        decision = await gate.is_allowed(link.url, policy)
        if not decision.allowed:
            denied += 1
            logger.debug("[scrape] skip %s: %s", link.url, decision.reason)
            continue
        title = link.title or UNTITLED
        created = await db_handler.insert_document_if_new(
            db,
            organization_id=organization_id,
            source_type=source_type,
            title=title,
            url=link.url,
            hash_sha256=url_hash(link.url),
            document_type=infer_document_type(link.title),
            confidence_score=confidence,
        )
        if created:
            inserted += 1

    if not await db_handler.safe_commit(db):
        raise CrawlerError(f"could not persist documents from {url}")
    logger.info(
        "[scrape] %s: %s candidate(s), %s denied, %s new",
        url, len(candidates), denied, inserted,
    )
    return inserted
