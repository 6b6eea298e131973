"""
Crawler database handler.

All pipeline persistence goes through this module: organizations, documents,
chunks, crawl logs, stats. Ingesters, the processor and the orchestrator
never call ``db.add()`` or build queries directly.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, NamedTuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler.organizations import OrganizationConfig
from app.models import CrawlLog, DocumentChunk, ResearchDocument, ResearchOrganization

logger = logging.getLogger(__name__)


def _utc_now_naive() -> datetime:
    """Naive UTC datetime for DB (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CrawlStats(NamedTuple):
    organizations: int
    documents: int
    pending_documents: int
    processed_documents: int
    chunks: int


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------

async def get_organization_by_slug(db: AsyncSession, slug: str) -> ResearchOrganization | None:
    result = await db.execute(
        select(ResearchOrganization).where(ResearchOrganization.slug == slug).limit(1)
    )
    return result.scalar_one_or_none()


async def list_active_organizations(db: AsyncSession) -> list[ResearchOrganization]:
    result = await db.execute(
        select(ResearchOrganization)
        .where(ResearchOrganization.is_active.is_(True))
        .order_by(ResearchOrganization.slug)
    )
    return list(result.scalars().all())


async def upsert_organization(db: AsyncSession, config: OrganizationConfig) -> bool:
    """Insert or refresh the row for *config.slug*. Returns True when created.

    Caller should commit.
    """
    org = await get_organization_by_slug(db, config.slug)
    if org is None:
        db.add(ResearchOrganization(
            name=config.name,
            slug=config.slug,
            org_type=config.org_type,
            tier=config.tier,
            trust_weight=config.trust_weight,
            official_website=config.website,
            verified_website=config.website,
            website_confidence=1.0,
            crawl_policy=config.crawl_policy.to_dict(),
            is_active=True,
        ))
        await db.flush()
        return True

    org.name = config.name
    org.org_type = config.org_type
    org.tier = config.tier
    org.trust_weight = config.trust_weight
    org.official_website = config.website
    org.crawl_policy = config.crawl_policy.to_dict()
    await db.flush()
    return False


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

async def document_exists(db: AsyncSession, hash_sha256: str) -> bool:
    result = await db.execute(
        select(ResearchDocument.id).where(ResearchDocument.hash_sha256 == hash_sha256).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def insert_document_if_new(
    db: AsyncSession,
    *,
    organization_id: UUID,
    source_type: str,
    title: str,
    url: str,
    hash_sha256: str,
    document_type: str = "insight",
    confidence_score: float | None = None,
    publication_date: datetime | None = None,
    summary: str | None = None,
) -> bool:
    """Insert a pending document unless its hash is already stored.

    Returns True when a row was inserted. A unique-constraint violation (the
    same URL discovered concurrently) counts as "already exists". Caller
    should commit.
    """
    if await document_exists(db, hash_sha256):
        return False
    try:
        async with db.begin_nested():
            db.add(ResearchDocument(
                organization_id=organization_id,
                source_type=source_type,
                title=title,
                summary=summary,
                document_type=document_type,
                url=url,
                hash_sha256=hash_sha256,
                publication_date=publication_date,
                confidence_score=confidence_score,
                processing_status="pending",
            ))
            await db.flush()
    except IntegrityError:
        logger.info("[db] document %s inserted concurrently; skipping", hash_sha256[:12])
        return False
    return True


async def get_document(db: AsyncSession, document_id: UUID) -> ResearchDocument | None:
    result = await db.execute(select(ResearchDocument).where(ResearchDocument.id == document_id))
    return result.scalar_one_or_none()


async def list_pending_document_ids(db: AsyncSession, limit: int) -> list[UUID]:
    result = await db.execute(
        select(ResearchDocument.id)
        .where(ResearchDocument.processing_status == "pending")
        .order_by(ResearchDocument.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())


async def set_processing_status(db: AsyncSession, document: ResearchDocument, status: str) -> None:
    """Set *document*.processing_status. Caller should commit."""
    document.processing_status = status
    document.updated_at = _utc_now_naive()
    await db.flush()


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------

async def persist_chunks(db: AsyncSession, document_id: UUID, chunks: list[dict[str, Any]]) -> int:
    """Add one DocumentChunk per chunk dict. Returns rows added; caller should commit."""
    rows = [
        DocumentChunk(
            document_id=document_id,
            chunk_index=c["chunk_index"],
            text=c["text"],
            start_offset=c["start_offset"],
            end_offset=c["end_offset"],
            has_metrics=bool(c.get("has_metrics")),
            has_citations=bool(c.get("has_citations")),
        )
        for c in chunks
    ]
    db.add_all(rows)
    await db.flush()
    return len(rows)


async def count_chunks(db: AsyncSession, document_id: UUID) -> int:
    result = await db.execute(
        select(func.count()).select_from(DocumentChunk).where(DocumentChunk.document_id == document_id)
    )
    return int(result.scalar_one() or 0)


# ---------------------------------------------------------------------------
# Crawl logs
# ---------------------------------------------------------------------------

async def start_crawl_log(db: AsyncSession, organization_id: UUID, crawl_type: str) -> CrawlLog:
    """Insert and commit a 'started' CrawlLog row."""
    log = CrawlLog(
        organization_id=organization_id,
        crawl_type=crawl_type,
        status="started",
        started_at=_utc_now_naive(),
        documents_found=0,
    )
    db.add(log)
    await db.commit()
    return log


async def finish_crawl_log(
    db: AsyncSession,
    log: CrawlLog,
    *,
    documents_found: int,
    errors: list[str],
) -> CrawlLog:
    """Write the terminal status onto *log* and commit. The row is not touched again."""
    log.status = "completed_with_errors" if errors else "completed"
    log.documents_found = documents_found
    log.errors = list(errors) if errors else None
    log.completed_at = _utc_now_naive()
    await db.commit()
    return log


async def finish_crawl_log_by_id(
    db: AsyncSession,
    log_id: UUID,
    *,
    documents_found: int,
    errors: list[str],
) -> CrawlLog | None:
    """Reload the CrawlLog row in *db* and finish it. None if the row is gone."""
    log = await db.get(CrawlLog, log_id)
    if log is None:
        return None
    return await finish_crawl_log(db, log, documents_found=documents_found, errors=errors)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

async def get_crawl_stats(db: AsyncSession) -> CrawlStats:
    async def _count(model, *where) -> int:
        stmt = select(func.count()).select_from(model)
        if where:
            stmt = stmt.where(*where)
        result = await db.execute(stmt)
        return int(result.scalar_one() or 0)

    return CrawlStats(
        organizations=await _count(ResearchOrganization),
        documents=await _count(ResearchDocument),
        pending_documents=await _count(ResearchDocument, ResearchDocument.processing_status == "pending"),
        processed_documents=await _count(ResearchDocument, ResearchDocument.processing_status == "processed"),
        chunks=await _count(DocumentChunk),
    )


# ---------------------------------------------------------------------------
# Commit / rollback helpers
# ---------------------------------------------------------------------------

async def safe_commit(db: AsyncSession) -> bool:
    """Commit; on failure rollback and return False."""
    try:
        await db.commit()
        return True
    except Exception as exc:
        logger.error("[db] commit failed, rolling back: %s", exc, exc_info=True)
        await db.rollback()
        return False


async def safe_rollback(db: AsyncSession) -> None:
    """Rollback; never raises."""
    try:
        await db.rollback()
    except Exception as exc:
        logger.error("[db] rollback failed: %s", exc, exc_info=True)
