"""
Document processor: fetch one document, extract its text, write chunks.

pending -> processed when chunks are written, pending -> failed when the
fetch or processing fails. There is no automatic retry; a failed document is
re-attempted by a later manual or scheduled run.
"""
from __future__ import annotations

import logging
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler import db as db_handler
from app.crawler.errors import FetchError, NotFoundError
from app.crawler.fetcher import HTML_ACCEPT, HttpFetcher
from app.crawler.parsing import extract_text_content
from app.services.chunking import chunk_text, has_citations, has_metrics

logger = logging.getLogger(__name__)


class ProcessResult(NamedTuple):
    chunks: int
    error: str | None = None


async def _mark_failed(db: AsyncSession, document, doc_id: UUID) -> None:
    try:
        await db_handler.set_processing_status(db, document, "failed")
        await db_handler.safe_commit(db)
    except Exception as exc:
        logger.error("[doc %s] could not persist failed status: %s", doc_id, exc, exc_info=True)
        await db_handler.safe_rollback(db)


async def process_document(
    db: AsyncSession,
    fetcher: HttpFetcher,
    document_id: UUID,
    *,
    chunk_size: int = 1000,
    overlap: int = 200,
) -> ProcessResult:
    """Fetch, extract and chunk one document.

    Raises NotFoundError if the document does not exist. Every other failure
    is returned as ``ProcessResult(0, <message>)`` with the document marked
    failed.
    """
    document = await db_handler.get_document(db, document_id)
    if document is None:
        raise NotFoundError(f"Document not found: {document_id}")
    doc_id = document.id

    if document.processing_status == "processed":
        existing = await db_handler.count_chunks(db, doc_id)
        logger.info("[doc %s] already processed (%s chunks); skipping", doc_id, existing)
        return ProcessResult(existing)

    try:
        page_html = await fetcher.fetch_text(document.url, accept=HTML_ACCEPT)
    except FetchError as exc:
        logger.warning("[doc %s] fetch failed for %s: %s", doc_id, document.url, exc)
        await _mark_failed(db, document, doc_id)
        return ProcessResult(0, f"Failed to fetch: {exc}")

    try:
        text = extract_text_content(page_html)
        chunks = chunk_text(text, chunk_size, overlap)
        for chunk in chunks:
            chunk["has_metrics"] = has_metrics(chunk["text"])
            chunk["has_citations"] = has_citations(chunk["text"])

        written = await db_handler.persist_chunks(db, doc_id, chunks)
        await db_handler.set_processing_status(db, document, "processed")
        await db.commit()
    except Exception as exc:
        logger.error("[doc %s] processing failed: %s", doc_id, exc, exc_info=True)
        await db_handler.safe_rollback(db)
        await _mark_failed(db, document, doc_id)
        return ProcessResult(0, f"Processing error: {exc}")

    logger.info("[doc %s] processed: %s chars -> %s chunk(s)", doc_id, len(text), written)
    return ProcessResult(written)
