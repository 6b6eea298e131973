"""
Crawl orchestrator.

Thin shell over the pipeline pieces: crawl_organization() -> ingest_feed() /
ComplianceGate -> RateLimiter -> scrape_publications_page(), and
process_document() -> document_processor. Every run gets its own session
from the session factory; the fetcher, compliance gate and rate limiter are
shared for the life of the process.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Callable
from urllib.parse import urlsplit
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.crawler import db as db_handler
from app.crawler.compliance import ComplianceGate
from app.crawler.config import CrawlerConfig, load_crawler_config
from app.crawler.context import CrawlOutcome, CrawlRunContext
from app.crawler.document_processor import ProcessResult
from app.crawler.document_processor import process_document as run_document_processing
from app.crawler.errors import FetchError, NotFoundError
from app.crawler.feed_ingester import ingest_feed
from app.crawler.fetcher import HttpFetcher
from app.crawler.organizations import ORGANIZATIONS, get_organization_config
from app.crawler.page_scraper import scrape_publications_page
from app.crawler.rate_limiter import RateLimiter
from app.models import ResearchOrganization

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]


class CrawlOrchestrator:
    """Entry point for every pipeline operation."""

    def __init__(
        self,
        session_factory: SessionFactory,
        fetcher: HttpFetcher,
        gate: ComplianceGate,
        rate_limiter: RateLimiter,
        config: CrawlerConfig,
    ):
        self._session_factory = session_factory
        self._fetcher = fetcher
        self._gate = gate
        self._rate_limiter = rate_limiter
        self._config = config
        self._slug_locks: dict[str, asyncio.Lock] = {}

    @property
    def config(self) -> CrawlerConfig:
        return self._config

    def _lock_for(self, slug: str) -> asyncio.Lock:
        lock = self._slug_locks.get(slug)
        if lock is None:
            lock = self._slug_locks[slug] = asyncio.Lock()
        return lock

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def initialize_organizations(self) -> int:
        """Upsert every configured organization. Returns the number created."""
        created = 0
        async with self._session_factory() as db:
            for org_config in ORGANIZATIONS:
                if await db_handler.upsert_organization(db, org_config):
                    created += 1
                    logger.info("[init] created organization %s", org_config.slug)
            await db.commit()
        logger.info("[init] %s organization(s) configured, %s new", len(ORGANIZATIONS), created)
        return created

    async def get_organizations(self) -> list[ResearchOrganization]:
        async with self._session_factory() as db:
            return await db_handler.list_active_organizations(db)

    # ------------------------------------------------------------------
    # Crawling
    # ------------------------------------------------------------------

    async def crawl_organization(self, slug: str) -> CrawlOutcome:
        """Crawl one organization's feeds and publications index.

        Raises NotFoundError when the organization row or its crawl
        configuration is missing. Feed, compliance, rate and scrape failures
        are collected on the outcome and on the run's CrawlLog.
        """
        async with self._lock_for(slug):
            async with self._session_factory() as db:
                org = await db_handler.get_organization_by_slug(db, slug)
                if org is None:
                    raise NotFoundError(f"Organization not found: {slug}")
                org_config = get_organization_config(slug)
                if org_config is None:
                    raise NotFoundError(f"Configuration not found for: {slug}")

                ctx = CrawlRunContext(db=db, organization_id=org.id, config=org_config)
                ctx.log = await db_handler.start_crawl_log(db, ctx.organization_id, self._config.crawl_type)
                log_id = ctx.log.id
                logger.info("[crawl %s] started (%s feed(s))", slug, len(org_config.rss_feeds))

                await self._ingest_feeds(ctx)
                await self._scrape_publications(ctx)

                try:
                    await db_handler.finish_crawl_log(
                        db, ctx.log, documents_found=ctx.documents_found, errors=ctx.errors,
                    )
                except Exception as exc:
                    logger.error("[crawl %s] could not finish crawl log: %s", slug, exc, exc_info=True)
                    await db_handler.safe_rollback(db)
                    await self._retry_finish_log(ctx, log_id)

                logger.info(
                    "[crawl %s] %s: %s document(s), %s error(s)",
                    slug, ctx.status, ctx.documents_found, len(ctx.errors),
                )
                return ctx.outcome()

    async def _retry_finish_log(self, ctx: CrawlRunContext, log_id: UUID) -> None:
        """One more attempt at the terminal status, in a fresh session."""
        try:
            async with self._session_factory() as db:
                log = await db_handler.finish_crawl_log_by_id(
                    db, log_id, documents_found=ctx.documents_found, errors=ctx.errors,
                )
        except Exception as exc:
            logger.error("[crawl %s] crawl log %s left as started: %s", ctx.slug, log_id, exc, exc_info=True)
            return
        if log is None:
            logger.warning("[crawl %s] crawl log %s no longer exists", ctx.slug, log_id)
        else:
            logger.info("[crawl %s] crawl log %s finished on retry", ctx.slug, log_id)

    async def _ingest_feeds(self, ctx: CrawlRunContext) -> None:
        for feed_url in ctx.config.rss_feeds:
            try:
                count = await ingest_feed(ctx.db, self._fetcher, feed_url, ctx.organization_id, ctx.slug)
            except FetchError as exc:
                ctx.record_error(f"RSS error for {feed_url}: Failed to fetch RSS: {exc}")
                continue
            except Exception as exc:
                logger.error("[crawl %s] feed %s failed: %s", ctx.slug, feed_url, exc, exc_info=True)
                await db_handler.safe_rollback(ctx.db)
                ctx.record_error(f"RSS error for {feed_url}: {exc}")
                continue
            ctx.add_documents(count, source=feed_url)

    async def _scrape_publications(self, ctx: CrawlRunContext) -> None:
        url = ctx.config.publications_url
        policy = ctx.config.crawl_policy

        decision = await self._gate.is_allowed(url, policy)
        if not decision.allowed:
            ctx.record_error(f"URL blocked: {url} - {decision.reason}")
            return

        host = urlsplit(url).netloc
        if not self._rate_limiter.try_acquire(host, policy.rate_limit):
            logger.info(
                "[crawl %s] %s already has %s request(s) this window (limit %s)",
                ctx.slug, host, self._rate_limiter.in_flight(host), policy.rate_limit,
            )
            ctx.record_error(f"Rate limited for {host}")
            return

        try:
            count = await scrape_publications_page(
                ctx.db,
                self._fetcher,
                self._gate,
                url,
                ctx.organization_id,
                ctx.slug,
                policy,
                max_links=self._config.max_links_per_page,
            )
        except FetchError as exc:
            ctx.record_error(f"Scrape error for {url}: Failed to fetch page: {exc}")
            return
        except Exception as exc:
            logger.error("[crawl %s] scrape of %s failed: %s", ctx.slug, url, exc, exc_info=True)
            await db_handler.safe_rollback(ctx.db)
            ctx.record_error(f"Scrape error for {url}: {exc}")
            return
        ctx.add_documents(count, source=url)

    async def crawl_all_organizations(self) -> dict[str, CrawlOutcome]:
        """Crawl every active organization; one failure never stops the others."""
        organizations = await self.get_organizations()
        slugs = [org.slug for org in organizations]
        semaphore = asyncio.Semaphore(max(1, self._config.max_concurrent_organizations))

        async def _crawl(slug: str) -> CrawlOutcome:
            async with semaphore:
                try:
                    return await self.crawl_organization(slug)
                except Exception as exc:
                    logger.error("[crawl %s] aborted: %s", slug, exc, exc_info=True)
                    return CrawlOutcome(0, [str(exc)])

        outcomes = await asyncio.gather(*(_crawl(slug) for slug in slugs))
        total = sum(outcome.documents_found for outcome in outcomes)
        logger.info("[crawl] %s organization(s) crawled, %s new document(s)", len(slugs), total)
        return dict(zip(slugs, outcomes))

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def process_document(self, document_id: UUID) -> ProcessResult:
        async with self._session_factory() as db:
            return await run_document_processing(
                db,
                self._fetcher,
                document_id,
                chunk_size=self._config.chunk_size,
                overlap=self._config.chunk_overlap,
            )

    async def process_pending_documents(self, limit: int | None = None) -> dict[str, ProcessResult]:
        """Process up to *limit* pending documents, oldest first."""
        if limit is None:
            limit = self._config.process_batch_size
        async with self._session_factory() as db:
            document_ids = await db_handler.list_pending_document_ids(db, limit)

        results: dict[str, ProcessResult] = {}
        for document_id in document_ids:
            try:
                results[str(document_id)] = await self.process_document(document_id)
            except NotFoundError as exc:
                # deleted between listing and processing
                logger.warning("[doc %s] %s", document_id, exc)
                results[str(document_id)] = ProcessResult(0, str(exc))
            except Exception as exc:
                logger.error("[doc %s] processing aborted: %s", document_id, exc, exc_info=True)
                results[str(document_id)] = ProcessResult(0, f"Processing error: {exc}")
        if document_ids:
            processed = sum(1 for r in results.values() if r.error is None)
            logger.info("[process] %s/%s pending document(s) processed", processed, len(document_ids))
        return results

    # ------------------------------------------------------------------
    # Stats / lifecycle
    # ------------------------------------------------------------------

    async def get_crawl_stats(self) -> db_handler.CrawlStats:
        async with self._session_factory() as db:
            return await db_handler.get_crawl_stats(db)

    async def close(self) -> None:
        await self._fetcher.close()


def build_orchestrator(
    config: CrawlerConfig | None = None,
    *,
    session_factory: SessionFactory | None = None,
) -> CrawlOrchestrator:
    """Wire the orchestrator with process-wide fetcher, gate and limiter."""
    if config is None:
        config = load_crawler_config()
    if session_factory is None:
        from app.database import AsyncSessionLocal
        session_factory = AsyncSessionLocal
    fetcher = HttpFetcher(config)
    gate = ComplianceGate(fetcher, cache_ttl_seconds=config.robots_cache_ttl_seconds)
    limiter = RateLimiter(window_seconds=config.rate_window_seconds)
    return CrawlOrchestrator(session_factory, fetcher, gate, limiter, config)
