"""
Research crawler entry-point.

Thin shell: main() -> argparse subcommand -> CrawlOrchestrator.
All pipeline logic lives in ``app.crawler.{orchestrator, feed_ingester,
page_scraper, document_processor}``. Configuration via ``app.crawler.config``.

    python -m app.crawler.main init
    python -m app.crawler.main crawl mckinsey
    python -m app.crawler.main crawl --all
    python -m app.crawler.main process <document_id>
    python -m app.crawler.main process --pending
    python -m app.crawler.main stats
    python -m app.crawler.main worker
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from uuid import UUID

from app.crawler.config import CrawlerConfig, load_crawler_config
from app.crawler.errors import NotFoundError
from app.crawler.orchestrator import CrawlOrchestrator, build_orchestrator

logger = logging.getLogger(__name__)


def _configure_logging(cfg: CrawlerConfig) -> None:
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format=cfg.log_format,
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# worker_loop
# ---------------------------------------------------------------------------

async def worker_loop(orchestrator: CrawlOrchestrator, *, max_polls: int | None = None):
    """Poll for pending documents and process them in batches."""
    cfg = orchestrator.config
    logger.info("Crawler worker starting (batch size %s)...", cfg.process_batch_size)

    poll_count = 0
    idle_polls = 0
    while max_polls is None or poll_count < max_polls:
        poll_count += 1
        try:
            results = await orchestrator.process_pending_documents(cfg.process_batch_size)
            if results:
                idle_polls = 0
                continue
            idle_polls += 1
            if idle_polls % 10 == 0:
                logger.debug("No pending documents (poll #%s)", idle_polls)
            await asyncio.sleep(cfg.poll_interval_seconds)
        except Exception as e:
            logger.error("Error in worker loop: %s", e, exc_info=True)
            await asyncio.sleep(cfg.error_sleep_seconds)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

async def _cmd_init(orchestrator: CrawlOrchestrator, args) -> int:
    if getattr(args, "create_tables", False):
        from app.init_db import init_db
        await init_db(seed=False)
    created = await orchestrator.initialize_organizations()
    print(f"Initialized organizations ({created} new)")
    return 0


async def _cmd_crawl(orchestrator: CrawlOrchestrator, args) -> int:
    if args.all:
        outcomes = await orchestrator.crawl_all_organizations()
    elif args.slug:
        outcomes = {args.slug: await orchestrator.crawl_organization(args.slug)}
    else:
        print("crawl: give an organization slug or --all", file=sys.stderr)
        return 2
    for slug, outcome in outcomes.items():
        print(f"{slug}: {outcome.documents_found} new document(s), {len(outcome.errors)} error(s)")
        for error in outcome.errors:
            print(f"  - {error}")
    return 0


async def _cmd_process(orchestrator: CrawlOrchestrator, args) -> int:
    if args.pending:
        results = await orchestrator.process_pending_documents(args.limit)
    elif args.document_id:
        try:
            document_id = UUID(args.document_id)
        except ValueError:
            print(f"Invalid document id: {args.document_id}", file=sys.stderr)
            return 2
        results = {str(document_id): await orchestrator.process_document(document_id)}
    else:
        print("process: give a document id or --pending", file=sys.stderr)
        return 2
    failed = 0
    for document_id, result in results.items():
        if result.error:
            failed += 1
            print(f"{document_id}: failed ({result.error})")
        else:
            print(f"{document_id}: {result.chunks} chunk(s)")
    return 1 if failed else 0


async def _cmd_stats(orchestrator: CrawlOrchestrator, args) -> int:
    stats = await orchestrator.get_crawl_stats()
    for name, value in stats._asdict().items():
        print(f"{name}: {value}")
    return 0


async def _cmd_worker(orchestrator: CrawlOrchestrator, args) -> int:
    await worker_loop(orchestrator)
    return 0


_COMMANDS = {
    "init": _cmd_init,
    "crawl": _cmd_crawl,
    "process": _cmd_process,
    "stats": _cmd_stats,
    "worker": _cmd_worker,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="research-crawler", description="Research content crawler")
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Seed the configured research organizations")
    init.add_argument("--create-tables", action="store_true", help="Create missing tables first")

    crawl = sub.add_parser("crawl", help="Crawl one organization or all of them")
    crawl.add_argument("slug", nargs="?", help="Organization slug, e.g. mckinsey")
    crawl.add_argument("--all", action="store_true", help="Crawl every active organization")

    process = sub.add_parser("process", help="Fetch and chunk discovered documents")
    process.add_argument("document_id", nargs="?", help="Document UUID")
    process.add_argument("--pending", action="store_true", help="Process pending documents, oldest first")
    process.add_argument("--limit", type=int, default=None, help="Maximum documents with --pending")

    sub.add_parser("stats", help="Print crawl statistics")
    sub.add_parser("worker", help="Poll for pending documents and process them")
    return parser


async def run(args, *, orchestrator: CrawlOrchestrator | None = None) -> int:
    """Run one parsed command and return the process exit code."""
    if orchestrator is None:
        orchestrator = build_orchestrator()
    try:
        return await _COMMANDS[args.command](orchestrator, args)
    except NotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1
    finally:
        await orchestrator.close()


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None):
    """Entry point for the crawler CLI."""
    cfg = load_crawler_config()
    _configure_logging(cfg)
    args = build_parser().parse_args(argv)
    try:
        code = asyncio.run(run(args, orchestrator=build_orchestrator(cfg)))
    except KeyboardInterrupt:
        logger.info("Crawler shutting down...")
        code = 0
    except Exception as e:
        logger.error("Fatal error in crawler: %s", e, exc_info=True)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
