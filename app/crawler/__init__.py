# Research crawler internals.
# Pipeline: organizations -> compliance/rate gates -> feed + page ingestion ->
# document processing (text extraction, chunking). Orchestrated by
# ``app.crawler.orchestrator.CrawlOrchestrator``.

# Re-export entry-points so callers can ``from app.crawler import build_orchestrator``.
from app.crawler.orchestrator import CrawlOrchestrator, build_orchestrator  # noqa: F401
from app.crawler.main import worker_loop  # noqa: F401
