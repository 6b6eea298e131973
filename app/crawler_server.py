"""
HTTP shell for the research crawler.

Exposes the orchestrator's operations for schedulers and operators; every
route delegates straight to CrawlOrchestrator.
Use: uvicorn app.crawler_server:app --host 0.0.0.0 --port 8080
"""
import logging
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from app.crawler.config import load_crawler_config
from app.crawler.errors import NotFoundError
from app.crawler.orchestrator import CrawlOrchestrator, build_orchestrator

_cfg = load_crawler_config()
logging.basicConfig(
    level=getattr(logging, _cfg.log_level.upper(), logging.INFO),
    format=_cfg.log_format,
)
logger = logging.getLogger(__name__)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

_orchestrator: CrawlOrchestrator | None = None


class CrawlResponse(BaseModel):
    organization: str
    documents_found: int
    errors: list[str]


class ProcessResponse(BaseModel):
    document_id: str
    chunks: int
    error: str | None = None


def get_orchestrator() -> CrawlOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(_cfg)
    return _orchestrator


async def close_orchestrator():
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None
        logger.info("Crawler HTTP client closed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared orchestrator (and its HTTP client) on shutdown."""
    yield
    await close_orchestrator()


app = FastAPI(title="Research Crawler", version="0.1.0", lifespan=lifespan)


@app.get("/health")
def health():
    return {"status": "ok", "service": "research-crawler"}


@app.get("/stats")
async def crawl_stats(orchestrator: CrawlOrchestrator = Depends(get_orchestrator)):
    stats = await orchestrator.get_crawl_stats()
    return stats._asdict()


@app.post("/organizations/initialize")
async def initialize_organizations(orchestrator: CrawlOrchestrator = Depends(get_orchestrator)):
    created = await orchestrator.initialize_organizations()
    return {"status": "ok", "created": created}


@app.post("/organizations/{slug}/crawl", response_model=CrawlResponse)
async def crawl_organization(slug: str, orchestrator: CrawlOrchestrator = Depends(get_orchestrator)):
    try:
        outcome = await orchestrator.crawl_organization(slug)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return CrawlResponse(organization=slug, documents_found=outcome.documents_found, errors=outcome.errors)


@app.post("/documents/{document_id}/process", response_model=ProcessResponse)
async def process_document(document_id: str, orchestrator: CrawlOrchestrator = Depends(get_orchestrator)):
    try:
        doc_uuid = UUID(document_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid document ID")
    try:
        result = await orchestrator.process_document(doc_uuid)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ProcessResponse(document_id=document_id, chunks=result.chunks, error=result.error)
