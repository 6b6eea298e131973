"""Pytest fixtures for research crawler tests."""
from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from app.crawler.config import CrawlerConfig
from app.crawler.fetcher import HttpFetcher


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDocumentStore:
    """In-memory stand-in for the document half of ``app.crawler.db``.

    Keyed by hash like the unique constraint on research_documents.
    """

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.commits = 0

    async def insert_document_if_new(self, db, *, hash_sha256: str, **fields) -> bool:
        if hash_sha256 in self.rows:
            return False
        self.rows[hash_sha256] = fields
        return True

    async def safe_commit(self, db) -> bool:
        self.commits += 1
        return True


def session_factory_for(db):
    """Session factory whose sessions all yield *db*."""
    @asynccontextmanager
    async def _session():
        yield db

    return _session


def mock_session():
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    return db


def make_fetcher(handler, config: CrawlerConfig | None = None) -> HttpFetcher:
    """HttpFetcher whose network is *handler* (request -> httpx.Response)."""
    return HttpFetcher(config or CrawlerConfig(), transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()


@pytest.fixture
def crawler_config() -> CrawlerConfig:
    return CrawlerConfig()


@pytest.fixture
def fetcher_for():
    """Build an HttpFetcher around a request handler."""
    return make_fetcher


@pytest.fixture
def db():
    return mock_session()


@pytest.fixture
def session_factory(db):
    return session_factory_for(db)
