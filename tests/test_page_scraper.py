"""Unit tests for app.crawler.page_scraper."""
from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import httpx
import pytest

from app.crawler.compliance import ComplianceDecision, ComplianceGate
from app.crawler.errors import CrawlerError, FetchError
from app.crawler.organizations import CrawlPolicy
from app.crawler.page_scraper import scrape_publications_page
from app.crawler.parsing import url_hash

INDEX_URL = "https://www.bcg.com/publications"

INDEX_PAGE = """
<html><body>
<a href="/publications/2024/global-report">Global Banking Report 2024</a>
<a href="/insights/pricing-benchmark">Pricing benchmark</a>
<a href="/careers/insights-team">Join our insights team</a>
<a href="/articles/untitled"></a>
<a href="/about">About</a>
<a href="https://elsewhere.com/insights/x">External</a>
</body></html>
"""

POLICY = CrawlPolicy(deny_paths=("/careers",), obey_robots_txt=False)


def _page_fetcher(fetcher_for, body=INDEX_PAGE, status=200):
    seen: list = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((str(request.url), request.headers.get("accept")))
        return httpx.Response(status, text=body)

    return fetcher_for(handler), seen


@pytest.mark.asyncio
async def test_scrape_inserts_allowed_links_once(store, fetcher_for):
    fetcher, seen = _page_fetcher(fetcher_for)
    gate = ComplianceGate(fetcher)
    org_id = uuid4()
    with patch("app.crawler.page_scraper.db_handler", store):
        first = await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, org_id, "bcg", POLICY)
        second = await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, org_id, "bcg", POLICY)
    await fetcher.close()

    assert first == 3
    assert second == 0
    assert seen[0] == (INDEX_URL, "text/html,application/xhtml+xml")
    assert url_hash("https://www.bcg.com/careers/insights-team") not in store.rows


@pytest.mark.asyncio
async def test_scrape_row_fields(store, fetcher_for):
    fetcher, _ = _page_fetcher(fetcher_for)
    gate = ComplianceGate(fetcher)
    with patch("app.crawler.page_scraper.db_handler", store):
        await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, uuid4(), "bcg", POLICY)
    await fetcher.close()

    report = store.rows[url_hash("https://www.bcg.com/publications/2024/global-report")]
    assert report["title"] == "Global Banking Report 2024"
    assert report["document_type"] == "report"
    assert report["confidence_score"] == 0.95
    assert report["source_type"] == "bcg"

    bench = store.rows[url_hash("https://www.bcg.com/insights/pricing-benchmark")]
    assert bench["document_type"] == "benchmark"

    untitled = store.rows[url_hash("https://www.bcg.com/articles/untitled")]
    assert untitled["title"] == "Untitled Document"
    assert untitled["document_type"] == "insight"


@pytest.mark.asyncio
async def test_scrape_caps_candidate_links(store, fetcher_for):
    body = "".join(f'<a href="/insights/item-{i}">Item {i}</a>' for i in range(30))
    fetcher, _ = _page_fetcher(fetcher_for, body=body)
    gate = ComplianceGate(fetcher)
    with patch("app.crawler.page_scraper.db_handler", store):
        count = await scrape_publications_page(
            MagicMock(), fetcher, gate, INDEX_URL, uuid4(), "bcg", POLICY, max_links=20,
        )
    await fetcher.close()
    assert count == 20
    assert url_hash("https://www.bcg.com/insights/item-19") in store.rows
    assert url_hash("https://www.bcg.com/insights/item-20") not in store.rows


@pytest.mark.asyncio
async def test_every_link_is_rechecked_by_gate(store, fetcher_for):
    fetcher, _ = _page_fetcher(fetcher_for)
    gate = MagicMock()
    gate.is_allowed = AsyncMock(return_value=ComplianceDecision(False, "Blocked by robots.txt: /"))
    with patch("app.crawler.page_scraper.db_handler", store):
        count = await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, uuid4(), "bcg", POLICY)
    await fetcher.close()
    assert count == 0
    assert gate.is_allowed.await_count == 4
    assert store.rows == {}


@pytest.mark.asyncio
async def test_unreachable_index_raises_fetch_error(store, fetcher_for):
    fetcher, _ = _page_fetcher(fetcher_for, status=403)
    gate = ComplianceGate(fetcher)
    with patch("app.crawler.page_scraper.db_handler", store):
        with pytest.raises(FetchError):
            await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, uuid4(), "bcg", POLICY)
    await fetcher.close()


@pytest.mark.asyncio
async def test_commit_failure_raises_crawler_error(fetcher_for):
    fetcher, _ = _page_fetcher(fetcher_for)
    gate = ComplianceGate(fetcher)
    with patch("app.crawler.page_scraper.db_handler") as mock_db:
        mock_db.insert_document_if_new = AsyncMock(return_value=True)
        mock_db.safe_commit = AsyncMock(return_value=False)
        with pytest.raises(CrawlerError):
            await scrape_publications_page(MagicMock(), fetcher, gate, INDEX_URL, uuid4(), "bcg", POLICY)
    await fetcher.close()
