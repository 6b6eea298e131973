"""Unit tests for app.crawler.fetcher (network replaced by httpx.MockTransport)."""
from __future__ import annotations

import httpx
import pytest

from app.crawler.config import CrawlerConfig
from app.crawler.errors import FetchError
from app.crawler.fetcher import FEED_ACCEPT, HTML_ACCEPT


@pytest.mark.asyncio
async def test_fetch_text_sends_identifying_headers(fetcher_for):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers.get("user-agent")
        seen["accept"] = request.headers.get("accept")
        seen["cookie"] = request.headers.get("cookie")
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, text="<rss></rss>")

    fetcher = fetcher_for(handler, CrawlerConfig(user_agent="TestCrawler/1.0"))
    body = await fetcher.fetch_text("https://x.com/feed", accept=FEED_ACCEPT)
    await fetcher.close()

    assert body == "<rss></rss>"
    assert seen["ua"] == "TestCrawler/1.0"
    assert seen["accept"] == FEED_ACCEPT
    assert seen["cookie"] is None
    assert seen["auth"] is None


@pytest.mark.asyncio
async def test_fetch_text_follows_redirects(fetcher_for):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "https://x.com/new"})
        return httpx.Response(200, text="moved here")

    fetcher = fetcher_for(handler)
    assert await fetcher.fetch_text("https://x.com/old", accept=HTML_ACCEPT) == "moved here"
    await fetcher.close()


@pytest.mark.asyncio
async def test_non_success_status_raises_with_code(fetcher_for):
    fetcher = fetcher_for(lambda request: httpx.Response(404, text="nope"))
    with pytest.raises(FetchError) as excinfo:
        await fetcher.fetch_text("https://x.com/missing")
    await fetcher.close()
    assert excinfo.value.status_code == 404
    assert excinfo.value.url == "https://x.com/missing"
    assert str(excinfo.value) == "404"


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error(fetcher_for):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    fetcher = fetcher_for(handler)
    with pytest.raises(FetchError) as excinfo:
        await fetcher.fetch_text("https://x.com/slow")
    await fetcher.close()
    assert excinfo.value.status_code is None
    assert str(excinfo.value).startswith("timeout")


@pytest.mark.asyncio
async def test_transport_error_raises_fetch_error(fetcher_for):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    fetcher = fetcher_for(handler)
    with pytest.raises(FetchError) as excinfo:
        await fetcher.fetch_text("https://x.com/down")
    await fetcher.close()
    assert str(excinfo.value) == "connection refused"


@pytest.mark.asyncio
async def test_close_is_idempotent_and_client_recreated(fetcher_for):
    fetcher = fetcher_for(lambda request: httpx.Response(200, text="ok"))
    assert await fetcher.fetch_text("https://x.com/") == "ok"
    await fetcher.close()
    await fetcher.close()
    assert await fetcher.fetch_text("https://x.com/") == "ok"
    await fetcher.close()


def test_fetch_error_detail():
    assert str(FetchError("u", status_code=503)) == "503"
    assert str(FetchError("u", reason="dns failure")) == "dns failure"
    assert str(FetchError("u")) == "unknown error"


@pytest.mark.asyncio
@pytest.mark.parametrize("url", [
    "https://www.mckinsey.com/insights/a\nb",
    "https://www.bcg.com/insights/\tpricing",
])
async def test_malformed_url_raises_fetch_error(fetcher_for, url):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, text="unreachable")

    fetcher = fetcher_for(handler)
    with pytest.raises(FetchError) as excinfo:
        await fetcher.fetch_text(url)
    await fetcher.close()
    assert calls == []
    assert excinfo.value.url == url
    assert excinfo.value.status_code is None
    assert str(excinfo.value).startswith("invalid URL")
