"""
Outbound HTTP boundary.

Every network call of the pipeline (robots.txt, feeds, publication pages,
documents) goes through :class:`HttpFetcher`. Requests are anonymous GETs:
no cookies, no credentials, no auth headers.
"""
from __future__ import annotations

import logging

import httpx

from app.crawler.config import CrawlerConfig
from app.crawler.errors import FetchError

logger = logging.getLogger(__name__)

FEED_ACCEPT = "application/rss+xml, application/xml, text/xml"
HTML_ACCEPT = "text/html,application/xhtml+xml"


class HttpFetcher:
    """Lazily-created ``httpx.AsyncClient`` with a fixed timeout and identifying User-Agent."""

    def __init__(self, config: CrawlerConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self._config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._config.fetch_timeout_seconds,
                headers={"User-Agent": self._config.user_agent},
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def fetch_text(self, url: str, *, accept: str | None = None) -> str:
        """GET *url* and return the decoded body.

        Raises :class:`FetchError` on a non-2xx status, a malformed URL, a
        transport error or a timeout.
        """
        headers = {"Accept": accept} if accept else None
        try:
            response = await self._get_client().get(url, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("[fetch] timeout after %ss: %s", self._config.fetch_timeout_seconds, url)
            raise FetchError(url, reason=f"timeout ({exc.__class__.__name__})") from exc
        except httpx.HTTPError as exc:
            logger.warning("[fetch] request failed for %s: %s", url, exc)
            raise FetchError(url, reason=str(exc) or exc.__class__.__name__) from exc
        except (httpx.InvalidURL, ValueError) as exc:
            logger.warning("[fetch] invalid url %r: %s", url, exc)
            raise FetchError(url, reason=f"invalid URL ({exc})") from exc

        if not response.is_success:
            logger.info("[fetch] %s -> HTTP %s", url, response.status_code)
            raise FetchError(url, status_code=response.status_code)
        return response.text

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
