"""
Compliance gate: decides whether a URL may be fetched under a crawl policy.

Order of checks: URL validity (fail closed), deny paths (always win), allow
paths (empty list = no restriction), robots.txt Disallow rules (cached per
origin). A robots.txt that cannot be fetched means "no restrictions" so one
unreachable file never blocks a whole crawl.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, NamedTuple
from urllib.parse import urlsplit

from app.crawler.errors import FetchError
from app.crawler.fetcher import HttpFetcher
from app.crawler.organizations import CrawlPolicy

logger = logging.getLogger(__name__)


class ComplianceDecision(NamedTuple):
    allowed: bool
    reason: str | None = None


def parse_robots_disallow(text: str) -> list[str]:
    """Return every ``Disallow:`` value (case-insensitive key, trimmed value)."""
    rules: list[str] = []
    for line in (text or "").splitlines():
        stripped = line.strip()
        if stripped.lower().startswith("disallow:"):
            rules.append(stripped[len("disallow:"):].strip())
    return rules


def _path_matches(path: str, rule: str) -> bool:
    return path.startswith(rule) or rule in path


class ComplianceGate:
    """Policy + robots.txt checks, with a time-bounded robots cache.

    Construct one per process and share it; tests build isolated instances.
    """

    def __init__(
        self,
        fetcher: HttpFetcher,
        *,
        cache_ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._fetcher = fetcher
        self._ttl = cache_ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._robots_cache: dict[str, tuple[list[str], float]] = {}

    async def is_allowed(self, url: str, policy: CrawlPolicy) -> ComplianceDecision:
        try:
            parts = urlsplit(url)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                raise ValueError(f"expected an absolute http(s) URL, got {url!r}")
        except ValueError as exc:
            return ComplianceDecision(False, f"Invalid URL: {exc}")

        path = parts.path or "/"

        for deny in policy.deny_paths:
            if deny and _path_matches(path, deny):
                return ComplianceDecision(False, f"Path blocked by policy: {deny}")

        if policy.allow_paths and not any(
            allow and _path_matches(path, allow) for allow in policy.allow_paths
        ):
            return ComplianceDecision(False, "Path not in allowed list")

        if policy.obey_robots_txt:
            origin = f"{parts.scheme}://{parts.netloc}"
            for rule in await self.get_robots_rules(origin):
                if rule and path.startswith(rule):
                    return ComplianceDecision(False, f"Blocked by robots.txt: {rule}")

        return ComplianceDecision(True)

    async def get_robots_rules(self, origin: str) -> list[str]:
        """Disallow rules for *origin*, from cache when younger than the TTL."""
        now = self._clock()
        with self._lock:
            cached = self._robots_cache.get(origin)
        if cached is not None and now - cached[1] < self._ttl:
            return cached[0]

        try:
            body = await self._fetcher.fetch_text(f"{origin}/robots.txt")
        except FetchError as exc:
            logger.info("[compliance] robots.txt unavailable for %s (%s); no restrictions", origin, exc)
            return []

        rules = parse_robots_disallow(body)
        with self._lock:
            self._robots_cache[origin] = (rules, self._clock())
        logger.debug("[compliance] cached %s robots.txt rules for %s", len(rules), origin)
        return rules

    def clear_cache(self) -> None:
        with self._lock:
            self._robots_cache.clear()
