"""
Static organization table (policy store).

One authoritative in-code table used both to seed ``research_organizations``
rows and, by slug, to drive every crawl run (feeds, publications index,
crawl policy). Nothing here is computed.

``no_login_bypass`` / ``no_paywall_bypass`` are recorded for audit only: the
pipeline has no code path that authenticates or sends credentials.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class CrawlPolicy:
    allow_paths: tuple[str, ...] = ()
    deny_paths: tuple[str, ...] = ()
    max_depth: int = 2
    rate_limit: int = 20  # requests per minute per domain
    obey_robots_txt: bool = True
    no_login_bypass: bool = True
    no_paywall_bypass: bool = True

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form stored on ResearchOrganization.crawl_policy."""
        data = asdict(self)
        data["allow_paths"] = list(self.allow_paths)
        data["deny_paths"] = list(self.deny_paths)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CrawlPolicy":
        data = data or {}
        return cls(
            allow_paths=tuple(data.get("allow_paths") or ()),
            deny_paths=tuple(data.get("deny_paths") or ()),
            max_depth=int(data.get("max_depth", 2)),
            rate_limit=int(data.get("rate_limit", 20)),
            obey_robots_txt=bool(data.get("obey_robots_txt", True)),
            no_login_bypass=bool(data.get("no_login_bypass", True)),
            no_paywall_bypass=bool(data.get("no_paywall_bypass", True)),
        )


@dataclass(frozen=True)
class OrganizationConfig:
    name: str
    slug: str
    org_type: str
    tier: str
    trust_weight: float
    website: str
    publications_path: str
    crawl_policy: CrawlPolicy
    rss_feeds: tuple[str, ...] = field(default_factory=tuple)

    @property
    def publications_url(self) -> str:
        return f"{self.website}{self.publications_path}"


_BASE_DENY = ("/careers", "/about", "/contact", "/subscribe", "/login", "/alumni")

ORGANIZATIONS: tuple[OrganizationConfig, ...] = (
    OrganizationConfig(
        name="McKinsey & Company",
        slug="mckinsey",
        org_type="consulting",
        tier="tier1_consulting",
        trust_weight=0.95,
        website="https://www.mckinsey.com",
        publications_path="/capabilities/growth-marketing-and-sales/our-insights",
        crawl_policy=CrawlPolicy(
            allow_paths=("/capabilities", "/industries", "/featured-insights", "/quarterly"),
            deny_paths=("/careers", "/about-us", "/contact", "/alumni", "/subscribe", "/login"),
            rate_limit=20,
        ),
        rss_feeds=("https://www.mckinsey.com/rss/insight_and_publications/latest",),
    ),
    OrganizationConfig(
        name="Boston Consulting Group",
        slug="bcg",
        org_type="consulting",
        tier="tier1_consulting",
        trust_weight=0.95,
        website="https://www.bcg.com",
        publications_path="/publications",
        crawl_policy=CrawlPolicy(
            allow_paths=("/publications", "/industries", "/capabilities"),
            deny_paths=_BASE_DENY,
            rate_limit=20,
        ),
    ),
    OrganizationConfig(
        name="Bain & Company",
        slug="bain",
        org_type="consulting",
        tier="tier1_consulting",
        trust_weight=0.95,
        website="https://www.bain.com",
        publications_path="/insights",
        crawl_policy=CrawlPolicy(
            allow_paths=("/insights", "/industry-expertise", "/capabilities"),
            deny_paths=_BASE_DENY,
            rate_limit=20,
        ),
    ),
    OrganizationConfig(
        name="Deloitte",
        slug="deloitte",
        org_type="audit",
        tier="tier2_big4",
        trust_weight=0.85,
        website="https://www2.deloitte.com",
        publications_path="/insights",
        crawl_policy=CrawlPolicy(
            allow_paths=("/insights", "/content/dam/Deloitte/global"),
            deny_paths=_BASE_DENY + ("/services",),
            rate_limit=15,
        ),
    ),
    OrganizationConfig(
        name="PwC",
        slug="pwc",
        org_type="audit",
        tier="tier2_big4",
        trust_weight=0.85,
        website="https://www.pwc.com",
        publications_path="/gx/en/issues.html",
        crawl_policy=CrawlPolicy(
            allow_paths=("/gx/en/issues", "/gx/en/industries", "/gx/en/insights"),
            deny_paths=_BASE_DENY + ("/services",),
            rate_limit=15,
        ),
    ),
    OrganizationConfig(
        name="KPMG",
        slug="kpmg",
        org_type="audit",
        tier="tier2_big4",
        trust_weight=0.85,
        website="https://kpmg.com",
        publications_path="/xx/en/home/insights.html",
        crawl_policy=CrawlPolicy(
            allow_paths=("/home/insights", "/home/industries"),
            deny_paths=_BASE_DENY + ("/services",),
            rate_limit=15,
        ),
    ),
    OrganizationConfig(
        name="Ernst & Young",
        slug="ey",
        org_type="audit",
        tier="tier2_big4",
        trust_weight=0.85,
        website="https://www.ey.com",
        publications_path="/en_gl/insights",
        crawl_policy=CrawlPolicy(
            allow_paths=("/en_gl/insights", "/en_gl/industries"),
            deny_paths=_BASE_DENY + ("/services",),
            rate_limit=15,
        ),
    ),
)

_BY_SLUG: dict[str, OrganizationConfig] = {org.slug: org for org in ORGANIZATIONS}

# Source -> confidence used when a document is discovered. Sources without an
# organization entry (sec) still carry a weight.
TRUST_WEIGHTS: dict[str, float] = {org.slug: org.trust_weight for org in ORGANIZATIONS}
TRUST_WEIGHTS["sec"] = 0.90
DEFAULT_TRUST_WEIGHT = 0.5


def get_organization_config(slug: str) -> OrganizationConfig | None:
    return _BY_SLUG.get(slug)


def get_trust_weight(source_type: str) -> float:
    return TRUST_WEIGHTS.get(source_type, DEFAULT_TRUST_WEIGHT)
