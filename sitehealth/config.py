from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

USER_AGENT = "SiteHealth-Orchestrator/1.0"
RESEARCH_USER_AGENT = "SiteHealth-ResearchAgent/1.0"

AI_CRAWLERS: Tuple[str, ...] = (
    "ClaudeBot",
    "GPTBot",
    "Google-Extended",
    "Applebot-Extended",
    "Bytespider",
    "CCBot",
    "Amazonbot",
    "meta-externalagent",
    "PerplexityBot",
    "ChatGPT-User",
    "anthropic-ai",
    "cohere-ai",
)


@dataclass(frozen=True)
class AuditorConfig:
    user_agent: str = USER_AGENT
    request_timeout_s: float = 5.0
    default_timeout_s: float = 50.0
    max_urls: int = 50
    max_child_sitemaps: int = 5
    batch_size: int = 10
    reserve_s: float = 15.0  # sitemap batches stop this close to the deadline
    late_checks_reserve_s: float = 10.0  # schema + rendering need this much left
    schema_page_reserve_s: float = 12.0
    render_page_reserve_s: float = 8.0
    slow_ms: int = 3000
    max_schema_urls: int = 20
    max_render_pages: int = 5
    thin_body_chars: int = 500
    key_pages: Tuple[str, ...] = ("/", "/blog", "/about", "/events", "/recommendations")
    cdn_paths: Tuple[str, ...] = (
        "/", "/blog", "/about", "/events", "/sitemap.xml", "/favicon.png", "/images/logo.svg",
    )
    cache_status_header: str = "cf-cache-status"
    cache_hit_values: Tuple[str, ...] = ("HIT", "REVALIDATED")
    render_cache_header: str = "x-nextjs-cache"
    ai_crawlers: Tuple[str, ...] = AI_CRAWLERS
    schema_url_keys: Tuple[str, ...] = ("url", "logo", "image", "contentUrl", "thumbnailUrl", "sameAs")


@dataclass(frozen=True)
class ResearchConfig:
    user_agent: str = RESEARCH_USER_AGENT
    request_timeout_s: float = 10.0
    default_timeout_s: float = 30.0
    max_entries: int = 10
    analyze_per_source: int = 5
    min_relevance: float = 0.3
    max_insights: int = 5
    findings_days_back: int = 14
    findings_take: int = 20


@dataclass(frozen=True)
class OrchestratorConfig:
    max_duration_s: float = 50.0
    audit_timeout_cap_s: float = 35.0
    audit_reserve_s: float = 15.0
    research_min_remaining_s: float = 15.0
    max_urls: int = 50
    stored_actions: int = 20
    audit_weight: float = 0.40
    goals_weight: float = 0.35
    agents_weight: float = 0.25
