"""
Weekly research agent.

Reads a fixed set of trusted search/web-platform sources, keeps the articles
relevant to this stack, turns them into categorized findings with
actionable insights, and fans each insight out as an update for the
affected agents. Low-risk config updates are applied automatically by
writing an ``agent_update`` report that the target agent reads on its
next run.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging
import time
import uuid

import httpx
from bs4 import BeautifulSoup
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.config import ResearchConfig
from sitehealth.rules import RuleSet, DEFAULT_RULES, categorize
from sitehealth.standards import STANDARDS_VERSION, DEFAULT_STANDARDS
from sitehealth.services.content_signals import html_text
from sitehealth.services.history import list_reports, record_report
from sitehealth.services.http import fetch_text, make_client

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrustedSource:
    id: str
    name: str
    url: str
    kind: str  # official | industry | platform
    reliability: float
    topics: Tuple[str, ...]


TRUSTED_SOURCES: Tuple[TrustedSource, ...] = (
    TrustedSource("google-search-central", "Google Search Central Blog", "https://developers.google.com/search/blog",
                  "official", 1.0, ("algorithm_update", "indexing_change", "structured_data", "crawling")),
    TrustedSource("web-dev", "web.dev", "https://web.dev/blog",
                  "official", 1.0, ("core_web_vitals", "rendering", "technical_seo")),
    TrustedSource("ahrefs-blog", "Ahrefs Blog", "https://ahrefs.com/blog",
                  "industry", 0.85, ("content_strategy", "technical_seo", "ai_search")),
    TrustedSource("search-engine-journal", "Search Engine Journal", "https://www.searchenginejournal.com",
                  "industry", 0.8, ("algorithm_update", "ai_search", "content_strategy")),
    TrustedSource("moz-blog", "Moz Blog", "https://moz.com/blog",
                  "industry", 0.85, ("technical_seo", "content_strategy", "structured_data")),
    TrustedSource("schema-org", "Schema.org Updates", "https://schema.org",
                  "official", 1.0, ("structured_data",)),
    TrustedSource("vercel-blog", "Vercel Blog", "https://vercel.com/blog",
                  "platform", 0.9, ("framework_optimization", "rendering", "core_web_vitals")),
    TrustedSource("google-ai-blog", "Google AI Blog", "https://blog.google/technology/ai",
                  "official", 1.0, ("ai_search",)),
    TrustedSource("google-doc-changelog", "Google Search Documentation Updates", "https://developers.google.com/search/updates",
                  "official", 1.0, ("algorithm_update", "indexing_change", "structured_data", "crawling", "technical_seo")),
    TrustedSource("google-search-status", "Google Search Status Dashboard", "https://status.search.google.com",
                  "official", 1.0, ("algorithm_update",)),
    TrustedSource("search-engine-roundtable", "Search Engine Roundtable", "https://seroundtable.com",
                  "industry", 0.9, ("algorithm_update", "indexing_change", "ai_search")),
    TrustedSource("search-engine-land", "Search Engine Land", "https://searchengineland.com",
                  "industry", 0.85, ("algorithm_update", "ai_search", "content_strategy", "technical_seo")),
)


@dataclass(frozen=True)
class Article:
    title: str
    summary: str = ""
    url: str = ""


@dataclass(frozen=True)
class ResearchFinding:
    id: str
    source: str
    source_url: str
    category: str
    title: str
    summary: str
    actionable_insights: Tuple[str, ...]
    affected_agents: Tuple[str, ...]
    priority: str  # critical | high | medium | low
    confidence: float
    date_discovered: str


@dataclass(frozen=True)
class AgentUpdate:
    agent_id: str
    update_type: str  # prompt | config | priority | task
    description: str
    finding: str
    applied: bool = False


@dataclass(frozen=True)
class ResearchReport:
    run_date: str
    sources_checked: int
    findings_count: int
    findings: Tuple[ResearchFinding, ...]
    agent_updates: Tuple[AgentUpdate, ...]
    knowledge_base_entries: int


def _new_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4]}"


# -- article extraction -----------------------------------------------------

def _child_text(node, *names: str) -> str:
    for name in names:
        el = node.find(name)
        if el is not None and el.get_text(strip=True):
            return el.get_text(" ", strip=True)
    return ""


def extract_articles(content: str, max_entries: int = 10) -> List[Article]:
    """
    Pull (title, summary, link) out of an RSS or Atom feed. Pages that are
    not feeds fall back to h1-h3 headings of a plausible title length.
    """
    articles: List[Article] = []
    lowered = (content or "").lower()
    if "<item" in lowered or "<entry" in lowered:
        soup = BeautifulSoup(content, "xml")
        items = soup.find_all("item") or soup.find_all("entry")
        for item in items[:max_entries]:
            title = html_text(_child_text(item, "title"))
            if not title:
                continue
            summary = html_text(_child_text(item, "description", "summary", "content"))[:500]
            link = ""
            link_el = item.find("link")
            if link_el is not None:
                link = link_el.get("href") or link_el.get_text(strip=True)
            articles.append(Article(title, summary, link))

    if not articles:
        soup = BeautifulSoup(content or "", "lxml")
        for h in soup.find_all(["h1", "h2", "h3"])[:max_entries]:
            title = h.get_text(" ", strip=True)
            if 10 < len(title) < 200:
                articles.append(Article(title))
    return articles


# -- classification ---------------------------------------------------------

def assess_relevance(article: Article, rules: RuleSet = DEFAULT_RULES) -> float:
    text = f"{article.title} {article.summary}".lower()
    matches = sum(1 for k in rules.relevance_keywords if k in text)
    return min(1.0, matches / 3)


def categorize_finding(article: Article, source: TrustedSource, rules: RuleSet = DEFAULT_RULES) -> str:
    found = categorize(f"{article.title} {article.summary}", rules.categories)
    if found:
        return found
    return source.topics[0] if source.topics else "technical_seo"


def extract_insights(article: Article, rules: RuleSet = DEFAULT_RULES, limit: int = 5) -> List[str]:
    text = f"{article.title} {article.summary}"
    insights: List[str] = []
    for rule in rules.action_patterns:
        for m in rule.pattern.finditer(text):
            s = m.group(0)
            if 20 < len(s) < 300:
                insights.append(s.strip())
    if not insights and len(article.title) > 10:
        insights.append(f"Review: {article.title}")
    return insights[:limit]


def determine_priority(category: str, reliability: float) -> str:
    if category in ("algorithm_update", "indexing_change"):
        return "critical" if reliability >= 0.9 else "high"
    if category == "security":
        return "critical"
    if category in ("ai_search", "core_web_vitals"):
        return "high"
    return "medium"


def analyze_source(
    source: TrustedSource,
    content: str,
    rules: RuleSet = DEFAULT_RULES,
    config: ResearchConfig = ResearchConfig(),
) -> List[ResearchFinding]:
    findings: List[ResearchFinding] = []
    articles = extract_articles(content, config.max_entries)
    for article in articles[: config.analyze_per_source]:
        relevance = assess_relevance(article, rules)
        if relevance < config.min_relevance:
            continue
        category = categorize_finding(article, source, rules)
        insights = extract_insights(article, rules, config.max_insights)
        if not insights:
            continue
        findings.append(ResearchFinding(
            id=_new_id(source.id),
            source=source.name,
            source_url=article.url or source.url,
            category=category,
            title=article.title,
            summary=article.summary,
            actionable_insights=tuple(insights),
            affected_agents=tuple(rules.agent_map.get(category, ("seo-agent",))),
            priority=determine_priority(category, source.reliability),
            confidence=round(source.reliability * relevance, 3),
            date_discovered=datetime.now(timezone.utc).isoformat(),
        ))
    return findings


def generate_agent_updates(finding: ResearchFinding) -> List[AgentUpdate]:
    update_type = "priority" if finding.priority == "critical" else "config"
    return [
        AgentUpdate(agent_id, update_type, f"[{finding.source}] {insight}", finding.id)
        for agent_id in finding.affected_agents
        for insight in finding.actionable_insights
    ]


def is_safe_update(update: AgentUpdate, rules: RuleSet = DEFAULT_RULES) -> bool:
    desc = update.description.lower()
    return update.update_type == "config" and not any(w in desc for w in rules.unsafe_update_words)


def standards_findings(now: datetime, version: str = STANDARDS_VERSION, stale_after_days: int = 30) -> List[ResearchFinding]:
    """A 'verified' marker for the dashboard, plus a staleness flag once the table is old."""
    q = DEFAULT_STANDARDS.quality
    blog = DEFAULT_STANDARDS.content_types["blog"]
    stamp = now.isoformat()
    out = [ResearchFinding(
        id=_new_id("standards-audit"),
        source="internal",
        source_url="sitehealth/standards.py",
        category="technical_seo",
        title="Content Standards Verified",
        summary=(
            f"Standards version {version}. Blog posts: {blog.min_words}+ words minimum, "
            f"{blog.target_words}+ target, quality gate {blog.quality_gate_score}/100. "
            f"Readability grade <= {q.readability_max:g}."
        ),
        actionable_insights=(
            f"Pre-publication gate enforces {blog.min_words}+ words and a {blog.meta_title_min}+ char meta title for blog posts",
        ),
        affected_agents=("seo-agent", "content-generator"),
        priority="low",
        confidence=1.0,
        date_discovered=stamp,
    )]
    try:
        released = datetime.strptime(version, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        log.warning(f"Unparseable standards version {version!r}")
        return out
    if now - released > timedelta(days=stale_after_days):
        out.append(ResearchFinding(
            id=_new_id("standards-stale"),
            source="internal",
            source_url="sitehealth/standards.py",
            category="technical_seo",
            title="Content Standards May Be Stale",
            summary=f"Standards last updated {version}, over {stale_after_days} days ago.",
            actionable_insights=(
                f"Review the Google Search Central changelog for updates since {version}",
                "Check schema.org release notes for new schema versions",
                "Verify Core Web Vitals thresholds against web.dev",
            ),
            affected_agents=("seo-agent", "content-generator"),
            priority="medium",
            confidence=1.0,
            date_discovered=stamp,
        ))
    return out


class WeeklyResearchAgent:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        sources: Sequence[TrustedSource] = TRUSTED_SOURCES,
        rules: RuleSet = DEFAULT_RULES,
        config: Optional[ResearchConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.session_factory = session_factory
        self.sources = list(sources)
        self.rules = rules
        self.config = config or ResearchConfig()
        self._client = client

    async def fetch_source(self, client: httpx.AsyncClient, source: TrustedSource,
                           deadline: Optional[float] = None) -> Optional[str]:
        """Feed first, then the page itself; None when both fail or the deadline passes."""
        for url in (f"{source.url}/feed", source.url):
            timeout = self.config.request_timeout_s
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    log.info(f"Research source {source.id}: deadline reached before {url}")
                    return None
                timeout = min(timeout, remaining)
            try:
                status, text, _ = await fetch_text(client, url, timeout=timeout)
            except httpx.HTTPError as e:
                log.warning(f"Research source {source.id} unavailable at {url}: {e}")
                continue
            if 200 <= status < 300:
                return text
        return None

    async def _collect(self, client: httpx.AsyncClient, deadline: float) -> Tuple[int, List[ResearchFinding]]:
        async def _one(source: TrustedSource) -> Optional[List[ResearchFinding]]:
            if time.monotonic() > deadline:
                log.info(f"Skipping research source {source.id}: deadline")
                return None
            text = await self.fetch_source(client, source, deadline)
            if text is None:
                return None
            return analyze_source(source, text, self.rules, self.config)

        results = await asyncio.gather(*(_one(s) for s in self.sources))
        checked = sum(1 for r in results if r is not None)
        findings = [f for r in results if r for f in r]
        return checked, findings

    async def run(self, site_id: Optional[str] = None, deadline: Optional[float] = None,
                  now: Optional[datetime] = None) -> ResearchReport:
        now = now or datetime.now(timezone.utc)
        if deadline is None:
            deadline = time.monotonic() + self.config.default_timeout_s

        if self._client is not None:
            checked, findings = await self._collect(self._client, deadline)
        else:
            async with make_client(self.config.user_agent, self.config.request_timeout_s) as client:
                checked, findings = await self._collect(client, deadline)

        findings.extend(standards_findings(now, stale_after_days=DEFAULT_STANDARDS.quality.stale_after_days))
        updates = [u for f in findings for u in generate_agent_updates(f)]

        stored = 0
        for finding in findings:
            data = {
                "finding": asdict(finding),
                "agent_updates": [asdict(u) for u in updates if u.finding == finding.id],
                "source": "weekly-research-agent",
            }
            try:
                async with self.session_factory() as session:
                    await record_report(session, "research_finding", data, site_id)
                stored += 1
            except Exception as e:
                log.warning(f"Failed to store research finding {finding.id}: {e}")

        applied: List[AgentUpdate] = []
        for update in updates:
            if is_safe_update(update, self.rules):
                try:
                    async with self.session_factory() as session:
                        await record_report(session, "agent_update", {
                            "target_agent": update.agent_id,
                            "update_type": update.update_type,
                            "description": update.description,
                            "finding": update.finding,
                            "applied_at": datetime.now(timezone.utc).isoformat(),
                            "source": "weekly-research-agent",
                        }, site_id)
                    update = replace(update, applied=True)
                except Exception as e:
                    log.warning(f"Auto-apply failed for {update.agent_id}: {e}")
            applied.append(update)

        log.info(
            f"Research: {checked}/{len(self.sources)} sources, {len(findings)} findings, "
            f"{sum(1 for u in applied if u.applied)}/{len(applied)} updates applied"
        )
        return ResearchReport(
            run_date=now.isoformat(),
            sources_checked=checked,
            findings_count=len(findings),
            findings=tuple(findings),
            agent_updates=tuple(applied),
            knowledge_base_entries=stored,
        )


async def get_recent_findings(
    session: AsyncSession,
    agent_id: str,
    days_back: int = 14,
    take: int = 20,
) -> List[Dict[str, Any]]:
    """Findings from the last `days_back` days whose affected agents include `agent_id`."""
    since = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days_back)
    reports = await list_reports(session, report_type="research_finding", since=since, limit=take)
    out: List[Dict[str, Any]] = []
    for r in reports:
        finding = (r.data or {}).get("finding") or {}
        if agent_id in (finding.get("affected_agents") or []):
            out.append(finding)
    return out
