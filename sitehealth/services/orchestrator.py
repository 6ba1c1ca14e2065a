"""
Orchestrator: one budgeted health run for one site.

Phases, all measured against a single deadline fixed at entry:
  1. live audit, agent performance and current metrics, concurrently;
     each falls back to a typed default on failure
  2. merge audit-derived metrics into the metrics map
  3. goal evaluation
  4. optional weekly research, only with enough budget left
  5. synthesis: critical issues, prioritized actions, agent directives, score
  6. persistence: immutable report + per-(site, day) health row

The run never raises for I/O or persistence problems; callers always get a
report, and degraded confidence shows up in its critical issues.
"""
from __future__ import annotations
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import asyncio
import logging
import time
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.config import OrchestratorConfig
from sitehealth.sites import site_url as resolve_site_url
from sitehealth.services.agent_monitor import (
    AGENT_REGISTRY, AgentDefinition, AgentPerformanceReport,
    analyze_agent_performance, default_agent_report,
)
from sitehealth.services.goals import BUSINESS_GOALS, BusinessGoal, GoalEvaluation, evaluate_goals
from sitehealth.services.history import latest_metrics, record_report, upsert_health_snapshot
from sitehealth.services.live_audit import AuditResult, LiveSiteAuditor, default_audit
from sitehealth.services.research import ResearchReport, WeeklyResearchAgent
from sitehealth.services.score import indexing_rate, overall_health, status_for_score

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrioritizedAction:
    id: str
    title: str
    description: str
    priority: int  # 0 = highest
    category: str  # fix | optimize | research | monitor
    owner_agent: str
    estimated_impact: str  # critical | high | medium | low
    automated: bool = False


@dataclass(frozen=True)
class AgentDirective:
    agent_id: str
    directive: str
    priority: str  # urgent | normal | low
    context: str


@dataclass(frozen=True)
class OrchestratorReport:
    run_id: str
    run_at: str
    site_id: str
    site_url: str
    live_audit: AuditResult
    business_goals: Tuple[GoalEvaluation, ...]
    agent_performance: AgentPerformanceReport
    research: Optional[ResearchReport]
    metrics: Dict[str, float]
    health_score: int
    status: str
    critical_issues: Tuple[str, ...]
    prioritized_actions: Tuple[PrioritizedAction, ...]
    agent_directives: Tuple[AgentDirective, ...]
    duration_ms: int


# -- phase 2 ----------------------------------------------------------------

def merge_audit_metrics(current: Dict[str, float], audit: AuditResult) -> Dict[str, float]:
    sm = audit.sitemap_health
    merged = dict(current)
    merged.update({
        "sitemap_health": round(100 * sm.healthy / sm.total_urls) if sm.total_urls else 0,
        "schema_validity": 100 if audit.schema_validation.valid else 0,
        "robots_conflicts": len(audit.robots_conflicts.conflicts),
        "cache_hit_rate": audit.cdn_performance.hit_rate,
        "ai_crawlers_allowed": len(audit.robots_conflicts.ai_crawlers_allowed),
        "pending_proposals": current.get("pending_proposals", 0),
        "indexed_pages": current.get("indexed_pages", 0),
    })
    if "indexing_rate" not in current and sm.total_urls and current.get("indexed_pages") is not None:
        merged["indexing_rate"] = indexing_rate(int(current["indexed_pages"]), sm.total_urls)
    return merged


# -- phase 5 ----------------------------------------------------------------

def collect_critical_issues(
    audit: AuditResult,
    goals: Sequence[GoalEvaluation],
    agents: AgentPerformanceReport,
) -> List[str]:
    issues = list(audit.critical_issues)
    issues += [f'Business goal "{g.goal.name}" is in critical state' for g in goals if g.overall_status == "critical"]
    issues += [r for r in agents.recommendations if "stall" in r.lower()]
    return issues


def generate_actions(
    audit: AuditResult,
    goals: Sequence[GoalEvaluation],
    agents: AgentPerformanceReport,
    research: Optional[ResearchReport],
) -> List[PrioritizedAction]:
    actions: List[PrioritizedAction] = []

    def add(title: str, description: str, priority: int, category: str, owner: str, impact: str) -> None:
        actions.append(PrioritizedAction(f"action-{len(actions)}", title, description, priority, category, owner, impact))

    sm = audit.sitemap_health
    if sm.broken > 0:
        top = ", ".join(f"{b.url}→{b.status}" for b in sm.broken_urls[:3])
        add("Fix broken sitemap URLs", f"{sm.broken} URLs in sitemap return non-200. Top: {top}",
            0, "fix", "live-site-auditor", "critical")

    robots = audit.robots_conflicts
    if robots.conflicts:
        add("Resolve robots.txt conflicts",
            f"{len(robots.conflicts)} conflicting rules detected. {len(robots.ai_crawlers_blocked)} AI crawlers blocked.",
            0, "fix", "live-site-auditor", "critical")

    broken_schema = audit.schema_validation.broken_schema_urls
    if broken_schema:
        add("Fix broken URLs in structured data", f"{len(broken_schema)} URLs in JSON-LD schemas return errors",
            1, "fix", "seo-agent", "high")

    for agent in agents.agents:
        if agent.health in ("stalled", "failing"):
            add(f"Investigate {agent.name}", "; ".join(agent.issues), 1, "fix", "seo-orchestrator", "high")

    bailouts = audit.rendering_check.csr_bailouts
    if bailouts:
        add("Fix client-side rendering bailouts",
            f"{len(bailouts)} pages fall back to client rendering, hurting crawler visibility",
            2, "optimize", "live-site-auditor", "high")

    hit_rate = audit.cdn_performance.hit_rate
    if hit_rate < 50:
        add("Improve CDN cache hit rate", f"Cache hit rate is {hit_rate}%; target above 50%",
            3, "optimize", "live-site-auditor", "medium")

    for g in goals:
        if g.overall_status not in ("critical", "behind"):
            continue
        for k in g.kpi_results:
            if k.status not in ("critical", "behind"):
                continue
            current = "unknown" if k.current_value is None else f"{k.current_value:g}"
            crit = k.status == "critical"
            add(f"Improve {k.kpi.name}", f"Current: {current} {k.kpi.unit}, Target (30d): {k.kpi.target_30d:g}",
                1 if crit else 3, "optimize", g.goal.owner_agent, "critical" if crit else "medium")

    if research:
        for f in research.findings:
            if f.priority not in ("critical", "high"):
                continue
            crit = f.priority == "critical"
            add(f.title, "; ".join(f.actionable_insights), 2 if crit else 4, "research",
                f.affected_agents[0] if f.affected_agents else "seo-orchestrator", "high" if crit else "medium")

    return sorted(actions, key=lambda a: a.priority)


def generate_directives(
    audit: AuditResult,
    goals: Sequence[GoalEvaluation],
    agents: AgentPerformanceReport,
) -> List[AgentDirective]:
    out: List[AgentDirective] = []
    sm = audit.sitemap_health
    if sm.broken > 0:
        out.append(AgentDirective(
            "seo-agent",
            "PRIORITY: Verify all sitemap URLs return 200 before submitting them for indexing. "
            "Skip broken URLs to avoid wasting crawl budget.",
            "urgent",
            f"{sm.broken} broken URLs detected in sitemap",
        ))

    blocked = audit.robots_conflicts.ai_crawlers_blocked
    if blocked:
        out.append(AgentDirective(
            "seo-agent",
            "ALERT: AI crawlers are blocked by robots.txt. Do not submit URLs to AI search engines "
            f"until this is resolved. Blocked: {', '.join(blocked)}",
            "urgent",
            "A CDN may be injecting blocking rules" if audit.robots_conflicts.has_injection
            else "robots.txt disallows AI crawlers",
        ))

    for g in goals:
        if g.goal.id == "content_quality" and g.overall_status == "critical":
            out.append(AgentDirective(
                "content-generator",
                "INCREASE OUTPUT: Content quality metrics are critical. "
                "Ensure all generated content has an SEO score above 70 before publishing.",
                "urgent",
                "Content quality goal is in critical state",
            ))
        elif g.overall_status == "behind":
            names = ", ".join(k.kpi.name for k in g.kpi_results if k.status == "behind")
            out.append(AgentDirective(
                g.goal.owner_agent,
                f'Goal "{g.goal.name}" is behind target: focus on {names}.',
                "normal",
                f"Goal {g.goal.id} status: behind",
            ))

    for agent in agents.agents:
        if agent.health == "stalled":
            out.append(AgentDirective(
                agent.agent_id,
                f"STALLED: This agent has not run in its expected timeframe. Issues: {'; '.join(agent.issues)}",
                "urgent",
                f"Last run: {agent.last_run or 'never'}",
            ))
        elif agent.health in ("failing", "degraded"):
            out.append(AgentDirective(
                agent.agent_id,
                f"{agent.health.upper()}: {'; '.join(agent.issues)}",
                "normal",
                f"Success rate {agent.success_rate}% over {agent.runs_7d} runs",
            ))

    if audit.rendering_check.csr_bailouts:
        out.append(AgentDirective(
            "live-site-auditor",
            "Re-check pages that fell back to client rendering after the next deploy.",
            "normal",
            ", ".join(b.url for b in audit.rendering_check.csr_bailouts),
        ))
    return out


# -- coordinator ------------------------------------------------------------

class Orchestrator:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        config: Optional[OrchestratorConfig] = None,
        goals: Sequence[BusinessGoal] = BUSINESS_GOALS,
        agents: Sequence[AgentDefinition] = AGENT_REGISTRY,
        auditor: Optional[LiveSiteAuditor] = None,
        research_agent: Optional[WeeklyResearchAgent] = None,
    ):
        self.session_factory = session_factory
        self.config = config or OrchestratorConfig()
        self.goals = list(goals)
        self.agents = list(agents)
        self.auditor = auditor or LiveSiteAuditor()
        self.research_agent = research_agent or WeeklyResearchAgent(session_factory)

    async def _audit(self, site_url: str, deadline: float) -> AuditResult:
        cfg = self.config
        budget = min(cfg.audit_timeout_cap_s, deadline - time.monotonic() - cfg.audit_reserve_s)
        try:
            return await self.auditor.audit(site_url, max_urls=cfg.max_urls, deadline=time.monotonic() + budget)
        except Exception as e:
            log.warning(f"Live audit failed for {site_url}: {e}")
            return default_audit()

    async def _agent_performance(self) -> AgentPerformanceReport:
        try:
            async with self.session_factory() as session:
                return await analyze_agent_performance(session, self.agents)
        except Exception as e:
            log.warning(f"Agent performance check failed: {e}")
            return default_agent_report()

    async def collect_current_metrics(self, site_id: str) -> Dict[str, float]:
        try:
            async with self.session_factory() as session:
                return await latest_metrics(session, site_id)
        except Exception as e:
            log.warning(f"Metric collection failed for {site_id}: {e}")
            return {}

    async def _research(self, site_id: str, deadline: float) -> Optional[ResearchReport]:
        try:
            return await self.research_agent.run(site_id, deadline=deadline)
        except Exception as e:
            log.warning(f"Weekly research failed: {e}")
            return None

    async def run(
        self,
        site_id: str,
        site_url: Optional[str] = None,
        include_research: bool = False,
        max_duration_s: Optional[float] = None,
    ) -> OrchestratorReport:
        cfg = self.config
        started = time.monotonic()
        deadline = started + (max_duration_s or cfg.max_duration_s)
        site_url = (site_url or resolve_site_url(site_id)).rstrip("/")
        run_id = f"orch-{int(time.time() * 1000)}-{uuid.uuid4().hex[:4]}"
        log.info(f"[{run_id}] orchestrator start for {site_id} ({site_url})")

        audit, agents, current = await asyncio.gather(
            self._audit(site_url, deadline),
            self._agent_performance(),
            self.collect_current_metrics(site_id),
        )

        metrics = merge_audit_metrics(current, audit)
        goals = evaluate_goals(metrics, self.goals)

        research = None
        if include_research:
            if time.monotonic() < deadline - cfg.research_min_remaining_s:
                research = await self._research(site_id, deadline)
            else:
                log.info(f"[{run_id}] skipping research: not enough budget left")

        critical = collect_critical_issues(audit, goals, agents)
        actions = generate_actions(audit, goals, agents, research)
        directives = generate_directives(audit, goals, agents)
        health = overall_health(
            len(audit.critical_issues), len(audit.warnings),
            [g.overall_status for g in goals], agents.overall_health,
            (cfg.audit_weight, cfg.goals_weight, cfg.agents_weight),
        )
        status = status_for_score(health)

        report = OrchestratorReport(
            run_id=run_id,
            run_at=datetime.now(timezone.utc).isoformat(),
            site_id=site_id,
            site_url=site_url,
            live_audit=audit,
            business_goals=tuple(goals),
            agent_performance=agents,
            research=research,
            metrics=metrics,
            health_score=health,
            status=status,
            critical_issues=tuple(critical),
            prioritized_actions=tuple(actions),
            agent_directives=tuple(directives),
            duration_ms=int((time.monotonic() - started) * 1000),
        )

        await self._persist(report)
        log.info(
            f"[{run_id}] {site_id}: health={health}%, status={status}, critical={len(critical)}, "
            f"actions={len(actions)}, duration={report.duration_ms}ms"
        )
        return report

    async def _persist(self, report: OrchestratorReport) -> None:
        audit = report.live_audit
        sm = audit.sitemap_health
        indexed = int(report.metrics.get("indexed_pages", 0) or 0)
        try:
            async with self.session_factory() as session:
                await record_report(session, "orchestrator", report_summary(report, self.config.stored_actions), report.site_id)
        except Exception as e:
            log.warning(f"Failed to store orchestrator report: {e}")

        try:
            async with self.session_factory() as session:
                await upsert_health_snapshot(
                    session,
                    site_id=report.site_id,
                    health_score=report.health_score,
                    status=report.status,
                    total_pages=sm.total_urls,
                    indexed_pages=indexed,
                    indexing_rate=indexing_rate(indexed, sm.total_urls),
                    pending_proposals=int(report.metrics.get("pending_proposals", 0) or 0),
                )
        except Exception as e:
            log.warning(f"Failed to update site health check: {e}")


def report_summary(report: OrchestratorReport, max_actions: int = 20) -> Dict[str, Any]:
    audit = report.live_audit
    agents = report.agent_performance
    return {
        "run_id": report.run_id,
        "status": report.status,
        "health_score": report.health_score,
        "critical_issues": list(report.critical_issues),
        "prioritized_actions": [asdict(a) for a in report.prioritized_actions[:max_actions]],
        "agent_directives": [asdict(d) for d in report.agent_directives],
        "live_audit_summary": {
            "sitemap_broken": audit.sitemap_health.broken,
            "sitemap_total": audit.sitemap_health.total_urls,
            "schema_valid": audit.schema_validation.valid,
            "robots_conflicts": len(audit.robots_conflicts.conflicts),
            "ai_crawlers_blocked": len(audit.robots_conflicts.ai_crawlers_blocked),
            "cache_hit_rate": audit.cdn_performance.hit_rate,
            "csr_bailouts": len(audit.rendering_check.csr_bailouts),
            "degraded": dict(audit.degraded),
        },
        "agent_health_summary": {
            "overall": agents.overall_health,
            "stalled": sum(1 for a in agents.agents if a.health == "stalled"),
            "failing": sum(1 for a in agents.agents if a.health == "failing"),
        },
        "business_goals_summary": [
            {"goal": g.goal.id, "status": g.overall_status} for g in report.business_goals
        ],
        "research_summary": {
            "findings_count": report.research.findings_count,
            "agent_updates": len(report.research.agent_updates),
        } if report.research else None,
        "duration_ms": report.duration_ms,
        "agent": "seo-orchestrator-v1",
    }
