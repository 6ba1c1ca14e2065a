from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.models import CronJobLog

log = logging.getLogger(__name__)

# later entries are worse; classification steps may only move right
SEVERITY = ("healthy", "degraded", "stalled", "failing")


@dataclass(frozen=True)
class AgentDefinition:
    agent_id: str
    name: str
    job_names: Tuple[str, ...]
    expected_runs_per_day: float
    max_duration_ms: int


@dataclass(frozen=True)
class AgentStatus:
    agent_id: str
    name: str
    runs_24h: int
    runs_7d: int
    success_rate: int
    avg_duration_ms: int
    items_processed: int
    items_succeeded: int
    items_failed: int
    last_run: Optional[str]
    last_status: Optional[str]
    health: str
    issues: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AgentPerformanceReport:
    agents: Tuple[AgentStatus, ...]
    overall_health: str  # healthy | degraded | critical
    recommendations: Tuple[str, ...]
    timestamp: str


AGENT_REGISTRY: Tuple[AgentDefinition, ...] = (
    AgentDefinition("seo-agent", "SEO Agent", ("seo-agent", "seo-cron"), 3, 55_000),
    AgentDefinition("content-generator", "Content Generator", ("daily-content-generate", "content-builder"), 2, 55_000),
    AgentDefinition("topic-orchestrator", "Topic Orchestrator", ("weekly-topics", "trends-monitor"), 1, 50_000),
    AgentDefinition("scheduled-publish", "Scheduled Publisher", ("scheduled-publish",), 2, 30_000),
    AgentDefinition("analytics-sync", "Analytics Sync", ("analytics", "gsc-sync"), 1, 50_000),
    AgentDefinition("seo-orchestrator", "SEO Orchestrator", ("seo-orchestrator-daily", "seo-orchestrator-weekly"), 1, 58_000),
    AgentDefinition("weekly-research", "Weekly Research Agent", ("seo-orchestrator-weekly", "weekly-research"), 1 / 7, 58_000),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def worsen(current: str, candidate: str) -> str:
    return candidate if SEVERITY.index(candidate) > SEVERITY.index(current) else current


def classify(
    agent: AgentDefinition,
    runs_24h: int,
    samples: int,
    success_rate: float,
    avg_duration_ms: float,
    last_status: Optional[str],
    hours_since_last: Optional[float],
) -> Tuple[str, List[str]]:
    """Apply the health rules in order; each rule can only make health worse."""
    health = "healthy"
    issues: List[str] = []
    expected = agent.expected_runs_per_day

    if hours_since_last is None:
        return "stalled", ["No recorded runs; agent appears stalled"]

    if expected >= 1 and runs_24h < expected * 0.5:
        health = worsen(health, "stalled")
        issues.append(f"Only {runs_24h} runs in 24h (expected {expected:g}); agent appears stalled")

    if samples > 2 and success_rate < 50:
        health = worsen(health, "failing")
        issues.append(f"Success rate {success_rate:.0f}% over the last 7 days")
    elif samples > 2 and success_rate < 80:
        health = worsen(health, "degraded")
        issues.append(f"Success rate {success_rate:.0f}% is below 80%")

    if avg_duration_ms > agent.max_duration_ms * 0.9:
        health = worsen(health, "degraded")
        issues.append(f"Average duration {avg_duration_ms:.0f}ms is close to the {agent.max_duration_ms}ms limit")

    if last_status == "failed":
        health = worsen(health, "degraded")
        issues.append("Last run failed")

    interval_h = 24 / expected if expected > 0 else 24
    if hours_since_last > interval_h * 2:
        health = worsen(health, "stalled")
        issues.append(f"Last run {hours_since_last:.0f}h ago (expected every {interval_h:.0f}h); agent appears stalled")

    return health, issues


async def _agent_status(session: AsyncSession, agent: AgentDefinition, now: datetime) -> AgentStatus:
    jobs = list(agent.job_names)
    res = await session.execute(
        select(CronJobLog)
        .where(CronJobLog.job_name.in_(jobs))
        .order_by(CronJobLog.started_at.desc())
        .limit(1)
    )
    last = res.scalars().first()

    res = await session.execute(
        select(func.count())
        .select_from(CronJobLog)
        .where(CronJobLog.job_name.in_(jobs), CronJobLog.started_at >= now - timedelta(hours=24))
    )
    runs_24h = int(res.scalar() or 0)

    res = await session.execute(
        select(CronJobLog)
        .where(CronJobLog.job_name.in_(jobs), CronJobLog.started_at >= now - timedelta(days=7))
    )
    week = list(res.scalars().all())

    samples = len(week)
    completed = sum(1 for r in week if r.status == "completed")
    success_rate = 100 * completed / samples if samples else 0
    durations = [r.duration_ms for r in week if r.duration_ms is not None]
    avg_duration = sum(durations) / len(durations) if durations else 0
    hours_since = (now - last.started_at).total_seconds() / 3600 if last else None

    health, issues = classify(
        agent, runs_24h, samples, success_rate, avg_duration,
        last.status if last else None, hours_since,
    )
    return AgentStatus(
        agent_id=agent.agent_id,
        name=agent.name,
        runs_24h=runs_24h,
        runs_7d=samples,
        success_rate=round(success_rate),
        avg_duration_ms=round(avg_duration),
        items_processed=sum(r.items_processed or 0 for r in week),
        items_succeeded=sum(r.items_succeeded or 0 for r in week),
        items_failed=sum(r.items_failed or 0 for r in week),
        last_run=last.started_at.isoformat() if last else None,
        last_status=last.status if last else None,
        health=health,
        issues=tuple(issues),
    )


def _recommendation(status: AgentStatus) -> Optional[str]:
    if status.health == "stalled":
        return f"{status.name} has stalled: {'; '.join(status.issues)}. Check its cron schedule and recent errors."
    if status.health == "failing":
        return f"{status.name} is failing ({status.success_rate}% success). Review error messages in its job log."
    if status.health == "degraded":
        return f"{status.name} is degraded: {'; '.join(status.issues)}"
    return None


async def analyze_agent_performance(
    session: AsyncSession,
    registry: Sequence[AgentDefinition] = AGENT_REGISTRY,
    now: Optional[datetime] = None,
) -> AgentPerformanceReport:
    now = now or _utcnow()
    if now.tzinfo is not None:
        # stored timestamps are naive UTC
        now = now.astimezone(timezone.utc).replace(tzinfo=None)
    agents = [await _agent_status(session, a, now) for a in registry]

    bad = [a for a in agents if a.health in ("failing", "stalled")]
    degraded = [a for a in agents if a.health == "degraded"]
    if bad:
        overall = "critical"
    elif len(degraded) > 1:
        overall = "degraded"
    else:
        overall = "healthy"

    recs = [r for r in (_recommendation(a) for a in agents) if r]
    log.info(f"Agent performance: {overall} ({len(bad)} stalled/failing, {len(degraded)} degraded)")
    return AgentPerformanceReport(
        agents=tuple(agents),
        overall_health=overall,
        recommendations=tuple(recs),
        timestamp=now.replace(tzinfo=timezone.utc).isoformat(),
    )


def default_agent_report() -> AgentPerformanceReport:
    return AgentPerformanceReport(
        agents=(),
        overall_health="critical",
        recommendations=("Could not analyze agent performance; check database connectivity",),
        timestamp=_utcnow().replace(tzinfo=timezone.utc).isoformat(),
    )
