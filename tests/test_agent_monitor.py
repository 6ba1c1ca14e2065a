from datetime import datetime, timedelta, timezone

from sitehealth.models import CronJobLog
from sitehealth.services.agent_monitor import (
    AGENT_REGISTRY, AgentDefinition, analyze_agent_performance, classify, default_agent_report, worsen,
)

NOW = datetime(2026, 3, 2, 12, 0, 0)
DAILY = AgentDefinition("daily-agent", "Daily Agent", ("daily-job",), 1, 60_000)
BUSY = AgentDefinition("busy-agent", "Busy Agent", ("busy-job",), 3, 60_000)


async def _log(session, job, hours_ago, status="completed", duration_ms=1000):
    started = NOW - timedelta(hours=hours_ago)
    session.add(CronJobLog(
        job_name=job, status=status, started_at=started,
        completed_at=started + timedelta(milliseconds=duration_ms), duration_ms=duration_ms,
        items_processed=2, items_succeeded=2 if status == "completed" else 0,
        items_failed=0 if status == "completed" else 2,
    ))
    await session.commit()


def test_worsen_only_moves_right():
    assert worsen("healthy", "degraded") == "degraded"
    assert worsen("stalled", "degraded") == "stalled"
    assert worsen("failing", "stalled") == "failing"


def test_classify_no_runs_is_stalled():
    health, issues = classify(DAILY, 0, 0, 0, 0, None, None)
    assert health == "stalled"
    assert issues


def test_classify_weekly_agent_is_not_stalled_by_daily_count():
    weekly = AgentDefinition("w", "Weekly", ("w",), 1 / 7, 60_000)
    health, _ = classify(weekly, 0, 1, 100, 1000, "completed", 72)
    assert health == "healthy"


def test_classify_slow_and_failed_last_run_is_degraded():
    health, issues = classify(DAILY, 1, 2, 100, 58_000, "failed", 2)
    assert health == "degraded"
    assert len(issues) == 2


async def test_last_run_30h_ago_is_stalled(session):
    await _log(session, "daily-job", 30)
    report = await analyze_agent_performance(session, [DAILY], now=NOW)
    status = report.agents[0]
    assert status.health == "stalled"
    assert status.runs_24h == 0
    assert status.runs_7d == 1
    assert report.overall_health == "critical"
    assert any("has stalled" in r for r in report.recommendations)


async def test_regular_runs_are_healthy(session):
    for h in (2, 10, 18, 26, 34):
        await _log(session, "busy-job", h)
    report = await analyze_agent_performance(session, [BUSY], now=NOW)
    status = report.agents[0]
    assert status.health == "healthy"
    assert status.runs_24h == 3
    assert status.success_rate == 100
    assert status.items_processed == 10
    assert report.overall_health == "healthy"
    assert report.recommendations == ()


async def test_mostly_failed_runs_are_failing(session):
    await _log(session, "busy-job", 1, status="failed")
    await _log(session, "busy-job", 5, status="failed")
    await _log(session, "busy-job", 9, status="failed")
    await _log(session, "busy-job", 13)
    report = await analyze_agent_performance(session, [BUSY], now=NOW)
    status = report.agents[0]
    assert status.health == "failing"
    assert status.success_rate == 25
    assert status.last_status == "failed"
    assert report.overall_health == "critical"


async def test_any_job_name_counts_for_the_agent(session):
    agent = AgentDefinition("multi", "Multi", ("job-a", "job-b"), 1, 60_000)
    await _log(session, "job-b", 3)
    report = await analyze_agent_performance(session, [agent], now=NOW)
    assert report.agents[0].health == "healthy"


async def test_single_degraded_agent_keeps_overall_healthy(session):
    other = AgentDefinition("other", "Other", ("other-job",), 1, 60_000)
    await _log(session, "daily-job", 2, status="failed")
    await _log(session, "other-job", 2)
    report = await analyze_agent_performance(session, [DAILY, other], now=NOW)
    assert [a.health for a in report.agents] == ["degraded", "healthy"]
    assert report.overall_health == "healthy"


async def test_empty_log_stalls_whole_registry(session):
    report = await analyze_agent_performance(session, AGENT_REGISTRY, now=NOW)
    assert len(report.agents) == len(AGENT_REGISTRY)
    assert all(a.health == "stalled" for a in report.agents)


def test_default_report():
    report = default_agent_report()
    assert report.overall_health == "critical"
    assert report.agents == ()


async def test_aware_now_reads_naive_log(session):
    for h in (2, 10, 18):
        await _log(session, "busy-job", h)
    report = await analyze_agent_performance(session, [BUSY], now=NOW.replace(tzinfo=timezone.utc))
    assert report.agents[0].health == "healthy"
    assert report.agents[0].runs_24h == 3
    assert report.timestamp.startswith("2026-03-02T12:00:00")
