from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from sitehealth.models import CronJobLog, MetricSnapshot, SeoReport, SiteHealthCheck
from sitehealth.services.agent_monitor import AgentDefinition, AgentPerformanceReport, AgentStatus
from sitehealth.services.goals import evaluate_goals
from sitehealth.services.live_audit import AuditResult, BrokenUrl, LiveSiteAuditor, SitemapHealth
from sitehealth.services.orchestrator import (
    Orchestrator, collect_critical_issues, generate_actions, generate_directives, merge_audit_metrics,
)
from tests.conftest import mock_client, page

SITE = "https://example.com"
SITEMAP = (
    '<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
    + "".join(f"<url><loc>{SITE}/{p}</loc></url>" for p in ("a", "b", "gone"))
    + "</urlset>"
)
AGENTS = (AgentDefinition("seo-agent", "SEO Agent", ("seo-agent",), 1, 55_000),)


def _site_pages():
    return {
        f"{SITE}/sitemap.xml": page(200, SITEMAP),
        f"{SITE}/a": page(200),
        f"{SITE}/b": page(200),
        f"{SITE}/robots.txt": page(200, "User-agent: *\nAllow: /\n"),
    }


class ExplodingAuditor:
    async def audit(self, site_url, max_urls=None, deadline=None):
        raise RuntimeError("network down")


def _healthy_agents():
    return AgentPerformanceReport(agents=(), overall_health="healthy", recommendations=(), timestamp="")


def _stalled_agents():
    status = AgentStatus(
        "seo-agent", "SEO Agent", 0, 0, 0, 0, 0, 0, 0, None, None, "stalled",
        ("No recorded runs; agent appears stalled",),
    )
    return AgentPerformanceReport(
        agents=(status,), overall_health="critical",
        recommendations=("SEO Agent has stalled: No recorded runs; agent appears stalled. Check its cron schedule and recent errors.",),
        timestamp="",
    )


def _broken_audit():
    sm = SitemapHealth(total_urls=4, total_sitemap_urls=4, checked_urls=4, healthy=3, broken=1,
                       broken_urls=(BrokenUrl(f"{SITE}/gone", 404),))
    return AuditResult(sitemap_health=sm, critical_issues=(f"1 sitemap URLs return non-200 status (404/500): {SITE}/gone → 404",))


def test_merge_audit_metrics():
    merged = merge_audit_metrics({"indexed_pages": 2, "ctr": 1.5}, _broken_audit())
    assert merged["sitemap_health"] == 75
    assert merged["indexing_rate"] == 50
    assert merged["ctr"] == 1.5
    assert merged["schema_validity"] == 100


def test_critical_issues_include_stalled_agents_and_critical_goals():
    goals = evaluate_goals({"sitemap_health": 10})
    issues = collect_critical_issues(_broken_audit(), goals, _stalled_agents())
    assert any(f"{SITE}/gone" in i for i in issues)
    assert any("Full Indexation" in i for i in issues)
    assert any("has stalled" in i for i in issues)


def test_actions_sorted_by_priority():
    goals = evaluate_goals({})
    actions = generate_actions(_broken_audit(), goals, _stalled_agents(), None)
    priorities = [a.priority for a in actions]
    assert priorities == sorted(priorities)
    assert actions[0].title == "Fix broken sitemap URLs"
    assert actions[0].estimated_impact == "critical"
    assert any(a.title == "Investigate SEO Agent" for a in actions)


def test_directives_for_broken_sitemap_and_stalled_agent():
    directives = generate_directives(_broken_audit(), evaluate_goals({}), _stalled_agents())
    urgent = [d for d in directives if d.priority == "urgent"]
    assert {d.agent_id for d in urgent} == {"seo-agent"}
    assert any(d.directive.startswith("STALLED") for d in urgent)
    assert any("sitemap" in d.directive for d in urgent)


def test_behind_goals_get_normal_directives():
    directives = generate_directives(AuditResult(), evaluate_goals({}), _healthy_agents())
    assert directives
    assert all(d.priority == "normal" for d in directives)


async def test_run_reports_broken_sitemap_url(session_factory):
    client = mock_client(_site_pages())
    orch = Orchestrator(session_factory, agents=AGENTS, auditor=LiveSiteAuditor(client=client))
    report = await orch.run("yalla-london", site_url=SITE)
    await client.aclose()

    assert report.site_url == SITE
    assert report.live_audit.sitemap_health.broken == 1
    assert any(f"{SITE}/gone" in i for i in report.critical_issues)
    assert report.metrics["sitemap_health"] == 67
    assert report.metrics["ai_crawlers_allowed"] == 12
    assert 0 <= report.health_score <= 100
    assert report.research is None

    async with session_factory() as session:
        rows = (await session.execute(select(SeoReport).where(SeoReport.report_type == "orchestrator"))).scalars().all()
        assert len(rows) == 1
        assert rows[0].data["run_id"] == report.run_id
        assert rows[0].data["live_audit_summary"]["sitemap_broken"] == 1
        health = (await session.execute(select(SiteHealthCheck))).scalars().all()
        assert len(health) == 1
        assert health[0].health_score == report.health_score
        assert health[0].total_pages == 3


async def test_second_run_same_day_overwrites_health_row(session_factory):
    client = mock_client(_site_pages())
    orch = Orchestrator(session_factory, agents=AGENTS, auditor=LiveSiteAuditor(client=client))
    await orch.run("yalla-london", site_url=SITE)
    await orch.run("yalla-london", site_url=SITE)
    await client.aclose()

    async with session_factory() as session:
        assert len((await session.execute(select(SeoReport))).scalars().all()) == 2
        assert len((await session.execute(select(SiteHealthCheck))).scalars().all()) == 1


async def test_failed_audit_falls_back_to_default(session_factory):
    orch = Orchestrator(session_factory, agents=AGENTS, auditor=ExplodingAuditor())
    report = await orch.run("yalla-london", site_url=SITE)
    assert "Live audit could not run" in report.critical_issues
    assert report.live_audit.degraded["audit"]


async def test_metrics_and_agent_logs_feed_the_run(session_factory):
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    async with session_factory() as session:
        session.add(MetricSnapshot(site_id="yalla-london", name="indexed_pages", value=2))
        session.add(CronJobLog(job_name="seo-agent", started_at=now - timedelta(hours=1), duration_ms=1000))
        await session.commit()

    client = mock_client(_site_pages())
    orch = Orchestrator(session_factory, agents=AGENTS, auditor=LiveSiteAuditor(client=client))
    report = await orch.run("yalla-london", site_url=SITE)
    await client.aclose()

    assert report.metrics["indexed_pages"] == 2
    assert report.agent_performance.overall_health == "healthy"
    assert report.agent_performance.agents[0].runs_24h == 1
    assert not any("stall" in i.lower() for i in report.critical_issues)


async def test_research_skipped_without_budget(session_factory):
    orch = Orchestrator(session_factory, agents=AGENTS, auditor=ExplodingAuditor())
    report = await orch.run("yalla-london", site_url=SITE, include_research=True, max_duration_s=5)
    assert report.research is None
