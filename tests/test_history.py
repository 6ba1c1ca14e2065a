from datetime import date, datetime, timedelta, timezone

from sqlalchemy import DateTime, select

from sitehealth.models import CronJobLog, MetricSnapshot, SeoReport, SiteHealthCheck
from sitehealth.services.history import (
    get_report, latest_metrics, list_health_snapshots, list_reports, record_report, upsert_health_snapshot,
)


async def test_record_and_fetch_report(session):
    r = await record_report(session, "orchestrator", {"health_score": 72}, "yalla-london")
    assert r.id is not None
    fetched = await get_report(session, r.id)
    assert fetched.data == {"health_score": 72}
    assert await get_report(session, 9999) is None


async def test_list_reports_filters_and_orders(session):
    await record_report(session, "orchestrator", {"n": 1}, "yalla-london")
    await record_report(session, "research_finding", {"n": 2}, "yalla-london")
    await record_report(session, "orchestrator", {"n": 3}, "istanbul")
    await record_report(session, "orchestrator", {"n": 4}, "yalla-london")

    rows = await list_reports(session, site_id="yalla-london", report_type="orchestrator")
    assert [r.data["n"] for r in rows] == [4, 1]
    assert len(await list_reports(session)) == 4
    assert len(await list_reports(session, limit=2)) == 2
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)
    assert await list_reports(session, since=future) == []


async def _snapshot(session, score, day=None):
    return await upsert_health_snapshot(
        session, site_id="yalla-london", health_score=score, status="good",
        total_pages=50, indexed_pages=20, indexing_rate=40, pending_proposals=0, day=day,
    )


async def test_health_snapshot_is_one_row_per_day(session):
    day = date(2026, 3, 1)
    await _snapshot(session, 60, day)
    await _snapshot(session, 75, day)
    res = await session.execute(select(SiteHealthCheck))
    rows = list(res.scalars().all())
    assert len(rows) == 1
    assert rows[0].health_score == 75


async def test_list_health_snapshots(session):
    today = datetime.now(timezone.utc).replace(tzinfo=None).date()
    await _snapshot(session, 70, today)
    await _snapshot(session, 65, today - timedelta(days=1))
    await _snapshot(session, 50, today - timedelta(days=60))
    rows = await list_health_snapshots(session, "yalla-london", days=30)
    assert [r.health_score for r in rows] == [70, 65]


async def test_latest_metrics_takes_newest_value(session):
    t0 = datetime(2026, 3, 1, 8, 0)
    session.add(MetricSnapshot(site_id="yalla-london", name="indexed_pages", value=10, recorded_at=t0))
    session.add(MetricSnapshot(site_id="yalla-london", name="indexed_pages", value=25, recorded_at=t0 + timedelta(hours=1)))
    session.add(MetricSnapshot(site_id="yalla-london", name="ctr", value=1.2, recorded_at=t0))
    session.add(MetricSnapshot(site_id="istanbul", name="ctr", value=9.0, recorded_at=t0 + timedelta(hours=2)))
    await session.commit()
    assert await latest_metrics(session, "yalla-london") == {"indexed_pages": 25, "ctr": 1.2}


def test_datetime_columns_are_naive():
    for col in (SeoReport.__table__.c.generated_at, SiteHealthCheck.__table__.c.last_agent_run,
                CronJobLog.__table__.c.started_at, CronJobLog.__table__.c.completed_at,
                MetricSnapshot.__table__.c.recorded_at):
        assert isinstance(col.type, DateTime)
        assert col.type.timezone is False


async def test_snapshot_stamps_last_agent_run(session):
    row = await _snapshot(session, 80, date(2026, 3, 1))
    res = await session.execute(select(SiteHealthCheck).where(SiteHealthCheck.id == row.id))
    stored = res.scalar_one()
    assert isinstance(stored.last_agent_run, datetime)
    assert stored.last_agent_run.tzinfo is None
