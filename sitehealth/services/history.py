from __future__ import annotations
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sitehealth.models import SeoReport, SiteHealthCheck, MetricSnapshot

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

async def record_report(session: AsyncSession, report_type: str, data: Dict[str, Any], site_id: Optional[str] = None) -> SeoReport:
    """Append one immutable report record."""
    report = SeoReport(report_type=report_type, site_id=site_id, generated_at=_utcnow(), data=data)
    session.add(report)
    await session.commit()
    await session.refresh(report)
    return report

async def list_reports(
    session: AsyncSession,
    site_id: str | None = None,
    report_type: str | None = None,
    since: datetime | None = None,
    limit: int = 100,
) -> List[SeoReport]:
    stmt = select(SeoReport).order_by(SeoReport.generated_at.desc(), SeoReport.id.desc()).limit(limit)
    if site_id:
        stmt = stmt.filter(SeoReport.site_id == site_id)
    if report_type:
        stmt = stmt.filter(SeoReport.report_type == report_type)
    if since is not None:
        stmt = stmt.filter(SeoReport.generated_at >= since)
    res = await session.execute(stmt)
    return list(res.scalars().all())

async def get_report(session: AsyncSession, report_id: int) -> Optional[SeoReport]:
    res = await session.execute(select(SeoReport).where(SeoReport.id == report_id))
    return res.scalars().first()

async def upsert_health_snapshot(
    session: AsyncSession,
    site_id: str,
    health_score: int,
    status: str,
    total_pages: int,
    indexed_pages: int,
    indexing_rate: int,
    pending_proposals: int,
    day: date | None = None,
) -> SiteHealthCheck:
    """One row per (site, day); a later run on the same day overwrites the earlier one."""
    day = day or _utcnow().date()
    res = await session.execute(
        select(SiteHealthCheck).where(SiteHealthCheck.site_id == site_id, SiteHealthCheck.checked_at == day)
    )
    row = res.scalars().first()
    if row is None:
        row = SiteHealthCheck(site_id=site_id, checked_at=day)
    row.health_score = health_score
    row.status = status
    row.last_agent_run = _utcnow()
    row.total_pages = total_pages
    row.indexed_pages = indexed_pages
    row.indexing_rate = indexing_rate
    row.pending_proposals = pending_proposals
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row

async def list_health_snapshots(session: AsyncSession, site_id: str, days: int = 30) -> List[SiteHealthCheck]:
    since = _utcnow().date() - timedelta(days=days)
    res = await session.execute(
        select(SiteHealthCheck)
        .where(SiteHealthCheck.site_id == site_id, SiteHealthCheck.checked_at >= since)
        .order_by(SiteHealthCheck.checked_at.desc())
    )
    return list(res.scalars().all())

async def latest_metrics(session: AsyncSession, site_id: Optional[str]) -> Dict[str, float]:
    """Most recent value per metric name for a site (newest row wins)."""
    stmt = select(MetricSnapshot).order_by(MetricSnapshot.recorded_at.desc(), MetricSnapshot.id.desc())
    if site_id:
        stmt = stmt.filter(MetricSnapshot.site_id == site_id)
    res = await session.execute(stmt)
    out: Dict[str, float] = {}
    for snap in res.scalars().all():
        out.setdefault(snap.name, snap.value)
    return out
