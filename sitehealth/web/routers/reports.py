from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.db import get_session
from sitehealth.services.history import get_report, list_health_snapshots, list_reports
from sitehealth.services.research import get_recent_findings

router = APIRouter()


@router.get("/reports")
async def reports(
    site_id: Optional[str] = None,
    report_type: Optional[str] = None,
    limit: int = 50,
    session: AsyncSession = Depends(get_session),
):
    return await list_reports(session, site_id=site_id, report_type=report_type, limit=min(limit, 500))


@router.get("/reports/{report_id}")
async def report(report_id: int, session: AsyncSession = Depends(get_session)):
    r = await get_report(session, report_id)
    if r is None:
        raise HTTPException(status_code=404, detail="report not found")
    return r


@router.get("/health/{site_id}")
async def health_history(site_id: str, days: int = 30, session: AsyncSession = Depends(get_session)):
    return await list_health_snapshots(session, site_id, days=days)


@router.get("/findings/{agent_id}")
async def findings(agent_id: str, days_back: int = 14, session: AsyncSession = Depends(get_session)):
    return await get_recent_findings(session, agent_id, days_back=days_back)
