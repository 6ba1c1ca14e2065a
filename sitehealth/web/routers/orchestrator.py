from __future__ import annotations

import uuid
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from starlette.responses import JSONResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.db import AsyncSessionLocal, get_session
from sitehealth.sites import SITES, active_sites, get_site
from sitehealth.services.live_audit import LiveSiteAuditor
from sitehealth.services.orchestrator import Orchestrator
from sitehealth.services.progress import create_job, update_job, finish_job, fail_job, get_job
from sitehealth.services.research import WeeklyResearchAgent
from sitehealth.services.settings import load_configs

log = logging.getLogger(__name__)
router = APIRouter()

# strong refs to running background jobs
_background: set[asyncio.Task] = set()


class RunRequest(BaseModel):
    site_id: str
    site_url: Optional[str] = None
    include_research: bool = False
    max_duration_s: Optional[float] = None


async def build_orchestrator(session: AsyncSession) -> Orchestrator:
    auditor_cfg, research_cfg, orch_cfg = await load_configs(session)
    return Orchestrator(
        AsyncSessionLocal,
        config=orch_cfg,
        auditor=LiveSiteAuditor(auditor_cfg),
        research_agent=WeeklyResearchAgent(AsyncSessionLocal, config=research_cfg),
    )


def _known_site(site_id: str) -> None:
    if get_site(site_id) is None:
        raise HTTPException(status_code=404, detail=f"unknown site {site_id}")


@router.post("/orchestrator/run")
async def run_orchestrator(body: RunRequest, session: AsyncSession = Depends(get_session)):
    _known_site(body.site_id)
    orch = await build_orchestrator(session)
    report = await orch.run(body.site_id, body.site_url, body.include_research, body.max_duration_s)
    return asdict(report)


@router.post("/orchestrator/run_async")
async def run_orchestrator_async(body: RunRequest, session: AsyncSession = Depends(get_session)):
    _known_site(body.site_id)
    orch = await build_orchestrator(session)
    job_id = uuid.uuid4().hex
    await create_job(job_id, body.site_id)

    async def runner():
        try:
            await update_job(job_id, 5, f"Auditing {body.site_id}")
            report = await orch.run(body.site_id, body.site_url, body.include_research, body.max_duration_s)
            await finish_job(job_id, asdict(report))
        except Exception as e:
            log.exception(f"Background orchestrator run {job_id} failed")
            await fail_job(job_id, str(e))

    task = asyncio.create_task(runner())
    _background.add(task)
    task.add_done_callback(_background.discard)
    return {"job_id": job_id}


@router.get("/api/job/{job_id}")
async def api_job(job_id: str):
    job = await get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="job not found")
    return JSONResponse(json.loads(json.dumps(job, default=str)))


@router.get("/events/{job_id}")
async def events(job_id: str):
    async def event_stream():
        last_len = 0
        for _ in range(900):
            job = await get_job(job_id)
            if not job:
                yield "event: error\n"
                yield "data: {\"msg\": \"unknown job\", \"progress\": 100}\n\n"
                return
            msgs = job.get("messages") or []
            for i in range(last_len, len(msgs)):
                payload = {"msg": msgs[i]["msg"], "progress": int(job.get("progress", 0))}
                yield "data: " + json.dumps(payload) + "\n\n"
            last_len = len(msgs)
            if job.get("status") in ("done", "error"):
                yield "data: " + json.dumps({"msg": job["status"], "progress": 100}) + "\n\n"
                return
            await asyncio.sleep(1)
    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.get("/cron/orchestrator")
async def cron_orchestrator(mode: str = "daily", session: AsyncSession = Depends(get_session)):
    """Daily: audit + goals + agents for every active site. Weekly adds research."""
    if mode not in ("daily", "weekly"):
        raise HTTPException(status_code=400, detail="mode must be daily or weekly")
    orch = await build_orchestrator(session)
    results = []
    for site in active_sites(SITES):
        report = await orch.run(site.id, include_research=(mode == "weekly"))
        results.append({
            "site_id": site.id,
            "health_score": report.health_score,
            "status": report.status,
            "critical_issues": len(report.critical_issues),
            "duration_ms": report.duration_ms,
        })
    return {"mode": mode, "sites": results}
