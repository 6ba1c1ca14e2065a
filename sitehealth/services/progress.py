from __future__ import annotations
import asyncio, time
from typing import Dict, Any, Optional

# In-process table of background orchestrator runs, keyed by job id
_jobs: Dict[str, Dict[str, Any]] = {}
_lock = asyncio.Lock()

# finished jobs stay readable this long
JOB_TTL_S = 3600.0

def _prune(now: float, ttl_s: float) -> int:
    stale = [jid for jid, job in _jobs.items() if "finished" in job and now - job["finished"] > ttl_s]
    for jid in stale:
        del _jobs[jid]
    return len(stale)

async def prune_jobs(ttl_s: float = JOB_TTL_S) -> int:
    """Drop done/failed jobs older than ttl_s; running jobs are kept."""
    async with _lock:
        return _prune(time.time(), ttl_s)

async def create_job(job_id: str, site_id: Optional[str] = None):
    async with _lock:
        _prune(time.time(), JOB_TTL_S)
        _jobs[job_id] = {
            "status": "pending", "site_id": site_id, "progress": 0,
            "messages": [], "result": None, "error": None, "started": time.time(),
        }

async def update_job(job_id: str, progress: int, message: str):
    async with _lock:
        job = _jobs.get(job_id)
        if job:
            job["status"] = "running"
            job["progress"] = progress
            job["messages"].append({"ts": time.time(), "msg": message})

async def finish_job(job_id: str, result: Any):
    async with _lock:
        job = _jobs.get(job_id)
        if job:
            job["status"] = "done"
            job["progress"] = 100
            job["result"] = result
            job["finished"] = time.time()

async def fail_job(job_id: str, error: str):
    async with _lock:
        job = _jobs.get(job_id)
        if job:
            job["status"] = "error"
            job["error"] = error
            job["finished"] = time.time()

async def get_job(job_id: str) -> Dict[str, Any] | None:
    async with _lock:
        job = _jobs.get(job_id)
        return dict(job) if job else None
