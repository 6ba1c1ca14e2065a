from __future__ import annotations
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sitehealth.db import get_session
from sitehealth.services.settings import get_settings, update_settings

router = APIRouter()


class SettingsIn(BaseModel):
    gate_overrides: Optional[Dict[str, Any]] = None
    orchestrator_overrides: Optional[Dict[str, Any]] = None


def _out(s) -> Dict[str, Any]:
    return {"gate_overrides": s.gate_overrides or {}, "orchestrator_overrides": s.orchestrator_overrides or {}}


@router.get("/settings")
async def read_settings(session: AsyncSession = Depends(get_session)):
    return _out(await get_settings(session))


@router.post("/settings")
async def save_settings(body: SettingsIn, session: AsyncSession = Depends(get_session)):
    s = await update_settings(session, gate_overrides=body.gate_overrides, orchestrator_overrides=body.orchestrator_overrides)
    return _out(s)
