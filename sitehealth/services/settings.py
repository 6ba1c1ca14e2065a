from __future__ import annotations
from dataclasses import fields, replace
from typing import Optional, Dict, Any, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from sitehealth.config import AuditorConfig, OrchestratorConfig, ResearchConfig
from sitehealth.settings_models import Settings
from sitehealth.standards import Standards, DEFAULT_STANDARDS

log = logging.getLogger(__name__)


async def _ensure_settings_table(session: AsyncSession) -> None:
    """Create missing tables on a fresh database; safe to call repeatedly."""
    await session.run_sync(lambda s: SQLModel.metadata.create_all(bind=s.connection()))
    await session.commit()


async def get_settings(session: AsyncSession) -> Settings:
    # Try normal path first; on schema error, create the table and retry
    try:
        res = await session.execute(select(Settings).limit(1))
        s = res.scalars().first()
    except OperationalError:
        await session.rollback()
        await _ensure_settings_table(session)
        res = await session.execute(select(Settings).limit(1))
        s = res.scalars().first()

    if s is None:
        s = Settings()
        session.add(s)
        await session.commit()
        await session.refresh(s)
    return s


async def update_settings(
    session: AsyncSession,
    gate_overrides: Optional[Dict[str, Any]] = None,
    orchestrator_overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    s = await get_settings(session)
    if gate_overrides is not None:
        s.gate_overrides = gate_overrides
    if orchestrator_overrides is not None:
        s.orchestrator_overrides = orchestrator_overrides
    session.add(s)
    await session.commit()
    await session.refresh(s)
    return s


def apply_overrides(obj, overrides: Any):
    """Return a copy of a frozen config dataclass with known keys replaced; unknown keys are ignored."""
    if not isinstance(overrides, dict) or not overrides:
        return obj
    names = {f.name for f in fields(obj)}
    changes = {}
    for key, value in overrides.items():
        if key not in names:
            log.warning(f"Ignoring unknown override {type(obj).__name__}.{key}")
            continue
        if isinstance(getattr(obj, key), tuple) and isinstance(value, list):
            value = tuple(value)
        changes[key] = value
    return replace(obj, **changes)


def standards_from(gate_overrides: Dict[str, Any], base: Standards = DEFAULT_STANDARDS) -> Standards:
    overrides = gate_overrides or {}
    quality = apply_overrides(base.quality, overrides.get("quality"))
    types = {
        name: apply_overrides(th, overrides.get(name))
        for name, th in base.content_types.items()
    }
    return replace(base, quality=quality, content_types=types)


def configs_from(orchestrator_overrides: Dict[str, Any]) -> Tuple[AuditorConfig, ResearchConfig, OrchestratorConfig]:
    o = orchestrator_overrides or {}
    return (
        apply_overrides(AuditorConfig(), o.get("auditor")),
        apply_overrides(ResearchConfig(), o.get("research")),
        apply_overrides(OrchestratorConfig(), o.get("orchestrator")),
    )


async def load_standards(session: AsyncSession) -> Standards:
    s = await get_settings(session)
    return standards_from(s.gate_overrides)


async def load_configs(session: AsyncSession) -> Tuple[AuditorConfig, ResearchConfig, OrchestratorConfig]:
    s = await get_settings(session)
    return configs_from(s.orchestrator_overrides)
