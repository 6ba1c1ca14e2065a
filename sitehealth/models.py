from __future__ import annotations
from typing import Optional
from datetime import date, datetime, timezone
from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field, Column, JSON


def _utcnow() -> datetime:
    # naive UTC; datetime columns are declared as plain DateTime
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SeoReport(SQLModel, table=True):
    """Append-only report record (orchestrator runs, research findings, agent updates)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    report_type: str = Field(index=True)
    site_id: Optional[str] = Field(default=None, index=True)
    generated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime, index=True, nullable=False))
    data: dict = Field(sa_column=Column(JSON), default_factory=dict)


class SiteHealthCheck(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("site_id", "checked_at", name="uq_site_health_day"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    site_id: str = Field(index=True)
    checked_at: date = Field(index=True)
    health_score: int = 0
    status: Optional[str] = None
    last_agent_run: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    total_pages: int = 0
    indexed_pages: int = 0
    indexing_rate: int = 0
    pending_proposals: int = 0


class CronJobLog(SQLModel, table=True):
    """Execution record written by the background agents; only read here."""
    id: Optional[int] = Field(default=None, primary_key=True)
    job_name: str = Field(index=True)
    status: str = Field(default="completed")  # completed | failed | running | timed_out
    started_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime, index=True, nullable=False))
    completed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    duration_ms: Optional[int] = None
    items_processed: int = 0
    items_succeeded: int = 0
    items_failed: int = 0
    error_message: Optional[str] = None
    site_id: Optional[str] = Field(default=None, index=True)


class MetricSnapshot(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    site_id: Optional[str] = Field(default=None, index=True)
    name: str = Field(index=True)
    value: float = 0.0
    recorded_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime, index=True, nullable=False))
