from __future__ import annotations
from typing import Optional, Dict, Any
from sqlmodel import SQLModel, Field, Column, JSON

class Settings(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Operator overrides, merged onto the typed defaults at run time.
    # gate_overrides: {"quality": {...}, "blog": {...}, "news": {...}, ...}
    gate_overrides: Dict[str, Any] = Field(sa_column=Column(JSON), default_factory=dict)
    # orchestrator_overrides: {"auditor": {...}, "research": {...}, "orchestrator": {...}}
    orchestrator_overrides: Dict[str, Any] = Field(sa_column=Column(JSON), default_factory=dict)
