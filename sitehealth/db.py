from __future__ import annotations
from typing import AsyncGenerator
import os

from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

DB_URL = os.getenv("SITEHEALTH_DB_URL", "sqlite+aiosqlite:///./site_health.db")


def make_engine(url: str = DB_URL) -> AsyncEngine:
    return create_async_engine(url, echo=os.getenv("SITEHEALTH_SQL_ECHO") == "1", future=True)


def make_session_factory(bind: AsyncEngine) -> sessionmaker:
    # services open one short session per unit of work, so loaded rows must outlive commit
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = make_engine()
AsyncSessionLocal = make_session_factory(engine)


async def create_tables(bind: AsyncEngine) -> None:
    # table classes must be registered on the metadata before create_all
    from sitehealth import models, settings_models  # noqa: F401
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db() -> None:
    await create_tables(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
