from __future__ import annotations
from typing import Dict, Optional, Tuple, Union

import httpx
import pytest

from sitehealth.db import create_tables, make_engine, make_session_factory

Entry = Union[Tuple[int, str, Dict[str, str]], type]


def page(status: int = 200, body: str = "", headers: Optional[Dict[str, str]] = None) -> Tuple[int, str, Dict[str, str]]:
    return status, body, headers or {}


def mock_client(pages: Dict[str, Entry]) -> httpx.AsyncClient:
    """
    AsyncClient answering from a url -> page(...) table. Unknown URLs are 404.
    An exception class as the entry is raised instead (e.g. httpx.ConnectError).
    """
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        seen.append((request.method, url))
        entry = pages.get(url)
        if entry is None:
            return httpx.Response(404, text="not found")
        if isinstance(entry, type):
            raise entry("simulated failure", request=request)
        status, body, headers = entry
        return httpx.Response(status, text=body, headers=headers)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client.seen = seen
    return client


@pytest.fixture
async def session_factory(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_tables(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s
