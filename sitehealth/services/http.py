from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional
import logging
import time
import httpx

from sitehealth.config import USER_AGENT

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    url: str
    status: int
    latency_ms: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def make_client(user_agent: str = USER_AGENT, timeout: float = 5.0) -> httpx.AsyncClient:
    """Shared client for one run; the per-request timeout bounds any single hung probe."""
    return httpx.AsyncClient(headers={"User-Agent": user_agent}, timeout=timeout)


async def probe(
    client: httpx.AsyncClient,
    url: str,
    follow_redirects: bool = False,
    timeout: Optional[float] = None,
) -> ProbeResult:
    """
    HEAD a URL and time it. Transport errors propagate to the caller, which
    decides whether a failed probe counts as broken or is skipped.
    """
    started = time.monotonic()
    kwargs = {"follow_redirects": follow_redirects}
    if timeout is not None:
        kwargs["timeout"] = timeout
    r = await client.head(url, **kwargs)
    latency = int((time.monotonic() - started) * 1000)
    log.debug(f"HEAD {url} -> {r.status_code} in {latency}ms")
    return ProbeResult(url=url, status=r.status_code, latency_ms=latency, headers={k.lower(): v for k, v in r.headers.items()})


async def fetch_text(
    client: httpx.AsyncClient,
    url: str,
    timeout: Optional[float] = None,
) -> tuple[int, str, Dict[str, str]]:
    kwargs = {"follow_redirects": True}
    if timeout is not None:
        kwargs["timeout"] = timeout
    r = await client.get(url, **kwargs)
    return r.status_code, r.text, {k.lower(): v for k, v in r.headers.items()}
