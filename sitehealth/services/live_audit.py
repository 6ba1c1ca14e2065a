"""
Live site auditor: probes the deployed site over HTTP and reports sitemap
health, structured-data URL validity, robots.txt conflicts, CDN cache
behaviour and server-rendering problems.

Every sub-check runs under a guard: a failure leaves the sub-check's empty
result in place and records the reason in ``AuditResult.degraded``, so a
caller can tell "nothing wrong" from "could not look". Time is budgeted
against an absolute ``time.monotonic()`` deadline checked before each batch
or page; in-flight requests are bounded by the client's own timeout.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, List, Optional, Tuple
from urllib.parse import urlparse
import asyncio
import logging
import time

import httpx
from bs4 import BeautifulSoup

from sitehealth.config import AuditorConfig
from sitehealth.services.http import ProbeResult, fetch_text, make_client, probe
from sitehealth.services.jsonld_extract import collect_schema_urls, extract_onpage_jsonld
from sitehealth.services.robots import RobotsReport, analyze_robots
from sitehealth.services.score import audit_score

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BrokenUrl:
    url: str
    status: int
    latency_ms: int = 0


@dataclass(frozen=True)
class SitemapHealth:
    total_urls: int = 0
    total_sitemap_urls: int = 0
    checked_urls: int = 0
    healthy: int = 0
    broken: int = 0
    redirected: int = 0
    slow: int = 0
    broken_urls: Tuple[BrokenUrl, ...] = ()
    avg_latency_ms: int = 0


@dataclass(frozen=True)
class BrokenSchemaUrl:
    page_url: str
    schema_url: str
    status: int


@dataclass(frozen=True)
class SchemaValidation:
    pages_checked: int = 0
    schemas_found: int = 0
    urls_in_schemas: int = 0
    broken_schema_urls: Tuple[BrokenSchemaUrl, ...] = ()
    valid: bool = True


@dataclass(frozen=True)
class CdnPerformance:
    sampled_urls: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: int = 0
    avg_ttfb_ms: int = 0


@dataclass(frozen=True)
class CsrBailout:
    url: str
    reason: str


@dataclass(frozen=True)
class MissingContent:
    url: str
    issue: str


@dataclass(frozen=True)
class RenderingCheck:
    pages_checked: int = 0
    csr_bailouts: Tuple[CsrBailout, ...] = ()
    missing_content: Tuple[MissingContent, ...] = ()


@dataclass(frozen=True)
class AuditResult:
    sitemap_health: SitemapHealth = field(default_factory=SitemapHealth)
    schema_validation: SchemaValidation = field(default_factory=SchemaValidation)
    robots_conflicts: RobotsReport = field(default_factory=RobotsReport)
    cdn_performance: CdnPerformance = field(default_factory=CdnPerformance)
    rendering_check: RenderingCheck = field(default_factory=RenderingCheck)
    timestamp: str = ""
    overall_score: int = 0
    critical_issues: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    degraded: Dict[str, str] = field(default_factory=dict)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _page_locs(soup: BeautifulSoup, parent: str) -> List[str]:
    """Bare <loc> text under <url> or <sitemap>; extension tags like <image:loc> are skipped."""
    out = []
    for loc in soup.find_all("loc"):
        if loc.prefix or loc.parent is None or loc.parent.name != parent or loc.parent.prefix:
            continue
        text = loc.get_text(strip=True)
        if text:
            out.append(text)
    return out


def default_audit(reason: str = "Live audit could not run") -> AuditResult:
    """Stand-in used by the orchestrator when the whole audit failed."""
    return AuditResult(
        timestamp=_now_iso(),
        critical_issues=(reason,),
        degraded={"audit": reason},
    )


def _host(url: str) -> str:
    h = (urlparse(url).hostname or "").lower()
    return h[4:] if h.startswith("www.") else h


class LiveSiteAuditor:
    def __init__(self, config: Optional[AuditorConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or AuditorConfig()
        self._client = client

    async def audit(
        self,
        site_url: str,
        max_urls: Optional[int] = None,
        deadline: Optional[float] = None,
    ) -> AuditResult:
        cfg = self.config
        site_url = site_url.rstrip("/")
        max_urls = max_urls or cfg.max_urls
        if deadline is None:
            deadline = time.monotonic() + cfg.default_timeout_s

        if self._client is not None:
            return await self._run(self._client, site_url, max_urls, deadline)
        async with make_client(cfg.user_agent, cfg.request_timeout_s) as client:
            return await self._run(client, site_url, max_urls, deadline)

    async def _guard(self, name: str, label: str, aw: Awaitable[Any], default: Any,
                     degraded: Dict[str, str], warnings: List[str]) -> Any:
        try:
            return await aw
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            log.warning(f"{label} check failed: {reason}")
            degraded[name] = reason
            warnings.append(f"{label} check failed: {reason}")
            return default

    async def _run(self, client: httpx.AsyncClient, site_url: str, max_urls: int, deadline: float) -> AuditResult:
        cfg = self.config
        critical: List[str] = []
        warnings: List[str] = []
        degraded: Dict[str, str] = {}

        sitemap, robots, cdn = await asyncio.gather(
            self._guard("sitemap", "Sitemap", self.check_sitemap(client, site_url, max_urls, deadline),
                        SitemapHealth(), degraded, warnings),
            self._guard("robots", "robots.txt", self.check_robots(client, site_url),
                        RobotsReport(), degraded, warnings),
            self._guard("cdn", "CDN", self.check_cdn(client, site_url, deadline),
                        CdnPerformance(), degraded, warnings),
        )

        if sitemap.total_sitemap_urls > sitemap.total_urls and sitemap.total_urls:
            warnings.append(
                f"Sitemap has {sitemap.total_sitemap_urls} URLs but only {sitemap.total_urls} were audited"
            )

        schema, rendering = SchemaValidation(), RenderingCheck()
        if time.monotonic() < deadline - cfg.late_checks_reserve_s:
            page_urls = [f"{site_url}{p}" for p in cfg.key_pages]
            schema, rendering = await asyncio.gather(
                self._guard("schema", "Structured data", self.check_schema(client, site_url, page_urls, deadline),
                            SchemaValidation(), degraded, warnings),
                self._guard("rendering", "Rendering", self.check_rendering(client, page_urls, deadline),
                            RenderingCheck(), degraded, warnings),
            )
        else:
            log.info(f"Skipping schema and rendering checks for {site_url}: audit budget exhausted")
            degraded.setdefault("schema", "skipped: audit budget exhausted")
            degraded.setdefault("rendering", "skipped: audit budget exhausted")

        if sitemap.broken > 0:
            top = ", ".join(f"{b.url} → {b.status}" for b in sitemap.broken_urls[:5])
            critical.append(f"{sitemap.broken} sitemap URLs return non-200 status (404/500): {top}")
        if robots.has_injection:
            critical.append("A CDN or vendor is injecting AI crawler blocks into robots.txt that override your Allow rules")
        if robots.ai_crawlers_blocked:
            critical.append(
                f"{len(robots.ai_crawlers_blocked)} AI crawlers are blocked: {', '.join(robots.ai_crawlers_blocked)}"
            )
        if schema.broken_schema_urls:
            critical.append(
                f"{len(schema.broken_schema_urls)} broken URLs in structured data: "
                + ", ".join(b.schema_url for b in schema.broken_schema_urls)
            )
        if rendering.csr_bailouts:
            warnings.append(
                f"{len(rendering.csr_bailouts)} pages bail out to client-side rendering: "
                + ", ".join(b.url for b in rendering.csr_bailouts)
            )
        if cdn.sampled_urls > 0 and cdn.hit_rate < 10:
            warnings.append(f"CDN cache hit rate is {cdn.hit_rate}%; most requests hit origin")

        score = audit_score(len(critical), len(warnings), sitemap.broken, sitemap.total_urls, cdn.hit_rate)
        return AuditResult(
            sitemap_health=sitemap,
            schema_validation=schema,
            robots_conflicts=robots,
            cdn_performance=cdn,
            rendering_check=rendering,
            timestamp=_now_iso(),
            overall_score=score,
            critical_issues=tuple(critical),
            warnings=tuple(warnings),
            degraded=degraded,
        )

    # -- sitemap -----------------------------------------------------------

    async def _sitemap_locs(self, client: httpx.AsyncClient, xml: str) -> List[str]:
        soup = BeautifulSoup(xml, "xml")
        if soup.find("sitemapindex") is None:
            return _page_locs(soup, "url")

        children = _page_locs(soup, "sitemap")[: self.config.max_child_sitemaps]
        urls: List[str] = []
        for child in children:
            try:
                status, body, _ = await fetch_text(client, child)
            except httpx.HTTPError as e:
                log.warning(f"Child sitemap {child} failed: {e}")
                continue
            if not 200 <= status < 300:
                log.warning(f"Child sitemap {child} returned {status}")
                continue
            sub = BeautifulSoup(body, "xml")
            urls.extend(_page_locs(sub, "url"))
        return urls

    async def check_sitemap(self, client: httpx.AsyncClient, site_url: str, max_urls: int, deadline: float) -> SitemapHealth:
        cfg = self.config
        sitemap_url = f"{site_url}/sitemap.xml"
        status, body, _ = await fetch_text(client, sitemap_url)
        if not 200 <= status < 300:
            return SitemapHealth(broken=1, broken_urls=(BrokenUrl(sitemap_url, status),))

        all_urls = await self._sitemap_locs(client, body)
        selected = all_urls[:max_urls]

        healthy = broken = redirected = slow = 0
        broken_urls: List[BrokenUrl] = []
        latencies: List[int] = []

        async def _one(url: str) -> ProbeResult:
            started = time.monotonic()
            try:
                return await probe(client, url, follow_redirects=False)
            except httpx.HTTPError as e:
                log.debug(f"Probe failed for {url}: {e}")
                return ProbeResult(url=url, status=0, latency_ms=int((time.monotonic() - started) * 1000))

        for i in range(0, len(selected), cfg.batch_size):
            if time.monotonic() > deadline - cfg.reserve_s:
                log.info(f"Sitemap probing stopped after {i} of {len(selected)} URLs: deadline")
                break
            batch = selected[i:i + cfg.batch_size]
            for res in await asyncio.gather(*(_one(u) for u in batch)):
                latencies.append(res.latency_ms)
                if res.latency_ms > cfg.slow_ms:
                    slow += 1
                if 200 <= res.status < 300:
                    healthy += 1
                elif 300 <= res.status < 400:
                    redirected += 1
                else:
                    broken += 1
                    broken_urls.append(BrokenUrl(res.url, res.status, res.latency_ms))

        return SitemapHealth(
            total_urls=len(selected),
            total_sitemap_urls=len(all_urls),
            checked_urls=len(latencies),
            healthy=healthy,
            broken=broken,
            redirected=redirected,
            slow=slow,
            broken_urls=tuple(broken_urls),
            avg_latency_ms=round(sum(latencies) / len(latencies)) if latencies else 0,
        )

    # -- robots ------------------------------------------------------------

    async def check_robots(self, client: httpx.AsyncClient, site_url: str) -> RobotsReport:
        status, body, _ = await fetch_text(client, f"{site_url}/robots.txt")
        if not 200 <= status < 300:
            return RobotsReport(fetched=False)
        return analyze_robots(body, self.config.ai_crawlers)

    # -- CDN ---------------------------------------------------------------

    async def check_cdn(self, client: httpx.AsyncClient, site_url: str, deadline: float) -> CdnPerformance:
        cfg = self.config
        if time.monotonic() > deadline:
            return CdnPerformance()
        results = await asyncio.gather(
            *(probe(client, f"{site_url}{p}", follow_redirects=True) for p in cfg.cdn_paths),
            return_exceptions=True,
        )
        hits = misses = 0
        ttfb: List[int] = []
        for res in results:
            if isinstance(res, Exception):
                continue
            ttfb.append(res.latency_ms)
            if res.headers.get(cfg.cache_status_header, "").upper() in cfg.cache_hit_values:
                hits += 1
            else:
                misses += 1
        sampled = len(ttfb)
        return CdnPerformance(
            sampled_urls=sampled,
            hits=hits,
            misses=misses,
            hit_rate=round(100 * hits / sampled) if sampled else 0,
            avg_ttfb_ms=round(sum(ttfb) / sampled) if sampled else 0,
        )

    # -- structured data ---------------------------------------------------

    def _same_site(self, site_url: str, url: str) -> bool:
        return url.startswith("/") or _host(url) == _host(site_url)

    async def check_schema(self, client: httpx.AsyncClient, site_url: str, page_urls: List[str], deadline: float) -> SchemaValidation:
        cfg = self.config
        pages = schemas = urls_seen = 0
        broken: List[BrokenSchemaUrl] = []

        for page_url in page_urls:
            if time.monotonic() > deadline - cfg.schema_page_reserve_s:
                log.info("Schema URL check stopped early: deadline")
                break
            try:
                status, html, _ = await fetch_text(client, page_url)
            except httpx.HTTPError as e:
                log.warning(f"Schema check could not fetch {page_url}: {e}")
                continue
            if not 200 <= status < 300:
                continue
            pages += 1

            blocks = extract_onpage_jsonld(html)
            schemas += len(blocks)
            found: List[str] = []
            for block in blocks:
                for u in collect_schema_urls(block, cfg.schema_url_keys):
                    if u not in found:
                        found.append(u)
            urls_seen += len(found)
            targets = [u for u in found if self._same_site(site_url, u)][: cfg.max_schema_urls]

            async def _check(u: str) -> Optional[BrokenSchemaUrl]:
                full = f"{site_url}{u}" if u.startswith("/") else u
                try:
                    res = await probe(client, full, follow_redirects=True)
                except httpx.HTTPError as e:
                    log.debug(f"Schema URL probe failed for {full}: {e}")
                    return None
                return None if res.ok else BrokenSchemaUrl(page_url, u, res.status)

            for item in await asyncio.gather(*(_check(u) for u in targets)):
                if item is not None:
                    broken.append(item)

        return SchemaValidation(
            pages_checked=pages,
            schemas_found=schemas,
            urls_in_schemas=urls_seen,
            broken_schema_urls=tuple(broken),
            valid=not broken,
        )

    # -- rendering ---------------------------------------------------------

    async def check_rendering(self, client: httpx.AsyncClient, page_urls: List[str], deadline: float) -> RenderingCheck:
        cfg = self.config
        pages = 0
        bailouts: List[CsrBailout] = []
        missing: List[MissingContent] = []

        for page_url in page_urls[: cfg.max_render_pages]:
            if time.monotonic() > deadline - cfg.render_page_reserve_s:
                log.info("Rendering check stopped early: deadline")
                break
            try:
                status, html, headers = await fetch_text(client, page_url)
            except httpx.HTTPError as e:
                log.warning(f"Rendering check could not fetch {page_url}: {e}")
                continue
            if not 200 <= status < 300:
                continue
            pages += 1

            soup = BeautifulSoup(html, "lxml")
            body = soup.body.decode_contents() if soup.body else ""
            has_main = soup.find("main") is not None or soup.find(id="main-content") is not None
            if len(body) < cfg.thin_body_chars and has_main:
                bailouts.append(CsrBailout(page_url, f"Body has only {len(body)} chars of markup despite a main-content marker"))
            elif headers.get(cfg.render_cache_header, "").upper() == "STALE":
                bailouts.append(CsrBailout(page_url, f"{cfg.render_cache_header} is STALE"))

            if urlparse(page_url).path not in ("", "/") and soup.find("article") is None and soup.find("h1") is None:
                missing.append(MissingContent(page_url, "No <article> or <h1> found in server-rendered HTML"))

        return RenderingCheck(pages_checked=pages, csr_bailouts=tuple(bailouts), missing_content=tuple(missing))
