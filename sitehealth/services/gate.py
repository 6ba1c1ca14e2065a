"""
Pre-publication gate: decides whether one piece of content may go live.

Checks run in a fixed order and each appends one GateCheck when it applies.
A failing check is either a blocker (publication stops) or a warning
(advisory). Thresholds come from the injected ``Standards`` and are chosen
per content type from the target URL.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse
import logging

import httpx

from sitehealth.config import USER_AGENT
from sitehealth.rules import RuleSet, DEFAULT_RULES
from sitehealth.sites import SITES, SiteConfig, internal_link_pattern, site_url as resolve_site_url
from sitehealth.standards import Standards, DEFAULT_STANDARDS
from sitehealth.services import content_signals as sig
from sitehealth.services.http import probe

log = logging.getLogger(__name__)


@dataclass
class ContentItem:
    title_en: Optional[str] = None
    title_ar: Optional[str] = None
    meta_title_en: Optional[str] = None
    meta_description_en: Optional[str] = None
    content_en: Optional[str] = None
    content_ar: Optional[str] = None
    locale: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    seo_score: Optional[float] = None
    author_id: Optional[str] = None
    keywords_json: Any = None


@dataclass(frozen=True)
class GateCheck:
    name: str
    passed: bool
    message: str
    severity: str  # blocker | warning | info


@dataclass(frozen=True)
class GateResult:
    checks: Tuple[GateCheck, ...]
    blockers: Tuple[str, ...]
    warnings: Tuple[str, ...]

    @property
    def allowed(self) -> bool:
        return not self.blockers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checks": [asdict(c) for c in self.checks],
            "blockers": list(self.blockers),
            "warnings": list(self.warnings),
            "allowed": self.allowed,
        }


def parent_route(target_url: str) -> Optional[str]:
    """/blog/my-post -> /blog ; /ar/blog/x -> /ar/blog ; /about -> None"""
    path = urlparse(target_url).path if "://" in target_url else target_url
    segments = [s for s in path.split("/") if s]
    if len(segments) <= 1:
        return None
    return "/" + "/".join(segments[:-1])


class _Checks:
    """Accumulates checks and keeps blockers/warnings in step with them."""

    def __init__(self) -> None:
        self.checks: List[GateCheck] = []
        self.blockers: List[str] = []
        self.warnings: List[str] = []

    def ok(self, name: str, message: str) -> None:
        self.checks.append(GateCheck(name, True, message, "info"))

    def fail(self, name: str, message: str, severity: str = "warning") -> None:
        self.checks.append(GateCheck(name, False, message, severity))
        (self.blockers if severity == "blocker" else self.warnings).append(message)

    def result(self) -> GateResult:
        return GateResult(tuple(self.checks), tuple(self.blockers), tuple(self.warnings))


class PrePublicationGate:
    def __init__(
        self,
        standards: Standards = DEFAULT_STANDARDS,
        sites: Optional[Dict[str, SiteConfig]] = None,
        rules: RuleSet = DEFAULT_RULES,
        client: Optional[httpx.AsyncClient] = None,
        request_timeout_s: float = 5.0,
    ):
        self.standards = standards
        self.sites = sites if sites is not None else SITES
        self.rules = rules
        self._client = client
        self.request_timeout_s = request_timeout_s
        self._link_re = internal_link_pattern(self.sites)

    async def run(
        self,
        target_url: str,
        content: ContentItem,
        site_url: Optional[str] = None,
        skip_route_check: bool = False,
    ) -> GateResult:
        out = _Checks()
        if not skip_route_check:
            base = (site_url or resolve_site_url(None, self.sites)).rstrip("/")
            if self._client is not None:
                await self._route_checks(self._client, out, base, target_url, content)
            else:
                async with httpx.AsyncClient(headers={"User-Agent": USER_AGENT}, timeout=self.request_timeout_s) as client:
                    await self._route_checks(client, out, base, target_url, content)
        self._content_checks(out, target_url, content)
        return out.result()

    async def _route_checks(self, client: httpx.AsyncClient, out: _Checks, base: str,
                            target_url: str, content: ContentItem) -> None:
        parent = parent_route(target_url)
        if parent:
            try:
                res = await probe(client, f"{base}{parent}")
            except httpx.HTTPError as e:
                log.warning(f"Route check for {parent} failed: {e}")
                out.fail("Route Existence", f"Could not verify route existence for {parent}: {e}")
            else:
                if res.status == 404:
                    out.fail(
                        "Route Existence",
                        f"Parent route {parent} returns 404; content at {target_url} will be unreachable",
                        "blocker",
                    )
                else:
                    out.ok("Route Existence", f"Parent route {parent} returns {res.status}")

        path = urlparse(target_url).path if "://" in target_url else target_url
        if content.locale == "ar" or path.startswith("/ar/"):
            try:
                res = await probe(client, f"{base}/ar")
            except httpx.HTTPError as e:
                log.warning(f"Arabic route check failed: {e}")
                out.fail("Arabic Routes", "Could not verify Arabic route status")
            else:
                if res.status == 404:
                    out.fail(
                        "Arabic Routes",
                        "Arabic routes (/ar/) return 404; Arabic content will be unreachable",
                        "blocker",
                    )
                else:
                    out.ok("Arabic Routes", "Arabic routes are accessible")

    def _content_checks(self, out: _Checks, target_url: str, content: ContentItem) -> None:
        t = self.standards.thresholds_for_url(target_url)
        q = self.standards.quality
        arabic_only = sig.is_arabic_only(content.locale, content.content_en, content.content_ar)
        body = (content.content_ar if arabic_only else content.content_en) or ""

        title = (content.title_ar if arabic_only else content.title_en) or ""
        if len(title) < q.min_title_length:
            out.fail("Title", f"Title missing or too short ({len(title)} chars, min {q.min_title_length})", "blocker")
        else:
            out.ok("Title", f"Title: {len(title)} chars")

        mt = content.meta_title_en or ""
        lo, hi = t.meta_title_optimal
        if len(mt) < t.meta_title_min:
            out.fail("Meta Title", f"Meta title missing or too short ({len(mt)} chars, min {t.meta_title_min}, optimal {lo}-{hi})")
        elif len(mt) > t.meta_title_max:
            out.fail("Meta Title", f"Meta title too long ({len(mt)} chars, max {t.meta_title_max}); truncated beyond ~{hi} chars in results")
        else:
            out.ok("Meta Title", f"Meta title: {len(mt)} chars")

        md = content.meta_description_en or ""
        lo, hi = t.meta_description_optimal
        if len(md) < t.meta_description_min:
            out.fail("Meta Description", f"Meta description missing or too short ({len(md)} chars, min {t.meta_description_min}, optimal {lo}-{hi})")
        elif len(md) > hi:
            out.fail("Meta Description", f"Meta description too long ({len(md)} chars, max {hi})")
        else:
            out.ok("Meta Description", f"Meta description: {len(md)} chars")

        suffix = " [Arabic content]" if arabic_only else ""
        if len(body) < t.thin_content_threshold:
            out.fail(
                "Content Length",
                f"Content too short ({len(body)} chars, min {t.thin_content_threshold} for this content type){suffix}",
                "blocker",
            )
        else:
            out.ok("Content Length", f"Content length: {len(body)} chars{suffix}")

        if content.seo_score is not None:
            score = content.seo_score
            if score < t.quality_gate_score:
                severity = "blocker" if score < t.seo_score_blocker else "warning"
                out.fail("SEO Score", f"SEO score {score:g} is below the minimum ({t.quality_gate_score} for this content type)", severity)
            else:
                out.ok("SEO Score", f"SEO score {score:g} meets the {t.quality_gate_score} threshold")

        if not body:
            self._meta_checks(out, content)
            return

        if len(body) > q.heading_check_min_chars:
            passed, msg = sig.check_heading_hierarchy(sig.heading_levels(body), q.max_h1_count, t.min_h2_count)
            if passed:
                out.ok("Heading Hierarchy", msg)
            else:
                out.fail("Heading Hierarchy", msg)

        words = sig.count_words(body)
        if words < t.min_words:
            out.fail("Word Count", f"Content has {words} words (below the {t.min_words} minimum for this content type)", "blocker")
        elif words < t.target_words:
            out.fail("Word Count", f"Content has {words} words (target {t.target_words}+ for this content type)")
        else:
            out.ok("Word Count", f"Content has {words} words (meets {t.target_words} target)")

        links = sig.count_internal_links(body, self._link_re)
        if links < t.min_internal_links:
            out.fail("Internal Links", f"Content has {links} internal links (minimum {t.min_internal_links} for this content type)")
        else:
            out.ok("Internal Links", f"Content has {links} internal links")

        if len(body) > q.long_body_chars and not arabic_only:
            grade, _ = sig.readability(body)
            if grade > q.readability_max:
                out.fail("Readability", f"Reading level too high (grade {grade:.1f}, target <= {q.readability_max:g})")
            else:
                out.ok("Readability", f"Reading level: grade {grade:.1f}")

        total, missing = sig.image_alt_stats(body)
        if total:
            if missing:
                out.fail("Image Alt Text", f"{missing}/{total} images missing alt text")
            else:
                out.ok("Image Alt Text", f"All {total} images have alt text")

        self._meta_checks(out, content)

        if t.require_authenticity_signals and len(body) > q.long_body_chars and not arabic_only:
            signals, generic = sig.authenticity_counts(body, self.rules)
            if signals >= q.min_authenticity_signals and generic <= q.max_generic_phrases:
                out.ok("Authenticity Signals", f"Good authenticity: {signals} experience signals, {generic} generic phrases")
            elif signals < 2:
                out.fail(
                    "Authenticity Signals",
                    f"Low authenticity: only {signals} first-hand experience signals found (need {q.min_authenticity_signals}+)",
                )
            else:
                out.fail(
                    "Authenticity Signals",
                    f"Moderate authenticity: {signals} experience signals but {generic} generic phrases detected",
                )

        if t.require_affiliate_links:
            count = sig.affiliate_link_count(body, self.rules)
            if count:
                out.ok("Affiliate Links", f"Found {count} affiliate/booking link(s)")
            else:
                out.fail("Affiliate Links", "No affiliate/booking links found; articles need monetization links")

        if not arabic_only:
            issues, question_h2 = sig.aio_issues(body, self.rules)
            if issues:
                out.fail("AIO Readiness", f"AI Overview citation risk: {'; '.join(issues)}")
            else:
                out.ok("AIO Readiness", f"AI Overview ready: answer-first intro, {question_h2} question H2(s)")

    def _meta_checks(self, out: _Checks, content: ContentItem) -> None:
        if content.author_id:
            out.ok("Author Attribution", "Article has author attribution")
        else:
            out.fail("Author Attribution", "No author attributed; quality content needs identifiable authorship")

        if content.keywords_json:
            out.ok("Structured Data", "Keyword data present; structured data is injected at render time")
        else:
            out.fail("Structured Data", "No structured data or keyword data for this article")
