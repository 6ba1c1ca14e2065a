"""
robots.txt parsing and AI-crawler classification.

Conflict resolution uses "first group wins": when a crawler is named in
several groups that disagree on ``/``, the earliest group decides. Real
crawlers merge or pick groups in different ways, so this is an
approximation of how the major ones behave, not a model of any single
crawler's parser.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple, Iterable
import re

INJECTION_BANNERS = ("# Cloudflare", "# Managed by Cloudflare", "# Managed by")

_LINE_RE = re.compile(r"^\s*([A-Za-z-]+)\s*:\s*(.*?)\s*$")


@dataclass(frozen=True)
class RobotsRule:
    kind: str  # allow | disallow
    path: str


@dataclass(frozen=True)
class RobotsGroup:
    agents: Tuple[str, ...]
    rules: Tuple[RobotsRule, ...] = ()

    def matches(self, agent: str) -> bool:
        a = agent.lower()
        return any(x.lower() == a for x in self.agents)

    def has_rule(self, kind: str, path: str = "/") -> bool:
        return any(r.kind == kind and r.path == path for r in self.rules)


@dataclass(frozen=True)
class RobotsConflict:
    user_agent: str
    issue: str
    severity: str = "critical"


@dataclass(frozen=True)
class RobotsReport:
    fetched: bool = False
    conflicts: Tuple[RobotsConflict, ...] = ()
    ai_crawlers_blocked: Tuple[str, ...] = ()
    ai_crawlers_allowed: Tuple[str, ...] = ()
    has_injection: bool = False


@dataclass
class _Builder:
    agents: List[str] = field(default_factory=list)
    rules: List[RobotsRule] = field(default_factory=list)


def parse_robots(content: str) -> List[RobotsGroup]:
    """
    Split robots.txt into ordered groups. Consecutive User-agent lines share
    one group; a User-agent line after any rule starts a new group. Comments,
    blank lines and directives other than allow/disallow are ignored.
    """
    groups: List[RobotsGroup] = []
    cur: _Builder | None = None

    def _close() -> None:
        if cur and cur.agents:
            groups.append(RobotsGroup(tuple(cur.agents), tuple(cur.rules)))

    for raw in (content or "").splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        m = _LINE_RE.match(line)
        if not m:
            continue
        key, value = m.group(1).lower(), m.group(2)
        if key == "user-agent":
            if cur is None or cur.rules:
                _close()
                cur = _Builder()
            cur.agents.append(value)
        elif key in ("allow", "disallow") and cur is not None:
            cur.rules.append(RobotsRule(key, value))
    _close()
    return groups


def has_vendor_injection(content: str, groups: List[RobotsGroup], crawlers: Iterable[str]) -> bool:
    """
    True when robots.txt carries a vendor-managed banner, or when a crawler's
    Disallow: / group is followed later by an Allow: / group for the same crawler
    (the shape left behind when a CDN prepends its own block list).
    """
    text = content or ""
    if any(b in text for b in INJECTION_BANNERS):
        return True
    for crawler in crawlers:
        seen_disallow = False
        for g in groups:
            if not g.matches(crawler):
                continue
            if g.has_rule("disallow"):
                seen_disallow = True
            elif seen_disallow and g.has_rule("allow"):
                return True
    return False


def analyze_robots(content: str, crawlers: Iterable[str]) -> RobotsReport:
    crawlers = list(crawlers)
    groups = parse_robots(content)
    conflicts: List[RobotsConflict] = []
    blocked: List[str] = []
    allowed: List[str] = []

    for crawler in crawlers:
        own = [g for g in groups if g.matches(crawler)]
        if not own:
            wildcard_blocked = any(g.matches("*") and g.has_rule("disallow") for g in groups)
            (blocked if wildcard_blocked else allowed).append(crawler)
            continue

        has_disallow = any(g.has_rule("disallow") for g in own)
        has_allow = any(g.has_rule("allow") for g in own)
        if has_disallow and has_allow:
            conflicts.append(RobotsConflict(
                user_agent=crawler,
                issue="Has both Disallow: / and Allow: /; the first group wins for most crawlers",
            ))
            (blocked if own[0].has_rule("disallow") else allowed).append(crawler)
        elif has_disallow:
            blocked.append(crawler)
        else:
            allowed.append(crawler)

    return RobotsReport(
        fetched=True,
        conflicts=tuple(conflicts),
        ai_crawlers_blocked=tuple(blocked),
        ai_crawlers_allowed=tuple(allowed),
        has_injection=has_vendor_injection(content, groups, crawlers),
    )
