from __future__ import annotations
from typing import Dict, Iterable

# Overall health = weighted blend of three 0-100 components:
# 1) Live audit  (critical issues / warnings)
# 2) Business goals (share of goals critical or behind)
# 3) Agent health (overall category)

AGENT_HEALTH_SCORES: Dict[str, int] = {"healthy": 100, "degraded": 60, "critical": 20}

STATUS_BANDS = [(85, "excellent"), (65, "good"), (40, "needs_attention")]


def _clamp(value: float, lo: int = 0, hi: int = 100) -> float:
    return max(lo, min(hi, value))


def _pct(value: int, maxv: int) -> int:
    return max(0, min(100, round(100 * value / maxv))) if maxv > 0 else 0


def audit_score(critical: int, warnings: int, broken: int, total: int, hit_rate: float) -> int:
    """Live-audit score: 15 off per critical issue, 5 per warning, up to 30 for the broken sitemap share, 10 for a cold cache."""
    score = 100 - 15 * critical - 5 * warnings
    if total > 0:
        score -= round(30 * broken / total)
    if hit_rate < 50:
        score -= 10
    return int(_clamp(score))


def audit_component(critical: int, warnings: int) -> float:
    return _clamp(100 - 20 * critical - 5 * warnings)


def goals_component(statuses: Iterable[str]) -> float:
    statuses = list(statuses)
    if not statuses:
        return 100.0
    critical = sum(1 for s in statuses if s == "critical")
    behind = sum(1 for s in statuses if s == "behind")
    return _clamp(100 - (100 / len(statuses)) * (critical + 0.5 * behind))


def agents_component(overall_health: str) -> float:
    return float(AGENT_HEALTH_SCORES.get(overall_health, AGENT_HEALTH_SCORES["critical"]))


def overall_health(
    audit_critical: int,
    audit_warnings: int,
    goal_statuses: Iterable[str],
    agent_health: str,
    weights: tuple[float, float, float] = (0.40, 0.35, 0.25),
) -> int:
    wa, wg, wagents = weights
    score = (
        wa * audit_component(audit_critical, audit_warnings)
        + wg * goals_component(goal_statuses)
        + wagents * agents_component(agent_health)
    )
    return int(_clamp(round(score)))


def status_for_score(score: int) -> str:
    for floor, status in STATUS_BANDS:
        if score >= floor:
            return status
    return "critical"


def indexing_rate(indexed: int, total: int) -> int:
    return _pct(indexed, total)
