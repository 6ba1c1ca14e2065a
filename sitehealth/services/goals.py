"""
Business goals and their KPIs, evaluated against a flat metrics map.

Pure: no I/O, no clock. The same metrics always yield the same evaluations
in the same order.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

STATUS_PRIORITY: Dict[str, int] = {"critical": 0, "behind": 1, "on_track": 2, "achieved": 3}

# how far short of the 30-day target still counts as on track
ON_TRACK_FACTOR = 0.7


@dataclass(frozen=True)
class KPI:
    metric: str
    name: str
    unit: str
    target_30d: float
    target_90d: float
    direction: str = "higher"  # higher | lower
    critical_threshold: Optional[float] = None


@dataclass(frozen=True)
class BusinessGoal:
    id: str
    name: str
    description: str
    owner_agent: str
    kpis: Tuple[KPI, ...]


@dataclass(frozen=True)
class KPIEvaluation:
    kpi: KPI
    current_value: Optional[float]
    status: str


@dataclass(frozen=True)
class GoalEvaluation:
    goal: BusinessGoal
    kpi_results: Tuple[KPIEvaluation, ...]
    overall_status: str
    priority: int


BUSINESS_GOALS: Tuple[BusinessGoal, ...] = (
    BusinessGoal(
        id="indexation",
        name="Full Indexation",
        description="Every published page is reachable, listed in the sitemap and indexed.",
        owner_agent="seo-agent",
        kpis=(
            KPI("indexed_pages", "Indexed pages", "pages", 100, 300, critical_threshold=5),
            KPI("indexing_rate", "Indexing rate", "%", 70, 90, critical_threshold=20),
            KPI("sitemap_health", "Sitemap health", "%", 95, 100, critical_threshold=80),
        ),
    ),
    BusinessGoal(
        id="organic_traffic",
        name="Organic Traffic Growth",
        description="Grow search sessions while holding position and click-through.",
        owner_agent="seo-agent",
        kpis=(
            KPI("organic_sessions_weekly", "Weekly organic sessions", "sessions", 500, 2000),
            KPI("avg_position", "Average search position", "position", 20, 10, direction="lower", critical_threshold=50),
            KPI("ctr", "Click-through rate", "%", 2, 4, critical_threshold=0.5),
        ),
    ),
    BusinessGoal(
        id="content_quality",
        name="Content Quality & Velocity",
        description="Publish enough well-scored, bilingual content every week.",
        owner_agent="content-generator",
        kpis=(
            KPI("avg_seo_score", "Average SEO score", "points", 70, 80, critical_threshold=40),
            KPI("published_this_week", "Articles published this week", "articles", 7, 14, critical_threshold=1),
            KPI("ar_content_ratio", "Arabic content ratio", "%", 50, 90),
        ),
    ),
    BusinessGoal(
        id="technical_health",
        name="Technical SEO Health",
        description="Valid structured data, no robots conflicts, warm CDN cache.",
        owner_agent="live-site-auditor",
        kpis=(
            KPI("schema_validity", "Structured data validity", "%", 100, 100, critical_threshold=50),
            KPI("robots_conflicts", "robots.txt conflicts", "conflicts", 0, 0, direction="lower", critical_threshold=2),
            KPI("cache_hit_rate", "CDN cache hit rate", "%", 50, 80),
        ),
    ),
    BusinessGoal(
        id="ai_visibility",
        name="AI Search Visibility",
        description="AI crawlers can read the site and AI answers cite it.",
        owner_agent="weekly-research",
        kpis=(
            KPI("ai_crawlers_allowed", "AI crawlers allowed", "crawlers", 10, 12, critical_threshold=6),
            KPI("ai_citations", "AI answer citations", "citations", 5, 20),
        ),
    ),
)


def _meets(value: float, target: float, direction: str) -> bool:
    return value <= target if direction == "lower" else value >= target


def evaluate_kpi(kpi: KPI, metrics: Mapping[str, float]) -> KPIEvaluation:
    current = metrics.get(kpi.metric)
    if current is None:
        return KPIEvaluation(kpi, None, "behind")

    if kpi.critical_threshold is not None:
        crossed = current > kpi.critical_threshold if kpi.direction == "lower" else current < kpi.critical_threshold
        if crossed:
            return KPIEvaluation(kpi, current, "critical")

    if _meets(current, kpi.target_90d, kpi.direction):
        return KPIEvaluation(kpi, current, "achieved")

    # same 30% slack either way: lower-is-better relaxes upward
    if kpi.direction == "lower":
        band = kpi.target_30d / ON_TRACK_FACTOR if kpi.target_30d else 0
    else:
        band = kpi.target_30d * ON_TRACK_FACTOR
    if _meets(current, band, kpi.direction):
        return KPIEvaluation(kpi, current, "on_track")
    return KPIEvaluation(kpi, current, "behind")


def _worst(statuses: List[str]) -> str:
    if not statuses:
        return "achieved"
    return min(statuses, key=lambda s: STATUS_PRIORITY[s])


def evaluate_goals(
    metrics: Mapping[str, float],
    goals: Sequence[BusinessGoal] = BUSINESS_GOALS,
) -> List[GoalEvaluation]:
    out: List[GoalEvaluation] = []
    for goal in goals:
        results = tuple(evaluate_kpi(k, metrics) for k in goal.kpis)
        status = _worst([r.status for r in results])
        out.append(GoalEvaluation(goal, results, status, STATUS_PRIORITY[status]))
    # sorted() is stable, so catalogue order breaks ties
    return sorted(out, key=lambda g: g.priority)
