from sitehealth.services.goals import BUSINESS_GOALS, KPI, BusinessGoal, evaluate_goals, evaluate_kpi


def _kpi(**kw):
    base = dict(metric="m", name="M", unit="%", target_30d=70, target_90d=90)
    base.update(kw)
    return KPI(**base)


def test_missing_metric_is_behind():
    ev = evaluate_kpi(_kpi(), {})
    assert ev.status == "behind"
    assert ev.current_value is None


def test_critical_threshold_wins_over_targets():
    assert evaluate_kpi(_kpi(critical_threshold=20), {"m": 10}).status == "critical"
    lower = _kpi(direction="lower", target_30d=20, target_90d=10, critical_threshold=50)
    assert evaluate_kpi(lower, {"m": 60}).status == "critical"


def test_higher_direction_bands():
    k = _kpi(critical_threshold=20)
    assert evaluate_kpi(k, {"m": 95}).status == "achieved"
    assert evaluate_kpi(k, {"m": 50}).status == "on_track"  # >= 70 * 0.7
    assert evaluate_kpi(k, {"m": 40}).status == "behind"


def test_lower_direction_bands():
    k = _kpi(direction="lower", target_30d=20, target_90d=10, critical_threshold=50)
    assert evaluate_kpi(k, {"m": 8}).status == "achieved"
    assert evaluate_kpi(k, {"m": 25}).status == "on_track"  # <= 20 / 0.7
    assert evaluate_kpi(k, {"m": 35}).status == "behind"


def test_zero_target_lower_kpi():
    robots = [k for g in BUSINESS_GOALS for k in g.kpis if k.metric == "robots_conflicts"][0]
    assert evaluate_kpi(robots, {"robots_conflicts": 0}).status == "achieved"
    assert evaluate_kpi(robots, {"robots_conflicts": 1}).status == "behind"
    assert evaluate_kpi(robots, {"robots_conflicts": 3}).status == "critical"


def test_goal_takes_worst_kpi_and_sorts_by_priority():
    metrics = {"indexed_pages": 500, "indexing_rate": 95, "sitemap_health": 50}
    evals = evaluate_goals(metrics)
    indexation = next(g for g in evals if g.goal.id == "indexation")
    assert indexation.overall_status == "critical"
    assert evals[0].overall_status == "critical"
    priorities = [g.priority for g in evals]
    assert priorities == sorted(priorities)


def test_ties_keep_catalogue_order():
    goals = [
        BusinessGoal("a", "A", "", "seo-agent", (_kpi(metric="x"),)),
        BusinessGoal("b", "B", "", "seo-agent", (_kpi(metric="y"),)),
    ]
    assert [g.goal.id for g in evaluate_goals({}, goals)] == ["a", "b"]


def test_goal_without_kpis_is_achieved():
    goals = [BusinessGoal("empty", "Empty", "", "seo-agent", ())]
    assert evaluate_goals({}, goals)[0].overall_status == "achieved"


def test_evaluation_is_deterministic():
    metrics = {"avg_seo_score": 30, "published_this_week": 3, "ctr": 1.5}
    assert evaluate_goals(metrics) == evaluate_goals(metrics)
