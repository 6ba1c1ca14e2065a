from sitehealth.services.score import (
    audit_score, goals_component, indexing_rate, overall_health, status_for_score,
)


def test_audit_score_penalties():
    assert audit_score(0, 0, 0, 10, 80) == 100
    assert audit_score(1, 2, 0, 10, 80) == 75
    assert audit_score(0, 0, 5, 10, 80) == 85
    assert audit_score(0, 0, 0, 0, 0) == 90
    assert audit_score(10, 10, 10, 10, 0) == 0


def test_goals_component():
    assert goals_component([]) == 100.0
    assert goals_component(["achieved", "on_track"]) == 100.0
    assert goals_component(["critical", "achieved"]) == 50.0
    assert goals_component(["behind", "achieved"]) == 75.0


def test_overall_health_is_bounded_and_weighted():
    assert overall_health(0, 0, ["achieved"], "healthy") == 100
    assert overall_health(10, 10, ["critical"], "critical") == 5
    assert 0 <= overall_health(2, 3, ["behind", "critical"], "degraded") <= 100


def test_status_bands():
    assert status_for_score(85) == "excellent"
    assert status_for_score(84) == "good"
    assert status_for_score(65) == "good"
    assert status_for_score(40) == "needs_attention"
    assert status_for_score(39) == "critical"


def test_indexing_rate():
    assert indexing_rate(5, 10) == 50
    assert indexing_rate(5, 0) == 0
    assert indexing_rate(20, 10) == 100
