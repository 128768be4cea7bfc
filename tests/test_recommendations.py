"""Tests for the threshold rules."""

import pytest

from pos_metrics.recommendations import (
    Thresholds,
    evaluate_cost_recommendations,
    evaluate_recommendations,
)


def ids(recs):
    return [(r.id, r.severity) for r in recs]


@pytest.mark.parametrize(
    ("pct", "expected"),
    [(30.0, []), (35.0, []), (36.0, [("high-labor-cost", "warning")]), (40.5, [("high-labor-cost", "critical")])],
)
def test_labor_cost_thresholds(pct, expected):
    assert ids(evaluate_recommendations({"labor_cost_pct": pct})) == expected


def test_thresholds_can_be_overridden():
    th = Thresholds(labor_pct_warning=20.0, labor_pct_critical=30.0)
    assert ids(evaluate_recommendations({"labor_cost_pct": 25.0}, th)) == [("high-labor-cost", "warning")]


def test_overtime_and_splh():
    recs = evaluate_recommendations({"overtime_hours": 9.0, "sales_per_labor_hour": 30.0})
    assert ids(recs) == [("overtime-detected", "critical"), ("low-splh", "warning")]
    assert ids(evaluate_recommendations({"overtime_hours": 2.0})) == [("overtime-detected", "warning")]


def test_comparison_rules_need_prior_data():
    assert evaluate_recommendations({"avg_check": 20.0}) == []
    recs = evaluate_recommendations({"avg_check": 20.0, "comparison": {"avg_check": 25.0, "sales_delta_pct": -16.0}})
    assert ids(recs) == [("revenue-decline", "critical"), ("low-avg-check", "warning")]
    assert recs[1].value == pytest.approx(-20.0)


def test_discount_rate():
    recs = evaluate_recommendations({"total_discounts": 60.0, "gross_sales": 1000.0})
    assert ids(recs) == [("high-discounts", "warning")]
    assert recs[0].metric == "discountPct"
    assert evaluate_recommendations({"total_discounts": 40.0, "gross_sales": 1000.0}) == []


def test_recommendation_serializes_to_dict():
    rec = evaluate_recommendations({"labor_cost_pct": 45.0})[0]
    data = rec.to_dict()
    assert data["id"] == "high-labor-cost"
    assert data["category"] == "labor"
    assert data["threshold"] == 40.0
    assert set(data) == {"id", "category", "severity", "title", "body", "metric", "value", "threshold"}


def test_cost_spike():
    assert ids(evaluate_cost_recommendations(1300.0, 1000.0)) == [("cost-spike", "warning")]
    assert evaluate_cost_recommendations(1200.0, 1000.0) == []
    assert evaluate_cost_recommendations(1300.0, None) == []
    assert evaluate_cost_recommendations(1300.0, 0.0) == []
    assert ids(evaluate_cost_recommendations(1200.0, 1000.0, Thresholds(cost_spike_pct=10.0))) == [("cost-spike", "warning")]
