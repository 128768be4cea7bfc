"""Rule-based recommendations over daily rollups.

Thresholds live in one frozen ``Thresholds`` instance; pass a different
instance to override them (e.g. per restaurant).

Examples:
    >>> recs = evaluate_recommendations({"labor_cost_pct": 42.0})
    >>> recs[0].id, recs[0].severity
    ('high-labor-cost', 'critical')
    >>> evaluate_recommendations({"labor_cost_pct": 42.0}, Thresholds(labor_pct_critical=50.0))[0].severity
    'warning'

"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

SEVERITY_ORDER = {"critical": 0, "warning": 1, "info": 2}


@dataclass(frozen=True)
class Thresholds:
    labor_pct_warning: float = 35.0
    labor_pct_critical: float = 40.0
    avg_check_decline_pct: float = -10.0
    overtime_warning_hours: float = 0.0
    overtime_critical_hours: float = 8.0
    revenue_decline_pct: float = -15.0
    min_sales_per_labor_hour: float = 40.0
    max_discount_pct: float = 5.0
    cost_spike_pct: float = 25.0


DEFAULT_THRESHOLDS = Thresholds()


@dataclass
class Recommendation:
    id: str
    category: str  # revenue | labor | menu | operations | costs
    severity: str  # info | warning | critical
    title: str
    body: str
    metric: str
    value: float
    threshold: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _num(data: Mapping[str, Any], key: str) -> float:
    value = data.get(key)
    return float(value) if value else 0.0


def _labor_cost(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    pct = _num(data, "labor_cost_pct")
    if not pct:
        return None
    if pct > th.labor_pct_critical:
        return Recommendation(
            "high-labor-cost",
            "labor",
            "critical",
            "Labor cost is critically high",
            f"Labor is running at {pct:.1f}% of net sales, well above the "
            f"{th.labor_pct_warning:g}% target. Review scheduling and consider cutting "
            "hours during slow dayparts.",
            "laborCostPct",
            pct,
            th.labor_pct_critical,
        )
    if pct > th.labor_pct_warning:
        return Recommendation(
            "high-labor-cost",
            "labor",
            "warning",
            "Labor cost is above target",
            f"Labor is at {pct:.1f}% of net sales, above the {th.labor_pct_warning:g}% "
            "target. Monitor closely and adjust staffing if the trend continues.",
            "laborCostPct",
            pct,
            th.labor_pct_warning,
        )
    return None


def _avg_check(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    avg = _num(data, "avg_check")
    prior = _num(data.get("comparison") or {}, "avg_check")
    if not avg or not prior:
        return None
    delta = (avg - prior) / prior * 100
    if delta < th.avg_check_decline_pct:
        return Recommendation(
            "low-avg-check",
            "revenue",
            "warning",
            "Average check is declining",
            f"Average check dropped {abs(delta):.1f}% compared to the prior period "
            f"(${avg:.2f} vs ${prior:.2f}). Consider upselling strategies or menu adjustments.",
            "avgCheck",
            delta,
            th.avg_check_decline_pct,
        )
    return None


def _overtime(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    ot = _num(data, "overtime_hours")
    if not ot:
        return None
    if ot > th.overtime_critical_hours:
        return Recommendation(
            "overtime-detected",
            "labor",
            "critical",
            "Significant overtime detected",
            f"{ot:.1f} overtime hours were logged. At 1.5x pay, this significantly impacts "
            "labor cost. Review schedules to prevent recurring overtime.",
            "overtimeHours",
            ot,
            th.overtime_critical_hours,
        )
    if ot > th.overtime_warning_hours:
        return Recommendation(
            "overtime-detected",
            "labor",
            "warning",
            "Overtime hours logged",
            f"{ot:.1f} overtime hours were recorded. Monitor to ensure this doesn't become a pattern.",
            "overtimeHours",
            ot,
            th.overtime_warning_hours,
        )
    return None


def _revenue_decline(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    delta = _num(data.get("comparison") or {}, "sales_delta_pct")
    if delta and delta < th.revenue_decline_pct:
        return Recommendation(
            "revenue-decline",
            "revenue",
            "critical",
            "Significant revenue decline",
            f"Revenue dropped {abs(delta):.1f}% compared to the prior period. Investigate "
            "whether this is due to traffic, check size, or external factors.",
            "salesDeltaPct",
            delta,
            th.revenue_decline_pct,
        )
    return None


def _sales_per_labor_hour(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    splh = _num(data, "sales_per_labor_hour")
    if splh and splh < th.min_sales_per_labor_hour:
        return Recommendation(
            "low-splh",
            "labor",
            "warning",
            "Low sales per labor hour",
            f"SPLH is ${splh:.2f}, below the ${th.min_sales_per_labor_hour:g} target. Either "
            "sales need to increase or labor hours should be reduced during slow periods.",
            "salesPerLaborHour",
            splh,
            th.min_sales_per_labor_hour,
        )
    return None


def _discounts(data: Mapping[str, Any], th: Thresholds) -> Recommendation | None:
    discounts = _num(data, "total_discounts")
    gross = _num(data, "gross_sales")
    if not discounts or not gross:
        return None
    pct = discounts / gross * 100
    if pct > th.max_discount_pct:
        return Recommendation(
            "high-discounts",
            "operations",
            "warning",
            "High discount rate",
            f"Discounts represent {pct:.1f}% of gross sales (${discounts:.2f}). Review "
            "discount policies and track which discounts are being used most.",
            "discountPct",
            pct,
            th.max_discount_pct,
        )
    return None


SALES_RULES = (
    _labor_cost,
    _avg_check,
    _overtime,
    _revenue_decline,
    _sales_per_labor_hour,
    _discounts,
)


def _sorted(recs: list[Recommendation]) -> list[Recommendation]:
    return sorted(recs, key=lambda r: SEVERITY_ORDER[r.severity])


def evaluate_recommendations(
    data: Mapping[str, Any], thresholds: Thresholds = DEFAULT_THRESHOLDS
) -> list[Recommendation]:
    """Evaluate the sales and labor rules against one day's metrics.

    Args:
        data: Daily metric fields (``labor_cost_pct``, ``avg_check``,
            ``overtime_hours``, ``sales_per_labor_hour``, ``total_discounts``,
            ``gross_sales``) and an optional ``comparison`` mapping with
            ``avg_check`` and ``sales_delta_pct``.
        thresholds: Rule thresholds.

    Returns:
        Triggered recommendations, critical first.

    """
    recs = []
    for rule in SALES_RULES:
        rec = rule(data, thresholds)
        if rec is not None:
            recs.append(rec)
    return _sorted(recs)


def evaluate_cost_recommendations(
    total_cost: float,
    prior_total_cost: float | None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> list[Recommendation]:
    """Flag a purchasing-cost spike against the prior day."""
    if not total_cost or not prior_total_cost or prior_total_cost <= 0:
        return []
    delta = (total_cost - prior_total_cost) / prior_total_cost * 100
    if delta <= thresholds.cost_spike_pct:
        return []
    return [
        Recommendation(
            "cost-spike",
            "costs",
            "warning",
            "Purchasing cost spike",
            f"Invoice costs of ${total_cost:,.2f} are {delta:.1f}% above the prior day "
            f"(${prior_total_cost:,.2f}). Check for bulk orders or price increases.",
            "costDeltaPct",
            delta,
            thresholds.cost_spike_pct,
        )
    ]
