"""Read-only revenue queries over the POS rollups.

Every function takes a store engine, a resolved location guid (see
``resolve_location``) and a date argument accepted by
``resolve_date``. Results are plain dicts with camelCase keys; a missing
rollup yields a dict with an ``error`` key instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.engine import Engine

from pos_metrics.queries.base import NO_LOCATION, daily_row, no_data, pct
from pos_metrics.recommendations import DEFAULT_THRESHOLDS, Thresholds, evaluate_recommendations
from pos_metrics.store import schema as t
from pos_metrics.utils import resolve_date, resolve_range, round_money

logger = logging.getLogger(__name__)


def _comparison(current: dict, prior: dict, prior_date: str) -> dict[str, Any]:
    cur, comp = current["net_sales"], prior["net_sales"]
    return {
        "date": prior_date,
        "netSales": comp,
        "orderCount": prior["order_count"],
        "avgCheck": prior["avg_check"],
        "guestCount": prior["guest_count"],
        "salesDelta": round_money(cur - comp),
        "salesDeltaPct": pct(cur - comp, comp) if comp > 0 else 0.0,
    }


def get_daily_revenue(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    compare_to: str | None = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    today: date | None = None,
) -> dict[str, Any]:
    """Daily revenue and labor headline numbers, with optional comparison and recommendations.

    Args:
        engine: Store engine.
        location_guid: Location guid; ``None`` when nothing is configured.
        day: Date to report (defaults to yesterday).
        compare_to: Optional second date; adds a ``comparison`` block when it
            has data.
        thresholds: Recommendation thresholds.
        today: Reference date for relative date arguments.

    Returns:
        Result dict, or ``{"error": "No data found for <date>", ...}``.

    """
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)

    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
        prior = None
        if row is not None and compare_to:
            compare_date = resolve_date(compare_to, today)
            prior = daily_row(conn, location_guid, compare_date)

    if row is None:
        return no_data(resolved, locationId=location_guid)

    result: dict[str, Any] = {
        "date": resolved,
        "locationId": location_guid,
        "locationName": row["location_name"],
        "netSales": row["net_sales"],
        "grossSales": row["gross_sales"],
        "taxCollected": row["tax_collected"],
        "tipsCollected": row["tips_collected"],
        "totalDiscounts": row["total_discounts"],
        "orderCount": row["order_count"],
        "guestCount": row["guest_count"],
        "avgCheck": row["avg_check"],
        "avgGuestSpend": row["avg_guest_spend"],
        "laborHours": row["labor_hours"],
        "laborCost": row["labor_cost"],
        "laborCostPct": row["labor_cost_pct"],
        "overtimeHours": row["overtime_hours"],
        "salesPerLaborHour": row["sales_per_labor_hour"],
        "employeeCount": row["employee_count"],
        "laborCostIsEstimated": bool(row["labor_cost_is_estimated"]),
    }

    metrics = dict(row)
    if prior is not None:
        comparison = _comparison(metrics, dict(prior), compare_date)
        result["comparison"] = comparison
        metrics["comparison"] = {
            "avg_check": comparison["avgCheck"],
            "sales_delta_pct": comparison["salesDeltaPct"],
        }
    elif compare_to:
        logger.debug("No comparison data for %s on %s", location_guid, compare_to)

    result["recommendations"] = [r.to_dict() for r in evaluate_recommendations(metrics, thresholds)]
    return result


def get_revenue_by_location(
    engine: Engine,
    location_guids: Sequence[str],
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Net sales of every configured location on one date, highest first."""
    if not location_guids:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    dm = t.daily_metrics

    with engine.connect() as conn:
        rows = (
            conn.execute(
                select(dm)
                .where(and_(dm.c.business_date == resolved, dm.c.location_guid.in_(list(location_guids))))
                .order_by(dm.c.net_sales.desc())
            )
            .mappings()
            .all()
        )

    if not rows:
        return no_data(resolved)

    return {
        "date": resolved,
        "totalNetSales": round_money(sum(r["net_sales"] for r in rows)),
        "locationCount": len(rows),
        "locations": [
            {
                "locationId": r["location_guid"],
                "locationName": r["location_name"],
                "netSales": r["net_sales"],
                "orderCount": r["order_count"],
                "guestCount": r["guest_count"],
                "avgCheck": r["avg_check"],
                "laborCostPct": r["labor_cost_pct"],
            }
            for r in rows
        ],
    }


def get_revenue_trend(
    engine: Engine,
    location_guid: str | None,
    start_date: str | None = None,
    end_date: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Daily net sales, orders and labor % over an inclusive date range, oldest first.

    The range defaults to the seven days ending yesterday. Days without a
    rollup are simply absent from ``trend``.
    """
    if not location_guid:
        return dict(NO_LOCATION)
    start, end = resolve_range(start_date, end_date, today)
    dm = t.daily_metrics

    with engine.connect() as conn:
        rows = (
            conn.execute(
                select(
                    dm.c.business_date,
                    dm.c.net_sales,
                    dm.c.order_count,
                    dm.c.guest_count,
                    dm.c.avg_check,
                    dm.c.labor_cost_pct,
                )
                .where(
                    and_(
                        dm.c.location_guid == location_guid,
                        dm.c.business_date.between(start, end),
                    )
                )
                .order_by(dm.c.business_date)
            )
            .mappings()
            .all()
        )

    return {
        "locationId": location_guid,
        "startDate": start,
        "endDate": end,
        "dayCount": len(rows),
        "totalNetSales": round_money(sum(r["net_sales"] for r in rows)),
        "trend": [
            {
                "date": r["business_date"],
                "netSales": r["net_sales"],
                "orderCount": r["order_count"],
                "guestCount": r["guest_count"],
                "avgCheck": r["avg_check"],
                "laborCostPct": r["labor_cost_pct"],
            }
            for r in rows
        ],
    }


def get_payment_breakdown(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Cash / credit / other payment totals and shares, plus tips as a share of net sales."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
    if row is None:
        return no_data(resolved, locationId=location_guid)

    cash, credit, other = row["cash_payments"], row["credit_payments"], row["other_payments"]
    total = cash + credit + other
    return {
        "date": resolved,
        "locationId": location_guid,
        "totalPayments": round_money(total),
        "cash": {"amount": cash, "pct": pct(cash, total)},
        "credit": {"amount": credit, "pct": pct(credit, total)},
        "other": {"amount": other, "pct": pct(other, total)},
        "tips": row["tips_collected"],
        "tipsPct": pct(row["tips_collected"], row["net_sales"]),
    }


def get_hourly_sales(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Orders, guests and net sales per local hour of day, plus the peak hour."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    hm = t.hourly_metrics

    with engine.connect() as conn:
        rows = (
            conn.execute(
                select(hm)
                .where(and_(hm.c.location_guid == location_guid, hm.c.business_date == resolved))
                .order_by(hm.c.hour)
            )
            .mappings()
            .all()
        )

    if not rows:
        return {"error": f"No hourly data for {resolved}", "date": resolved, "locationId": location_guid}

    total = sum(r["net_sales"] for r in rows)
    peak = max(rows, key=lambda r: r["net_sales"])
    return {
        "date": resolved,
        "locationId": location_guid,
        "totalSales": round_money(total),
        "peakHour": peak["hour"],
        "hourly": [
            {
                "hour": r["hour"],
                "label": f"{r['hour']}:00",
                "orderCount": r["order_count"],
                "guestCount": r["guest_count"],
                "netSales": r["net_sales"],
                "avgCheck": r["avg_check"],
                "pct": pct(r["net_sales"], total),
            }
            for r in rows
        ],
    }


def get_sales_by_category(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Net sales per sales category with each category's share of net sales."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
    if row is None:
        return no_data(resolved, locationId=location_guid)

    net_sales = row["net_sales"]
    categories = sorted(row["sales_by_category"].items(), key=lambda kv: kv[1], reverse=True)
    return {
        "date": resolved,
        "locationId": location_guid,
        "netSales": net_sales,
        "categories": [
            {"name": name, "revenue": round_money(revenue), "pct": pct(revenue, net_sales)}
            for name, revenue in categories
        ],
    }


def _dining_rows(options: dict[str, float], net_sales: float) -> list[dict[str, Any]]:
    return [
        {"name": name, "revenue": round_money(revenue), "pct": pct(revenue, net_sales)}
        for name, revenue in options.items()
    ]


def get_guest_metrics(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Guest count, spend per guest and check, with the dining option mix."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
    if row is None:
        return no_data(resolved, locationId=location_guid)

    return {
        "date": resolved,
        "locationId": location_guid,
        "guestCount": row["guest_count"],
        "avgGuestSpend": row["avg_guest_spend"],
        "orderCount": row["order_count"],
        "avgCheck": row["avg_check"],
        "netSales": row["net_sales"],
        "diningOptions": _dining_rows(row["sales_by_dining_option"], row["net_sales"]),
    }


def get_dining_option_breakdown(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Net sales per dining option (dine-in, takeout, delivery, ...), largest first.

    Args:
        engine: Store engine.
        location_guid: Location guid.
        day: Business date (defaults to yesterday).
        today: Reference date for relative date arguments.

    Returns:
        Result dict with ``options`` sorted by revenue, or a no-data error dict.

    """
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
    if row is None:
        return no_data(resolved, locationId=location_guid)

    options = _dining_rows(row["sales_by_dining_option"], row["net_sales"])
    return {
        "date": resolved,
        "locationId": location_guid,
        "netSales": row["net_sales"],
        "orderCount": row["order_count"],
        "options": sorted(options, key=lambda o: o["revenue"], reverse=True),
    }
