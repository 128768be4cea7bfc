"""Read-only purchasing-cost queries over ``me_daily_costs`` and ``me_orders``.

Invoices for the last few days are often still in review when asked about,
so single-date queries for a recent date with no cost row fall back to the
most recent earlier date that has one. The result then carries
``requestedDate`` and a ``note``. Older dates are never shifted.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.engine import Connection, Engine

from pos_metrics.clients.marginedge import FINALIZED_STATUS
from pos_metrics.queries.base import pct, ranked_breakdown
from pos_metrics.recommendations import DEFAULT_THRESHOLDS, Thresholds, evaluate_cost_recommendations
from pos_metrics.store import schema as t
from pos_metrics.utils import parse_date, resolve_date, resolve_range, round_money

logger = logging.getLogger(__name__)

NOT_CONFIGURED = {"error": "Invoicing not configured"}
DEFAULT_FALLBACK_DAYS = 3
DEFAULT_INVOICE_LIMIT = 20

TOTAL_FIELDS = (
    ("totalCost", "total_cost"),
    ("totalTax", "total_tax"),
    ("totalDelivery", "total_delivery"),
    ("totalOtherCharges", "total_other_charges"),
    ("totalCredits", "total_credits"),
)


def _cost_row(conn: Connection, unit_id: str, day: str):
    dc = t.me_daily_costs
    return (
        conn.execute(
            select(dc).where(and_(dc.c.restaurant_unit_id == unit_id, dc.c.invoice_date == day))
        )
        .mappings()
        .first()
    )


def resolve_cost_date(
    conn: Connection,
    unit_id: str,
    requested: str,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
    today: date | None = None,
) -> tuple[str, bool]:
    """Pick the invoice date to report for ``requested``.

    Returns:
        ``(date, fell_back)``. ``date`` is ``requested`` unless it has no cost
        row, is at most ``fallback_days`` old, and an earlier date has one.

    """
    if _cost_row(conn, unit_id, requested) is not None:
        return requested, False

    days_ago = ((today or date.today()) - parse_date(requested)).days
    if days_ago > fallback_days:
        return requested, False

    dc = t.me_daily_costs
    latest = conn.execute(
        select(dc.c.invoice_date)
        .where(and_(dc.c.restaurant_unit_id == unit_id, dc.c.invoice_date <= requested))
        .order_by(dc.c.invoice_date.desc())
        .limit(1)
    ).scalar_one_or_none()
    if latest is None:
        return requested, False
    logger.debug("No cost row for %s; falling back to %s", requested, latest)
    return latest, True


def _fallback_fields(requested: str, fell_back: bool) -> dict[str, str]:
    if not fell_back:
        return {}
    return {
        "requestedDate": requested,
        "note": f"No cost data for {requested}; showing most recent available date.",
    }


def _missing(day: str) -> dict[str, str]:
    return {"error": f"No cost data found for {day}", "date": day}


def _missing_range(start: str, end: str) -> dict[str, str]:
    return {"error": f"No cost data found between {start} and {end}", "startDate": start, "endDate": end}


def _totals(row) -> dict[str, float]:
    return {key: round_money(row[column]) for key, column in TOTAL_FIELDS}


def get_daily_cost(
    engine: Engine,
    unit_id: str | None,
    day: str | None = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    today: date | None = None,
) -> dict[str, Any]:
    """Purchasing totals for one invoice date, compared with the prior available date.

    Args:
        engine: Store engine.
        unit_id: Invoicing restaurant unit; ``None`` when invoicing is not configured.
        day: Invoice date (defaults to yesterday).
        fallback_days: How recent ``day`` must be to fall back to an earlier date.
        thresholds: Recommendation thresholds (cost spike).
        today: Reference date for relative date arguments.

    Returns:
        Totals, counts, an optional ``comparison`` block and ``recommendations``.

    """
    if not unit_id:
        return dict(NOT_CONFIGURED)
    requested = resolve_date(day, today)
    dc = t.me_daily_costs

    with engine.connect() as conn:
        resolved, fell_back = resolve_cost_date(conn, unit_id, requested, fallback_days, today)
        row = _cost_row(conn, unit_id, resolved)
        prior = (
            conn.execute(
                select(dc.c.invoice_date, dc.c.total_cost)
                .where(and_(dc.c.restaurant_unit_id == unit_id, dc.c.invoice_date < resolved))
                .order_by(dc.c.invoice_date.desc())
                .limit(1)
            )
            .mappings()
            .first()
        )

    if row is None:
        return _missing(resolved)

    total = row["total_cost"]
    prior_total = prior["total_cost"] if prior is not None else None
    result: dict[str, Any] = {
        "date": resolved,
        **_fallback_fields(requested, fell_back),
        "restaurantUnitId": unit_id,
        **_totals(row),
        "invoiceCount": row["invoice_count"],
        "vendorCount": row["vendor_count"],
    }
    if prior_total and prior_total > 0:
        result["comparison"] = {
            "priorDate": prior["invoice_date"],
            "priorDailyCost": round_money(prior_total),
            "dailyCostDelta": round_money(total - prior_total),
            "dailyCostDeltaPct": pct(total - prior_total, prior_total),
        }
    result["recommendations"] = [
        r.to_dict() for r in evaluate_cost_recommendations(total, prior_total, thresholds)
    ]
    return result


def get_cost_by_category(
    engine: Engine,
    unit_id: str | None,
    day: str | None = None,
    limit: int | None = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
    today: date | None = None,
) -> dict[str, Any]:
    """Cost per category for one invoice date, largest first, with shares of total cost."""
    if not unit_id:
        return dict(NOT_CONFIGURED)
    requested = resolve_date(day, today)
    with engine.connect() as conn:
        resolved, fell_back = resolve_cost_date(conn, unit_id, requested, fallback_days, today)
        row = _cost_row(conn, unit_id, resolved)
    if row is None:
        return _missing(resolved)

    categories = ranked_breakdown(row["cost_by_category"], row["total_cost"], limit)
    return {
        "date": resolved,
        **_fallback_fields(requested, fell_back),
        "restaurantUnitId": unit_id,
        "totalCost": round_money(row["total_cost"]),
        "categoryCount": len(categories),
        "categories": categories,
    }


def get_vendor_spend(
    engine: Engine,
    unit_id: str | None,
    day: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    limit: int | None = None,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
    today: date | None = None,
) -> dict[str, Any]:
    """Cost per vendor for one invoice date, or summed over a range.

    A range is used when either ``start_date`` or ``end_date`` is given; the
    start then defaults to six days before the end. Range mode never falls
    back.
    """
    if not unit_id:
        return dict(NOT_CONFIGURED)

    if start_date or end_date:
        start, end = resolve_range(start_date, end_date, today)
        dc = t.me_daily_costs
        with engine.connect() as conn:
            rows = conn.execute(
                select(dc.c.cost_by_vendor, dc.c.total_cost).where(
                    and_(dc.c.restaurant_unit_id == unit_id, dc.c.invoice_date.between(start, end))
                )
            ).all()
        if not rows:
            return _missing_range(start, end)

        merged: dict[str, float] = {}
        for r in rows:
            for name, cost in r.cost_by_vendor.items():
                merged[name] = merged.get(name, 0.0) + cost
        total = sum(r.total_cost for r in rows)
        vendors = ranked_breakdown(merged, total, limit)
        return {
            "startDate": start,
            "endDate": end,
            "dayCount": len(rows),
            "restaurantUnitId": unit_id,
            "totalCost": round_money(total),
            "vendorCount": len(vendors),
            "vendors": vendors,
        }

    requested = resolve_date(day, today)
    with engine.connect() as conn:
        resolved, fell_back = resolve_cost_date(conn, unit_id, requested, fallback_days, today)
        row = _cost_row(conn, unit_id, resolved)
    if row is None:
        return _missing(resolved)

    vendors = ranked_breakdown(row["cost_by_vendor"], row["total_cost"], limit)
    return {
        "date": resolved,
        **_fallback_fields(requested, fell_back),
        "restaurantUnitId": unit_id,
        "totalCost": round_money(row["total_cost"]),
        "vendorCount": len(vendors),
        "vendors": vendors,
    }


def get_cost_trend(
    engine: Engine,
    unit_id: str | None,
    start_date: str | None = None,
    end_date: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Daily purchasing totals over an inclusive invoice-date range, oldest first."""
    if not unit_id:
        return dict(NOT_CONFIGURED)
    start, end = resolve_range(start_date, end_date, today)
    dc = t.me_daily_costs
    with engine.connect() as conn:
        rows = (
            conn.execute(
                select(dc)
                .where(and_(dc.c.restaurant_unit_id == unit_id, dc.c.invoice_date.between(start, end)))
                .order_by(dc.c.invoice_date)
            )
            .mappings()
            .all()
        )
    if not rows:
        return _missing_range(start, end)

    return {
        "restaurantUnitId": unit_id,
        "startDate": start,
        "endDate": end,
        "dayCount": len(rows),
        "trend": [
            {
                "date": r["invoice_date"],
                **_totals(r),
                "invoiceCount": r["invoice_count"],
                "vendorCount": r["vendor_count"],
            }
            for r in rows
        ],
    }


def get_invoice_list(
    engine: Engine,
    unit_id: str | None,
    day: str | None = None,
    vendor: str | None = None,
    limit: int = DEFAULT_INVOICE_LIMIT,
    fallback_days: int = DEFAULT_FALLBACK_DAYS,
    today: date | None = None,
) -> dict[str, Any]:
    """Finalized invoices for one invoice date, newest first.

    Args:
        vendor: Optional substring matched against the vendor name (case-insensitive,
            ``%`` and ``_`` taken literally).
        limit: Maximum invoices returned.

    """
    if not unit_id:
        return dict(NOT_CONFIGURED)
    requested = resolve_date(day, today)
    o = t.me_orders

    query = select(o).where(
        and_(o.c.restaurant_unit_id == unit_id, o.c.status == FINALIZED_STATUS)
    )
    if vendor:
        query = query.where(o.c.vendor_name.contains(vendor, autoescape=True))

    with engine.connect() as conn:
        resolved, fell_back = resolve_cost_date(conn, unit_id, requested, fallback_days, today)
        rows = (
            conn.execute(
                query.where(o.c.invoice_date == resolved)
                .order_by(o.c.created_date.desc(), o.c.order_total.desc())
                .limit(limit)
            )
            .mappings()
            .all()
        )

    return {
        "date": resolved,
        **_fallback_fields(requested, fell_back),
        "restaurantUnitId": unit_id,
        "vendorFilter": vendor or None,
        "invoiceCount": len(rows),
        "invoices": [
            {
                "rank": i,
                "orderId": r["order_id"],
                "invoiceNumber": r["invoice_number"],
                "invoiceDate": r["invoice_date"],
                "createdDate": r["created_date"],
                "vendorName": r["vendor_name"],
                "total": round_money(r["order_total"]),
                "tax": round_money(r["tax"]),
                "deliveryCharges": round_money(r["delivery_charges"]),
                "otherCharges": round_money(r["other_charges"]),
                "creditAmount": round_money(r["credit_amount"]),
                "isCredit": bool(r["is_credit"]),
                "status": r["status"],
            }
            for i, r in enumerate(rows, start=1)
        ],
    }
