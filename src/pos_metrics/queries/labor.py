"""Read-only labor queries: daily labor summary, server ranking, overtime."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.engine import Engine

from pos_metrics.queries.base import NO_LOCATION, daily_row, no_data
from pos_metrics.recommendations import DEFAULT_THRESHOLDS, Thresholds, evaluate_recommendations
from pos_metrics.sales.transform import employee_name
from pos_metrics.store import schema as t
from pos_metrics.utils import resolve_date, round_money


def get_labor_summary(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
    today: date | None = None,
) -> dict[str, Any]:
    """Labor hours, cost, cost % and SPLH for one day, with labor recommendations."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    with engine.connect() as conn:
        row = daily_row(conn, location_guid, resolved)
    if row is None:
        return no_data(resolved, locationId=location_guid)

    labor_only = {
        k: row[k] for k in ("net_sales", "labor_cost_pct", "overtime_hours", "sales_per_labor_hour")
    }
    return {
        "date": resolved,
        "locationId": location_guid,
        "laborHours": row["labor_hours"],
        "laborCost": row["labor_cost"],
        "laborCostPct": row["labor_cost_pct"],
        "overtimeHours": row["overtime_hours"],
        "salesPerLaborHour": row["sales_per_labor_hour"],
        "employeeCount": row["employee_count"],
        "netSales": row["net_sales"],
        "laborCostIsEstimated": bool(row["labor_cost_is_estimated"]),
        "recommendations": [r.to_dict() for r in evaluate_recommendations(labor_only, thresholds)],
    }


def get_server_performance(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    limit: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Servers ranked by net sales for one day."""
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    sm = t.server_daily_metrics

    query = (
        select(sm)
        .where(and_(sm.c.location_guid == location_guid, sm.c.business_date == resolved))
        .order_by(sm.c.net_sales.desc(), sm.c.server_name)
    )
    if limit:
        query = query.limit(limit)
    with engine.connect() as conn:
        rows = conn.execute(query).mappings().all()

    if not rows:
        return {"error": f"No server data for {resolved}", "date": resolved, "locationId": location_guid}

    return {
        "date": resolved,
        "locationId": location_guid,
        "serverCount": len(rows),
        "servers": [
            {
                "rank": i,
                "serverGuid": r["server_guid"],
                "name": r["server_name"],
                "orderCount": r["order_count"],
                "checkCount": r["check_count"],
                "guestCount": r["guest_count"],
                "netSales": r["net_sales"],
                "tips": r["tips"],
                "avgCheck": r["avg_check"],
                "salesPerHour": r["sales_per_hour"],
                "hoursWorked": r["hours_worked"],
            }
            for i, r in enumerate(rows, start=1)
        ],
    }


def get_overtime_report(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Employees with overtime on one day, most overtime first.

    An empty ``employees`` list (not an error) means nobody worked overtime.
    """
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    te, emp = t.time_entries, t.employees

    regular = func.sum(te.c.regular_hours).label("regular_hours")
    overtime = func.sum(te.c.overtime_hours).label("overtime_hours")
    query = (
        select(te.c.employee_guid, emp.c.first_name, emp.c.last_name, regular, overtime)
        .select_from(te.outerjoin(emp, te.c.employee_guid == emp.c.guid))
        .where(
            and_(
                te.c.location_guid == location_guid,
                te.c.business_date == resolved,
                te.c.overtime_hours > 0,
            )
        )
        .group_by(te.c.employee_guid, emp.c.first_name, emp.c.last_name)
        .order_by(overtime.desc())
    )
    with engine.connect() as conn:
        rows = conn.execute(query).all()

    employees = []
    for r in rows:
        reg, ot = r.regular_hours or 0.0, r.overtime_hours or 0.0
        employees.append(
            {
                "employeeGuid": r.employee_guid,
                "name": employee_name({"firstName": r.first_name, "lastName": r.last_name}),
                "regularHours": round_money(reg),
                "overtimeHours": round_money(ot),
                "totalHours": round_money(reg + ot),
            }
        )

    return {
        "date": resolved,
        "locationId": location_guid,
        "employeesWithOvertime": len(employees),
        "totalOvertimeHours": round_money(sum(e["overtimeHours"] for e in employees)),
        "employees": employees,
    }
