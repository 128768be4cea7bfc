"""Rollups for one (location, business date): daily, hourly, item and server.

All rollups are computed from the same normalized rows that are written to
the raw tables, so raw detail and derived aggregates always agree. Money
values are rounded with ``round_money`` when the output rows are built and
nowhere else.

Labor cost uses each employee's highest wage on file. Entries for employees
without a wage use ``default_hourly_rate`` and mark the day as estimated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

import pandas as pd

from pos_metrics.sales.transform import CASH, CREDIT, OTHER, NormalizedDay, classify_payment_type
from pos_metrics.utils import local_hours, round_money

logger = logging.getLogger(__name__)

OVERTIME_MULTIPLIER = 1.5
UNCATEGORIZED = "Uncategorized"
OTHER_DINING_OPTION = "Other"
UNKNOWN_SERVER = "Unknown"

ORDER_COLUMNS = [
    "guid",
    "server_guid",
    "dining_option_guid",
    "opened_at",
    "closed_at",
    "paid_at",
    "guest_count",
]
CHECK_COLUMNS = ["guid", "order_guid", "amount", "tax_amount", "total_amount", "tip_amount"]
ITEM_COLUMNS = ["order_guid", "display_name", "sales_category_name", "quantity", "price", "is_modifier"]
PAYMENT_COLUMNS = ["type", "amount"]
DISCOUNT_COLUMNS = ["discount_amount"]
TIME_ENTRY_COLUMNS = ["employee_guid", "regular_hours", "overtime_hours"]


@dataclass
class LaborSummary:
    """Labor totals for a day."""

    hours: float = 0.0
    cost: float = 0.0
    overtime_hours: float = 0.0
    employee_count: int = 0
    is_estimated: bool = False


@dataclass
class DayRollups:
    """Derived rows for one sync key, ready to insert."""

    daily: dict
    hourly: list[dict] = field(default_factory=list)
    items: list[dict] = field(default_factory=list)
    servers: list[dict] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _frame(rows: list[dict], columns: list[str]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=columns)


def _total(series: pd.Series) -> float:
    return float(pd.to_numeric(series, errors="coerce").fillna(0).sum())


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def estimate_labor(
    time_entries: pd.DataFrame,
    wages: Mapping[str, float],
    default_hourly_rate: float = 15.0,
) -> LaborSummary:
    """Compute labor hours and cost from time entries.

    Cost per entry is ``regular * wage + overtime * wage * 1.5``. Entries whose
    employee has no positive wage on file use ``default_hourly_rate`` and set
    ``is_estimated``.

    Args:
        time_entries: Frame with employee_guid, regular_hours, overtime_hours.
        wages: Employee guid -> highest hourly wage.
        default_hourly_rate: Fallback wage.

    Returns:
        LaborSummary (unrounded).

    """
    if time_entries.empty:
        return LaborSummary()

    regular = pd.to_numeric(time_entries["regular_hours"], errors="coerce").fillna(0.0)
    overtime = pd.to_numeric(time_entries["overtime_hours"], errors="coerce").fillna(0.0)
    wage = pd.to_numeric(time_entries["employee_guid"].map(wages), errors="coerce")
    missing = wage.isna() | (wage <= 0)
    rate = wage.where(~missing, default_hourly_rate)

    cost = regular * rate + overtime * rate * OVERTIME_MULTIPLIER
    employees = time_entries["employee_guid"].dropna()

    return LaborSummary(
        hours=float((regular + overtime).sum()),
        cost=float(cost.sum()),
        overtime_hours=float(overtime.sum()),
        employee_count=int(employees[employees != ""].nunique()),
        is_estimated=bool(missing.any()),
    )


def _order_hours(orders: pd.DataFrame, timezone: str) -> pd.Series:
    """Local hour of each order: opened, else closed, else paid, else 0."""
    hours = local_hours(orders["opened_at"], timezone)
    for col in ("closed_at", "paid_at"):
        hours = hours.fillna(local_hours(orders[col], timezone))
    return hours.fillna(0).astype(int)


def _money_map(totals: pd.Series) -> dict[str, float]:
    return {str(k): round_money(v) for k, v in totals.items()}


def compute_rollups(
    day: NormalizedDay,
    location_guid: str,
    business_date: str,
    *,
    location_name: str = "",
    timezone: str = "America/New_York",
    wages: Mapping[str, float] | None = None,
    employee_names: Mapping[str, str] | None = None,
    dining_option_names: Mapping[str, str] | None = None,
    default_hourly_rate: float = 15.0,
) -> DayRollups:
    """Compute every POS rollup for one (location, business date).

    Args:
        day: Normalized rows (voided/deleted orders and checks already removed).
        location_guid: Location key.
        business_date: ISO date key.
        location_name: Display name stored on the daily row.
        timezone: IANA timezone used for hour bucketing.
        wages: Employee guid -> highest hourly wage.
        employee_names: Employee guid -> display name for server rows.
        dining_option_names: Dining option guid -> name.
        default_hourly_rate: Wage for employees without one on file.

    Returns:
        DayRollups with one daily row, hourly/item/server rows and warnings.

    Examples:
        >>> r = compute_rollups(NormalizedDay(), "loc", "2024-03-01")
        >>> r.daily["order_count"], r.daily["net_sales"]
        (0, 0.0)

    """
    wages = wages or {}
    employee_names = employee_names or {}
    dining_option_names = dining_option_names or {}
    key = {"location_guid": location_guid, "business_date": business_date}
    warnings: list[str] = []

    orders = _frame(day.orders, ORDER_COLUMNS)
    checks = _frame(day.checks, CHECK_COLUMNS)
    items = _frame(day.order_items, ITEM_COLUMNS)
    payments = _frame(day.payments, PAYMENT_COLUMNS)
    discounts = _frame(day.discounts, DISCOUNT_COLUMNS)
    entries = _frame(day.time_entries, TIME_ENTRY_COLUMNS)

    for frame, cols in (
        (checks, ["amount", "tax_amount", "total_amount", "tip_amount"]),
        (items, ["quantity", "price"]),
        (payments, ["amount"]),
        (orders, ["guest_count"]),
    ):
        for col in cols:
            frame[col] = pd.to_numeric(frame[col], errors="coerce").fillna(0)

    # ---- Daily totals ----
    order_count = len(orders)
    guest_count = int(orders["guest_count"].sum())
    net_sales = _total(checks["amount"])

    payment_class = payments["type"].map(classify_payment_type)
    by_payment = payments["amount"].groupby(payment_class).sum()

    top_level = items[~items["is_modifier"].astype(bool)]
    category = top_level["sales_category_name"].fillna("").replace("", UNCATEGORIZED)
    by_category = top_level["price"].groupby(category, sort=True).sum()

    dining_guid = checks["order_guid"].map(
        orders.set_index("guid")["dining_option_guid"] if order_count else {}
    )
    dining_name = dining_guid.map(lambda g: dining_option_names.get(g) or OTHER_DINING_OPTION)
    by_dining = checks["amount"].groupby(dining_name, sort=True).sum()

    labor = estimate_labor(entries, wages, default_hourly_rate)
    if labor.is_estimated and labor.hours > 0:
        msg = (
            "Some employees missing wage data; labor cost includes estimates "
            f"at ${default_hourly_rate:g}/hr"
        )
        logger.warning("%s %s: %s", location_guid, business_date, msg)
        warnings.append(msg)

    daily = {
        **key,
        "location_name": location_name,
        "gross_sales": round_money(_total(checks["total_amount"])),
        "net_sales": round_money(net_sales),
        "tax_collected": round_money(_total(checks["tax_amount"])),
        "tips_collected": round_money(_total(checks["tip_amount"])),
        "total_discounts": round_money(_total(discounts["discount_amount"])),
        "order_count": order_count,
        "guest_count": guest_count,
        "avg_check": round_money(_ratio(net_sales, order_count)),
        "avg_guest_spend": round_money(_ratio(net_sales, guest_count)),
        "labor_hours": round_money(labor.hours),
        "labor_cost": round_money(labor.cost),
        "labor_cost_pct": round_money(_ratio(labor.cost, net_sales) * 100),
        "overtime_hours": round_money(labor.overtime_hours),
        "sales_per_labor_hour": round_money(_ratio(net_sales, labor.hours)),
        "employee_count": labor.employee_count,
        "labor_cost_is_estimated": labor.is_estimated,
        "cash_payments": round_money(float(by_payment.get(CASH, 0.0))),
        "credit_payments": round_money(float(by_payment.get(CREDIT, 0.0))),
        "other_payments": round_money(float(by_payment.get(OTHER, 0.0))),
        "sales_by_category": _money_map(by_category),
        "sales_by_dining_option": _money_map(by_dining),
    }

    return DayRollups(
        daily=daily,
        hourly=_hourly_rows(orders, checks, key, timezone),
        items=_item_rows(top_level, key),
        servers=_server_rows(orders, checks, entries, key, employee_names),
        warnings=warnings,
    )


def _hourly_rows(
    orders: pd.DataFrame, checks: pd.DataFrame, key: dict, timezone: str
) -> list[dict]:
    if orders.empty:
        return []
    hours = pd.Series(_order_hours(orders, timezone).to_numpy(), index=orders["guid"])

    per_hour = pd.DataFrame(
        {
            "order_count": orders.groupby(hours.to_numpy()).size(),
            "guest_count": orders["guest_count"].groupby(hours.to_numpy()).sum(),
        }
    )
    check_hours = checks["order_guid"].map(hours)
    sales = checks["amount"].groupby(check_hours).sum()

    rows = []
    for hour, rec in per_hour.sort_index().iterrows():
        count = int(rec["order_count"])
        hour_sales = float(sales.get(hour, 0.0))
        rows.append(
            {
                **key,
                "hour": int(hour),
                "order_count": count,
                "guest_count": int(rec["guest_count"]),
                "net_sales": round_money(hour_sales),
                "avg_check": round_money(_ratio(hour_sales, count)),
            }
        )
    return rows


def _item_rows(top_level: pd.DataFrame, key: dict) -> list[dict]:
    if top_level.empty:
        return []
    grouped = top_level.groupby("display_name", sort=True).agg(
        sales_category_name=("sales_category_name", "first"),
        quantity_sold=("quantity", "sum"),
        revenue=("price", "sum"),
        order_count=("order_guid", "nunique"),
    )
    rows = []
    for name, rec in grouped.iterrows():
        qty = float(rec["quantity_sold"])
        revenue = float(rec["revenue"])
        rows.append(
            {
                **key,
                "display_name": str(name),
                "sales_category_name": rec["sales_category_name"] or "",
                "quantity_sold": round_money(qty),
                "revenue": round_money(revenue),
                "avg_price": round_money(_ratio(revenue, qty)),
                "order_count": int(rec["order_count"]),
            }
        )
    return rows


def _server_rows(
    orders: pd.DataFrame,
    checks: pd.DataFrame,
    entries: pd.DataFrame,
    key: dict,
    employee_names: Mapping[str, str],
) -> list[dict]:
    served = orders[orders["server_guid"].fillna("") != ""]
    if served.empty:
        return []

    per_server = served.groupby("server_guid", sort=True).agg(
        order_count=("guid", "size"),
        guest_count=("guest_count", "sum"),
    )
    server_checks = checks.assign(
        server_guid=checks["order_guid"].map(served.set_index("guid")["server_guid"])
    ).dropna(subset=["server_guid"])
    check_totals = server_checks.groupby("server_guid").agg(
        check_count=("guid", "size"),
        net_sales=("amount", "sum"),
        tips=("tip_amount", "sum"),
    )

    worked = entries.dropna(subset=["employee_guid"])
    hours_by_employee = (
        pd.to_numeric(worked["regular_hours"], errors="coerce").fillna(0)
        + pd.to_numeric(worked["overtime_hours"], errors="coerce").fillna(0)
    ).groupby(worked["employee_guid"]).sum()

    rows = []
    for guid, rec in per_server.iterrows():
        checks_n = int(check_totals["check_count"].get(guid, 0))
        sales = float(check_totals["net_sales"].get(guid, 0.0))
        tips = float(check_totals["tips"].get(guid, 0.0))
        hours = float(hours_by_employee.get(guid, 0.0))
        rows.append(
            {
                **key,
                "server_guid": str(guid),
                "server_name": employee_names.get(guid) or UNKNOWN_SERVER,
                "order_count": int(rec["order_count"]),
                "check_count": checks_n,
                "guest_count": int(rec["guest_count"]),
                "net_sales": round_money(sales),
                "tips": round_money(tips),
                "avg_check": round_money(_ratio(sales, checks_n)),
                "sales_per_hour": round_money(_ratio(sales, hours)),
                "hours_worked": round_money(hours),
            }
        )
    return rows
