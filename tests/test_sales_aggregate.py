"""Tests for the per-day POS rollups."""

import pandas as pd
import pytest

from pos_metrics.sales.aggregate import compute_rollups, estimate_labor
from pos_metrics.sales.transform import normalize_orders, normalize_time_entries
from tests.factories import LOCATION, check, order, selection, time_entry

DAY = "2024-03-01"
CATEGORIES = {"cat-food": "Food", "cat-wine": "Wine"}


def build_day():
    orders = [
        order(
            "o1",
            [
                check(
                    "c1",
                    80,
                    [
                        selection("Steak", 50, "cat-food", modifiers=[selection("Pepper Sauce", 3)]),
                        selection("Merlot", 30, "cat-wine"),
                    ],
                    [{"guid": "p1", "type": "CREDIT", "amount": 86.4}],
                    tax=6.4,
                    tip=12,
                    discounts=[{"name": "Comp", "discountAmount": 5}],
                )
            ],
            opened="2024-03-01T23:10:00.000+0000",  # 18:10 local
            server="emp-1",
            dining_option="dine-in",
            guests=2,
        ),
        order(
            "o2",
            [check("c2", 40, [selection("Steak", 40, "cat-food"), selection("Bread", 0)],
                   [{"guid": "p2", "type": "CASH", "amount": 40}])],
            opened=None,
            server="emp-1",
            guests=1,
        ),
        order("o3", [check("c3", 500, [selection("Wagyu", 500, "cat-food")])], voided=True),
    ]
    orders[1]["closedDate"] = "2024-03-01T17:45:00.000+0000"  # 12:45 local
    day = normalize_orders(orders, LOCATION, DAY, CATEGORIES)
    day.time_entries = normalize_time_entries([time_entry("t1", "emp-1", 8, 1)], LOCATION, DAY)
    return day


def test_daily_totals_exclude_voided_orders():
    r = compute_rollups(build_day(), LOCATION, DAY, location_name="Downtown", dining_option_names={"dine-in": "Dine In"})
    d = r.daily
    assert d["order_count"] == 2
    assert d["guest_count"] == 3
    assert d["net_sales"] == 120.0
    assert d["gross_sales"] == 126.4
    assert d["tax_collected"] == 6.4
    assert d["tips_collected"] == 12.0
    assert d["total_discounts"] == 5.0
    assert d["avg_check"] == 60.0
    assert d["avg_guest_spend"] == 40.0
    assert d["cash_payments"] == 40.0
    assert d["credit_payments"] == 86.4
    assert d["other_payments"] == 0.0
    assert d["location_name"] == "Downtown"


def test_labor_uses_default_rate_when_wage_missing():
    r = compute_rollups(build_day(), LOCATION, DAY, default_hourly_rate=15.0)
    d = r.daily
    assert d["labor_hours"] == 9.0
    assert d["labor_cost"] == 142.5
    assert d["labor_cost_pct"] == 118.75
    assert d["overtime_hours"] == 1.0
    assert d["sales_per_labor_hour"] == 13.33
    assert d["employee_count"] == 1
    assert d["labor_cost_is_estimated"] is True
    assert len(r.warnings) == 1
    assert "$15/hr" in r.warnings[0]


def test_labor_uses_wage_on_file():
    r = compute_rollups(build_day(), LOCATION, DAY, wages={"emp-1": 20.0})
    assert r.daily["labor_cost"] == 190.0
    assert r.daily["labor_cost_is_estimated"] is False
    assert r.warnings == []


def test_category_and_dining_maps_exclude_modifiers():
    r = compute_rollups(build_day(), LOCATION, DAY, dining_option_names={"dine-in": "Dine In"})
    assert r.daily["sales_by_category"] == {"Food": 90.0, "Uncategorized": 0.0, "Wine": 30.0}
    assert r.daily["sales_by_dining_option"] == {"Dine In": 80.0, "Other": 40.0}


def test_hourly_rows_partition_the_day():
    r = compute_rollups(build_day(), LOCATION, DAY, timezone="America/New_York")
    by_hour = {h["hour"]: h for h in r.hourly}
    assert set(by_hour) == {12, 18}
    assert by_hour[18]["net_sales"] == 80.0
    assert by_hour[12]["net_sales"] == 40.0
    assert sum(h["order_count"] for h in r.hourly) == r.daily["order_count"]
    assert sum(h["net_sales"] for h in r.hourly) == pytest.approx(r.daily["net_sales"])


def test_order_without_timestamps_lands_in_hour_zero():
    day = normalize_orders([order("o1", [check("c1", 10)], opened=None)], LOCATION, DAY, {})
    r = compute_rollups(day, LOCATION, DAY)
    assert [(h["hour"], h["net_sales"]) for h in r.hourly] == [(0, 10.0)]


def test_item_rows_group_by_name():
    r = compute_rollups(build_day(), LOCATION, DAY)
    items = {i["display_name"]: i for i in r.items}
    assert "Pepper Sauce" not in items
    steak = items["Steak"]
    assert steak["quantity_sold"] == 2.0
    assert steak["revenue"] == 90.0
    assert steak["avg_price"] == 45.0
    assert steak["order_count"] == 2
    assert steak["sales_category_name"] == "Food"


def test_server_rows():
    r = compute_rollups(build_day(), LOCATION, DAY, employee_names={"emp-1": "Ana Diaz"})
    assert len(r.servers) == 1
    s = r.servers[0]
    assert s["server_name"] == "Ana Diaz"
    assert s["order_count"] == 2
    assert s["check_count"] == 2
    assert s["net_sales"] == 120.0
    assert s["tips"] == 12.0
    assert s["avg_check"] == 60.0
    assert s["hours_worked"] == 9.0
    assert s["sales_per_hour"] == 13.33


def test_estimate_labor_empty_frame():
    labor = estimate_labor(pd.DataFrame(columns=["employee_guid", "regular_hours", "overtime_hours"]), {})
    assert labor.cost == 0.0
    assert labor.is_estimated is False


def test_unparseable_opened_date_falls_back_to_closed():
    rec = order("o1", [check("c1", 10)], opened="not-a-date")
    rec["closedDate"] = "2024-03-01T19:05:00.000+0000"  # 14:05 local
    day = normalize_orders([rec], LOCATION, DAY, {})
    r = compute_rollups(day, LOCATION, DAY, timezone="America/New_York")
    assert [h["hour"] for h in r.hourly] == [14]


def test_repeated_order_records_count_once():
    rec = order("o1", [check("c1", 25, [selection("Steak", 25, "cat-food")])], server="emp-1")
    day = normalize_orders([rec, rec], LOCATION, DAY, CATEGORIES)
    r = compute_rollups(day, LOCATION, DAY)
    assert r.daily["order_count"] == 1
    assert r.daily["net_sales"] == 25.0
    assert [(h["order_count"], h["net_sales"]) for h in r.hourly] == [(1, 25.0)]
    assert r.servers[0]["net_sales"] == 25.0
