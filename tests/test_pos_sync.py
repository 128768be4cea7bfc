"""End-to-end tests for PosSync against a fake POS client and a temp store."""

import pytest
from sqlalchemy import func, select

from pos_metrics.exceptions import APIError, AuthenticationError, ETLError
from pos_metrics.sales.sync import PosSync
from pos_metrics.store import schema as t
from tests.factories import LOCATION, FakeToast, api_error, check, employee, order, selection, time_entry

DAY = "2024-03-01"


def scenario_orders():
    return [
        order(
            "o1",
            [check("c1", 80, [selection("Steak", 50, "cat-food"), selection("Merlot", 30, "cat-wine")],
                   [{"guid": "p1", "type": "VISA", "amount": 80}], tip=10)],
            opened="2024-03-01T23:10:00.000+0000",
            server="emp-1",
        ),
        order(
            "o2",
            [check("c2", 40, [selection("Steak", 40, "cat-food")], [{"guid": "p2", "type": "CASH", "amount": 40}])],
            opened="2024-03-01T17:45:00.000+0000",
            server="emp-1",
        ),
        order("o3", [check("c3", 300, [selection("Wagyu", 300, "cat-food")])], voided=True),
    ]


def make_toast(**kwargs):
    defaults = {
        "orders": scenario_orders(),
        "time_entries": [time_entry("t1", "emp-1", 8, 1)],
        "employees": [employee("emp-1", "Ana", "Diaz")],
        "categories": [{"guid": "cat-food", "name": "Food"}, {"guid": "cat-wine", "name": "Wine"}],
        "dining_options": [{"guid": "dine-in", "name": "Dine In", "behavior": "DINE_IN"}],
    }
    defaults.update(kwargs)
    return FakeToast(**defaults)


def fetch(engine, table, *where):
    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(select(table).where(*where)).mappings()]


def daily(engine):
    return fetch(engine, t.daily_metrics, t.daily_metrics.c.location_guid == LOCATION)


def test_sync_writes_raw_rows_and_rollups(engine, settings):
    toast = make_toast()
    result = PosSync(toast, engine, settings).sync_date(LOCATION, DAY)

    assert result.order_count == 2
    assert result.time_entry_count == 1
    assert result.status == "partial"
    assert any("$15/hr" in w for w in result.warnings)

    rows = daily(engine)
    assert len(rows) == 1
    d = rows[0]
    assert d["net_sales"] == 120.0
    assert d["labor_cost"] == 142.5
    assert d["labor_cost_pct"] == 118.75
    assert d["labor_cost_is_estimated"] is True
    assert d["location_name"] == "Downtown"
    assert d["sales_by_category"] == {"Food": 90.0, "Wine": 30.0}
    assert d["credit_payments"] == 80.0

    assert len(fetch(engine, t.orders)) == 2
    assert len(fetch(engine, t.order_items)) == 3
    servers = fetch(engine, t.server_daily_metrics)
    assert [s["server_name"] for s in servers] == ["Ana Diaz"]

    logs = fetch(engine, t.sync_log)
    assert [(l["status"], l["order_count"]) for l in logs] == [("partial", 2)]
    assert logs[0]["warnings"] == result.warnings


def test_time_entries_use_location_timezone_window(engine, settings):
    toast = make_toast(info={"general": {"name": "Bistro", "timeZone": "America/Los_Angeles"}})
    PosSync(toast, engine, settings).sync_date(LOCATION, DAY)

    call = [c for c in toast.calls if c[0] == "get_time_entries"][0]
    assert call[2:] == ("2024-03-01T00:00:00.000-0800", "2024-03-01T23:59:59.999-0800")
    orders_call = [c for c in toast.calls if c[0] == "get_orders"][0]
    assert orders_call[2] == "20240301"


def test_resync_replaces_rows_without_duplicates(engine, settings):
    sync = PosSync(make_toast(), engine, settings)
    sync.sync_date(LOCATION, DAY)
    first = daily(engine)
    first_hours = fetch(engine, t.hourly_metrics)

    sync.sync_date(LOCATION, DAY)

    assert daily(engine) == first
    assert fetch(engine, t.hourly_metrics) == first_hours
    assert len(fetch(engine, t.orders)) == 2
    assert len(fetch(engine, t.order_items)) == 3
    assert len(fetch(engine, t.sync_log)) == 2


def test_config_is_fetched_once_per_run(engine, settings):
    toast = make_toast()
    sync = PosSync(toast, engine, settings)
    sync.sync_date(LOCATION, DAY)
    sync.sync_date(LOCATION, "2024-03-02")
    names = [c[0] for c in toast.calls]
    assert names.count("get_sales_categories") == 1
    assert names.count("get_orders") == 2


def test_fewer_orders_on_resync_removes_stale_rows(engine, settings):
    PosSync(make_toast(), engine, settings).sync_date(LOCATION, DAY)
    PosSync(make_toast(orders=scenario_orders()[1:]), engine, settings).sync_date(LOCATION, DAY)

    assert [o["guid"] for o in fetch(engine, t.orders)] == ["o2"]
    assert daily(engine)[0]["net_sales"] == 40.0
    assert [h["hour"] for h in fetch(engine, t.hourly_metrics)] == [12]


def test_orders_failure_keeps_previous_data_and_logs_error(engine, settings):
    PosSync(make_toast(), engine, settings).sync_date(LOCATION, DAY)
    before = daily(engine)

    failing = make_toast(fail={"get_orders": api_error("/orders/v2/ordersBulk", 500)})
    with pytest.raises(APIError):
        PosSync(failing, engine, settings).sync_date(LOCATION, DAY)

    assert daily(engine) == before
    assert len(fetch(engine, t.orders)) == 2
    logs = fetch(engine, t.sync_log)
    assert [l["status"] for l in logs] == ["partial", "error"]
    assert "HTTP 500" in logs[-1]["warnings"][0]


def test_authentication_failure_is_fatal(engine, settings):
    toast = make_toast(fail={"get_employees": AuthenticationError("/auth", 401, "denied")})
    with pytest.raises(AuthenticationError):
        PosSync(toast, engine, settings).sync_date(LOCATION, DAY)
    assert daily(engine) == []
    assert [l["status"] for l in fetch(engine, t.sync_log)] == ["error"]


def test_employee_failure_uses_stored_wages(engine, settings):
    PosSync(make_toast(employees=[employee("emp-1", "Ana", "Diaz", [20.0])]), engine, settings).sync_date(LOCATION, DAY)

    toast = make_toast(fail={"get_employees": api_error("/labor/v1/employees", 503)})
    result = PosSync(toast, engine, settings).sync_date(LOCATION, DAY)

    assert result.status == "partial"
    assert result.warnings[0].startswith("Could not fetch employees:")
    d = daily(engine)[0]
    assert d["labor_cost"] == 190.0
    assert d["labor_cost_is_estimated"] is False


def test_time_entry_failure_is_recoverable(engine, settings):
    toast = make_toast(
        employees=[employee("emp-1", "Ana", "Diaz", [20.0])],
        fail={"get_time_entries": api_error("/labor/v1/timeEntries", 500)},
    )
    result = PosSync(toast, engine, settings).sync_date(LOCATION, DAY)

    assert result.status == "partial"
    assert result.time_entry_count == 0
    assert any(w.startswith("Could not fetch time entries:") for w in result.warnings)
    assert daily(engine)[0]["labor_hours"] == 0.0


def test_clean_day_is_success(engine, settings):
    toast = make_toast(employees=[employee("emp-1", "Ana", "Diaz", [18.0, 22.0])])
    result = PosSync(toast, engine, settings).sync_date(LOCATION, DAY)
    assert result.status == "success"
    assert result.warnings == []
    assert daily(engine)[0]["labor_cost"] == pytest.approx(8 * 22 + 1.5 * 22)
    with engine.connect() as conn:
        assert conn.execute(select(func.count()).select_from(t.employee_jobs)).scalar_one() == 2


def test_unknown_location_timezone_uses_default(engine, settings):
    toast = make_toast(info={"general": {"name": "Bistro", "timeZone": "Mars/Olympus_Mons"}})
    result = PosSync(toast, engine, settings).sync_date(LOCATION, DAY)

    assert result.order_count == 2
    call = [c for c in toast.calls if c[0] == "get_time_entries"][0]
    assert call[2:] == ("2024-03-01T00:00:00.000-0500", "2024-03-01T23:59:59.999-0500")


def test_unexpected_error_is_logged_and_wrapped(engine, settings, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("bad rollup input")

    monkeypatch.setattr("pos_metrics.sales.sync.compute_rollups", explode)
    with pytest.raises(ETLError, match="bad rollup input"):
        PosSync(make_toast(), engine, settings).sync_date(LOCATION, DAY)

    assert daily(engine) == []
    logs = fetch(engine, t.sync_log)
    assert [(l["status"], l["warnings"]) for l in logs] == [("error", ["bad rollup input"])]
