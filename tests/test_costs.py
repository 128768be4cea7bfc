"""Tests for invoice normalization, daily cost recomputation and InvoiceSync."""

import pandas as pd
import pytest
from sqlalchemy import select

from pos_metrics.costs.aggregate import compute_daily_cost
from pos_metrics.costs.sync import InvoiceSync
from pos_metrics.costs.transform import normalize_invoice
from pos_metrics.exceptions import APIError, ETLError
from pos_metrics.store import schema as t
from pos_metrics.utils import to_cents
from tests.factories import UNIT, FakeMarginEdge, api_error, invoice

ORDER_COLUMNS = [
    "order_id",
    "vendor_id",
    "vendor_name",
    "ref_vendor_name",
    "order_total",
    "tax",
    "delivery_charges",
    "other_charges",
    "credit_amount",
    "is_credit",
]
LINE_COLUMNS = ["order_id", "line_price", "category_id", "category_name"]

CATEGORIES = [{"categoryId": "c-prod", "categoryName": "Produce"}, {"categoryId": "c-meat", "categoryName": "Meat"}]
VENDORS = [{"vendorId": "v1", "vendorName": "Sysco Foods"}, {"vendorId": "v2", "vendorName": "US Foods"}]


def rows(engine, table, *where):
    with engine.connect() as conn:
        return [dict(r) for r in conn.execute(select(table).where(*where)).mappings()]


def cost_rows(engine):
    return {r["invoice_date"]: r for r in rows(engine, t.me_daily_costs)}


def test_normalize_invoice_date_fallbacks():
    order, _ = normalize_invoice({"orderId": 7, "createdDate": "2024-01-03T10:00:00"}, UNIT, "2024-01-31")
    assert order["order_id"] == "7"
    assert order["invoice_date"] == "2024-01-03"
    order, _ = normalize_invoice({"orderId": 8}, UNIT, "2024-01-31")
    assert order["invoice_date"] == order["created_date"] == "2024-01-31"


def test_daily_cost_partitions_total_exactly():
    orders = pd.DataFrame(
        [
            ["o1", "v1", "Sysco", None, 100.0, 10.0, 0.0, 0.0, 0.0, False],
            ["o2", "v2", None, "US Foods", 20.0, 0.0, 0.0, 0.0, 0.0, True],
            ["o3", "", "", None, 33.33, 0.0, 3.33, 0.0, 0.0, False],
        ],
        columns=ORDER_COLUMNS,
    )
    lines = pd.DataFrame(
        [
            ["o1", 60.0, "c-prod", "Produce"],
            ["o1", 30.0, "c-meat", "Meat"],
            ["o2", 20.0, "c-prod", "Produce"],
            ["o3", 10.0, "c-x", None],
            ["o3", 20.0, None, None],
        ],
        columns=LINE_COLUMNS,
    )

    row = compute_daily_cost(orders, lines, UNIT, "2024-01-05")

    assert row["total_cost"] == 113.33
    assert row["cost_by_category"] == {
        "Produce": 40.0,
        "Meat": 30.0,
        "c-x": 10.0,
        "Uncategorized": 20.0,
        "Unallocated": 13.33,
    }
    assert row["cost_by_vendor"] == {"Sysco": 100.0, "US Foods": -20.0, "Unknown Vendor": 33.33}
    assert sum(to_cents(v) for v in row["cost_by_category"].values()) == to_cents(row["total_cost"])
    assert sum(to_cents(v) for v in row["cost_by_vendor"].values()) == to_cents(row["total_cost"])
    assert row["total_credits"] == 20.0
    assert row["total_tax"] == 10.0
    assert row["total_delivery"] == 3.33
    assert row["invoice_count"] == 3
    assert row["vendor_count"] == 3


def test_daily_cost_without_orders_is_none():
    empty = pd.DataFrame([], columns=ORDER_COLUMNS)
    assert compute_daily_cost(empty, pd.DataFrame([], columns=LINE_COLUMNS), UNIT, "2024-01-05") is None


def test_order_without_lines_is_fully_unallocated():
    orders = pd.DataFrame([["o1", "v1", "Sysco", None, 50.0, 0.0, 0.0, 0.0, 0.0, False]], columns=ORDER_COLUMNS)
    row = compute_daily_cost(orders, pd.DataFrame([], columns=LINE_COLUMNS), UNIT, "2024-01-05")
    assert row["cost_by_category"] == {"Unallocated": 50.0}


def test_sync_orders_builds_daily_costs(engine):
    me = FakeMarginEdge(
        details=[
            invoice("a", "2024-01-05", 100, [(60, "c-prod"), (40, "c-meat")]),
            invoice("b", "2024-01-05", 25, [(25, "c-prod")], vendor_id="v2", vendor_name="USF"),
            invoice("c", "2024-01-06", 10, [(10, "c-meat")]),
        ],
        categories=CATEGORIES,
        vendors=VENDORS,
    )
    sync = InvoiceSync(me, engine)
    ref = sync.sync_ref_data()
    assert (ref.category_count, ref.vendor_count) == (2, 2)

    result = sync.sync_orders("2024-01-01", "2024-01-31")

    assert result.status == "success"
    assert result.order_count == 3
    assert result.affected_dates == ["2024-01-05", "2024-01-06"]
    costs = cost_rows(engine)
    assert costs["2024-01-05"]["total_cost"] == 125.0
    assert costs["2024-01-05"]["cost_by_category"] == {"Meat": 40.0, "Produce": 85.0}
    assert costs["2024-01-05"]["cost_by_vendor"] == {"Sysco Foods": 100.0, "US Foods": 25.0}
    assert costs["2024-01-06"]["invoice_count"] == 1
    assert len(rows(engine, t.me_order_line_items)) == 4


def test_changed_invoice_date_recomputes_both_dates(engine):
    InvoiceSync(FakeMarginEdge(details=[invoice("a", "2024-01-05", 100, [(100, "c-prod")])]), engine).sync_orders(
        "2024-01-01", "2024-01-31"
    )
    assert set(cost_rows(engine)) == {"2024-01-05"}

    moved = FakeMarginEdge(details=[invoice("a", "2024-01-06", 90, [(90, "c-prod")])])
    result = InvoiceSync(moved, engine).sync_orders("2024-01-01", "2024-01-31")

    assert result.affected_dates == ["2024-01-05", "2024-01-06"]
    costs = cost_rows(engine)
    assert set(costs) == {"2024-01-06"}
    assert costs["2024-01-06"]["total_cost"] == 90.0
    assert len(rows(engine, t.me_orders)) == 1
    assert [li["line_price"] for li in rows(engine, t.me_order_line_items)] == [90.0]


def test_unaffected_dates_are_untouched(engine):
    InvoiceSync(FakeMarginEdge(details=[invoice("a", "2024-01-05", 100)]), engine).sync_orders("2024-01-01", "2024-01-31")
    before = cost_rows(engine)["2024-01-05"]

    InvoiceSync(FakeMarginEdge(details=[invoice("b", "2024-01-09", 5)]), engine).sync_orders("2024-01-08", "2024-01-10")

    assert cost_rows(engine)["2024-01-05"] == before


def test_non_finalized_invoices_do_not_count(engine):
    me = FakeMarginEdge(
        details=[
            invoice("a", "2024-01-05", 100),
            invoice("b", "2024-01-05", 999, status="RECONCILIATION"),
        ]
    )
    InvoiceSync(me, engine).sync_orders("2024-01-01", "2024-01-31")
    row = cost_rows(engine)["2024-01-05"]
    assert row["total_cost"] == 100.0
    assert row["invoice_count"] == 1


def test_detail_failure_is_partial(engine):
    me = FakeMarginEdge(details=[invoice("a", "2024-01-05", 100), invoice("b", "2024-01-05", 50)], fail_details={"b"})
    result = InvoiceSync(me, engine).sync_orders("2024-01-01", "2024-01-31")

    assert result.status == "partial"
    assert result.order_count == 1
    assert result.warnings[0].startswith("Failed to fetch order detail b:")
    assert cost_rows(engine)["2024-01-05"]["total_cost"] == 100.0
    log = rows(engine, t.me_sync_log)[-1]
    assert (log["sync_type"], log["status"], log["record_count"]) == ("orders", "partial", 1)


def test_listing_failure_writes_error_log_only(engine):
    me = FakeMarginEdge(
        details=[invoice("a", "2024-01-05", 100)],
        fail={"get_orders_by_created_date": api_error("/orders", 500)},
    )
    with pytest.raises(APIError):
        InvoiceSync(me, engine).sync_orders("2024-01-01", "2024-01-31")

    assert rows(engine, t.me_orders) == []
    log = rows(engine, t.me_sync_log)
    assert len(log) == 1
    assert (log[0]["status"], log[0]["start_date"], log[0]["end_date"]) == ("error", "2024-01-01", "2024-01-31")


def test_unexpected_listing_error_is_wrapped(engine):
    me = FakeMarginEdge(fail={"get_orders_by_created_date": KeyError("orderId")})
    with pytest.raises(ETLError, match="Invoice sync failed"):
        InvoiceSync(me, engine).sync_orders("2024-01-01", "2024-01-31")

    log = rows(engine, t.me_sync_log)
    assert [(l["sync_type"], l["status"]) for l in log] == [("orders", "error")]


def test_ref_data_failure_is_logged_and_raised(engine):
    me = FakeMarginEdge(fail={"get_categories": api_error("/categories", 503)})
    with pytest.raises(APIError):
        InvoiceSync(me, engine).sync_ref_data()
    log = rows(engine, t.me_sync_log)
    assert [(l["sync_type"], l["status"]) for l in log] == [("ref_data", "error")]
