"""Table definitions for the metrics store.

Raw POS rows are keyed by (location_guid, business_date); derived rollups by
the same key plus their grain column. Invoicing rows are keyed by
(order_id, restaurant_unit_id) and rolled up per (restaurant_unit_id,
invoice_date).

Grain Reference:
    daily_metrics        - location x business date
    hourly_metrics       - location x business date x hour (0-23)
    item_daily_metrics   - location x business date x item display name
    server_daily_metrics - location x business date x server
    me_daily_costs       - restaurant unit x invoice date
"""

from __future__ import annotations

import json
import math
from typing import Any

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)
from sqlalchemy.types import TypeDecorator

metadata = MetaData()


class JSONMap(TypeDecorator):
    """``dict[str, float]`` stored as JSON text with sorted keys.

    The key set is open-ended (category names, vendor names). Non-numeric
    values are dropped on read so callers always receive name -> amount.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str:
        return json.dumps({str(k): float(v) for k, v in (value or {}).items()}, sort_keys=True)

    def process_result_value(self, value: Any, dialect: Any) -> dict[str, float]:
        if not value:
            return {}
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return {}
        if not isinstance(parsed, dict):
            return {}
        return {
            k: float(v)
            for k, v in parsed.items()
            if isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v)
        }


class JSONList(TypeDecorator):
    """``list[str]`` stored as JSON text (sync warnings)."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> str:
        return json.dumps([str(v) for v in (value or [])])

    def process_result_value(self, value: Any, dialect: Any) -> list[str]:
        if not value:
            return []
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return []
        return [str(v) for v in parsed] if isinstance(parsed, list) else []


def _money(name: str) -> Column:
    return Column(name, Float, nullable=False, default=0.0)


# ---------------------------------------------------------------------------
# POS reference data
# ---------------------------------------------------------------------------

locations = Table(
    "locations",
    metadata,
    Column("guid", String, primary_key=True),
    Column("name", String, default=""),
    Column("location_name", String, default=""),
    Column("timezone", String, default=""),
    Column("address", String, default=""),
    Column("city", String, default=""),
    Column("state", String, default=""),
    Column("zip", String, default=""),
)

sales_categories = Table(
    "sales_categories",
    metadata,
    Column("guid", String, primary_key=True),
    Column("location_guid", String, nullable=False, index=True),
    Column("name", String, default=""),
)

revenue_centers = Table(
    "revenue_centers",
    metadata,
    Column("guid", String, primary_key=True),
    Column("location_guid", String, nullable=False, index=True),
    Column("name", String, default=""),
)

dining_options = Table(
    "dining_options",
    metadata,
    Column("guid", String, primary_key=True),
    Column("location_guid", String, nullable=False, index=True),
    Column("name", String, default=""),
    Column("behavior", String, default=""),
)

employees = Table(
    "employees",
    metadata,
    Column("guid", String, primary_key=True),
    Column("location_guid", String, nullable=False, index=True),
    Column("external_id", String, default=""),
    Column("first_name", String, default=""),
    Column("last_name", String, default=""),
    Column("email", String, default=""),
    Column("deleted", Boolean, default=False),
)

employee_jobs = Table(
    "employee_jobs",
    metadata,
    Column("guid", String, primary_key=True),
    Column("employee_guid", String, primary_key=True),
    Column("title", String, default=""),
    Column("wage_type", String, default=""),
    Column("wage_amount", Float, default=0.0),
)

# ---------------------------------------------------------------------------
# POS raw rows, replaced wholesale per (location_guid, business_date)
# ---------------------------------------------------------------------------

orders = Table(
    "orders",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("guid", String, primary_key=True),
    Column("server_guid", String),
    Column("dining_option_guid", String),
    Column("revenue_center_guid", String),
    Column("opened_at", String),
    Column("closed_at", String),
    Column("paid_at", String),
    Column("voided", Boolean, default=False),
    Column("deleted", Boolean, default=False),
    Column("guest_count", Integer, default=0),
    Column("approval_status", String),
)

checks = Table(
    "checks",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("guid", String, primary_key=True),
    Column("order_guid", String, nullable=False),
    Column("payment_status", String, default=""),
    _money("amount"),
    _money("tax_amount"),
    _money("total_amount"),
    _money("tip_amount"),
    Column("voided", Boolean, default=False),
    Column("deleted", Boolean, default=False),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("location_guid", String, nullable=False),
    Column("business_date", String, nullable=False),
    Column("order_guid", String, nullable=False),
    Column("check_guid", String, nullable=False),
    Column("selection_guid", String),
    Column("display_name", String),
    Column("item_guid", String),
    Column("sales_category_guid", String),
    Column("sales_category_name", String),
    Column("quantity", Float, default=1.0),
    _money("price"),
    _money("pre_discount_price"),
    _money("tax"),
    Column("voided", Boolean, default=False),
    Column("is_modifier", Boolean, default=False),
    Index("idx_order_items_loc_date", "location_guid", "business_date"),
)

payments = Table(
    "payments",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("guid", String, primary_key=True),
    Column("check_guid", String, nullable=False),
    Column("order_guid", String, nullable=False),
    Column("type", String, default=""),
    _money("amount"),
    _money("tip_amount"),
    Column("payment_status", String, default=""),
    Column("refund_status", String, default=""),
)

discounts = Table(
    "discounts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("location_guid", String, nullable=False),
    Column("business_date", String, nullable=False),
    Column("check_guid", String, nullable=False),
    Column("order_guid", String, nullable=False),
    Column("name", String, default=""),
    _money("discount_amount"),
    Column("discount_percent", Float, default=0.0),
    Index("idx_discounts_loc_date", "location_guid", "business_date"),
)

time_entries = Table(
    "time_entries",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("guid", String, primary_key=True),
    Column("employee_guid", String),
    Column("job_guid", String),
    Column("in_date", String),
    Column("out_date", String),
    Column("regular_hours", Float, default=0.0),
    Column("overtime_hours", Float, default=0.0),
    _money("cash_sales"),
    _money("non_cash_sales"),
    _money("cash_tips"),
    _money("non_cash_tips"),
    _money("declared_cash_tips"),
)

RAW_POS_TABLES = (order_items, payments, discounts, checks, orders, time_entries)

# ---------------------------------------------------------------------------
# POS rollups
# ---------------------------------------------------------------------------

daily_metrics = Table(
    "daily_metrics",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("location_name", String, default=""),
    _money("gross_sales"),
    _money("net_sales"),
    _money("tax_collected"),
    _money("tips_collected"),
    _money("total_discounts"),
    Column("order_count", Integer, default=0),
    Column("guest_count", Integer, default=0),
    _money("avg_check"),
    _money("avg_guest_spend"),
    Column("labor_hours", Float, default=0.0),
    _money("labor_cost"),
    Column("labor_cost_pct", Float, default=0.0),
    Column("overtime_hours", Float, default=0.0),
    _money("sales_per_labor_hour"),
    Column("employee_count", Integer, default=0),
    Column("labor_cost_is_estimated", Boolean, default=False),
    _money("cash_payments"),
    _money("credit_payments"),
    _money("other_payments"),
    Column("sales_by_category", JSONMap, default=dict),
    Column("sales_by_dining_option", JSONMap, default=dict),
)

hourly_metrics = Table(
    "hourly_metrics",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("hour", Integer, primary_key=True),
    Column("order_count", Integer, default=0),
    Column("guest_count", Integer, default=0),
    _money("net_sales"),
    _money("avg_check"),
)

item_daily_metrics = Table(
    "item_daily_metrics",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("display_name", String, primary_key=True),
    Column("sales_category_name", String, default=""),
    Column("quantity_sold", Float, default=0.0),
    _money("revenue"),
    _money("avg_price"),
    Column("order_count", Integer, default=0),
)

server_daily_metrics = Table(
    "server_daily_metrics",
    metadata,
    Column("location_guid", String, primary_key=True),
    Column("business_date", String, primary_key=True),
    Column("server_guid", String, primary_key=True),
    Column("server_name", String, default=""),
    Column("order_count", Integer, default=0),
    Column("check_count", Integer, default=0),
    Column("guest_count", Integer, default=0),
    _money("net_sales"),
    _money("tips"),
    _money("avg_check"),
    _money("sales_per_hour"),
    Column("hours_worked", Float, default=0.0),
)

ROLLUP_POS_TABLES = (daily_metrics, hourly_metrics, item_daily_metrics, server_daily_metrics)

# sync_log / me_sync_log status values
STATUS_SUCCESS = "success"
STATUS_PARTIAL = "partial"
STATUS_ERROR = "error"

sync_log = Table(
    "sync_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("location_guid", String, nullable=False),
    Column("business_date", String, nullable=False),
    Column("synced_at", String, nullable=False),
    Column("order_count", Integer, default=0),
    Column("status", String, nullable=False),
    Column("warnings", JSONList, default=list),
    Index("idx_sync_log_loc_date", "location_guid", "business_date"),
)

# ---------------------------------------------------------------------------
# Invoicing
# ---------------------------------------------------------------------------

me_categories = Table(
    "me_categories",
    metadata,
    Column("category_id", String, primary_key=True),
    Column("restaurant_unit_id", String, primary_key=True),
    Column("category_name", String, default=""),
    Column("category_type", String, default=""),
    Column("accounting_code", String),
)

me_vendors = Table(
    "me_vendors",
    metadata,
    Column("vendor_id", String, primary_key=True),
    Column("restaurant_unit_id", String, primary_key=True),
    Column("vendor_name", String, default=""),
    Column("central_vendor_id", String, default=""),
)

me_orders = Table(
    "me_orders",
    metadata,
    Column("order_id", String, primary_key=True),
    Column("restaurant_unit_id", String, primary_key=True),
    Column("invoice_number", String, default=""),
    Column("invoice_date", String, nullable=False),
    Column("created_date", String, default=""),
    Column("vendor_id", String, default=""),
    Column("vendor_name", String, default=""),
    _money("order_total"),
    _money("tax"),
    _money("delivery_charges"),
    _money("other_charges"),
    _money("credit_amount"),
    Column("is_credit", Boolean, default=False),
    Column("status", String, default=""),
    Index("idx_me_orders_unit_date", "restaurant_unit_id", "invoice_date"),
)

me_order_line_items = Table(
    "me_order_line_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", String, nullable=False),
    Column("restaurant_unit_id", String, nullable=False),
    Column("vendor_item_code", String),
    Column("vendor_item_name", String),
    Column("quantity", Float),
    Column("unit_price", Float),
    _money("line_price"),
    Column("category_id", String),
    Column("packaging_id", String),
    Column("company_concept_product_id", String),
    Index("idx_me_line_items_order", "order_id", "restaurant_unit_id"),
)

me_daily_costs = Table(
    "me_daily_costs",
    metadata,
    Column("restaurant_unit_id", String, primary_key=True),
    Column("invoice_date", String, primary_key=True),
    _money("total_cost"),
    _money("total_tax"),
    _money("total_delivery"),
    _money("total_other_charges"),
    _money("total_credits"),
    Column("invoice_count", Integer, default=0),
    Column("vendor_count", Integer, default=0),
    Column("cost_by_category", JSONMap, default=dict),
    Column("cost_by_vendor", JSONMap, default=dict),
)

me_sync_log = Table(
    "me_sync_log",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("restaurant_unit_id", String, nullable=False),
    Column("sync_type", String, nullable=False),
    Column("start_date", String),
    Column("end_date", String),
    Column("synced_at", String, nullable=False),
    Column("record_count", Integer, default=0),
    Column("status", String, nullable=False),
    Column("warnings", JSONList, default=list),
)
