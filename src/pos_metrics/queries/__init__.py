"""Read-only accessors over the store, returning plain dicts for the reporting layer."""

from pos_metrics.queries.base import resolve_location
from pos_metrics.queries.costs import (
    get_cost_by_category,
    get_cost_trend,
    get_daily_cost,
    get_invoice_list,
    get_vendor_spend,
)
from pos_metrics.queries.items import (
    get_bottom_items,
    get_item_pairing_rate,
    get_item_performance,
    get_top_items,
)
from pos_metrics.queries.labor import get_labor_summary, get_overtime_report, get_server_performance
from pos_metrics.queries.sales import (
    get_daily_revenue,
    get_dining_option_breakdown,
    get_guest_metrics,
    get_hourly_sales,
    get_payment_breakdown,
    get_revenue_by_location,
    get_revenue_trend,
    get_sales_by_category,
)
from pos_metrics.queries.sync import get_sync_status

__all__ = [
    "get_bottom_items",
    "get_cost_by_category",
    "get_cost_trend",
    "get_daily_cost",
    "get_daily_revenue",
    "get_dining_option_breakdown",
    "get_guest_metrics",
    "get_hourly_sales",
    "get_invoice_list",
    "get_item_pairing_rate",
    "get_item_performance",
    "get_labor_summary",
    "get_overtime_report",
    "get_payment_breakdown",
    "get_revenue_by_location",
    "get_revenue_trend",
    "get_sales_by_category",
    "get_server_performance",
    "get_sync_status",
    "get_top_items",
    "get_vendor_spend",
    "resolve_location",
]
