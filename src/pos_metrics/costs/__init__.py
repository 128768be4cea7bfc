"""Invoicing side: normalize invoices, sync by created-date window, recompute daily costs."""

from pos_metrics.costs.aggregate import compute_daily_cost, recompute_daily_costs
from pos_metrics.costs.sync import InvoiceSync, InvoiceSyncResult, RefDataResult
from pos_metrics.costs.transform import normalize_invoice

__all__ = [
    "InvoiceSync",
    "InvoiceSyncResult",
    "RefDataResult",
    "compute_daily_cost",
    "normalize_invoice",
    "recompute_daily_costs",
]
