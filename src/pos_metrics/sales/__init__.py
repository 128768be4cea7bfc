"""POS side: normalize orders and labor, compute rollups, sync per (location, date)."""

from pos_metrics.sales.aggregate import DayRollups, LaborSummary, compute_rollups, estimate_labor
from pos_metrics.sales.sync import PosSync, SyncResult
from pos_metrics.sales.transform import NormalizedDay, classify_payment_type, normalize_orders

__all__ = [
    "DayRollups",
    "LaborSummary",
    "NormalizedDay",
    "PosSync",
    "SyncResult",
    "classify_payment_type",
    "compute_rollups",
    "estimate_labor",
    "normalize_orders",
]
