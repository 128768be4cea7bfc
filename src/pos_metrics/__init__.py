"""POS Metrics - POS and invoicing ingestion with precomputed rollups.

This package pulls point-of-sale orders and labor from the POS API and
finalized invoices from the invoicing API, stores the raw rows in SQLite and
precomputes the rollups a reporting layer reads:

- **Raw**: orders, checks, items, payments, discounts, time entries, invoices
- **Rollups**: daily, hourly, item and server metrics per location and
  business date; purchasing cost per restaurant unit and invoice date

Module Structure:
    pos_metrics.clients: Rate-limited API clients (POS, invoicing)
    pos_metrics.sales: POS normalizer, aggregation engine, sync orchestrator
    pos_metrics.costs: Invoice normalizer, cost recomputation, invoice sync
    pos_metrics.store: SQLAlchemy tables and SQLite engine
    pos_metrics.queries: Read-only accessors for reporting
    pos_metrics.recommendations: Threshold rules over daily metrics

Quick Start:
    >>> from pos_metrics import PosSync, Settings
    >>> from pos_metrics.clients import ToastClient
    >>> from pos_metrics.store import get_engine, init_db
    >>>
    >>> settings = Settings.from_env()
    >>> engine = get_engine(settings.database_path)
    >>> init_db(engine)
    >>> sync = PosSync(ToastClient.from_settings(settings), engine, settings)
    >>> result = sync.sync_date(settings.location_guids[0], "2024-03-01")
    >>> result.status
    'success'

Grain Reference:
    daily_metrics        - location x business date
    hourly_metrics       - location x business date x hour
    item_daily_metrics   - location x business date x item
    server_daily_metrics - location x business date x server
    me_daily_costs       - restaurant unit x invoice date
"""

__version__ = "0.1.0"

from pos_metrics.config import Settings
from pos_metrics.costs.sync import InvoiceSync
from pos_metrics.exceptions import (
    APIError,
    AuthenticationError,
    ConfigError,
    ETLError,
    ExtractionError,
    PosMetricsError,
)
from pos_metrics.locations import LocationDirectory
from pos_metrics.sales.sync import PosSync

__all__ = [
    "APIError",
    "AuthenticationError",
    "ConfigError",
    "ETLError",
    "ExtractionError",
    "InvoiceSync",
    "LocationDirectory",
    "PosMetricsError",
    "PosSync",
    "Settings",
    "__version__",
]
