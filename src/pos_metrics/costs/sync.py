"""Invoicing sync: reference data and orders by created-date window.

Invoices move through several review states before they are finalized, and
their invoice date may be corrected along the way. Orders are therefore
synced by *created* date over a window wide enough to catch late
finalizations, and every invoice date an order had before or after the
upsert is recomputed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import and_, delete, select
from sqlalchemy.engine import Connection, Engine

from pos_metrics.clients.marginedge import FINALIZED_STATUS, MarginEdgeClient
from pos_metrics.costs.aggregate import recompute_daily_costs
from pos_metrics.costs.transform import normalize_category, normalize_invoice, normalize_vendor
from pos_metrics.exceptions import AuthenticationError, ETLError, ExtractionError, PosMetricsError
from pos_metrics.store import schema as t
from pos_metrics.store.db import insert_rows, upsert
from pos_metrics.store.schema import STATUS_ERROR, STATUS_PARTIAL, STATUS_SUCCESS
from pos_metrics.utils import utc_now

logger = logging.getLogger(__name__)

SYNC_ORDERS = "orders"
SYNC_REF_DATA = "ref_data"


@dataclass
class InvoiceSyncResult:
    """Outcome of an invoicing order sync."""

    restaurant_unit_id: str
    order_count: int = 0
    affected_dates: list[str] = field(default_factory=list)
    status: str = STATUS_SUCCESS
    warnings: list[str] = field(default_factory=list)


@dataclass
class RefDataResult:
    restaurant_unit_id: str
    category_count: int = 0
    vendor_count: int = 0


def _write_log(
    conn: Connection,
    unit_id: str,
    sync_type: str,
    status: str,
    record_count: int = 0,
    start_date: str | None = None,
    end_date: str | None = None,
    warnings: list[str] | None = None,
) -> None:
    conn.execute(
        t.me_sync_log.insert().values(
            restaurant_unit_id=unit_id,
            sync_type=sync_type,
            start_date=start_date,
            end_date=end_date,
            synced_at=utc_now(),
            record_count=record_count,
            status=status,
            warnings=warnings or [],
        )
    )


class InvoiceSync:
    """Sync invoicing data for one restaurant unit.

    Args:
        client: Invoicing client for this run.
        engine: Store engine (schema already initialised).
    """

    def __init__(self, client: MarginEdgeClient, engine: Engine) -> None:
        self.client = client
        self.engine = engine

    def sync_ref_data(self, unit_id: str | None = None) -> RefDataResult:
        """Upsert categories and vendors (last write wins).

        Raises:
            ConfigError: If no unit id is given or configured.
            ExtractionError: If either list cannot be fetched.

        """
        unit = self.client.resolve_unit(unit_id)
        try:
            categories = self.client.get_categories(unit)
            vendors = self.client.get_vendors(unit)
        except PosMetricsError as e:
            self._record_failure(unit, SYNC_REF_DATA, e)
            raise

        category_rows = [normalize_category(c, unit) for c in categories if c.get("categoryId")]
        vendor_rows = [normalize_vendor(v, unit) for v in vendors if v.get("vendorId")]
        with self.engine.begin() as conn:
            upsert(conn, t.me_categories, category_rows)
            upsert(conn, t.me_vendors, vendor_rows)
            _write_log(
                conn,
                unit,
                SYNC_REF_DATA,
                STATUS_SUCCESS,
                record_count=len(category_rows) + len(vendor_rows),
            )

        logger.info("Synced %d categories and %d vendors for unit %s", len(category_rows), len(vendor_rows), unit)
        return RefDataResult(unit, len(category_rows), len(vendor_rows))

    def sync_orders(
        self, created_start: str, created_end: str, unit_id: str | None = None
    ) -> InvoiceSyncResult:
        """Upsert finalized orders created in [created_start, created_end] and recompute costs.

        Args:
            created_start: First created date (yyyy-MM-dd).
            created_end: Last created date (yyyy-MM-dd).
            unit_id: Restaurant unit; defaults to the client's unit.

        Returns:
            InvoiceSyncResult with the affected invoice dates.

        Raises:
            ConfigError: If no unit id is given or configured.
            ExtractionError: If the order listing fails. Nothing is written
                except an ``error`` row in me_sync_log.
            ETLError: Wraps any other failure, after the same ``error`` row.

        """
        unit = self.client.resolve_unit(unit_id)
        logger.info("Syncing invoices for unit %s created %s..%s", unit, created_start, created_end)
        try:
            return self._sync_orders(unit, created_start, created_end)
        except PosMetricsError as e:
            logger.error("Invoice sync failed for unit %s: %s", unit, e)
            self._record_failure(unit, SYNC_ORDERS, e, created_start, created_end)
            raise
        except Exception as e:
            logger.exception("Unexpected error syncing invoices for unit %s", unit)
            self._record_failure(unit, SYNC_ORDERS, e, created_start, created_end)
            raise ETLError(f"Invoice sync failed for unit {unit}: {e}") from e

    def _sync_orders(self, unit: str, created_start: str, created_end: str) -> InvoiceSyncResult:
        warnings: list[str] = []
        summaries = self.client.get_orders_by_created_date(
            created_start, created_end, FINALIZED_STATUS, unit
        )
        logger.info("Got %d order summaries", len(summaries))

        details = []
        for summary in summaries:
            order_id = summary.get("orderId")
            try:
                details.append(self.client.get_order_detail(order_id, unit))
            except AuthenticationError:
                raise
            except ExtractionError as e:
                msg = f"Failed to fetch order detail {order_id}: {e}"
                logger.warning(msg)
                warnings.append(msg)

        affected: set[str] = set()
        status = STATUS_PARTIAL if warnings else STATUS_SUCCESS
        o, li = t.me_orders, t.me_order_line_items

        with self.engine.begin() as conn:
            for detail in details:
                order, lines = normalize_invoice(detail, unit, created_end)
                key = and_(o.c.order_id == order["order_id"], o.c.restaurant_unit_id == unit)
                previous = conn.execute(select(o.c.invoice_date).where(key)).scalar_one_or_none()
                if previous:
                    affected.add(previous)
                if order["invoice_date"]:
                    affected.add(order["invoice_date"])

                upsert(conn, o, [order])
                conn.execute(
                    delete(li).where(
                        and_(li.c.order_id == order["order_id"], li.c.restaurant_unit_id == unit)
                    )
                )
                insert_rows(conn, li, lines)

            _write_log(
                conn,
                unit,
                SYNC_ORDERS,
                status,
                record_count=len(details),
                start_date=created_start,
                end_date=created_end,
                warnings=warnings,
            )
            recompute_daily_costs(conn, unit, affected)

        logger.info(
            "Upserted %d invoices, recomputed %d invoice dates (status=%s)",
            len(details),
            len(affected),
            status,
        )
        return InvoiceSyncResult(
            restaurant_unit_id=unit,
            order_count=len(details),
            affected_dates=sorted(affected),
            status=status,
            warnings=warnings,
        )

    def _record_failure(
        self,
        unit: str,
        sync_type: str,
        error: Exception,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> None:
        with self.engine.begin() as conn:
            _write_log(
                conn,
                unit,
                sync_type,
                STATUS_ERROR,
                start_date=start_date,
                end_date=end_date,
                warnings=[str(error)],
            )
