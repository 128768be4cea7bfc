"""Daily purchasing-cost rollups per (restaurant unit, invoice date).

Only finalized (CLOSED) invoices contribute. Amounts are summed in integer
cents so the category and vendor maps partition ``total_cost`` exactly:

- credit memos count negatively (``-abs(total)``, ``-abs(line price)``)
- each invoice's total minus its line prices (tax, freight, other charges,
  unallocated amounts) is booked under ``"Unallocated"``
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import pandas as pd
from sqlalchemy import and_, delete, select
from sqlalchemy.engine import Connection

from pos_metrics.clients.marginedge import FINALIZED_STATUS
from pos_metrics.store.db import insert_rows
from pos_metrics.store.schema import (
    me_categories,
    me_daily_costs,
    me_order_line_items,
    me_orders,
    me_vendors,
)
from pos_metrics.utils import to_cents, unique

logger = logging.getLogger(__name__)

UNKNOWN_VENDOR = "Unknown Vendor"
UNCATEGORIZED = "Uncategorized"
UNALLOCATED = "Unallocated"


def _first_text(*values: object) -> str:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


def _cents_map(totals: pd.Series) -> dict[str, float]:
    return {str(k): int(v) / 100 for k, v in totals.items()}


def _closed_orders(conn: Connection, unit_id: str, invoice_date: str) -> pd.DataFrame:
    o, v = me_orders, me_vendors
    stmt = (
        select(
            o.c.order_id,
            o.c.vendor_id,
            o.c.vendor_name,
            v.c.vendor_name.label("ref_vendor_name"),
            o.c.order_total,
            o.c.tax,
            o.c.delivery_charges,
            o.c.other_charges,
            o.c.credit_amount,
            o.c.is_credit,
        )
        .select_from(
            o.outerjoin(
                v,
                and_(v.c.vendor_id == o.c.vendor_id, v.c.restaurant_unit_id == o.c.restaurant_unit_id),
            )
        )
        .where(
            and_(
                o.c.restaurant_unit_id == unit_id,
                o.c.invoice_date == invoice_date,
                o.c.status == FINALIZED_STATUS,
            )
        )
        .order_by(o.c.order_id)
    )
    rows = [dict(r) for r in conn.execute(stmt).mappings()]
    return pd.DataFrame(rows, columns=list(stmt.selected_columns.keys()))


def _closed_line_items(conn: Connection, unit_id: str, invoice_date: str) -> pd.DataFrame:
    li, o, c = me_order_line_items, me_orders, me_categories
    stmt = (
        select(
            li.c.order_id,
            li.c.line_price,
            li.c.category_id,
            c.c.category_name,
        )
        .select_from(
            li.join(
                o,
                and_(o.c.order_id == li.c.order_id, o.c.restaurant_unit_id == li.c.restaurant_unit_id),
            ).outerjoin(
                c,
                and_(c.c.category_id == li.c.category_id, c.c.restaurant_unit_id == li.c.restaurant_unit_id),
            )
        )
        .where(
            and_(
                li.c.restaurant_unit_id == unit_id,
                o.c.invoice_date == invoice_date,
                o.c.status == FINALIZED_STATUS,
            )
        )
        .order_by(li.c.id)
    )
    rows = [dict(r) for r in conn.execute(stmt).mappings()]
    return pd.DataFrame(rows, columns=list(stmt.selected_columns.keys()))


def compute_daily_cost(
    orders: pd.DataFrame, lines: pd.DataFrame, unit_id: str, invoice_date: str
) -> dict | None:
    """Build the me_daily_costs row for one date, or None when there are no orders.

    Args:
        orders: Finalized orders for the date (order columns plus ``ref_vendor_name``).
        lines: Their line items (``order_id``, ``line_price``, ``category_id``, ``category_name``).
        unit_id: Restaurant unit.
        invoice_date: ISO invoice date.

    """
    if orders.empty:
        return None

    orders = orders.copy()
    credit = orders["is_credit"].fillna(False).astype(bool)
    total_c = orders["order_total"].map(to_cents).astype("int64")
    orders["signed_c"] = total_c.where(~credit, -total_c.abs())
    orders["vendor_key"] = [
        _first_text(ref, name, vid) or UNKNOWN_VENDOR
        for ref, name, vid in zip(orders["ref_vendor_name"], orders["vendor_name"], orders["vendor_id"])
    ]
    credit_c = orders["credit_amount"].map(to_cents).astype("int64").abs()
    orders["credits_c"] = credit_c.where((credit_c != 0) | ~credit, total_c.abs())

    order_credit = dict(zip(orders["order_id"], credit))
    lines = lines[lines["order_id"].isin(orders["order_id"])].copy()
    line_c = lines["line_price"].map(to_cents).astype("int64")
    is_memo = lines["order_id"].map(order_credit).fillna(False).astype(bool)
    lines["signed_c"] = line_c.where(~is_memo, -line_c.abs())
    lines["category_key"] = [
        _first_text(name, cid) or UNCATEGORIZED
        for name, cid in zip(lines["category_name"], lines["category_id"])
    ]

    line_sum = lines.groupby("order_id")["signed_c"].sum()
    residual = orders["signed_c"] - orders["order_id"].map(line_sum).fillna(0).astype(int)

    by_category = lines.groupby("category_key")["signed_c"].sum()
    unallocated = int(residual.sum())
    if unallocated:
        by_category = pd.concat([by_category, pd.Series({UNALLOCATED: unallocated})])
        by_category = by_category.groupby(level=0).sum()
    by_vendor = orders.groupby("vendor_key")["signed_c"].sum()

    return {
        "restaurant_unit_id": unit_id,
        "invoice_date": invoice_date,
        "total_cost": int(orders["signed_c"].sum()) / 100,
        "total_tax": int(orders["tax"].map(to_cents).sum()) / 100,
        "total_delivery": int(orders["delivery_charges"].map(to_cents).sum()) / 100,
        "total_other_charges": int(orders["other_charges"].map(to_cents).sum()) / 100,
        "total_credits": int(orders["credits_c"].sum()) / 100,
        "invoice_count": len(orders),
        "vendor_count": int(orders["vendor_key"].nunique()),
        "cost_by_category": _cents_map(by_category.sort_index()),
        "cost_by_vendor": _cents_map(by_vendor.sort_index()),
    }


def recompute_daily_costs(conn: Connection, unit_id: str, invoice_dates: Iterable[str]) -> list[dict]:
    """Rebuild me_daily_costs for each given invoice date.

    Each date's row is deleted and, when finalized orders remain for it,
    re-derived from me_orders and me_order_line_items. Dates not listed are
    never touched.

    Args:
        conn: Connection inside the caller's transaction.
        unit_id: Restaurant unit.
        invoice_dates: Affected dates (duplicates and blanks ignored).

    Returns:
        The rows written.

    """
    written = []
    for invoice_date in sorted(unique(invoice_dates)):
        conn.execute(
            delete(me_daily_costs).where(
                and_(
                    me_daily_costs.c.restaurant_unit_id == unit_id,
                    me_daily_costs.c.invoice_date == invoice_date,
                )
            )
        )
        row = compute_daily_cost(
            _closed_orders(conn, unit_id, invoice_date),
            _closed_line_items(conn, unit_id, invoice_date),
            unit_id,
            invoice_date,
        )
        if row is None:
            logger.debug("No finalized invoices for %s %s", unit_id, invoice_date)
            continue
        insert_rows(conn, me_daily_costs, [row])
        written.append(row)
        logger.info(
            "Recomputed costs %s %s: %d invoices, total %.2f",
            unit_id,
            invoice_date,
            row["invoice_count"],
            row["total_cost"],
        )
    return written
