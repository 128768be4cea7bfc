"""Flatten nested POS records into relational rows.

Orders carry checks; checks carry selections, payments and applied
discounts; selections carry nested modifier selections. Everything here is
pure: records in, lists of row dicts out, with foreign names resolved from
lookup maps passed in by the caller.

Row grains:
    orders        - one row per non-void, non-deleted order
    checks        - one row per non-void, non-deleted check of those orders
    order_items   - one row per non-void selection or modifier (is_modifier marks modifiers)
    payments      - one row per payment on a kept check
    discounts     - one row per discount applied to a kept check
    time_entries  - one row per labor time entry
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

CASH = "cash"
CREDIT = "credit"
OTHER = "other"

CREDIT_PATTERNS = ("CREDIT", "VISA", "MASTERCARD", "AMEX")

UNKNOWN_ITEM = "Unknown Item"

logger = logging.getLogger(__name__)


@dataclass
class NormalizedDay:
    """Flat rows for one (location, business date) sync key."""

    orders: list[dict] = field(default_factory=list)
    checks: list[dict] = field(default_factory=list)
    order_items: list[dict] = field(default_factory=list)
    payments: list[dict] = field(default_factory=list)
    discounts: list[dict] = field(default_factory=list)
    time_entries: list[dict] = field(default_factory=list)


def _ref(record: Mapping[str, Any], key: str) -> str | None:
    ref = record.get(key)
    if isinstance(ref, Mapping):
        return ref.get("guid") or None
    return None


def _money(value: Any) -> float:
    return float(value or 0)


def classify_payment_type(payment_type: str | None) -> str:
    """Classify a POS payment type string as cash, credit or other.

    Examples:
        >>> classify_payment_type("CASH")
        'cash'
        >>> classify_payment_type("visa")
        'credit'
        >>> classify_payment_type("GIFTCARD")
        'other'

    """
    typ = (payment_type or "").upper()
    if typ == "CASH":
        return CASH
    if any(p in typ for p in CREDIT_PATTERNS):
        return CREDIT
    return OTHER


def flatten_selections(
    selections: Iterable[Mapping[str, Any]],
    base: Mapping[str, Any],
    category_names: Mapping[str, str],
    is_modifier: bool = False,
) -> list[dict]:
    """Flatten selections and their nested modifiers into item rows.

    Each selection is followed by its modifiers (depth first). Voided
    selections are dropped; modifiers of a voided selection are still
    visited, since a modifier carries its own void flag.

    Args:
        selections: Selection records from a check.
        base: Columns copied onto every row (location, date, order and check ids).
        category_names: Sales category guid -> name.
        is_modifier: True when flattening a modifier list.

    Returns:
        Item rows in selection order.

    """
    rows: list[dict] = []
    for sel in selections:
        category_guid = _ref(sel, "salesCategory") or ""
        if not sel.get("voided"):
            quantity = sel.get("quantity")
            price = sel.get("price")
            rows.append(
                {
                    **base,
                    "selection_guid": sel.get("guid"),
                    "display_name": sel.get("displayName") or UNKNOWN_ITEM,
                    "item_guid": _ref(sel, "item") or "",
                    "sales_category_guid": category_guid,
                    "sales_category_name": category_names.get(category_guid, ""),
                    "quantity": float(1 if quantity is None else quantity),
                    "price": float(0 if price is None else price),
                    "pre_discount_price": _money(sel.get("preDiscountPrice")),
                    "tax": _money(sel.get("tax")),
                    "voided": False,
                    "is_modifier": is_modifier,
                }
            )
        modifiers = sel.get("modifiers") or []
        if modifiers:
            rows.extend(flatten_selections(modifiers, base, category_names, is_modifier=True))
    return rows


def normalize_orders(
    orders: Iterable[Mapping[str, Any]],
    location_guid: str,
    business_date: str,
    category_names: Mapping[str, str],
) -> NormalizedDay:
    """Flatten bulk-order records for one business date.

    Voided or deleted orders and checks are skipped entirely, together with
    everything they own. An order guid seen more than once (overlapping
    pages) keeps its last occurrence.

    Args:
        orders: Order records as returned by the POS orders endpoint.
        location_guid: Location the orders belong to.
        business_date: ISO date (yyyy-MM-dd) used as the storage key.
        category_names: Sales category guid -> name.

    Returns:
        NormalizedDay with orders, checks, items, payments and discounts filled.

    """
    day = NormalizedDay()
    key = {"location_guid": location_guid, "business_date": business_date}

    orders = list(orders)
    latest = {order.get("guid"): order for order in orders}
    if len(latest) < len(orders):
        logger.debug("Dropped %d duplicate order record(s)", len(orders) - len(latest))

    for order in latest.values():
        if order.get("voided") or order.get("deleted"):
            continue
        order_guid = order.get("guid")
        day.orders.append(
            {
                **key,
                "guid": order_guid,
                "server_guid": _ref(order, "server"),
                "dining_option_guid": _ref(order, "diningOption"),
                "revenue_center_guid": _ref(order, "revenueCenter"),
                "opened_at": order.get("openedDate") or None,
                "closed_at": order.get("closedDate") or None,
                "paid_at": order.get("paidDate") or None,
                "voided": False,
                "deleted": False,
                "guest_count": int(order.get("numberOfGuests") or 0),
                "approval_status": order.get("approvalStatus") or None,
            }
        )

        for check in order.get("checks") or []:
            if check.get("voided") or check.get("deleted"):
                continue
            check_guid = check.get("guid")
            day.checks.append(
                {
                    **key,
                    "guid": check_guid,
                    "order_guid": order_guid,
                    "payment_status": check.get("paymentStatus") or "",
                    "amount": _money(check.get("amount")),
                    "tax_amount": _money(check.get("taxAmount")),
                    "total_amount": _money(check.get("totalAmount")),
                    "tip_amount": _money(check.get("tipAmount")),
                    "voided": False,
                    "deleted": False,
                }
            )

            owner = {**key, "order_guid": order_guid, "check_guid": check_guid}
            day.order_items.extend(
                flatten_selections(check.get("selections") or [], owner, category_names)
            )

            for pmt in check.get("payments") or []:
                day.payments.append(
                    {
                        **key,
                        "guid": pmt.get("guid"),
                        "check_guid": check_guid,
                        "order_guid": order_guid,
                        "type": pmt.get("type") or "",
                        "amount": _money(pmt.get("amount")),
                        "tip_amount": _money(pmt.get("tipAmount")),
                        "payment_status": pmt.get("paymentStatus") or "",
                        "refund_status": pmt.get("refundStatus") or "",
                    }
                )

            for disc in check.get("appliedDiscounts") or []:
                day.discounts.append(
                    {
                        **owner,
                        "name": disc.get("name") or "",
                        "discount_amount": _money(disc.get("discountAmount")),
                        "discount_percent": _money(disc.get("discountPercent")),
                    }
                )

    return day


def normalize_time_entries(
    entries: Iterable[Mapping[str, Any]], location_guid: str, business_date: str
) -> list[dict]:
    """Flatten labor time entries for one business date."""
    rows = []
    for te in entries:
        rows.append(
            {
                "location_guid": location_guid,
                "business_date": business_date,
                "guid": te.get("guid"),
                "employee_guid": _ref(te, "employeeReference"),
                "job_guid": _ref(te, "jobReference"),
                "in_date": te.get("inDate") or None,
                "out_date": te.get("outDate") or None,
                "regular_hours": _money(te.get("regularHours")),
                "overtime_hours": _money(te.get("overtimeHours")),
                "cash_sales": _money(te.get("cashSales")),
                "non_cash_sales": _money(te.get("nonCashSales")),
                "cash_tips": _money(te.get("cashGratuityServiceCharges")),
                "non_cash_tips": _money(te.get("nonCashGratuityServiceCharges")),
                "declared_cash_tips": _money(te.get("declaredCashTips")),
            }
        )
    return rows


def employee_name(employee: Mapping[str, Any]) -> str:
    """Full display name of an employee record, or "Unknown"."""
    parts = [employee.get("firstName"), employee.get("lastName")]
    return " ".join(p for p in parts if p) or "Unknown"


def normalize_employees(
    employees: Iterable[Mapping[str, Any]], location_guid: str
) -> tuple[list[dict], list[dict]]:
    """Split employee records into employee rows and employee-job rows."""
    employee_rows: list[dict] = []
    job_rows: list[dict] = []
    for emp in employees:
        employee_rows.append(
            {
                "guid": emp.get("guid"),
                "location_guid": location_guid,
                "external_id": emp.get("externalEmployeeId") or "",
                "first_name": emp.get("firstName") or "",
                "last_name": emp.get("lastName") or "",
                "email": emp.get("email") or "",
                "deleted": bool(emp.get("deleted")),
            }
        )
        for job in emp.get("jobs") or []:
            job_rows.append(
                {
                    "guid": job.get("guid"),
                    "employee_guid": emp.get("guid"),
                    "title": job.get("title") or "",
                    "wage_type": job.get("wageType") or "",
                    "wage_amount": _money(job.get("wageAmount")),
                }
            )
    return employee_rows, job_rows


def normalize_location(info: Mapping[str, Any], location_guid: str) -> dict:
    """Location row from a restaurant-info record."""
    general = info.get("general") or {}
    address = info.get("location") or {}
    return {
        "guid": location_guid,
        "name": general.get("name") or "",
        "location_name": general.get("locationName") or "",
        "timezone": general.get("timeZone") or "",
        "address": address.get("address1") or "",
        "city": address.get("city") or "",
        "state": address.get("stateCode") or "",
        "zip": address.get("zipCode") or "",
    }


def normalize_reference(
    records: Iterable[Mapping[str, Any]], location_guid: str, *extra: str
) -> list[dict]:
    """Rows for simple reference lists (sales categories, revenue centers, dining options).

    Args:
        records: Records with ``guid`` and ``name``.
        location_guid: Owning location.
        *extra: Additional string attributes to copy (e.g. ``"behavior"``).

    """
    rows = []
    for rec in records:
        if not rec.get("guid"):
            continue
        row = {"guid": rec["guid"], "location_guid": location_guid, "name": rec.get("name") or ""}
        for attr in extra:
            row[attr] = rec.get(attr) or ""
        rows.append(row)
    return rows
