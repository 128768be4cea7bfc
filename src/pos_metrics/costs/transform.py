"""Flatten invoicing records (orders with line items, categories, vendors) into rows."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pos_metrics.utils import normalize_date


def _money(value: Any) -> float:
    return float(value or 0)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def normalize_invoice(
    detail: Mapping[str, Any], unit_id: str, window_end: str
) -> tuple[dict, list[dict]]:
    """Split an order-detail record into an order row and its line-item rows.

    The invoice date is normalized to yyyy-MM-dd, falling back to the created
    date and then to ``window_end`` (the end of the created-date window being
    synced).

    Args:
        detail: Order detail as returned by the invoicing API.
        unit_id: Restaurant unit the order belongs to.
        window_end: Fallback date.

    Returns:
        (order row, line item rows)

    Examples:
        >>> order, lines = normalize_invoice(
        ...     {"orderId": "o1", "invoiceDate": "2024-01-05T00:00:00", "lineItems": [{"linePrice": 9.5}]},
        ...     "u1", "2024-01-31")
        >>> order["invoice_date"], lines[0]["line_price"]
        ('2024-01-05', 9.5)

    """
    order_id = str(detail.get("orderId"))
    created = normalize_date(detail.get("createdDate"), window_end)
    order = {
        "order_id": order_id,
        "restaurant_unit_id": unit_id,
        "invoice_number": detail.get("invoiceNumber") or "",
        "invoice_date": normalize_date(detail.get("invoiceDate"), created),
        "created_date": created,
        "vendor_id": str(detail.get("vendorId") or ""),
        "vendor_name": detail.get("vendorName") or "",
        "order_total": _money(detail.get("orderTotal")),
        "tax": _money(detail.get("tax")),
        "delivery_charges": _money(detail.get("deliveryCharges")),
        "other_charges": _money(detail.get("otherCharges")),
        "credit_amount": _money(detail.get("creditAmount")),
        "is_credit": bool(detail.get("isCredit")),
        "status": detail.get("status") or "",
    }

    lines = []
    for item in detail.get("lineItems") or []:
        lines.append(
            {
                "order_id": order_id,
                "restaurant_unit_id": unit_id,
                "vendor_item_code": item.get("vendorItemCode") or None,
                "vendor_item_name": item.get("vendorItemName") or None,
                "quantity": _optional_float(item.get("quantity")),
                "unit_price": _optional_float(item.get("unitPrice")),
                "line_price": _money(item.get("linePrice")),
                "category_id": item.get("categoryId") or None,
                "packaging_id": item.get("packagingId") or None,
                "company_concept_product_id": item.get("companyConceptProductId") or None,
            }
        )
    return order, lines


def normalize_category(record: Mapping[str, Any], unit_id: str) -> dict:
    code = record.get("accountingCode")
    return {
        "category_id": str(record.get("categoryId")),
        "restaurant_unit_id": unit_id,
        "category_name": record.get("categoryName") or "",
        "category_type": record.get("categoryType") or "",
        "accounting_code": None if code is None else str(code),
    }


def normalize_vendor(record: Mapping[str, Any], unit_id: str) -> dict:
    return {
        "vendor_id": str(record.get("vendorId")),
        "restaurant_unit_id": unit_id,
        "vendor_name": record.get("vendorName") or "",
        "central_vendor_id": record.get("centralVendorId") or "",
    }
