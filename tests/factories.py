"""Fake HTTP sessions, fake source clients and record builders for tests.

Nothing here touches the network: sessions answer from a handler function,
and the fake clients return canned records or raise configured errors.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pos_metrics.exceptions import APIError

LOCATION = "loc-1"
UNIT = "unit-1"


class FakeResponse:
    def __init__(
        self,
        body: Any = None,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> None:
        self._body = body
        self.status_code = status_code
        self.headers = headers or {}
        self.text = text if text is not None else ("" if body is None else str(body))

    def json(self) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    """Records every request and answers with ``handler(method, url, params, json)``."""

    def __init__(self, handler: Callable[..., FakeResponse]) -> None:
        self.handler = handler
        self.calls: list[dict[str, Any]] = []

    def request(self, method, url, params=None, json=None, headers=None, **kwargs):
        self.calls.append(
            {"method": method, "url": url, "params": dict(params or {}), "json": json, "headers": dict(headers or {})}
        )
        return self.handler(method, url, params or {}, json)

    def paths(self, suffix: str = "") -> list[dict[str, Any]]:
        return [c for c in self.calls if c["url"].endswith(suffix)]


class FakeClock:
    """Monotonic clock advanced only by ``sleep`` and ``tick``."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def tick(self, seconds: float) -> None:
        self.now += seconds


def api_error(path: str = "/x", status: int = 500) -> APIError:
    return APIError(path, status, "boom")


class FakeToast:
    """Stand-in for ToastClient returning canned records per endpoint.

    ``fail`` maps a method name to an exception raised instead of returning.
    """

    def __init__(
        self,
        orders: list[dict] | None = None,
        time_entries: list[dict] | None = None,
        employees: list[dict] | None = None,
        categories: list[dict] | None = None,
        dining_options: list[dict] | None = None,
        info: dict | None = None,
        fail: dict[str, Exception] | None = None,
    ) -> None:
        self.orders = orders or []
        self.time_entries = time_entries or []
        self.employees = employees or []
        self.categories = categories or []
        self.dining_options = dining_options or []
        self.info = info or {"general": {"name": "Bistro", "locationName": "Downtown", "timeZone": "America/New_York"}}
        self.fail = fail or {}
        self.calls: list[tuple] = []

    def _answer(self, name: str, value: Any, *args: Any) -> Any:
        self.calls.append((name, *args))
        if name in self.fail:
            raise self.fail[name]
        return value

    def get_restaurant_info(self, location_guid):
        return self._answer("get_restaurant_info", self.info, location_guid)

    def get_sales_categories(self, location_guid):
        return self._answer("get_sales_categories", self.categories, location_guid)

    def get_revenue_centers(self, location_guid):
        return self._answer("get_revenue_centers", [], location_guid)

    def get_dining_options(self, location_guid):
        return self._answer("get_dining_options", self.dining_options, location_guid)

    def get_employees(self, location_guid):
        return self._answer("get_employees", self.employees, location_guid)

    def get_orders(self, location_guid, business_date):
        return self._answer("get_orders", self.orders, location_guid, business_date)

    def get_time_entries(self, location_guid, start, end):
        return self._answer("get_time_entries", self.time_entries, location_guid, start, end)


class FakeMarginEdge:
    """Stand-in for MarginEdgeClient backed by order-detail records."""

    def __init__(
        self,
        details: list[dict] | None = None,
        categories: list[dict] | None = None,
        vendors: list[dict] | None = None,
        unit_id: str = "unit-1",
        fail: dict[str, Exception] | None = None,
        fail_details: set[str] | None = None,
    ) -> None:
        self.details = {str(d["orderId"]): d for d in details or []}
        self.categories = categories or []
        self.vendors = vendors or []
        self.unit_id = unit_id
        self.fail = fail or {}
        self.fail_details = fail_details or set()

    def resolve_unit(self, unit_id=None):
        return unit_id or self.unit_id

    def get_categories(self, unit_id=None):
        if "get_categories" in self.fail:
            raise self.fail["get_categories"]
        return self.categories

    def get_vendors(self, unit_id=None):
        return self.vendors

    def get_orders_by_created_date(self, start_date, end_date, status=None, unit_id=None):
        if "get_orders_by_created_date" in self.fail:
            raise self.fail["get_orders_by_created_date"]
        return [{"orderId": oid} for oid in self.details]

    def get_order_detail(self, order_id, unit_id=None):
        if order_id in self.fail_details:
            raise api_error(f"/orders/{order_id}", 503)
        return self.details[order_id]


def selection(
    name: str,
    price: float,
    category: str | None = None,
    quantity: float | None = 1,
    voided: bool = False,
    modifiers: list[dict] | None = None,
) -> dict:
    sel: dict[str, Any] = {
        "guid": f"sel-{name}-{price}",
        "displayName": name,
        "price": price,
        "quantity": quantity,
        "voided": voided,
        "modifiers": modifiers or [],
    }
    if category:
        sel["salesCategory"] = {"guid": category}
    return sel


def check(
    guid: str,
    amount: float,
    selections: list[dict] | None = None,
    payments: list[dict] | None = None,
    tax: float = 0.0,
    tip: float = 0.0,
    discounts: list[dict] | None = None,
    voided: bool = False,
) -> dict:
    return {
        "guid": guid,
        "amount": amount,
        "taxAmount": tax,
        "totalAmount": amount + tax,
        "tipAmount": tip,
        "voided": voided,
        "selections": selections or [],
        "payments": payments or [],
        "appliedDiscounts": discounts or [],
    }


def order(
    guid: str,
    checks: list[dict],
    opened: str | None = "2024-03-01T17:30:00.000+0000",
    server: str | None = None,
    dining_option: str | None = None,
    guests: int = 2,
    voided: bool = False,
) -> dict:
    rec: dict[str, Any] = {
        "guid": guid,
        "openedDate": opened,
        "closedDate": None,
        "paidDate": None,
        "numberOfGuests": guests,
        "voided": voided,
        "deleted": False,
        "checks": checks,
    }
    if server:
        rec["server"] = {"guid": server}
    if dining_option:
        rec["diningOption"] = {"guid": dining_option}
    return rec


def time_entry(guid: str, employee: str, regular: float, overtime: float = 0.0) -> dict:
    return {
        "guid": guid,
        "employeeReference": {"guid": employee},
        "jobReference": {"guid": f"job-{employee}"},
        "inDate": "2024-03-01T14:00:00.000+0000",
        "outDate": "2024-03-01T23:00:00.000+0000",
        "regularHours": regular,
        "overtimeHours": overtime,
    }


def employee(guid: str, first: str, last: str, wages: list[float] | None = None) -> dict:
    return {
        "guid": guid,
        "firstName": first,
        "lastName": last,
        "jobs": [
            {"guid": f"job-{guid}-{i}", "title": "Server", "wageType": "HOURLY", "wageAmount": w}
            for i, w in enumerate(wages or [])
        ],
    }


def invoice(
    order_id: str,
    invoice_date: str,
    total: float,
    lines: list[tuple[float, str | None]] = (),
    vendor_id: str = "v1",
    vendor_name: str = "Sysco",
    is_credit: bool = False,
    credit_amount: float = 0.0,
    tax: float = 0.0,
    status: str = "CLOSED",
) -> dict:
    return {
        "orderId": order_id,
        "invoiceNumber": f"INV-{order_id}",
        "invoiceDate": invoice_date,
        "createdDate": invoice_date,
        "vendorId": vendor_id,
        "vendorName": vendor_name,
        "orderTotal": total,
        "tax": tax,
        "deliveryCharges": 0,
        "otherCharges": 0,
        "creditAmount": credit_amount,
        "isCredit": is_credit,
        "status": status,
        "lineItems": [{"linePrice": price, "categoryId": cat} for price, cat in lines],
    }
