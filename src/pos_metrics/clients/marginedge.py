"""Invoicing source client (MarginEdge public API).

Authenticates with a static API key; list endpoints page through a
``nextPage`` continuation token in the response body. The public API allows
roughly one request per second, which the request queue enforces.
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import requests

from pos_metrics.clients.http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, BaseClient, RequestQueue
from pos_metrics.config import DEFAULT_MARGINEDGE_BASE, Settings
from pos_metrics.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Invoice lifecycle; CLOSED is the finalized state.
ORDER_STATUSES = (
    "PREPROCESSING",
    "EDI_PENDING",
    "IMAGE_PENDING",
    "INITIAL_REVIEW",
    "RECONCILIATION",
    "FINAL_REVIEW",
    "AM_REVIEW",
    "PENDING_APPROVAL",
    "CLOSED",
)
FINALIZED_STATUS = "CLOSED"


class MarginEdgeClient(BaseClient):
    """Rate-limited client for the invoicing API.

    Args:
        api_key: API key sent as ``X-Api-Key``.
        unit_id: Default restaurant unit id for unit-scoped endpoints.
        base_url: API base URL.
        min_interval: Minimum seconds between request starts.
        session: Optional pre-built requests session (tests pass a fake).
    """

    def __init__(
        self,
        api_key: str,
        unit_id: str = "",
        base_url: str = DEFAULT_MARGINEDGE_BASE,
        min_interval: float = 1.0,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        queue: RequestQueue | None = None,
    ) -> None:
        if not api_key:
            raise ConfigError("MARGINEDGE_API_KEY is not set")
        super().__init__(base_url, min_interval, session, timeout, retries, queue)
        self.api_key = api_key
        self.unit_id = unit_id

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> MarginEdgeClient:
        return cls(
            settings.marginedge_api_key,
            settings.marginedge_unit_id,
            base_url=settings.marginedge_base_url,
            min_interval=settings.marginedge_min_interval,
            timeout=settings.http_timeout,
            retries=settings.http_retries,
            **kwargs,
        )

    def _auth_headers(self, **context: Any) -> dict[str, str]:
        return {"X-Api-Key": self.api_key}

    def resolve_unit(self, unit_id: str | None = None) -> str:
        """Return ``unit_id`` or the default unit, raising ConfigError if neither is set."""
        resolved = unit_id or self.unit_id
        if not resolved:
            raise ConfigError("MARGINEDGE_RESTAURANT_UNIT_ID is not set")
        return resolved

    def get_restaurant_units(self) -> list[dict]:
        data = self.get("/restaurantUnits")
        return list(data.get("restaurants") or [])

    def get_categories(self, unit_id: str | None = None) -> list[dict]:
        return self.fetch_all(
            "/categories", "categories", {"restaurantUnitId": self.resolve_unit(unit_id)}
        )

    def get_vendors(self, unit_id: str | None = None) -> list[dict]:
        return self.fetch_all("/vendors", "vendors", {"restaurantUnitId": self.resolve_unit(unit_id)})

    def get_orders_by_created_date(
        self,
        start_date: str,
        end_date: str,
        status: str | None = FINALIZED_STATUS,
        unit_id: str | None = None,
    ) -> list[dict]:
        """Order summaries created within [start_date, end_date], optionally filtered by status."""
        params = {
            "restaurantUnitId": self.resolve_unit(unit_id),
            "startDate": start_date,
            "endDate": end_date,
        }
        if status:
            params["orderStatus"] = status
        return self.fetch_all("/orders", "orders", params)

    def get_order_detail(self, order_id: str, unit_id: str | None = None) -> dict:
        return self.get(
            f"/orders/{quote(str(order_id), safe='')}",
            {"restaurantUnitId": self.resolve_unit(unit_id)},
        )
