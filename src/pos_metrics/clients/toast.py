"""POS source client (Toast REST API).

One ``ToastClient`` is created per sync run and discarded afterwards: it owns
its bearer token cache and its request queue, so no credential outlives the
run that obtained it.

Environment (read by ``pos_metrics.config.Settings``):
  TOAST_API_HOSTNAME, TOAST_CLIENT_ID, TOAST_CLIENT_SECRET
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import requests

from pos_metrics.clients.http import DEFAULT_RETRIES, DEFAULT_TIMEOUT, BaseClient, RequestQueue
from pos_metrics.config import Settings
from pos_metrics.exceptions import APIError, AuthenticationError, ExtractionError

logger = logging.getLogger(__name__)

AUTH_PATH = "/authentication/v1/authentication/login"
ORDERS_BULK_PATH = "/orders/v2/ordersBulk"
TIME_ENTRIES_PATH = "/labor/v1/timeEntries"
EMPLOYEES_PATH = "/labor/v1/employees"
SALES_CATEGORIES_PATH = "/config/v2/salesCategories"
REVENUE_CENTERS_PATH = "/config/v2/revenueCenters"
DINING_OPTIONS_PATH = "/config/v2/diningOptions"
RESTAURANT_PATH = "/restaurants/v1/restaurants/{guid}"

LOCATION_HEADER = "Toast-Restaurant-External-ID"

# Refresh the token this many seconds before it expires (tokens last 24h).
TOKEN_REFRESH_MARGIN = 3600


class ToastClient(BaseClient):
    """Rate-limited, token-caching client for the POS API.

    Args:
        hostname: API base URL.
        client_id: Machine-client id.
        client_secret: Machine-client secret.
        min_interval: Minimum seconds between request starts (5 req/s limit -> 0.2).
        page_size: Page size for the bulk orders endpoint.
        session: Optional pre-built requests session (tests pass a fake).
        clock: Monotonic clock used for token expiry.

    Example:
        >>> client = ToastClient.from_settings(Settings.from_env())  # doctest: +SKIP
        >>> orders = client.get_orders("restaurant-guid", "20240301")  # doctest: +SKIP

    """

    def __init__(
        self,
        hostname: str,
        client_id: str,
        client_secret: str,
        min_interval: float = 0.2,
        page_size: int = 100,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        queue: RequestQueue | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        super().__init__(hostname, min_interval, session, timeout, retries, queue)
        self.client_id = client_id
        self.client_secret = client_secret
        self.page_size = page_size
        self._clock = clock
        self._token: str | None = None
        self._token_expiry = 0.0

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> ToastClient:
        """Build a client from settings, validating credentials first."""
        settings.require_toast()
        return cls(
            settings.toast_hostname,
            settings.toast_client_id,
            settings.toast_client_secret,
            min_interval=settings.toast_min_interval,
            page_size=settings.toast_page_size,
            timeout=settings.http_timeout,
            retries=settings.http_retries,
            **kwargs,
        )

    def authenticate(self) -> str:
        """Return a bearer token, exchanging client credentials when the cache is stale.

        Raises:
            AuthenticationError: If the credential exchange fails.

        """
        now = self._clock()
        if self._token and now < self._token_expiry:
            return self._token

        logger.debug("Requesting POS access token")
        try:
            resp = self._send(
                "POST",
                AUTH_PATH,
                json={
                    "clientId": self.client_id,
                    "clientSecret": self.client_secret,
                    "userAccessType": "TOAST_MACHINE_CLIENT",
                },
                headers={"Content-Type": "application/json"},
            )
            data = resp.json()
            token = data["token"]["accessToken"]
            expires_in = float(data["token"].get("expiresIn", 86400))
        except APIError as e:
            raise AuthenticationError(e.path, e.status_code, e.body) from e
        except (KeyError, TypeError, ValueError) as e:
            raise ExtractionError(f"POS auth returned an unexpected body: {e}") from e

        if expires_in > TOKEN_REFRESH_MARGIN:
            ttl = expires_in - TOKEN_REFRESH_MARGIN
        else:
            ttl = expires_in / 2
        self._token = token
        self._token_expiry = now + ttl
        return token

    def _auth_headers(self, **context: Any) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.authenticate()}"}
        location = context.get("location_guid")
        if location:
            headers[LOCATION_HEADER] = location
        return headers

    # ------------------------- Endpoints -------------------------

    def get_orders(self, location_guid: str, business_date: str) -> list[dict]:
        """All orders for a business date (yyyyMMdd), drained across pages."""
        return self.fetch_all(
            ORDERS_BULK_PATH,
            params={"businessDate": business_date},
            page_size=self.page_size,
            location_guid=location_guid,
        )

    def get_time_entries(self, location_guid: str, start: str, end: str) -> list[dict]:
        """Time entries between two ISO-8601 instants (with UTC offset)."""
        return self.get(
            TIME_ENTRIES_PATH,
            {"startDate": start, "endDate": end},
            location_guid=location_guid,
        )

    def get_employees(self, location_guid: str) -> list[dict]:
        return self.get(EMPLOYEES_PATH, location_guid=location_guid)

    def get_sales_categories(self, location_guid: str) -> list[dict]:
        return self.get(SALES_CATEGORIES_PATH, location_guid=location_guid)

    def get_revenue_centers(self, location_guid: str) -> list[dict]:
        return self.get(REVENUE_CENTERS_PATH, location_guid=location_guid)

    def get_dining_options(self, location_guid: str) -> list[dict]:
        return self.get(DINING_OPTIONS_PATH, location_guid=location_guid)

    def get_restaurant_info(self, location_guid: str) -> dict:
        return self.get(RESTAURANT_PATH.format(guid=location_guid), location_guid=location_guid)
