"""Shared HTTP plumbing for the source API clients.

Provides:
- ``make_session``: a requests Session with retry logic and a default timeout
- ``RequestQueue``: a FIFO gate enforcing a minimum interval between request starts
- ``BaseClient``: request/response handling and pagination shared by both sources

Every outbound call of a client goes through its own ``RequestQueue``, so a
client never exceeds the source's rate limit no matter how many threads
share it.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from pos_metrics.exceptions import APIError, ExtractionError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 60.0
DEFAULT_RETRIES = 3


def make_session(
    timeout: float = DEFAULT_TIMEOUT, retries: int = DEFAULT_RETRIES
) -> requests.Session:
    """Create a requests Session with retry logic and default timeout.

    Configures the session with:
    - JSON Accept header
    - Retry adapter for HTTP/HTTPS with exponential backoff
    - Default timeout for all requests
    - Retries on 429, 500, 502, 503, 504 status codes

    Args:
        timeout: Default timeout in seconds for all requests.
        retries: Number of retry attempts.

    Returns:
        Configured requests.Session object.

    """
    s = requests.Session()
    s.headers.update({"Accept": "application/json"})
    retry = Retry(
        total=retries,
        connect=retries,
        read=retries,
        status=retries,
        backoff_factor=0.8,  # 0.8, 1.6, 3.2, ...
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    s.mount("http://", adapter)
    s.mount("https://", adapter)
    orig_request = s.request

    def timed_request(method: str, url: str, **kwargs: Any) -> requests.Response:
        kwargs.setdefault("timeout", timeout)
        return orig_request(method, url, **kwargs)

    s.request = timed_request  # type: ignore[method-assign,assignment]
    return s


class RequestQueue:
    """Serialize calls in arrival order with a minimum interval between starts.

    Each caller draws a ticket; tickets are served strictly in order. The
    served caller waits until ``min_interval`` seconds have passed since the
    previous call started, records its own start time as the new watermark,
    runs its call, and then hands over to the next ticket.

    Args:
        min_interval: Minimum seconds between the start of consecutive calls.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.

    Example:
        >>> q = RequestQueue(0.2)
        >>> q.run(lambda: "ok")
        'ok'

    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._serving = 0
        self._last_start: float | None = None

    def run(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` once every earlier caller has finished and the interval has elapsed."""
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while self._serving != ticket:
                self._cond.wait()

        try:
            if self._last_start is not None:
                wait = self.min_interval - (self._clock() - self._last_start)
                if wait > 0:
                    self._sleep(wait)
            self._last_start = self._clock()
            return fn()
        finally:
            with self._cond:
                self._serving += 1
                self._cond.notify_all()


@dataclass
class Page:
    """One page of a list endpoint.

    Attributes:
        rows: Records on this page.
        has_more: True when the response signals a further page.
        next_token: Continuation token from the body, if the API uses one.
    """

    rows: list[dict]
    has_more: bool
    next_token: str | None = None


class BaseClient:
    """Common request handling for a rate-limited JSON API.

    Subclasses supply ``_auth_headers`` and, where the API needs it, an
    ``authenticate`` step. Non-success statuses raise ``APIError`` carrying the
    path and status code; transport failures raise ``ExtractionError``.
    """

    #: Query parameter carrying the page number for link-paginated endpoints.
    page_param = "page"
    #: Query parameter carrying the page size for link-paginated endpoints.
    page_size_param = "pageSize"
    #: Query parameter carrying the continuation token.
    token_param = "nextPage"

    def __init__(
        self,
        base_url: str,
        min_interval: float,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        queue: RequestQueue | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else make_session(timeout, retries)
        self.queue = queue if queue is not None else RequestQueue(min_interval)

    def _auth_headers(self, **context: Any) -> dict[str, str]:
        return {}

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"

        def call() -> requests.Response:
            logger.debug("%s %s params=%s", method, path, params)
            return self.session.request(method, url, params=params, json=json, headers=headers)

        try:
            resp = self.queue.run(call)
        except requests.RequestException as e:
            raise ExtractionError(f"Request to {path} failed: {e}") from e

        if not (200 <= resp.status_code < 300):
            raise APIError(path, resp.status_code, (resp.text or "")[:400])
        return resp

    def get(self, path: str, params: dict[str, Any] | None = None, **context: Any) -> Any:
        """GET ``path`` and return the decoded JSON body."""
        headers = {"Content-Type": "application/json", **self._auth_headers(**context)}
        resp = self._send("GET", path, params=params, headers=headers)
        try:
            return resp.json()
        except ValueError as e:
            raise ExtractionError(f"API {path} returned a non-JSON body") from e

    def fetch_page(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        list_key: str | None = None,
        **context: Any,
    ) -> Page:
        """Fetch one page of a list endpoint.

        The page is a bare JSON array or, when ``list_key`` is given, the list
        stored under that key. A further page is signalled either by a
        continuation token in the body or by a ``rel="next"`` Link header.
        """
        headers = {"Content-Type": "application/json", **self._auth_headers(**context)}
        resp = self._send("GET", path, params=params, headers=headers)
        try:
            body = resp.json()
        except ValueError as e:
            raise ExtractionError(f"API {path} returned a non-JSON body") from e

        token: str | None = None
        if isinstance(body, dict):
            rows = body.get(list_key, []) if list_key else []
            token = body.get("nextPage") or None
        else:
            rows = body or []

        link_next = 'rel="next"' in resp.headers.get("Link", "")
        return Page(rows=list(rows or []), has_more=bool(token) or link_next, next_token=token)

    def fetch_all(
        self,
        path: str,
        list_key: str | None = None,
        params: dict[str, Any] | None = None,
        page_size: int | None = None,
        **context: Any,
    ) -> list[dict]:
        """Drain a paginated list endpoint.

        Follows continuation tokens when the body carries one, otherwise
        increments the page number while the Link header signals a next page.
        Stops when no further page is signalled or a page comes back shorter
        than ``page_size``.
        """
        base_params = dict(params or {})
        rows: list[dict] = []
        page_no = 1
        token: str | None = None

        while True:
            page_params = dict(base_params)
            if page_size:
                page_params[self.page_size_param] = str(page_size)
                page_params[self.page_param] = str(page_no)
            if token:
                page_params[self.token_param] = token

            page = self.fetch_page(path, page_params, list_key, **context)
            rows.extend(page.rows)
            logger.debug("%s page %d: %d rows", path, page_no, len(page.rows))

            if not page.has_more:
                break
            if page_size and len(page.rows) < page_size:
                break
            token = page.next_token
            page_no += 1

        return rows
