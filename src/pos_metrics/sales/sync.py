"""POS sync orchestrator: (location, business date) -> raw rows + rollups.

``PosSync`` lives for one run. It memoizes per-location configuration so a
multi-day run fetches categories and dining options once per location, and
it is discarded (together with its client's token) when the run ends.

For each key the sequence is:
    1. ensure_config  - location info, sales categories, revenue centers, dining options
    2. fetch          - employees (recoverable), orders (fatal), time entries (recoverable)
    3. transact       - delete raw + derived rows, insert fresh raw rows, rollups
                        and one sync_log row, all in a single transaction
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from sqlalchemy import and_, delete, select
from sqlalchemy.engine import Connection, Engine

from pos_metrics.clients.toast import ToastClient
from pos_metrics.config import Settings
from pos_metrics.exceptions import AuthenticationError, ETLError, ExtractionError, PosMetricsError
from pos_metrics.locations import Location, LocationDirectory
from pos_metrics.sales.aggregate import compute_rollups
from pos_metrics.sales.transform import (
    employee_name,
    normalize_employees,
    normalize_location,
    normalize_orders,
    normalize_reference,
    normalize_time_entries,
)
from pos_metrics.store import schema as t
from pos_metrics.store.db import insert_rows, upsert
from pos_metrics.store.schema import STATUS_ERROR, STATUS_PARTIAL, STATUS_SUCCESS
from pos_metrics.utils import business_day_window, format_duration, to_business_date, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one sync key."""

    location_guid: str
    business_date: str
    order_count: int = 0
    time_entry_count: int = 0
    status: str = STATUS_SUCCESS
    warnings: list[str] = field(default_factory=list)


def load_name_map(conn: Connection, table, location_guid: str) -> dict[str, str]:
    """guid -> name for a location-scoped reference table."""
    rows = conn.execute(
        select(table.c.guid, table.c.name).where(table.c.location_guid == location_guid)
    ).all()
    return {r.guid: r.name or "" for r in rows}


def load_wages(conn: Connection, location_guid: str) -> dict[str, float]:
    """Employee guid -> highest positive wage across their jobs."""
    ej, emp = t.employee_jobs, t.employees
    rows = conn.execute(
        select(ej.c.employee_guid, ej.c.wage_amount)
        .join(emp, ej.c.employee_guid == emp.c.guid)
        .where(and_(emp.c.location_guid == location_guid, ej.c.wage_amount > 0))
    ).all()
    wages: dict[str, float] = {}
    for r in rows:
        if r.wage_amount > wages.get(r.employee_guid, 0.0):
            wages[r.employee_guid] = float(r.wage_amount)
    return wages


def load_employee_names(conn: Connection, location_guid: str) -> dict[str, str]:
    rows = conn.execute(
        select(t.employees.c.guid, t.employees.c.first_name, t.employees.c.last_name).where(
            t.employees.c.location_guid == location_guid
        )
    ).all()
    return {r.guid: employee_name({"firstName": r.first_name, "lastName": r.last_name}) for r in rows}


class PosSync:
    """Sync POS data into the store, one (location, business date) at a time.

    Args:
        client: POS client for this run.
        engine: Store engine (schema already initialised).
        settings: Run settings (default wage, default timezone).
        directory: Location lookup table; loaded from the store when omitted.

    Example:
        >>> sync = PosSync(ToastClient.from_settings(settings), engine, settings)  # doctest: +SKIP
        >>> sync.sync_date("restaurant-guid", "2024-03-01")  # doctest: +SKIP

    """

    def __init__(
        self,
        client: ToastClient,
        engine: Engine,
        settings: Settings | None = None,
        directory: LocationDirectory | None = None,
    ) -> None:
        self.client = client
        self.engine = engine
        self.settings = settings or Settings()
        self.directory = directory or LocationDirectory.load(
            engine, self.settings.location_guids, self.settings.default_timezone
        )
        self._configured: set[str] = set()

    # ------------------------- Config -------------------------

    def ensure_config(self, location_guid: str) -> None:
        """Fetch and upsert location metadata and reference lists once per run.

        Individual failures are logged and skipped; stored values from earlier
        runs stay in place.
        """
        if location_guid in self._configured:
            return

        fetches = (
            ("restaurant info", self.client.get_restaurant_info, self._store_location),
            ("sales categories", self.client.get_sales_categories, self._store_reference(t.sales_categories)),
            ("revenue centers", self.client.get_revenue_centers, self._store_reference(t.revenue_centers)),
            ("dining options", self.client.get_dining_options, self._store_reference(t.dining_options, "behavior")),
        )
        for label, fetch, store in fetches:
            try:
                data = fetch(location_guid)
            except AuthenticationError:
                raise
            except ExtractionError as e:
                logger.warning("Could not fetch %s for %s: %s", label, location_guid, e)
                continue
            count = store(location_guid, data)
            logger.info("Synced %d %s for %s", count, label, location_guid)

        self._configured.add(location_guid)

    def _store_location(self, location_guid: str, info: dict) -> int:
        row = normalize_location(info or {}, location_guid)
        with self.engine.begin() as conn:
            upsert(conn, t.locations, [row])
        self.directory.add(Location(row["guid"], row["name"], row["location_name"], row["timezone"]))
        return 1

    def _store_reference(self, table, *extra: str):
        def store(location_guid: str, records: list[dict]) -> int:
            rows = normalize_reference(records or [], location_guid, *extra)
            with self.engine.begin() as conn:
                return upsert(conn, table, rows)

        return store

    def sync_employees(self, location_guid: str, warnings: list[str]) -> int:
        """Fetch and upsert employees and their jobs.

        A fetch failure is recorded in ``warnings`` and the previously stored
        employees (and wages) are used instead.
        """
        try:
            employees = self.client.get_employees(location_guid)
        except AuthenticationError:
            raise
        except ExtractionError as e:
            msg = f"Could not fetch employees: {e}"
            logger.warning(msg)
            warnings.append(msg)
            return 0

        employee_rows, job_rows = normalize_employees(employees or [], location_guid)
        with self.engine.begin() as conn:
            upsert(conn, t.employees, employee_rows)
            upsert(conn, t.employee_jobs, job_rows)
        logger.info("Synced %d employees", len(employee_rows))
        return len(employee_rows)

    # ------------------------- Sync -------------------------

    def sync_date(self, location_guid: str, business_date: str) -> SyncResult:
        """Replace all raw rows and rollups for one (location, business date).

        Args:
            location_guid: POS location guid.
            business_date: ISO date (yyyy-MM-dd).

        Returns:
            SyncResult with counts, status and warnings.

        Raises:
            AuthenticationError: If credentials are rejected.
            ExtractionError: If the orders fetch fails. Stored data for the key
                is left untouched and an ``error`` sync_log row is written.
            ETLError: Wraps any other failure while processing the key, after
                the same ``error`` row is written.

        """
        started = time.perf_counter()
        logger.info("Syncing %s for %s", location_guid, business_date)
        try:
            result = self._sync(location_guid, business_date)
        except PosMetricsError as e:
            logger.error("Sync failed for %s %s: %s", location_guid, business_date, e)
            self._record_failure(location_guid, business_date, e)
            raise
        except Exception as e:
            logger.exception("Unexpected error syncing %s %s", location_guid, business_date)
            self._record_failure(location_guid, business_date, e)
            raise ETLError(f"Sync failed for {location_guid} {business_date}: {e}") from e

        logger.info(
            "Done %s %s: %d orders, %d time entries, status=%s (%s)",
            location_guid,
            business_date,
            result.order_count,
            result.time_entry_count,
            result.status,
            format_duration(time.perf_counter() - started),
        )
        for w in result.warnings:
            logger.warning("%s %s: %s", location_guid, business_date, w)
        return result

    def _sync(self, location_guid: str, business_date: str) -> SyncResult:
        warnings: list[str] = []

        self.ensure_config(location_guid)
        self.sync_employees(location_guid, warnings)

        with self.engine.connect() as conn:
            category_names = load_name_map(conn, t.sales_categories, location_guid)
            dining_names = load_name_map(conn, t.dining_options, location_guid)
            wages = load_wages(conn, location_guid)
            employee_names = load_employee_names(conn, location_guid)

        orders = self.client.get_orders(location_guid, to_business_date(business_date))
        logger.info("Got %d orders", len(orders))

        tz = self.directory.timezone(location_guid)
        time_entries: list[dict] = []
        try:
            start, end = business_day_window(business_date, tz)
            time_entries = self.client.get_time_entries(location_guid, start, end)
            logger.info("Got %d time entries (tz: %s)", len(time_entries), tz)
        except AuthenticationError:
            raise
        except ExtractionError as e:
            msg = f"Could not fetch time entries: {e}"
            logger.warning(msg)
            warnings.append(msg)

        day = normalize_orders(orders, location_guid, business_date, category_names)
        day.time_entries = normalize_time_entries(time_entries or [], location_guid, business_date)

        rollups = compute_rollups(
            day,
            location_guid,
            business_date,
            location_name=self.directory.name(location_guid),
            timezone=tz,
            wages=wages,
            employee_names=employee_names,
            dining_option_names=dining_names,
            default_hourly_rate=self.settings.default_hourly_rate,
        )
        warnings.extend(rollups.warnings)
        status = STATUS_PARTIAL if warnings else STATUS_SUCCESS

        with self.engine.begin() as conn:
            for table in (*t.RAW_POS_TABLES, *t.ROLLUP_POS_TABLES):
                conn.execute(
                    delete(table).where(
                        and_(
                            table.c.location_guid == location_guid,
                            table.c.business_date == business_date,
                        )
                    )
                )
            insert_rows(conn, t.orders, day.orders)
            insert_rows(conn, t.checks, day.checks)
            insert_rows(conn, t.order_items, day.order_items)
            insert_rows(conn, t.payments, day.payments)
            insert_rows(conn, t.discounts, day.discounts)
            insert_rows(conn, t.time_entries, day.time_entries)

            insert_rows(conn, t.daily_metrics, [rollups.daily])
            insert_rows(conn, t.hourly_metrics, rollups.hourly)
            insert_rows(conn, t.item_daily_metrics, rollups.items)
            insert_rows(conn, t.server_daily_metrics, rollups.servers)

            conn.execute(
                t.sync_log.insert().values(
                    location_guid=location_guid,
                    business_date=business_date,
                    synced_at=utc_now(),
                    order_count=len(day.orders),
                    status=status,
                    warnings=warnings,
                )
            )

        return SyncResult(
            location_guid=location_guid,
            business_date=business_date,
            order_count=len(day.orders),
            time_entry_count=len(day.time_entries),
            status=status,
            warnings=warnings,
        )

    def _record_failure(self, location_guid: str, business_date: str, error: Exception) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                t.sync_log.insert().values(
                    location_guid=location_guid,
                    business_date=business_date,
                    synced_at=utc_now(),
                    order_count=0,
                    status=STATUS_ERROR,
                    warnings=[str(error)],
                )
            )
