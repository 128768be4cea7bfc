"""Command-line entry point: ``pos-metrics``.

Subcommands:
    sync           Sync POS data for the configured locations (and invoices).
    sync-invoices  Sync finalized invoices created in a date window.
    units          List invoicing restaurant units visible to the API key.
    locations      Show POS restaurant info for the configured locations.

Examples:
    $ pos-metrics sync                       # yesterday
    $ pos-metrics sync --date 2024-03-01 --days 7 --skip-invoices
    $ pos-metrics sync-invoices --start 2024-02-01 --end 2024-02-29
    $ pos-metrics -v units
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import date, timedelta

from pos_metrics.clients.marginedge import MarginEdgeClient
from pos_metrics.clients.toast import ToastClient
from pos_metrics.config import Settings
from pos_metrics.costs.sync import InvoiceSync
from pos_metrics.exceptions import AuthenticationError, ConfigError, PosMetricsError
from pos_metrics.locations import LocationDirectory
from pos_metrics.sales.sync import PosSync
from pos_metrics.store.db import get_engine, init_db
from pos_metrics.utils import dates_back, format_duration, parse_date, yesterday

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pos-metrics",
        description="Sync POS and invoicing data into the local metrics store.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Sync POS data (and invoices) for recent business dates.")
    sync.add_argument(
        "--date",
        type=str,
        default=None,
        help="Newest business date to sync (YYYY-MM-DD, default: yesterday).",
    )
    sync.add_argument(
        "--days",
        type=int,
        default=1,
        help="Number of business dates to sync, counting back from --date (default: 1).",
    )
    sync.add_argument(
        "--skip-invoices",
        action="store_true",
        help="Do not sync invoicing data even when it is configured.",
    )

    invoices = sub.add_parser("sync-invoices", help="Sync invoices created in a date window.")
    invoices.add_argument("--start", type=str, required=True, help="First created date (YYYY-MM-DD).")
    invoices.add_argument("--end", type=str, required=True, help="Last created date (YYYY-MM-DD).")

    sub.add_parser("units", help="List invoicing restaurant units.")
    sub.add_parser("locations", help="Show POS restaurant info for configured locations.")
    return parser


def _open_store(settings: Settings):
    engine = get_engine(settings.database_path)
    init_db(engine)
    return engine


def run_sync(settings: Settings, dates: list[str], skip_invoices: bool = False) -> int:
    """Sync every (location, date) key, then the invoicing window covering ``dates``.

    Per-key failures are logged and the run continues. A rejected credential
    aborts the run.

    Returns:
        Process exit code.

    """
    if not settings.location_guids:
        logger.error("No locations configured; set TOAST_RESTAURANT_GUIDS")
        return 1

    engine = _open_store(settings)
    client = ToastClient.from_settings(settings)
    directory = LocationDirectory.load(engine, settings.location_guids, settings.default_timezone)
    pos = PosSync(client, engine, settings, directory)

    logger.info(
        "Syncing %d location(s) for %d date(s): %s",
        len(settings.location_guids),
        len(dates),
        ", ".join(dates),
    )
    started = time.perf_counter()
    total_orders = total_warnings = failures = 0
    for guid in settings.location_guids:
        for day in dates:
            try:
                result = pos.sync_date(guid, day)
            except AuthenticationError as e:
                logger.error("Authentication failed, aborting run: %s", e)
                return 1
            except PosMetricsError as e:
                failures += 1
                logger.error("Error syncing %s for %s: %s", guid, day, e)
                continue
            total_orders += result.order_count
            total_warnings += len(result.warnings)

    logger.info(
        "POS sync complete: %d orders, %d warnings, %d failed key(s) (%s)",
        total_orders,
        total_warnings,
        failures,
        format_duration(time.perf_counter() - started),
    )

    if skip_invoices:
        return 0
    if not settings.invoicing_configured:
        logger.info("Invoicing not configured; skipping invoice sync")
        return 0

    newest = parse_date(max(dates))
    oldest = parse_date(min(dates)) - timedelta(days=settings.invoice_lookback_days)
    return run_invoice_sync(settings, oldest.isoformat(), newest.isoformat(), engine=engine)


def run_invoice_sync(settings: Settings, start: str, end: str, engine=None) -> int:
    """Sync invoicing reference data, then orders created in [start, end]."""
    engine = engine if engine is not None else _open_store(settings)
    invoicing = InvoiceSync(MarginEdgeClient.from_settings(settings), engine)

    try:
        invoicing.sync_ref_data()
    except AuthenticationError as e:
        logger.error("Invoicing authentication failed: %s", e)
        return 1
    except PosMetricsError as e:
        logger.warning("Could not sync invoicing reference data: %s", e)

    try:
        result = invoicing.sync_orders(start, end)
    except PosMetricsError as e:
        logger.error("Invoice sync failed for %s..%s: %s", start, end, e)
        return 1
    logger.info(
        "Invoice sync complete: %d orders, %d invoice date(s) recomputed, status=%s",
        result.order_count,
        len(result.affected_dates),
        result.status,
    )
    return 0


def list_units(settings: Settings) -> int:
    client = MarginEdgeClient.from_settings(settings)
    try:
        units = client.get_restaurant_units()
    except PosMetricsError as e:
        logger.error("Could not list restaurant units: %s", e)
        return 1
    if not units:
        print("No restaurant units found.")
    for unit in units:
        print(f"{unit.get('id', '')}\t{unit.get('name', '')}")
    return 0


def show_locations(settings: Settings) -> int:
    if not settings.location_guids:
        logger.error("No locations configured; set TOAST_RESTAURANT_GUIDS")
        return 1
    client = ToastClient.from_settings(settings)
    for guid in settings.location_guids:
        try:
            info = client.get_restaurant_info(guid)
        except AuthenticationError:
            raise
        except PosMetricsError as e:
            logger.error("Could not fetch restaurant info for %s: %s", guid, e)
            continue
        general = info.get("general") or {}
        print(
            f"{guid}\t{general.get('name', '')}\t{general.get('locationName', '')}"
            f"\t{general.get('timeZone', '')}"
        )
    return 0


def _parse_day(value: str, flag: str) -> date | None:
    try:
        return parse_date(value)
    except ValueError:
        logger.error("Invalid %s: %r (expected YYYY-MM-DD)", flag, value)
        return None


def _run(args: argparse.Namespace) -> int:
    if args.command == "sync":
        if args.days < 1:
            logger.error("--days must be at least 1")
            return 1
        end = _parse_day(args.date, "--date") if args.date else yesterday()
        if end is None:
            return 1
        settings = Settings.from_env()
        return run_sync(settings, dates_back(end, args.days), args.skip_invoices)

    if args.command == "sync-invoices":
        start, end = _parse_day(args.start, "--start"), _parse_day(args.end, "--end")
        if start is None or end is None:
            return 1
        if start > end:
            logger.error("--start is after --end")
            return 1
        settings = Settings.from_env()
        return run_invoice_sync(settings, start.isoformat(), end.isoformat())

    settings = Settings.from_env()
    if args.command == "units":
        return list_units(settings)
    return show_locations(settings)


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, configure logging and run one subcommand.

    Returns:
        Process exit code: 0 on success, 1 on configuration or fatal errors,
        130 when interrupted.

    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    try:
        return _run(args)
    except ConfigError as e:
        logger.error("%s", e)
        return 1
    except AuthenticationError as e:
        logger.error("Authentication failed: %s", e)
        return 1
    except PosMetricsError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
