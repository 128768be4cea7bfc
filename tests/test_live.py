"""Live smoke tests against the real APIs.

Skipped unless credentials are present in the environment. Run with:
    pytest -m live
"""

import os
from datetime import date, timedelta

import pytest

from pos_metrics.clients import MarginEdgeClient, ToastClient
from pos_metrics.config import Settings
from pos_metrics.queries import get_daily_revenue
from pos_metrics.sales.sync import PosSync
from pos_metrics.store import get_engine, init_db

POS_VARS = ("TOAST_API_HOSTNAME", "TOAST_CLIENT_ID", "TOAST_CLIENT_SECRET", "TOAST_RESTAURANT_GUIDS")


def require_pos_credentials() -> None:
    if not all(os.environ.get(name) for name in POS_VARS):
        pytest.skip(f"Live test skipped: {', '.join(POS_VARS)} environment variables required")


@pytest.mark.live
def test_pos_restaurant_info() -> None:
    require_pos_credentials()
    settings = Settings.from_env()
    info = ToastClient.from_settings(settings).get_restaurant_info(settings.location_guids[0])
    assert "general" in info


@pytest.mark.live
def test_sync_yesterday_into_temp_store(tmp_path) -> None:
    """Live test: sync one business date end to end and read the rollup back."""
    require_pos_credentials()
    settings = Settings.from_env()
    engine = get_engine(tmp_path / "live.db")
    init_db(engine)
    guid = settings.location_guids[0]
    day = (date.today() - timedelta(days=2)).isoformat()

    result = PosSync(ToastClient.from_settings(settings), engine, settings).sync_date(guid, day)

    assert result.status in ("success", "partial")
    revenue = get_daily_revenue(engine, guid, day)
    assert revenue["date"] == day
    assert revenue["orderCount"] == result.order_count


@pytest.mark.live
def test_invoicing_units() -> None:
    if not os.environ.get("MARGINEDGE_API_KEY"):
        pytest.skip("Live test skipped: MARGINEDGE_API_KEY environment variable required")
    units = MarginEdgeClient.from_settings(Settings.from_env()).get_restaurant_units()
    assert isinstance(units, list)
