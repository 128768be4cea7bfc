"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from pos_metrics.config import DEFAULT_MARGINEDGE_BASE, Settings
from pos_metrics.exceptions import ConfigError


def test_from_env_defaults():
    s = Settings.from_env({})
    assert s.database_path == Path("data/pos_metrics.db")
    assert s.location_guids == []
    assert s.marginedge_base_url == DEFAULT_MARGINEDGE_BASE
    assert s.toast_min_interval == 0.2
    assert s.marginedge_min_interval == 1.0
    assert s.cost_fallback_days == 3
    assert s.default_hourly_rate == 15.0
    assert not s.invoicing_configured


def test_from_env_parses_lists_numbers_and_strips_slashes():
    s = Settings.from_env(
        {
            "POS_METRICS_DB": "/tmp/m.db",
            "TOAST_API_HOSTNAME": "https://pos.example/",
            "TOAST_RESTAURANT_GUIDS": " a , ,b,",
            "MARGINEDGE_API_KEY": " key ",
            "MARGINEDGE_RESTAURANT_UNIT_ID": "42",
            "TOAST_PAGE_SIZE": "50",
            "ME_LOOKBACK_DAYS": "10",
            "DEFAULT_HOURLY_RATE": "12.5",
        }
    )
    assert s.database_path == Path("/tmp/m.db")
    assert s.toast_hostname == "https://pos.example"
    assert s.location_guids == ["a", "b"]
    assert s.marginedge_api_key == "key"
    assert s.toast_page_size == 50
    assert s.invoice_lookback_days == 10
    assert s.default_hourly_rate == 12.5
    assert s.invoicing_configured


def test_blank_numeric_value_uses_default():
    assert Settings.from_env({"POS_HTTP_RETRIES": "  "}).http_retries == 3


def test_non_numeric_value_raises_config_error():
    with pytest.raises(ConfigError, match="TOAST_MIN_INTERVAL"):
        Settings.from_env({"TOAST_MIN_INTERVAL": "fast"})


def test_require_toast_lists_missing_names():
    s = Settings(toast_hostname="https://pos.example")
    with pytest.raises(ConfigError) as exc:
        s.require_toast()
    assert "TOAST_CLIENT_ID" in str(exc.value)
    assert "TOAST_CLIENT_SECRET" in str(exc.value)
    assert "TOAST_API_HOSTNAME" not in str(exc.value)


def test_invoicing_needs_key_and_unit():
    assert not Settings(marginedge_api_key="k").invoicing_configured
    assert not Settings(marginedge_unit_id="u").invoicing_configured
    assert Settings(marginedge_api_key="k", marginedge_unit_id="u").invoicing_configured
