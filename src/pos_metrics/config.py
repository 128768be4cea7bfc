"""Unified configuration for POS Metrics.

This module provides a single configuration class used by the API clients,
the sync orchestrators, the store and the CLI. Values come from environment
variables (see ``Settings.from_env``) or are passed explicitly in tests.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pos_metrics.exceptions import ConfigError

DEFAULT_DATABASE_PATH = "data/pos_metrics.db"
DEFAULT_MARGINEDGE_BASE = "https://api.marginedge.com/public"


@dataclass
class Settings:
    """All settings used by a sync run.

    Attributes:
        database_path: SQLite file holding raw rows and rollups.
        toast_hostname: Base URL of the POS API (e.g. https://ws-api.toasttab.com).
        toast_client_id: POS machine-client id.
        toast_client_secret: POS machine-client secret.
        location_guids: POS locations to sync.
        marginedge_api_key: Invoicing API key. Invoicing sync is skipped when empty.
        marginedge_unit_id: Invoicing restaurant unit id.
        marginedge_base_url: Invoicing API base URL.
        toast_min_interval: Minimum seconds between POS request starts.
        marginedge_min_interval: Minimum seconds between invoicing request starts.
        toast_page_size: Page size for paginated POS endpoints.
        http_timeout: Default request timeout in seconds.
        http_retries: Transport-level retries on 429/5xx.
        invoice_lookback_days: Extra created-date days scanned for late-finalizing invoices.
        cost_fallback_days: How recent a requested cost date must be to fall back
            to the latest available date.
        default_hourly_rate: Wage used when an employee has no wage on file.
        default_timezone: IANA timezone used when a location has none stored.
    """

    database_path: Path = Path(DEFAULT_DATABASE_PATH)
    toast_hostname: str = ""
    toast_client_id: str = ""
    toast_client_secret: str = ""
    location_guids: list[str] = field(default_factory=list)
    marginedge_api_key: str = ""
    marginedge_unit_id: str = ""
    marginedge_base_url: str = DEFAULT_MARGINEDGE_BASE
    toast_min_interval: float = 0.2
    marginedge_min_interval: float = 1.0
    toast_page_size: int = 100
    http_timeout: float = 60.0
    http_retries: int = 3
    invoice_lookback_days: int = 30
    cost_fallback_days: int = 3
    default_hourly_rate: float = 15.0
    default_timezone: str = "America/New_York"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            Settings instance.

        Raises:
            ConfigError: If a numeric variable cannot be parsed.

        Examples:
            >>> s = Settings.from_env({"TOAST_RESTAURANT_GUIDS": "a, b"})
            >>> s.location_guids
            ['a', 'b']
        """
        env = os.environ if environ is None else environ

        guids = [g.strip() for g in env.get("TOAST_RESTAURANT_GUIDS", "").split(",")]

        return cls(
            database_path=Path(env.get("POS_METRICS_DB", DEFAULT_DATABASE_PATH)),
            toast_hostname=env.get("TOAST_API_HOSTNAME", "").rstrip("/"),
            toast_client_id=env.get("TOAST_CLIENT_ID", ""),
            toast_client_secret=env.get("TOAST_CLIENT_SECRET", ""),
            location_guids=[g for g in guids if g],
            marginedge_api_key=env.get("MARGINEDGE_API_KEY", "").strip(),
            marginedge_unit_id=env.get("MARGINEDGE_RESTAURANT_UNIT_ID", "").strip(),
            marginedge_base_url=env.get("MARGINEDGE_API_BASE", DEFAULT_MARGINEDGE_BASE).rstrip("/"),
            toast_min_interval=_number(env, "TOAST_MIN_INTERVAL", 0.2),
            marginedge_min_interval=_number(env, "MARGINEDGE_MIN_INTERVAL", 1.0),
            toast_page_size=int(_number(env, "TOAST_PAGE_SIZE", 100)),
            http_timeout=_number(env, "POS_HTTP_TIMEOUT", 60.0),
            http_retries=int(_number(env, "POS_HTTP_RETRIES", 3)),
            invoice_lookback_days=int(_number(env, "ME_LOOKBACK_DAYS", 30)),
            cost_fallback_days=int(_number(env, "COST_FALLBACK_DAYS", 3)),
            default_hourly_rate=_number(env, "DEFAULT_HOURLY_RATE", 15.0),
            default_timezone=env.get("DEFAULT_TIMEZONE", "America/New_York"),
        )

    @property
    def invoicing_configured(self) -> bool:
        """True when both the invoicing API key and unit id are set."""
        return bool(self.marginedge_api_key and self.marginedge_unit_id)

    def require_toast(self) -> None:
        """Raise ConfigError unless POS credentials are present."""
        missing = [
            name
            for name, value in (
                ("TOAST_API_HOSTNAME", self.toast_hostname),
                ("TOAST_CLIENT_ID", self.toast_client_id),
                ("TOAST_CLIENT_SECRET", self.toast_client_secret),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing POS settings: {', '.join(missing)}")


def _number(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be numeric, got {raw!r}") from e
