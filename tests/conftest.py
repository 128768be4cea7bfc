"""Shared fixtures: a fresh SQLite store per test and default settings."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine

from pos_metrics.config import Settings
from pos_metrics.store.db import get_engine, init_db
from tests.factories import LOCATION, UNIT


@pytest.fixture
def engine(tmp_path: Path) -> Generator[Engine, None, None]:
    """Initialised store in a temporary SQLite file."""
    eng = get_engine(tmp_path / "metrics.db")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_path=tmp_path / "metrics.db",
        toast_hostname="https://pos.example",
        toast_client_id="id",
        toast_client_secret="secret",
        location_guids=[LOCATION],
        marginedge_api_key="key",
        marginedge_unit_id=UNIT,
    )
