"""Helpers shared by the query modules."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import and_, select
from sqlalchemy.engine import Connection, Engine

from pos_metrics.locations import LocationDirectory
from pos_metrics.store import schema as t
from pos_metrics.utils import round_money

NO_LOCATION = {"error": "No location configured"}


def pct(part: float | None, whole: float | None) -> float:
    """Percentage of ``whole`` rounded to two decimals; 0 when ``whole`` is not positive.

    Examples:
        >>> pct(25, 200)
        12.5
        >>> pct(5, 0)
        0.0

    """
    if not whole or whole <= 0:
        return 0.0
    return round_money((part or 0.0) / whole * 100)


def no_data(day: str, **extra: Any) -> dict[str, Any]:
    return {"error": f"No data found for {day}", "date": day, **extra}


def daily_row(conn: Connection, location_guid: str, day: str) -> Mapping[str, Any] | None:
    """The ``daily_metrics`` row for one key, or ``None``."""
    dm = t.daily_metrics
    return (
        conn.execute(
            select(dm).where(and_(dm.c.location_guid == location_guid, dm.c.business_date == day))
        )
        .mappings()
        .first()
    )


def ranked_breakdown(breakdown: Mapping[str, float], total: float, limit: int | None = None) -> list[dict]:
    """Name -> amount map as rows sorted by amount, with rank and share of ``total``."""
    rows = sorted(breakdown.items(), key=lambda kv: kv[1], reverse=True)
    if limit is not None:
        rows = rows[:limit]
    return [
        {"rank": i, "name": name, "cost": round_money(cost), "pct": pct(cost, total)}
        for i, (name, cost) in enumerate(rows, start=1)
    ]


def resolve_location(engine: Engine, identifier: str | None, configured: Sequence[str]) -> str | None:
    """Location guid for a guid or (partial) name argument.

    Uses stored location names; falls back to the first configured location and
    returns ``None`` when none is configured.

    Examples:
        >>> resolve_location(engine, "downtown", settings.location_guids)  # doctest: +SKIP
        'guid-downtown-1'

    """
    return LocationDirectory.load(engine, configured).resolve(identifier)
