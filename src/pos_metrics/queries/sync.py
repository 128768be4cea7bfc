"""Sync health: the latest sync log rows per location and invoicing unit."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Engine

from pos_metrics.store import schema as t


def get_sync_status(
    engine: Engine,
    location_guids: Sequence[str] = (),
    unit_id: str | None = None,
    limit: int = 5,
) -> dict[str, Any]:
    """Most recent sync attempts, newest first.

    Args:
        engine: Store engine.
        location_guids: Locations to report; each gets up to ``limit`` rows.
        unit_id: Invoicing unit to report, if configured.
        limit: Rows per location / unit.

    Returns:
        ``{"locations": {guid: [...]}, "invoicing": [...]}``; ``lastSuccess``
        per location is the newest successful or partial business date.

    """
    sl, ml = t.sync_log, t.me_sync_log
    locations: dict[str, dict[str, Any]] = {}
    invoicing: list[dict[str, Any]] = []

    with engine.connect() as conn:
        for guid in location_guids:
            rows = conn.execute(
                select(sl).where(sl.c.location_guid == guid).order_by(sl.c.id.desc()).limit(limit)
            ).mappings().all()
            last_ok = conn.execute(
                select(sl.c.business_date)
                .where(sl.c.location_guid == guid, sl.c.status != t.STATUS_ERROR)
                .order_by(sl.c.business_date.desc())
                .limit(1)
            ).scalar_one_or_none()
            locations[guid] = {
                "lastSuccess": last_ok,
                "recent": [
                    {
                        "businessDate": r["business_date"],
                        "syncedAt": r["synced_at"],
                        "status": r["status"],
                        "orderCount": r["order_count"],
                        "warnings": r["warnings"],
                    }
                    for r in rows
                ],
            }

        if unit_id:
            rows = conn.execute(
                select(ml).where(ml.c.restaurant_unit_id == unit_id).order_by(ml.c.id.desc()).limit(limit)
            ).mappings().all()
            invoicing = [
                {
                    "syncType": r["sync_type"],
                    "startDate": r["start_date"],
                    "endDate": r["end_date"],
                    "syncedAt": r["synced_at"],
                    "status": r["status"],
                    "recordCount": r["record_count"],
                    "warnings": r["warnings"],
                }
                for r in rows
            ]

    return {"locations": locations, "invoicing": invoicing}
