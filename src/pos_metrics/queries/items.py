"""Read-only menu item queries: top and bottom sellers, item trends and category pairing rates.

Category names are matched case-insensitively throughout, so ``"food"``
matches a stored ``"Food"``.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import and_, exists, false, func, select
from sqlalchemy.engine import Connection, Engine

from pos_metrics.queries.base import NO_LOCATION
from pos_metrics.store import schema as t
from pos_metrics.utils import resolve_date, resolve_range, round_money

DEFAULT_BOTTOM_LIMIT = 10


def normalize_categories(categories: Iterable[str] | None) -> list[str]:
    """Trim, drop blanks and dedupe case-insensitively, keeping the first spelling.

    Examples:
        >>> normalize_categories([" Food", "food", "", "Wine"])
        ['Food', 'Wine']

    """
    seen: dict[str, str] = {}
    for category in categories or ():
        trimmed = category.strip()
        if trimmed:
            seen.setdefault(trimmed.lower(), trimmed)
    return list(seen.values())


def _category_key(column):
    return func.lower(func.coalesce(column, ""))


def _ranked_items(
    engine: Engine,
    location_guid: str | None,
    day: str | None,
    limit: int | None,
    include_categories: Iterable[str] | None,
    exclude_categories: Iterable[str] | None,
    today: date | None,
    ascending: bool,
) -> dict[str, Any]:
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    include = normalize_categories(include_categories)
    included = {c.lower() for c in include}
    exclude = [c for c in normalize_categories(exclude_categories) if c.lower() not in included]

    im = t.item_daily_metrics
    query = select(im).where(
        and_(im.c.location_guid == location_guid, im.c.business_date == resolved, im.c.revenue > 0)
    )
    if include:
        query = query.where(_category_key(im.c.sales_category_name).in_([c.lower() for c in include]))
    if exclude:
        query = query.where(_category_key(im.c.sales_category_name).not_in([c.lower() for c in exclude]))
    revenue = im.c.revenue.asc() if ascending else im.c.revenue.desc()
    query = query.order_by(revenue, im.c.display_name)
    if limit:
        query = query.limit(limit)

    with engine.connect() as conn:
        rows = conn.execute(query).mappings().all()

    return {
        "date": resolved,
        "locationId": location_guid,
        "includeCategories": include,
        "excludeCategories": exclude,
        "itemCount": len(rows),
        "items": [
            {
                "rank": i,
                "name": r["display_name"],
                "category": r["sales_category_name"],
                "quantitySold": r["quantity_sold"],
                "revenue": r["revenue"],
                "avgPrice": r["avg_price"],
                "orderCount": r["order_count"],
            }
            for i, r in enumerate(rows, start=1)
        ],
    }


def get_top_items(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    limit: int | None = None,
    include_categories: Iterable[str] | None = None,
    exclude_categories: Iterable[str] | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Items with positive revenue ranked by revenue.

    Args:
        engine: Store engine.
        location_guid: Location guid.
        day: Business date (defaults to yesterday).
        limit: Maximum rows; all matching rows when omitted.
        include_categories: Only these sales categories.
        exclude_categories: Drop these sales categories. A category that is
            also included stays included.
        today: Reference date for relative date arguments.

    """
    return _ranked_items(
        engine, location_guid, day, limit, include_categories, exclude_categories, today, ascending=False
    )


def get_bottom_items(
    engine: Engine,
    location_guid: str | None,
    day: str | None = None,
    limit: int | None = DEFAULT_BOTTOM_LIMIT,
    include_categories: Iterable[str] | None = None,
    exclude_categories: Iterable[str] | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Lowest-revenue items that still sold, same filters as ``get_top_items``."""
    return _ranked_items(
        engine, location_guid, day, limit, include_categories, exclude_categories, today, ascending=True
    )


def get_item_performance(
    engine: Engine,
    location_guid: str | None,
    item_name: str,
    start: str | None = None,
    end: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Daily quantity and revenue of items whose name contains ``item_name``.

    Matching is a case-insensitive substring match on the item display name.
    Days are summed across every matching item.

    """
    if not location_guid:
        return dict(NO_LOCATION)
    start_day, end_day = resolve_range(start, end, today)

    im = t.item_daily_metrics
    quantity = func.sum(im.c.quantity_sold).label("quantity_sold")
    revenue = func.sum(im.c.revenue).label("revenue")
    query = (
        select(im.c.business_date, quantity, revenue)
        .where(
            and_(
                im.c.location_guid == location_guid,
                im.c.business_date.between(start_day, end_day),
                im.c.display_name.contains(item_name, autoescape=True),
            )
        )
        .group_by(im.c.business_date)
        .order_by(im.c.business_date)
    )
    with engine.connect() as conn:
        rows = conn.execute(query).mappings().all()

    total_revenue = sum(r["revenue"] or 0.0 for r in rows)
    total_quantity = sum(r["quantity_sold"] or 0.0 for r in rows)
    return {
        "itemName": item_name,
        "locationId": location_guid,
        "startDate": start_day,
        "endDate": end_day,
        "totalRevenue": round_money(total_revenue),
        "totalQuantity": round_money(total_quantity),
        "dayCount": len(rows),
        "trend": [
            {
                "date": r["business_date"],
                "quantitySold": round_money(r["quantity_sold"]),
                "revenue": round_money(r["revenue"]),
                "avgPrice": round_money(r["revenue"] / r["quantity_sold"]) if r["quantity_sold"] else 0.0,
            }
            for r in rows
        ],
    }


def _count_checks(
    conn: Connection,
    location_guid: str,
    day: str,
    source: str,
    paired: list[str] | None = None,
) -> int:
    """Distinct checks with a ``source`` item, optionally also holding an item in ``paired``."""
    src = t.order_items.alias("src")
    query = select(func.count(func.distinct(src.c.check_guid))).where(
        and_(
            src.c.location_guid == location_guid,
            src.c.business_date == day,
            src.c.is_modifier == false(),
            src.c.voided == false(),
            _category_key(src.c.sales_category_name) == source.lower(),
        )
    )
    if paired is not None:
        other = t.order_items.alias("other")
        query = query.where(
            exists().where(
                and_(
                    other.c.check_guid == src.c.check_guid,
                    other.c.location_guid == src.c.location_guid,
                    other.c.business_date == src.c.business_date,
                    other.c.is_modifier == false(),
                    other.c.voided == false(),
                    _category_key(other.c.sales_category_name).in_([c.lower() for c in paired]),
                )
            )
        )
    return conn.execute(query).scalar_one()


def _rate(count: int, total: int) -> float:
    """Share of ``total`` as a percentage with one decimal."""
    if not total:
        return 0.0
    return math.floor(count / total * 1000 + 0.5) / 10


def get_item_pairing_rate(
    engine: Engine,
    location_guid: str | None,
    source_category: str,
    paired_categories: Iterable[str],
    day: str | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Share of checks with a ``source_category`` item that also carry a paired-category item.

    Only top-level, non-voided items count. The result has an overall
    ``pairingRate`` and a per-category ``breakdown``.

    Examples:
        Of 5 checks with Food, 2 also had a Beverage -> ``pairingRate`` 40.0.

    """
    if not location_guid:
        return dict(NO_LOCATION)
    resolved = resolve_date(day, today)
    source = source_category.strip()
    paired = [c for c in normalize_categories(paired_categories) if c.lower() != source.lower()]
    if not paired:
        return {
            "error": "paired categories must contain at least one category "
            "different from the source category"
        }

    result: dict[str, Any] = {
        "date": resolved,
        "locationId": location_guid,
        "sourceCategory": source,
        "pairedCategories": paired,
        "sourceCheckCount": 0,
        "pairedCheckCount": 0,
        "pairingRate": 0.0,
        "breakdown": [],
    }

    with engine.connect() as conn:
        source_checks = _count_checks(conn, location_guid, resolved, source)
        if not source_checks:
            return result
        paired_checks = _count_checks(conn, location_guid, resolved, source, paired)
        breakdown = []
        for category in paired:
            count = _count_checks(conn, location_guid, resolved, source, [category])
            breakdown.append(
                {"category": category, "checkCount": count, "rate": _rate(count, source_checks)}
            )

    result.update(
        sourceCheckCount=source_checks,
        pairedCheckCount=paired_checks,
        pairingRate=_rate(paired_checks, source_checks),
        breakdown=breakdown,
    )
    return result
