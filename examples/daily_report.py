"""Example: Sync one day and print the headline report

This example demonstrates how to sync a single business date for every
configured location and then read the precomputed rollups back:
1. Pull orders, labor and reference data from the POS API
2. Recompute daily, hourly, item and server rollups
3. Print revenue, labor, dining options and purchasing cost for the day

Prerequisites:
- Set TOAST_API_HOSTNAME, TOAST_CLIENT_ID, TOAST_CLIENT_SECRET, TOAST_RESTAURANT_GUIDS
- Optionally set MARGINEDGE_API_KEY and MARGINEDGE_RESTAURANT_UNIT_ID for costs
"""

from pos_metrics import PosSync, Settings
from pos_metrics.clients import ToastClient
from pos_metrics.queries import (
    get_daily_cost,
    get_daily_revenue,
    get_dining_option_breakdown,
    get_top_items,
    resolve_location,
)
from pos_metrics.store import get_engine, init_db

business_date = "2024-03-01"  # MODIFY AS NEEDED
focus_location = "downtown"  # guid or part of a location name

settings = Settings.from_env()
engine = get_engine(settings.database_path)
init_db(engine)

sync = PosSync(ToastClient.from_settings(settings), engine, settings)
for guid in settings.location_guids:
    result = sync.sync_date(guid, business_date)
    print(f"{guid}: {result.status}, {result.order_count} orders")
    for warning in result.warnings:
        print(f"  warning: {warning}")

    revenue = get_daily_revenue(engine, guid, business_date)
    if "error" in revenue:
        print(f"  {revenue['error']}")
        continue
    print(f"  net sales: {revenue['netSales']}")
    print(f"  labor cost %: {revenue['laborCostPct']}")
    for rec in revenue.get("recommendations", []):
        print(f"  [{rec['severity']}] {rec['title']}")

    top = get_top_items(engine, guid, business_date, limit=5)
    for item in top.get("items", []):
        print(f"  {item['name']}: {item['revenue']}")

focus = resolve_location(engine, focus_location, settings.location_guids)
dining = get_dining_option_breakdown(engine, focus, business_date)
for option in dining.get("options", []):
    print(f"{option['name']}: {option['revenue']} ({option['pct']}%)")

if settings.invoicing_configured:
    cost = get_daily_cost(engine, settings.marginedge_unit_id, business_date)
    print(f"\nPurchasing cost: {cost.get('totalCost', cost.get('error'))}")
