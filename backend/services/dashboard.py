"""
BizFlow Pro - Dashboard stats & view invalidation

Stats are memoized per tenant. Every write that changes what a page
shows calls invalidate_views(tenant_id, ...) so the next read recomputes.

Each invalidation bumps the tenant generation. A computation that
overlapped an invalidation returns its result but does not cache it.
"""

import logging
from typing import Dict, Any

from config import db, now_iso, to_money, money_float
from models import LOW_STOCK_THRESHOLD, VALID_CONTACT_STAGES

logger = logging.getLogger("dashboard")

# Views known to the UI
VIEWS = ("dashboard", "inventory", "sales", "crm")

# tenant_id -> {view: payload}
_view_cache: Dict[str, Dict[str, Any]] = {}

# tenant_id -> invalidation counter
_generations: Dict[str, int] = {}


def invalidate_views(tenant_id: str, *views: str):
    """
    Drop cached views of a tenant. No view names = everything.
    """
    _generations[tenant_id] = _generations.get(tenant_id, 0) + 1
    cached = _view_cache.get(tenant_id)
    if not cached:
        return
    targets = views or tuple(cached.keys())
    for view in targets:
        cached.pop(view, None)
    logger.debug(f"[VIEWS] tenant={tenant_id} invalidated={list(targets)}")


def clear_cache():
    _view_cache.clear()
    _generations.clear()


async def compute_dashboard_stats(tenant_id: str) -> Dict[str, Any]:
    """Revenue, order count, contacts per stage, low-stock products"""
    orders = await db.orders.find(
        {"tenant_id": tenant_id},
        {"_id": 0, "total": 1, "status": 1}
    ).to_list(10000)

    revenue = sum(to_money(o.get("total", 0)) for o in orders if o.get("status") == "COMPLETED")
    by_status = {}
    for o in orders:
        by_status[o.get("status")] = by_status.get(o.get("status"), 0) + 1

    contacts_by_stage = {}
    for stage in VALID_CONTACT_STAGES:
        contacts_by_stage[stage] = await db.contacts.count_documents(
            {"tenant_id": tenant_id, "stage": stage}
        )

    low_stock = await db.products.find(
        {"tenant_id": tenant_id, "stock": {"$lte": LOW_STOCK_THRESHOLD}},
        {"_id": 0, "id": 1, "name": 1, "stock": 1}
    ).sort("stock", 1).to_list(50)

    return {
        "revenue": money_float(revenue),
        "order_count": len(orders),
        "orders_by_status": by_status,
        "contacts_by_stage": contacts_by_stage,
        "contact_count": sum(contacts_by_stage.values()),
        "low_stock_products": low_stock,
        "computed_at": now_iso(),
    }


async def get_dashboard_stats(tenant_id: str) -> Dict[str, Any]:
    cached = _view_cache.get(tenant_id) or {}
    if "dashboard" in cached:
        return cached["dashboard"]

    generation = _generations.get(tenant_id, 0)
    stats = await compute_dashboard_stats(tenant_id)
    if _generations.get(tenant_id, 0) == generation:
        _view_cache.setdefault(tenant_id, {})["dashboard"] = stats
    else:
        logger.debug(f"[VIEWS] tenant={tenant_id} stats invalidated while computing, not cached")
    return stats
