"""
BizFlow Pro - Inventory service

Products are tenant-scoped. Stock never goes negative: decrements only
happen through the conditional update in services/orders.py.
"""

import logging
from typing import Optional, List, Dict

from config import db, now_iso, new_id
from services.dashboard import invalidate_views
from services.errors import NotFoundError

logger = logging.getLogger("products")


async def create_product(tenant_id: str, name: str, price: float, stock: int = 0, sku: str = "") -> Dict:
    if stock < 0:
        raise ValueError("stock cannot be negative")
    if price < 0:
        raise ValueError("price cannot be negative")

    now = now_iso()
    product = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name,
        "sku": sku or "",
        "price": float(price),
        "stock": int(stock),
        "created_at": now,
        "updated_at": now,
    }
    await db.products.insert_one(product)
    product.pop("_id", None)

    invalidate_views(tenant_id, "inventory", "dashboard")
    logger.info(f"[PRODUCT] created {product['id']} tenant={tenant_id} stock={stock}")
    return product


async def list_products(tenant_id: str) -> List[Dict]:
    return await db.products.find(
        {"tenant_id": tenant_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(1000)


async def get_product(tenant_id: str, product_id: str, session=None) -> Optional[Dict]:
    return await db.products.find_one(
        {"id": product_id, "tenant_id": tenant_id}, {"_id": 0}, session=session
    )


async def update_product(tenant_id: str, product_id: str, updates: Dict) -> Dict:
    """name / sku / price only"""
    allowed = {k: v for k, v in updates.items() if k in ("name", "sku", "price") and v is not None}
    if "price" in allowed and allowed["price"] < 0:
        raise ValueError("price cannot be negative")

    allowed["updated_at"] = now_iso()
    result = await db.products.update_one(
        {"id": product_id, "tenant_id": tenant_id}, {"$set": allowed}
    )
    if result.matched_count == 0:
        raise NotFoundError("Product", product_id)

    invalidate_views(tenant_id, "inventory", "dashboard")
    return await get_product(tenant_id, product_id)


async def restock_product(tenant_id: str, product_id: str, quantity: int, session=None) -> Dict:
    """Increment stock by a positive quantity"""
    if quantity <= 0:
        raise ValueError("restock quantity must be positive")

    result = await db.products.update_one(
        {"id": product_id, "tenant_id": tenant_id},
        {"$inc": {"stock": quantity}, "$set": {"updated_at": now_iso()}},
        session=session
    )
    if result.matched_count == 0:
        raise NotFoundError("Product", product_id)

    invalidate_views(tenant_id, "inventory", "dashboard")
    logger.info(f"[PRODUCT] restock {product_id} +{quantity} tenant={tenant_id}")
    return await get_product(tenant_id, product_id, session=session)
