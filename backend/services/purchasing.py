"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Purchasing (suppliers, purchase orders, containers)           ║
║                                                                              ║
║  receive_container() books a whole container into inventory, in ONE          ║
║  Mongo transaction:                                                          ║
║                                                                              ║
║  1. container PLANNED -> RECEIVED (conditional, a second receipt aborts)     ║
║  2. landed costs (freight, customs, trucking, other) spread over the items   ║
║     by value: unit_cost = (item value + allocated cost) / quantity           ║
║  3. per item: restock the linked product, or create one priced at            ║
║     unit_cost x RECEIVING_MARKUP                                             ║
║  4. items marked received, purchase orders COMPLETED                         ║
║                                                                              ║
║  Amounts are cent-rounded Decimals while computing, floats once stored.      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from decimal import Decimal
from typing import List, Dict

from config import db, now_iso, new_id, start_transaction, to_money, money_float
from models import (
    RECEIVING_MARKUP,
    CONTAINER_COST_FIELDS,
    PurchaseOrderStatus,
    ContainerStatus,
)
from services.dashboard import invalidate_views
from services.errors import NotFoundError, ConflictError
from services.event_logger import log_event
from services.webhooks import trigger_webhooks

logger = logging.getLogger("purchasing")


def _value(item, key, default=None):
    if isinstance(item, dict):
        return item.get(key, default)
    return getattr(item, key, default)


# ==================== SUPPLIERS ====================

async def create_supplier(tenant_id: str, name: str, code: str = "", email: str = "", phone: str = "",
                          address: str = "", country: str = "", currency: str = "USD") -> Dict:
    supplier = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name.strip(),
        "code": code or "",
        "email": (email or "").strip().lower(),
        "phone": phone or "",
        "address": address or "",
        "country": country or "",
        "currency": (currency or "USD").upper(),
        "created_at": now_iso(),
    }
    await db.suppliers.insert_one(supplier)
    supplier.pop("_id", None)
    logger.info(f"[PURCHASING] supplier created {supplier['id']} tenant={tenant_id}")
    return supplier


async def list_suppliers(tenant_id: str) -> List[Dict]:
    """Alphabetical, with the number of purchase orders of each"""
    suppliers = await db.suppliers.find({"tenant_id": tenant_id}, {"_id": 0}).sort("name", 1).to_list(1000)
    for s in suppliers:
        s["purchase_order_count"] = await db.purchase_orders.count_documents(
            {"tenant_id": tenant_id, "supplier_id": s["id"]}
        )
    return suppliers


async def get_supplier(tenant_id: str, supplier_id: str) -> Dict:
    supplier = await db.suppliers.find_one({"id": supplier_id, "tenant_id": tenant_id}, {"_id": 0})
    if not supplier:
        raise NotFoundError("Supplier", supplier_id)
    return supplier


# ==================== PURCHASE ORDERS ====================

async def create_purchase_order(tenant_id: str, number: str, supplier_id: str, items: List,
                                currency: str = None, user: str = "system") -> Dict:
    """
    Items: [{description, quantity, unit_price, product_id?}]
    total_amount is the exact sum of the line totals.
    """
    if not items:
        raise ValueError("A purchase order needs at least one item")
    supplier = await get_supplier(tenant_id, supplier_id)

    for product_id in {_value(i, "product_id") for i in items if _value(i, "product_id")}:
        if not await db.products.find_one({"id": product_id, "tenant_id": tenant_id}, {"_id": 0, "id": 1}):
            raise NotFoundError("Product", product_id)

    total = Decimal("0")
    lines = []
    for item in items:
        quantity = _value(item, "quantity")
        if not isinstance(quantity, int) or quantity <= 0:
            raise ValueError(f"Invalid quantity for {_value(item, 'description')}")
        unit_price = to_money(_value(item, "unit_price", 0))
        if unit_price < 0:
            raise ValueError("unit price cannot be negative")
        line_total = unit_price * quantity
        total += line_total
        lines.append({
            "id": new_id(),
            "description": _value(item, "description"),
            "quantity": quantity,
            "unit_price": money_float(unit_price),
            "total_price": money_float(line_total),
            "product_id": _value(item, "product_id"),
            "received": False,
            "unit_cost": None,
        })

    now = now_iso()
    po = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "number": number.strip(),
        "supplier_id": supplier_id,
        "supplier_name": supplier["name"],
        "currency": (currency or supplier.get("currency") or "USD").upper(),
        "status": PurchaseOrderStatus.OPEN.value,
        "container_id": None,
        "items": lines,
        "total_amount": money_float(total),
        "created_at": now,
        "updated_at": now,
    }
    await db.purchase_orders.insert_one(po)
    po.pop("_id", None)

    await log_event("purchase_order_create", "purchase_order", po["id"], tenant_id=tenant_id, user=user,
                    details={"number": po["number"], "total": po["total_amount"], "items": len(lines)})
    logger.info(f"[PURCHASING] PO {po['number']} created tenant={tenant_id} total={po['total_amount']}")
    return po


async def list_purchase_orders(tenant_id: str, status: str = None) -> List[Dict]:
    query = {"tenant_id": tenant_id}
    if status:
        query["status"] = status
    return await db.purchase_orders.find(query, {"_id": 0}).sort("created_at", -1).to_list(1000)


async def get_purchase_order(tenant_id: str, purchase_order_id: str) -> Dict:
    po = await db.purchase_orders.find_one({"id": purchase_order_id, "tenant_id": tenant_id}, {"_id": 0})
    if not po:
        raise NotFoundError("Purchase order", purchase_order_id)
    return po


# ==================== CONTAINERS ====================

async def create_container(tenant_id: str, number: str, etd: str = None, eta: str = None) -> Dict:
    now = now_iso()
    container = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "number": number.strip(),
        "etd": etd,
        "eta": eta,
        "status": ContainerStatus.PLANNED.value,
        "purchase_order_ids": [],
        "freight_cost": 0.0,
        "customs_cost": 0.0,
        "trucking_cost": 0.0,
        "other_costs": 0.0,
        "total_landed_cost": None,
        "arrival_date": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.containers.insert_one(container)
    container.pop("_id", None)
    logger.info(f"[PURCHASING] container {container['number']} created tenant={tenant_id}")
    return container


async def get_container(tenant_id: str, container_id: str) -> Dict:
    """Container with its purchase orders"""
    container = await db.containers.find_one({"id": container_id, "tenant_id": tenant_id}, {"_id": 0})
    if not container:
        raise NotFoundError("Container", container_id)
    container["purchase_orders"] = await db.purchase_orders.find(
        {"tenant_id": tenant_id, "id": {"$in": container.get("purchase_order_ids", [])}}, {"_id": 0}
    ).sort("created_at", 1).to_list(500)
    return container


async def list_containers(tenant_id: str) -> List[Dict]:
    containers = await db.containers.find({"tenant_id": tenant_id}, {"_id": 0}).sort("created_at", -1).to_list(500)
    for c in containers:
        c["purchase_order_count"] = len(c.get("purchase_order_ids", []))
    return containers


async def add_po_to_container(tenant_id: str, container_id: str, purchase_order_id: str) -> Dict:
    """
    Load an OPEN purchase order into a PLANNED container.
    Both writes share one transaction; a PO already loaded elsewhere is a conflict.
    """
    async with start_transaction(db) as session:
        result = await db.purchase_orders.update_one(
            {"id": purchase_order_id, "tenant_id": tenant_id, "status": PurchaseOrderStatus.OPEN.value},
            {"$set": {"status": PurchaseOrderStatus.IN_TRANSIT.value, "container_id": container_id,
                      "updated_at": now_iso()}},
            session=session
        )
        if result.matched_count == 0:
            await get_purchase_order(tenant_id, purchase_order_id)
            raise ConflictError(f"Purchase order {purchase_order_id} is not open")

        result = await db.containers.update_one(
            {"id": container_id, "tenant_id": tenant_id, "status": ContainerStatus.PLANNED.value},
            {"$addToSet": {"purchase_order_ids": purchase_order_id}, "$set": {"updated_at": now_iso()}},
            session=session
        )
        if result.matched_count == 0:
            await get_container(tenant_id, container_id)
            raise ConflictError(f"Container {container_id} is already received")

    logger.info(f"[PURCHASING] PO {purchase_order_id} -> container {container_id}")
    return await get_container(tenant_id, container_id)


async def update_container_costs(tenant_id: str, container_id: str, costs: Dict) -> Dict:
    """Freight / customs / trucking / other costs. Frozen once received."""
    fields = {}
    for key in CONTAINER_COST_FIELDS:
        if costs.get(key) is None:
            continue
        amount = to_money(costs[key])
        if amount < 0:
            raise ValueError(f"{key} cannot be negative")
        fields[key] = money_float(amount)
    fields["updated_at"] = now_iso()

    result = await db.containers.update_one(
        {"id": container_id, "tenant_id": tenant_id, "status": ContainerStatus.PLANNED.value},
        {"$set": fields}
    )
    if result.matched_count == 0:
        await get_container(tenant_id, container_id)
        raise ConflictError(f"Container {container_id} is already received")
    return await get_container(tenant_id, container_id)


# ==================== RECEIVING ====================

def allocate_landed_costs(items: List[Dict], total_costs: Decimal) -> List[Decimal]:
    """
    Share of total_costs per item, proportional to the item value.
    Shares are rounded to the cent; the last one takes the remainder so
    the shares add up to total_costs exactly.
    """
    goods_value = sum(to_money(i["total_price"]) for i in items)
    shares = []
    for item in items[:-1]:
        shares.append(to_money(total_costs * to_money(item["total_price"]) / goods_value))
    shares.append(total_costs - sum(shares, Decimal("0")))
    return shares


async def receive_container(tenant_id: str, container_id: str, user: str = "system") -> Dict:
    """
    See module header. Returns {"container", "products_created", "products_restocked"}.

    Raises: NotFoundError (container, or a linked product deleted since),
            ConflictError (already received), ValueError (nothing to receive)
    """
    container = await get_container(tenant_id, container_id)
    if container["status"] == ContainerStatus.RECEIVED.value:
        raise ConflictError(f"Container {container['number']} already received")

    pending = []
    for po in container["purchase_orders"]:
        for item in po["items"]:
            if not item.get("received"):
                pending.append((po, item))

    goods_value = sum((to_money(item["total_price"]) for _, item in pending), Decimal("0"))
    if goods_value == 0:
        raise ValueError("No items to receive or total value is 0")

    total_costs = sum((to_money(container.get(k) or 0) for k in CONTAINER_COST_FIELDS), Decimal("0"))
    shares = allocate_landed_costs([item for _, item in pending], total_costs)
    markup = Decimal(RECEIVING_MARKUP)

    now = now_iso()
    created, restocked = [], []
    try:
        async with start_transaction(db) as session:
            result = await db.containers.update_one(
                {"id": container_id, "tenant_id": tenant_id, "status": ContainerStatus.PLANNED.value},
                {"$set": {
                    "status": ContainerStatus.RECEIVED.value,
                    "arrival_date": now,
                    "total_landed_cost": money_float(total_costs),
                    "updated_at": now,
                }},
                session=session
            )
            if result.matched_count == 0:
                raise ConflictError(f"Container {container['number']} was received concurrently")

            for (po, item), share in zip(pending, shares):
                unit_cost = to_money((to_money(item["total_price"]) + share) / item["quantity"])
                item["unit_cost"] = money_float(unit_cost)
                item["received"] = True

                if item.get("product_id"):
                    restock = await db.products.update_one(
                        {"id": item["product_id"], "tenant_id": tenant_id},
                        {"$inc": {"stock": item["quantity"]},
                         "$set": {"last_landed_cost": item["unit_cost"], "updated_at": now}},
                        session=session
                    )
                    if restock.matched_count == 0:
                        raise NotFoundError("Product", item["product_id"])
                    restocked.append(item["product_id"])
                    continue

                product = {
                    "id": new_id(),
                    "tenant_id": tenant_id,
                    "name": item["description"],
                    "sku": f"{po['number']}-{item['description'][:3].upper()}-{item['id'][:6]}",
                    "description": f"Imported from PO {po['number']} in container {container['number']}",
                    "price": money_float(unit_cost * markup),
                    "stock": item["quantity"],
                    "last_landed_cost": item["unit_cost"],
                    "created_at": now,
                    "updated_at": now,
                }
                await db.products.insert_one(product, session=session)
                item["product_id"] = product["id"]
                created.append(product["id"])

            for po in container["purchase_orders"]:
                await db.purchase_orders.update_one(
                    {"id": po["id"], "tenant_id": tenant_id},
                    {"$set": {"items": po["items"], "status": PurchaseOrderStatus.COMPLETED.value,
                              "updated_at": now}},
                    session=session
                )

            await log_event("container_receive", "container", container_id, tenant_id=tenant_id, user=user,
                            details={"landed_cost": money_float(total_costs), "created": len(created),
                                     "restocked": len(restocked)},
                            session=session)
    except (NotFoundError, ConflictError):
        raise
    except Exception as e:
        logger.error(f"[PURCHASING] receive {container_id} rolled back: {type(e).__name__}: {e}")
        raise

    logger.info(
        f"[PURCHASING] container {container['number']} received tenant={tenant_id} "
        f"created={len(created)} restocked={len(restocked)} landed_cost={money_float(total_costs)}"
    )

    invalidate_views(tenant_id, "inventory", "dashboard")
    received = await get_container(tenant_id, container_id)
    trigger_webhooks(tenant_id, "container.received", {
        "container_id": container_id,
        "number": container["number"],
        "total_landed_cost": money_float(total_costs),
        "products_created": created,
        "products_restocked": restocked,
    })
    return {"container": received, "products_created": created, "products_restocked": restocked}
