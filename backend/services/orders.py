"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Order synchronization flow                                    ║
║                                                                              ║
║  create_order() = ONE checkout, three subsystems:                            ║
║                                                                              ║
║  1. Pricing pass (no writes)                                                 ║
║     products exist in the tenant, stock covers every line, total computed    ║
║  2. Atomic phase (one Mongo transaction)                                     ║
║     conditional stock decrement per line (stock >= qty or abort)             ║
║     contact upsert (stage CUSTOMER, score += increment)                      ║
║     order insert (status COMPLETED, true unit prices)                        ║
║  3. Post-commit, best-effort                                                 ║
║     automation triggers, "order.created" webhooks, view invalidation         ║
║                                                                              ║
║  A failure in phase 2 rolls back every write of phase 2.                     ║
║  A failure in phase 3 is logged and never reaches the caller.                ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from decimal import Decimal
from typing import Optional, List, Dict

from pymongo.errors import DuplicateKeyError

from config import db, now_iso, new_id, start_transaction, to_money, money_float
from models import OrderStatus, VALID_ORDER_STATUSES, CANCELLABLE_STATUSES, normalize_email
from services.contacts import find_or_create_customer, get_contact
from services.dashboard import invalidate_views
from services.errors import (
    NotFoundError,
    OrderValidationError,
    EmptyOrderError,
    ProductNotFoundError,
    InsufficientStockError,
    OrderTransactionError,
    InvalidOrderStatusError,
)
from services.event_logger import log_event
from services.webhooks import trigger_webhooks

logger = logging.getLogger("orders")

ORDER_VIEWS = ("dashboard", "inventory", "sales", "crm")


def _item_value(item, key):
    """Items come in as dicts or OrderItemInput models"""
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


# ==================== PRICING PASS ====================

async def price_items(tenant_id: str, items: List) -> Dict:
    """
    Validate every line against the current catalog. No writes.

    Amounts are computed as cent-rounded Decimals: the order total is exactly
    the sum of the line totals.

    Returns: {"total": float, "lines": [{product_id, product_name, quantity, price, line_total}]}
    Raises: EmptyOrderError, ProductNotFoundError, InsufficientStockError
    """
    if not items:
        raise EmptyOrderError()

    total = Decimal("0")
    lines = []
    for item in items:
        product_id = _item_value(item, "product_id")
        quantity = _item_value(item, "quantity")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise OrderValidationError(f"Invalid quantity for product {product_id}")

        product = await db.products.find_one(
            {"id": product_id, "tenant_id": tenant_id}, {"_id": 0}
        )
        if not product:
            raise ProductNotFoundError(product_id)
        if product.get("stock", 0) < quantity:
            raise InsufficientStockError(product_id, product["name"], quantity, product.get("stock", 0))

        price = to_money(product["price"])
        line_total = price * quantity
        total += line_total
        lines.append({
            "product_id": product_id,
            "product_name": product["name"],
            "quantity": quantity,
            "price": money_float(price),
            "line_total": money_float(line_total),
        })

    return {"total": money_float(total), "lines": lines}


# ==================== CHECKOUT ====================

async def _find_by_idempotency_key(tenant_id: str, idempotency_key: str) -> Optional[Dict]:
    order = await db.orders.find_one(
        {"tenant_id": tenant_id, "idempotency_key": idempotency_key}, {"_id": 0}
    )
    if not order:
        return None
    contact = await get_contact(tenant_id, order["contact_id"])
    return {"order": order, "contact": contact, "replayed": True}


async def create_order(tenant_id: str, customer_name: str, customer_email: str, items: List,
                       idempotency_key: str = None, user: str = "system") -> Dict:
    """
    Place an order. See module header for the three phases.

    With an idempotency_key already used by this tenant, the stored order
    is returned and nothing is written or emitted again.

    Returns: {"order": dict, "contact": dict, "replayed": bool}
    Raises: OrderValidationError subclasses (nothing written),
            OrderTransactionError (rolled back)
    """
    if idempotency_key:
        existing = await _find_by_idempotency_key(tenant_id, idempotency_key)
        if existing:
            logger.info(f"[ORDER] idempotent replay key={idempotency_key} order={existing['order']['id']}")
            return existing

    email = normalize_email(customer_email)
    priced = await price_items(tenant_id, items)

    now = now_iso()
    order = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "customer_name": customer_name,
        "contact_id": None,
        "total": priced["total"],
        "status": OrderStatus.COMPLETED.value,
        "items": priced["lines"],
        "created_at": now,
        "updated_at": now,
    }
    if idempotency_key:
        order["idempotency_key"] = idempotency_key

    try:
        async with start_transaction(db) as session:
            for line in priced["lines"]:
                result = await db.products.update_one(
                    {
                        "id": line["product_id"],
                        "tenant_id": tenant_id,
                        "stock": {"$gte": line["quantity"]},
                    },
                    {"$inc": {"stock": -line["quantity"]}, "$set": {"updated_at": now}},
                    session=session
                )
                if result.matched_count == 0:
                    # Stock moved between the pricing pass and the decrement
                    raise InsufficientStockError(line["product_id"], line["product_name"], line["quantity"])

            contact, created = await find_or_create_customer(
                tenant_id, customer_name, email, session=session
            )
            order["contact_id"] = contact["id"]

            await db.orders.insert_one(order, session=session)
            order.pop("_id", None)

            await log_event("order_create", "order", order["id"], tenant_id=tenant_id, user=user,
                            details={"total": order["total"], "items": len(order["items"]),
                                     "contact_id": contact["id"], "contact_created": created},
                            session=session)
    except OrderValidationError:
        raise
    except DuplicateKeyError:
        # Same idempotency key committed concurrently
        if idempotency_key:
            existing = await _find_by_idempotency_key(tenant_id, idempotency_key)
            if existing:
                return existing
        raise OrderTransactionError("Transaction failed: duplicate key")
    except Exception as e:
        logger.error(f"[ORDER] Transaction failed tenant={tenant_id}: {type(e).__name__}: {e}")
        raise OrderTransactionError(f"Transaction failed: {e}") from e

    logger.info(
        f"[ORDER] created {order['id']} tenant={tenant_id} total={order['total']} "
        f"contact={contact['id']} ({'new' if created else 'existing'})"
    )

    await _after_commit(tenant_id, order, contact)
    return {"order": order, "contact": contact, "replayed": False}


async def _after_commit(tenant_id: str, order: Dict, contact: Dict):
    """Best-effort side effects of a committed order"""
    try:
        from services.automation import evaluate_order_triggers
        await evaluate_order_triggers(tenant_id, contact["id"], order["id"])
    except Exception as e:
        logger.error(f"[ORDER] automation triggers failed for order {order['id']}: {e}")

    trigger_webhooks(tenant_id, "order.created", order)
    invalidate_views(tenant_id, *ORDER_VIEWS)


# ==================== READS ====================

async def list_orders(tenant_id: str, status: str = None, limit: int = 500) -> List[Dict]:
    query = {"tenant_id": tenant_id}
    if status:
        query["status"] = status
    return await db.orders.find(query, {"_id": 0}).sort("created_at", -1).to_list(limit)


async def get_order(tenant_id: str, order_id: str) -> Dict:
    order = await db.orders.find_one({"id": order_id, "tenant_id": tenant_id}, {"_id": 0})
    if not order:
        raise NotFoundError("Order", order_id)
    return order


# ==================== STATUS ====================

async def update_order_status(order_id: str, status: str, tenant_id: str = None,
                              user: str = "system") -> Dict:
    """
    Set the status of an order.

    tenant_id is optional: the payment provider only knows the order id.
    CANCELLED is refused here: cancel_order() owns it because it restocks.
    The write only applies if the status read is still the stored one, so a
    concurrent cancellation is never overwritten.
    """
    if status not in VALID_ORDER_STATUSES:
        raise InvalidOrderStatusError(f"Invalid status: {status}. Valid: {VALID_ORDER_STATUSES}")
    if status == OrderStatus.CANCELLED.value:
        raise InvalidOrderStatusError("Use cancel_order() to cancel an order")

    query = {"id": order_id}
    if tenant_id:
        query["tenant_id"] = tenant_id

    order = await db.orders.find_one(query, {"_id": 0})
    if not order:
        raise NotFoundError("Order", order_id)

    old_status = order["status"]
    if old_status == status:
        return order
    if old_status == OrderStatus.CANCELLED.value:
        raise InvalidOrderStatusError(f"Order {order_id} is cancelled")

    now = now_iso()
    result = await db.orders.update_one(
        {"id": order_id, "tenant_id": order["tenant_id"], "status": old_status},
        {"$set": {"status": status, "updated_at": now}}
    )
    if result.matched_count == 0:
        raise InvalidOrderStatusError(f"Order {order_id} changed status concurrently")
    order["status"] = status
    order["updated_at"] = now

    await log_event("order_status_change", "order", order_id, tenant_id=order["tenant_id"], user=user,
                    details={"old_value": old_status, "new_value": status})
    logger.info(f"[ORDER] {order_id} {old_status} -> {status}")

    trigger_webhooks(order["tenant_id"], "order.status_changed", order)
    invalidate_views(order["tenant_id"], "dashboard", "sales")
    return order


async def cancel_order(tenant_id: str, order_id: str, user: str = "system") -> Dict:
    """
    CANCELLED + every line quantity put back in stock, in one transaction.
    Only PENDING / COMPLETED orders can be cancelled.
    """
    order = await get_order(tenant_id, order_id)
    if order["status"] not in CANCELLABLE_STATUSES:
        raise InvalidOrderStatusError(f"Order {order_id} cannot be cancelled from {order['status']}")

    now = now_iso()
    try:
        async with start_transaction(db) as session:
            result = await db.orders.update_one(
                {"id": order_id, "tenant_id": tenant_id, "status": {"$in": CANCELLABLE_STATUSES}},
                {"$set": {"status": OrderStatus.CANCELLED.value, "updated_at": now}},
                session=session
            )
            if result.matched_count == 0:
                raise InvalidOrderStatusError(f"Order {order_id} was cancelled concurrently")

            for line in order.get("items", []):
                # A product deleted since checkout is not recreated
                await db.products.update_one(
                    {"id": line["product_id"], "tenant_id": tenant_id},
                    {"$inc": {"stock": line["quantity"]}, "$set": {"updated_at": now}},
                    session=session
                )

            await log_event("order_cancel", "order", order_id, tenant_id=tenant_id, user=user,
                            details={"old_value": order["status"], "restocked": len(order.get("items", []))},
                            session=session)
    except InvalidOrderStatusError:
        raise
    except Exception as e:
        logger.error(f"[ORDER] Cancel failed for {order_id}: {type(e).__name__}: {e}")
        raise OrderTransactionError(f"Cancel failed: {e}") from e

    order["status"] = OrderStatus.CANCELLED.value
    order["updated_at"] = now
    logger.info(f"[ORDER] {order_id} cancelled, stock restored")

    trigger_webhooks(tenant_id, "order.cancelled", order)
    invalidate_views(tenant_id, *ORDER_VIEWS)
    return order
