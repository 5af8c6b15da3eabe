"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Routes Orders                                                 ║
║                                                                              ║
║  POST /orders is the checkout: inventory, CRM and order in one transaction   ║
║  Error mapping:                                                              ║
║  - 400 input rejected before any write (unknown product, stock, empty)       ║
║  - 404 unknown order                                                         ║
║  - 409 status change not allowed                                             ║
║  - 500 transaction rolled back (generic message)                             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from models import OrderCreate, OrderStatusUpdate, OrderStatus, OrderResponse
from services.orders import create_order, list_orders, get_order, update_order_status, cancel_order
from services.errors import (
    NotFoundError,
    OrderValidationError,
    OrderTransactionError,
    InvalidOrderStatusError,
)
from services.permissions import require_permission, get_tenant_id

logger = logging.getLogger("routes.orders")

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("")
async def place_order(
    data: OrderCreate,
    user: dict = Depends(require_permission("orders.create"))
):
    """
    Checkout.

    Example body:
    {"customer_name": "Jane", "customer_email": "jane@acme.io",
     "items": [{"product_id": "...", "quantity": 2}]}
    """
    try:
        result = await create_order(
            get_tenant_id(user),
            data.customer_name,
            data.customer_email,
            data.items,
            idempotency_key=data.idempotency_key,
            user=user.get("email", "system")
        )
    except OrderValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrderTransactionError:
        raise HTTPException(status_code=500, detail="Failed to create order")

    return {"success": True, **result}


@router.get("")
async def get_orders(
    status: Optional[OrderStatus] = Query(None, description="Filter by status"),
    user: dict = Depends(require_permission("orders.view"))
):
    orders = await list_orders(get_tenant_id(user), status.value if status else None)
    return {"orders": orders, "count": len(orders)}


@router.get("/{order_id}", response_model=OrderResponse)
async def get_one_order(
    order_id: str,
    user: dict = Depends(require_permission("orders.view"))
):
    try:
        return await get_order(get_tenant_id(user), order_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")


@router.patch("/{order_id}/status")
async def change_order_status(
    order_id: str,
    data: OrderStatusUpdate,
    user: dict = Depends(require_permission("orders.update_status"))
):
    if data.status == OrderStatus.CANCELLED:
        raise HTTPException(status_code=400, detail="Use POST /orders/{order_id}/cancel to cancel an order")
    try:
        order = await update_order_status(
            order_id, data.status.value, tenant_id=get_tenant_id(user), user=user.get("email", "system")
        )
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "order": order}


@router.post("/{order_id}/cancel")
async def cancel_one_order(
    order_id: str,
    user: dict = Depends(require_permission("orders.cancel"))
):
    try:
        order = await cancel_order(get_tenant_id(user), order_id, user=user.get("email", "system"))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidOrderStatusError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except OrderTransactionError:
        raise HTTPException(status_code=500, detail="Failed to cancel order")
    return {"success": True, "order": order}
