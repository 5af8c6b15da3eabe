"""
BizFlow Pro - Routes Purchasing
Suppliers, purchase orders, containers and container receipt.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from models import (
    SupplierCreate,
    PurchaseOrderCreate,
    PurchaseOrderStatus,
    ContainerCreate,
    ContainerAddPO,
    ContainerCostsUpdate,
)
from services import purchasing as svc
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/purchasing", tags=["Purchasing"])


# ==================== SUPPLIERS ====================

@router.get("/suppliers")
async def get_suppliers(user: dict = Depends(require_permission("purchasing.view"))):
    suppliers = await svc.list_suppliers(get_tenant_id(user))
    return {"suppliers": suppliers, "count": len(suppliers)}


@router.post("/suppliers")
async def add_supplier(data: SupplierCreate, user: dict = Depends(require_permission("purchasing.manage"))):
    supplier = await svc.create_supplier(get_tenant_id(user), **data.model_dump())
    return {"success": True, "supplier": supplier}


# ==================== PURCHASE ORDERS ====================

@router.get("/orders")
async def get_purchase_orders(
    status: Optional[PurchaseOrderStatus] = Query(None, description="Filter by status"),
    user: dict = Depends(require_permission("purchasing.view"))
):
    orders = await svc.list_purchase_orders(get_tenant_id(user), status.value if status else None)
    return {"purchase_orders": orders, "count": len(orders)}


@router.post("/orders")
async def add_purchase_order(data: PurchaseOrderCreate, user: dict = Depends(require_permission("purchasing.manage"))):
    po = await svc.create_purchase_order(
        get_tenant_id(user), data.number, data.supplier_id, data.items,
        currency=data.currency, user=user.get("email", "system")
    )
    return {"success": True, "purchase_order": po}


@router.get("/orders/{purchase_order_id}")
async def get_purchase_order(purchase_order_id: str, user: dict = Depends(require_permission("purchasing.view"))):
    return await svc.get_purchase_order(get_tenant_id(user), purchase_order_id)


# ==================== CONTAINERS ====================

@router.get("/containers")
async def get_containers(user: dict = Depends(require_permission("purchasing.view"))):
    containers = await svc.list_containers(get_tenant_id(user))
    return {"containers": containers, "count": len(containers)}


@router.post("/containers")
async def add_container(data: ContainerCreate, user: dict = Depends(require_permission("purchasing.manage"))):
    container = await svc.create_container(get_tenant_id(user), data.number, data.etd, data.eta)
    return {"success": True, "container": container}


@router.get("/containers/{container_id}")
async def get_container(container_id: str, user: dict = Depends(require_permission("purchasing.view"))):
    return await svc.get_container(get_tenant_id(user), container_id)


@router.post("/containers/{container_id}/orders")
async def load_purchase_order(
    container_id: str,
    data: ContainerAddPO,
    user: dict = Depends(require_permission("purchasing.manage"))
):
    container = await svc.add_po_to_container(get_tenant_id(user), container_id, data.purchase_order_id)
    return {"success": True, "container": container}


@router.put("/containers/{container_id}/costs")
async def edit_container_costs(
    container_id: str,
    data: ContainerCostsUpdate,
    user: dict = Depends(require_permission("purchasing.manage"))
):
    container = await svc.update_container_costs(
        get_tenant_id(user), container_id, data.model_dump(exclude_none=True)
    )
    return {"success": True, "container": container}


@router.post("/containers/{container_id}/receive")
async def receive_container(container_id: str, user: dict = Depends(require_permission("purchasing.manage"))):
    """Books every pending item into inventory (one transaction)"""
    result = await svc.receive_container(get_tenant_id(user), container_id, user=user.get("email", "system"))
    return {"success": True, **result}
