"""
BizFlow Pro - Routes Products (inventory)
"""

from fastapi import APIRouter, Depends, HTTPException

from models import ProductCreate, ProductUpdate, RestockRequest, ProductResponse
from services.products import create_product, list_products, get_product, update_product, restock_product
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/products", tags=["Inventory"])


@router.get("")
async def get_products(user: dict = Depends(require_permission("inventory.view"))):
    products = await list_products(get_tenant_id(user))
    return {"products": products, "count": len(products)}


@router.post("")
async def add_product(data: ProductCreate, user: dict = Depends(require_permission("inventory.manage"))):
    product = await create_product(get_tenant_id(user), data.name, data.price, data.stock, data.sku)
    return {"success": True, "product": product}


@router.get("/{product_id}", response_model=ProductResponse)
async def get_one_product(product_id: str, user: dict = Depends(require_permission("inventory.view"))):
    product = await get_product(get_tenant_id(user), product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.put("/{product_id}")
async def edit_product(
    product_id: str,
    data: ProductUpdate,
    user: dict = Depends(require_permission("inventory.manage"))
):
    product = await update_product(get_tenant_id(user), product_id, data.model_dump(exclude_none=True))
    return {"success": True, "product": product}


@router.post("/{product_id}/restock")
async def restock(
    product_id: str,
    data: RestockRequest,
    user: dict = Depends(require_permission("inventory.manage"))
):
    product = await restock_product(get_tenant_id(user), product_id, data.quantity)
    return {"success": True, "product": product}
