"""
BizFlow Pro - Product models (inventory)

Stock is an integer that never goes negative. It only moves through
order creation (decrement), order cancellation and restock (increment).
"""

from typing import Optional
from pydantic import BaseModel, Field


# Threshold used by the dashboard low-stock list
LOW_STOCK_THRESHOLD = 5


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    sku: Optional[str] = ""
    price: float = Field(..., ge=0)
    stock: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    """Stock is not editable here, use restock"""
    name: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)


class RestockRequest(BaseModel):
    quantity: int = Field(..., gt=0)


class ProductResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    sku: str = ""
    price: float
    stock: int
    created_at: str = ""
    updated_at: str = ""
