"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Purchasing models                                             ║
║                                                                              ║
║  supplier        -> purchase orders (items priced in the supplier currency)  ║
║  container       -> groups purchase orders shipped together                  ║
║                                                                              ║
║  PO status:        OPEN -> IN_TRANSIT (in a container) -> COMPLETED          ║
║  Container status: PLANNED -> RECEIVED (stock booked, landed cost fixed)     ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator


# Selling price of a product created on receipt = landed unit cost x markup
RECEIVING_MARKUP = "1.5"


class PurchaseOrderStatus(str, Enum):
    OPEN = "OPEN"
    IN_TRANSIT = "IN_TRANSIT"
    COMPLETED = "COMPLETED"


class ContainerStatus(str, Enum):
    PLANNED = "PLANNED"
    RECEIVED = "RECEIVED"


CONTAINER_COST_FIELDS = ["freight_cost", "customs_cost", "trucking_cost", "other_costs"]


class SupplierCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = ""
    email: Optional[str] = ""
    phone: Optional[str] = ""
    address: Optional[str] = ""
    country: Optional[str] = ""
    currency: str = "USD"

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        v = (v or "").strip().upper()
        if len(v) != 3 or not v.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return v


class PurchaseOrderItemInput(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_price: float = Field(..., ge=0)
    product_id: Optional[str] = None  # receive into an existing product


class PurchaseOrderCreate(BaseModel):
    number: str = Field(..., min_length=1)
    supplier_id: str
    currency: Optional[str] = None  # defaults to the supplier currency
    items: List[PurchaseOrderItemInput] = Field(..., min_length=1)


class ContainerCreate(BaseModel):
    number: str = Field(..., min_length=1)
    etd: Optional[str] = None
    eta: Optional[str] = None


class ContainerAddPO(BaseModel):
    purchase_order_id: str


class ContainerCostsUpdate(BaseModel):
    freight_cost: Optional[float] = Field(default=None, ge=0)
    customs_cost: Optional[float] = Field(default=None, ge=0)
    trucking_cost: Optional[float] = Field(default=None, ge=0)
    other_costs: Optional[float] = Field(default=None, ge=0)
