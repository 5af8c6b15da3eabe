"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Order model                                                   ║
║                                                                              ║
║  An order = one checkout                                                     ║
║  - Items embedded in the order, immutable after creation                     ║
║  - Each item records the unit price captured at checkout                     ║
║  - Status: PENDING / COMPLETED / CANCELLED                                   ║
║                                                                              ║
║  RULE: an order is ALWAYS attached to a tenant and a contact                 ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator

from .contact import normalize_email, is_valid_email_format


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


VALID_ORDER_STATUSES = [s.value for s in OrderStatus]

# Statuses an order may be cancelled from
CANCELLABLE_STATUSES = [OrderStatus.PENDING.value, OrderStatus.COMPLETED.value]


class OrderItemInput(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class OrderCreate(BaseModel):
    """
    Checkout request

    Example:
    {
        "customer_name": "Jane Doe",
        "customer_email": "jane@acme.io",
        "items": [{"product_id": "P1", "quantity": 2}],
        "idempotency_key": "cart-7f3a"
    }
    """
    customer_name: str = Field(..., min_length=1)
    customer_email: str
    items: List[OrderItemInput] = Field(..., min_length=1)
    idempotency_key: Optional[str] = None

    @field_validator('customer_email')
    @classmethod
    def validate_email(cls, v):
        v = normalize_email(v)
        if not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    product_id: str
    product_name: str = ""
    quantity: int
    price: float
    line_total: float = 0.0


class OrderResponse(BaseModel):
    id: str
    tenant_id: str
    customer_name: str
    contact_id: str
    total: float
    status: str
    items: List[OrderItemResponse]
    idempotency_key: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
