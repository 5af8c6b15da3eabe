"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Contact model (CRM)                                           ║
║                                                                              ║
║  - Unique per (tenant_id, email), emails stored lowercase                    ║
║  - Lifecycle stage: LEAD -> PROSPECT -> CUSTOMER (-> CHURNED)                ║
║  - First purchase creates the contact as CUSTOMER                            ║
║  - Contacts are never deleted by the order flow                              ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
import re


class ContactStage(str, Enum):
    LEAD = "LEAD"
    PROSPECT = "PROSPECT"
    CUSTOMER = "CUSTOMER"
    CHURNED = "CHURNED"


VALID_CONTACT_STAGES = [s.value for s in ContactStage]


def is_valid_email_format(email: str) -> bool:
    """Basic email format check"""
    if not email:
        return False
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class ContactCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    phone: Optional[str] = ""
    stage: ContactStage = ContactStage.LEAD

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = normalize_email(v)
        if not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v


class ContactUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    stage: Optional[ContactStage] = None

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        if v is None:
            return v
        v = normalize_email(v)
        if not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v


class TagAdd(BaseModel):
    tag: str = Field(..., min_length=1)


class ContactResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    email: str
    phone: str = ""
    stage: str
    score: int = 0
    tags: List[str] = []
    order_count: int = 0
    created_at: str = ""
    updated_at: str = ""
