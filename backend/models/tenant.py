"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Tenant (strict multi-tenancy)                                 ║
║                                                                              ║
║  RULES:                                                                      ║
║  - Every business record belongs to exactly one tenant                       ║
║  - Every query MUST carry a tenant_id filter                                 ║
║  - tenant_id always comes from the authenticated user, never a constant      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional
from pydantic import BaseModel, field_validator


class TenantUpdate(BaseModel):
    """Tenant settings update"""
    name: str

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Tenant name is required")
        return v


class TenantResponse(BaseModel):
    id: str
    name: str
    created_at: Optional[str] = ""
    updated_at: Optional[str] = ""
