"""
BizFlow Pro - Auth & user models
Role + Permission hybrid model.
Roles are presets. Permissions are the real authority.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, Dict

from .contact import normalize_email, is_valid_email_format


VALID_ROLES = ["admin", "manager", "sales", "viewer"]


class UserLogin(BaseModel):
    email: str
    password: str


class UserCreate(BaseModel):
    """Tenant user. The tenant is always the creator's tenant."""
    email: str
    password: str
    name: str
    role: str = "viewer"
    permissions: Optional[Dict[str, bool]] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        v = normalize_email(v)
        if not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v

    @field_validator("role")
    @classmethod
    def validate_role(cls, v):
        if v not in VALID_ROLES:
            raise ValueError(f"Invalid role: {v}. Valid: {VALID_ROLES}")
        return v

    @field_validator("password")
    @classmethod
    def validate_password(cls, v):
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        return v


class UserResponse(BaseModel):
    id: str
    tenant_id: str
    email: str
    name: str
    role: str = "viewer"
    permissions: Optional[Dict[str, bool]] = None
    is_active: bool = True
