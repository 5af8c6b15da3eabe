"""
BizFlow Pro - Routes Settings (tenant)

- Tenant profile (name)
- Key/value settings of the tenant (email, notifications)
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, Any

from models import TenantUpdate, TenantResponse
from services.permissions import require_permission, get_tenant_id
from services.settings import (
    get_tenant,
    update_tenant,
    get_setting,
    list_settings,
    upsert_setting,
    DEFAULT_SETTINGS,
)

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/tenant", response_model=TenantResponse)
async def get_tenant_profile(user: dict = Depends(require_permission("settings.access"))):
    return await get_tenant(get_tenant_id(user))


@router.put("/tenant")
async def update_tenant_profile(data: TenantUpdate, user: dict = Depends(require_permission("settings.access"))):
    tenant = await update_tenant(get_tenant_id(user), data.name, updated_by=user.get("email", "system"))
    return {"success": True, "tenant": tenant}


@router.get("")
async def get_settings(user: dict = Depends(require_permission("settings.access"))):
    docs = await list_settings(get_tenant_id(user))
    return {"settings": docs, "count": len(docs)}


@router.get("/{key}")
async def get_one_setting(key: str, user: dict = Depends(require_permission("settings.access"))):
    doc = await get_setting(get_tenant_id(user), key)
    if not doc:
        raise HTTPException(status_code=404, detail="Setting not found")
    return doc


@router.put("/{key}")
async def put_setting(
    key: str,
    data: Dict[str, Any],
    user: dict = Depends(require_permission("settings.access"))
):
    if key not in DEFAULT_SETTINGS:
        raise HTTPException(status_code=400, detail=f"Unknown setting: {key}. Valid: {list(DEFAULT_SETTINGS)}")
    doc = await upsert_setting(get_tenant_id(user), key, data, updated_by=user.get("email", "system"))
    return {"success": True, "setting": doc}
