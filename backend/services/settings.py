"""
BizFlow Pro - Tenant settings

Collections:
- tenants: {id, name, created_at, updated_at}
- settings: per-tenant documents identified by (tenant_id, key)

Known setting keys:
- email: sender name / reply-to used by automation emails
- notifications: which events notify the tenant admins
"""

import logging
from typing import Optional, Dict, Any, List

from config import db, now_iso, new_id
from services.errors import NotFoundError

logger = logging.getLogger("settings")

DEFAULT_SETTINGS = {
    "email": {"sender_name": "BizFlow Pro", "reply_to": ""},
    "notifications": {"order_created": True, "low_stock": True},
}


# ==================== TENANT ====================

async def create_tenant(name: str) -> Dict:
    now = now_iso()
    tenant = {"id": new_id(), "name": name.strip(), "created_at": now, "updated_at": now}
    await db.tenants.insert_one(tenant)
    tenant.pop("_id", None)
    logger.info(f"[TENANT] created {tenant['id']} ({tenant['name']})")
    return tenant


async def get_tenant(tenant_id: str) -> Dict:
    tenant = await db.tenants.find_one({"id": tenant_id}, {"_id": 0})
    if not tenant:
        raise NotFoundError("Tenant", tenant_id)
    return tenant


async def update_tenant(tenant_id: str, name: str, updated_by: str = "system") -> Dict:
    result = await db.tenants.update_one(
        {"id": tenant_id},
        {"$set": {"name": name.strip(), "updated_at": now_iso(), "updated_by": updated_by}}
    )
    if result.matched_count == 0:
        raise NotFoundError("Tenant", tenant_id)
    return await get_tenant(tenant_id)


# ==================== KEY / VALUE SETTINGS ====================

async def get_setting(tenant_id: str, key: str) -> Optional[Dict]:
    """Stored setting, or the default one (source="default"), or None"""
    doc = await db.settings.find_one({"tenant_id": tenant_id, "key": key}, {"_id": 0})
    if doc:
        return doc
    if key in DEFAULT_SETTINGS:
        return {**DEFAULT_SETTINGS[key], "key": key, "tenant_id": tenant_id, "source": "default"}
    return None


async def list_settings(tenant_id: str) -> List[Dict]:
    docs = await db.settings.find({"tenant_id": tenant_id}, {"_id": 0}).to_list(50)
    keys = [d.get("key") for d in docs]
    for key in DEFAULT_SETTINGS:
        if key not in keys:
            docs.append(await get_setting(tenant_id, key))
    return docs


async def upsert_setting(tenant_id: str, key: str, data: Dict[str, Any], updated_by: str = "system") -> Dict:
    """Create or update a setting of the tenant"""
    data = {k: v for k, v in data.items() if k not in ("tenant_id", "key", "_id")}
    data["updated_at"] = now_iso()
    data["updated_by"] = updated_by

    await db.settings.update_one(
        {"tenant_id": tenant_id, "key": key},
        {"$set": data, "$setOnInsert": {"created_at": now_iso()}},
        upsert=True
    )
    return await db.settings.find_one({"tenant_id": tenant_id, "key": key}, {"_id": 0})
