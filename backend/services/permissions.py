"""
BizFlow Pro - Permission System
Granular permission keys + role presets + FastAPI dependencies.
Permissions are the source of truth. Roles are presets only.
"""

import logging
from typing import Dict
from fastapi import Depends, HTTPException

logger = logging.getLogger("permissions")

# ════════════════════════════════════════════════════════════════════════
# ALL PERMISSION KEYS
# ════════════════════════════════════════════════════════════════════════

ALL_PERMISSION_KEYS = [
    "dashboard.view",

    "orders.view",
    "orders.create",
    "orders.update_status",
    "orders.cancel",

    "inventory.view",
    "inventory.manage",

    "contacts.view",
    "contacts.create",
    "contacts.edit",

    "pipelines.view",
    "pipelines.manage",

    "purchasing.view",
    "purchasing.manage",

    "jobs.view",
    "jobs.manage",

    "conversations.view",
    "conversations.send",

    "tasks.view",
    "tasks.manage",

    "automation.view",
    "automation.manage",

    "webhooks.manage",

    "activity.view",

    "settings.access",
    "users.manage",
]

# ════════════════════════════════════════════════════════════════════════
# ROLE PRESETS (defaults when creating a user with a role)
# ════════════════════════════════════════════════════════════════════════

ROLE_PRESETS: Dict[str, Dict[str, bool]] = {
    "admin": {k: True for k in ALL_PERMISSION_KEYS},

    "manager": {
        "dashboard.view": True,
        "orders.view": True, "orders.create": True, "orders.update_status": True, "orders.cancel": True,
        "inventory.view": True, "inventory.manage": True,
        "contacts.view": True, "contacts.create": True, "contacts.edit": True,
        "pipelines.view": True, "pipelines.manage": True,
        "purchasing.view": True, "purchasing.manage": True,
        "jobs.view": True, "jobs.manage": True,
        "conversations.view": True, "conversations.send": True,
        "tasks.view": True, "tasks.manage": True,
        "automation.view": True, "automation.manage": True,
        "webhooks.manage": False,
        "activity.view": True,
        "settings.access": False,
        "users.manage": False,
    },

    "sales": {
        "dashboard.view": True,
        "orders.view": True, "orders.create": True, "orders.update_status": False, "orders.cancel": False,
        "inventory.view": True, "inventory.manage": False,
        "contacts.view": True, "contacts.create": True, "contacts.edit": True,
        "pipelines.view": True, "pipelines.manage": True,
        "purchasing.view": False, "purchasing.manage": False,
        "jobs.view": True, "jobs.manage": False,
        "conversations.view": True, "conversations.send": True,
        "tasks.view": True, "tasks.manage": True,
        "automation.view": True, "automation.manage": False,
        "webhooks.manage": False,
        "activity.view": False,
        "settings.access": False,
        "users.manage": False,
    },

    "viewer": {
        "dashboard.view": True,
        "orders.view": True, "orders.create": False, "orders.update_status": False, "orders.cancel": False,
        "inventory.view": True, "inventory.manage": False,
        "contacts.view": True, "contacts.create": False, "contacts.edit": False,
        "pipelines.view": True, "pipelines.manage": False,
        "purchasing.view": True, "purchasing.manage": False,
        "jobs.view": True, "jobs.manage": False,
        "conversations.view": True, "conversations.send": False,
        "tasks.view": True, "tasks.manage": False,
        "automation.view": False, "automation.manage": False,
        "webhooks.manage": False,
        "activity.view": False,
        "settings.access": False,
        "users.manage": False,
    },
}

VALID_ROLES = list(ROLE_PRESETS.keys())


def get_preset_permissions(role: str) -> Dict[str, bool]:
    """Returns the default permissions for a role."""
    return dict(ROLE_PRESETS.get(role, ROLE_PRESETS["viewer"]))


# ════════════════════════════════════════════════════════════════════════
# PERMISSION CHECK HELPERS
# ════════════════════════════════════════════════════════════════════════

def user_has_permission(user: dict, key: str) -> bool:
    """Check if user has a specific permission."""
    if user.get("role") == "admin":
        return True
    perms = user.get("permissions") or get_preset_permissions(user.get("role", "viewer"))
    return perms.get(key, False) is True


def get_tenant_id(user: dict) -> str:
    """
    The tenant of the current request.
    Always the authenticated user's tenant, there is no cross-tenant scope.
    """
    tenant_id = user.get("tenant_id")
    if not tenant_id:
        raise HTTPException(status_code=401, detail="Invalid session: missing tenant")
    return tenant_id


# ════════════════════════════════════════════════════════════════════════
# FASTAPI DEPENDENCIES
# ════════════════════════════════════════════════════════════════════════

def require_permission(permission_key: str):
    """
    FastAPI dependency factory.
    Usage: user: dict = Depends(require_permission("orders.view"))
    """
    from routes.auth import get_current_user

    async def _check(user: dict = Depends(get_current_user)):
        if not user_has_permission(user, permission_key):
            logger.warning(
                f"[PERMISSION_DENIED] user={user.get('email')} "
                f"key={permission_key} role={user.get('role')}"
            )
            raise HTTPException(
                status_code=403,
                detail=f"Permission required: {permission_key}"
            )
        return user

    return _check
