"""
BizFlow Pro - Routes Auth
Login / Logout / Session / tenant user management with granular permissions.
"""

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from datetime import datetime, timezone, timedelta

from models import UserLogin, UserCreate, UserResponse, normalize_email
from config import db, hash_password, generate_token, now_iso, new_id, SESSION_TTL_DAYS
from services.event_logger import log_event
from services.permissions import (
    get_preset_permissions,
    get_tenant_id,
    VALID_ROLES,
    ALL_PERMISSION_KEYS,
    ROLE_PRESETS,
    user_has_permission,
)

router = APIRouter(prefix="/auth", tags=["Auth"])
security = HTTPBearer(auto_error=False)


# ==================== HELPERS ====================

async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Authenticated user of the bearer token (password excluded)."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = await db.sessions.find_one({
        "token": credentials.credentials,
        "expires_at": {"$gt": now_iso()}
    })
    if not session:
        raise HTTPException(status_code=401, detail="Session expired")

    user = await db.users.find_one(
        {"id": session["user_id"]},
        {"_id": 0, "password": 0}
    )
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account disabled")

    if not user.get("permissions"):
        user["permissions"] = get_preset_permissions(user.get("role", "viewer"))

    return user


def _require_users_manage(user: dict):
    if not user_has_permission(user, "users.manage"):
        raise HTTPException(status_code=403, detail="Permission required: users.manage")


# ==================== LOGIN / LOGOUT ====================

@router.post("/login")
async def login(data: UserLogin):
    user = await db.users.find_one({"email": normalize_email(data.email)}, {"_id": 0})

    if not user or user.get("password") != hash_password(data.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account disabled")

    token = generate_token()
    expires_at = (datetime.now(timezone.utc) + timedelta(days=SESSION_TTL_DAYS)).isoformat()

    await db.sessions.insert_one({
        "token": token,
        "user_id": user["id"],
        "tenant_id": user["tenant_id"],
        "created_at": now_iso(),
        "expires_at": expires_at
    })

    await log_event("login", "user", user["id"], tenant_id=user["tenant_id"], user=user["email"])

    return {
        "token": token,
        "user": {
            "id": user["id"],
            "tenant_id": user["tenant_id"],
            "email": user["email"],
            "name": user.get("name", ""),
            "role": user.get("role", "viewer"),
            "permissions": user.get("permissions") or get_preset_permissions(user.get("role", "viewer")),
        }
    }


@router.post("/logout")
async def logout(
    user: dict = Depends(get_current_user),
    credentials: HTTPAuthorizationCredentials = Depends(security)
):
    if credentials:
        await db.sessions.delete_one({"token": credentials.credentials})
    return {"success": True}


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    return user


# ==================== TENANT USERS (users.manage) ====================

@router.get("/users")
async def list_users(user: dict = Depends(get_current_user)):
    _require_users_manage(user)
    users = await db.users.find(
        {"tenant_id": get_tenant_id(user)}, {"_id": 0, "password": 0}
    ).to_list(200)
    return {"users": users}


@router.post("/users")
async def create_user(data: UserCreate, user: dict = Depends(get_current_user)):
    """New user in the caller's tenant"""
    _require_users_manage(user)
    tenant_id = get_tenant_id(user)

    if await db.users.find_one({"email": data.email}):
        raise HTTPException(status_code=409, detail="This email already exists")

    new_user = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "email": data.email,
        "password": hash_password(data.password),
        "name": data.name,
        "role": data.role,
        "permissions": data.permissions or get_preset_permissions(data.role),
        "is_active": True,
        "created_at": now_iso(),
        "created_by": user.get("id")
    }
    await db.users.insert_one(new_user)

    await log_event("user_create", "user", new_user["id"], tenant_id=tenant_id, user=user.get("email"),
                    details={"email": data.email, "role": data.role})

    new_user.pop("password", None)
    new_user.pop("_id", None)
    return {"success": True, "user": new_user}


@router.delete("/users/{user_id}")
async def deactivate_user(user_id: str, user: dict = Depends(get_current_user)):
    """Deactivate a user of the caller's tenant and drop its sessions"""
    _require_users_manage(user)
    tenant_id = get_tenant_id(user)

    target = await db.users.find_one({"id": user_id, "tenant_id": tenant_id})
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    if user_id == user.get("id"):
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    await db.users.update_one(
        {"id": user_id, "tenant_id": tenant_id},
        {"$set": {"is_active": False, "deactivated_at": now_iso()}}
    )
    await db.sessions.delete_many({"user_id": user_id})

    await log_event("user_deactivate", "user", user_id, tenant_id=tenant_id, user=user.get("email"),
                    details={"email": target.get("email")})
    return {"success": True}


@router.get("/permission-keys")
async def list_permission_keys(user: dict = Depends(get_current_user)):
    """Permission keys and role presets (user management UI)"""
    _require_users_manage(user)
    return {
        "keys": ALL_PERMISSION_KEYS,
        "presets": ROLE_PRESETS,
        "roles": VALID_ROLES
    }
