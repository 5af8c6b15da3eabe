"""
BizFlow Pro - Routes Webhooks (outbound subscriptions)
"""

from fastapi import APIRouter, Depends

from models import WebhookCreate, WebhookActiveUpdate, WebhookTest, KNOWN_EVENTS
from services.webhooks import (
    list_webhooks,
    create_webhook,
    delete_webhook,
    set_webhook_active,
    trigger_webhooks,
)
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.get("")
async def get_webhooks(user: dict = Depends(require_permission("webhooks.manage"))):
    webhooks = await list_webhooks(get_tenant_id(user))
    return {"webhooks": webhooks, "count": len(webhooks), "known_events": KNOWN_EVENTS}


@router.post("")
async def add_webhook(data: WebhookCreate, user: dict = Depends(require_permission("webhooks.manage"))):
    webhook = await create_webhook(
        get_tenant_id(user), data.url, data.events, data.secret, user=user.get("email", "system")
    )
    webhook["has_secret"] = bool(webhook.pop("secret", None))
    return {"success": True, "webhook": webhook}


@router.post("/test")
async def test_webhooks(data: WebhookTest, user: dict = Depends(require_permission("webhooks.manage"))):
    """Fire an event to the matching subscriptions. Returns before delivery."""
    payload = data.payload or {"message": "Test event from BizFlow Pro"}
    trigger_webhooks(get_tenant_id(user), data.event, payload)
    return {"success": True, "event": data.event}


@router.patch("/{webhook_id}")
async def toggle_webhook(
    webhook_id: str,
    data: WebhookActiveUpdate,
    user: dict = Depends(require_permission("webhooks.manage"))
):
    webhook = await set_webhook_active(
        get_tenant_id(user), webhook_id, data.is_active, user=user.get("email", "system")
    )
    return {"success": True, "webhook": webhook}


@router.delete("/{webhook_id}")
async def remove_webhook(webhook_id: str, user: dict = Depends(require_permission("webhooks.manage"))):
    return await delete_webhook(get_tenant_id(user), webhook_id, user=user.get("email", "system"))
