"""
BizFlow Pro - Routes Event Log (audit trail of the caller's tenant)
"""

from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from config import db
from services.event_logger import list_events
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/event-log", tags=["EventLog"])


@router.get("")
async def get_events(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    user: dict = Depends(require_permission("activity.view"))
):
    return await list_events(get_tenant_id(user), action, entity_type, entity_id, limit, skip)


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    user: dict = Depends(require_permission("activity.view"))
):
    event = await db.event_log.find_one({"id": event_id, "tenant_id": get_tenant_id(user)}, {"_id": 0})
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event
