"""
BizFlow Pro - Event Logger

Centralized audit trail for all sensitive actions.
Single function to call from any route/service.
"""

import uuid
from config import db, now_iso, sanitize


async def log_event(
    action: str,
    entity_type: str,
    entity_id: str,
    tenant_id: str = "",
    user: str = "system",
    details: dict = None,
    session=None
):
    """
    Write a single event to the event_log collection.

    Args:
        action: e.g. order_create, order_status_change, webhook_create
        entity_type: order | contact | product | webhook | opportunity | user | tenant
        entity_id: ID of the primary record
        tenant_id: owning tenant
        user: email of user performing action
        details: free-form dict (old_value, new_value, ...), secrets redacted
        session: optional motor session to write inside a transaction
    """
    doc = {
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "tenant_id": tenant_id,
        "user": user,
        "details": sanitize(details or {}),
        "created_at": now_iso()
    }
    await db.event_log.insert_one(doc, session=session)
    doc.pop("_id", None)
    return doc


async def list_events(
    tenant_id: str,
    action: str = None,
    entity_type: str = None,
    entity_id: str = None,
    limit: int = 100,
    skip: int = 0
):
    """Tenant audit trail, newest first"""
    query = {"tenant_id": tenant_id}
    if action:
        query["action"] = action
    if entity_type:
        query["entity_type"] = entity_type
    if entity_id:
        query["entity_id"] = entity_id

    events = await db.event_log.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)

    total = await db.event_log.count_documents(query)
    return {"events": events, "total": total, "limit": limit, "skip": skip}
