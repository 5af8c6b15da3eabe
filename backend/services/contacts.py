"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - CRM contacts                                                  ║
║                                                                              ║
║  - Lookup key: (tenant_id, email), unique index on both                      ║
║  - find_or_create_customer() is the upsert used by the order transaction     ║
║  - Creation / tag add fire automation triggers (best-effort)                 ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict, Tuple
from pymongo.errors import DuplicateKeyError

from config import (
    db, now_iso, new_id,
    CONTACT_INITIAL_SCORE, CONTACT_PURCHASE_INCREMENT,
)
from models import ContactStage, normalize_email
from services.dashboard import invalidate_views
from services.errors import NotFoundError, ConflictError

logger = logging.getLogger("contacts")


def _new_contact_doc(tenant_id: str, name: str, email: str, phone: str = "",
                     stage: str = ContactStage.LEAD.value, score: int = 0) -> Dict:
    now = now_iso()
    return {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name,
        "email": normalize_email(email),
        "phone": phone or "",
        "stage": stage,
        "score": score,
        "tags": [],
        "created_at": now,
        "updated_at": now,
    }


async def get_contact(tenant_id: str, contact_id: str, session=None) -> Optional[Dict]:
    return await db.contacts.find_one(
        {"id": contact_id, "tenant_id": tenant_id}, {"_id": 0}, session=session
    )


async def get_contact_by_email(tenant_id: str, email: str, session=None) -> Optional[Dict]:
    return await db.contacts.find_one(
        {"email": normalize_email(email), "tenant_id": tenant_id}, {"_id": 0}, session=session
    )


# ==================== ORDER SYNC ====================

async def find_or_create_customer(tenant_id: str, name: str, email: str, session=None) -> Tuple[Dict, bool]:
    """
    CRM side of a checkout. Must run inside the order transaction.

    - absent: create with stage=CUSTOMER and the initial score
    - present: force stage=CUSTOMER, score += purchase increment, refresh updated_at

    Returns: (contact, created)
    """
    existing = await get_contact_by_email(tenant_id, email, session=session)

    if not existing:
        contact = _new_contact_doc(
            tenant_id, name, email,
            stage=ContactStage.CUSTOMER.value,
            score=CONTACT_INITIAL_SCORE
        )
        await db.contacts.insert_one(contact, session=session)
        contact.pop("_id", None)
        return contact, True

    await db.contacts.update_one(
        {"id": existing["id"], "tenant_id": tenant_id},
        {
            "$set": {"stage": ContactStage.CUSTOMER.value, "updated_at": now_iso()},
            "$inc": {"score": CONTACT_PURCHASE_INCREMENT},
        },
        session=session
    )
    contact = await get_contact(tenant_id, existing["id"], session=session)
    return contact, False


# ==================== CRUD ====================

async def create_contact(tenant_id: str, name: str, email: str, phone: str = "",
                         stage: str = ContactStage.LEAD.value) -> Dict:
    if await get_contact_by_email(tenant_id, email):
        raise ConflictError(f"A contact with email {normalize_email(email)} already exists")

    contact = _new_contact_doc(tenant_id, name, email, phone=phone, stage=stage)
    try:
        await db.contacts.insert_one(contact)
    except DuplicateKeyError:
        raise ConflictError(f"A contact with email {contact['email']} already exists")
    contact.pop("_id", None)

    invalidate_views(tenant_id, "crm", "dashboard")
    logger.info(f"[CONTACT] created {contact['id']} tenant={tenant_id}")

    from services.automation import dispatch_trigger_event
    from services.webhooks import trigger_webhooks

    await dispatch_trigger_event(tenant_id, "CONTACT_CREATED", {
        "contact_id": contact["id"],
        "contact_name": contact["name"],
        "contact_email": contact["email"],
        "contact_stage": contact["stage"],
    })
    trigger_webhooks(tenant_id, "contact.created", contact)
    return contact


async def list_contacts(tenant_id: str, stage: str = None) -> List[Dict]:
    """Newest first, with the number of orders per contact"""
    query = {"tenant_id": tenant_id}
    if stage:
        query["stage"] = stage

    contacts = await db.contacts.find(query, {"_id": 0}).sort("created_at", -1).to_list(1000)
    for c in contacts:
        c["order_count"] = await db.orders.count_documents(
            {"tenant_id": tenant_id, "contact_id": c["id"]}
        )
    return contacts


async def update_contact(tenant_id: str, contact_id: str, updates: Dict) -> Dict:
    fields = {k: v for k, v in updates.items()
              if k in ("name", "email", "phone", "stage") and v is not None}
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        other = await get_contact_by_email(tenant_id, fields["email"])
        if other and other["id"] != contact_id:
            raise ConflictError(f"A contact with email {fields['email']} already exists")
    if "stage" in fields:
        fields["stage"] = ContactStage(fields["stage"]).value

    fields["updated_at"] = now_iso()
    result = await db.contacts.update_one(
        {"id": contact_id, "tenant_id": tenant_id}, {"$set": fields}
    )
    if result.matched_count == 0:
        raise NotFoundError("Contact", contact_id)

    invalidate_views(tenant_id, "crm", "dashboard")
    contact = await get_contact(tenant_id, contact_id)

    from services.webhooks import trigger_webhooks
    trigger_webhooks(tenant_id, "contact.updated", contact)
    return contact


async def tag_contact(tenant_id: str, contact_id: str, tag: str) -> bool:
    """
    Atomic tag add. True only for the call that actually added the tag,
    concurrent callers with the same tag get False.
    """
    result = await db.contacts.update_one(
        {"id": contact_id, "tenant_id": tenant_id, "tags": {"$ne": tag}},
        {"$addToSet": {"tags": tag}, "$set": {"updated_at": now_iso()}}
    )
    return result.modified_count == 1


async def add_tag(tenant_id: str, contact_id: str, tag: str, fire_trigger: bool = True) -> Dict:
    """Adds a tag once (no duplicates), fires TAG_ADDED when it is new"""
    tag = tag.strip()
    added = await tag_contact(tenant_id, contact_id, tag)

    contact = await get_contact(tenant_id, contact_id)
    if not contact:
        raise NotFoundError("Contact", contact_id)

    if added and fire_trigger:
        from services.automation import dispatch_trigger_event
        await dispatch_trigger_event(tenant_id, "TAG_ADDED", {"contact_id": contact_id, "tag": tag})
    return contact
