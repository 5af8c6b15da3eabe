"""
BizFlow Pro - Routes Contacts (CRM)
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Optional

from models import ContactCreate, ContactUpdate, TagAdd, ContactStage, ContactResponse
from services.contacts import create_contact, list_contacts, get_contact, update_contact, add_tag
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/contacts", tags=["Contacts"])


@router.get("")
async def get_contacts(
    stage: Optional[ContactStage] = Query(None, description="Filter by lifecycle stage"),
    user: dict = Depends(require_permission("contacts.view"))
):
    contacts = await list_contacts(get_tenant_id(user), stage.value if stage else None)
    return {"contacts": contacts, "count": len(contacts)}


@router.post("")
async def add_contact(data: ContactCreate, user: dict = Depends(require_permission("contacts.create"))):
    contact = await create_contact(
        get_tenant_id(user), data.name, data.email, phone=data.phone or "", stage=data.stage.value
    )
    return {"success": True, "contact": contact}


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_one_contact(contact_id: str, user: dict = Depends(require_permission("contacts.view"))):
    contact = await get_contact(get_tenant_id(user), contact_id)
    if not contact:
        raise HTTPException(status_code=404, detail="Contact not found")
    return contact


@router.put("/{contact_id}")
async def edit_contact(
    contact_id: str,
    data: ContactUpdate,
    user: dict = Depends(require_permission("contacts.edit"))
):
    contact = await update_contact(get_tenant_id(user), contact_id, data.model_dump(exclude_none=True))
    return {"success": True, "contact": contact}


@router.post("/{contact_id}/tags")
async def tag_contact(
    contact_id: str,
    data: TagAdd,
    user: dict = Depends(require_permission("contacts.edit"))
):
    contact = await add_tag(get_tenant_id(user), contact_id, data.tag)
    return {"success": True, "contact": contact}
