"""
BizFlow Pro - Routes Public forms

GET  /api/forms/{slug}            public, no auth
POST /api/forms/{slug}/submit     public, no auth
PUT  /api/forms/pipelines/{id}    switch a pipeline form on/off (pipelines.manage)
"""

from fastapi import APIRouter, Depends

from models import PublicFormToggle, PublicFormSubmit
from services.forms import set_public_form, get_public_form, submit_public_form
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/forms", tags=["Forms"])


@router.put("/pipelines/{pipeline_id}")
async def toggle_public_form(
    pipeline_id: str,
    data: PublicFormToggle,
    user: dict = Depends(require_permission("pipelines.manage"))
):
    result = await set_public_form(get_tenant_id(user), pipeline_id, data.enabled)
    return {"success": True, **result}


@router.get("/{slug}")
async def public_form(slug: str):
    return await get_public_form(slug)


@router.post("/{slug}/submit")
async def public_form_submit(slug: str, data: PublicFormSubmit):
    result = await submit_public_form(
        slug, data.name, data.email, phone=data.phone, values=data.values, title=data.title
    )
    return {"success": True, "opportunity_id": result["opportunity"]["id"]}
