"""
BizFlow Pro - Routes Pipelines
Pipelines, opportunities, custom stage fields and field values.
"""

from fastapi import APIRouter, Depends

from models import (
    PipelineCreate,
    OpportunityCreate,
    OpportunityMove,
    StageFieldCreate,
    StageFieldUpdate,
    FieldValueSave,
)
from services import pipelines as svc
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/pipelines", tags=["Pipelines"])


# ==================== PIPELINES ====================

@router.get("")
async def get_pipelines(user: dict = Depends(require_permission("pipelines.view"))):
    pipelines = await svc.list_pipelines(get_tenant_id(user))
    return {"pipelines": pipelines, "count": len(pipelines)}


@router.post("")
async def add_pipeline(data: PipelineCreate, user: dict = Depends(require_permission("pipelines.manage"))):
    pipeline = await svc.create_pipeline(get_tenant_id(user), data.name)
    return {"success": True, "pipeline": pipeline}


# ==================== OPPORTUNITIES ====================

@router.post("/opportunities")
async def add_opportunity(data: OpportunityCreate, user: dict = Depends(require_permission("pipelines.manage"))):
    opportunity = await svc.create_opportunity(
        get_tenant_id(user), data.pipeline_id, data.stage_id, data.title,
        value=data.value, contact_id=data.contact_id
    )
    return {"success": True, "opportunity": opportunity}


@router.get("/opportunities/{opportunity_id}")
async def get_opportunity(opportunity_id: str, user: dict = Depends(require_permission("pipelines.view"))):
    tenant_id = get_tenant_id(user)
    opportunity = await svc.get_opportunity(tenant_id, opportunity_id)
    opportunity["field_values"] = await svc.get_opportunity_field_values(tenant_id, opportunity_id)
    return opportunity


@router.put("/opportunities/{opportunity_id}/stage")
async def move_opportunity(
    opportunity_id: str,
    data: OpportunityMove,
    user: dict = Depends(require_permission("pipelines.manage"))
):
    opportunity = await svc.move_opportunity(get_tenant_id(user), opportunity_id, data.stage_id)
    return {"success": True, "opportunity": opportunity}


@router.post("/opportunities/{opportunity_id}/score")
async def score_opportunity(opportunity_id: str, user: dict = Depends(require_permission("pipelines.manage"))):
    return await svc.score_opportunity(get_tenant_id(user), opportunity_id)


@router.get("/opportunities/{opportunity_id}/summary")
async def summarize_opportunity(opportunity_id: str, user: dict = Depends(require_permission("pipelines.view"))):
    return {"summary": await svc.summarize_opportunity(get_tenant_id(user), opportunity_id)}


@router.put("/opportunities/{opportunity_id}/fields/{field_id}")
async def save_field_value(
    opportunity_id: str,
    field_id: str,
    data: FieldValueSave,
    user: dict = Depends(require_permission("pipelines.manage"))
):
    value = await svc.save_field_value(get_tenant_id(user), opportunity_id, field_id, data.value)
    return {"success": True, "value": value}


# ==================== STAGE FIELDS ====================

@router.get("/stages/{stage_id}/fields")
async def get_stage_fields(stage_id: str, user: dict = Depends(require_permission("pipelines.view"))):
    fields = await svc.get_stage_fields(get_tenant_id(user), stage_id)
    return {"fields": fields, "count": len(fields)}


@router.post("/stages/{stage_id}/fields")
async def add_stage_field(
    stage_id: str,
    data: StageFieldCreate,
    user: dict = Depends(require_permission("pipelines.manage"))
):
    field = await svc.create_field(get_tenant_id(user), stage_id, **data.model_dump())
    return {"success": True, "field": field}


@router.put("/fields/{field_id}")
async def edit_stage_field(
    field_id: str,
    data: StageFieldUpdate,
    user: dict = Depends(require_permission("pipelines.manage"))
):
    field = await svc.update_field(get_tenant_id(user), field_id, data.model_dump(exclude_none=True))
    return {"success": True, "field": field}


@router.delete("/fields/{field_id}")
async def remove_stage_field(field_id: str, user: dict = Depends(require_permission("pipelines.manage"))):
    return await svc.delete_field(get_tenant_id(user), field_id)
