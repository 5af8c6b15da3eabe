"""
BizFlow Pro - Routes Workflows (automation)
"""

from fastapi import APIRouter, Depends

from models import WorkflowCreate, WorkflowActiveUpdate, TriggerEventIn
from services.automation import (
    create_workflow,
    list_workflows,
    set_workflow_active,
    process_trigger_event,
)
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/workflows", tags=["Automation"])


@router.get("")
async def get_workflows(user: dict = Depends(require_permission("automation.view"))):
    workflows = await list_workflows(get_tenant_id(user))
    return {"workflows": workflows, "count": len(workflows)}


@router.post("")
async def add_workflow(data: WorkflowCreate, user: dict = Depends(require_permission("automation.manage"))):
    payload = data.model_dump(mode="json")
    workflow = await create_workflow(
        get_tenant_id(user),
        payload["name"],
        payload["trigger"],
        payload["actions"],
        is_active=payload["is_active"],
        user=user.get("email", "system")
    )
    return {"success": True, "workflow": workflow}


@router.patch("/{workflow_id}")
async def toggle_workflow(
    workflow_id: str,
    data: WorkflowActiveUpdate,
    user: dict = Depends(require_permission("automation.manage"))
):
    workflow = await set_workflow_active(
        get_tenant_id(user), workflow_id, data.is_active, user=user.get("email", "system")
    )
    return {"success": True, "workflow": workflow}


@router.post("/trigger")
async def trigger_event(data: TriggerEventIn, user: dict = Depends(require_permission("automation.manage"))):
    """Run the workflows of an event by hand (form submissions, replays)"""
    results = await process_trigger_event(get_tenant_id(user), data.type.value, data.data)
    return {"success": True, "executed": results}
