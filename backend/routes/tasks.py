"""
BizFlow Pro - Routes Tasks
"""

from fastapi import APIRouter, Depends
from typing import Optional

from models import TaskCreate
from services.tasks import create_task, get_user_tasks, complete_task
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("")
async def my_tasks(
    assigned_to: Optional[str] = None,
    user: dict = Depends(require_permission("tasks.view"))
):
    """Tasks of the caller (or of another user of the tenant)"""
    tasks = await get_user_tasks(get_tenant_id(user), assigned_to or user["id"])
    return {"tasks": tasks, "count": len(tasks)}


@router.post("")
async def add_task(data: TaskCreate, user: dict = Depends(require_permission("tasks.manage"))):
    task = await create_task(
        get_tenant_id(user),
        title=data.title,
        due_date=data.due_date,
        assigned_to_id=data.assigned_to_id or user["id"],
        description=data.description or "",
        contact_id=data.contact_id,
    )
    return {"success": True, "task": task}


@router.post("/{task_id}/complete")
async def finish_task(task_id: str, user: dict = Depends(require_permission("tasks.manage"))):
    task = await complete_task(get_tenant_id(user), task_id)
    return {"success": True, "task": task}
