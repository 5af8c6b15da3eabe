"""
BizFlow Pro - Routes Jobs (production tracking)
"""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from models import JobCreate, JobStageUpdate, JobStatus
from services.jobs import create_job, list_jobs, get_job, update_job_stage
from services.permissions import require_permission, get_tenant_id

router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("")
async def get_jobs(
    status: Optional[JobStatus] = Query(None, description="Filter by status"),
    user: dict = Depends(require_permission("jobs.view"))
):
    jobs = await list_jobs(get_tenant_id(user), status.value if status else None)
    return {"jobs": jobs, "count": len(jobs)}


@router.post("")
async def add_job(data: JobCreate, user: dict = Depends(require_permission("jobs.manage"))):
    job = await create_job(get_tenant_id(user), data.name, data.order_id)
    return {"success": True, "job": job}


@router.get("/{job_id}")
async def get_one_job(job_id: str, user: dict = Depends(require_permission("jobs.view"))):
    return await get_job(get_tenant_id(user), job_id)


@router.put("/stages/{stage_id}")
async def set_stage_status(
    stage_id: str,
    data: JobStageUpdate,
    user: dict = Depends(require_permission("jobs.manage"))
):
    job = await update_job_stage(get_tenant_id(user), stage_id, data.status.value)
    return {"success": True, "job": job}
