"""
BizFlow Pro - Production jobs

job         {id, tenant_id, name, order_id, status, start_date, end_date}
job_stage   {id, tenant_id, job_id, name, order, status, completed_at}

The job status follows its stages:
- every stage COMPLETED            -> job COMPLETED (end_date set)
- a stage leaves PENDING           -> PENDING job becomes IN_PROGRESS (start_date set)
- a stage of a COMPLETED job reopens -> job back to IN_PROGRESS
"""

import logging
from typing import List, Dict

from config import db, now_iso, new_id
from models import DEFAULT_JOB_STAGES, JobStatus, VALID_JOB_STATUSES
from services.errors import NotFoundError
from services.webhooks import trigger_webhooks

logger = logging.getLogger("jobs")


async def create_job(tenant_id: str, name: str, order_id: str = None) -> Dict:
    """New PENDING job with the default workshop stages"""
    if order_id and not await db.orders.find_one({"id": order_id, "tenant_id": tenant_id}, {"_id": 0, "id": 1}):
        raise NotFoundError("Order", order_id)

    now = now_iso()
    job = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name.strip(),
        "order_id": order_id,
        "status": JobStatus.PENDING.value,
        "start_date": None,
        "end_date": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.jobs.insert_one(job)
    job.pop("_id", None)

    stages = []
    for i, stage_name in enumerate(DEFAULT_JOB_STAGES):
        stage = {
            "id": new_id(),
            "tenant_id": tenant_id,
            "job_id": job["id"],
            "name": stage_name,
            "order": i,
            "status": JobStatus.PENDING.value,
            "completed_at": None,
        }
        await db.job_stages.insert_one(stage)
        stage.pop("_id", None)
        stages.append(stage)

    logger.info(f"[JOB] created {job['id']} tenant={tenant_id} order={order_id}")
    return {**job, "stages": stages}


async def _stages_of(tenant_id: str, job_id: str) -> List[Dict]:
    return await db.job_stages.find(
        {"tenant_id": tenant_id, "job_id": job_id}, {"_id": 0}
    ).sort("order", 1).to_list(100)


async def get_job(tenant_id: str, job_id: str) -> Dict:
    job = await db.jobs.find_one({"id": job_id, "tenant_id": tenant_id}, {"_id": 0})
    if not job:
        raise NotFoundError("Job", job_id)
    job["stages"] = await _stages_of(tenant_id, job_id)
    return job


async def list_jobs(tenant_id: str, status: str = None) -> List[Dict]:
    """Newest first, stages ordered, with the linked order summary"""
    query = {"tenant_id": tenant_id}
    if status:
        query["status"] = status
    jobs = await db.jobs.find(query, {"_id": 0}).sort("created_at", -1).to_list(500)

    for job in jobs:
        job["stages"] = await _stages_of(tenant_id, job["id"])
        job["order"] = None
        if job.get("order_id"):
            job["order"] = await db.orders.find_one(
                {"id": job["order_id"], "tenant_id": tenant_id},
                {"_id": 0, "id": 1, "customer_name": 1, "total": 1, "status": 1}
            )
    return jobs


async def update_job_stage(tenant_id: str, stage_id: str, status: str) -> Dict:
    """
    Set one stage status, then roll the job status up from all its stages.
    Returns the job with its stages.
    """
    if status not in VALID_JOB_STATUSES:
        raise ValueError(f"Invalid stage status: {status}. Valid: {VALID_JOB_STATUSES}")

    now = now_iso()
    stage = await db.job_stages.find_one({"id": stage_id, "tenant_id": tenant_id}, {"_id": 0})
    if not stage:
        raise NotFoundError("Job stage", stage_id)

    await db.job_stages.update_one(
        {"id": stage_id, "tenant_id": tenant_id},
        {"$set": {"status": status, "completed_at": now if status == JobStatus.COMPLETED.value else None}}
    )

    job_id = stage["job_id"]
    stages = await _stages_of(tenant_id, job_id)
    completed = JobStatus.COMPLETED.value

    if all(s["status"] == completed for s in stages):
        result = await db.jobs.update_one(
            {"id": job_id, "tenant_id": tenant_id, "status": {"$ne": completed}},
            {"$set": {"status": completed, "end_date": now, "updated_at": now}}
        )
        if result.modified_count == 1:
            logger.info(f"[JOB] {job_id} completed")
            trigger_webhooks(tenant_id, "job.completed", await get_job(tenant_id, job_id))
    else:
        reopened = await db.jobs.update_one(
            {"id": job_id, "tenant_id": tenant_id, "status": completed},
            {"$set": {"status": JobStatus.IN_PROGRESS.value, "end_date": None, "updated_at": now}}
        )
        if reopened.modified_count == 1:
            logger.info(f"[JOB] {job_id} reopened by stage {stage_id}")
        elif status != JobStatus.PENDING.value:
            await db.jobs.update_one(
                {"id": job_id, "tenant_id": tenant_id, "status": JobStatus.PENDING.value},
                {"$set": {"status": JobStatus.IN_PROGRESS.value, "start_date": now, "updated_at": now}}
            )

    return await get_job(tenant_id, job_id)
