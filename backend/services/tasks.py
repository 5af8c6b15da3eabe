"""
BizFlow Pro - CRM tasks (follow-ups assigned to tenant users)
"""

import logging
from typing import List, Dict

from config import db, now_iso, new_id
from models import TASK_TODO, TASK_COMPLETED
from services.errors import NotFoundError

logger = logging.getLogger("tasks")


async def create_task(tenant_id: str, title: str, due_date: str, assigned_to_id: str = None,
                      description: str = "", contact_id: str = None) -> Dict:
    task = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "title": title,
        "description": description or "",
        "due_date": due_date,
        "status": TASK_TODO,
        "assigned_to_id": assigned_to_id,
        "contact_id": contact_id,
        "created_at": now_iso(),
    }
    await db.tasks.insert_one(task)
    task.pop("_id", None)
    logger.info(f"[TASK] created {task['id']} assigned_to={assigned_to_id} tenant={tenant_id}")
    return task


async def get_user_tasks(tenant_id: str, user_id: str) -> List[Dict]:
    """Tasks assigned to a user, soonest due first, with a contact summary"""
    tasks = await db.tasks.find(
        {"tenant_id": tenant_id, "assigned_to_id": user_id}, {"_id": 0}
    ).sort("due_date", 1).to_list(1000)

    for task in tasks:
        task["contact"] = None
        if task.get("contact_id"):
            task["contact"] = await db.contacts.find_one(
                {"id": task["contact_id"], "tenant_id": tenant_id},
                {"_id": 0, "id": 1, "name": 1, "email": 1}
            )
    return tasks


async def complete_task(tenant_id: str, task_id: str) -> Dict:
    result = await db.tasks.update_one(
        {"id": task_id, "tenant_id": tenant_id},
        {"$set": {"status": TASK_COMPLETED, "completed_at": now_iso()}}
    )
    if result.matched_count == 0:
        raise NotFoundError("Task", task_id)
    return await db.tasks.find_one({"id": task_id, "tenant_id": tenant_id}, {"_id": 0})
