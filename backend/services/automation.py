"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Automation engine                                             ║
║                                                                              ║
║  Two entry points:                                                           ║
║  - evaluate_order_triggers(): built-in rules after a committed order (VIP)   ║
║  - process_trigger_event(): tenant workflows (trigger -> ordered actions)    ║
║                                                                              ║
║  Everything here is BEST-EFFORT: callers never see an automation error.      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
from datetime import datetime, timezone, timedelta
from typing import Dict, List, Any

from config import db, now_iso, new_id, VIP_SCORE_THRESHOLD
from email_service import email_service
from models import TriggerType, ActionType
from services.errors import NotFoundError
from services.event_logger import log_event

logger = logging.getLogger("automation")

VIP_RULE = "vip_follow_up"
VIP_TAG = "VIP"


# ==================== ORDER RULES ====================

async def evaluate_order_triggers(tenant_id: str, contact_id: str, order_id: str) -> List[str]:
    """
    Built-in rules evaluated once per committed order.

    VIP: contact score above VIP_SCORE_THRESHOLD -> tag VIP + welcome email.
    The email goes out only the first time the contact is tagged.

    Then the tenant's ORDER_CREATED workflows run.

    Returns: names of the rules that fired
    """
    logger.info(f"[AUTOMATION] Checking triggers for contact {contact_id} after order {order_id}")
    fired = []

    contact = await db.contacts.find_one({"id": contact_id, "tenant_id": tenant_id}, {"_id": 0})
    if not contact:
        logger.warning(f"[AUTOMATION] contact {contact_id} not found, order rules skipped")
        return fired

    if contact.get("score", 0) > VIP_SCORE_THRESHOLD:
        logger.info(f"[AUTOMATION] TRIGGERED: VIP follow-up for {contact['email']} (score={contact['score']})")
        fired.append(VIP_RULE)

        from services.contacts import tag_contact
        if await tag_contact(tenant_id, contact_id, VIP_TAG):
            sent = await asyncio.to_thread(email_service.send_vip_welcome, contact)
            if not sent:
                logger.warning(f"[AUTOMATION] VIP email not sent to {contact['email']}")
        else:
            logger.info(f"[AUTOMATION] {contact['email']} already VIP, no email")

    results = await process_trigger_event(tenant_id, TriggerType.ORDER_CREATED.value, {
        "contact_id": contact_id,
        "contact_email": contact.get("email"),
        "contact_stage": contact.get("stage"),
        "order_id": order_id,
    })
    fired.extend(r["workflow_name"] for r in results)
    return fired


# ==================== WORKFLOWS ====================

def trigger_matches(trigger_config: Dict, data: Dict) -> bool:
    """Every config key must equal the event data value. Empty config matches."""
    if not trigger_config:
        return True
    return all(data.get(key) == value for key, value in trigger_config.items())


async def process_trigger_event(tenant_id: str, event_type: str, data: Dict) -> List[Dict]:
    """
    Run every active workflow of the tenant listening to event_type.

    Returns one entry per executed workflow:
        {"workflow_id", "workflow_name", "actions": [{"type", "success", "error"?}]}
    """
    workflows = await db.workflows.find(
        {"tenant_id": tenant_id, "is_active": True, "trigger.type": event_type},
        {"_id": 0}
    ).to_list(500)

    results = []
    for workflow in workflows:
        trigger = workflow.get("trigger") or {}
        if not trigger_matches(trigger.get("config") or {}, data):
            continue

        logger.info(f"[AUTOMATION] Workflow {workflow['name']} triggered by {event_type}")
        action_results = await execute_workflow(tenant_id, workflow, data)
        results.append({
            "workflow_id": workflow["id"],
            "workflow_name": workflow["name"],
            "actions": action_results,
        })

    return results


async def dispatch_trigger_event(tenant_id: str, event_type: str, data: Dict) -> List[Dict]:
    """process_trigger_event() that never raises (used by the CRM write paths)"""
    try:
        return await process_trigger_event(tenant_id, event_type, data)
    except Exception as e:
        logger.error(f"[AUTOMATION] {event_type} processing failed tenant={tenant_id}: {e}")
        return []


async def execute_workflow(tenant_id: str, workflow: Dict, data: Dict) -> List[Dict]:
    """Actions run in `order`; a failing one is recorded and the next one still runs"""
    results = []
    actions = sorted(workflow.get("actions") or [], key=lambda a: a.get("order", 0))

    for action in actions:
        action_type = action.get("type")
        try:
            await _execute_action(tenant_id, action_type, action.get("config") or {}, data)
            results.append({"type": action_type, "success": True})
        except Exception as e:
            logger.warning(f"[AUTOMATION] Action {action_type} of {workflow.get('name')} failed: {e}")
            results.append({"type": action_type, "success": False, "error": str(e)})

    await log_event("workflow_run", "workflow", workflow.get("id", ""), tenant_id=tenant_id,
                    details={"actions": results})
    return results


# ==================== ACTIONS ====================

async def _execute_action(tenant_id: str, action_type: str, config: Dict, data: Dict):
    handler = ACTION_HANDLERS.get(action_type)
    if handler is None:
        raise ValueError(f"Unknown action type: {action_type}")
    await handler(tenant_id, config, data)


def _require_contact_id(data: Dict) -> str:
    contact_id = data.get("contact_id")
    if not contact_id:
        raise ValueError("event has no contact_id")
    return contact_id


async def _action_send_email(tenant_id: str, config: Dict, data: Dict):
    to = config.get("to")
    if not to:
        contact = await db.contacts.find_one(
            {"id": _require_contact_id(data), "tenant_id": tenant_id}, {"_id": 0}
        )
        if not contact:
            raise NotFoundError("Contact", data.get("contact_id"))
        to = contact["email"]

    subject = config.get("subject") or "Message from BizFlow Pro"
    body = config.get("body") or ""
    sent = await asyncio.to_thread(email_service.send_email, to, subject, body)
    if not sent:
        raise RuntimeError(f"email to {to} not sent")


async def _action_add_tag(tenant_id: str, config: Dict, data: Dict):
    from services.contacts import add_tag
    tag = config.get("tag")
    if not tag:
        raise ValueError("ADD_TAG needs a tag")
    # no re-trigger: a workflow tagging contacts would loop on TAG_ADDED
    await add_tag(tenant_id, _require_contact_id(data), tag, fire_trigger=False)


async def _action_create_task(tenant_id: str, config: Dict, data: Dict):
    from services.tasks import create_task
    due_in_days = int(config.get("due_in_days", 1))
    due_date = (datetime.now(timezone.utc) + timedelta(days=due_in_days)).isoformat()
    await create_task(
        tenant_id,
        title=config.get("title") or "Follow up",
        description=config.get("description") or "",
        due_date=due_date,
        assigned_to_id=config.get("assigned_to_id"),
        contact_id=data.get("contact_id"),
    )


async def _action_update_contact_stage(tenant_id: str, config: Dict, data: Dict):
    from services.contacts import update_contact
    stage = config.get("stage")
    if not stage:
        raise ValueError("UPDATE_CONTACT_STAGE needs a stage")
    await update_contact(tenant_id, _require_contact_id(data), {"stage": stage})


async def _action_webhook(tenant_id: str, config: Dict, data: Dict):
    from services.webhooks import trigger_webhooks
    trigger_webhooks(tenant_id, config.get("event") or "workflow.triggered", data)


ACTION_HANDLERS = {
    ActionType.SEND_EMAIL.value: _action_send_email,
    ActionType.ADD_TAG.value: _action_add_tag,
    ActionType.CREATE_TASK.value: _action_create_task,
    ActionType.UPDATE_CONTACT_STAGE.value: _action_update_contact_stage,
    ActionType.WEBHOOK.value: _action_webhook,
}


# ==================== WORKFLOW CRUD ====================

async def create_workflow(tenant_id: str, name: str, trigger: Dict, actions: List[Dict],
                          is_active: bool = True, user: str = "system") -> Dict:
    workflow = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name,
        "is_active": is_active,
        "trigger": {"type": trigger["type"], "config": trigger.get("config") or {}},
        "actions": [
            {"type": a["type"], "config": a.get("config") or {}, "order": a.get("order", i)}
            for i, a in enumerate(actions)
        ],
        "created_at": now_iso(),
    }
    await db.workflows.insert_one(workflow)
    workflow.pop("_id", None)

    await log_event("workflow_create", "workflow", workflow["id"], tenant_id=tenant_id, user=user,
                    details={"name": name, "trigger": workflow["trigger"]["type"]})
    return workflow


async def list_workflows(tenant_id: str) -> List[Dict]:
    return await db.workflows.find(
        {"tenant_id": tenant_id}, {"_id": 0}
    ).sort("created_at", -1).to_list(500)


async def set_workflow_active(tenant_id: str, workflow_id: str, is_active: bool,
                              user: str = "system") -> Dict[str, Any]:
    result = await db.workflows.update_one(
        {"id": workflow_id, "tenant_id": tenant_id},
        {"$set": {"is_active": is_active}}
    )
    if result.matched_count == 0:
        raise NotFoundError("Workflow", workflow_id)

    await log_event("workflow_toggle", "workflow", workflow_id, tenant_id=tenant_id, user=user,
                    details={"is_active": is_active})
    return await db.workflows.find_one({"id": workflow_id, "tenant_id": tenant_id}, {"_id": 0})
