"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Sales pipelines                                               ║
║                                                                              ║
║  pipeline          {id, tenant_id, name, stages: [{id, name, order}]}        ║
║  opportunity       one deal sitting in one stage                             ║
║  stage_field       custom field definition attached to a stage               ║
║  field value       one value per (opportunity, field), unique index          ║
║                                                                              ║
║  Moving an opportunity fires PIPELINE_STAGE_CHANGED (best-effort).           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict

from pymongo.errors import DuplicateKeyError

from config import db, now_iso, new_id
from models import DEFAULT_STAGES
from services.dashboard import invalidate_views
from services.errors import NotFoundError
from services.scoring import generate_lead_score, generate_summary

logger = logging.getLogger("pipelines")


# ==================== PIPELINES ====================

async def create_pipeline(tenant_id: str, name: str) -> Dict:
    """New pipeline with the default stages"""
    pipeline = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "name": name,
        "stages": [
            {"id": new_id(), "name": stage_name, "order": i}
            for i, stage_name in enumerate(DEFAULT_STAGES)
        ],
        "created_at": now_iso(),
    }
    await db.pipelines.insert_one(pipeline)
    pipeline.pop("_id", None)
    logger.info(f"[PIPELINE] created {pipeline['id']} tenant={tenant_id}")

    for stage in pipeline["stages"]:
        stage["opportunities"] = []
    return pipeline


async def list_pipelines(tenant_id: str) -> List[Dict]:
    """Pipelines with their stages (ordered) and the opportunities of each stage"""
    pipelines = await db.pipelines.find(
        {"tenant_id": tenant_id}, {"_id": 0}
    ).sort("created_at", 1).to_list(100)

    for pipeline in pipelines:
        opportunities = await db.opportunities.find(
            {"tenant_id": tenant_id, "pipeline_id": pipeline["id"]}, {"_id": 0}
        ).sort("created_at", -1).to_list(5000)

        for opp in opportunities:
            opp["contact"] = await _contact_summary(tenant_id, opp.get("contact_id"))

        pipeline["stages"] = sorted(pipeline.get("stages", []), key=lambda s: s.get("order", 0))
        for stage in pipeline["stages"]:
            stage["opportunities"] = [o for o in opportunities if o["stage_id"] == stage["id"]]

    return pipelines


async def _find_stage(tenant_id: str, stage_id: str) -> Optional[Dict]:
    """Returns {"pipeline": ..., "stage": ...} or None"""
    pipeline = await db.pipelines.find_one(
        {"tenant_id": tenant_id, "stages.id": stage_id}, {"_id": 0}
    )
    if not pipeline:
        return None
    stage = next(s for s in pipeline["stages"] if s["id"] == stage_id)
    return {"pipeline": pipeline, "stage": stage}


async def _contact_summary(tenant_id: str, contact_id: str) -> Optional[Dict]:
    if not contact_id:
        return None
    return await db.contacts.find_one(
        {"id": contact_id, "tenant_id": tenant_id},
        {"_id": 0, "id": 1, "name": 1, "email": 1, "phone": 1}
    )


# ==================== OPPORTUNITIES ====================

async def create_opportunity(tenant_id: str, pipeline_id: str, stage_id: str, title: str,
                             value: float = 0.0, contact_id: str = None) -> Dict:
    found = await _find_stage(tenant_id, stage_id)
    if not found or found["pipeline"]["id"] != pipeline_id:
        raise NotFoundError("Stage", stage_id)
    if contact_id and not await _contact_summary(tenant_id, contact_id):
        raise NotFoundError("Contact", contact_id)

    now = now_iso()
    opportunity = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "pipeline_id": pipeline_id,
        "stage_id": stage_id,
        "contact_id": contact_id,
        "title": title,
        "value": float(value),
        "ai_score": None,
        "ai_reasoning": None,
        "created_at": now,
        "updated_at": now,
    }
    await db.opportunities.insert_one(opportunity)
    opportunity.pop("_id", None)

    invalidate_views(tenant_id, "crm", "dashboard")
    return opportunity


async def get_opportunity(tenant_id: str, opportunity_id: str) -> Dict:
    opportunity = await db.opportunities.find_one(
        {"id": opportunity_id, "tenant_id": tenant_id}, {"_id": 0}
    )
    if not opportunity:
        raise NotFoundError("Opportunity", opportunity_id)
    return opportunity


async def move_opportunity(tenant_id: str, opportunity_id: str, stage_id: str) -> Dict:
    opportunity = await get_opportunity(tenant_id, opportunity_id)
    found = await _find_stage(tenant_id, stage_id)
    if not found or found["pipeline"]["id"] != opportunity["pipeline_id"]:
        raise NotFoundError("Stage", stage_id)

    old_stage_id = opportunity["stage_id"]
    if old_stage_id == stage_id:
        return opportunity

    await db.opportunities.update_one(
        {"id": opportunity_id, "tenant_id": tenant_id},
        {"$set": {"stage_id": stage_id, "updated_at": now_iso()}}
    )
    opportunity["stage_id"] = stage_id
    logger.info(f"[PIPELINE] opportunity {opportunity_id} {old_stage_id} -> {stage_id}")

    invalidate_views(tenant_id, "crm", "dashboard")

    from services.automation import dispatch_trigger_event
    from services.webhooks import trigger_webhooks

    event = {
        "opportunity_id": opportunity_id,
        "contact_id": opportunity.get("contact_id"),
        "old_stage_id": old_stage_id,
        "new_stage_id": stage_id,
        "new_stage_name": found["stage"]["name"],
    }
    await dispatch_trigger_event(tenant_id, "PIPELINE_STAGE_CHANGED", event)
    trigger_webhooks(tenant_id, "opportunity.stage_changed", event)
    return opportunity


async def _enriched(tenant_id: str, opportunity: Dict) -> Dict:
    found = await _find_stage(tenant_id, opportunity["stage_id"])
    return {
        **opportunity,
        "stage": found["stage"] if found else None,
        "contact": await _contact_summary(tenant_id, opportunity.get("contact_id")),
    }


async def score_opportunity(tenant_id: str, opportunity_id: str) -> Dict:
    """Compute and store the heuristic score. Returns {score, reasoning}."""
    opportunity = await get_opportunity(tenant_id, opportunity_id)
    result = generate_lead_score(await _enriched(tenant_id, opportunity))

    await db.opportunities.update_one(
        {"id": opportunity_id, "tenant_id": tenant_id},
        {"$set": {"ai_score": result["score"], "ai_reasoning": result["reasoning"], "updated_at": now_iso()}}
    )
    return result


async def summarize_opportunity(tenant_id: str, opportunity_id: str) -> str:
    opportunity = await get_opportunity(tenant_id, opportunity_id)
    return generate_summary(await _enriched(tenant_id, opportunity))


# ==================== STAGE FIELDS ====================

async def create_field(tenant_id: str, stage_id: str, name: str, type: str = "text",
                       required: bool = False, options: str = None, order: int = 0,
                       show_in_form: bool = False, form_label: str = None) -> Dict:
    if not await _find_stage(tenant_id, stage_id):
        raise NotFoundError("Stage", stage_id)

    field = {
        "id": new_id(),
        "tenant_id": tenant_id,
        "stage_id": stage_id,
        "name": name,
        "type": type,
        "required": required,
        "options": options,
        "order": order,
        "show_in_form": show_in_form,
        "form_label": form_label,
    }
    await db.stage_fields.insert_one(field)
    field.pop("_id", None)
    return field


async def update_field(tenant_id: str, field_id: str, updates: Dict) -> Dict:
    editable = ("name", "required", "options", "show_in_form", "form_label")
    fields = {k: v for k, v in updates.items() if k in editable and v is not None}
    if fields:
        result = await db.stage_fields.update_one(
            {"id": field_id, "tenant_id": tenant_id}, {"$set": fields}
        )
        if result.matched_count == 0:
            raise NotFoundError("Field", field_id)

    field = await db.stage_fields.find_one({"id": field_id, "tenant_id": tenant_id}, {"_id": 0})
    if not field:
        raise NotFoundError("Field", field_id)
    return field


async def delete_field(tenant_id: str, field_id: str) -> Dict:
    """Deletes the definition and every stored value of it"""
    result = await db.stage_fields.delete_one({"id": field_id, "tenant_id": tenant_id})
    if result.deleted_count == 0:
        raise NotFoundError("Field", field_id)
    await db.opportunity_field_values.delete_many({"field_id": field_id, "tenant_id": tenant_id})
    return {"success": True}


async def get_stage_fields(tenant_id: str, stage_id: str) -> List[Dict]:
    return await db.stage_fields.find(
        {"tenant_id": tenant_id, "stage_id": stage_id}, {"_id": 0}
    ).sort("order", 1).to_list(200)


# ==================== FIELD VALUES ====================

async def save_field_value(tenant_id: str, opportunity_id: str, field_id: str, value: str) -> Dict:
    """
    One value per (opportunity, field): update it if present, else create it.

    The unique index on (opportunity_id, field_id) settles two concurrent
    first saves: the loser gets DuplicateKeyError and updates instead.
    """
    await get_opportunity(tenant_id, opportunity_id)
    if not await db.stage_fields.find_one({"id": field_id, "tenant_id": tenant_id}, {"_id": 0}):
        raise NotFoundError("Field", field_id)

    key = {"opportunity_id": opportunity_id, "field_id": field_id}
    now = now_iso()

    existing = await db.opportunity_field_values.find_one(key, {"_id": 0})
    if not existing:
        doc = {"id": new_id(), "tenant_id": tenant_id, **key, "value": value, "updated_at": now}
        try:
            await db.opportunity_field_values.insert_one(doc)
            doc.pop("_id", None)
            return doc
        except DuplicateKeyError:
            logger.info(f"[FIELDS] concurrent create for {opportunity_id}/{field_id}, updating")

    await db.opportunity_field_values.update_one(key, {"$set": {"value": value, "updated_at": now}})
    return await db.opportunity_field_values.find_one(key, {"_id": 0})


async def get_opportunity_field_values(tenant_id: str, opportunity_id: str) -> List[Dict]:
    """Values of an opportunity, each with its field definition under "field" """
    values = await db.opportunity_field_values.find(
        {"tenant_id": tenant_id, "opportunity_id": opportunity_id}, {"_id": 0}
    ).to_list(500)

    for v in values:
        v["field"] = await db.stage_fields.find_one(
            {"id": v["field_id"], "tenant_id": tenant_id}, {"_id": 0}
        )
    return values
