"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  BizFlow Pro - Public pipeline forms                                         ║
║                                                                              ║
║  A pipeline can expose a public form at /api/forms/{slug}:                   ║
║  - the fields are the first-stage fields flagged show_in_form                ║
║  - a submission finds or creates the contact (LEAD) by email, opens an       ║
║    opportunity in the first stage and stores the submitted field values      ║
║  - FORM_SUBMITTED automation and "form.submitted" webhooks follow            ║
║                                                                              ║
║  Slug = lowercased name with non-alphanumerics as "-", plus the last 4       ║
║  characters of the pipeline id. Kept when the form is switched off.          ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
import re
from typing import Dict

from config import db, now_iso
from services import pipelines
from services.contacts import get_contact_by_email, create_contact
from services.errors import NotFoundError, ConflictError

logger = logging.getLogger("forms")


def make_form_slug(name: str, pipeline_id: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"{base}-{pipeline_id[-4:]}"


# ==================== ADMIN ====================

async def set_public_form(tenant_id: str, pipeline_id: str, enabled: bool) -> Dict:
    """Switch the public form of a pipeline on/off. Returns {enabled, slug}."""
    pipeline = await db.pipelines.find_one({"id": pipeline_id, "tenant_id": tenant_id}, {"_id": 0})
    if not pipeline:
        raise NotFoundError("Pipeline", pipeline_id)

    fields = {"public_form_enabled": enabled, "updated_at": now_iso()}
    slug = pipeline.get("public_form_slug")
    if enabled and not slug:
        slug = make_form_slug(pipeline["name"], pipeline_id)
        fields["public_form_slug"] = slug

    await db.pipelines.update_one({"id": pipeline_id, "tenant_id": tenant_id}, {"$set": fields})
    logger.info(f"[FORM] pipeline {pipeline_id} public form {'on' if enabled else 'off'} slug={slug}")
    return {"enabled": enabled, "slug": slug}


# ==================== PUBLIC ====================

async def _load_form(slug: str) -> Dict:
    pipeline = await db.pipelines.find_one(
        {"public_form_slug": slug, "public_form_enabled": True}, {"_id": 0}
    )
    if not pipeline or not pipeline.get("stages"):
        raise NotFoundError("Form", slug)

    first_stage = sorted(pipeline["stages"], key=lambda s: s.get("order", 0))[0]
    fields = [
        f for f in await pipelines.get_stage_fields(pipeline["tenant_id"], first_stage["id"])
        if f.get("show_in_form")
    ]
    return {"pipeline": pipeline, "stage": first_stage, "fields": fields}


async def get_public_form(slug: str) -> Dict:
    """What the public page renders. The tenant id stays server side."""
    form = await _load_form(slug)
    return {
        "slug": slug,
        "pipeline_name": form["pipeline"]["name"],
        "stage": {"id": form["stage"]["id"], "name": form["stage"]["name"]},
        "fields": [
            {
                "id": f["id"],
                "label": f.get("form_label") or f["name"],
                "type": f["type"],
                "required": f.get("required", False),
                "options": f.get("options"),
            }
            for f in form["fields"]
        ],
    }


async def submit_public_form(slug: str, name: str, email: str, phone: str = "",
                             values: Dict[str, str] = None, title: str = None) -> Dict:
    """
    Returns {"opportunity": dict, "contact_id": str, "contact_created": bool}
    Raises: NotFoundError (unknown / disabled form),
            ValueError (missing required field, field not on the form)
    """
    form = await _load_form(slug)
    tenant_id = form["pipeline"]["tenant_id"]
    values = {k: str(v) for k, v in (values or {}).items()}

    shown = {f["id"]: f for f in form["fields"]}
    unknown = [k for k in values if k not in shown]
    if unknown:
        raise ValueError(f"Unknown form fields: {unknown}")
    missing = [f.get("form_label") or f["name"] for f in shown.values()
               if f.get("required") and not values.get(f["id"], "").strip()]
    if missing:
        raise ValueError(f"Missing required fields: {missing}")

    contact = await get_contact_by_email(tenant_id, email)
    created = False
    if not contact:
        try:
            contact = await create_contact(tenant_id, name, email, phone=phone or "")
            created = True
        except ConflictError:
            # Same email submitted concurrently
            contact = await get_contact_by_email(tenant_id, email)

    opportunity = await pipelines.create_opportunity(
        tenant_id, form["pipeline"]["id"], form["stage"]["id"],
        title or f"{name} (web form)", contact_id=contact["id"]
    )
    for field_id, value in values.items():
        await pipelines.save_field_value(tenant_id, opportunity["id"], field_id, value)

    logger.info(
        f"[FORM] submission slug={slug} tenant={tenant_id} opportunity={opportunity['id']} "
        f"contact={contact['id']} ({'new' if created else 'existing'})"
    )

    from services.automation import dispatch_trigger_event
    from services.webhooks import trigger_webhooks

    event = {
        "form_slug": slug,
        "pipeline_id": form["pipeline"]["id"],
        "opportunity_id": opportunity["id"],
        "contact_id": contact["id"],
        "contact_email": contact["email"],
    }
    await dispatch_trigger_event(tenant_id, "FORM_SUBMITTED", event)
    trigger_webhooks(tenant_id, "form.submitted", event)
    return {"opportunity": opportunity, "contact_id": contact["id"], "contact_created": created}
