"""
BizFlow Pro - Outbound webhook subscriptions

events is a comma-separated list of event names ("order.created,contact.created")
or the literal wildcard "*".
"""

from typing import Optional
from pydantic import BaseModel, field_validator


WILDCARD_EVENT = "*"

# Events emitted by the application
KNOWN_EVENTS = [
    "order.created",
    "order.status_changed",
    "order.cancelled",
    "contact.created",
    "contact.updated",
    "opportunity.stage_changed",
    "form.submitted",
    "container.received",
    "job.completed",
    "message.sent",
    "webhook.test",
]


class WebhookCreate(BaseModel):
    url: str
    events: str = WILDCARD_EVENT
    secret: Optional[str] = None

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("Webhook URL must start with http:// or https://")
        return v

    @field_validator('events')
    @classmethod
    def validate_events(cls, v):
        v = (v or "").strip()
        if v == WILDCARD_EVENT:
            return v
        names = [e.strip() for e in v.split(",") if e.strip()]
        if not names:
            raise ValueError("At least one event name (or '*') is required")
        return ",".join(names)


class WebhookActiveUpdate(BaseModel):
    is_active: bool


class WebhookTest(BaseModel):
    event: str = "webhook.test"
    payload: dict = {}
