"""
BizFlow Pro - Automation workflows

A workflow = one trigger + ordered actions.
Trigger config is a flat dict of key/value conditions that must all
equal the event data (empty config matches every event of the type).
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class TriggerType(str, Enum):
    CONTACT_CREATED = "CONTACT_CREATED"
    TAG_ADDED = "TAG_ADDED"
    PIPELINE_STAGE_CHANGED = "PIPELINE_STAGE_CHANGED"
    FORM_SUBMITTED = "FORM_SUBMITTED"
    ORDER_CREATED = "ORDER_CREATED"


class ActionType(str, Enum):
    SEND_EMAIL = "SEND_EMAIL"
    ADD_TAG = "ADD_TAG"
    CREATE_TASK = "CREATE_TASK"
    UPDATE_CONTACT_STAGE = "UPDATE_CONTACT_STAGE"
    WEBHOOK = "WEBHOOK"


class WorkflowTrigger(BaseModel):
    type: TriggerType
    config: Dict[str, Any] = {}


class WorkflowAction(BaseModel):
    type: ActionType
    config: Dict[str, Any] = {}
    order: int = 0


class WorkflowCreate(BaseModel):
    name: str = Field(..., min_length=1)
    trigger: WorkflowTrigger
    actions: List[WorkflowAction] = []
    is_active: bool = True


class WorkflowActiveUpdate(BaseModel):
    is_active: bool


class TriggerEventIn(BaseModel):
    """Manual trigger (e.g. public form submission)"""
    type: TriggerType
    data: Dict[str, Any] = {}
    note: Optional[str] = None
