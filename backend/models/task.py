"""
BizFlow Pro - CRM tasks
"""

from typing import Optional
from pydantic import BaseModel, Field


TASK_TODO = "TODO"
TASK_COMPLETED = "COMPLETED"


class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = ""
    due_date: str  # ISO date or datetime
    assigned_to_id: Optional[str] = None  # defaults to the caller
    contact_id: Optional[str] = None
