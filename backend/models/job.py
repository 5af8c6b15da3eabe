"""
BizFlow Pro - Production jobs

A job follows an order through the workshop as a fixed list of stages.
The job status is derived from its stages.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


DEFAULT_JOB_STAGES = ["Cutting", "Polishing", "Assembly", "Installation"]


class JobStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


VALID_JOB_STATUSES = [s.value for s in JobStatus]


class JobCreate(BaseModel):
    name: str = Field(..., min_length=1)
    order_id: Optional[str] = None


class JobStageUpdate(BaseModel):
    status: JobStatus
