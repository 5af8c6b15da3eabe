"""
BizFlow Pro - Sales pipelines, opportunities and custom stage fields
"""

from typing import Optional, Dict
from pydantic import BaseModel, Field, field_validator

from .contact import normalize_email, is_valid_email_format


DEFAULT_STAGES = ["New Lead", "Qualified", "Proposal Sent", "Won", "Lost"]

VALID_FIELD_TYPES = ["text", "number", "date", "select", "checkbox"]


class PipelineCreate(BaseModel):
    name: str = Field(..., min_length=1)


class OpportunityCreate(BaseModel):
    pipeline_id: str
    stage_id: str
    title: str = Field(..., min_length=1)
    value: float = Field(default=0.0, ge=0)
    contact_id: Optional[str] = None


class OpportunityMove(BaseModel):
    stage_id: str


class StageFieldCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = "text"
    required: bool = False
    options: Optional[str] = None  # comma list for "select"
    order: int = 0
    show_in_form: bool = False
    form_label: Optional[str] = None

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        if v not in VALID_FIELD_TYPES:
            raise ValueError(f"Invalid field type: {v}. Valid: {VALID_FIELD_TYPES}")
        return v


class StageFieldUpdate(BaseModel):
    name: Optional[str] = None
    required: Optional[bool] = None
    options: Optional[str] = None
    show_in_form: Optional[bool] = None
    form_label: Optional[str] = None


class FieldValueSave(BaseModel):
    value: str


# ==================== PUBLIC FORM ====================

class PublicFormToggle(BaseModel):
    enabled: bool


class PublicFormSubmit(BaseModel):
    """
    Public submission: the contact fields plus {field_id: value} for the
    fields shown on the form.
    """
    name: str = Field(..., min_length=1)
    email: str
    phone: Optional[str] = ""
    title: Optional[str] = None
    values: Dict[str, str] = {}

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        v = normalize_email(v)
        if not is_valid_email_format(v):
            raise ValueError(f"Invalid email format: {v}")
        return v
