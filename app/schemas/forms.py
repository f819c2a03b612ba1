from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class FormField(BaseModel):
    id: str
    type: str
    label: str = ""
    placeholder: Optional[str] = ""
    required: bool = False
    options: List[str] = []


class FormCreate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    fields: Optional[List[FormField]] = None


class FormUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    fields: List[FormField] | None = None
    is_active: bool | None = None


class FormResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: str
    fields: List[Dict[str, Any]]
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None
    response_count: int = 0

    class Config:
        from_attributes = True


class PublicFormResponse(BaseModel):
    """What respondents see when filling a form (no owner data)."""
    id: str
    title: str
    description: str
    fields: List[Dict[str, Any]]
    is_active: bool

    class Config:
        from_attributes = True


class SubmissionCreate(BaseModel):
    form_id: Optional[str] = Field(None, alias="formId")
    responses: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True


class SubmissionResponse(BaseModel):
    id: str
    form_id: str
    response_data: Dict[str, Any]
    ip_address: str | None = None
    user_agent: str | None = None
    submitted_at: datetime

    class Config:
        from_attributes = True
