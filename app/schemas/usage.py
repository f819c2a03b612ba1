from pydantic import BaseModel
from datetime import datetime


class UsageSummaryResponse(BaseModel):
    plan_type: str
    api_calls_used: int
    api_calls_limit: int
    remaining: int
    current_period_end: datetime
    at_limit: bool


class TranscriptionResponse(BaseModel):
    text: str
    success: bool = True
