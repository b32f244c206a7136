# backend-server/app/schemas/report.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from app.db.models import FeedbackKind
from app.schemas.activity import Activity, DayHours

class Report(BaseModel):
    id: int
    user_id: int
    week_year: int
    week_number: int
    status: str
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[int] = None
    rejected_at: Optional[datetime] = None
    correction_requested_at: Optional[datetime] = None
    trainee_signature: Optional[str] = None
    trainer_signature: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

class FieldCorrection(BaseModel):
    field: str
    message: str = ""

class FeedbackCreate(BaseModel):
    feedback_type: FeedbackKind
    message: str
    field_corrections: Optional[List[FieldCorrection]] = None

class Feedback(BaseModel):
    id: int
    report_id: int
    feedback_type: str
    message: str
    field_corrections: Optional[List[FieldCorrection]] = None
    created_by: int
    created_at: datetime

    class Config:
        from_attributes = True

class ReportDetail(Report):
    week_date_range: str
    total_hours: float
    can_edit: bool
    can_review: bool
    activities: List[Activity]
    day_hours: List[DayHours]
    feedback: List[Feedback]

class TemplateParameters(BaseModel):
    template: str
    kind: str
    parameters: List[str]
