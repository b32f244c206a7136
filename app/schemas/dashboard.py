# backend-server/app/schemas/dashboard.py
from pydantic import BaseModel
from typing import Dict, List

from app.schemas.report import Report

class TraineeStats(BaseModel):
    total_reports: int
    status_counts: Dict[str, int]
    total_hours: float
    avg_hours_per_report: float
    current_week_status: str

class ReviewQueueEntry(BaseModel):
    report: Report
    trainee_name: str
    total_hours: float

class ReviewOverview(BaseModel):
    status_counts: Dict[str, int]
    pending: List[ReviewQueueEntry]
