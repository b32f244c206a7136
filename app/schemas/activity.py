# backend-server/app/schemas/activity.py
from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

class ActivityEntry(BaseModel):
    day_of_week: int = Field(ge=1, le=7)
    activity_text: str

class ActivityBatch(BaseModel):
    activities: List[ActivityEntry]

class Activity(BaseModel):
    id: int
    report_id: int
    day_of_week: int
    date: date
    activity_text: str

    class Config:
        from_attributes = True

class DayHoursUpdate(BaseModel):
    hours: int = Field(ge=0, le=24)
    minutes: int = Field(default=0, ge=0, le=59)

class DayHours(BaseModel):
    id: int
    report_id: int
    day_of_week: int
    date: date
    hours: int
    minutes: int

    class Config:
        from_attributes = True

class PredefinedActivity(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: str

    class Config:
        from_attributes = True
