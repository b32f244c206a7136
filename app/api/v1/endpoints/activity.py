# backend-server/app/api/v1/endpoints/activity.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.db import models, session
from app.core import security
from app.schemas import activity as activity_schema
from app.services.record_store import RecordStore

router = APIRouter()

@router.get("/predefined", response_model=List[activity_schema.PredefinedActivity])
def read_predefined_activities(
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """ Quick-fill suggestions for activity texts; seeded with the default catalog on first use. """
    return RecordStore(db).list_predefined_activities()
