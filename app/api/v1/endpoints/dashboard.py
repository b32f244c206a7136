# backend-server/app/api/v1/endpoints/dashboard.py
from collections import Counter
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from app.db import models, session
from app.core import security
from app.schemas import dashboard as dashboard_schema
from app.schemas import report as report_schema
from app.services import binder, weeks
from app.services.record_store import RecordStore

router = APIRouter()

# --- Helper Functions ---

def count_statuses(reports: List[models.Report]) -> dict:
    counts = Counter(report.status for report in reports)
    return {s.value: counts.get(s.value, 0) for s in models.ReportStatus}

def get_trainee_stats(store: RecordStore, trainee: models.User) -> dashboard_schema.TraineeStats:
    """Aggregates status counts and logged hours over all reports of one trainee."""
    reports = store.list_reports_by_owner(trainee.id)
    hours = sum(binder.total_hours(store.list_day_hours(r.id)) for r in reports)

    week_year, week_number = weeks.current_week()
    current = next((r for r in reports if (r.week_year, r.week_number) == (week_year, week_number)), None)

    return dashboard_schema.TraineeStats(
        total_reports=len(reports),
        status_counts=count_statuses(reports),
        total_hours=binder.round_one(hours),
        avg_hours_per_report=binder.round_one(hours / len(reports)) if reports else 0.0,
        current_week_status=current.status if current else "none",
    )

# --- API Endpoints ---

@router.get("/me", response_model=dashboard_schema.TraineeStats)
def read_dashboard_me(
    db: Session = Depends(session.get_db),
    trainee: models.User = Depends(security.get_current_trainee_user)
):
    """ Report statistics for the logged-in trainee. """
    return get_trainee_stats(RecordStore(db), trainee)

@router.get("/reviews", response_model=dashboard_schema.ReviewOverview)
def read_dashboard_reviews(
    db: Session = Depends(session.get_db),
    trainer: models.User = Depends(security.get_current_trainer_user)
):
    """ Status counts across all trainees plus the queue of reports waiting for review. """
    store = RecordStore(db)
    reports = store.list_reports()
    pending = []
    for report in reports:
        if report.status != models.ReportStatus.SUBMITTED.value:
            continue
        pending.append(dashboard_schema.ReviewQueueEntry(
            report=report_schema.Report.model_validate(report),
            trainee_name=report.owner.display_name,
            total_hours=binder.total_hours(store.list_day_hours(report.id)),
        ))
    # Oldest submissions first
    pending.sort(key=lambda entry: entry.report.submitted_at or entry.report.created_at)
    return dashboard_schema.ReviewOverview(status_counts=count_statuses(reports), pending=pending)
