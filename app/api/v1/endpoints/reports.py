# backend-server/app/api/v1/endpoints/reports.py
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from urllib.parse import quote

from app.db import models, session
from app.core import security
from app.schemas import activity as activity_schema
from app.schemas import report as report_schema
from app.services import binder, weeks
from app.services.export import ExportFormat, ExportOrchestrator, PdfStyle, Rendered
from app.services.lifecycle import ReportLifecycle, SessionContext
from app.services.record_store import RecordStore

router = APIRouter()

def get_lifecycle(db: Session = Depends(session.get_db)) -> ReportLifecycle:
    return ReportLifecycle(RecordStore(db))

def report_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")

def build_detail(lifecycle: ReportLifecycle, ctx: SessionContext, report: models.Report) -> report_schema.ReportDetail:
    store = lifecycle.store
    day_hours = store.list_day_hours(report.id)
    return report_schema.ReportDetail(
        **report_schema.Report.model_validate(report).model_dump(),
        week_date_range=weeks.format_week_range(report.week_year, report.week_number),
        total_hours=binder.total_hours(day_hours),
        can_edit=lifecycle.can_edit(ctx, report),
        can_review=lifecycle.can_review(ctx, report),
        activities=[activity_schema.Activity.model_validate(a) for a in store.list_activities(report.id)],
        day_hours=[activity_schema.DayHours.model_validate(d) for d in day_hours],
        feedback=[report_schema.Feedback.model_validate(f) for f in store.list_feedback(report.id)],
    )

def download(rendered: Rendered) -> Response:
    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(rendered.filename)}"}
    if rendered.degraded:
        headers["X-Export-Degraded"] = quote(rendered.reason)
    return Response(content=rendered.content, media_type=rendered.media_type, headers=headers)

# --- Reading ---

@router.get("", response_model=List[report_schema.Report])
def list_reports(
    status_filter: Optional[models.ReportStatus] = Query(None, alias="status"),
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    """ Trainees see their own reports, trainers see every report. """
    return lifecycle.list_reports(ctx, [status_filter] if status_filter else None)

@router.get("/week/{week_year}/{week_number}", response_model=report_schema.ReportDetail)
def open_week(
    week_year: int,
    week_number: int,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    """ Returns the caller's report for a week, creating the draft on first access. """
    report = lifecycle.open_week(ctx, week_year, week_number)
    return build_detail(lifecycle, ctx, report)

@router.get("/export/all")
def export_all_reports(
    db: Session = Depends(session.get_db),
    trainee: models.User = Depends(security.get_current_trainee_user)
):
    """ Prints every approved report of the trainee into one PDF. """
    rendered = ExportOrchestrator(RecordStore(db)).export_all(SessionContext(user=trainee))
    if rendered is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No approved reports to export")
    return download(rendered)

@router.get("/{report_id}", response_model=report_schema.ReportDetail)
def read_report(
    report_id: int,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    report = lifecycle.get_report(ctx, report_id)
    if report is None:
        raise report_not_found()
    return build_detail(lifecycle, ctx, report)

# --- Editing ---

@router.put("/{report_id}/activities", response_model=List[activity_schema.Activity])
def save_activities(
    report_id: int,
    batch: activity_schema.ActivityBatch,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    """ Replaces all activities of the report with the submitted set. """
    saved = lifecycle.save_activities(ctx, report_id, [(a.day_of_week, a.activity_text) for a in batch.activities])
    if saved is None:
        raise report_not_found()
    return saved

@router.put("/{report_id}/hours/{day_of_week}", response_model=activity_schema.DayHours)
def set_day_hours(
    report_id: int,
    day_of_week: int,
    hours_in: activity_schema.DayHoursUpdate,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    saved = lifecycle.set_day_hours(ctx, report_id, day_of_week, hours_in.hours, hours_in.minutes)
    if saved is None:
        raise report_not_found()
    return saved

@router.post("/{report_id}/submit", response_model=report_schema.Report)
def submit_report(
    report_id: int,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    report = lifecycle.submit(ctx, report_id)
    if report is None:
        raise report_not_found()
    return report

# --- Review ---

@router.get("/{report_id}/feedback", response_model=List[report_schema.Feedback])
def list_feedback(
    report_id: int,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    entries = lifecycle.list_feedback(ctx, report_id)
    if entries is None:
        raise report_not_found()
    return entries

@router.post("/{report_id}/feedback", response_model=report_schema.Feedback, status_code=status.HTTP_201_CREATED)
def add_feedback(
    report_id: int,
    feedback_in: report_schema.FeedbackCreate,
    ctx: SessionContext = Depends(security.get_session_context),
    lifecycle: ReportLifecycle = Depends(get_lifecycle)
):
    """ Adds trainer feedback; the feedback type decides the report's new status. """
    corrections = [c.model_dump() for c in feedback_in.field_corrections or []]
    entry = lifecycle.add_feedback(ctx, report_id, feedback_in.feedback_type, feedback_in.message, corrections)
    if entry is None:
        raise report_not_found()
    return entry

# --- Export ---

@router.get("/{report_id}/export")
async def export_report(
    report_id: int,
    format: ExportFormat = ExportFormat.PDF,
    template: Optional[str] = None,
    style: PdfStyle = PdfStyle.STANDARD,
    db: Session = Depends(session.get_db),
    ctx: SessionContext = Depends(security.get_session_context)
):
    """
    Renders the report as DOCX or PDF, optionally through a template.
    A broken template never fails the request: the standard PDF is returned
    and the X-Export-Degraded header carries the reason.
    """
    rendered = await ExportOrchestrator(RecordStore(db)).export(ctx, report_id, format, template, style)
    if rendered is None:
        raise report_not_found()
    return download(rendered)
