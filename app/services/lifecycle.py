# backend-server/app/services/lifecycle.py
"""
Report state machine.

    draft --submit--> submitted --feedback--> approved | rejected | needs_correction
    needs_correction --submit--> submitted

Every transition after creation is driven either by a submit or by exactly
one appended feedback entry. Lookups that find nothing return None.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.core.errors import InvalidTransition, PermissionDenied, ValidationError
from app.db import models
from app.db.models import FeedbackKind, ReportStatus, UserRole
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = {ReportStatus.DRAFT.value, ReportStatus.NEEDS_CORRECTION.value}
SUBMITTABLE_STATUSES = EDITABLE_STATUSES
REVIEWABLE_STATUSES = {ReportStatus.SUBMITTED.value, ReportStatus.NEEDS_CORRECTION.value}


@dataclass(frozen=True)
class SessionContext:
    """The authenticated caller, handed to every lifecycle operation."""
    user: models.User

    @property
    def user_id(self) -> int:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_trainer(self) -> bool:
        return self.user.role == UserRole.TRAINER.value


class ReportLifecycle:
    def __init__(self, store: RecordStore):
        self.store = store

    # --- Queries ---

    def can_view(self, ctx: SessionContext, report: models.Report) -> bool:
        return ctx.is_trainer or report.user_id == ctx.user_id

    def can_edit(self, ctx: SessionContext, report: models.Report) -> bool:
        return report.user_id == ctx.user_id and report.status in EDITABLE_STATUSES

    def can_review(self, ctx: SessionContext, report: models.Report) -> bool:
        return ctx.is_trainer and report.status in REVIEWABLE_STATUSES

    def get_report(self, ctx: SessionContext, report_id: int) -> Optional[models.Report]:
        report = self.store.get_report(report_id)
        if report is None:
            return None
        if not self.can_view(ctx, report):
            raise PermissionDenied("You can only view your own reports.")
        return report

    def list_reports(self, ctx: SessionContext, statuses: Optional[Iterable[str]] = None) -> List[models.Report]:
        if ctx.is_trainer:
            return self.store.list_reports(statuses)
        reports = self.store.list_reports_by_owner(ctx.user_id)
        if statuses:
            wanted = {getattr(s, "value", s) for s in statuses}
            reports = [r for r in reports if r.status in wanted]
        return reports

    def list_feedback(self, ctx: SessionContext, report_id: int) -> Optional[List[models.ReportFeedback]]:
        if self.get_report(ctx, report_id) is None:
            return None
        return self.store.list_feedback(report_id)

    # --- Trainee operations ---

    def open_week(self, ctx: SessionContext, week_year: int, week_number: int) -> models.Report:
        """Returns the caller's report for the week, creating a draft on first access."""
        if ctx.is_trainer:
            raise PermissionDenied("Only trainees keep weekly reports.")
        if not 1 <= week_number <= 53:
            raise ValidationError(f"Week number {week_number} is out of range.")
        report = self.store.get_report_by_week(ctx.user_id, week_year, week_number)
        if report is None:
            report = self.store.create_report(ctx.user_id, week_year, week_number)
            logger.info("Created draft report %s for user %s (KW %s/%s)", report.id, ctx.user_id, week_number, week_year)
        return report

    def save_activities(
        self, ctx: SessionContext, report_id: int, entries: Iterable[tuple[int, str]]
    ) -> Optional[List[models.Activity]]:
        """Full replace of the week's activities. Blank texts are dropped."""
        report = self._editable_report(ctx, report_id)
        if report is None:
            return None
        cleaned = []
        for day_of_week, text in entries:
            self._check_day(day_of_week)
            text = (text or "").strip()
            if text:
                cleaned.append((day_of_week, text))
        return self.store.replace_activities(report.id, cleaned)

    def set_day_hours(
        self, ctx: SessionContext, report_id: int, day_of_week: int, hours: int, minutes: int
    ) -> Optional[models.DayHours]:
        report = self._editable_report(ctx, report_id)
        if report is None:
            return None
        self._check_day(day_of_week)
        if hours < 0 or hours > 24:
            raise ValidationError("Hours must be between 0 and 24.")
        if not 0 <= minutes <= 59:
            raise ValidationError("Minutes must be between 0 and 59.")
        if hours == 24 and minutes:
            raise ValidationError("A day has at most 24 hours.")
        return self.store.upsert_day_hours(report.id, day_of_week, hours, minutes)

    def submit(self, ctx: SessionContext, report_id: int) -> Optional[models.Report]:
        """
        Moves a draft (or a report sent back for correction) to ``submitted``.
        Submitting a report in any other state changes nothing.
        """
        report = self.store.get_report(report_id)
        if report is None:
            return None
        if report.user_id != ctx.user_id:
            raise PermissionDenied("You can only submit your own reports.")
        if report.status not in SUBMITTABLE_STATUSES:
            return report
        updated = self.store.update_report(
            report.id,
            status=ReportStatus.SUBMITTED,
            submitted_at=models.utcnow(),
            trainee_signature=ctx.user.effective_signature or None,
        )
        logger.info("Report %s submitted by user %s", report.id, ctx.user_id)
        return updated

    # --- Trainer operations ---

    def add_feedback(
        self,
        ctx: SessionContext,
        report_id: int,
        kind: FeedbackKind | str,
        message: str,
        field_corrections: Optional[list[dict]] = None,
    ) -> Optional[models.ReportFeedback]:
        """Appends a feedback entry and applies the status transition it implies."""
        report = self.store.get_report(report_id)
        if report is None:
            return None
        kind = FeedbackKind(kind)
        if not ctx.is_trainer:
            raise PermissionDenied("Only trainers can give feedback.")
        if report.status not in REVIEWABLE_STATUSES:
            raise InvalidTransition(f"Cannot give feedback on a report that is {report.status}.")
        message = (message or "").strip()
        if not message:
            raise ValidationError("Feedback message must not be empty.")

        corrections = [
            {"field": item["field"].strip(), "message": item.get("message", "").strip()}
            for item in field_corrections or []
            if item.get("field", "").strip()
        ]
        now = models.utcnow()
        if kind is FeedbackKind.CORRECTION:
            updates = {"status": ReportStatus.NEEDS_CORRECTION, "correction_requested_at": now}
        elif kind is FeedbackKind.APPROVAL:
            updates = {
                "status": ReportStatus.APPROVED,
                "approved_at": now,
                "approved_by": ctx.user_id,
                "trainer_signature": ctx.user.effective_signature,
                "signed_at": now,
            }
        else:
            updates = {"status": ReportStatus.REJECTED, "rejected_at": now}

        entry = self.store.append_feedback(
            report.id, kind.value, message, corrections, ctx.user_id, report_updates=updates,
        )
        logger.info("Report %s is now %s (feedback by user %s)", report.id, updates["status"].value, ctx.user_id)
        return entry

    # --- Helpers ---

    def _editable_report(self, ctx: SessionContext, report_id: int) -> Optional[models.Report]:
        report = self.store.get_report(report_id)
        if report is None:
            return None
        if report.user_id != ctx.user_id:
            raise PermissionDenied("You can only edit your own reports.")
        if report.status not in EDITABLE_STATUSES:
            raise InvalidTransition(f"Report is {report.status} and can no longer be edited.")
        return report

    @staticmethod
    def _check_day(day_of_week: int) -> None:
        if not 1 <= day_of_week <= 7:
            raise ValidationError(f"Day of week {day_of_week} is out of range.")
