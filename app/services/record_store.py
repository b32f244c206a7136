# backend-server/app/services/record_store.py
# Per-record persistence of users, reports and their children.
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.db import models
from app.services import weeks

logger = logging.getLogger(__name__)

DEFAULT_PREDEFINED_ACTIVITIES = [
    ("Kundenberatung", "Beratung von Kunden zu Produkten und Dienstleistungen", "Verkauf"),
    ("Wareneingangsprüfung", "Kontrolle und Prüfung eingehender Waren", "Lager"),
    ("Buchhaltung", "Erfassung und Bearbeitung von Geschäftsvorfällen", "Verwaltung"),
    ("Projektplanung", "Planung und Organisation von Projekten", "Management"),
    ("Dokumentation", "Erstellung und Pflege von Dokumentationen", "Verwaltung"),
    ("Schulung/Weiterbildung", "Teilnahme an Schulungen und Weiterbildungsmaßnahmen", "Bildung"),
    ("Qualitätskontrolle", "Prüfung und Sicherstellung der Produktqualität", "Qualität"),
    ("Teammeeting", "Teilnahme an Teambesprechungen und Meetings", "Kommunikation"),
    ("Kundentermin", "Termine und Gespräche mit Kunden", "Verkauf"),
    ("Datenanalyse", "Auswertung und Analyse von Geschäftsdaten", "Analyse"),
]


class RecordStore:
    """
    Thin repository over a SQLAlchemy session.

    Lookups by id return None when nothing matches; callers treat that as a
    no-op rather than an error.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Users ---

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.db.get(models.User, user_id)

    def get_user_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email).first()

    def create_user(self, **fields) -> models.User:
        user = models.User(**fields)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def update_user(self, user_id: int, **fields) -> Optional[models.User]:
        user = self.get_user(user_id)
        if user is None:
            return None
        for field, value in fields.items():
            setattr(user, field, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    # --- Reports ---

    def create_report(self, owner_id: int, week_year: int, week_number: int) -> models.Report:
        report = models.Report(
            user_id=owner_id, week_year=week_year, week_number=week_number,
            status=models.ReportStatus.DRAFT.value,
        )
        self.db.add(report)
        self.db.commit()
        self.db.refresh(report)
        return report

    def get_report(self, report_id: int) -> Optional[models.Report]:
        return self.db.get(models.Report, report_id)

    def get_report_by_week(self, owner_id: int, week_year: int, week_number: int) -> Optional[models.Report]:
        return self.db.query(models.Report).filter(
            models.Report.user_id == owner_id,
            models.Report.week_year == week_year,
            models.Report.week_number == week_number,
        ).first()

    def update_report(self, report_id: int, **fields) -> Optional[models.Report]:
        report = self.get_report(report_id)
        if report is None:
            return None
        self._apply_report_fields(report, fields)
        self.db.commit()
        self.db.refresh(report)
        return report

    def list_reports_by_owner(self, owner_id: int) -> List[models.Report]:
        return self.db.query(models.Report).filter(
            models.Report.user_id == owner_id
        ).order_by(models.Report.week_year.desc(), models.Report.week_number.desc()).all()

    def list_reports(self, statuses: Optional[Iterable[str]] = None) -> List[models.Report]:
        query = self.db.query(models.Report)
        if statuses:
            query = query.filter(models.Report.status.in_([getattr(s, "value", s) for s in statuses]))
        return query.order_by(models.Report.week_year.desc(), models.Report.week_number.desc()).all()

    # --- Activities ---

    def list_activities(self, report_id: int) -> List[models.Activity]:
        return self.db.query(models.Activity).filter(
            models.Activity.report_id == report_id
        ).order_by(models.Activity.day_of_week, models.Activity.id).all()

    def replace_activities(self, report_id: int, entries: Iterable[tuple[int, str]]) -> List[models.Activity]:
        """
        Deletes every activity of the report and inserts ``entries`` as
        (day_of_week, text) pairs. Both writes commit together.
        """
        report = self.get_report(report_id)
        if report is None:
            return []
        self.db.query(models.Activity).filter(models.Activity.report_id == report_id).delete()
        new_rows = [
            models.Activity(
                report_id=report_id,
                day_of_week=day_of_week,
                date=weeks.day_date(report.week_year, report.week_number, day_of_week),
                activity_text=text,
            )
            for day_of_week, text in entries
        ]
        self.db.add_all(new_rows)
        report.updated_at = models.utcnow()
        self.db.commit()
        return self.list_activities(report_id)

    # --- Day hours ---

    def list_day_hours(self, report_id: int) -> List[models.DayHours]:
        return self.db.query(models.DayHours).filter(
            models.DayHours.report_id == report_id
        ).order_by(models.DayHours.day_of_week).all()

    def upsert_day_hours(self, report_id: int, day_of_week: int, hours: int, minutes: int) -> Optional[models.DayHours]:
        report = self.get_report(report_id)
        if report is None:
            return None
        row = self.db.query(models.DayHours).filter(
            models.DayHours.report_id == report_id,
            models.DayHours.day_of_week == day_of_week,
        ).first()
        if row is None:
            row = models.DayHours(
                report_id=report_id,
                day_of_week=day_of_week,
                date=weeks.day_date(report.week_year, report.week_number, day_of_week),
            )
            self.db.add(row)
        row.hours = hours
        row.minutes = minutes
        row.updated_at = models.utcnow()
        self.db.commit()
        self.db.refresh(row)
        return row

    # --- Feedback ---

    def append_feedback(
        self,
        report_id: int,
        kind: str,
        message: str,
        field_corrections: Optional[list] = None,
        author_id: Optional[int] = None,
        report_updates: Optional[dict] = None,
    ) -> Optional[models.ReportFeedback]:
        """Stores a feedback entry and applies ``report_updates`` to the report in one commit."""
        report = self.get_report(report_id)
        if report is None:
            return None
        entry = models.ReportFeedback(
            report_id=report_id,
            feedback_type=kind,
            message=message,
            field_corrections=field_corrections or None,
            created_by=author_id,
        )
        self.db.add(entry)
        self._apply_report_fields(report, report_updates or {})
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def list_feedback(self, report_id: int) -> List[models.ReportFeedback]:
        return self.db.query(models.ReportFeedback).filter(
            models.ReportFeedback.report_id == report_id
        ).order_by(models.ReportFeedback.created_at.desc(), models.ReportFeedback.id.desc()).all()

    # --- Predefined activities ---

    def list_predefined_activities(self) -> List[models.PredefinedActivity]:
        rows = self.db.query(models.PredefinedActivity).order_by(models.PredefinedActivity.id).all()
        if rows:
            return rows
        logger.info("Seeding %d predefined activities", len(DEFAULT_PREDEFINED_ACTIVITIES))
        self.db.add_all([
            models.PredefinedActivity(name=name, description=description, category=category)
            for name, description, category in DEFAULT_PREDEFINED_ACTIVITIES
        ])
        self.db.commit()
        return self.db.query(models.PredefinedActivity).order_by(models.PredefinedActivity.id).all()

    def _apply_report_fields(self, report: models.Report, fields: dict) -> None:
        for field, value in fields.items():
            if isinstance(value, (models.ReportStatus, models.FeedbackKind)):
                value = value.value
            setattr(report, field, value)
        report.updated_at = models.utcnow()
