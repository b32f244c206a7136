# backend-server/app/db/models.py
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, Date, Text, JSON,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, enum.Enum):
    TRAINEE = "azubi"
    TRAINER = "ausbilder"


class ReportStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_CORRECTION = "needs_correction"


class FeedbackKind(str, enum.Enum):
    CORRECTION = "correction"
    APPROVAL = "approval"
    REJECTION = "rejection"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(100))
    first_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=True)
    company = Column(String(100), nullable=True)
    # Either a data:image/... URL or free text standing in for a signature
    signature = Column(Text, nullable=True)
    role = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    __table_args__ = ( CheckConstraint("role IN ('azubi', 'ausbilder')"), )
    reports = relationship("Report", back_populates="owner", foreign_keys="Report.user_id")

    @property
    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def effective_signature(self) -> str:
        if self.signature:
            return self.signature
        composed = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return composed or (self.full_name or "")


class Report(Base):
    __tablename__ = "reports"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    week_year = Column(Integer, nullable=False)
    week_number = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ReportStatus.DRAFT.value)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    correction_requested_at = Column(DateTime(timezone=True), nullable=True)
    trainee_signature = Column(Text, nullable=True)
    trainer_signature = Column(Text, nullable=True)
    signed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    __table_args__ = (
        UniqueConstraint("user_id", "week_year", "week_number", name="uq_report_user_week"),
        CheckConstraint("status IN ('draft', 'submitted', 'approved', 'rejected', 'needs_correction')"),
        CheckConstraint("week_number BETWEEN 1 AND 53"),
    )
    owner = relationship("User", back_populates="reports", foreign_keys=[user_id])
    activities = relationship(
        "Activity", back_populates="report", cascade="all, delete-orphan",
        order_by="Activity.id",
    )
    day_hours = relationship(
        "DayHours", back_populates="report", cascade="all, delete-orphan",
        order_by="DayHours.day_of_week",
    )
    feedback = relationship("ReportFeedback", back_populates="report", cascade="all, delete-orphan")


class Activity(Base):
    __tablename__ = "activities"
    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    activity_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    __table_args__ = ( CheckConstraint("day_of_week BETWEEN 1 AND 7"), )
    report = relationship("Report", back_populates="activities")


class DayHours(Base):
    __tablename__ = "day_hours"
    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    hours = Column(Integer, nullable=False, default=0)
    minutes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    __table_args__ = (
        UniqueConstraint("report_id", "day_of_week", name="uq_day_hours_report_day"),
        CheckConstraint("day_of_week BETWEEN 1 AND 7"),
        CheckConstraint("minutes BETWEEN 0 AND 59"),
        CheckConstraint("hours >= 0"),
    )
    report = relationship("Report", back_populates="day_hours")

    @property
    def total_hours(self) -> float:
        return self.hours + self.minutes / 60


class ReportFeedback(Base):
    __tablename__ = "report_feedback"
    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False, index=True)
    feedback_type = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)
    # [{"field": ..., "message": ...}, ...]
    field_corrections = Column(JSON, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    __table_args__ = ( CheckConstraint("feedback_type IN ('correction', 'approval', 'rejection')"), )
    report = relationship("Report", back_populates="feedback")
    author = relationship("User")


class PredefinedActivity(Base):
    __tablename__ = "predefined_activities"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
