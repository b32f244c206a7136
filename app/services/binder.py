# backend-server/app/services/binder.py
"""Turns a report and its children into the parameter map the renderers consume."""
import math
from collections import defaultdict
from typing import Any, Dict, Sequence

from app.db import models
from app.services import weeks

ParameterMap = Dict[str, Any]


def round_one(value: float) -> float:
    """Rounds to one decimal, halves away from zero."""
    rounded = math.floor(abs(value) * 10 + 0.5) / 10
    return math.copysign(rounded, value) if rounded else 0.0


def format_hours(value: float) -> str:
    """38.0 -> '38', 7.6 -> '7.6'."""
    text = f"{round_one(value):.1f}"
    return text[:-2] if text.endswith(".0") else text


def minutes_by_day(day_hours: Sequence[models.DayHours]) -> Dict[int, int]:
    totals: Dict[int, int] = defaultdict(int)
    for entry in day_hours:
        totals[entry.day_of_week] += entry.hours * 60 + entry.minutes
    return dict(totals)


def activities_by_day(activities: Sequence[models.Activity]) -> Dict[int, list]:
    grouped: Dict[int, list] = defaultdict(list)
    for activity in activities:
        grouped[activity.day_of_week].append(activity.activity_text)
    return dict(grouped)


def total_hours(day_hours: Sequence[models.DayHours]) -> float:
    return round_one(sum(minutes_by_day(day_hours).values()) / 60)


def bind_report(
    report: models.Report,
    activities: Sequence[models.Activity],
    day_hours: Sequence[models.DayHours],
    user: models.User,
) -> ParameterMap:
    """
    Builds the flat/nested parameter map for one report.

    Pure: the same inputs always give an equal map. Weekdays are bucketed
    Monday to Friday; the weekly average always divides by five.
    """
    texts = activities_by_day(activities)
    minutes = minutes_by_day(day_hours)

    params: ParameterMap = {
        "userName": user.display_name,
        "userCompany": user.company or "",
        "currentDate": weeks.format_date(report.created_at),
        "weekNumber": report.week_number,
        "weekYear": report.week_year,
        "weekDateRange": weeks.format_week_range(report.week_year, report.week_number),
    }
    for day_of_week, key, _label in weeks.WEEKDAYS:
        params[key] = {
            "date": weeks.format_date(weeks.day_date(report.week_year, report.week_number, day_of_week)),
            "activities": list(texts.get(day_of_week, [])),
            "hours": round_one(minutes.get(day_of_week, 0) / 60),
        }

    week_total = total_hours(day_hours)
    params["totalHours"] = week_total
    params["avgHoursPerDay"] = round_one(week_total / 5)
    params["traineeSignature"] = report.trainee_signature or ""
    params["trainerSignature"] = report.trainer_signature or ""
    return params
