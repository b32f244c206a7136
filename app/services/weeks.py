# backend-server/app/services/weeks.py
"""
Week arithmetic shared by the report editor and the document pipeline.

A report week starts on ``Jan 1 of week_year + (week_number - 1) * 7`` days.
This is not ISO-8601 week numbering and drifts from calendar libraries near
year boundaries; stored reports are keyed by it, so it stays.
"""
from datetime import date, datetime, timedelta

WEEKDAYS = [
    (1, "monday", "Montag"),
    (2, "tuesday", "Dienstag"),
    (3, "wednesday", "Mittwoch"),
    (4, "thursday", "Donnerstag"),
    (5, "friday", "Freitag"),
]


def week_start(week_year: int, week_number: int) -> date:
    return date(week_year, 1, 1) + timedelta(days=(week_number - 1) * 7)


def week_end(week_year: int, week_number: int) -> date:
    return week_start(week_year, week_number) + timedelta(days=6)


def day_date(week_year: int, week_number: int, day_of_week: int) -> date:
    return week_start(week_year, week_number) + timedelta(days=day_of_week - 1)


def format_date(value: date | datetime) -> str:
    return value.strftime("%d.%m.%Y")


def format_week_range(week_year: int, week_number: int) -> str:
    start = week_start(week_year, week_number)
    end = week_end(week_year, week_number)
    return f"{start.strftime('%d.%m.')} - {end.strftime('%d.%m.%Y')}"


def current_week(today: date | None = None) -> tuple[int, int]:
    """(week_year, week_number) of the week containing ``today`` under the report arithmetic."""
    today = today or date.today()
    return today.year, min((today.timetuple().tm_yday - 1) // 7 + 1, 53)
