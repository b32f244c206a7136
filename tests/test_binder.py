"""
Parameter binding: totals, rounding and weekday buckets
"""
from datetime import datetime

import pytest

from app.db import models
from app.services import weeks
from app.services.binder import bind_report, format_hours, round_one


def make_report(week_year=2024, week_number=42, **fields):
    fields.setdefault("created_at", datetime(2024, 10, 18, 9, 30))
    return models.Report(id=1, user_id=1, week_year=week_year, week_number=week_number, status="draft", **fields)


def make_hours(*entries):
    return [models.DayHours(day_of_week=day, hours=h, minutes=m) for day, h, m in entries]


@pytest.fixture
def user():
    return models.User(full_name="Anna Schmidt", first_name="Anna", last_name="Schmidt", company="Muster GmbH")


def test_weekly_totals(user):
    hours = make_hours((1, 8, 0), (2, 7, 30), (3, 8, 0), (4, 8, 0), (5, 6, 30))

    params = bind_report(make_report(), [], hours, user)

    assert params["totalHours"] == 38.0
    assert params["avgHoursPerDay"] == 7.6
    assert params["tuesday"]["hours"] == 7.5
    assert format_hours(params["totalHours"]) == "38"


def test_average_uses_rounded_total(user):
    # 7h 20m + 7h 20m = 14.666... -> 14.7 -> 2.94 -> 2.9
    hours = make_hours((1, 7, 20), (2, 7, 20))

    params = bind_report(make_report(), [], hours, user)

    assert params["totalHours"] == 14.7
    assert params["avgHoursPerDay"] == round_one(params["totalHours"] / 5) == 2.9


def test_weekend_hours_count_towards_total(user):
    params = bind_report(make_report(), [], make_hours((1, 8, 0), (6, 4, 0)), user)
    assert params["totalHours"] == 12.0
    assert "saturday" not in params


def test_activities_grouped_by_weekday(user):
    activities = [
        models.Activity(day_of_week=1, activity_text="Kundenberatung"),
        models.Activity(day_of_week=3, activity_text="Inventur"),
        models.Activity(day_of_week=1, activity_text="Teammeeting"),
    ]

    params = bind_report(make_report(), activities, [], user)

    assert params["monday"]["activities"] == ["Kundenberatung", "Teammeeting"]
    assert params["wednesday"]["activities"] == ["Inventur"]
    assert params["friday"] == {"activities": [], "hours": 0.0, "date": params["friday"]["date"]}


def test_header_fields(user):
    params = bind_report(make_report(week_year=2024, week_number=1), [], [], user)

    assert params["userName"] == "Anna Schmidt"
    assert params["userCompany"] == "Muster GmbH"
    assert params["currentDate"] == "18.10.2024"
    assert params["weekNumber"] == 1
    assert params["weekYear"] == 2024
    assert params["weekDateRange"] == "01.01. - 07.01.2024"
    assert params["monday"]["date"] == "01.01.2024"
    assert params["friday"]["date"] == "05.01.2024"
    assert params["traineeSignature"] == ""
    assert params["trainerSignature"] == ""


def test_signatures_bound(user):
    report = make_report(trainee_signature="Anna Schmidt", trainer_signature="Max Mustermann")
    params = bind_report(report, [], [], user)
    assert params["traineeSignature"] == "Anna Schmidt"
    assert params["trainerSignature"] == "Max Mustermann"


def test_binding_is_deterministic(user):
    hours = make_hours((1, 8, 0), (2, 7, 45))
    activities = [models.Activity(day_of_week=2, activity_text="Dokumentation")]
    report = make_report()

    assert bind_report(report, activities, hours, user) == bind_report(report, activities, hours, user)


def test_user_without_full_name(user):
    user.full_name = None
    assert bind_report(make_report(), [], [], user)["userName"] == "Anna Schmidt"


@pytest.mark.parametrize("value, expected", [(0.25, 0.3), (0.05, 0.1), (2.94, 2.9), (7.65, 7.7), (0.0, 0.0)])
def test_round_one_half_away_from_zero(value, expected):
    assert round_one(value) == expected


@pytest.mark.parametrize("value, expected", [(38.0, "38"), (7.6, "7.6"), (0, "0"), (7.25, "7.3")])
def test_format_hours(value, expected):
    assert format_hours(value) == expected


def test_week_range_crosses_month():
    assert weeks.format_week_range(2024, 5) == "29.01. - 04.02.2024"
