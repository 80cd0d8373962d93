"""Tests for weekly family reports and month-end forecasts."""

from __future__ import annotations

from datetime import date

import pytest

from familybudget.extensions import session_scope
from familybudget.models import Family
from familybudget.services.mailer import get_mailer
from familybudget.services.reports import (
    ReportError,
    build_month_end_forecast,
    build_weekly_report,
    category_shares,
    format_growth_pct,
    is_last_day_of_month,
    send_month_end_forecasts,
    send_weekly_reports,
)

from tests.conftest import assert_float_equal


@pytest.fixture()
def household(factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 1000.0, admin=admin)
    partner = factory.user("partner@example.com", "Partner", family=family)
    groceries = factory.category("Groceries")
    factory.expense(admin, 300.0, date(2024, 5, 3), category=groceries)
    factory.expense(partner, 100.0, date(2024, 5, 12))
    factory.expense(admin, 200.0, date(2024, 4, 5))
    return admin, family, partner


def test_category_shares_are_sorted_by_amount():
    shares = category_shares({"Fuel": 25.0, "Food": 75.0})

    assert [share.name for share in shares] == ["Food", "Fuel"]
    assert shares[0].percent == 75.0
    assert category_shares({"Fuel": 0.0}) == []


@pytest.mark.parametrize(
    "current, previous, expected",
    [(150.0, 100.0, "+50.0%"), (50.0, 100.0, "-50.0%"), (10.0, 0.0, None)],
)
def test_format_growth_pct(current, previous, expected):
    assert format_growth_pct(current, previous) == expected


def test_is_last_day_of_month():
    assert is_last_day_of_month(date(2024, 2, 29))
    assert not is_last_day_of_month(date(2023, 2, 27))


def test_weekly_report_contents(household):
    _, family, _ = household

    with session_scope() as session:
        report = build_weekly_report(
            session, session.get(Family, family.id), today=date(2024, 5, 20)
        )

    assert report.month_label == "May 2024"
    assert report.budget == 1000.0
    assert report.projection.current_to_date == 400.0
    assert report.growth_pct == "+100.0%"
    assert [share.name for share in report.category_breakdown] == ["Groceries", "General"]
    assert_float_equal(report.category_breakdown[0].percent, 75.0)


def test_weekly_reports_go_to_admins_only(app, household, outbox):
    with app.app_context():
        with session_scope() as session:
            run = send_weekly_reports(session, get_mailer(app), today=date(2024, 5, 20))

    assert run.sent == 1
    assert [message.to for message in outbox] == ["admin@example.com"]
    assert outbox[0].subject == "Weekly family spending report - Smith - May 2024"
    assert "Groceries" in outbox[0].text_body
    assert run.lines == [f"Sent weekly report to admin@example.com (family #{household[1].id})"]


def test_weekly_report_dry_run_sends_nothing(app, household, outbox):
    with app.app_context():
        with session_scope() as session:
            run = send_weekly_reports(
                session, get_mailer(app), dry_run=True, today=date(2024, 5, 20)
            )

    assert run.sent == 0
    assert outbox == []
    assert run.lines[0].startswith("[DRY-RUN] Would send weekly report to admin@example.com")


def test_unknown_family_raises(app, outbox):
    with app.app_context():
        with session_scope() as session:
            with pytest.raises(ReportError, match="Family id 42 not found."):
                send_weekly_reports(session, get_mailer(app), family_id=42)


def test_family_without_admins_is_skipped(app, factory, outbox):
    family = factory.family("Orphans")

    with app.app_context():
        with session_scope() as session:
            run = send_month_end_forecasts(session, get_mailer(app), today=date(2024, 5, 31))

    assert run.lines == [f"No admins for family #{family.id}, skipping."]
    assert outbox == []


def test_month_end_forecast(app, factory, outbox):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 1000.0, admin=admin)
    factory.user("partner@example.com", "Partner", family=family)
    for month in (2, 3, 4):
        factory.expense(admin, 100.0, date(2024, month, 15))

    with session_scope() as session:
        forecast = build_month_end_forecast(
            session, session.get(Family, family.id), today=date(2024, 5, 31)
        )
    assert forecast.next_month_label == "June 2024"
    assert forecast.projected_family_total == 100.0
    assert forecast.per_user == [("Admin", 100.0), ("Partner", 0.0)]

    with app.app_context():
        with session_scope() as session:
            run = send_month_end_forecasts(
                session, get_mailer(app), family_id=family.id, today=date(2024, 5, 31)
            )

    assert run.sent == 1
    assert outbox[0].subject == "Next month forecast - Smith - June 2024"
    assert "100.00" in outbox[0].text_body
