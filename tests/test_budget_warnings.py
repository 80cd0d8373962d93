"""Tests for the daily budget check and warning emails."""

from __future__ import annotations

from datetime import date

from sqlmodel import select

from familybudget.extensions import session_scope
from familybudget.models import BudgetAlertLog
from familybudget.models.alert_log import TYPE_CATEGORY_THRESHOLD, TYPE_FAMILY_BUDGET
from familybudget.services.budget_warnings import (
    compute_category_threshold_breaches,
    compute_family_budget_warning,
    run_daily_budget_check,
)
from familybudget.services.jobs import list_jobs
from familybudget.services.notifications import (
    JOB_NAME,
    BudgetWarningEmailMessage,
    dispatch_budget_warning,
    handle_budget_warning_email,
)
from familybudget.services.mailer import get_mailer

TODAY = date(2024, 5, 20)


def _family_over_budget(factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 500.0, admin=admin)
    partner = factory.user("partner@example.com", "Partner", family=family)
    groceries = factory.category("Groceries")
    # 450 in twenty days with no April history projects 697.50
    factory.expense(admin, 300.0, date(2024, 5, 3), category=groceries)
    factory.expense(partner, 150.0, date(2024, 5, 12))
    return admin, family, partner, groceries


def _run_check(app):
    with app.app_context():
        with session_scope() as session:
            return run_daily_budget_check(session, dispatch_budget_warning, today=TODAY)


def test_family_warning_projects_current_month(factory):
    admin, family, _, _ = _family_over_budget(factory)

    with session_scope() as session:
        warning = compute_family_budget_warning(session, admin, today=TODAY)

    assert warning is not None
    assert warning.exceeds
    assert warning.month_key == "2024-05"
    assert warning.month_label == "May 2024"
    assert warning.budget == 500.0
    assert warning.projected == 697.5


def test_family_warning_requires_a_family(factory):
    loner = factory.user("loner@example.com", "Loner")

    with session_scope() as session:
        assert compute_family_budget_warning(session, loner, today=TODAY) is None
        assert compute_category_threshold_breaches(session, loner, today=TODAY) == []


def test_daily_check_emails_every_member_once(app, factory, outbox):
    _family_over_budget(factory)

    summary = _run_check(app)

    assert summary.families == 1
    assert summary.budget_warnings == 1
    assert summary.category_breaches == 0
    assert sorted(message.to for message in outbox) == ["admin@example.com", "partner@example.com"]
    assert {message.subject for message in outbox} == {"Budget warning - Smith - May 2024"}
    assert "697.50" in outbox[0].text_body

    jobs = list_jobs(name=JOB_NAME)
    assert len(jobs) == 2
    assert {job.status for job in jobs} == {"sent"}
    assert {job.message_type for job in jobs} == {TYPE_FAMILY_BUDGET}
    assert sorted(job.attempts for job in jobs) == [1, 1]

    with session_scope() as session:
        logs = session.exec(select(BudgetAlertLog)).all()
    assert len(logs) == 1
    assert logs[0].type == TYPE_FAMILY_BUDGET
    assert logs[0].month == "2024-05"
    assert logs[0].projected_amount == 697.5


def test_daily_check_does_not_repeat_the_same_warning(app, factory, outbox):
    _family_over_budget(factory)
    _run_check(app)
    outbox.clear()

    summary = _run_check(app)

    assert summary.budget_warnings == 0
    assert outbox == []


def test_new_projection_sends_a_fresh_warning(app, factory, outbox):
    admin, _, _, _ = _family_over_budget(factory)
    _run_check(app)
    outbox.clear()
    factory.expense(admin, 20.0, date(2024, 5, 19))

    summary = _run_check(app)

    assert summary.budget_warnings == 1
    assert len(outbox) == 2


def test_family_under_budget_gets_no_warning(app, factory, outbox):
    admin = factory.user("admin@example.com", "Admin")
    factory.family("Smith", 5000.0, admin=admin)
    factory.expense(admin, 100.0, date(2024, 5, 3))

    summary = _run_check(app)

    assert summary.families == 1
    assert summary.budget_warnings == 0
    assert outbox == []


def test_category_breach_emails_members(app, factory, outbox):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 5000.0, admin=admin)
    groceries = factory.category("Groceries")
    factory.threshold(family, groceries, 100.0)
    factory.expense(admin, 150.0, date(2024, 5, 2), category=groceries)

    summary = _run_check(app)

    assert summary.category_breaches == 1
    assert [message.subject for message in outbox] == [
        "Category threshold exceeded - Smith - May 2024 - Groceries"
    ]

    with session_scope() as session:
        log = session.exec(
            select(BudgetAlertLog).where(BudgetAlertLog.type == TYPE_CATEGORY_THRESHOLD)
        ).one()
    assert log.category_id == groceries.id
    assert log.projected_amount == 150.0
    assert log.budget_amount == 100.0

    outbox.clear()
    _run_check(app)
    assert outbox == []


def test_spending_at_the_threshold_is_not_a_breach(factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family("Smith", 5000.0, admin=admin)
    groceries = factory.category("Groceries")
    factory.threshold(family, groceries, 100.0)
    factory.expense(admin, 100.0, date(2024, 5, 2), category=groceries)

    with session_scope() as session:
        assert compute_category_threshold_breaches(session, admin, today=TODAY) == []


def test_family_without_admin_is_skipped(app, factory, outbox):
    family = factory.family("Orphans", 10.0)
    member = factory.user("member@example.com", "Member", family=family)
    factory.expense(member, 500.0, date(2024, 5, 2))

    summary = _run_check(app)

    assert summary.families == 0
    assert summary.skipped == [family.id]
    assert outbox == []


def test_handler_skips_unknown_recipient(app, factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family(admin=admin)
    message = BudgetWarningEmailMessage(
        family_id=family.id,
        user_id=9999,
        month="2024-05",
        projected_total=700.0,
        budget=500.0,
    )

    with app.app_context():
        with session_scope() as session:
            delivered = handle_budget_warning_email(session, message, get_mailer(app))

    assert delivered is False
    assert get_mailer(app).outbox == []


def test_dispatch_records_skipped_delivery(app, factory):
    admin = factory.user("admin@example.com", "Admin")
    family = factory.family(admin=admin)
    message = BudgetWarningEmailMessage(
        family_id=family.id,
        user_id=9999,
        month="2024-05",
        projected_total=700.0,
        budget=500.0,
    )

    with app.app_context():
        job = dispatch_budget_warning(message)

    assert job.status == "skipped"
    assert job.family_id == family.id
    assert job.user_id == 9999
    assert job.message_type == TYPE_FAMILY_BUDGET
    assert list_jobs(family_id=family.id) == [job]
