"""Budget warning emails: the queued message, its dispatch and its handler."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Callable

from flask import Flask, current_app, render_template
from sqlmodel import Session

from ..extensions import session_scope
from ..logging_config import get_logger
from ..models import Category, Family, User
from ..models.alert_log import TYPE_CATEGORY_THRESHOLD, TYPE_FAMILY_BUDGET
from . import jobs
from .alerts import record_alert
from .mailer import Mailer, OutgoingEmail, get_mailer

logger = get_logger("services.notifications")

JOB_NAME = "budget-warning-email"


@dataclass(frozen=True, slots=True)
class BudgetWarningEmailMessage:
    """Payload queued once per recipient of a budget or threshold warning."""

    family_id: int
    user_id: int
    month: str
    projected_total: float
    budget: float
    type: str = TYPE_FAMILY_BUDGET
    category_id: int | None = None


Dispatcher = Callable[[BudgetWarningEmailMessage], object]


def pretty_month(month_key: str) -> str:
    try:
        return datetime.strptime(f"{month_key}-01", "%Y-%m-%d").strftime("%B %Y")
    except ValueError:
        return month_key


def build_subject(message: BudgetWarningEmailMessage, family: Family, category: Category | None) -> str:
    family_name = family.name or f"Family #{family.id}"
    month = pretty_month(message.month)
    if message.type == TYPE_CATEGORY_THRESHOLD:
        category_name = category.name if category is not None else "Unknown"
        return f"Category threshold exceeded - {family_name} - {month} - {category_name}"
    return f"Budget warning - {family_name} - {month}"


def handle_budget_warning_email(
    session: Session, message: BudgetWarningEmailMessage, mailer: Mailer
) -> bool:
    """Render and send one warning, then log it. Returns False when skipped.

    Missing family, user, email address or category make the message a no-op.
    Must run inside an application context (templates are rendered here).
    """

    family = session.get(Family, message.family_id)
    user = session.get(User, message.user_id)
    if family is None or user is None or not user.email:
        logger.info("Skipping budget warning with missing recipient", extra=asdict(message))
        return False

    category = None
    if message.type == TYPE_CATEGORY_THRESHOLD and message.category_id is not None:
        category = session.get(Category, message.category_id)
        if category is None:
            logger.info("Skipping threshold warning for unknown category", extra=asdict(message))
            return False

    month = pretty_month(message.month)
    context = {
        "family": family,
        "month": month,
        "projected": message.projected_total,
        "budget": message.budget,
        "user": user,
        "category": category,
        "type": message.type,
    }
    mailer.send(
        OutgoingEmail(
            to=user.email,
            subject=build_subject(message, family, category),
            html_body=render_template("email/budget_warning.html", **context),
            text_body=render_template("email/budget_warning.txt", **context),
        )
    )

    record_alert(
        session,
        family_id=family.id,
        alert_type=message.type,
        month=message.month,
        amount=message.projected_total,
        budget=message.budget,
        category_id=category.id if category is not None else None,
    )
    return True


def _deliver(app: Flask, message: BudgetWarningEmailMessage) -> bool:
    with app.app_context():
        with session_scope() as session:
            return handle_budget_warning_email(session, message, get_mailer(app))


def dispatch_budget_warning(message: BudgetWarningEmailMessage) -> jobs.Job:
    """Queue delivery of ``message`` on the background job queue."""

    app = current_app._get_current_object()  # type: ignore[attr-defined]
    return jobs.enqueue(
        JOB_NAME,
        _deliver,
        family_id=message.family_id,
        user_id=message.user_id,
        message_type=message.type,
        app=app,
        message=message,
    )
