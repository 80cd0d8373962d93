"""Weekly family report and month-end forecast emails for family admins."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date

from flask import render_template
from sqlmodel import Session, select

from ..logging_config import get_logger
from ..models import Family, User
from ..models.user import ROLE_ADMIN
from .forecast import forecast_family_next_month, forecast_user_next_month
from .mailer import Mailer, OutgoingEmail
from .projection import ProjectionResult, month_context_for, shift_month
from .spending import build_projection, category_names, category_totals, family_member_ids, family_members

logger = get_logger("services.reports")


class ReportError(LookupError):
    """Raised when a requested family does not exist."""


@dataclass(frozen=True, slots=True)
class CategoryShare:
    name: str
    amount: float
    percent: float


@dataclass(frozen=True, slots=True)
class WeeklyReport:
    family: Family
    month_label: str
    projection: ProjectionResult
    budget: float | None
    growth_pct: str | None
    budget_hit: str | None
    category_breakdown: list[CategoryShare]


@dataclass(frozen=True, slots=True)
class MonthEndForecast:
    family: Family
    next_month_label: str
    projected_family_total: float
    per_user: list[tuple[str, float]]


@dataclass(slots=True)
class ReportRun:
    """How many emails went out; ``lines`` is the human-readable log for the CLI."""

    sent: int = 0
    lines: list[str] = field(default_factory=list)


def family_admins(session: Session, family_id: int) -> list[User]:
    statement = (
        select(User)
        .where(User.family_id == family_id, User.role == ROLE_ADMIN)
        .order_by(User.id)
    )
    return list(session.exec(statement).all())


def category_shares(totals: dict[str, float]) -> list[CategoryShare]:
    """Turn ``{name: amount}`` into shares of the total, largest first."""

    grand_total = sum(totals.values())
    if grand_total <= 0:
        return []
    ordered = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [
        CategoryShare(name=name, amount=float(amount), percent=amount / grand_total * 100.0)
        for name, amount in ordered
    ]


def format_growth_pct(current_to_date: float, prev_to_date: float) -> str | None:
    """``+12.5%`` style change versus last month, or ``None`` without history."""

    if prev_to_date <= 0:
        return None
    pct = (current_to_date / prev_to_date - 1.0) * 100.0
    sign = "+" if pct >= 0 else ""
    return f"{sign}{pct:,.1f}%"


def is_last_day_of_month(value: date) -> bool:
    return value.day == calendar.monthrange(value.year, value.month)[1]


def _family_name(family: Family) -> str:
    return family.name or f"Family #{family.id}"


def _target_families(session: Session, family_id: int | None) -> list[Family]:
    if family_id is not None:
        family = session.get(Family, family_id)
        if family is None:
            raise ReportError(f"Family id {family_id} not found.")
        return [family]
    return list(session.exec(select(Family).order_by(Family.id)).all())


def build_weekly_report(session: Session, family: Family, *, today: date | None = None) -> WeeklyReport:
    """Current-month projection and category breakdown for a family."""

    budget = float(family.monthly_target_budget) if (family.monthly_target_budget or 0) > 0 else None
    member_ids = family_member_ids(session, family.id)
    context, projection = build_projection(
        session, user_ids=member_ids, month_key=None, budget=budget, today=today
    )
    per_category = category_totals(session, member_ids, context.start, context.end)
    names = category_names(session, per_category.keys())
    named_totals: dict[str, float] = {}
    for category_id, amount in per_category.items():
        name = names.get(category_id, "Uncategorized")
        named_totals[name] = named_totals.get(name, 0.0) + amount

    hit = projection.budget_hit_date
    return WeeklyReport(
        family=family,
        month_label=context.label,
        projection=projection,
        budget=budget,
        growth_pct=format_growth_pct(projection.current_to_date, projection.prev_to_date),
        budget_hit=f"{hit:%b} {hit.day}" if hit else None,
        category_breakdown=category_shares(named_totals),
    )


def send_weekly_reports(
    session: Session,
    mailer: Mailer,
    *,
    family_id: int | None = None,
    dry_run: bool = False,
    today: date | None = None,
) -> ReportRun:
    """Email the weekly report to every admin of the targeted families."""

    today = today or date.today()
    run = ReportRun()
    for family in _target_families(session, family_id):
        admins = family_admins(session, family.id)
        if not admins:
            run.lines.append(f"No admins for family #{family.id}, skipping.")
            continue

        report = build_weekly_report(session, family, today=today)
        subject = f"Weekly family spending report - {_family_name(family)} - {today:%b %Y}"
        context = {"report": report, "family": family}
        html_body = render_template("email/weekly_family_report.html", **context)
        text_body = render_template("email/weekly_family_report.txt", **context)

        for admin in admins:
            if not admin.email:
                continue
            if dry_run:
                run.lines.append(f"[DRY-RUN] Would send weekly report to {admin.email} (family #{family.id})")
                continue
            mailer.send(OutgoingEmail(to=admin.email, subject=subject, html_body=html_body, text_body=text_body))
            run.sent += 1
            run.lines.append(f"Sent weekly report to {admin.email} (family #{family.id})")

    logger.info("Weekly reports finished", extra={"sent": run.sent, "dry_run": dry_run})
    return run


def build_month_end_forecast(
    session: Session, family: Family, *, today: date | None = None
) -> MonthEndForecast:
    today = today or date.today()
    year, month = shift_month(today.year, today.month, 1)
    family_result = forecast_family_next_month(session, family.id, today=today)
    per_user = [
        (member.name, forecast_user_next_month(session, member.id, today=today).projected_total)
        for member in family_members(session, family.id)
    ]
    return MonthEndForecast(
        family=family,
        next_month_label=month_context_for(year, month, today).label,
        projected_family_total=family_result.projected_total,
        per_user=per_user,
    )


def send_month_end_forecasts(
    session: Session,
    mailer: Mailer,
    *,
    family_id: int | None = None,
    dry_run: bool = False,
    today: date | None = None,
) -> ReportRun:
    """Email next month's forecast to every admin of the targeted families."""

    today = today or date.today()
    run = ReportRun()
    for family in _target_families(session, family_id):
        admins = family_admins(session, family.id)
        if not admins:
            run.lines.append(f"No admins for family #{family.id}, skipping.")
            continue

        forecast = build_month_end_forecast(session, family, today=today)
        subject = f"Next month forecast - {_family_name(family)} - {forecast.next_month_label}"
        context = {"forecast": forecast, "family": family}
        html_body = render_template("email/monthly_family_forecast.html", **context)
        text_body = render_template("email/monthly_family_forecast.txt", **context)

        for admin in admins:
            if not admin.email:
                continue
            if dry_run:
                run.lines.append(
                    f"[DRY-RUN] Would send month-end forecast to {admin.email} "
                    f"(family #{family.id}, total: {forecast.projected_family_total:,.2f})"
                )
                continue
            mailer.send(OutgoingEmail(to=admin.email, subject=subject, html_body=html_body, text_body=text_body))
            run.sent += 1
            run.lines.append(f"Sent month-end forecast to {admin.email} (family #{family.id})")

    logger.info("Month-end forecasts finished", extra={"sent": run.sent, "dry_run": dry_run})
    return run
