"""Family budget and category threshold warnings."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from sqlmodel import Session, select

from ..logging_config import get_logger
from ..models import Category, Family, Threshold, User
from ..models.alert_log import TYPE_CATEGORY_THRESHOLD, TYPE_FAMILY_BUDGET
from ..models.user import ROLE_ADMIN
from .alerts import alert_exists
from .notifications import BudgetWarningEmailMessage, Dispatcher
from .projection import resolve_month_context
from .spending import build_projection, category_totals, family_member_ids, family_members

logger = get_logger("services.budget_warnings")


@dataclass(frozen=True, slots=True)
class FamilyBudgetWarning:
    """Outcome of projecting a family's current month against its budget."""

    exceeds: bool
    month_label: str
    projected: float
    budget: float
    month_key: str


@dataclass(frozen=True, slots=True)
class CategoryBreach:
    """A category whose spending this month is above the family threshold."""

    category_id: int
    category_name: str
    current: float
    limit: float
    month_key: str


@dataclass(slots=True)
class DailyCheckSummary:
    families: int = 0
    budget_warnings: int = 0
    category_breaches: int = 0
    skipped: list[int] = field(default_factory=list)


def _family_of(session: Session, admin: User) -> Family | None:
    if admin.family_id is None:
        return None
    return session.get(Family, admin.family_id)


def compute_family_budget_warning(
    session: Session, admin: User, *, today: date | None = None
) -> FamilyBudgetWarning | None:
    """Project the family's current month; ``None`` without a family or positive budget."""

    family = _family_of(session, admin)
    if family is None:
        return None
    budget = float(family.monthly_target_budget or 0.0)
    if budget <= 0:
        return None

    context, result = build_projection(
        session,
        user_ids=family_member_ids(session, family.id),
        month_key=None,
        budget=budget,
        today=today,
    )
    return FamilyBudgetWarning(
        exceeds=result.projected_total > budget,
        month_label=context.label,
        projected=result.projected_total,
        budget=budget,
        month_key=context.key,
    )


def enqueue_budget_warning_emails(
    session: Session,
    admin: User,
    warning: FamilyBudgetWarning,
    dispatch: Dispatcher,
) -> int:
    """Dispatch one warning per family member unless already sent for this amount.

    Returns the number of messages dispatched.
    """

    if not warning.exceeds:
        return 0
    family = _family_of(session, admin)
    if family is None:
        return 0

    if alert_exists(
        session,
        family_id=family.id,
        alert_type=TYPE_FAMILY_BUDGET,
        month=warning.month_key,
        amount=warning.projected,
    ):
        logger.info(
            "Budget warning already sent",
            extra={"family_id": family.id, "month": warning.month_key},
        )
        return 0

    sent = 0
    for member in family_members(session, family.id):
        dispatch(
            BudgetWarningEmailMessage(
                family_id=family.id,
                user_id=member.id,
                month=warning.month_key,
                projected_total=warning.projected,
                budget=warning.budget,
                type=TYPE_FAMILY_BUDGET,
            )
        )
        sent += 1
    logger.info(
        "Budget warning dispatched",
        extra={"family_id": family.id, "month": warning.month_key, "recipients": sent},
    )
    return sent


def compute_category_threshold_breaches(
    session: Session, admin: User, *, today: date | None = None
) -> list[CategoryBreach]:
    """Compare this month's per-category family spending with the family thresholds."""

    family = _family_of(session, admin)
    if family is None:
        return []

    thresholds = session.exec(
        select(Threshold, Category)
        .join(Category, Category.id == Threshold.category_id)
        .where(Threshold.family_id == family.id)
        .order_by(Category.name)
    ).all()
    if not thresholds:
        return []

    context = resolve_month_context(None, today)
    current_per_category = category_totals(
        session, family_member_ids(session, family.id), context.start, context.end
    )

    breaches: list[CategoryBreach] = []
    for threshold, category in thresholds:
        current = current_per_category.get(category.id, 0.0)
        limit = float(threshold.amount or 0.0)
        if limit > 0 and current > limit:
            breaches.append(
                CategoryBreach(
                    category_id=category.id,
                    category_name=category.name,
                    current=current,
                    limit=limit,
                    month_key=context.key,
                )
            )
    return breaches


def enqueue_category_threshold_emails(
    session: Session,
    admin: User,
    breaches: list[CategoryBreach],
    dispatch: Dispatcher,
) -> int:
    """Dispatch per-member threshold warnings, skipping breaches already logged."""

    family = _family_of(session, admin)
    if family is None:
        return 0

    members = family_members(session, family.id)
    sent = 0
    for breach in breaches:
        if alert_exists(
            session,
            family_id=family.id,
            alert_type=TYPE_CATEGORY_THRESHOLD,
            month=breach.month_key,
            amount=breach.current,
            category_id=breach.category_id,
        ):
            continue
        for member in members:
            dispatch(
                BudgetWarningEmailMessage(
                    family_id=family.id,
                    user_id=member.id,
                    month=breach.month_key,
                    projected_total=breach.current,
                    budget=breach.limit,
                    type=TYPE_CATEGORY_THRESHOLD,
                    category_id=breach.category_id,
                )
            )
            sent += 1
    if sent:
        logger.info(
            "Category threshold warnings dispatched",
            extra={"family_id": family.id, "messages": sent},
        )
    return sent


def first_admin(session: Session, family_id: int) -> User | None:
    statement = (
        select(User)
        .where(User.family_id == family_id, User.role == ROLE_ADMIN)
        .order_by(User.id)
        .limit(1)
    )
    return session.exec(statement).first()


def run_daily_budget_check(
    session: Session,
    dispatch: Dispatcher,
    *,
    today: date | None = None,
) -> DailyCheckSummary:
    """Check every family with an admin and dispatch the warnings that apply."""

    summary = DailyCheckSummary()
    for family in session.exec(select(Family).order_by(Family.id)).all():
        admin = first_admin(session, family.id)
        if admin is None:
            summary.skipped.append(family.id)
            continue
        summary.families += 1

        warning = compute_family_budget_warning(session, admin, today=today)
        if warning is not None and warning.exceeds:
            if enqueue_budget_warning_emails(session, admin, warning, dispatch):
                summary.budget_warnings += 1

        breaches = compute_category_threshold_breaches(session, admin, today=today)
        if breaches:
            enqueue_category_threshold_emails(session, admin, breaches, dispatch)
            summary.category_breaches += len(breaches)

    logger.info(
        "Daily budget check finished",
        extra={
            "families": summary.families,
            "budget_warnings": summary.budget_warnings,
            "category_breaches": summary.category_breaches,
        },
    )
    return summary
