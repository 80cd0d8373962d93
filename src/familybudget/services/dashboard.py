"""Dashboard aggregations for a single user or a whole family."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Sequence

from sqlalchemy import func
from sqlmodel import Session, select

from ..models import Category, Expense, Family, User
from .forecast import forecast_family_next_month, forecast_user_next_month
from .projection import (
    DailySeries,
    MonthContext,
    ProjectionResult,
    accumulate_daily,
    cumulative,
    month_context_for,
    previous_month_context,
    resolve_month_context,
    shift_month,
)
from .spending import build_projection, family_member_ids, load_dated_amounts, member_totals

VIEW_USER = "user"
VIEW_FAMILY = "family"
PREDICTION_CURRENT = "current"
PREDICTION_NEXT = "next"


@dataclass(frozen=True, slots=True)
class MonthlySplit:
    """Subscription-generated versus one-time spending per month."""

    month_keys: list[str]
    labels: list[str]
    subscriptions: list[float]
    one_time: list[float]

    @property
    def max_value(self) -> float:
        return max([0.0, *self.subscriptions, *self.one_time])


@dataclass(frozen=True, slots=True)
class TopExpenseRow:
    name: str
    amount: float
    user_name: str | None = None


@dataclass(frozen=True, slots=True)
class MonthComparison:
    current_label: str
    previous_label: str
    current: DailySeries
    previous: DailySeries


@dataclass(frozen=True, slots=True)
class DashboardData:
    view_type: str
    prediction: str
    context: MonthContext
    breakdown_title: str
    breakdown: list[tuple[str, float]]
    split: MonthlySplit
    top_expenses: list[TopExpenseRow]
    comparison: MonthComparison
    projection: ProjectionResult
    projection_label: str
    budget: float | None


def category_breakdown(
    session: Session, user_ids: Sequence[int], context: MonthContext
) -> list[tuple[str, float]]:
    """``(category name, total)`` for the month, largest first."""

    if not user_ids:
        return []
    total = func.sum(Expense.amount)
    statement = (
        select(Category.name, total)
        .join(Category, Category.id == Expense.category_id)
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= context.start, Expense.occurred_at <= context.end)
        .group_by(Category.id, Category.name)
        .order_by(total.desc(), Category.name)
    )
    return [(name, float(amount or 0.0)) for name, amount in session.exec(statement)]


def subscriptions_vs_one_time(
    session: Session,
    user_ids: Sequence[int],
    *,
    months: int = 12,
    today: date | None = None,
) -> MonthlySplit:
    """Split each of the last ``months`` months (1 to 24) by expense origin."""

    today = today or date.today()
    months = max(1, min(24, months))
    contexts = [
        month_context_for(*shift_month(today.year, today.month, -offset), today)
        for offset in range(months - 1, -1, -1)
    ]
    keys = [context.key for context in contexts]
    subscriptions = dict.fromkeys(keys, 0.0)
    one_time = dict.fromkeys(keys, 0.0)

    if user_ids:
        statement = (
            select(Expense.occurred_at, Expense.amount, Expense.subscription_id)
            .where(Expense.user_id.in_(list(user_ids)))
            .where(Expense.occurred_at >= contexts[0].start, Expense.occurred_at <= contexts[-1].end)
        )
        for occurred_at, amount, subscription_id in session.exec(statement):
            key = f"{occurred_at.year:04d}-{occurred_at.month:02d}"
            if key not in subscriptions:
                continue
            bucket = subscriptions if subscription_id is not None else one_time
            bucket[key] += float(amount)

    return MonthlySplit(
        month_keys=keys,
        labels=[context.start.strftime("%b") for context in contexts],
        subscriptions=[subscriptions[key] for key in keys],
        one_time=[one_time[key] for key in keys],
    )


def top_expenses(
    session: Session,
    user_ids: Sequence[int],
    context: MonthContext,
    *,
    limit: int = 5,
    show_user: bool = False,
) -> list[TopExpenseRow]:
    if not user_ids:
        return []
    statement = (
        select(Expense.name, Expense.amount, User.name)
        .join(User, User.id == Expense.user_id)
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= context.start, Expense.occurred_at <= context.end)
        .order_by(Expense.amount.desc(), Expense.occurred_at.desc(), Expense.id)
        .limit(limit)
    )
    return [
        TopExpenseRow(name=name, amount=float(amount), user_name=user_name if show_user else None)
        for name, amount, user_name in session.exec(statement)
    ]


def month_comparison(
    session: Session, user_ids: Sequence[int], context: MonthContext
) -> MonthComparison:
    """Cumulative spend of the selected month (up to today) against the month before."""

    previous = previous_month_context(context)
    current_series = cumulative(
        accumulate_daily(load_dated_amounts(session, user_ids, context.start, context.end), context)
    )
    previous_series = cumulative(
        accumulate_daily(load_dated_amounts(session, user_ids, previous.start, previous.end), previous)
    )
    visible = {day: value for day, value in current_series.items() if day <= context.compare_index}
    return MonthComparison(
        current_label=context.label,
        previous_label=previous.label,
        current=visible,
        previous=previous_series,
    )


def build_dashboard(
    session: Session,
    viewer: User,
    *,
    view_type: str = VIEW_USER,
    month_key: str | None = None,
    prediction: str = PREDICTION_CURRENT,
    today: date | None = None,
) -> DashboardData:
    """Collect everything the dashboard page renders for ``viewer``."""

    today = today or date.today()
    family = session.get(Family, viewer.family_id) if viewer.family_id is not None else None
    if view_type != VIEW_FAMILY or family is None:
        view_type = VIEW_USER
    if prediction != PREDICTION_NEXT:
        prediction = PREDICTION_CURRENT

    context = resolve_month_context(month_key, today)
    if view_type == VIEW_FAMILY:
        user_ids = family_member_ids(session, family.id)
        breakdown_title = "Spending per member"
        breakdown = [
            (name, total)
            for name, total in member_totals(session, family.id, context.start, context.end)
            if total > 0
        ]
        budget = float(family.monthly_target_budget or 0) or None
    else:
        user_ids = [viewer.id]
        breakdown_title = "Spending per category"
        breakdown = category_breakdown(session, user_ids, context)
        # a family budget says nothing about one member's share
        budget = None

    if prediction == PREDICTION_NEXT:
        if view_type == VIEW_FAMILY:
            projection = forecast_family_next_month(session, family.id, today=today)
        else:
            projection = forecast_user_next_month(session, viewer.id, today=today)
        next_year, next_month = shift_month(context.start.year, context.start.month, 1)
        projection_label = month_context_for(next_year, next_month, today).label
    else:
        _, projection = build_projection(
            session, user_ids=user_ids, month_key=context.key, budget=budget, today=today
        )
        projection_label = context.label

    return DashboardData(
        view_type=view_type,
        prediction=prediction,
        context=context,
        breakdown_title=breakdown_title,
        breakdown=breakdown,
        split=subscriptions_vs_one_time(session, user_ids, today=today),
        top_expenses=top_expenses(
            session, user_ids, context, show_user=view_type == VIEW_FAMILY
        ),
        comparison=month_comparison(session, user_ids, context),
        projection=projection,
        projection_label=projection_label,
        budget=budget,
    )
