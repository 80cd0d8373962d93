"""Queries that materialize expense data for the projection and report services."""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Sequence

from sqlalchemy import and_, func
from sqlmodel import Session, select

from ..models import Category, Expense, User
from .projection import (
    DatedAmount,
    MonthContext,
    ProjectionResult,
    previous_month_context,
    project_month,
    resolve_month_context,
)


def family_members(session: Session, family_id: int) -> list[User]:
    """Return the members of ``family_id`` ordered by name."""

    statement = select(User).where(User.family_id == family_id).order_by(User.name, User.id)
    return list(session.exec(statement).all())


def family_member_ids(session: Session, family_id: int) -> list[int]:
    statement = select(User.id).where(User.family_id == family_id).order_by(User.id)
    return [user_id for user_id in session.exec(statement).all() if user_id is not None]


def load_dated_amounts(
    session: Session,
    user_ids: Sequence[int],
    start: datetime,
    end: datetime,
) -> list[DatedAmount]:
    """Return ``(occurred_at, amount)`` pairs for ``user_ids`` within ``[start, end]``."""

    if not user_ids:
        return []
    statement = (
        select(Expense.occurred_at, Expense.amount)
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= start, Expense.occurred_at <= end)
        .order_by(Expense.occurred_at)
    )
    return [DatedAmount(occurred_at, float(amount)) for occurred_at, amount in session.exec(statement)]


def load_member_slices(
    session: Session,
    user_ids: Sequence[int],
    start: datetime,
    end: datetime,
) -> list[list[DatedAmount]]:
    """Return one materialized slice per user, in ``user_ids`` order."""

    return [load_dated_amounts(session, [user_id], start, end) for user_id in user_ids]


def build_projection(
    session: Session,
    *,
    user_ids: Sequence[int],
    month_key: str | None = None,
    budget: float | None = None,
    today: date | datetime | None = None,
) -> tuple[MonthContext, ProjectionResult]:
    """Project month-end spending for one user or a whole family."""

    context = resolve_month_context(month_key, today)
    previous = previous_month_context(context, today)
    current_slices = load_member_slices(session, user_ids, context.start, context.end)
    previous_slices = load_member_slices(session, user_ids, previous.start, previous.end)
    result = project_month(
        current_amounts=current_slices,
        previous_amounts=previous_slices,
        context=context,
        budget=budget,
    )
    return context, result


def total_spent(
    session: Session,
    user_ids: Sequence[int],
    start: datetime,
    end: datetime,
) -> float:
    if not user_ids:
        return 0.0
    statement = (
        select(func.coalesce(func.sum(Expense.amount), 0.0))
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= start, Expense.occurred_at <= end)
    )
    return float(session.exec(statement).one() or 0.0)


def has_expenses(
    session: Session,
    user_ids: Sequence[int],
    start: datetime,
    end: datetime,
) -> bool:
    if not user_ids:
        return False
    statement = (
        select(Expense.id)
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= start, Expense.occurred_at <= end)
        .limit(1)
    )
    return session.exec(statement).first() is not None


def category_totals(
    session: Session,
    user_ids: Sequence[int],
    start: datetime,
    end: datetime,
) -> dict[int, float]:
    """Sum spending per category id for ``user_ids`` within the window."""

    if not user_ids:
        return {}
    statement = (
        select(Expense.category_id, func.sum(Expense.amount))
        .where(Expense.user_id.in_(list(user_ids)))
        .where(Expense.occurred_at >= start, Expense.occurred_at <= end)
        .group_by(Expense.category_id)
    )
    return {category_id: float(total or 0.0) for category_id, total in session.exec(statement)}


def category_names(session: Session, category_ids: Iterable[int] | None = None) -> dict[int, str]:
    statement = select(Category.id, Category.name)
    if category_ids is not None:
        statement = statement.where(Category.id.in_(list(category_ids)))
    return {category_id: name for category_id, name in session.exec(statement)}


def member_totals(
    session: Session,
    family_id: int,
    start: datetime,
    end: datetime,
) -> list[tuple[str, float]]:
    """Return ``(member name, total)`` for every family member, biggest first."""

    total = func.coalesce(func.sum(Expense.amount), 0.0)
    in_window = and_(
        Expense.user_id == User.id,
        Expense.occurred_at >= start,
        Expense.occurred_at <= end,
    )
    statement = (
        select(User.name, total)
        .join(Expense, in_window, isouter=True)
        .where(User.family_id == family_id)
        .group_by(User.id, User.name)
        .order_by(total.desc(), User.name)
    )
    return [(name, float(total or 0.0)) for name, total in session.exec(statement)]


def active_categories(session: Session) -> list[Category]:
    """Categories that can still be picked for new expenses and thresholds."""

    statement = select(Category).where(Category.is_deleted == False).order_by(Category.name)  # noqa: E712
    return list(session.exec(statement).all())
