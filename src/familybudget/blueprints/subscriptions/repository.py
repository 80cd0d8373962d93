"""Subscription data-access for the listing pages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Mapping, Sequence

from sqlalchemy import func
from sqlmodel import Session, select

from ...models import Category, Subscription, User
from ...models.subscription import FREQUENCIES
from ..expenses.repository import Pagination, clamp_paging

SORT_COLUMNS = {
    "next_due": Subscription.next_due_date,
    "name": Subscription.name,
    "amount": Subscription.amount,
    "category": Category.name,
    "user": User.name,
}


@dataclass(frozen=True, slots=True)
class SubscriptionRow:
    id: int
    name: str
    amount: float
    frequency: str
    next_due_date: date
    is_active: bool
    category_name: str
    user_name: str


@dataclass(frozen=True, slots=True)
class SubscriptionListResult:
    subscriptions: Sequence[SubscriptionRow]
    pagination: Pagination


def _parse_day(value: str | None) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


@dataclass
class SQLModelSubscriptionRepository:
    """Subscription listing backed by a SQLModel session."""

    session: Session

    def _clauses(self, user_ids: Sequence[int], filters: Mapping[str, str]) -> list:
        clauses = [Subscription.user_id.in_(list(user_ids))]

        search_term = (filters.get("q") or "").strip()
        if search_term:
            clauses.append(Subscription.name.ilike(f"%{search_term}%"))

        category_raw = (filters.get("category") or "").strip()
        if category_raw.isdigit():
            clauses.append(Subscription.category_id == int(category_raw))

        frequency = (filters.get("frequency") or "").strip().lower()
        if frequency in FREQUENCIES:
            clauses.append(Subscription.frequency == frequency)

        active = (filters.get("active") or "").strip().lower()
        if active in {"1", "yes", "true"}:
            clauses.append(Subscription.is_active == True)  # noqa: E712
        elif active in {"0", "no", "false"}:
            clauses.append(Subscription.is_active == False)  # noqa: E712

        next_from = _parse_day(filters.get("next_from"))
        if next_from is not None:
            clauses.append(Subscription.next_due_date >= next_from)
        next_to = _parse_day(filters.get("next_to"))
        if next_to is not None:
            clauses.append(Subscription.next_due_date <= next_to)
        return clauses

    def list_subscriptions(
        self,
        *,
        user_ids: Sequence[int],
        filters: Mapping[str, str],
        page: int,
        per_page: int,
    ) -> SubscriptionListResult:
        page, per_page = clamp_paging(page, per_page)
        if not user_ids:
            return SubscriptionListResult([], Pagination(page, per_page, 0))
        clauses = self._clauses(user_ids, filters)

        count_stmt = select(func.count()).select_from(Subscription).where(*clauses)
        total = int(self.session.exec(count_stmt).one() or 0)

        sort_column = SORT_COLUMNS.get(filters.get("sort") or "next_due", Subscription.next_due_date)
        direction = (filters.get("direction") or "asc").lower()
        ordering = sort_column.desc() if direction == "desc" else sort_column.asc()

        data_stmt = (
            select(Subscription, Category.name, User.name)
            .join(Category, Category.id == Subscription.category_id)
            .join(User, User.id == Subscription.user_id)
            .where(*clauses)
            .order_by(ordering, Subscription.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = [
            SubscriptionRow(
                id=subscription.id,
                name=subscription.name,
                amount=float(subscription.amount),
                frequency=subscription.frequency,
                next_due_date=subscription.next_due_date,
                is_active=subscription.is_active,
                category_name=category_name,
                user_name=user_name,
            )
            for subscription, category_name, user_name in self.session.exec(data_stmt)
        ]
        return SubscriptionListResult(rows, Pagination(page, per_page, total))


__all__ = ["SQLModelSubscriptionRepository", "SubscriptionListResult", "SubscriptionRow"]
