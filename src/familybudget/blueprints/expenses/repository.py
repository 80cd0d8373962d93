"""Expense data-access for the listing pages."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time
from math import ceil
from typing import Mapping, Sequence

from sqlalchemy import func
from sqlmodel import Session, select

from ...models import Category, Expense, User

DEFAULT_PER_PAGE = 20
SORT_COLUMNS = {
    "date": Expense.occurred_at,
    "name": Expense.name,
    "amount": Expense.amount,
    "category": Category.name,
}


@dataclass(frozen=True, slots=True)
class Pagination:
    """Pagination metadata for listings."""

    page: int
    per_page: int
    total: int

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return ceil(self.total / self.per_page)

    @property
    def has_prev(self) -> bool:
        return self.page > 1 and self.total > 0

    @property
    def has_next(self) -> bool:
        pages = self.pages
        return pages > 0 and self.page < pages

    @property
    def first_item(self) -> int:
        if self.total == 0:
            return 0
        return (self.page - 1) * self.per_page + 1

    @property
    def last_item(self) -> int:
        if self.total == 0:
            return 0
        return min(self.page * self.per_page, self.total)


@dataclass(frozen=True, slots=True)
class ExpenseRow:
    """A lightweight projection of an expense for presentation."""

    id: int
    occurred_at: datetime
    name: str
    amount: float
    category_name: str
    user_name: str
    has_receipt: bool
    from_subscription: bool


@dataclass(frozen=True, slots=True)
class ExpenseListResult:
    expenses: Sequence[ExpenseRow]
    pagination: Pagination
    total_amount: float


def clamp_paging(page: int | None, per_page: int | None) -> tuple[int, int]:
    """Page starts at 1; ``per_page`` stays within 5..100."""

    sanitized_page = max(page or 1, 1)
    sanitized_per_page = max(min(per_page or DEFAULT_PER_PAGE, 100), 5)
    return sanitized_page, sanitized_per_page


def parse_date(value: str | None, *, is_start: bool) -> datetime | None:
    """Parse ``YYYY-MM-DD`` into the start or the end of that day."""

    if not value:
        return None
    try:
        base = datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError:
        return None
    return datetime.combine(base.date(), time.min if is_start else time.max)


def parse_amount(value: str | None) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        return None


@dataclass
class SQLModelExpenseRepository:
    """Expense listing backed by a SQLModel session."""

    session: Session

    def _clauses(self, user_ids: Sequence[int], filters: Mapping[str, str]) -> list:
        clauses = [Expense.user_id.in_(list(user_ids))]

        search_term = (filters.get("q") or "").strip()
        if search_term:
            clauses.append(Expense.name.ilike(f"%{search_term}%"))

        category_raw = (filters.get("category") or "").strip()
        if category_raw.isdigit():
            clauses.append(Expense.category_id == int(category_raw))

        start = parse_date(filters.get("date_from"), is_start=True)
        if start is not None:
            clauses.append(Expense.occurred_at >= start)
        end = parse_date(filters.get("date_to"), is_start=False)
        if end is not None:
            clauses.append(Expense.occurred_at <= end)

        min_amount = parse_amount(filters.get("min_amount"))
        if min_amount is not None:
            clauses.append(Expense.amount >= min_amount)
        max_amount = parse_amount(filters.get("max_amount"))
        if max_amount is not None:
            clauses.append(Expense.amount <= max_amount)

        receipt = (filters.get("has_receipt") or "").strip().lower()
        if receipt in {"1", "yes", "true"}:
            clauses.append(Expense.receipt_image.is_not(None))
        elif receipt in {"0", "no", "false"}:
            clauses.append(Expense.receipt_image.is_(None))
        return clauses

    def list_expenses(
        self,
        *,
        user_ids: Sequence[int],
        filters: Mapping[str, str],
        page: int,
        per_page: int,
    ) -> ExpenseListResult:
        """Return one page of expenses for ``user_ids`` matching ``filters``."""

        page, per_page = clamp_paging(page, per_page)
        if not user_ids:
            return ExpenseListResult([], Pagination(page, per_page, 0), 0.0)
        clauses = self._clauses(user_ids, filters)

        count_stmt = select(func.count()).select_from(Expense).where(*clauses)
        total = int(self.session.exec(count_stmt).one() or 0)
        sum_stmt = select(func.coalesce(func.sum(Expense.amount), 0.0)).where(*clauses)
        total_amount = float(self.session.exec(sum_stmt).one() or 0.0)

        sort_column = SORT_COLUMNS.get(filters.get("sort") or "date", Expense.occurred_at)
        direction = (filters.get("direction") or "desc").lower()
        ordering = sort_column.asc() if direction == "asc" else sort_column.desc()

        data_stmt = (
            select(Expense, Category.name, User.name)
            .join(Category, Category.id == Expense.category_id)
            .join(User, User.id == Expense.user_id)
            .where(*clauses)
            .order_by(ordering, Expense.id.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        rows = [
            ExpenseRow(
                id=expense.id,
                occurred_at=expense.occurred_at,
                name=expense.name,
                amount=float(expense.amount),
                category_name=category_name,
                user_name=user_name,
                has_receipt=bool(expense.receipt_image),
                from_subscription=expense.subscription_id is not None,
            )
            for expense, category_name, user_name in self.session.exec(data_stmt)
        ]
        return ExpenseListResult(rows, Pagination(page, per_page, total), total_amount)


__all__ = [
    "ExpenseListResult",
    "ExpenseRow",
    "Pagination",
    "SQLModelExpenseRepository",
    "clamp_paging",
    "parse_amount",
    "parse_date",
]
