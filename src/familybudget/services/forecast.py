"""Next-month spending forecast based on recent and year-ago history."""

from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlmodel import Session

from .projection import ProjectionResult, month_context_for, shift_month
from .spending import family_member_ids, has_expenses, total_spent

BASE_MONTHS = (1, 2, 3)
FALLBACK_DAYS_IN_MONTH = 30


def _window(today: date, months_ago: int, *, last_year: bool = False):
    offset = -months_ago - (12 if last_year else 0)
    year, month = shift_month(today.year, today.month, offset)
    context = month_context_for(year, month, today)
    return context.start, context.end


def _has_all_months(session: Session, user_ids: Sequence[int], today: date, *, last_year: bool) -> bool:
    return all(
        has_expenses(session, user_ids, *_window(today, months_ago, last_year=last_year))
        for months_ago in BASE_MONTHS
    )


def _three_month_average(
    session: Session, user_ids: Sequence[int], today: date, *, last_year: bool
) -> float:
    total = sum(
        total_spent(session, user_ids, *_window(today, months_ago, last_year=last_year))
        for months_ago in BASE_MONTHS
    )
    return round(total / len(BASE_MONTHS), 2)


def forecast_user_next_month(
    session: Session, user_id: int, *, today: date | None = None
) -> ProjectionResult:
    """Forecast next month's total for one user.

    Needs spending in each of the last three months; otherwise the forecast is
    zero. When the same three months a year earlier also have spending, the
    forecast starts from this month last year and is shifted by how much the
    recent average moved against the year-ago average.
    """

    today = today or date.today()
    user_ids = [user_id]
    projected_total = 0.0
    growth_rate = 0.0

    if _has_all_months(session, user_ids, today, last_year=False):
        three_month_avg = _three_month_average(session, user_ids, today, last_year=False)

        if _has_all_months(session, user_ids, today, last_year=True):
            last_year_avg = _three_month_average(session, user_ids, today, last_year=True)
            last_year_this_month = round(
                total_spent(session, user_ids, *_window(today, 12)), 2
            )
            growth_rate = last_year_avg / three_month_avg if three_month_avg > 0 else 1.0
            # a steep drop against last year must not forecast negative spending
            projected_total = max(0.0, last_year_this_month + (three_month_avg - last_year_avg))
        else:
            projected_total = three_month_avg

    return ProjectionResult(
        current_to_date=0.0,
        projected_total=round(projected_total, 2),
        growth_rate=growth_rate,
        budget_hit_date=None,
        prev_to_date=0.0,
        cumulative={},
        compare_index=0,
        days_in_month=FALLBACK_DAYS_IN_MONTH,
        is_current_month=False,
    )


def forecast_family_next_month(
    session: Session, family_id: int, *, today: date | None = None
) -> ProjectionResult:
    """Sum member forecasts; the growth rate is the plain member average."""

    results = [
        forecast_user_next_month(session, user_id, today=today)
        for user_id in family_member_ids(session, family_id)
    ]
    count = len(results)
    avg_growth = sum(result.growth_rate for result in results) / count if count else 0.0

    return ProjectionResult(
        current_to_date=round(sum(result.current_to_date for result in results), 2),
        projected_total=round(sum(result.projected_total for result in results), 2),
        growth_rate=round(avg_growth, 2),
        budget_hit_date=None,
        prev_to_date=round(sum(result.prev_to_date for result in results), 2),
        cumulative={},
        compare_index=0,
        days_in_month=FALLBACK_DAYS_IN_MONTH,
        is_current_month=False,
    )
