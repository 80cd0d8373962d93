"""Month-end spending projection.

The pipeline is pure arithmetic over already-materialized ``DatedAmount``
slices:

1. :func:`resolve_month_context` turns a ``YYYY-MM`` key into a period.
2. :func:`accumulate_daily` buckets amounts per day of month.
3. :func:`cumulative` builds the running sum.
4. :func:`calculate_projection` compares the running sum with the previous
   month, derives a growth rate and a projected month-end total, and asks
   :func:`compute_budget_hit_date` when the budget will be (or was) reached.

Nothing here touches the database; see :mod:`familybudget.services.spending`
for the loaders that feed it.
"""

from __future__ import annotations

import calendar
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping, NamedTuple

from ..logging_config import get_logger

logger = get_logger("services.projection")

_MONTH_KEY_RE = re.compile(r"^(\d{4})-(\d{2})$")

DailySeries = dict[int, float]


class DatedAmount(NamedTuple):
    """A single monetary amount with the moment it was spent."""

    occurred_at: datetime
    amount: float


@dataclass(frozen=True, slots=True)
class MonthContext:
    """Calendar boundaries of one month plus the day used for comparisons."""

    year: int
    month: int
    start: datetime
    end: datetime
    days_in_month: int
    is_current_month: bool
    compare_index: int

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def label(self) -> str:
        return self.start.strftime("%B %Y")

    def day_date(self, day: int) -> date:
        """Return the calendar date of ``day`` (1-based) within this month."""

        return (self.start + timedelta(days=day - 1)).date()


@dataclass(frozen=True, slots=True)
class ProjectionResult:
    """Immutable outcome of a month-end projection."""

    current_to_date: float
    projected_total: float
    growth_rate: float
    budget_hit_date: date | None
    prev_to_date: float
    cumulative: Mapping[int, float] = field(default_factory=dict)
    compare_index: int = 0
    days_in_month: int = 0
    is_current_month: bool = False


def parse_month_key(month_key: str | None) -> tuple[int, int] | None:
    """Return ``(year, month)`` for a well-formed ``YYYY-MM`` key, else ``None``."""

    if not month_key:
        return None
    match = _MONTH_KEY_RE.match(month_key.strip())
    if match is None:
        return None
    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        return None
    return year, month


def _as_date(value: date | datetime | None) -> date:
    if value is None:
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    return value


def month_context_for(year: int, month: int, today: date | datetime | None = None) -> MonthContext:
    """Build the :class:`MonthContext` for an explicit year and month."""

    today_date = _as_date(today)
    days = calendar.monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime.combine(date(year, month, days), time(23, 59, 59))
    is_current = (year, month) == (today_date.year, today_date.month)
    return MonthContext(
        year=year,
        month=month,
        start=start,
        end=end,
        days_in_month=days,
        is_current_month=is_current,
        compare_index=today_date.day if is_current else days,
    )


def resolve_month_context(
    month_key: str | None = None,
    today: date | datetime | None = None,
) -> MonthContext:
    """Resolve ``month_key`` into a :class:`MonthContext`.

    A missing key means the current month. A malformed key also falls back to
    the current month; callers that need to reject bad input should use
    :func:`parse_month_key` first.
    """

    today_date = _as_date(today)
    parsed = parse_month_key(month_key)
    if parsed is None:
        if month_key:
            logger.warning(
                "Malformed month key, using current month",
                extra={"month_key": month_key},
            )
        parsed = (today_date.year, today_date.month)
    return month_context_for(parsed[0], parsed[1], today_date)


def previous_month_context(
    context: MonthContext, today: date | datetime | None = None
) -> MonthContext:
    """Return the context of the month immediately before ``context``."""

    if context.month == 1:
        return month_context_for(context.year - 1, 12, today)
    return month_context_for(context.year, context.month - 1, today)


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """Move ``(year, month)`` by ``offset`` months (negative goes back)."""

    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def empty_series(days_in_month: int) -> DailySeries:
    return {day: 0.0 for day in range(1, days_in_month + 1)}


def _normalize_timestamp(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo is not None else value
    return datetime.combine(value, time.min)


def accumulate_daily(
    amounts: Iterable[DatedAmount],
    context: MonthContext,
    series: DailySeries | None = None,
) -> DailySeries:
    """Add each amount inside ``[context.start, context.end]`` to its day bucket.

    When ``series`` is given it is updated in place and returned, which is
    how family totals are merged into one shared series.
    """

    buckets = series if series is not None else empty_series(context.days_in_month)
    for occurred_at, amount in amounts:
        moment = _normalize_timestamp(occurred_at)
        if moment < context.start or moment > context.end:
            continue
        day = moment.day
        if day not in buckets:
            continue
        buckets[day] += float(amount)
    return buckets


def accumulate_family_daily(
    member_amounts: Iterable[Iterable[DatedAmount]],
    context: MonthContext,
) -> DailySeries:
    """Sum every member's slice into one shared daily series."""

    series = empty_series(context.days_in_month)
    for amounts in member_amounts:
        accumulate_daily(amounts, context, series)
    return series


def cumulative(series: Mapping[int, float]) -> DailySeries:
    """Return the running total of ``series`` in day order."""

    running = 0.0
    result: DailySeries = {}
    for day in sorted(series):
        running += series[day]
        result[day] = running
    return result


def compute_growth_rate(current_to_date: float, prev_to_date: float) -> float:
    """Ratio of this month's spend to last month's over the same number of days."""

    if prev_to_date > 0:
        return max(0.0, current_to_date / prev_to_date)
    return 1.0 if current_to_date > 0 else 0.0


def compute_projected_total(
    *,
    current_to_date: float,
    prev_total: float,
    growth_rate: float,
    compare_index: int,
    days_in_month: int,
) -> float:
    """Estimate the month-end total; never lower than what is already spent."""

    projected = prev_total * growth_rate
    if projected <= 0 and compare_index > 0:
        projected = current_to_date / compare_index * days_in_month
    return max(current_to_date, projected)


def compute_budget_hit_date(
    *,
    budget: float | None,
    cumulative_series: Mapping[int, float],
    context: MonthContext,
    compare_index: int,
    current_to_date: float,
    projected_total: float,
) -> date | None:
    """Return the day the budget was reached, or is forecast to be reached.

    An actual crossing on or before ``compare_index`` wins over any forecast.
    The forecast spreads the projected remaining spend evenly over the
    remaining days and reports a date only when it lands inside the month.
    """

    if budget is None or budget <= 0:
        return None

    for day in range(1, compare_index + 1):
        if cumulative_series.get(day, 0.0) >= budget:
            return context.day_date(day)

    days_in_month = context.days_in_month
    remaining_days = max(0, days_in_month - compare_index)
    if remaining_days == 0:
        return None

    projected_remaining = max(0.0, projected_total - current_to_date)
    if projected_remaining <= 0:
        return None

    daily_pace = projected_remaining / remaining_days
    days_needed = math.ceil((budget - current_to_date) / daily_pace)
    hit_index = compare_index + days_needed
    if hit_index > days_in_month:
        return None
    return context.day_date(hit_index)


def calculate_projection(
    *,
    current_cumulative: Mapping[int, float],
    previous_cumulative: Mapping[int, float],
    context: MonthContext,
    budget: float | None = None,
) -> ProjectionResult:
    """Run the projection engine for one month.

    ``current_cumulative`` and ``previous_cumulative`` are running totals as
    produced by :func:`cumulative`. Missing entries count as zero.
    """

    compare_index = context.compare_index if context.is_current_month else context.days_in_month
    current_to_date = float(current_cumulative.get(compare_index, 0.0))

    prev_days = max(previous_cumulative) if previous_cumulative else 0
    prev_to_date = float(previous_cumulative.get(min(compare_index, prev_days), 0.0))
    prev_total = float(previous_cumulative[prev_days]) if previous_cumulative else 0.0

    growth_rate = compute_growth_rate(current_to_date, prev_to_date)
    projected_total = compute_projected_total(
        current_to_date=current_to_date,
        prev_total=prev_total,
        growth_rate=growth_rate,
        compare_index=compare_index,
        days_in_month=context.days_in_month,
    )
    hit_date = compute_budget_hit_date(
        budget=budget,
        cumulative_series=current_cumulative,
        context=context,
        compare_index=compare_index,
        current_to_date=current_to_date,
        projected_total=projected_total,
    )

    return ProjectionResult(
        current_to_date=current_to_date,
        projected_total=projected_total,
        growth_rate=growth_rate,
        budget_hit_date=hit_date,
        prev_to_date=prev_to_date,
        cumulative=dict(current_cumulative),
        compare_index=compare_index,
        days_in_month=context.days_in_month,
        is_current_month=context.is_current_month,
    )


def project_month(
    *,
    current_amounts: Iterable[Iterable[DatedAmount]],
    previous_amounts: Iterable[Iterable[DatedAmount]],
    context: MonthContext,
    budget: float | None = None,
) -> ProjectionResult:
    """Accumulate member slices for the month and its predecessor, then project.

    A single user is simply a family of one slice.
    """

    previous = previous_month_context(context)
    current_series = accumulate_family_daily(current_amounts, context)
    previous_series = accumulate_family_daily(previous_amounts, previous)
    return calculate_projection(
        current_cumulative=cumulative(current_series),
        previous_cumulative=cumulative(previous_series),
        context=context,
        budget=budget,
    )


__all__ = [
    "DailySeries",
    "DatedAmount",
    "MonthContext",
    "ProjectionResult",
    "accumulate_daily",
    "accumulate_family_daily",
    "calculate_projection",
    "compute_budget_hit_date",
    "compute_growth_rate",
    "compute_projected_total",
    "cumulative",
    "empty_series",
    "month_context_for",
    "parse_month_key",
    "previous_month_context",
    "project_month",
    "resolve_month_context",
    "shift_month",
]
