"""Turn due subscriptions into expenses."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta

from sqlmodel import Session, select

from ..logging_config import get_logger
from ..models import Expense, Subscription
from ..models.subscription import FREQUENCY_WEEKLY, FREQUENCY_YEARLY
from .projection import shift_month

logger = get_logger("services.subscriptions")

AUTO_DESCRIPTION = "Auto generated from subscription"


def _add_months(value: date, months: int) -> date:
    year, month = shift_month(value.year, value.month, months)
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_due_date(current: date, frequency: str) -> date:
    """Next due date after ``current``; unknown frequencies count as monthly."""

    if frequency == FREQUENCY_WEEKLY:
        return current + timedelta(weeks=1)
    if frequency == FREQUENCY_YEARLY:
        return _add_months(current, 12)
    return _add_months(current, 1)


def due_subscriptions(session: Session, today: date) -> list[Subscription]:
    statement = (
        select(Subscription)
        .where(Subscription.is_active == True)  # noqa: E712
        .where(Subscription.next_due_date <= today)
        .order_by(Subscription.next_due_date, Subscription.id)
    )
    return list(session.exec(statement).all())


def process_due_subscriptions(session: Session, *, today: date | None = None) -> int:
    """Create today's expense for every due active subscription and move its due date.

    Each subscription is charged once per run even when several periods are
    overdue; the next run picks up the remainder.
    """

    today = today or date.today()
    processed = 0
    for subscription in due_subscriptions(session, today):
        if subscription.user_id is None or subscription.category_id is None:
            continue
        session.add(
            Expense(
                name=subscription.name[:51],
                amount=subscription.amount,
                description=AUTO_DESCRIPTION,
                occurred_at=datetime.combine(today, datetime.min.time()),
                category_id=subscription.category_id,
                user_id=subscription.user_id,
                subscription_id=subscription.id,
            )
        )
        subscription.next_due_date = advance_due_date(
            subscription.next_due_date or today, subscription.frequency
        )
        session.add(subscription)
        processed += 1

    session.flush()
    logger.info("Processed due subscriptions", extra={"processed": processed, "today": today})
    return processed
