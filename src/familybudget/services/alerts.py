"""Lookup and recording of delivered budget alerts."""

from __future__ import annotations

from sqlmodel import Session, select

from ..models import BudgetAlertLog


def _money(value: float) -> float:
    return round(float(value), 2)


def alert_exists(
    session: Session,
    *,
    family_id: int,
    alert_type: str,
    month: str,
    amount: float,
    category_id: int | None = None,
) -> bool:
    """True when an alert with the same family, type, month, amount and category was logged."""

    statement = (
        select(BudgetAlertLog.id)
        .where(BudgetAlertLog.family_id == family_id)
        .where(BudgetAlertLog.type == alert_type)
        .where(BudgetAlertLog.month == month)
        .where(BudgetAlertLog.projected_amount == _money(amount))
    )
    if category_id is None:
        statement = statement.where(BudgetAlertLog.category_id.is_(None))
    else:
        statement = statement.where(BudgetAlertLog.category_id == category_id)
    return session.exec(statement.limit(1)).first() is not None


def record_alert(
    session: Session,
    *,
    family_id: int,
    alert_type: str,
    month: str,
    amount: float,
    budget: float,
    category_id: int | None = None,
) -> BudgetAlertLog | None:
    """Insert an alert log row unless an identical one exists; return the new row."""

    if alert_exists(
        session,
        family_id=family_id,
        alert_type=alert_type,
        month=month,
        amount=amount,
        category_id=category_id,
    ):
        return None
    log = BudgetAlertLog(
        family_id=family_id,
        type=alert_type,
        month=month,
        projected_amount=_money(amount),
        budget_amount=_money(budget),
        category_id=category_id,
    )
    session.add(log)
    session.flush()
    return log
