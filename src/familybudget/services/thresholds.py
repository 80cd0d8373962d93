"""Category threshold rules for family admins."""

from __future__ import annotations

from typing import Iterable

from sqlmodel import Session, select

from ..logging_config import get_logger
from ..models import Category, Family, Threshold, User

logger = get_logger("services.thresholds")


class ThresholdError(ValueError):
    """A threshold change was refused; ``category`` is the flash category to use."""

    def __init__(self, message: str, category: str = "danger") -> None:
        super().__init__(message)
        self.category = category


def validate_threshold_amount(amount: float, existing: Iterable[Threshold], family: Family) -> bool:
    """True when the existing thresholds plus ``amount`` stay within the family budget."""

    total = sum(float(threshold.amount or 0.0) for threshold in existing)
    return total + amount <= float(family.monthly_target_budget or 0.0)


def family_thresholds(session: Session, family_id: int) -> list[tuple[Threshold, Category]]:
    statement = (
        select(Threshold, Category)
        .join(Category, Category.id == Threshold.category_id)
        .where(Threshold.family_id == family_id)
        .order_by(Category.name)
    )
    return [(threshold, category) for threshold, category in session.exec(statement).all()]


def _family_for(session: Session, user: User) -> Family:
    if user.family_id is None:
        raise ThresholdError("You are not part of any family.")
    family = session.get(Family, user.family_id)
    if family is None:
        raise ThresholdError("Family not found.")
    return family


def _load_threshold(session: Session, user: User, threshold_id: int) -> Threshold:
    threshold = session.get(Threshold, threshold_id)
    if threshold is None or threshold.family_id != user.family_id:
        raise ThresholdError("Threshold not found.")
    return threshold


def add_threshold(session: Session, user: User, category_id: int, amount: float) -> Threshold:
    """Add a threshold for ``category_id`` to the user's family."""

    family = _family_for(session, user)
    category = session.get(Category, category_id)
    if category is None or category.is_deleted:
        raise ThresholdError("Category not found.")

    existing = session.exec(select(Threshold).where(Threshold.family_id == family.id)).all()
    if any(threshold.category_id == category_id for threshold in existing):
        raise ThresholdError("Threshold for this category already exists!", "warning")
    if amount is None or amount <= 0:
        raise ThresholdError("Threshold amount must be greater than zero!")
    if not validate_threshold_amount(amount, existing, family):
        raise ThresholdError("Invalid threshold value, the total exceeds the monthly budget!")

    threshold = Threshold(family_id=family.id, category_id=category_id, amount=float(amount))
    session.add(threshold)
    session.flush()
    logger.info(
        "Threshold added",
        extra={"family_id": family.id, "category_id": category_id, "amount": amount},
    )
    return threshold


def update_threshold(session: Session, user: User, threshold_id: int, amount: float) -> Threshold:
    if not user.is_admin:
        raise ThresholdError("You do not have permission to edit thresholds.")
    family = _family_for(session, user)
    threshold = _load_threshold(session, user, threshold_id)
    if amount is None or amount <= 0:
        raise ThresholdError("Threshold amount must be greater than zero!")

    others = [
        other
        for other in session.exec(select(Threshold).where(Threshold.family_id == family.id)).all()
        if other.id != threshold.id
    ]
    if not validate_threshold_amount(amount, others, family):
        raise ThresholdError("Invalid threshold value, the total exceeds the monthly budget!")

    threshold.amount = float(amount)
    session.add(threshold)
    session.flush()
    return threshold


def delete_threshold(session: Session, user: User, threshold_id: int) -> None:
    if not user.is_admin:
        raise ThresholdError("You do not have permission to delete thresholds.")
    threshold = _load_threshold(session, user, threshold_id)
    session.delete(threshold)
    session.flush()
