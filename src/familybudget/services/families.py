"""Family membership rules."""

from __future__ import annotations

import re

from sqlmodel import Session, select

from ..logging_config import get_logger
from ..models import BudgetAlertLog, Family, Threshold, User
from ..models.user import ROLE_ADMIN, ROLE_MEMBER, ROLE_USER

logger = get_logger("services.families")

_NAME_RE = re.compile(r"^[A-Za-z ]+$")
ASSIGNABLE_ROLES = (ROLE_MEMBER, ROLE_ADMIN)


class FamilyError(ValueError):
    """A family operation was refused; the message is safe to show to users."""


def validate_family_details(name: str, budget: float | None) -> list[str]:
    """Return human-readable problems with a family name and budget."""

    problems: list[str] = []
    name = (name or "").strip()
    if not name:
        problems.append("Family name is required.")
    elif len(name) > 75:
        problems.append("Family name must be 75 characters or fewer.")
    elif not _NAME_RE.match(name):
        problems.append("Family name may only contain letters and spaces.")
    if budget is None or budget <= 0:
        problems.append("Monthly budget must be greater than zero.")
    return problems


def _require_admin(user: User, message: str) -> None:
    if not user.is_admin:
        raise FamilyError(message)


def _load_member(session: Session, actor: User, user_id: int) -> User:
    member = session.get(User, user_id)
    if member is None:
        raise FamilyError("User not found.")
    if not actor.same_family(member):
        raise FamilyError("User is not part of your family.")
    return member


def create_family(session: Session, user: User, name: str, budget: float) -> Family:
    """Create a family; its creator becomes the admin."""

    if user.family_id is not None:
        raise FamilyError("You already belong to a family.")
    problems = validate_family_details(name, budget)
    if problems:
        raise FamilyError(" ".join(problems))

    family = Family(name=name.strip(), monthly_target_budget=float(budget))
    session.add(family)
    session.flush()

    user.family_id = family.id
    user.role = ROLE_ADMIN
    session.add(user)
    session.flush()
    logger.info("Family created", extra={"family_id": family.id, "user_id": user.id})
    return family


def list_families(session: Session) -> list[Family]:
    return list(session.exec(select(Family).order_by(Family.name)).all())


def join_family(session: Session, user: User, family_id: int) -> Family:
    """Join ``family_id`` as a member."""

    family = session.get(Family, family_id)
    if family is None:
        raise FamilyError("Family not found.")
    if user.family_id is not None:
        raise FamilyError("You already belong to a family.")
    user.family_id = family.id
    user.role = ROLE_MEMBER
    session.add(user)
    session.flush()
    logger.info("User joined family", extra={"family_id": family.id, "user_id": user.id})
    return family


def add_member_by_email(session: Session, actor: User, email: str) -> User:
    """Add the user registered under ``email`` to the actor's family."""

    if actor.family_id is None:
        raise FamilyError("You are not part of any family.")
    email = (email or "").strip().lower()
    target = session.exec(select(User).where(User.email == email)).first()
    if target is None:
        raise FamilyError("User with this email does not exist.")
    if target.family_id is not None:
        raise FamilyError("User already belongs to a family.")
    target.family_id = actor.family_id
    target.role = ROLE_MEMBER
    session.add(target)
    session.flush()
    return target


def verify_leave_possibility(session: Session, user: User) -> bool:
    """False when ``user`` is the only admin left in the family."""

    if user.family_id is None:
        return True
    admins = session.exec(
        select(User.id).where(User.family_id == user.family_id, User.role == ROLE_ADMIN)
    ).all()
    return not (len(admins) == 1 and admins[0] == user.id)


def leave_family(session: Session, user: User) -> None:
    if user.family_id is None:
        raise FamilyError("You are not part of any family.")
    if not verify_leave_possibility(session, user):
        raise FamilyError(
            "Can't leave family if you are the only admin. "
            "Give the admin role to someone else before leaving the family."
        )
    family_id = user.family_id
    user.family_id = None
    user.role = ROLE_USER
    session.add(user)
    session.flush()
    logger.info("User left family", extra={"family_id": family_id, "user_id": user.id})


def kick_member(session: Session, actor: User, user_id: int) -> User:
    if actor.id == user_id:
        raise FamilyError("You cannot kick this user.")
    _require_admin(actor, "Only admins can kick users from the family.")
    member = _load_member(session, actor, user_id)
    member.family_id = None
    member.role = ROLE_USER
    session.add(member)
    session.flush()
    return member


def change_role(session: Session, actor: User, user_id: int, role: str) -> User:
    _require_admin(actor, "Only admins can change user roles.")
    role = (role or "").strip().lower()
    if role not in ASSIGNABLE_ROLES:
        raise FamilyError(f"Invalid role: {role or '(empty)'}")
    member = _load_member(session, actor, user_id)
    if member.id == actor.id and role != ROLE_ADMIN and not verify_leave_possibility(session, actor):
        raise FamilyError("Give the admin role to someone else first.")
    member.role = role
    session.add(member)
    session.flush()
    return member


def update_family(session: Session, actor: User, name: str, budget: float) -> Family:
    _require_admin(actor, "Only admins can update family.")
    problems = validate_family_details(name, budget)
    if problems:
        raise FamilyError(" ".join(problems))
    family = session.get(Family, actor.family_id)
    if family is None:
        raise FamilyError("Family not found.")
    family.name = name.strip()
    family.monthly_target_budget = float(budget)
    session.add(family)
    session.flush()
    return family


def delete_family(session: Session, actor: User) -> None:
    """Delete the actor's family; only allowed when the actor is its last member."""

    if actor.family_id is None:
        raise FamilyError("You are not part of any family.")
    family = session.get(Family, actor.family_id)
    if family is None:
        raise FamilyError("Family not found.")
    members = session.exec(select(User).where(User.family_id == family.id)).all()
    if len(members) != 1:
        raise FamilyError("You cannot delete family.")

    family_id = family.id
    actor.family_id = None
    actor.role = ROLE_USER
    session.add(actor)
    for threshold in session.exec(select(Threshold).where(Threshold.family_id == family_id)).all():
        session.delete(threshold)
    for log in session.exec(select(BudgetAlertLog).where(BudgetAlertLog.family_id == family_id)).all():
        session.delete(log)
    session.flush()
    session.delete(family)
    session.flush()
    logger.info("Family deleted", extra={"family_id": family_id, "user_id": actor.id})
