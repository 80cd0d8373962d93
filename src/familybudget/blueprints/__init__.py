"""Blueprint packages and helpers shared by their routes."""

from __future__ import annotations

from flask import abort
from flask_login import current_user
from sqlmodel import Session

from ..models import User
from ..services.access import LIST, is_granted
from ..services.spending import family_member_ids, family_members

ALL_MEMBERS = "__all__"


def load_actor(session: Session) -> User:
    """Re-load the logged-in user inside ``session`` so relationships and updates work."""

    user = session.get(User, current_user.id)
    if user is None:
        abort(401)
    return user


def parse_positive_int(value: str | None) -> int | None:
    if value in (None, ""):
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def resolve_owner_scope(
    session: Session, actor: User, user_param: str | None
) -> tuple[list[int], User | None]:
    """User ids a listing shows, plus the single owner when there is one.

    ``user_param`` is empty (the actor), a user id, or ``__all__`` for every
    member of an admin's family.
    """

    if user_param == ALL_MEMBERS:
        if not actor.is_admin:
            abort(403)
        return family_member_ids(session, actor.family_id), None
    if user_param:
        owner_id = parse_positive_int(user_param)
        owner = session.get(User, owner_id) if owner_id is not None else None
        if owner is None:
            abort(404)
    else:
        owner = actor
    if not is_granted(LIST, actor, owner=owner):
        abort(403)
    return [owner.id], owner


def owner_choices(session: Session, actor: User) -> list[tuple[int, str]]:
    """Users the actor may record items for."""

    if actor.is_admin:
        return [(member.id, member.name) for member in family_members(session, actor.family_id)]
    return [(actor.id, actor.name)]


__all__ = [
    "ALL_MEMBERS",
    "load_actor",
    "owner_choices",
    "parse_positive_int",
    "resolve_owner_scope",
]
