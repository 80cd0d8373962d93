"""Who may see or change whose expenses and subscriptions."""

from __future__ import annotations

from typing import Protocol

from ..models import User

VIEW = "view"
EDIT = "edit"
DELETE = "delete"
LIST = "list"
CREATE = "create"


class Owned(Protocol):
    user_id: int


def can_act_for(actor: User, target: User | None) -> bool:
    """Self, or an admin acting for someone in the same family."""

    if target is None:
        return False
    if actor.id == target.id:
        return True
    return actor.is_admin and actor.same_family(target)


def can_access_item(actor: User, item: Owned, owner: User | None) -> bool:
    """Owners may do anything with their items; family admins may act on members' items."""

    if item.user_id == actor.id:
        return True
    return actor.is_admin and actor.same_family(owner)


def is_granted(attribute: str, actor: User, *, item: Owned | None = None, owner: User | None = None) -> bool:
    if attribute in (LIST, CREATE):
        return can_act_for(actor, owner)
    if attribute in (VIEW, EDIT, DELETE) and item is not None:
        return can_access_item(actor, item, owner)
    return False
