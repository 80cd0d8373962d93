"""Authentication and user management services."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerificationError, VerifyMismatchError
from sqlmodel import Session, select

from ..models.user import ROLES, ROLE_USER, User

_hasher = PasswordHasher()
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


class AuthError(ValueError):
    """Registration or credential problem that can be shown to the user."""


def _normalize_role(role: str) -> str:
    role = (role or ROLE_USER).lower()
    if role not in ROLES:
        raise AuthError(f"Invalid role: {role}")
    return role


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user_by_email(session: Session, email: str) -> Optional[User]:
    return session.exec(select(User).where(User.email == normalize_email(email))).first()


def create_user(
    session: Session,
    *,
    email: str,
    name: str,
    password: str,
    role: str = ROLE_USER,
    family_id: int | None = None,
) -> User:
    """Create a new user with an argon2 password hash."""

    email = normalize_email(email)
    name = (name or "").strip()
    if not _EMAIL_RE.match(email):
        raise AuthError("Enter a valid email address.")
    if not name:
        raise AuthError("Name is required.")
    if len(name) > 51:
        raise AuthError("Name must be 51 characters or fewer.")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    normalized_role = _normalize_role(role)
    if get_user_by_email(session, email) is not None:
        raise AuthError("There is already an account with this email.")

    user = User(
        email=email,
        name=name,
        password_hash=_hasher.hash(password),
        role=normalized_role,
        family_id=family_id,
    )
    session.add(user)
    session.flush()
    session.refresh(user)
    return user


def authenticate(session: Session, *, email: str, password: str) -> Optional[User]:
    """Validate credentials and return the user when correct."""

    if not normalize_email(email):
        return None
    user = get_user_by_email(session, email)
    if user is None:
        return None
    try:
        _hasher.verify(user.password_hash, password)
    except (VerifyMismatchError, InvalidHash, VerificationError):
        return None

    if _hasher.check_needs_rehash(user.password_hash):
        user.password_hash = _hasher.hash(password)
    user.last_login = datetime.now(timezone.utc)
    session.add(user)
    session.flush()
    return user
