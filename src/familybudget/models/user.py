"""User model supporting authentication and family roles."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Optional

from flask_login import UserMixin
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover - import guard for circular dependency
    from .family import Family

ROLE_USER = "user"
ROLE_MEMBER = "member"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_MEMBER, ROLE_ADMIN)


class User(UserMixin, SQLModel, table=True):
    """Application user; ``role`` tracks the standing inside ``family``."""

    __tablename__: ClassVar[str] = "user"

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(nullable=False, unique=True, index=True, max_length=180)
    name: str = Field(nullable=False, max_length=51)
    password_hash: str = Field(nullable=False, max_length=255)
    role: str = Field(default=ROLE_USER, nullable=False, max_length=16, index=True)
    family_id: Optional[int] = Field(default=None, foreign_key="family.id", index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    last_login: Optional[datetime] = Field(default=None)

    family: "Family | None" = Relationship(
        back_populates="members",
        sa_relationship=relationship("Family", back_populates="members"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN and self.family_id is not None

    def same_family(self, other: "User | None") -> bool:
        """True when both users belong to the same (non-empty) family."""

        return (
            other is not None
            and self.family_id is not None
            and self.family_id == other.family_id
        )
