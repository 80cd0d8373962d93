"""SQLModel definitions for recorded expenses."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover - import guard for circular dependency
    from .category import Category
    from .subscription import Subscription
    from .user import User


class Expense(SQLModel, table=True):
    """A single outgoing payment, hand-entered or generated from a subscription."""

    __tablename__: ClassVar[str] = "expense"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    category_id: int = Field(foreign_key="category.id", nullable=False, index=True)
    subscription_id: Optional[int] = Field(
        default=None, foreign_key="subscription.id", index=True
    )
    name: str = Field(nullable=False, max_length=51)
    description: Optional[str] = Field(default=None, max_length=255)
    amount: float = Field(nullable=False, description="Always positive")
    occurred_at: datetime = Field(nullable=False, index=True)
    receipt_image: Optional[str] = Field(default=None, max_length=255)

    category: "Category" = Relationship(sa_relationship=relationship("Category"))
    user: "User" = Relationship(sa_relationship=relationship("User"))
    subscription: "Subscription | None" = Relationship(
        sa_relationship=relationship("Subscription")
    )
