"""Recurring payments that materialize into expenses when due."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .category import Category
    from .user import User

FREQUENCY_WEEKLY = "weekly"
FREQUENCY_MONTHLY = "monthly"
FREQUENCY_YEARLY = "yearly"
FREQUENCIES = (FREQUENCY_WEEKLY, FREQUENCY_MONTHLY, FREQUENCY_YEARLY)


class Subscription(SQLModel, table=True):
    """A recurring charge owned by a user."""

    __tablename__: ClassVar[str] = "subscription"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", nullable=False, index=True)
    category_id: int = Field(foreign_key="category.id", nullable=False, index=True)
    name: str = Field(nullable=False, max_length=75)
    amount: float = Field(nullable=False)
    frequency: str = Field(default=FREQUENCY_MONTHLY, nullable=False, max_length=16)
    next_due_date: date = Field(nullable=False, index=True)
    is_active: bool = Field(default=True, nullable=False, index=True)

    category: "Category" = Relationship(sa_relationship=relationship("Category"))
    user: "User" = Relationship(sa_relationship=relationship("User"))
