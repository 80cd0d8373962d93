"""Family households sharing a monthly budget."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .threshold import Threshold
    from .user import User


class Family(SQLModel, table=True):
    """A group of users with a shared monthly target budget."""

    __tablename__: ClassVar[str] = "family"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=75, index=True)
    monthly_target_budget: float = Field(nullable=False, gt=0)

    members: list["User"] = Relationship(
        back_populates="family",
        sa_relationship=relationship("User", back_populates="family"),
    )
    thresholds: list["Threshold"] = Relationship(
        back_populates="family",
        sa_relationship=relationship(
            "Threshold", back_populates="family", cascade="all, delete-orphan"
        ),
    )
