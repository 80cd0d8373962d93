"""Per-category spending limits set by family admins."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar, Optional

from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:  # pragma: no cover
    from .category import Category
    from .family import Family


class Threshold(SQLModel, table=True):
    """Monthly limit for one category inside one family."""

    __tablename__: ClassVar[str] = "threshold"
    __table_args__ = (UniqueConstraint("family_id", "category_id", name="uq_threshold_family_category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id", nullable=False, index=True)
    category_id: int = Field(foreign_key="category.id", nullable=False, index=True)
    amount: float = Field(nullable=False)

    family: "Family" = Relationship(
        back_populates="thresholds",
        sa_relationship=relationship("Family", back_populates="thresholds"),
    )
    category: "Category" = Relationship(sa_relationship=relationship("Category"))
