"""Record of budget warnings already delivered, used for idempotence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

TYPE_FAMILY_BUDGET = "family_budget"
TYPE_CATEGORY_THRESHOLD = "category_threshold"


class BudgetAlertLog(SQLModel, table=True):
    """One row per (family, alert type, month, amount, category) notification."""

    __tablename__: ClassVar[str] = "budget_alert_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    family_id: int = Field(foreign_key="family.id", nullable=False, index=True)
    type: str = Field(nullable=False, max_length=32, index=True)
    month: str = Field(nullable=False, max_length=7, index=True, description="YYYY-MM")
    projected_amount: float = Field(nullable=False)
    budget_amount: float = Field(nullable=False)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
