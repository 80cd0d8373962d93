"""Threshold form validation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(slots=True)
class ThresholdForm:
    """Category and monthly limit of a threshold."""

    category_id: Optional[int] = None
    amount: float | None = None
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)
    raw_data: dict[str, str] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ThresholdForm:
        form = cls()
        form.raw_data = {
            key: str(data.get(key) or "").strip() for key in ("category_id", "amount")
        }
        return form

    def validate(self, *, require_category: bool = True) -> bool:
        self.errors.clear()

        if require_category:
            category_raw = self.raw_data.get("category_id", "")
            self.category_id = int(category_raw) if category_raw.isdigit() else None
            if not self.category_id:
                self.errors.setdefault("category_id", []).append("Category is required.")

        amount_raw = self.raw_data.get("amount", "")
        try:
            self.amount = float(amount_raw)
        except ValueError:
            self.amount = None
            self.errors.setdefault("amount", []).append("Enter a valid number for the amount.")

        return not self.errors

    def value(self, key: str) -> str:
        if key in self.raw_data:
            return self.raw_data[key]
        attr = getattr(self, key)
        if attr is None:
            return ""
        return f"{attr:.2f}" if key == "amount" else str(attr)
