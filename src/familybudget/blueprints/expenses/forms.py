"""Expense form validation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

_KEYS = ("name", "description", "amount", "occurred_at", "category_id", "user_id")


@dataclass(slots=True)
class ExpenseForm:
    """Represents expense input prior to validation."""

    name: str = ""
    description: str = ""
    amount: float | None = None
    occurred_at: datetime | None = None
    category_id: Optional[int] = None
    user_id: Optional[int] = None
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)
    raw_data: dict[str, str] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> ExpenseForm:
        """Create a form populated from request data."""

        form = cls()
        form.load(data)
        return form

    def load(self, data: Mapping[str, Any]) -> None:
        self.raw_data = {}
        for key in _KEYS:
            value = data.get(key)  # type: ignore[arg-type]
            if value is None:
                value_str = ""
            elif isinstance(value, str):
                value_str = value
            else:
                value_str = str(value)
            self.raw_data[key] = value_str

        self.name = self.raw_data.get("name", "").strip()
        self.description = self.raw_data.get("description", "").strip()

    def validate(self) -> bool:
        """Validate the bound data and populate typed attributes."""

        self.errors.clear()

        if not self.name:
            self._add_error("name", "Name is required.")
        elif len(self.name) > 51:
            self._add_error("name", "Name must be 51 characters or fewer.")

        if len(self.description) > 255:
            self._add_error("description", "Description must be 255 characters or fewer.")

        amount_raw = self.raw_data.get("amount", "").strip()
        self.amount = None
        if not amount_raw:
            self._add_error("amount", "Amount is required.")
        else:
            try:
                parsed_amount = float(amount_raw)
            except (TypeError, ValueError):
                self._add_error("amount", "Enter a valid number for the amount.")
            else:
                if parsed_amount <= 0:
                    self._add_error("amount", "Amount must be greater than zero.")
                else:
                    self.amount = round(parsed_amount, 2)

        occurred_raw = self.raw_data.get("occurred_at", "").strip()
        self.occurred_at = None
        if not occurred_raw:
            self._add_error("occurred_at", "Date is required.")
        else:
            try:
                if len(occurred_raw) == 10:
                    self.occurred_at = datetime.strptime(occurred_raw, "%Y-%m-%d")
                else:
                    self.occurred_at = datetime.fromisoformat(occurred_raw)
            except ValueError:
                self._add_error("occurred_at", "Enter a valid date (YYYY-MM-DD).")

        self.category_id = self._parse_id("category_id", required=True, label="Category")
        self.user_id = self._parse_id("user_id", required=False, label="User")

        return not self.errors

    def _parse_id(self, key: str, *, required: bool, label: str) -> int | None:
        raw = self.raw_data.get(key, "").strip()
        if not raw:
            if required:
                self._add_error(key, f"{label} is required.")
            return None
        try:
            parsed = int(raw)
        except ValueError:
            self._add_error(key, f"{label} must be a whole number.")
            return None
        if parsed <= 0:
            self._add_error(key, f"{label} must be greater than zero.")
            return None
        return parsed

    def _add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)


def form_values(form: ExpenseForm) -> dict[str, str]:
    """Convert an ExpenseForm into HTML-friendly string values."""

    if form.raw_data:
        return dict(form.raw_data)
    return {
        "name": form.name,
        "description": form.description,
        "amount": f"{form.amount:.2f}" if form.amount is not None else "",
        "occurred_at": form.occurred_at.strftime("%Y-%m-%d") if form.occurred_at else "",
        "category_id": str(form.category_id) if form.category_id is not None else "",
        "user_id": str(form.user_id) if form.user_id is not None else "",
    }
