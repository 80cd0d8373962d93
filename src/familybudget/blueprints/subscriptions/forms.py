"""Subscription form validation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from ...models.subscription import FREQUENCIES, FREQUENCY_MONTHLY

_KEYS = ("name", "amount", "frequency", "next_due_date", "category_id", "user_id")


@dataclass(slots=True)
class SubscriptionForm:
    """Represents subscription input prior to validation."""

    name: str = ""
    amount: float | None = None
    frequency: str = FREQUENCY_MONTHLY
    next_due_date: date | None = None
    category_id: Optional[int] = None
    user_id: Optional[int] = None
    is_active: bool = True
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)
    raw_data: dict[str, str] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SubscriptionForm:
        form = cls()
        form.load(data)
        return form

    def load(self, data: Mapping[str, Any]) -> None:
        self.raw_data = {}
        for key in _KEYS:
            value = data.get(key)  # type: ignore[arg-type]
            self.raw_data[key] = "" if value is None else str(value)
        self.name = self.raw_data["name"].strip()
        # unchecked checkboxes are absent from the submitted form
        self.is_active = str(data.get("is_active", "")).lower() in {"1", "on", "true", "yes"}

    def validate(self) -> bool:
        self.errors.clear()

        if not self.name:
            self._add_error("name", "Name is required.")
        elif len(self.name) > 75:
            self._add_error("name", "Name must be 75 characters or fewer.")

        amount_raw = self.raw_data.get("amount", "").strip()
        self.amount = None
        try:
            parsed_amount = float(amount_raw)
        except ValueError:
            self._add_error("amount", "Enter a valid number for the amount.")
        else:
            if parsed_amount <= 0:
                self._add_error("amount", "Amount must be greater than zero.")
            else:
                self.amount = round(parsed_amount, 2)

        frequency = self.raw_data.get("frequency", "").strip().lower()
        if frequency not in FREQUENCIES:
            self._add_error("frequency", "Choose weekly, monthly or yearly.")
        else:
            self.frequency = frequency

        due_raw = self.raw_data.get("next_due_date", "").strip()
        self.next_due_date = None
        try:
            self.next_due_date = date.fromisoformat(due_raw)
        except ValueError:
            self._add_error("next_due_date", "Enter a valid date (YYYY-MM-DD).")

        category_raw = self.raw_data.get("category_id", "").strip()
        self.category_id = int(category_raw) if category_raw.isdigit() and int(category_raw) > 0 else None
        if self.category_id is None:
            self._add_error("category_id", "Category is required.")

        user_raw = self.raw_data.get("user_id", "").strip()
        self.user_id = int(user_raw) if user_raw.isdigit() and int(user_raw) > 0 else None

        return not self.errors

    def _add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)


def form_values(form: SubscriptionForm) -> dict[str, Any]:
    if form.raw_data:
        values: dict[str, Any] = dict(form.raw_data)
    else:
        values = {
            "name": form.name,
            "amount": f"{form.amount:.2f}" if form.amount is not None else "",
            "frequency": form.frequency,
            "next_due_date": form.next_due_date.isoformat() if form.next_due_date else "",
            "category_id": str(form.category_id) if form.category_id is not None else "",
            "user_id": str(form.user_id) if form.user_id is not None else "",
        }
    values["is_active"] = form.is_active
    return values
