"""Family form validation helpers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ...services.families import validate_family_details


@dataclass(slots=True)
class FamilyForm:
    """Name and monthly target budget of a family."""

    name: str = ""
    budget: float | None = None
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)
    raw_budget: str = field(default="", init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> FamilyForm:
        form = cls(name=str(data.get("name") or "").strip())
        form.raw_budget = str(data.get("monthly_target_budget") or "").strip()
        return form

    def validate(self) -> bool:
        self.errors.clear()
        self.budget = None
        if self.raw_budget:
            try:
                self.budget = float(self.raw_budget)
            except ValueError:
                self.errors.setdefault("monthly_target_budget", []).append(
                    "Enter a valid number for the budget."
                )
                return False
        for problem in validate_family_details(self.name, self.budget):
            key = "monthly_target_budget" if "budget" in problem.lower() else "name"
            self.errors.setdefault(key, []).append(problem)
        return not self.errors

    @property
    def budget_value(self) -> str:
        if self.raw_budget:
            return self.raw_budget
        return f"{self.budget:.2f}" if self.budget is not None else ""


@dataclass(slots=True)
class AddMemberForm:
    email: str = ""
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> AddMemberForm:
        return cls(email=str(data.get("email") or "").strip())

    def validate(self) -> bool:
        self.errors.clear()
        if not self.email:
            self.errors.setdefault("email", []).append("Email is required.")
        return not self.errors
