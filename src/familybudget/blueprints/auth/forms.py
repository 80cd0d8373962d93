"""Login and registration form validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ...services.auth import MIN_PASSWORD_LENGTH


def _text(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(slots=True)
class LoginForm:
    email: str = ""
    password: str = ""
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LoginForm:
        return cls(email=_text(data, "email").strip(), password=_text(data, "password"))

    def validate(self) -> bool:
        self.errors.clear()
        if not self.email:
            self.errors.setdefault("email", []).append("Email is required.")
        if not self.password:
            self.errors.setdefault("password", []).append("Password is required.")
        return not self.errors


@dataclass(slots=True)
class RegistrationForm:
    """Represents sign-up input prior to validation."""

    email: str = ""
    name: str = ""
    password: str = ""
    confirm_password: str = ""
    errors: dict[str, list[str]] = field(default_factory=dict, init=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RegistrationForm:
        return cls(
            email=_text(data, "email").strip(),
            name=_text(data, "name").strip(),
            password=_text(data, "password"),
            confirm_password=_text(data, "confirm_password"),
        )

    def validate(self) -> bool:
        self.errors.clear()

        if not self.email:
            self._add_error("email", "Email is required.")
        if not self.name:
            self._add_error("name", "Name is required.")
        elif len(self.name) > 51:
            self._add_error("name", "Name must be 51 characters or fewer.")
        if len(self.password) < MIN_PASSWORD_LENGTH:
            self._add_error(
                "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
            )
        if self.password != self.confirm_password:
            self._add_error("confirm_password", "Passwords do not match.")

        return not self.errors

    def _add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)
