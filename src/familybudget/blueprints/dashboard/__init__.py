"""Dashboard blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint(
    "dashboard",
    __name__,
    url_prefix="/dashboard",
    template_folder="../../templates/dashboard",
)

from . import routes  # noqa: E402,F401 - ensure routes get registered

__all__ = ["bp"]
