"""Family management blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint(
    "family",
    __name__,
    url_prefix="/family",
    template_folder="../../templates/family",
)

from . import routes  # noqa: E402,F401 - ensure routes get registered

__all__ = ["bp"]
