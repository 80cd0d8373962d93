"""Category thresholds blueprint package."""

from __future__ import annotations

from flask import Blueprint

bp = Blueprint(
    "thresholds",
    __name__,
    url_prefix="/thresholds",
    template_folder="../../templates/thresholds",
)

from . import routes  # noqa: E402,F401 - ensure routes get registered

__all__ = ["bp"]
