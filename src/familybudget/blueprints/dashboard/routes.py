"""Dashboard routes."""

from __future__ import annotations

from datetime import date

from flask import flash, render_template, request
from flask_login import login_required

from ...extensions import session_scope
from ...services import charts
from ...services.dashboard import VIEW_FAMILY, build_dashboard
from ...services.projection import month_context_for, shift_month
from .. import load_actor
from . import bp

_MONTH_CHOICES = 12


def _month_choices(today: date) -> list[tuple[str, str]]:
    choices = []
    for offset in range(_MONTH_CHOICES):
        context = month_context_for(*shift_month(today.year, today.month, -offset), today)
        choices.append((context.key, context.label))
    return choices


@bp.get("/")
@login_required
def index():
    """Render spending charts and the month-end projection for the viewer or their family."""

    today = date.today()
    requested_view = request.args.get("viewType", "user")
    with session_scope() as session:
        viewer = load_actor(session)
        if requested_view == VIEW_FAMILY and viewer.family_id is None:
            flash("Join or create a family to see the family dashboard.", "info")
        data = build_dashboard(
            session,
            viewer,
            view_type=requested_view,
            month_key=request.args.get("month"),
            prediction=request.args.get("prediction", "current"),
            today=today,
        )
        has_family = viewer.family_id is not None

    svgs = {
        "breakdown": charts.breakdown_pie_svg(data.breakdown, title=data.breakdown_title),
        "split": charts.subscriptions_vs_one_time_svg(data.split),
        "top_expenses": charts.top_expenses_svg(data.top_expenses, period_label=data.context.label),
        "comparison": charts.month_comparison_svg(data.comparison),
        "projection": charts.projection_svg(
            data.projection, label=data.projection_label, budget=data.budget
        ),
    }
    return render_template(
        "dashboard/index.html",
        data=data,
        charts=svgs,
        has_family=has_family,
        month_choices=_month_choices(today),
    )
