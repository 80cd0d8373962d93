"""Category threshold routes."""

from __future__ import annotations

from flask import abort, flash, redirect, render_template, request, url_for
from flask_login import login_required

from ...extensions import session_scope
from ...models import Category, Threshold
from ...services import thresholds as threshold_service
from ...services.spending import active_categories
from ...services.thresholds import ThresholdError
from .. import load_actor
from . import bp
from .forms import ThresholdForm


def _family_home():
    return redirect(url_for("family.home"))


@bp.route("/add", methods=["GET", "POST"])
@login_required
def add():
    """Add a spending limit for one category of the viewer's family."""

    with session_scope() as session:
        actor = load_actor(session)
        if actor.family_id is None:
            flash("You are not part of any family.", "warning")
            return _family_home()
        categories = [(category.id, category.name) for category in active_categories(session)]

    form = ThresholdForm()
    if request.method == "POST":
        form = ThresholdForm.from_mapping(request.form)
        if form.validate():
            try:
                with session_scope() as session:
                    threshold_service.add_threshold(
                        session, load_actor(session), form.category_id, form.amount
                    )
            except ThresholdError as exc:
                flash(str(exc), exc.category)
            else:
                flash("Threshold added successfully.", "success")
                return _family_home()
        return render_template("thresholds/form.html", form=form, categories=categories, is_edit=False), 400

    return render_template("thresholds/form.html", form=form, categories=categories, is_edit=False)


@bp.route("/edit/<int:threshold_id>", methods=["GET", "POST"])
@login_required
def edit(threshold_id: int):
    with session_scope() as session:
        actor = load_actor(session)
        threshold = session.get(Threshold, threshold_id)
        if threshold is None or threshold.family_id != actor.family_id:
            abort(404)
        if not actor.is_admin:
            abort(403)
        category = session.get(Category, threshold.category_id)
        category_name = category.name if category else ""
        current = ThresholdForm(category_id=threshold.category_id, amount=float(threshold.amount))

    if request.method == "GET":
        return render_template(
            "thresholds/form.html",
            form=current,
            category_name=category_name,
            threshold_id=threshold_id,
            is_edit=True,
        )

    form = ThresholdForm.from_mapping(request.form)
    if form.validate(require_category=False):
        try:
            with session_scope() as session:
                threshold_service.update_threshold(
                    session, load_actor(session), threshold_id, form.amount
                )
        except ThresholdError as exc:
            flash(str(exc), exc.category)
        else:
            flash("Threshold updated successfully.", "success")
            return _family_home()
    return (
        render_template(
            "thresholds/form.html",
            form=form,
            category_name=category_name,
            threshold_id=threshold_id,
            is_edit=True,
        ),
        400,
    )


@bp.post("/delete/<int:threshold_id>")
@login_required
def delete(threshold_id: int):
    try:
        with session_scope() as session:
            threshold_service.delete_threshold(session, load_actor(session), threshold_id)
    except ThresholdError as exc:
        flash(str(exc), exc.category)
    else:
        flash("Threshold deleted.", "success")
    return _family_home()
