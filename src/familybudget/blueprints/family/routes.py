"""Family management routes."""

from __future__ import annotations

from datetime import date

from flask import abort, flash, redirect, render_template, request, url_for
from flask_login import login_required

from ...extensions import session_scope
from ...models import Family
from ...services import families as family_service
from ...services.families import FamilyError
from ...services.projection import resolve_month_context
from ...services.spending import category_totals, family_member_ids, family_members, member_totals
from ...services.thresholds import family_thresholds
from .. import load_actor
from . import bp
from .forms import AddMemberForm, FamilyForm


def _home():
    return redirect(url_for("family.home"))


@bp.get("/home")
@login_required
def home():
    """Show the viewer's family, its members and thresholds, or the create/join options."""

    with session_scope() as session:
        actor = load_actor(session)
        if actor.family_id is None:
            return render_template("family/no_family.html")

        family = session.get(Family, actor.family_id)
        if family is None:
            abort(404)
        context = resolve_month_context(None, date.today())
        member_ids = family_member_ids(session, family.id)
        spent_by_category = category_totals(session, member_ids, context.start, context.end)
        spent_by_member = dict(member_totals(session, family.id, context.start, context.end))

        members = [
            {
                "id": member.id,
                "name": member.name,
                "email": member.email,
                "role": member.role,
                "spent": spent_by_member.get(member.name, 0.0),
                "is_self": member.id == actor.id,
            }
            for member in family_members(session, family.id)
        ]
        thresholds = [
            {
                "id": threshold.id,
                "category": category.name,
                "amount": float(threshold.amount),
                "spent": spent_by_category.get(category.id, 0.0),
            }
            for threshold, category in family_thresholds(session, family.id)
        ]
        page = {
            "family": {
                "id": family.id,
                "name": family.name,
                "budget": float(family.monthly_target_budget),
            },
            "members": members,
            "thresholds": thresholds,
            "month_label": context.label,
            "is_admin": actor.is_admin,
            "can_leave": family_service.verify_leave_possibility(session, actor),
            "can_delete": len(members) == 1,
        }
    return render_template("family/home.html", **page)


@bp.route("/create", methods=["GET", "POST"])
@login_required
def create():
    form = FamilyForm()
    if request.method == "POST":
        form = FamilyForm.from_mapping(request.form)
        if form.validate():
            try:
                with session_scope() as session:
                    actor = load_actor(session)
                    family_service.create_family(session, actor, form.name, form.budget)
            except FamilyError as exc:
                flash(str(exc), "danger")
            else:
                flash("Family created successfully.", "success")
                return _home()
        return render_template("family/form.html", form=form, is_edit=False), 400
    return render_template("family/form.html", form=form, is_edit=False)


@bp.get("/join")
@login_required
def join():
    with session_scope() as session:
        actor = load_actor(session)
        if actor.family_id is not None:
            flash("You already belong to a family.", "warning")
            return _home()
        options = [
            {"id": family.id, "name": family.name}
            for family in family_service.list_families(session)
        ]
    return render_template("family/join.html", families=options)


@bp.post("/join/<int:family_id>")
@login_required
def join_family(family_id: int):
    try:
        with session_scope() as session:
            actor = load_actor(session)
            family = family_service.join_family(session, actor, family_id)
            family_name = family.name
    except FamilyError as exc:
        flash(str(exc), "danger")
        return redirect(url_for("family.join"))
    flash(f"You joined {family_name}.", "success")
    return _home()


@bp.route("/add-user", methods=["GET", "POST"])
@login_required
def add_user():
    form = AddMemberForm()
    if request.method == "POST":
        form = AddMemberForm.from_mapping(request.form)
        if form.validate():
            try:
                with session_scope() as session:
                    actor = load_actor(session)
                    member = family_service.add_member_by_email(session, actor, form.email)
                    member_name = member.name
            except FamilyError as exc:
                form.errors.setdefault("email", []).append(str(exc))
            else:
                flash(f"{member_name} was added to your family.", "success")
                return _home()
        return render_template("family/add_user.html", form=form), 400
    return render_template("family/add_user.html", form=form)


@bp.post("/leave")
@login_required
def leave():
    try:
        with session_scope() as session:
            family_service.leave_family(session, load_actor(session))
    except FamilyError as exc:
        flash(str(exc), "danger")
        return _home()
    flash("You left the family.", "success")
    return redirect(url_for("dashboard.index"))


@bp.post("/kick/<int:user_id>")
@login_required
def kick(user_id: int):
    try:
        with session_scope() as session:
            member = family_service.kick_member(session, load_actor(session), user_id)
            member_name = member.name
    except FamilyError as exc:
        flash(str(exc), "danger")
    else:
        flash(f"{member_name} was removed from the family.", "success")
    return _home()


@bp.post("/role-change/<int:user_id>")
@login_required
def role_change(user_id: int):
    try:
        with session_scope() as session:
            member = family_service.change_role(
                session, load_actor(session), user_id, request.form.get("role", "")
            )
            summary = f"{member.name} is now {member.role}."
    except FamilyError as exc:
        flash(str(exc), "danger")
    else:
        flash(summary, "success")
    return _home()


@bp.route("/edit", methods=["GET", "POST"])
@login_required
def edit():
    with session_scope() as session:
        actor = load_actor(session)
        if not actor.is_admin:
            abort(403)
        family = session.get(Family, actor.family_id)
        if family is None:
            abort(404)
        current = FamilyForm(name=family.name, budget=float(family.monthly_target_budget))

    if request.method == "GET":
        return render_template("family/form.html", form=current, is_edit=True)

    form = FamilyForm.from_mapping(request.form)
    if form.validate():
        try:
            with session_scope() as session:
                family_service.update_family(session, load_actor(session), form.name, form.budget)
        except FamilyError as exc:
            flash(str(exc), "danger")
        else:
            flash("Family updated successfully.", "success")
            return _home()
    return render_template("family/form.html", form=form, is_edit=True), 400


@bp.post("/delete")
@login_required
def delete():
    try:
        with session_scope() as session:
            family_service.delete_family(session, load_actor(session))
    except FamilyError as exc:
        flash(str(exc), "danger")
        return _home()
    flash("Family deleted.", "success")
    return redirect(url_for("dashboard.index"))
