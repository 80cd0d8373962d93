"""Subscription routes."""

from __future__ import annotations

from typing import Any

from flask import abort, flash, redirect, render_template, request, url_for
from flask_login import login_required
from sqlmodel import Session, select

from ...extensions import session_scope
from ...logging_config import get_logger
from ...models import Category, Expense, Subscription, User
from ...models.subscription import FREQUENCIES
from ...services.access import CREATE, DELETE, EDIT, VIEW, is_granted
from ...services.spending import active_categories
from .. import ALL_MEMBERS, load_actor, owner_choices, parse_positive_int, resolve_owner_scope
from . import bp
from .forms import SubscriptionForm, form_values
from .repository import SORT_COLUMNS, SQLModelSubscriptionRepository

logger = get_logger("subscriptions")


def _load_subscription(session: Session, actor: User, subscription_id: int, attribute: str) -> Subscription:
    subscription = session.get(Subscription, subscription_id)
    if subscription is None:
        abort(404)
    if not is_granted(attribute, actor, item=subscription, owner=subscription.user):
        abort(403)
    return subscription


def _form_context(session: Session, actor: User) -> dict[str, Any]:
    return {
        "categories": [(category.id, category.name) for category in active_categories(session)],
        "owners": owner_choices(session, actor),
        "frequencies": FREQUENCIES,
    }


def _render_form(
    form: SubscriptionForm,
    context: dict[str, Any],
    *,
    action: str,
    subscription_id: int | None = None,
    status: int = 200,
):
    body = render_template(
        "subscriptions/form.html",
        form=form,
        form_values=form_values(form),
        form_action=action,
        is_edit=subscription_id is not None,
        subscription_id=subscription_id,
        **context,
    )
    return body, status


def _check_form(session: Session, actor: User, form: SubscriptionForm) -> User | None:
    """Validate ``form`` and return the owner the subscription belongs to."""

    if not form.validate():
        return None
    category = session.get(Category, form.category_id)
    if category is None or category.is_deleted:
        form.errors.setdefault("category_id", []).append("Choose an existing category.")
        return None
    owner = session.get(User, form.user_id) if form.user_id else actor
    if owner is None:
        abort(404)
    if not is_granted(CREATE, actor, owner=owner):
        abort(403)
    return owner


@bp.get("/")
@login_required
def list_subscriptions():
    """Display subscriptions with filters, sorting and pagination."""

    filters = request.args.to_dict(flat=True)
    page = parse_positive_int(filters.get("page")) or 1
    per_page = parse_positive_int(filters.get("per_page")) or 0

    with session_scope() as session:
        actor = load_actor(session)
        user_ids, owner = resolve_owner_scope(session, actor, filters.get("user"))
        result = SQLModelSubscriptionRepository(session).list_subscriptions(
            user_ids=user_ids, filters=filters, page=page, per_page=per_page
        )
        categories = [(category.id, category.name) for category in active_categories(session)]
        owners = owner_choices(session, actor)
        owner_name = owner.name if owner is not None else "All family members"

    return render_template(
        "subscriptions/index.html",
        result=result,
        filters=filters,
        categories=categories,
        owners=owners,
        owner_name=owner_name,
        frequencies=FREQUENCIES,
        sort_options=list(SORT_COLUMNS),
        all_members=ALL_MEMBERS,
    )


@bp.route("/new", methods=["GET", "POST"])
@login_required
def new_subscription():
    with session_scope() as session:
        actor = load_actor(session)
        context = _form_context(session, actor)
        action = url_for("subscriptions.new_subscription")

        if request.method == "GET":
            return _render_form(SubscriptionForm(user_id=actor.id), context, action=action)

        form = SubscriptionForm.from_mapping(request.form)
        owner = _check_form(session, actor, form)
        if owner is None:
            return _render_form(form, context, action=action, status=400)

        subscription = Subscription(
            user_id=owner.id,
            category_id=form.category_id,
            name=form.name,
            amount=form.amount,
            frequency=form.frequency,
            next_due_date=form.next_due_date,
            is_active=form.is_active,
        )
        session.add(subscription)
        session.flush()
        subscription_id = subscription.id
        logger.info(
            "Subscription created",
            extra={"subscription_id": subscription_id, "user_id": owner.id},
        )

    flash("Subscription added successfully.", "success")
    return redirect(url_for("subscriptions.view_subscription", subscription_id=subscription_id))


@bp.get("/<int:subscription_id>")
@login_required
def view_subscription(subscription_id: int):
    with session_scope() as session:
        actor = load_actor(session)
        subscription = _load_subscription(session, actor, subscription_id, VIEW)
        details = {
            "id": subscription.id,
            "name": subscription.name,
            "amount": f"{subscription.amount:,.2f}",
            "frequency": subscription.frequency,
            "next_due_date": subscription.next_due_date.isoformat(),
            "is_active": subscription.is_active,
            "category": subscription.category.name if subscription.category else "",
            "user": subscription.user.name if subscription.user else "",
            "can_edit": is_granted(EDIT, actor, item=subscription, owner=subscription.user),
        }
    return render_template("subscriptions/view.html", subscription=details)


@bp.route("/<int:subscription_id>/edit", methods=["GET", "POST"])
@login_required
def edit_subscription(subscription_id: int):
    with session_scope() as session:
        actor = load_actor(session)
        subscription = _load_subscription(session, actor, subscription_id, EDIT)
        context = _form_context(session, actor)
        action = url_for("subscriptions.edit_subscription", subscription_id=subscription_id)

        if request.method == "GET":
            form = SubscriptionForm(
                name=subscription.name,
                amount=subscription.amount,
                frequency=subscription.frequency,
                next_due_date=subscription.next_due_date,
                category_id=subscription.category_id,
                user_id=subscription.user_id,
                is_active=subscription.is_active,
            )
            return _render_form(form, context, action=action, subscription_id=subscription_id)

        form = SubscriptionForm.from_mapping(request.form)
        if not form.raw_data.get("user_id"):
            form.raw_data["user_id"] = str(subscription.user_id)
        owner = _check_form(session, actor, form)
        if owner is None:
            return _render_form(
                form, context, action=action, subscription_id=subscription_id, status=400
            )

        subscription.user_id = owner.id
        subscription.category_id = form.category_id
        subscription.name = form.name
        subscription.amount = form.amount
        subscription.frequency = form.frequency
        subscription.next_due_date = form.next_due_date
        subscription.is_active = form.is_active
        session.add(subscription)

    flash("Subscription updated successfully.", "success")
    return redirect(url_for("subscriptions.view_subscription", subscription_id=subscription_id))


@bp.post("/<int:subscription_id>/delete")
@login_required
def delete_subscription(subscription_id: int):
    """Delete a subscription; expenses it already generated are kept."""

    with session_scope() as session:
        actor = load_actor(session)
        subscription = _load_subscription(session, actor, subscription_id, DELETE)
        for expense in session.exec(
            select(Expense).where(Expense.subscription_id == subscription.id)
        ).all():
            expense.subscription_id = None
            session.add(expense)
        session.flush()
        session.delete(subscription)

    logger.info("Subscription deleted", extra={"subscription_id": subscription_id})
    flash("Subscription deleted.", "success")
    return redirect(url_for("subscriptions.list_subscriptions"))
