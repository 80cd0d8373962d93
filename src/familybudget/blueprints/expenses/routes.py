"""Expense routes."""

from __future__ import annotations

from typing import Any

from flask import abort, current_app, flash, redirect, render_template, request, send_file, url_for
from flask_login import login_required
from sqlmodel import Session

from ...extensions import session_scope
from ...logging_config import get_logger
from ...models import Category, Expense, User
from ...services.access import CREATE, DELETE, EDIT, VIEW, is_granted
from ...services.receipts import ReceiptError, ReceiptStorage
from ...services.spending import active_categories
from .. import ALL_MEMBERS, load_actor, owner_choices, parse_positive_int, resolve_owner_scope
from . import bp
from .forms import ExpenseForm, form_values
from .repository import SORT_COLUMNS, SQLModelExpenseRepository

logger = get_logger("expenses")


def _storage() -> ReceiptStorage:
    return ReceiptStorage(current_app.config["RECEIPTS_DIR"])


def _load_expense(session: Session, actor: User, expense_id: int, attribute: str) -> Expense:
    expense = session.get(Expense, expense_id)
    if expense is None:
        abort(404)
    if not is_granted(attribute, actor, item=expense, owner=expense.user):
        abort(403)
    return expense


def _form_context(session: Session, actor: User) -> dict[str, Any]:
    return {
        "categories": [(category.id, category.name) for category in active_categories(session)],
        "owners": owner_choices(session, actor),
    }


def _target_owner(session: Session, actor: User, form: ExpenseForm) -> User:
    owner = session.get(User, form.user_id) if form.user_id else actor
    if owner is None:
        abort(404)
    if not is_granted(CREATE, actor, owner=owner):
        abort(403)
    return owner


def _valid_category(session: Session, form: ExpenseForm) -> bool:
    category = session.get(Category, form.category_id) if form.category_id else None
    if category is None or category.is_deleted:
        form.errors.setdefault("category_id", []).append("Choose an existing category.")
        return False
    return True


def _render_form(
    form: ExpenseForm,
    context: dict[str, Any],
    *,
    action: str,
    expense_id: int | None = None,
    status: int = 200,
):
    body = render_template(
        "expenses/form.html",
        form=form,
        form_values=form_values(form),
        form_action=action,
        is_edit=expense_id is not None,
        expense_id=expense_id,
        **context,
    )
    return body, status


@bp.get("/")
@login_required
def list_expenses():
    """Display expenses with filters, sorting and pagination."""

    filters = request.args.to_dict(flat=True)
    page = parse_positive_int(filters.get("page")) or 1
    per_page = parse_positive_int(filters.get("per_page")) or 0

    with session_scope() as session:
        actor = load_actor(session)
        user_ids, owner = resolve_owner_scope(session, actor, filters.get("user"))
        result = SQLModelExpenseRepository(session).list_expenses(
            user_ids=user_ids, filters=filters, page=page, per_page=per_page
        )
        categories = [(category.id, category.name) for category in active_categories(session)]
        owners = owner_choices(session, actor)
        owner_name = owner.name if owner is not None else "All family members"

    return render_template(
        "expenses/index.html",
        result=result,
        filters=filters,
        categories=categories,
        owners=owners,
        owner_name=owner_name,
        sort_options=list(SORT_COLUMNS),
        all_members=ALL_MEMBERS,
    )


@bp.route("/new", methods=["GET", "POST"])
@login_required
def new_expense():
    """Render and handle the form for creating an expense."""

    with session_scope() as session:
        actor = load_actor(session)
        context = _form_context(session, actor)

        if request.method == "GET":
            return _render_form(ExpenseForm(user_id=actor.id), context, action=url_for("expenses.new_expense"))

        form = ExpenseForm.from_mapping(request.form)
        valid = form.validate() and _valid_category(session, form)
        if not valid:
            return _render_form(form, context, action=url_for("expenses.new_expense"), status=400)

        owner = _target_owner(session, actor, form)
        receipt_name = None
        upload = request.files.get("receipt_image")
        if upload is not None and upload.filename:
            try:
                receipt_name = _storage().store(upload)
            except ReceiptError as exc:
                form.errors.setdefault("receipt_image", []).append(str(exc))
                return _render_form(form, context, action=url_for("expenses.new_expense"), status=400)

        expense = Expense(
            user_id=owner.id,
            category_id=form.category_id,
            name=form.name,
            description=form.description or None,
            amount=form.amount,
            occurred_at=form.occurred_at,
            receipt_image=receipt_name,
        )
        session.add(expense)
        session.flush()
        expense_id = expense.id
        logger.info("Expense created", extra={"expense_id": expense_id, "user_id": owner.id})

    flash("Expense added successfully.", "success")
    return redirect(url_for("expenses.view_expense", expense_id=expense_id))


@bp.get("/<int:expense_id>")
@login_required
def view_expense(expense_id: int):
    with session_scope() as session:
        actor = load_actor(session)
        expense = _load_expense(session, actor, expense_id, VIEW)
        details = {
            "id": expense.id,
            "name": expense.name,
            "description": expense.description or "",
            "amount": f"{expense.amount:,.2f}",
            "occurred_at": expense.occurred_at.strftime("%Y-%m-%d"),
            "category": expense.category.name if expense.category else "",
            "user": expense.user.name if expense.user else "",
            "subscription": expense.subscription.name if expense.subscription else None,
            "has_receipt": bool(expense.receipt_image),
            "can_edit": is_granted(EDIT, actor, item=expense, owner=expense.user),
        }
    return render_template("expenses/view.html", expense=details)


@bp.route("/<int:expense_id>/edit", methods=["GET", "POST"])
@login_required
def edit_expense(expense_id: int):
    """Render and handle the edit form for an expense."""

    with session_scope() as session:
        actor = load_actor(session)
        expense = _load_expense(session, actor, expense_id, EDIT)
        context = _form_context(session, actor)
        form_action = url_for("expenses.edit_expense", expense_id=expense_id)

        if request.method == "GET":
            form = ExpenseForm(
                name=expense.name,
                description=expense.description or "",
                amount=expense.amount,
                occurred_at=expense.occurred_at,
                category_id=expense.category_id,
                user_id=expense.user_id,
            )
            return _render_form(form, context, action=form_action, expense_id=expense_id)

        form = ExpenseForm.from_mapping(request.form)
        if not form.raw_data.get("user_id"):
            form.raw_data["user_id"] = str(expense.user_id)
        valid = form.validate() and _valid_category(session, form)
        receipt_error = None
        replaced_receipt = None
        if valid:
            owner = _target_owner(session, actor, form)
            upload = request.files.get("receipt_image")
            if upload is not None and upload.filename:
                try:
                    stored = _storage().store(upload)
                except ReceiptError as exc:
                    receipt_error = str(exc)
                else:
                    replaced_receipt = expense.receipt_image
                    expense.receipt_image = stored
        if not valid or receipt_error:
            if receipt_error:
                form.errors.setdefault("receipt_image", []).append(receipt_error)
            return _render_form(form, context, action=form_action, expense_id=expense_id, status=400)

        expense.user_id = owner.id
        expense.name = form.name
        expense.description = form.description or None
        expense.amount = form.amount
        expense.occurred_at = form.occurred_at
        expense.category_id = form.category_id
        session.add(expense)

    # only after the new name is committed
    _storage().remove(replaced_receipt)
    flash("Expense updated successfully.", "success")
    return redirect(url_for("expenses.view_expense", expense_id=expense_id))


@bp.post("/<int:expense_id>/delete")
@login_required
def delete_expense(expense_id: int):
    with session_scope() as session:
        actor = load_actor(session)
        expense = _load_expense(session, actor, expense_id, DELETE)
        receipt_name = expense.receipt_image
        session.delete(expense)

    _storage().remove(receipt_name)
    logger.info("Expense deleted", extra={"expense_id": expense_id})
    flash("Expense deleted.", "success")
    return redirect(url_for("expenses.list_expenses"))


@bp.get("/<int:expense_id>/receipt")
@login_required
def receipt(expense_id: int):
    """Serve the stored receipt file of an expense."""

    with session_scope() as session:
        actor = load_actor(session)
        expense = _load_expense(session, actor, expense_id, VIEW)
        receipt_name = expense.receipt_image
    if not receipt_name:
        abort(404)
    path = _storage().path(receipt_name)
    if not path.is_file():
        abort(404)
    return send_file(path)
