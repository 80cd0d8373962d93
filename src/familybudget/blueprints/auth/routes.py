"""Login, logout and registration routes."""

from __future__ import annotations

from urllib.parse import urlsplit

from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required, login_user, logout_user

from ...extensions import session_scope
from ...logging_config import get_logger
from ...services.auth import AuthError, authenticate, create_user
from . import bp
from .forms import LoginForm, RegistrationForm

logger = get_logger("auth")


def _safe_next(target: str | None) -> str | None:
    """Only follow relative redirect targets."""

    if not target:
        return None
    parts = urlsplit(target)
    if parts.scheme or parts.netloc or not target.startswith("/"):
        return None
    return target


@bp.route("/login", methods=["GET", "POST"])
def login():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    form = LoginForm()
    if request.method == "POST":
        form = LoginForm.from_mapping(request.form)
        if form.validate():
            with session_scope() as session:
                user = authenticate(session, email=form.email, password=form.password)
            if user is None:
                logger.info("Failed login attempt", extra={"email": form.email})
                flash("Invalid email or password.", "danger")
                return render_template("auth/login.html", form=form), 401

            login_user(user, remember=bool(request.form.get("remember")))
            flash(f"Welcome back, {user.name}!", "success")
            return redirect(_safe_next(request.args.get("next")) or url_for("dashboard.index"))
        return render_template("auth/login.html", form=form), 400

    return render_template("auth/login.html", form=form)


@bp.post("/logout")
@login_required
def logout():
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))


@bp.route("/register", methods=["GET", "POST"])
def register():
    if current_user.is_authenticated:
        return redirect(url_for("dashboard.index"))

    form = RegistrationForm()
    if request.method == "POST":
        form = RegistrationForm.from_mapping(request.form)
        if not form.validate():
            return render_template("auth/register.html", form=form), 400
        try:
            with session_scope() as session:
                user = create_user(
                    session, email=form.email, name=form.name, password=form.password
                )
        except AuthError as exc:
            flash(str(exc), "danger")
            return render_template("auth/register.html", form=form), 400

        logger.info("User registered", extra={"user_id": user.id})
        login_user(user)
        flash("Your account has been created.", "success")
        return redirect(url_for("family.home"))

    return render_template("auth/register.html", form=form)
