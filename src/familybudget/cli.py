"""Flask CLI commands for FamilyBudget."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import click


def _today(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise click.BadParameter("Use YYYY-MM-DD.", param_hint="--today") from None


_today_option = click.option(
    "--today", "today_raw", default=None, metavar="YYYY-MM-DD", help="Override today's date"
)


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("familybudget-budget-check")
    @_today_option
    @click.option(
        "--wait-timeout", type=float, default=60.0, show_default=True,
        help="Seconds to wait for queued emails before exiting",
    )
    def budget_check(today_raw: str | None, wait_timeout: float) -> None:
        """Check family budgets and thresholds, queueing warning emails."""

        from .extensions import session_scope
        from .services import jobs
        from .services.budget_warnings import run_daily_budget_check
        from .services.notifications import dispatch_budget_warning

        dispatched: list[jobs.Job] = []

        def dispatch(message):
            job = dispatch_budget_warning(message)
            dispatched.append(job)
            return job

        with session_scope() as session:
            summary = run_daily_budget_check(session, dispatch, today=_today(today_raw))
        for family_id in summary.skipped:
            click.echo(f"No admin for family #{family_id}, skipping.")
        click.echo(
            f"Checked {summary.families} families: "
            f"{summary.budget_warnings} budget warnings, "
            f"{summary.category_breaches} category breaches."
        )

        # delivery threads are daemons; the process must outlive them
        if not jobs.wait_for(dispatched, timeout=wait_timeout):
            click.echo(f"Some emails still sending after {wait_timeout:g}s.")
        delivery = jobs.summarize(dispatched)
        click.echo(
            f"Emails: {delivery.sent} sent, {delivery.skipped} skipped, "
            f"{delivery.failed} failed, {delivery.pending} pending."
        )
        if delivery.failed:
            raise click.ClickException(f"{delivery.failed} warning emails could not be sent.")

    @app.cli.command("familybudget-process-subscriptions")
    @_today_option
    def process_subscriptions(today_raw: str | None) -> None:
        """Create expenses for subscriptions that are due."""

        from .extensions import session_scope
        from .services.subscriptions import process_due_subscriptions

        with session_scope() as session:
            count = process_due_subscriptions(session, today=_today(today_raw))
        click.echo(f"Processed {count} due subscriptions.")

    @app.cli.command("familybudget-weekly-report")
    @click.option("--family-id", type=int, default=None, help="Send only for this family id")
    @click.option("--dry-run", is_flag=True, default=False, help="Do not send, just simulate")
    @click.option("--only-monday", is_flag=True, default=False, help="Exit if today is not Monday")
    @_today_option
    def weekly_report(family_id: int | None, dry_run: bool, only_monday: bool, today_raw: str | None) -> None:
        """Email the weekly projection and category breakdown to family admins."""

        from .extensions import session_scope
        from .services.mailer import get_mailer
        from .services.reports import ReportError, send_weekly_reports

        today = _today(today_raw)
        if only_monday and today.weekday() != 0:
            click.echo("Not Monday, skipping.")
            return
        try:
            with session_scope() as session:
                run = send_weekly_reports(
                    session, get_mailer(app), family_id=family_id, dry_run=dry_run, today=today
                )
        except ReportError as exc:
            raise click.ClickException(str(exc)) from exc
        for line in run.lines:
            click.echo(line)
        click.echo(f"Done. Emails sent: {run.sent}")

    @app.cli.command("familybudget-month-end-forecast")
    @click.option("--family-id", type=int, default=None, help="Send only for this family id")
    @click.option("--dry-run", is_flag=True, default=False, help="Do not send, just simulate")
    @click.option("--only-last-day", is_flag=True, default=False, help="Exit unless today is the last day of the month")
    @_today_option
    def month_end_forecast(family_id: int | None, dry_run: bool, only_last_day: bool, today_raw: str | None) -> None:
        """Email next month's spending forecast to family admins."""

        from .extensions import session_scope
        from .services.mailer import get_mailer
        from .services.reports import ReportError, is_last_day_of_month, send_month_end_forecasts

        today = _today(today_raw)
        if only_last_day and not is_last_day_of_month(today):
            click.echo("Not the last day of the month, skipping.")
            return
        try:
            with session_scope() as session:
                run = send_month_end_forecasts(
                    session, get_mailer(app), family_id=family_id, dry_run=dry_run, today=today
                )
        except ReportError as exc:
            raise click.ClickException(str(exc)) from exc
        for line in run.lines:
            click.echo(line)
        click.echo(f"Done. Emails sent: {run.sent}")

    @app.cli.command("familybudget-user-create")
    @click.argument("json_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
    def user_create(json_file: Path) -> None:
        """Create a user from a JSON file with email, password and name."""

        from .extensions import session_scope
        from .services.auth import AuthError, create_user

        try:
            data = json.loads(json_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise click.ClickException("Invalid JSON format.") from exc
        if not isinstance(data, dict):
            raise click.ClickException("Invalid JSON format.")
        for key in ("email", "password", "name"):
            if key not in data:
                raise click.ClickException(f"Missing required key in JSON: '{key}'")

        try:
            with session_scope() as session:
                user = create_user(
                    session, email=data["email"], name=data["name"], password=data["password"]
                )
                summary = f"#{user.id} {user.name} <{user.email}> ({user.role})"
        except AuthError as exc:
            raise click.ClickException(str(exc)) from exc
        click.echo(f"User created successfully: {summary}")

    @app.cli.command("familybudget-category-create")
    @click.argument("name")
    def category_create(name: str) -> None:
        """Create a spending category."""

        from sqlmodel import select

        from .extensions import session_scope
        from .models import Category

        name = name.strip()
        if not name or len(name) > 51 or not all(ch.isalnum() or ch == " " for ch in name):
            raise click.ClickException("Category name must be 1-51 letters, digits or spaces.")
        with session_scope() as session:
            existing = session.exec(select(Category).where(Category.name == name)).first()
            if existing is not None:
                if not existing.is_deleted:
                    raise click.ClickException(f"Category '{name}' already exists.")
                existing.is_deleted = False
                session.add(existing)
                click.echo(f"Category '{name}' restored.")
                return
            session.add(Category(name=name))
        click.echo(f"Category '{name}' created.")

    @app.cli.command("familybudget-family-setup")
    @click.argument("family_name")
    @click.argument("budget", type=float)
    @click.argument("admin_email")
    @click.argument("member_emails", nargs=-1)
    def family_setup(family_name: str, budget: float, admin_email: str, member_emails: tuple[str, ...]) -> None:
        """Create a family with ADMIN_EMAIL as admin and add MEMBER_EMAILS."""

        from .extensions import session_scope
        from .services.auth import get_user_by_email
        from .services.families import FamilyError, add_member_by_email, create_family

        try:
            with session_scope() as session:
                admin = get_user_by_email(session, admin_email)
                if admin is None:
                    raise FamilyError(f"No user found with email '{admin_email}'.")
                family = create_family(session, admin, family_name, budget)
                click.echo(f"Family '{family.name}' created with admin {admin.email}.")
                for email in member_emails:
                    try:
                        member = add_member_by_email(session, admin, email)
                    except FamilyError as exc:
                        click.echo(f"Skipping {email}: {exc}")
                        continue
                    click.echo(f"Added {member.email} as member.")
        except FamilyError as exc:
            raise click.ClickException(str(exc)) from exc
