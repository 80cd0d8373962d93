"""Background scheduler for the periodic budget jobs."""

from __future__ import annotations

from datetime import date
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler as APScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from flask import Flask

from .extensions import session_scope
from .logging_config import get_logger

logger = get_logger("scheduler")


class BackgroundScheduler:
    """Runs the budget check, subscription processing and report jobs."""

    def __init__(self, app: Flask):
        """Initialize the scheduler for ``app``.

        Args:
            app: Flask application whose context every job runs in
        """
        self.app = app
        self.scheduler: APScheduler | None = None

    def start(self) -> None:
        """Start the scheduler and register the standard jobs."""
        if self.scheduler is not None:
            logger.warning("Scheduler already running")
            return

        self.scheduler = APScheduler()
        self.add_job(self._process_subscriptions, "cron", job_id="process_subscriptions",
                     name="Process due subscriptions", hour=0, minute=30)
        self.add_job(self._daily_budget_check, "cron", job_id="daily_budget_check",
                     name="Daily budget check", hour=6, minute=0)
        self.add_job(self._weekly_report, "cron", job_id="weekly_family_report",
                     name="Weekly family report", day_of_week="mon", hour=7, minute=0)
        self.add_job(self._month_end_forecast, "cron", job_id="month_end_forecast",
                     name="Month-end forecast", day="last", hour=18, minute=0)
        self.scheduler.start()
        logger.info("Background scheduler started")

    def stop(self) -> None:
        """Stop the background scheduler gracefully."""
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=True)
            self.scheduler = None
            logger.info("Background scheduler stopped")

    def _run(self, job_name: str, func: Callable[[], object]) -> None:
        with self.app.app_context():
            try:
                logger.info("Starting scheduled job", extra={"job_name": job_name})
                func()
            except Exception as exc:
                logger.error(f"Scheduled job {job_name} failed: {exc}", exc_info=True)

    def _process_subscriptions(self) -> None:
        from .services.subscriptions import process_due_subscriptions

        def run() -> None:
            with session_scope() as session:
                process_due_subscriptions(session, today=date.today())

        self._run("process_subscriptions", run)

    def _daily_budget_check(self) -> None:
        from .services.budget_warnings import run_daily_budget_check
        from .services.notifications import dispatch_budget_warning

        def run() -> None:
            with session_scope() as session:
                run_daily_budget_check(session, dispatch_budget_warning, today=date.today())

        self._run("daily_budget_check", run)

    def _weekly_report(self) -> None:
        from .services.mailer import get_mailer
        from .services.reports import send_weekly_reports

        def run() -> None:
            with session_scope() as session:
                send_weekly_reports(session, get_mailer(self.app))

        self._run("weekly_family_report", run)

    def _month_end_forecast(self) -> None:
        from .services.mailer import get_mailer
        from .services.reports import send_month_end_forecasts

        def run() -> None:
            with session_scope() as session:
                send_month_end_forecasts(session, get_mailer(self.app))

        self._run("month_end_forecast", run)

    def add_job(
        self,
        func: Callable,
        trigger: str,
        *,
        job_id: str,
        name: str | None = None,
        **trigger_args,
    ) -> None:
        """Add a job to the scheduler.

        Args:
            func: Function to execute
            trigger: Trigger type ('cron', 'interval', 'date')
            job_id: Unique job identifier
            name: Human-readable job name
            **trigger_args: Additional trigger arguments
        """
        if self.scheduler is None:
            logger.warning(f"Cannot add job {job_id}: scheduler not started")
            return

        if trigger == "cron":
            trigger_obj = CronTrigger(**trigger_args)
        elif trigger == "interval":
            trigger_obj = IntervalTrigger(**trigger_args)
        elif trigger == "date":
            trigger_obj = DateTrigger(**trigger_args)
        else:
            raise ValueError(f"Unknown trigger type: {trigger}")

        self.scheduler.add_job(
            func=func,
            trigger=trigger_obj,
            id=job_id,
            name=name or job_id,
            replace_existing=True,
        )
        logger.info(f"Added job: {job_id}")

    def job_ids(self) -> list[str]:
        if self.scheduler is None:
            return []
        return [job.id for job in self.scheduler.get_jobs()]


def create_scheduler(app: Flask, *, auto_start: bool = False) -> BackgroundScheduler:
    """Create and optionally start a background scheduler.

    Args:
        app: Flask application
        auto_start: Whether to start the scheduler immediately

    Returns:
        BackgroundScheduler instance
    """
    scheduler = BackgroundScheduler(app)
    if auto_start:
        scheduler.start()
    return scheduler
