"""In-process delivery queue for notification jobs.

Every queued job names the family, user and message type it notifies and
finishes as ``sent``, ``skipped`` (the handler returned ``False``) or
``failed``. A handler that raises is retried up to ``max_attempts`` times;
the last error is kept on the job and logged with its traceback.
"""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Any, Callable, Iterable, Optional
from uuid import uuid4

from ..logging_config import get_logger

__all__ = [
    "Job",
    "DeliverySummary",
    "enqueue",
    "list_jobs",
    "summarize",
    "wait_for",
    "set_async_execution",
    "clear_jobs",
]

logger = get_logger("services.jobs")

STATUS_QUEUED = "queued"
STATUS_RUNNING = "running"
STATUS_SENT = "sent"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 1.0


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """One queued notification and its delivery outcome."""

    id: str
    name: str
    family_id: Optional[int] = None
    user_id: Optional[int] = None
    message_type: Optional[str] = None
    status: str = STATUS_QUEUED
    attempts: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    finished_at: Optional[datetime] = None
    _done: Event = field(default_factory=Event, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def log_fields(self) -> dict[str, Any]:
        return {
            "job_id": self.id,
            "job_name": self.name,
            "family_id": self.family_id,
            "user_id": self.user_id,
            "message_type": self.message_type,
            "attempts": self.attempts,
        }


@dataclass
class DeliverySummary:
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    pending: int = 0


_JOBS: deque[Job] = deque(maxlen=200)
_LOCK = Lock()
_RUN_ASYNC = True


def set_async_execution(enabled: bool) -> None:
    """Deliver in daemon threads (True) or inline in the caller (False).

    Inline delivery retries immediately instead of sleeping between attempts.
    """

    global _RUN_ASYNC
    _RUN_ASYNC = enabled


def clear_jobs() -> None:
    with _LOCK:
        _JOBS.clear()


def enqueue(
    name: str,
    target: Callable[..., Any],
    *,
    family_id: Optional[int] = None,
    user_id: Optional[int] = None,
    message_type: Optional[str] = None,
    max_attempts: int = MAX_ATTEMPTS,
    **kwargs: Any,
) -> Job:
    """Queue ``target(**kwargs)`` as a delivery for ``user_id`` and return its job."""

    job = Job(
        id=uuid4().hex,
        name=name,
        family_id=family_id,
        user_id=user_id,
        message_type=message_type,
    )
    with _LOCK:
        _JOBS.append(job)

    if _RUN_ASYNC:
        thread = Thread(
            target=_deliver,
            args=(job, target, kwargs, max_attempts, RETRY_DELAY_SECONDS),
            name=f"FamilyBudgetDelivery-{job.id[:8]}",
            daemon=True,
        )
        thread.start()
    else:
        _deliver(job, target, kwargs, max_attempts, 0.0)
    return job


def _deliver(
    job: Job,
    target: Callable[..., Any],
    kwargs: dict[str, Any],
    max_attempts: int,
    retry_delay: float,
) -> None:
    job.status = STATUS_RUNNING
    try:
        while True:
            job.attempts += 1
            try:
                delivered = target(**kwargs)
            except Exception as exc:
                job.error = str(exc)
                if job.attempts >= max_attempts:
                    job.status = STATUS_FAILED
                    logger.error("Notification delivery failed", exc_info=True, extra=job.log_fields())
                    return
                logger.warning(f"Notification delivery attempt failed: {exc}", extra=job.log_fields())
                if retry_delay:
                    time.sleep(retry_delay * job.attempts)
                continue

            job.error = None
            job.status = STATUS_SKIPPED if delivered is False else STATUS_SENT
            logger.info(f"Notification {job.status}", extra=job.log_fields())
            return
    finally:
        job.finished_at = _now()
        job._done.set()


def list_jobs(
    limit: Optional[int] = None,
    *,
    name: Optional[str] = None,
    family_id: Optional[int] = None,
) -> list[Job]:
    """Return tracked jobs, newest first, optionally filtered."""

    with _LOCK:
        jobs = list(reversed(_JOBS))
    if name is not None:
        jobs = [job for job in jobs if job.name == name]
    if family_id is not None:
        jobs = [job for job in jobs if job.family_id == family_id]
    return jobs[:limit] if limit is not None else jobs


def wait_for(jobs: Iterable[Job], timeout: float) -> bool:
    """Block until every job finished or ``timeout`` seconds passed."""

    deadline = time.monotonic() + timeout
    for job in jobs:
        if not job._done.wait(max(0.0, deadline - time.monotonic())):
            return False
    return True


def summarize(jobs: Iterable[Job]) -> DeliverySummary:
    summary = DeliverySummary()
    for job in jobs:
        if job.status == STATUS_SENT:
            summary.sent += 1
        elif job.status == STATUS_SKIPPED:
            summary.skipped += 1
        elif job.status == STATUS_FAILED:
            summary.failed += 1
        else:
            summary.pending += 1
    return summary
