"""Tests for the notification delivery queue."""

from __future__ import annotations

import pytest

from familybudget.services import jobs


@pytest.fixture(autouse=True)
def _reset_jobs():
    jobs.clear_jobs()
    jobs.set_async_execution(False)
    yield
    jobs.set_async_execution(True)
    jobs.clear_jobs()


class Recorder:
    """Delivery target that remembers the recipients it was called with."""

    def __init__(self, failures: int = 0, result: bool = True):
        self.failures = failures
        self.result = result
        self.recipients = []

    def __call__(self, recipient):
        if self.failures:
            self.failures -= 1
            raise RuntimeError("smtp down")
        self.recipients.append(recipient)
        return self.result


def test_inline_delivery_is_recorded_as_sent():
    deliver = Recorder()

    job = jobs.enqueue(
        "budget-warning-email",
        deliver,
        family_id=3,
        user_id=7,
        message_type="family_budget",
        recipient="admin@example.com",
    )

    assert deliver.recipients == ["admin@example.com"]
    assert job.status == "sent"
    assert job.attempts == 1
    assert job.error is None
    assert job.finished
    assert (job.family_id, job.user_id, job.message_type) == (3, 7, "family_budget")


def test_handler_returning_false_is_skipped():
    job = jobs.enqueue("budget-warning-email", Recorder(result=False), recipient="ghost@example.com")

    assert job.status == "skipped"


def test_failed_attempts_are_retried():
    deliver = Recorder(failures=2)

    job = jobs.enqueue("budget-warning-email", deliver, recipient="admin@example.com")

    assert job.status == "sent"
    assert job.attempts == 3
    assert deliver.recipients == ["admin@example.com"]


def test_failures_are_recorded_not_raised():
    job = jobs.enqueue("budget-warning-email", Recorder(failures=5), max_attempts=2, recipient="x")

    assert job.status == "failed"
    assert job.attempts == 2
    assert job.error == "smtp down"


def test_list_jobs_filters_and_summarizes():
    for user_id in (1, 2, 3):
        jobs.enqueue("budget-warning-email", Recorder(), family_id=1, user_id=user_id, recipient=user_id)
    jobs.enqueue("budget-warning-email", Recorder(result=False), family_id=2, recipient="none")
    jobs.enqueue("other", Recorder(failures=9), max_attempts=1, recipient="none")

    assert [job.user_id for job in jobs.list_jobs(family_id=1)] == [3, 2, 1]
    assert len(jobs.list_jobs(name="budget-warning-email")) == 4
    assert len(jobs.list_jobs(limit=2)) == 2

    summary = jobs.summarize(jobs.list_jobs())
    assert (summary.sent, summary.skipped, summary.failed, summary.pending) == (3, 1, 1, 0)


def test_async_delivery_can_be_awaited():
    jobs.set_async_execution(True)
    deliver = Recorder()

    job = jobs.enqueue("budget-warning-email", deliver, recipient=1)

    assert jobs.wait_for([job], timeout=5)
    assert job.status == "sent"
    assert deliver.recipients == [1]
