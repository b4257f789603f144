"""
Email delivery runner against a real SQLite queue.
"""

from __future__ import annotations

import sqlite3
from datetime import timedelta

import pytest

from inkwell.adapters.dev_email import DevEmailAdapter
from inkwell.adapters.email_delivery import DeliveryPoller, EmailDeliveryRunner
from inkwell.adapters.sqlite_db import SQLiteEmailJobRepo
from inkwell.core.ports.email import EmailMessage, EmailResult
from inkwell.core.ports.jobs import JobStatus
from inkwell.domain.entities import ScheduledEmailJob


class FlakyEmail:
    """Fails for the listed recipients, delivers everything else."""

    def __init__(self, failing: set[str]) -> None:
        self.failing = failing
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> EmailResult:
        if message.recipient in self.failing:
            return EmailResult.failed(message.recipient, "mailbox unavailable")
        self.sent.append(message)
        return EmailResult.success(message.recipient, message_id="m-1")


class ExplodingEmail:
    def send(self, message: EmailMessage) -> EmailResult:
        raise ConnectionError("smtp down")


@pytest.fixture
def jobs(db_path: str) -> SQLiteEmailJobRepo:
    return SQLiteEmailJobRepo(db_path)


def _enqueue(repo: SQLiteEmailJobRepo, clock, *recipients: str, offset_minutes: int = 0):
    batch = [
        ScheduledEmailJob(
            to=to,
            from_address="newsletter@example.com",
            subject="newsletter - Launch",
            html_body="<p>Hello</p>",
            text_body="Hello",
            scheduled_at=clock.now_utc() + timedelta(minutes=offset_minutes + i),
            created_at=clock.now_utc(),
        )
        for i, to in enumerate(recipients)
    ]
    repo.insert_batch(batch)
    return batch


class TestRunDue:
    def test_sends_due_jobs_oldest_first(self, uow_factory, jobs, clock) -> None:
        _enqueue(jobs, clock, "a@example.com", "b@example.com")
        _enqueue(jobs, clock, "future@example.com", offset_minutes=60)
        email = DevEmailAdapter()
        runner = EmailDeliveryRunner(uow_factory, email, clock)

        batch = runner.run_due(clock.now_utc() + timedelta(minutes=5))

        assert batch.total_processed == 2
        assert batch.succeeded == 2
        assert [m.recipient for m in email.messages] == ["a@example.com", "b@example.com"]
        assert jobs.count_by_status("sent") == 2
        assert jobs.count_by_status("queued") == 1

    def test_sent_job_records_attempt(self, uow_factory, jobs, clock, db_path) -> None:
        (job,) = _enqueue(jobs, clock, "a@example.com")
        runner = EmailDeliveryRunner(uow_factory, FlakyEmail(set()), clock)

        runner.run_due(clock.now_utc())

        conn = sqlite3.connect(db_path)
        status, attempts, sent_at = conn.execute(
            "SELECT status, attempts, sent_at FROM email_jobs WHERE id = ?", (str(job.id),)
        ).fetchone()
        conn.close()
        assert (status, attempts) == ("sent", 1)
        assert sent_at is not None

    def test_respects_max_jobs(self, uow_factory, jobs, clock) -> None:
        _enqueue(jobs, clock, "a@example.com", "b@example.com", "c@example.com")
        runner = EmailDeliveryRunner(uow_factory, DevEmailAdapter(), clock)

        batch = runner.run_due(clock.now_utc() + timedelta(minutes=5), max_jobs=2)

        assert batch.total_processed == 2
        assert jobs.count_by_status("queued") == 1

    def test_no_jobs(self, uow_factory, clock) -> None:
        runner = EmailDeliveryRunner(uow_factory, DevEmailAdapter(), clock)

        batch = runner.run_due()

        assert batch.total_processed == 0
        assert batch.results[0].status == JobStatus.NO_JOBS

    def test_failure_is_requeued_with_delay(self, uow_factory, jobs, clock) -> None:
        _enqueue(jobs, clock, "bad@example.com", "good@example.com")
        runner = EmailDeliveryRunner(
            uow_factory, FlakyEmail({"bad@example.com"}), clock, retry_delay_seconds=600
        )

        batch = runner.run_due(clock.now_utc() + timedelta(minutes=5))

        assert batch.succeeded == 1
        assert batch.retried == 1
        retry = next(r for r in batch.results if r.status == JobStatus.RETRY)
        assert retry.error == "mailbox unavailable"

        with uow_factory() as tx:
            (requeued,) = tx.email_jobs.list_due(clock.now_utc() + timedelta(hours=1))
        assert requeued.to == "bad@example.com"
        assert requeued.attempts == 1
        assert requeued.last_error == "mailbox unavailable"
        assert requeued.scheduled_at == clock.now_utc() + timedelta(minutes=5, seconds=600)

    def test_gives_up_after_max_attempts(self, uow_factory, jobs, clock) -> None:
        _enqueue(jobs, clock, "bad@example.com")
        runner = EmailDeliveryRunner(
            uow_factory,
            FlakyEmail({"bad@example.com"}),
            clock,
            max_attempts=2,
            retry_delay_seconds=60,
        )
        later = clock.now_utc() + timedelta(minutes=2)

        first = runner.run_due(clock.now_utc())
        second = runner.run_due(later)

        assert first.retried == 1
        assert second.failed == 1
        assert jobs.count_by_status("failed") == 1
        assert runner.run_due(later + timedelta(days=1)).total_processed == 0

    def test_transport_exception_is_recorded_not_raised(self, uow_factory, jobs, clock) -> None:
        _enqueue(jobs, clock, "a@example.com")
        runner = EmailDeliveryRunner(uow_factory, ExplodingEmail(), clock, max_attempts=1)

        batch = runner.run_due(clock.now_utc())

        assert batch.failed == 1
        assert batch.results[0].error == "smtp down"
        assert jobs.count_by_status("failed") == 1


class TestDeliveryPoller:
    def test_start_stop(self, uow_factory, clock) -> None:
        poller = DeliveryPoller(
            EmailDeliveryRunner(uow_factory, DevEmailAdapter(), clock),
            interval_seconds=0.01,
        )

        poller.start()
        assert poller.is_running
        poller.stop()
        assert not poller.is_running

    def test_stop_without_start_is_noop(self, uow_factory, clock) -> None:
        poller = DeliveryPoller(EmailDeliveryRunner(uow_factory, DevEmailAdapter(), clock))

        poller.stop()

        assert not poller.is_running
