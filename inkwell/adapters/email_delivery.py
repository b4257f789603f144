"""
Email delivery runner.

Drains the email_jobs queue through an EmailPort, one job per
transaction: the job is read, handed to the transport and marked inside a
single BEGIN IMMEDIATE scope, so two runners never send the same job.

A failed send is requeued retry_delay_seconds later until max_attempts is
reached, then the job is marked failed. Per-job problems end up in the
BatchResult; only a database failure escapes run_due.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta

from inkwell.core.ports.db import UnitOfWorkFactory, UnitOfWorkPort
from inkwell.core.ports.email import EmailMessage, EmailPort, EmailResult
from inkwell.core.ports.jobs import BatchResult, JobResult, JobStatus
from inkwell.domain.entities import ScheduledEmailJob
from inkwell.ports.clock import ClockPort

logger = logging.getLogger(__name__)


class EmailDeliveryRunner:
    """Implements EmailDeliveryRunnerPort on top of the SQLite queue."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        email: EmailPort,
        clock: ClockPort,
        max_attempts: int = 3,
        retry_delay_seconds: int = 300,
    ) -> None:
        self._uow_factory = uow_factory
        self._email = email
        self._clock = clock
        self._max_attempts = max_attempts
        self._retry_delay = timedelta(seconds=retry_delay_seconds)

    def run_due(self, now_utc: datetime | None = None, max_jobs: int = 10) -> BatchResult:
        now_utc = now_utc or self._clock.now_utc()

        results: list[JobResult] = []
        while len(results) < max_jobs:
            result = self._deliver_next(now_utc)
            if result is None:
                break
            results.append(result)

        if not results:
            return BatchResult(0, 0, 0, 0, [JobResult(JobStatus.NO_JOBS, message="Queue empty")])

        def count(status: JobStatus) -> int:
            return sum(1 for r in results if r.status is status)

        batch = BatchResult(
            total_processed=len(results),
            succeeded=count(JobStatus.SUCCESS),
            failed=count(JobStatus.FAILURE),
            retried=count(JobStatus.RETRY),
            results=results,
        )
        logger.info(
            "Delivery batch done: processed=%d sent=%d retried=%d failed=%d",
            batch.total_processed,
            batch.succeeded,
            batch.retried,
            batch.failed,
        )
        return batch

    def _deliver_next(self, now_utc: datetime) -> JobResult | None:
        with self._uow_factory() as tx:
            due = tx.email_jobs.list_due(now_utc, limit=1)
            if not due:
                return None

            job = due[0]
            started = time.monotonic()
            outcome = self._send(job)
            elapsed_ms = int((time.monotonic() - started) * 1000)

            if outcome.delivered:
                result = self._mark_sent(tx, job, outcome, now_utc)
            else:
                result = self._mark_failed(tx, job, outcome.error or "unknown error", now_utc)
            result.execution_time_ms = elapsed_ms

            tx.commit()
            return result

    def _send(self, job: ScheduledEmailJob) -> EmailResult:
        try:
            return self._email.send(EmailMessage.from_job(job))
        except Exception as e:
            # transports should report failures, but one that raises must not
            # take the batch down with it
            logger.exception("Email transport raised for job %s", job.id)
            return EmailResult.failed(job.to, str(e))

    def _mark_sent(
        self, tx: UnitOfWorkPort, job: ScheduledEmailJob, outcome: EmailResult, now_utc: datetime
    ) -> JobResult:
        tx.email_jobs.save(
            job.model_copy(
                update={
                    "status": "sent",
                    "attempts": job.attempts + 1,
                    "sent_at": outcome.sent_at or now_utc,
                    "last_error": None,
                }
            )
        )
        return JobResult(JobStatus.SUCCESS, job_id=job.id, message=outcome.message_id or "")

    def _mark_failed(
        self, tx: UnitOfWorkPort, job: ScheduledEmailJob, error: str, now_utc: datetime
    ) -> JobResult:
        attempts = job.attempts + 1
        update: dict[str, object] = {"attempts": attempts, "last_error": error}

        if attempts < self._max_attempts:
            update["scheduled_at"] = now_utc + self._retry_delay
            status = JobStatus.RETRY
        else:
            update["status"] = "failed"
            status = JobStatus.FAILURE

        tx.email_jobs.save(job.model_copy(update=update))
        logger.warning(
            "Email job %s failed (attempt %d of %d): %s",
            job.id,
            attempts,
            self._max_attempts,
            error,
        )
        return JobResult(status, job_id=job.id, error=error)


class DeliveryPoller:
    """Calls run_due on a background thread every interval (API lifespan)."""

    def __init__(
        self, runner: EmailDeliveryRunner, interval_seconds: float = 60.0, max_jobs: int = 10
    ) -> None:
        self._runner = runner
        self._interval = interval_seconds
        self._max_jobs = max_jobs
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="email-delivery", daemon=True)
        self._thread.start()
        logger.info("Delivery poller started: interval=%.1fs", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Delivery poller stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._runner.run_due(max_jobs=self._max_jobs)
            except Exception:
                logger.exception("Delivery poll failed; retrying next interval")
