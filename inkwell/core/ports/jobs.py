"""
Delivery runner interface.

Whatever drains the email queue, `inkwell send_due` from cron or the
in-process DeliveryPoller, goes through run_due. The database row is the
only coordination between runners: a job is claimed, sent and marked in
one transaction, and a failed send is written back to the row rather
than raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID


class JobStatus(Enum):
    """Outcome of one delivery attempt."""

    SUCCESS = "success"
    FAILURE = "failure"
    RETRY = "retry"  # failed, rescheduled for another attempt
    NO_JOBS = "no_jobs"  # queue had nothing due


@dataclass
class JobResult:
    """One job, one attempt."""

    status: JobStatus
    job_id: UUID | None = None
    message: str = ""
    error: str | None = None
    execution_time_ms: int = 0


@dataclass
class BatchResult:
    """Tally of a run_due call."""

    total_processed: int
    succeeded: int
    failed: int
    retried: int
    results: list[JobResult] = field(default_factory=list)


class EmailDeliveryRunnerPort(Protocol):
    def run_due(self, now_utc: datetime | None = None, max_jobs: int = 10) -> BatchResult:
        """
        Deliver up to max_jobs queued jobs due at now_utc, earliest first.

        now_utc defaults to the runner's clock. When nothing is due the
        batch holds a single NO_JOBS result and total_processed is 0.
        """
        ...
