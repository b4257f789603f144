"""
Persistence interfaces for newsletters, subscribers, tokens and the email queue.

The SQLite adapters in inkwell.adapters.sqlite_db implement these. All
repositories reached through one UnitOfWork share its connection, so the
reads and writes of one unit of work see one transactional view.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from inkwell.domain.entities import Newsletter, ScheduledEmailJob, Subscriber, Token


class PersistenceError(Exception):
    """A storage call failed. Whether to retry is up to the caller."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class NewsletterRepoPort(Protocol):
    """Newsletters move one way only: draft -> released."""

    def get_by_id(self, newsletter_id: UUID) -> Newsletter | None: ...

    def save(self, newsletter: Newsletter) -> Newsletter:
        """Insert or replace by id."""
        ...

    def mark_released(self, newsletter_id: UUID, released_at: datetime) -> bool:
        """
        Compare-and-set released from False to True.

        Returns False when no draft row matched, i.e. the newsletter is
        missing or another caller released it first.
        """
        ...

    def list_all(self) -> list[Newsletter]:
        """Newest first."""
        ...


class SubscriberRepoPort(Protocol):
    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None: ...

    def get_by_email(self, email: str) -> Subscriber | None: ...

    def save(self, subscriber: Subscriber) -> Subscriber:
        """Insert or replace by id. A second row for the same email is a PersistenceError."""
        ...

    def delete(self, subscriber_id: UUID) -> bool:
        """False when there was nothing to delete."""
        ...

    def list_verified(self) -> list[Subscriber]:
        """Verified subscribers ordered by (subscribed_at, id)."""
        ...

    def delete_unverified_before(self, cutoff: datetime) -> int:
        """Purge unverified rows subscribed before cutoff; returns how many went."""
        ...


class TokenRepoPort(Protocol):
    """Stores token hashes only."""

    def save(self, token: Token) -> Token: ...

    def get_by_hash(self, token_hash: str) -> Token | None: ...

    def delete(self, token_id: UUID) -> None: ...


class EmailJobRepoPort(Protocol):
    def insert_batch(self, jobs: list[ScheduledEmailJob]) -> int:
        """Single executemany; returns the number of rows written."""
        ...

    def list_due(self, now_utc: datetime, limit: int = 10) -> list[ScheduledEmailJob]:
        """Queued jobs with scheduled_at <= now_utc, earliest first."""
        ...

    def save(self, job: ScheduledEmailJob) -> ScheduledEmailJob:
        """Persist status, attempts, schedule and error of an existing job."""
        ...

    def count_by_status(self, status: str) -> int: ...


class UnitOfWorkPort(Protocol):
    """
    One database transaction with the repositories bound to it.

        with uow_factory() as tx:
            tx.subscribers.save(subscriber)
            tx.commit()

    Exiting the block without a successful commit() rolls everything back,
    whether or not an exception is propagating.
    """

    @property
    def newsletters(self) -> NewsletterRepoPort: ...

    @property
    def subscribers(self) -> SubscriberRepoPort: ...

    @property
    def tokens(self) -> TokenRepoPort: ...

    @property
    def email_jobs(self) -> EmailJobRepoPort: ...

    @property
    def committed(self) -> bool:
        """Set once commit() succeeds inside the current block."""
        ...

    def __enter__(self) -> UnitOfWorkPort: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class UnitOfWorkFactory(Protocol):
    """Returns a new, not yet entered, unit of work."""

    def __call__(self) -> UnitOfWorkPort: ...
