"""
SQLite implementations of the persistence ports.

Every timestamp is written as a fixed-width UTC ISO-8601 string
(microsecond precision, "+00:00" suffix); ORDER BY and range filters on
those text columns are therefore chronological.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from inkwell.core.ports.db import PersistenceError
from inkwell.domain.entities import Newsletter, ScheduledEmailJob, Subscriber, Token

logger = logging.getLogger(__name__)


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    return {name: value for (name, *_), value in zip(cursor.description, row, strict=True)}


def format_dt(dt: datetime | None) -> str | None:
    """UTC text form of dt; a naive dt is read as UTC."""
    if dt is None:
        return None
    aware = dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)
    return aware.astimezone(UTC).isoformat(timespec="microseconds")


def parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def connect(db_path: str) -> sqlite3.Connection:
    """Autocommit connection; callers issue BEGIN themselves."""
    conn = sqlite3.connect(db_path, isolation_level=None)
    conn.row_factory = dict_factory
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


class SQLiteRepoBase:
    """Shared connection handling. Bound to a unit of work when given its connection."""

    def __init__(self, db_path: str, connection: sqlite3.Connection | None = None):
        self.db_path = db_path
        self._external_conn = connection

    @contextmanager
    def _conn(self, operation: str) -> Iterator[sqlite3.Connection]:
        """
        Yield a connection, translating driver errors.

        Standalone repos (no unit of work) run each call in its own
        short transaction.
        """
        if self._external_conn is not None:
            try:
                yield self._external_conn
            except sqlite3.Error as e:
                raise PersistenceError(operation, str(e)) from e
            return

        try:
            conn = connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(operation, str(e)) from e

        try:
            conn.execute("BEGIN")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise PersistenceError(operation, str(e)) from e
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()


class SQLiteNewsletterRepo(SQLiteRepoBase):
    """NewsletterRepoPort over SQLite."""

    def get_by_id(self, newsletter_id: UUID) -> Newsletter | None:
        with self._conn("get newsletter") as conn:
            row = conn.execute(
                "SELECT * FROM newsletters WHERE id = ?", (str(newsletter_id),)
            ).fetchone()
            return self._map_row(row) if row else None

    def save(self, newsletter: Newsletter) -> Newsletter:
        with self._conn("save newsletter") as conn:
            conn.execute(
                """
                INSERT INTO newsletters (
                    id, created_at, updated_at, title, content, released_at,
                    released, associated_article_slug, edition, paragraphs
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    updated_at=excluded.updated_at,
                    title=excluded.title,
                    content=excluded.content,
                    released_at=excluded.released_at,
                    released=excluded.released,
                    associated_article_slug=excluded.associated_article_slug,
                    edition=excluded.edition,
                    paragraphs=excluded.paragraphs
                """,
                (
                    str(newsletter.id),
                    format_dt(newsletter.created_at),
                    format_dt(newsletter.updated_at),
                    newsletter.title,
                    newsletter.content,
                    format_dt(newsletter.released_at),
                    1 if newsletter.released else 0,
                    newsletter.associated_article_slug,
                    newsletter.edition,
                    json.dumps(newsletter.paragraphs),
                ),
            )
            return newsletter

    def mark_released(self, newsletter_id: UUID, released_at: datetime) -> bool:
        with self._conn("mark newsletter released") as conn:
            cursor = conn.execute(
                """
                UPDATE newsletters
                SET released = 1, released_at = ?, updated_at = ?
                WHERE id = ? AND released = 0
                """,
                (format_dt(released_at), format_dt(released_at), str(newsletter_id)),
            )
            return cursor.rowcount == 1

    def list_all(self) -> list[Newsletter]:
        with self._conn("list newsletters") as conn:
            rows = conn.execute(
                "SELECT * FROM newsletters ORDER BY created_at DESC"
            ).fetchall()
            return [self._map_row(r) for r in rows]

    def _map_row(self, row: dict[str, Any]) -> Newsletter:
        return Newsletter(
            id=UUID(row["id"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            title=row["title"],
            content=row["content"],
            released_at=parse_dt(row["released_at"]),
            released=bool(row["released"]),
            associated_article_slug=row["associated_article_slug"],
            edition=row["edition"],
            paragraphs=json.loads(row["paragraphs"]) if row["paragraphs"] else [],
        )


class SQLiteSubscriberRepo(SQLiteRepoBase):
    """SubscriberRepoPort over SQLite."""

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        with self._conn("get subscriber") as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE id = ?", (str(subscriber_id),)
            ).fetchone()
            return self._map_row(row) if row else None

    def get_by_email(self, email: str) -> Subscriber | None:
        with self._conn("get subscriber by email") as conn:
            row = conn.execute(
                "SELECT * FROM subscribers WHERE email = ?", (email,)
            ).fetchone()
            return self._map_row(row) if row else None

    def save(self, subscriber: Subscriber) -> Subscriber:
        with self._conn("save subscriber") as conn:
            conn.execute(
                """
                INSERT INTO subscribers (
                    id, created_at, updated_at, email, subscribed_at, referer, is_verified
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    updated_at=excluded.updated_at,
                    email=excluded.email,
                    subscribed_at=excluded.subscribed_at,
                    referer=excluded.referer,
                    is_verified=excluded.is_verified
                """,
                (
                    str(subscriber.id),
                    format_dt(subscriber.created_at),
                    format_dt(subscriber.updated_at),
                    subscriber.email,
                    format_dt(subscriber.subscribed_at),
                    subscriber.referer,
                    1 if subscriber.is_verified else 0,
                ),
            )
            return subscriber

    def delete(self, subscriber_id: UUID) -> bool:
        with self._conn("delete subscriber") as conn:
            cursor = conn.execute(
                "DELETE FROM subscribers WHERE id = ?", (str(subscriber_id),)
            )
            return cursor.rowcount > 0

    def list_verified(self) -> list[Subscriber]:
        with self._conn("list verified subscribers") as conn:
            rows = conn.execute(
                """
                SELECT * FROM subscribers
                WHERE is_verified = 1
                ORDER BY subscribed_at ASC, id ASC
                """
            ).fetchall()
            return [self._map_row(r) for r in rows]

    def delete_unverified_before(self, cutoff: datetime) -> int:
        with self._conn("delete unverified subscribers") as conn:
            cursor = conn.execute(
                "DELETE FROM subscribers WHERE is_verified = 0 AND created_at < ?",
                (format_dt(cutoff),),
            )
            return cursor.rowcount

    def _map_row(self, row: dict[str, Any]) -> Subscriber:
        return Subscriber(
            id=UUID(row["id"]),
            created_at=parse_dt(row["created_at"]),
            updated_at=parse_dt(row["updated_at"]),
            email=row["email"],
            subscribed_at=parse_dt(row["subscribed_at"]),
            referer=row["referer"],
            is_verified=bool(row["is_verified"]),
        )


class SQLiteTokenRepo(SQLiteRepoBase):
    """TokenRepoPort over SQLite."""

    def save(self, token: Token) -> Token:
        with self._conn("save token") as conn:
            conn.execute(
                """
                INSERT INTO tokens (
                    id, created_at, expires_at, hash, scope, resource, resource_id
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(token.id),
                    format_dt(token.created_at),
                    format_dt(token.expires_at),
                    token.hash,
                    token.scope,
                    token.resource,
                    str(token.resource_id),
                ),
            )
            return token

    def get_by_hash(self, token_hash: str) -> Token | None:
        with self._conn("get token") as conn:
            row = conn.execute(
                "SELECT * FROM tokens WHERE hash = ?", (token_hash,)
            ).fetchone()
            return self._map_row(row) if row else None

    def delete(self, token_id: UUID) -> None:
        with self._conn("delete token") as conn:
            conn.execute("DELETE FROM tokens WHERE id = ?", (str(token_id),))

    def _map_row(self, row: dict[str, Any]) -> Token:
        return Token(
            id=UUID(row["id"]),
            created_at=parse_dt(row["created_at"]),
            expires_at=parse_dt(row["expires_at"]),
            hash=row["hash"],
            scope=row["scope"],
            resource=row["resource"],
            resource_id=UUID(row["resource_id"]),
        )


class SQLiteEmailJobRepo(SQLiteRepoBase):
    """EmailJobRepoPort over SQLite."""

    _COLUMNS = (
        "id, to_address, from_address, subject, html_body, text_body, "
        "scheduled_at, status, attempts, sent_at, last_error, created_at"
    )

    def insert_batch(self, jobs: list[ScheduledEmailJob]) -> int:
        if not jobs:
            return 0
        with self._conn("insert email jobs") as conn:
            conn.executemany(
                f"INSERT INTO email_jobs ({self._COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                [self._to_params(job) for job in jobs],
            )
            return len(jobs)

    def list_due(self, now_utc: datetime, limit: int = 10) -> list[ScheduledEmailJob]:
        with self._conn("list due email jobs") as conn:
            rows = conn.execute(
                """
                SELECT * FROM email_jobs
                WHERE status = 'queued' AND scheduled_at <= ?
                ORDER BY scheduled_at ASC, created_at ASC
                LIMIT ?
                """,
                (format_dt(now_utc), limit),
            ).fetchall()
            return [self._map_row(r) for r in rows]

    def save(self, job: ScheduledEmailJob) -> ScheduledEmailJob:
        with self._conn("save email job") as conn:
            conn.execute(
                """
                UPDATE email_jobs
                SET status = ?, attempts = ?, sent_at = ?, last_error = ?, scheduled_at = ?
                WHERE id = ?
                """,
                (
                    job.status,
                    job.attempts,
                    format_dt(job.sent_at),
                    job.last_error,
                    format_dt(job.scheduled_at),
                    str(job.id),
                ),
            )
            return job

    def count_by_status(self, status: str) -> int:
        with self._conn("count email jobs") as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM email_jobs WHERE status = ?", (status,)
            ).fetchone()
            return int(row["n"])

    def _to_params(self, job: ScheduledEmailJob) -> tuple[Any, ...]:
        return (
            str(job.id),
            job.to,
            job.from_address,
            job.subject,
            job.html_body,
            job.text_body,
            format_dt(job.scheduled_at),
            job.status,
            job.attempts,
            format_dt(job.sent_at),
            job.last_error,
            format_dt(job.created_at),
        )

    def _map_row(self, row: dict[str, Any]) -> ScheduledEmailJob:
        return ScheduledEmailJob(
            id=UUID(row["id"]),
            to=row["to_address"],
            from_address=row["from_address"],
            subject=row["subject"],
            html_body=row["html_body"],
            text_body=row["text_body"],
            scheduled_at=parse_dt(row["scheduled_at"]),
            status=row["status"],
            attempts=row["attempts"],
            sent_at=parse_dt(row["sent_at"]),
            last_error=row["last_error"],
            created_at=parse_dt(row["created_at"]),
        )


class SQLiteUnitOfWork:
    """
    UnitOfWorkPort over one SQLite connection.

    Entering opens the connection and runs BEGIN IMMEDIATE, so the write
    lock is held for the whole block and reads cannot go stale before the
    writes that depend on them. Repositories handed out by the properties
    below all share that connection.
    """

    _REPOS = {
        "newsletters": SQLiteNewsletterRepo,
        "subscribers": SQLiteSubscriberRepo,
        "tokens": SQLiteTokenRepo,
        "email_jobs": SQLiteEmailJobRepo,
    }

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._committed = False
        self._repos: dict[str, SQLiteRepoBase] = {}

    def __enter__(self) -> SQLiteUnitOfWork:
        if self._conn is not None:
            raise RuntimeError("Unit of work is already open")
        try:
            self._conn = connect(self.db_path)
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            self._close()
            raise PersistenceError("begin transaction", str(e)) from e

        self._committed = False
        self._repos = {}
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        try:
            if not self._committed:
                self.rollback()
        finally:
            self._close()

    @property
    def committed(self) -> bool:
        return self._committed

    def commit(self) -> None:
        try:
            self._open_conn().execute("COMMIT")
        except sqlite3.Error as e:
            raise PersistenceError("commit", str(e)) from e
        self._committed = True

    def rollback(self) -> None:
        if self._conn is None or not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            # closing the connection discards the transaction anyway
            logger.error("Rollback failed: %s", e)

    def _open_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Unit of work is not open")
        return self._conn

    def _close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        self._repos = {}

    def _repo(self, name: str) -> Any:
        if name not in self._repos:
            self._repos[name] = self._REPOS[name](self.db_path, self._open_conn())
        return self._repos[name]

    @property
    def newsletters(self) -> SQLiteNewsletterRepo:
        return self._repo("newsletters")

    @property
    def subscribers(self) -> SQLiteSubscriberRepo:
        return self._repo("subscribers")

    @property
    def tokens(self) -> SQLiteTokenRepo:
        return self._repo("tokens")

    @property
    def email_jobs(self) -> SQLiteEmailJobRepo:
        return self._repo("email_jobs")
