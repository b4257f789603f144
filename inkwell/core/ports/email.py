"""
Email transport interface.

The delivery runner hands one queued job at a time to an EmailPort.
Transports report the outcome in an EmailResult instead of raising, so a
bad address or a provider outage never aborts the rest of a batch.

Transports:
- DevEmailAdapter: records and logs, nothing leaves the process
- SMTP / provider adapters plug in behind the same protocol
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from inkwell.domain.entities import ScheduledEmailJob


class EmailStatus(Enum):
    SENT = "sent"
    FAILED = "failed"
    LOGGED = "logged"  # accepted by a transport that does not really send


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email ready for a transport. Carries HTML and plain text."""

    sender: str
    recipient: str
    subject: str
    body_html: str = field(repr=False)
    body_text: str = field(repr=False)

    def __post_init__(self) -> None:
        missing = [
            name for name in ("sender", "recipient", "subject") if not getattr(self, name)
        ]
        if missing:
            raise ValueError(f"Email is missing {', '.join(missing)}")
        if not (self.body_html or self.body_text):
            raise ValueError("Email needs an HTML or a plain text body")

    @classmethod
    def from_job(cls, job: ScheduledEmailJob) -> EmailMessage:
        return cls(
            sender=job.from_address,
            recipient=job.to,
            subject=job.subject,
            body_html=job.html_body,
            body_text=job.text_body,
        )


@dataclass(frozen=True)
class EmailResult:
    """What a transport did with one message."""

    status: EmailStatus
    recipient: str
    message_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None

    @property
    def delivered(self) -> bool:
        return self.status is not EmailStatus.FAILED

    @classmethod
    def success(cls, recipient: str, message_id: str | None = None) -> EmailResult:
        return cls(EmailStatus.SENT, recipient, message_id, sent_at=datetime.now(UTC))

    @classmethod
    def logged(cls, recipient: str, message_id: str) -> EmailResult:
        return cls(EmailStatus.LOGGED, recipient, message_id, sent_at=datetime.now(UTC))

    @classmethod
    def failed(cls, recipient: str, error: str) -> EmailResult:
        return cls(EmailStatus.FAILED, recipient, error=error)


class EmailPort(Protocol):
    def send(self, message: EmailMessage) -> EmailResult:
        """
        Hand a message to the transport.

        Must not raise for delivery problems; return EmailResult.failed.
        """
        ...
