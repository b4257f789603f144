"""
Dev email transport.

Records every message in memory and logs its envelope. Nothing is sent.
Bodies are kept for test assertions but never logged: newsletter bodies
carry live unsubscribe tokens.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from inkwell.core.ports.email import EmailMessage, EmailResult

logger = logging.getLogger(__name__)


@dataclass
class DevEmailAdapter:
    """In-memory EmailPort for local runs and tests."""

    outbox: list[tuple[str, EmailMessage]] = field(default_factory=list)
    log_level: int = logging.INFO

    def send(self, message: EmailMessage) -> EmailResult:
        message_id = f"dev-{uuid4().hex[:12]}"
        self.outbox.append((message_id, message))

        logger.log(
            self.log_level,
            "Email logged (dev): id=%s from=%s to=%s subject=%r",
            message_id,
            message.sender,
            message.recipient,
            message.subject,
        )
        return EmailResult.logged(message.recipient, message_id)

    @property
    def messages(self) -> list[EmailMessage]:
        return [message for _, message in self.outbox]

    def last(self) -> EmailMessage | None:
        return self.outbox[-1][1] if self.outbox else None

    def to(self, recipient: str) -> list[EmailMessage]:
        return [m for m in self.messages if m.recipient == recipient]

    def clear(self) -> None:
        self.outbox.clear()
