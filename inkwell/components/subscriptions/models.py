"""
Subscriptions component models.

Subscriber lifecycle: unverified -> verified (via emailed link) -> deleted
(via unsubscribe link). Unverified subscribers that never confirm are
removed by the cleanup job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

# --- Configuration ---


@dataclass(frozen=True)
class SubscriptionConfig:
    """Subscription configuration from rules."""

    verification_token_hours: int = 72
    retention_days: int = 14

    sender: str = "newsletter@example.com"
    verification_subject: str = "Please confirm your subscription"
    site_name: str = "Inkwell"

    base_url: str = "http://localhost:8000"
    verify_path: str = "/verify"


# --- Errors ---


@dataclass(frozen=True)
class SubscriptionError:
    """Reason a verify/unsubscribe request was refused."""

    code: str
    message: str


# --- Input Models ---


@dataclass(frozen=True)
class SubscribeInput:
    email: str
    referer: str


@dataclass(frozen=True)
class VerifyInput:
    token: str = field(repr=False)


@dataclass(frozen=True)
class UnsubscribeInput:
    token: str = field(repr=False)
    email: str


@dataclass(frozen=True)
class CleanupInput:
    """Remove unverified subscribers older than the retention window."""

    now: datetime | None = None


# --- Output Models ---


@dataclass(frozen=True)
class SubscribeOutput:
    subscriber_id: UUID
    needs_verification: bool
    already_subscribed: bool = False


@dataclass(frozen=True)
class VerifyOutput:
    success: bool
    subscriber_id: UUID | None = None
    errors: list[SubscriptionError] = field(default_factory=list)


@dataclass(frozen=True)
class UnsubscribeOutput:
    success: bool
    errors: list[SubscriptionError] = field(default_factory=list)


@dataclass(frozen=True)
class CleanupOutput:
    deleted: int
    cutoff: datetime
