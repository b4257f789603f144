"""
Release component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from inkwell.components.validation import ValidationErrorSet
from inkwell.core.ports.db import PersistenceError

# --- Configuration ---


@dataclass(frozen=True)
class ReleaseConfig:
    """Release configuration from rules."""

    # Rate limit
    emails_per_day: int = 50
    min_gap_minutes: int = 1
    max_gap_minutes: int = 4

    # Unsubscribe tokens
    token_expiry_days: int = 365

    # Whole-operation deadline
    timeout_seconds: float = 300.0

    # Message
    sender: str = "newsletter@example.com"
    subject_prefix: str = "newsletter - "
    site_name: str = "Inkwell"

    # Links
    base_url: str = "http://localhost:8000"
    unsubscribe_path: str = "/unsubscribe"
    article_path: str = "/posts/"

    def __post_init__(self) -> None:
        if self.emails_per_day < 1:
            raise ValueError("emails_per_day must be at least 1")
        if not 1 <= self.min_gap_minutes <= self.max_gap_minutes:
            raise ValueError(
                f"gap range {self.min_gap_minutes}-{self.max_gap_minutes} must start at 1 or more"
            )
        if (self.emails_per_day - 1) * self.max_gap_minutes >= 24 * 60:
            raise ValueError("one day of sends at max_gap_minutes spills into the next day")


DEFAULT_CONFIG = ReleaseConfig()


# --- Errors ---


class ReleaseError(Exception):
    """
    A release did not happen. Nothing it wrote was kept.

    attempted is the number of verified subscribers loaded before the
    failure (0 if it failed before they were read).
    """

    def __init__(self, newsletter_id: UUID, message: str, attempted: int = 0) -> None:
        self.newsletter_id = newsletter_id
        self.attempted = attempted
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return False


class NewsletterNotFoundError(ReleaseError):
    def __init__(self, newsletter_id: UUID) -> None:
        super().__init__(newsletter_id, f"Newsletter {newsletter_id} not found")


class NewsletterAlreadyReleasedError(ReleaseError):
    def __init__(self, newsletter_id: UUID) -> None:
        super().__init__(newsletter_id, f"Newsletter {newsletter_id} has already been released")


class NewsletterInvalidError(ReleaseError):
    """The newsletter is not complete enough to send."""

    def __init__(self, newsletter_id: UUID, errors: ValidationErrorSet) -> None:
        self.errors = errors
        super().__init__(newsletter_id, f"Newsletter {newsletter_id} is invalid: {errors}")


class ReleaseTimeoutError(ReleaseError):
    def __init__(self, newsletter_id: UUID, timeout_seconds: float, attempted: int) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            newsletter_id,
            f"Release of {newsletter_id} exceeded {timeout_seconds:g}s "
            f"({attempted} subscribers attempted)",
            attempted,
        )

    @property
    def retryable(self) -> bool:
        return True


class ReleaseCancelledError(ReleaseError):
    def __init__(self, newsletter_id: UUID, attempted: int) -> None:
        super().__init__(
            newsletter_id,
            f"Release of {newsletter_id} was cancelled ({attempted} subscribers attempted)",
            attempted,
        )


class ReleaseFailedError(ReleaseError):
    """Any other failure. The original exception is kept as __cause__."""

    def __init__(self, newsletter_id: UUID, attempted: int, cause: Exception) -> None:
        self.cause = cause
        super().__init__(
            newsletter_id,
            f"Release of {newsletter_id} failed after {attempted} subscribers: {cause}",
            attempted,
        )

    @property
    def retryable(self) -> bool:
        return isinstance(self.cause, PersistenceError)


# --- Input Models ---


@dataclass(frozen=True)
class ReleaseNewsletterInput:
    """Input for releasing a newsletter to all verified subscribers."""

    newsletter_id: UUID


# --- Output Models ---


@dataclass(frozen=True)
class ReleaseOutput:
    """What a committed release scheduled. Never carries token material."""

    newsletter_id: UUID
    released_at: datetime
    jobs_scheduled: int
    gap_minutes: int
    first_scheduled_at: datetime | None = None
    last_scheduled_at: datetime | None = None
