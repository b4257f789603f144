"""
Release component - fan a newsletter out to every verified subscriber.

Key behaviors:
- One transaction per release: the newsletter is marked released, one
  unsubscribe token is issued per subscriber and every email job is
  inserted in a single batch. Any failure rolls all of it back.
- Marking released is a compare-and-set, so two concurrent releases of the
  same newsletter cannot both enqueue mail.
- Daily rate limit: subscriber i is sent on day i // emails_per_day at
  position i % emails_per_day, spaced by one gap drawn once per run.
- The deadline and the cancellation event are checked between steps.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from urllib.parse import quote, urljoin
from uuid import UUID

from inkwell.components.emails import NEWSLETTER_TEMPLATE, split_paragraphs
from inkwell.components.tokens import IssueTokenInput
from inkwell.components.validation import ValidationFailure
from inkwell.core.ports.db import UnitOfWorkPort
from inkwell.domain.entities import Newsletter, ScheduledEmailJob, Subscriber
from inkwell.domain.lifecycle import NewsletterReleasedError, ensure_releasable
from inkwell.rules.models import Rules

from .models import (
    DEFAULT_CONFIG,
    NewsletterAlreadyReleasedError,
    NewsletterInvalidError,
    NewsletterNotFoundError,
    ReleaseCancelledError,
    ReleaseConfig,
    ReleaseError,
    ReleaseFailedError,
    ReleaseNewsletterInput,
    ReleaseOutput,
    ReleaseTimeoutError,
)
from .ports import (
    EmailRendererPort,
    RandomPort,
    TimePort,
    TokenIssuerPort,
    UnitOfWorkFactory,
)

logger = logging.getLogger(__name__)

# Rejections caused by the request rather than the system
_CALLER_ERRORS = (
    NewsletterNotFoundError,
    NewsletterAlreadyReleasedError,
    NewsletterInvalidError,
)


# --- Scheduling policy ---


def pick_gap_minutes(rng: RandomPort, config: ReleaseConfig = DEFAULT_CONFIG) -> int:
    return rng.randint(config.min_gap_minutes, config.max_gap_minutes)


def compute_send_time(
    base: datetime,
    index: int,
    gap_minutes: int,
    emails_per_day: int = DEFAULT_CONFIG.emails_per_day,
) -> datetime:
    """
    Send time for the index-th recipient of a release.

    Strictly increasing in index for a gap of at least one minute when a
    full day of sends, (emails_per_day - 1) * gap_minutes, stays under 24h.
    ReleaseConfig refuses settings that break this.
    """
    day_offset, position = divmod(index, emails_per_day)
    return base + timedelta(days=day_offset, minutes=position * gap_minutes)


def build_unsubscribe_link(config: ReleaseConfig, plaintext: str, email: str) -> str:
    return (
        urljoin(config.base_url, config.unsubscribe_path)
        + "?token="
        + quote(plaintext, safe="")
        + "&email="
        + quote(email, safe="")
    )


def build_article_url(config: ReleaseConfig, slug: str) -> str:
    return urljoin(config.base_url, config.article_path + quote(slug))


def newsletter_paragraphs(newsletter: Newsletter) -> list[str]:
    return list(newsletter.paragraphs) or split_paragraphs(newsletter.content)


# --- Scheduler ---


class ReleaseScheduler:
    """
    Schedules a newsletter release.

    Collaborators are injected; the scheduler opens its own unit of work per
    call, so one instance can serve concurrent releases of different
    newsletters.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        tokens: TokenIssuerPort,
        renderer: EmailRendererPort,
        time_port: TimePort,
        rng: RandomPort | None = None,
        config: ReleaseConfig | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._uow_factory = uow_factory
        self._tokens = tokens
        self._renderer = renderer
        self._time = time_port
        self._rng = rng or random.Random()
        self._config = config or DEFAULT_CONFIG
        self._monotonic = monotonic

    def schedule(
        self,
        newsletter_id: UUID,
        cancel_event: threading.Event | None = None,
    ) -> ReleaseOutput:
        """
        Release a newsletter to every verified subscriber.

        Raises:
            NewsletterNotFoundError: No such newsletter.
            NewsletterAlreadyReleasedError: It was released before (or concurrently).
            NewsletterInvalidError: It fails its release validation rules.
            ReleaseTimeoutError: The deadline passed before commit.
            ReleaseCancelledError: cancel_event was set before commit.
            ReleaseFailedError: Anything else; the original error is __cause__.
        """
        deadline = self._monotonic() + self._config.timeout_seconds
        progress = _Progress(newsletter_id)

        logger.info("Newsletter release starting: newsletter_id=%s", newsletter_id)

        try:
            with self._uow_factory() as tx:
                output = self._schedule_in(tx, newsletter_id, progress, deadline, cancel_event)
                self._checkpoint(progress, deadline, cancel_event)
                tx.commit()
        except ReleaseError as e:
            self._log_failure(e, progress)
            raise
        except NewsletterReleasedError as e:
            err: ReleaseError = NewsletterAlreadyReleasedError(newsletter_id)
            self._log_failure(err, progress)
            raise err from e
        except ValidationFailure as e:
            err = NewsletterInvalidError(newsletter_id, e.errors)
            self._log_failure(err, progress)
            raise err from e
        except Exception as e:
            err = ReleaseFailedError(newsletter_id, progress.attempted, e)
            self._log_failure(err, progress)
            raise err from e

        logger.info(
            "Newsletter release scheduled: newsletter_id=%s jobs=%d gap_minutes=%d "
            "first=%s last=%s",
            newsletter_id,
            output.jobs_scheduled,
            output.gap_minutes,
            output.first_scheduled_at,
            output.last_scheduled_at,
        )
        return output

    # --- internals ---

    def _schedule_in(
        self,
        tx: UnitOfWorkPort,
        newsletter_id: UUID,
        progress: _Progress,
        deadline: float,
        cancel_event: threading.Event | None,
    ) -> ReleaseOutput:
        newsletter = tx.newsletters.get_by_id(newsletter_id)
        if newsletter is None:
            raise NewsletterNotFoundError(newsletter_id)

        ensure_releasable(newsletter)

        now = self._time.now_utc()
        if not tx.newsletters.mark_released(newsletter_id, now):
            raise NewsletterAlreadyReleasedError(newsletter_id)

        subscribers = tx.subscribers.list_verified()
        progress.attempted = len(subscribers)
        if not subscribers:
            logger.warning(
                "Newsletter %s released with no verified subscribers", newsletter_id
            )

        gap = pick_gap_minutes(self._rng, self._config)
        jobs: list[ScheduledEmailJob] = []

        for index, subscriber in enumerate(subscribers):
            self._checkpoint(progress, deadline, cancel_event)
            jobs.append(self._build_job(tx, newsletter, subscriber, index, gap, now))

        self._checkpoint(progress, deadline, cancel_event)
        if jobs:
            tx.email_jobs.insert_batch(jobs)

        return ReleaseOutput(
            newsletter_id=newsletter_id,
            released_at=now,
            jobs_scheduled=len(jobs),
            gap_minutes=gap,
            first_scheduled_at=jobs[0].scheduled_at if jobs else None,
            last_scheduled_at=jobs[-1].scheduled_at if jobs else None,
        )

    def _build_job(
        self,
        tx: UnitOfWorkPort,
        newsletter: Newsletter,
        subscriber: Subscriber,
        index: int,
        gap: int,
        now: datetime,
    ) -> ScheduledEmailJob:
        issued = self._tokens.issue(
            tx,
            IssueTokenInput(
                expires_at=now + timedelta(days=self._config.token_expiry_days),
                scope="unsubscribe",
                resource="subscribers",
                resource_id=subscriber.id,
            ),
        )

        email = self._renderer.render(
            NEWSLETTER_TEMPLATE,
            {
                "title": newsletter.title,
                "paragraphs": newsletter_paragraphs(newsletter),
                "article_url": build_article_url(
                    self._config, newsletter.associated_article_slug
                ),
                "site_name": self._config.site_name,
                "unsubscribe_link": build_unsubscribe_link(
                    self._config, issued.plaintext, subscriber.email
                ),
            },
        )

        return ScheduledEmailJob(
            to=subscriber.email,
            from_address=self._config.sender,
            subject=self._config.subject_prefix + newsletter.title,
            html_body=email.html,
            text_body=email.text,
            scheduled_at=compute_send_time(
                now, index, gap, self._config.emails_per_day
            ),
            created_at=now,
        )

    def _checkpoint(
        self,
        progress: _Progress,
        deadline: float,
        cancel_event: threading.Event | None,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ReleaseCancelledError(progress.newsletter_id, progress.attempted)
        if self._monotonic() > deadline:
            raise ReleaseTimeoutError(
                progress.newsletter_id, self._config.timeout_seconds, progress.attempted
            )

    def _log_failure(self, err: ReleaseError, progress: _Progress) -> None:
        level = logging.WARNING if isinstance(err, _CALLER_ERRORS) else logging.ERROR
        logger.log(
            level,
            "Newsletter release failed and was rolled back: newsletter_id=%s "
            "attempted=%d error=%s",
            progress.newsletter_id,
            progress.attempted,
            err,
        )


class _Progress:
    """How far a release got, for error context."""

    def __init__(self, newsletter_id: UUID) -> None:
        self.newsletter_id = newsletter_id
        self.attempted = 0


# --- Component entry point ---


def run(
    inp: ReleaseNewsletterInput,
    *,
    scheduler: ReleaseScheduler,
    cancel_event: threading.Event | None = None,
) -> ReleaseOutput:
    """
    Main component entry point.

    Args:
        inp: Newsletter to release
        scheduler: Configured release scheduler
        cancel_event: Optional cancellation signal

    Returns:
        ReleaseOutput for the committed release
    """
    if isinstance(inp, ReleaseNewsletterInput):
        return scheduler.schedule(inp.newsletter_id, cancel_event=cancel_event)

    raise ValueError(f"Unknown input type: {type(inp)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> ReleaseConfig:
    """
    Load ReleaseConfig from rules.yaml.

    Args:
        rules: Validated rules

    Returns:
        ReleaseConfig instance
    """
    return ReleaseConfig(
        emails_per_day=rules.release.emails_per_day,
        min_gap_minutes=rules.release.gap_minutes.min,
        max_gap_minutes=rules.release.gap_minutes.max,
        token_expiry_days=rules.tokens.unsubscribe_expiry_days,
        timeout_seconds=rules.release.timeout_seconds,
        sender=rules.site.sender,
        subject_prefix=rules.release.subject_prefix,
        site_name=rules.site.name,
        base_url=rules.site.base_url,
        unsubscribe_path=rules.site.unsubscribe_path,
        article_path=rules.site.article_path,
    )
