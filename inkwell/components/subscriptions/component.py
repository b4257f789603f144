"""
Subscriptions component - double opt-in newsletter subscriptions.

Key behaviors:
- Double opt-in: new subscribers start unverified and receive a
  verification link (72h email_verification token)
- Subscribing again with a known email is idempotent; an unverified
  subscriber gets a fresh verification email
- Unsubscribe needs both the token from the email and the matching address
- Tokens are consumed on use; a refused request consumes nothing
"""

from __future__ import annotations

import logging
from datetime import timedelta
from urllib.parse import quote, urljoin

from inkwell.components.emails import VERIFICATION_TEMPLATE
from inkwell.components.tokens import (
    IssueTokenInput,
    TokenError,
    TokenExpiredError,
)
from inkwell.domain.entities import ScheduledEmailJob
from inkwell.domain.lifecycle import new_subscriber, verify_subscriber
from inkwell.rules.models import Rules

from .models import (
    CleanupInput,
    CleanupOutput,
    SubscribeInput,
    SubscribeOutput,
    SubscriptionConfig,
    SubscriptionError,
    UnsubscribeInput,
    UnsubscribeOutput,
    VerifyInput,
    VerifyOutput,
)
from .ports import EmailRendererPort, TimePort, TokenServicePort, UnitOfWorkFactory

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower() if email else ""


def build_verification_link(config: SubscriptionConfig, plaintext: str) -> str:
    return urljoin(config.base_url, config.verify_path) + "?token=" + quote(plaintext, safe="")


def _token_error(e: TokenError) -> SubscriptionError:
    if isinstance(e, TokenExpiredError):
        return SubscriptionError("TOKEN_EXPIRED", "This link has expired")
    return SubscriptionError("INVALID_TOKEN", "This link is invalid or was already used")


# --- Handlers ---


def run_subscribe(
    inp: SubscribeInput,
    *,
    uow_factory: UnitOfWorkFactory,
    tokens: TokenServicePort,
    renderer: EmailRendererPort,
    time: TimePort,
    config: SubscriptionConfig | None = None,
) -> SubscribeOutput:
    """
    Register an email address and queue its verification email.

    Raises:
        ValidationFailure: If the email or referer is invalid.
        PersistenceError: If the transaction fails.
        TemplateError: If the verification email cannot be rendered.
    """
    cfg = config or SubscriptionConfig()
    email = normalize_email(inp.email)
    now = time.now_utc()

    with uow_factory() as tx:
        existing = tx.subscribers.get_by_email(email)
        if existing is not None and existing.is_verified:
            return SubscribeOutput(
                subscriber_id=existing.id,
                needs_verification=False,
                already_subscribed=True,
            )

        subscriber = existing or new_subscriber(email, inp.referer, now=now)
        if existing is None:
            tx.subscribers.save(subscriber)

        issued = tokens.issue(
            tx,
            IssueTokenInput(
                expires_at=now + timedelta(hours=cfg.verification_token_hours),
                scope="email_verification",
                resource="subscribers",
                resource_id=subscriber.id,
            ),
        )
        body = renderer.render(
            VERIFICATION_TEMPLATE,
            {
                "site_name": cfg.site_name,
                "verification_link": build_verification_link(cfg, issued.plaintext),
                "valid_hours": cfg.verification_token_hours,
            },
        )
        tx.email_jobs.insert_batch(
            [
                ScheduledEmailJob(
                    to=email,
                    from_address=cfg.sender,
                    subject=cfg.verification_subject,
                    html_body=body.html,
                    text_body=body.text,
                    scheduled_at=now,
                    created_at=now,
                )
            ]
        )
        tx.commit()

    logger.info(
        "Verification email queued: subscriber_id=%s resend=%s",
        subscriber.id,
        existing is not None,
    )
    return SubscribeOutput(subscriber_id=subscriber.id, needs_verification=True)


def run_verify(
    inp: VerifyInput,
    *,
    uow_factory: UnitOfWorkFactory,
    tokens: TokenServicePort,
    time: TimePort,
) -> VerifyOutput:
    """Confirm a subscription from its emailed link."""
    if not inp.token:
        return VerifyOutput(
            success=False,
            errors=[SubscriptionError("MISSING_TOKEN", "Verification token is required")],
        )

    with uow_factory() as tx:
        try:
            token = tokens.consume(tx, inp.token, "email_verification")
        except TokenError as e:
            logger.info("Verification refused: %s", e)
            return VerifyOutput(success=False, errors=[_token_error(e)])

        subscriber = tx.subscribers.get_by_id(token.resource_id)
        if subscriber is None:
            return VerifyOutput(
                success=False,
                errors=[SubscriptionError("NOT_FOUND", "Subscriber no longer exists")],
            )

        if not subscriber.is_verified:
            tx.subscribers.save(verify_subscriber(subscriber, now=time.now_utc()))
        tx.commit()

    logger.info("Subscriber verified: subscriber_id=%s", subscriber.id)
    return VerifyOutput(success=True, subscriber_id=subscriber.id)


def run_unsubscribe(
    inp: UnsubscribeInput,
    *,
    uow_factory: UnitOfWorkFactory,
    tokens: TokenServicePort,
) -> UnsubscribeOutput:
    """Delete the subscriber named by an unsubscribe token."""
    if not inp.token or not inp.email:
        return UnsubscribeOutput(
            success=False,
            errors=[SubscriptionError("MISSING_PARAMS", "Token and email are required")],
        )

    email = normalize_email(inp.email)

    with uow_factory() as tx:
        try:
            token = tokens.consume(tx, inp.token, "unsubscribe")
        except TokenError as e:
            logger.info("Unsubscribe refused: %s", e)
            return UnsubscribeOutput(success=False, errors=[_token_error(e)])

        subscriber = tx.subscribers.get_by_id(token.resource_id)
        if subscriber is None or subscriber.email != email:
            # leaves the token unconsumed: returning without commit rolls back
            return UnsubscribeOutput(
                success=False,
                errors=[SubscriptionError("NOT_FOUND", "No matching subscription")],
            )

        tx.subscribers.delete(subscriber.id)
        tx.commit()

    logger.info("Subscriber unsubscribed: subscriber_id=%s", subscriber.id)
    return UnsubscribeOutput(success=True)


def run_cleanup(
    inp: CleanupInput,
    *,
    uow_factory: UnitOfWorkFactory,
    time: TimePort,
    config: SubscriptionConfig | None = None,
) -> CleanupOutput:
    cfg = config or SubscriptionConfig()
    now = inp.now or time.now_utc()
    cutoff = now - timedelta(days=cfg.retention_days)

    with uow_factory() as tx:
        deleted = tx.subscribers.delete_unverified_before(cutoff)
        tx.commit()

    logger.info("Removed %d unverified subscribers created before %s", deleted, cutoff)
    return CleanupOutput(deleted=deleted, cutoff=cutoff)


def run(
    inp: SubscribeInput | VerifyInput | UnsubscribeInput | CleanupInput,
    *,
    uow_factory: UnitOfWorkFactory,
    tokens: TokenServicePort,
    renderer: EmailRendererPort,
    time: TimePort,
    config: SubscriptionConfig | None = None,
) -> SubscribeOutput | VerifyOutput | UnsubscribeOutput | CleanupOutput:
    """
    Main entry point for the subscriptions component.

    Dispatches to the handler for the input type.
    """
    if isinstance(inp, SubscribeInput):
        return run_subscribe(
            inp,
            uow_factory=uow_factory,
            tokens=tokens,
            renderer=renderer,
            time=time,
            config=config,
        )

    elif isinstance(inp, VerifyInput):
        return run_verify(inp, uow_factory=uow_factory, tokens=tokens, time=time)

    elif isinstance(inp, UnsubscribeInput):
        return run_unsubscribe(inp, uow_factory=uow_factory, tokens=tokens)

    elif isinstance(inp, CleanupInput):
        return run_cleanup(inp, uow_factory=uow_factory, time=time, config=config)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")


# --- Configuration Loader ---


def load_config_from_rules(rules: Rules) -> SubscriptionConfig:
    """Load SubscriptionConfig from rules.yaml."""
    return SubscriptionConfig(
        verification_token_hours=rules.tokens.verification_expiry_hours,
        retention_days=rules.subscriptions.unverified_retention_days,
        sender=rules.site.sender,
        verification_subject=rules.subscriptions.verification_subject,
        site_name=rules.site.name,
        base_url=rules.site.base_url,
        verify_path=rules.site.verify_path,
    )
