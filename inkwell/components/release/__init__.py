"""
Release component - Newsletter release scheduling.
"""

from .component import (
    ReleaseScheduler,
    build_article_url,
    build_unsubscribe_link,
    compute_send_time,
    load_config_from_rules,
    newsletter_paragraphs,
    pick_gap_minutes,
    run,
)
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

__all__ = [
    # Entry points
    "run",
    "ReleaseScheduler",
    # Policy
    "build_article_url",
    "build_unsubscribe_link",
    "compute_send_time",
    "newsletter_paragraphs",
    "pick_gap_minutes",
    # Configuration
    "DEFAULT_CONFIG",
    "ReleaseConfig",
    "load_config_from_rules",
    # Input/Output models
    "ReleaseNewsletterInput",
    "ReleaseOutput",
    # Errors
    "NewsletterAlreadyReleasedError",
    "NewsletterInvalidError",
    "NewsletterNotFoundError",
    "ReleaseCancelledError",
    "ReleaseError",
    "ReleaseFailedError",
    "ReleaseTimeoutError",
    # Ports
    "EmailRendererPort",
    "RandomPort",
    "TimePort",
    "TokenIssuerPort",
    "UnitOfWorkFactory",
]
