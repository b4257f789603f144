"""
Subscriptions component - double opt-in subscribe, verify, unsubscribe and cleanup.
"""

from .component import (
    build_verification_link,
    load_config_from_rules,
    normalize_email,
    run,
    run_cleanup,
    run_subscribe,
    run_unsubscribe,
    run_verify,
)
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
from .ports import TimePort, TokenServicePort

__all__ = [
    # Entry points
    "run",
    "run_cleanup",
    "run_subscribe",
    "run_unsubscribe",
    "run_verify",
    # Helpers
    "build_verification_link",
    "normalize_email",
    # Configuration
    "SubscriptionConfig",
    "load_config_from_rules",
    # Input models
    "CleanupInput",
    "SubscribeInput",
    "UnsubscribeInput",
    "VerifyInput",
    # Output models
    "CleanupOutput",
    "SubscribeOutput",
    "SubscriptionError",
    "UnsubscribeOutput",
    "VerifyOutput",
    # Ports
    "TimePort",
    "TokenServicePort",
]
