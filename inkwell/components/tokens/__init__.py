"""
Tokens component - hashed, scoped, expiring one-time tokens.
"""

from .component import (
    TokenIssuer,
    generate_token,
    hash_token,
    run,
    run_consume,
    run_issue,
    run_verify,
)
from .models import (
    ConsumeTokenInput,
    IssuedToken,
    IssueTokenInput,
    TokenError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenScopeError,
    VerifyTokenInput,
)
from .ports import TimePort, TokenStorePort

__all__ = [
    # Entry points
    "run",
    "run_consume",
    "run_issue",
    "run_verify",
    # Issuer
    "TokenIssuer",
    "generate_token",
    "hash_token",
    # Input models
    "ConsumeTokenInput",
    "IssueTokenInput",
    "VerifyTokenInput",
    # Output models
    "IssuedToken",
    # Errors
    "TokenError",
    "TokenExpiredError",
    "TokenNotFoundError",
    "TokenScopeError",
    # Ports
    "TimePort",
    "TokenStorePort",
]
