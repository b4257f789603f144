"""
Tokens component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from inkwell.domain.entities import Token, TokenResource, TokenScope

# --- Errors ---


class TokenError(Exception):
    """Base class for token verification failures."""


class TokenNotFoundError(TokenError):
    def __init__(self) -> None:
        super().__init__("Invalid or unknown token")


class TokenScopeError(TokenError):
    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Token scope is {actual}, expected {expected}")


class TokenExpiredError(TokenError):
    def __init__(self, expires_at: datetime) -> None:
        self.expires_at = expires_at
        super().__init__(f"Token expired at {expires_at.isoformat()}")


# --- Input Models ---


@dataclass(frozen=True)
class IssueTokenInput:
    """Input for issuing a new token bound to one resource."""

    expires_at: datetime
    scope: TokenScope
    resource: TokenResource
    resource_id: UUID


@dataclass(frozen=True)
class VerifyTokenInput:
    plaintext: str = field(repr=False)
    scope: TokenScope


@dataclass(frozen=True)
class ConsumeTokenInput:
    """Verify, then delete. A consumed token cannot be used again."""

    plaintext: str = field(repr=False)
    scope: TokenScope


# --- Output Models ---


@dataclass(frozen=True)
class IssuedToken:
    """
    Result of issuing a token.

    plaintext is handed out exactly once and is never stored or logged;
    only hash reaches the repository.
    """

    hash: str
    plaintext: str = field(repr=False)
    token: Token
