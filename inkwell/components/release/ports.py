"""
Release component port definitions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from inkwell.components.emails import EmailRendererPort
from inkwell.components.tokens import IssuedToken, IssueTokenInput, TokenStorePort
from inkwell.core.ports.db import UnitOfWorkFactory


class TokenIssuerPort(Protocol):
    def issue(self, tx: TokenStorePort, inp: IssueTokenInput) -> IssuedToken:
        """
        Raises:
            PersistenceError: If the token cannot be stored.
        """
        ...


class RandomPort(Protocol):
    """Source of the per-run send gap. random.Random satisfies it."""

    def randint(self, a: int, b: int) -> int: ...


class TimePort(Protocol):
    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


__all__ = [
    "EmailRendererPort",
    "RandomPort",
    "TimePort",
    "TokenIssuerPort",
    "UnitOfWorkFactory",
]
