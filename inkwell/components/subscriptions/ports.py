from datetime import datetime
from typing import Protocol

from inkwell.components.emails import EmailRendererPort
from inkwell.components.tokens import IssuedToken, IssueTokenInput, TokenStorePort
from inkwell.core.ports.db import UnitOfWorkFactory
from inkwell.domain.entities import Token, TokenScope


class TokenServicePort(Protocol):
    def issue(self, tx: TokenStorePort, inp: IssueTokenInput) -> IssuedToken: ...

    def consume(self, tx: TokenStorePort, plaintext: str, scope: TokenScope) -> Token:
        """
        Raises:
            TokenError: Unknown, wrong-scope or expired token.
        """
        ...


class TimePort(Protocol):
    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...


__all__ = ["EmailRendererPort", "TimePort", "TokenServicePort", "UnitOfWorkFactory"]
