"""
Token issuance and verification.

Tokens are 32 random bytes handed out as urlsafe base64. Only an
HMAC-SHA256 of the plaintext (keyed with the configured signing key) is
stored, so a leaked table cannot be replayed as links.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from uuid import uuid4

from inkwell.domain.entities import Token, TokenScope

from .models import (
    ConsumeTokenInput,
    IssuedToken,
    IssueTokenInput,
    TokenExpiredError,
    TokenNotFoundError,
    TokenScopeError,
    VerifyTokenInput,
)
from .ports import TimePort, TokenStorePort

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(plaintext: str, signing_key: str) -> str:
    digest = hmac.new(
        signing_key.encode(), plaintext.encode(), hashlib.sha256
    ).digest()
    return base64.urlsafe_b64encode(digest).decode()


class TokenIssuer:
    """Issues, verifies and consumes hashed tokens through a caller's transaction."""

    def __init__(self, signing_key: str, time: TimePort) -> None:
        if not signing_key:
            raise ValueError("Token signing key must not be empty")
        self._signing_key = signing_key
        self._time = time

    def hash(self, plaintext: str) -> str:
        return hash_token(plaintext, self._signing_key)

    def issue(self, tx: TokenStorePort, inp: IssueTokenInput) -> IssuedToken:
        """
        Generate a token and persist its hash.

        Raises:
            PersistenceError: If the repository write fails.
        """
        plaintext = generate_token()
        token_hash = self.hash(plaintext)

        token = Token(
            id=uuid4(),
            created_at=self._time.now_utc(),
            expires_at=inp.expires_at,
            hash=token_hash,
            scope=inp.scope,
            resource=inp.resource,
            resource_id=inp.resource_id,
        )
        tx.tokens.save(token)

        logger.debug(
            "issued %s token for %s/%s", inp.scope, inp.resource, inp.resource_id
        )
        return IssuedToken(hash=token_hash, plaintext=plaintext, token=token)

    def verify(self, tx: TokenStorePort, plaintext: str, scope: TokenScope) -> Token:
        """
        Look up a presented token.

        Raises:
            TokenNotFoundError: Unknown token.
            TokenScopeError: Token issued for a different purpose.
            TokenExpiredError: Token past its expiry.
        """
        token = tx.tokens.get_by_hash(self.hash(plaintext))
        if token is None:
            raise TokenNotFoundError()

        if token.scope != scope:
            raise TokenScopeError(expected=scope, actual=token.scope)

        if token.expires_at <= self._time.now_utc():
            raise TokenExpiredError(token.expires_at)

        return token

    def consume(self, tx: TokenStorePort, plaintext: str, scope: TokenScope) -> Token:
        """Verify and delete, making the token single use."""
        token = self.verify(tx, plaintext, scope)
        tx.tokens.delete(token.id)
        return token


# --- Component entry points ---


def run_issue(inp: IssueTokenInput, *, tx: TokenStorePort, issuer: TokenIssuer) -> IssuedToken:
    return issuer.issue(tx, inp)


def run_verify(inp: VerifyTokenInput, *, tx: TokenStorePort, issuer: TokenIssuer) -> Token:
    return issuer.verify(tx, inp.plaintext, inp.scope)


def run_consume(inp: ConsumeTokenInput, *, tx: TokenStorePort, issuer: TokenIssuer) -> Token:
    return issuer.consume(tx, inp.plaintext, inp.scope)


def run(
    inp: IssueTokenInput | VerifyTokenInput | ConsumeTokenInput,
    *,
    tx: TokenStorePort,
    issuer: TokenIssuer,
) -> IssuedToken | Token:
    if isinstance(inp, IssueTokenInput):
        return run_issue(inp, tx=tx, issuer=issuer)

    elif isinstance(inp, VerifyTokenInput):
        return run_verify(inp, tx=tx, issuer=issuer)

    elif isinstance(inp, ConsumeTokenInput):
        return run_consume(inp, tx=tx, issuer=issuer)

    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
