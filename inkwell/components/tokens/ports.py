from datetime import datetime
from typing import Protocol

from inkwell.core.ports.db import TokenRepoPort


class TokenStorePort(Protocol):
    """Anything exposing a token repository, typically an open unit of work."""

    @property
    def tokens(self) -> TokenRepoPort: ...


class TimePort(Protocol):
    """Port for time operations - enables deterministic testing."""

    def now_utc(self) -> datetime:
        """Get current UTC time."""
        ...
