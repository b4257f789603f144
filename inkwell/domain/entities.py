from datetime import UTC, datetime
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(UTC)


# --- Enums / Literals ---
TokenScope = Literal["email_verification", "unsubscribe", "password_reset"]
TokenResource = Literal["users", "subscribers"]
EmailJobStatus = Literal["queued", "sent", "failed"]

# --- Users ---

class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    name: str
    mail: str
    mail_verified_at: datetime | None = None
    # plaintext only until validated; hashed before it leaves the constructor
    password: str

# --- Articles ---

class Tag(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str

class Article(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    title: str
    header_title: str
    filename: str
    slug: str
    excerpt: str
    draft: bool = True
    release_date: datetime | None = None
    read_time: int = 0
    tags: list[Tag] = Field(default_factory=list)

# --- Newsletter ---

class Newsletter(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    title: str
    content: str = ""
    released_at: datetime | None = None
    released: bool = False
    associated_article_slug: str = ""

    # Legacy paragraph-based editions
    edition: int | None = None
    paragraphs: list[str] = Field(default_factory=list)

class Subscriber(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)
    email: str
    subscribed_at: datetime = Field(default_factory=_now)
    referer: str
    is_verified: bool = False

# --- Tokens ---

class Token(BaseModel):
    """Stored token. The plaintext secret is never part of this record."""

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime = Field(default_factory=_now)
    expires_at: datetime
    hash: str
    scope: TokenScope
    resource: TokenResource
    resource_id: UUID

# --- Email Jobs ---

class ScheduledEmailJob(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    to: str
    from_address: str
    subject: str
    html_body: str
    text_body: str
    scheduled_at: datetime
    status: EmailJobStatus = "queued"
    attempts: int = 0
    sent_at: datetime | None = None
    last_error: str | None = None
    created_at: datetime = Field(default_factory=_now)
