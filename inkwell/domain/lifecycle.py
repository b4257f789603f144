"""
Entity constructors and state transitions.

Every constructor and update path validates before returning, so nothing
invalid ever reaches a repository. Failures raise ValidationFailure with
the full, field-addressable error set.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from inkwell.components.validation import ValidationSchema, ensure_valid
from inkwell.domain.entities import Article, Newsletter, Subscriber, Tag, User
from inkwell.domain.validations import (
    ARTICLE_VALIDATIONS,
    LEGACY_NEWSLETTER_VALIDATIONS,
    NEWSLETTER_RELEASE_VALIDATIONS,
    NEWSLETTER_VALIDATIONS,
    SUBSCRIBER_VALIDATIONS,
    TAG_VALIDATIONS,
    build_user_validations,
)
from inkwell.ports.auth import PasswordHasherPort


class NewsletterReleasedError(ValueError):
    """A released newsletter can no longer be edited or released again."""

    def __init__(self, newsletter_id: object) -> None:
        self.newsletter_id = newsletter_id
        super().__init__(f"Newsletter {newsletter_id} has already been released")


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(UTC)


# --- Tags ---


def new_tag(name: str) -> Tag:
    tag = Tag(id=uuid4(), name=name)
    ensure_valid(tag, TAG_VALIDATIONS)
    return tag


# --- Users ---


def new_user(
    name: str,
    mail: str,
    password: str,
    confirm_password: str,
    hasher: PasswordHasherPort,
    now: datetime | None = None,
) -> User:
    """
    Build a user, validating the plaintext password before hashing it.

    Raises:
        ValidationFailure: If any field rule is violated.
    """
    ts = _now(now)
    user = User(
        id=uuid4(),
        created_at=ts,
        updated_at=ts,
        name=name,
        mail=mail,
        password=password,
    )
    ensure_valid(user, build_user_validations(confirm_password))
    return user.model_copy(update={"password": hasher.hash_password(password)})


def update_user(
    user: User,
    name: str,
    mail: str,
    mail_verified_at: datetime | None,
    password: str,
    confirm_password: str,
    hasher: PasswordHasherPort,
    now: datetime | None = None,
) -> User:
    updated = user.model_copy(
        update={
            "updated_at": _now(now),
            "name": name,
            "mail": mail,
            "mail_verified_at": mail_verified_at,
            "password": password,
        }
    )
    ensure_valid(updated, build_user_validations(confirm_password))
    return updated.model_copy(update={"password": hasher.hash_password(password)})


# --- Subscribers ---


def new_subscriber(
    email: str,
    referer: str,
    subscribed_at: datetime | None = None,
    is_verified: bool = False,
    now: datetime | None = None,
) -> Subscriber:
    ts = _now(now)
    subscriber = Subscriber(
        id=uuid4(),
        created_at=ts,
        updated_at=ts,
        email=email,
        subscribed_at=subscribed_at or ts,
        referer=referer,
        is_verified=is_verified,
    )
    ensure_valid(subscriber, SUBSCRIBER_VALIDATIONS)
    return subscriber


def verify_subscriber(subscriber: Subscriber, now: datetime | None = None) -> Subscriber:
    return subscriber.model_copy(update={"is_verified": True, "updated_at": _now(now)})


# --- Articles ---


def new_article(
    title: str,
    header_title: str,
    filename: str,
    slug: str,
    excerpt: str,
    read_time: int,
    tags: list[Tag] | None = None,
    now: datetime | None = None,
) -> Article:
    ts = _now(now)
    article = Article(
        id=uuid4(),
        created_at=ts,
        updated_at=ts,
        title=title,
        header_title=header_title,
        filename=filename,
        slug=slug,
        excerpt=excerpt,
        draft=True,
        read_time=read_time,
        tags=tags or [],
    )
    ensure_valid(article, ARTICLE_VALIDATIONS)
    return article


def update_article(
    article: Article,
    title: str,
    header_title: str,
    filename: str,
    slug: str,
    excerpt: str,
    read_time: int,
    tags: list[Tag] | None = None,
    now: datetime | None = None,
) -> Article:
    updated = article.model_copy(
        update={
            "updated_at": _now(now),
            "title": title,
            "header_title": header_title,
            "filename": filename,
            "slug": slug,
            "excerpt": excerpt,
            "read_time": read_time,
            "tags": tags if tags is not None else article.tags,
        }
    )
    ensure_valid(updated, ARTICLE_VALIDATIONS)
    return updated


# --- Newsletters ---


def new_newsletter(
    title: str,
    content: str = "",
    associated_article_slug: str = "",
    now: datetime | None = None,
) -> Newsletter:
    """Create a draft newsletter (released=False)."""
    ts = _now(now)
    newsletter = Newsletter(
        id=uuid4(),
        created_at=ts,
        updated_at=ts,
        title=title,
        content=content,
        associated_article_slug=associated_article_slug,
    )
    ensure_valid(newsletter, NEWSLETTER_VALIDATIONS)
    return newsletter


def new_legacy_newsletter(
    title: str,
    edition: int,
    paragraphs: list[str],
    associated_article_slug: str,
    now: datetime | None = None,
) -> Newsletter:
    """Create a paragraph-based edition."""
    ts = _now(now)
    newsletter = Newsletter(
        id=uuid4(),
        created_at=ts,
        updated_at=ts,
        title=title,
        edition=edition,
        paragraphs=paragraphs,
        content="\n\n".join(paragraphs),
        associated_article_slug=associated_article_slug,
    )
    ensure_valid(newsletter, LEGACY_NEWSLETTER_VALIDATIONS)
    return newsletter


def update_newsletter(
    newsletter: Newsletter,
    title: str,
    content: str,
    associated_article_slug: str,
    now: datetime | None = None,
) -> Newsletter:
    """
    Edit a draft.

    Raises:
        NewsletterReleasedError: Released content is immutable.
        ValidationFailure: If the edit breaks a field rule.
    """
    if newsletter.released:
        raise NewsletterReleasedError(newsletter.id)

    updated = newsletter.model_copy(
        update={
            "updated_at": _now(now),
            "title": title,
            "content": content,
            "associated_article_slug": associated_article_slug,
        }
    )
    ensure_valid(updated, NEWSLETTER_VALIDATIONS)
    return updated


def release_schema(newsletter: Newsletter) -> ValidationSchema:
    if newsletter.edition is not None:
        return LEGACY_NEWSLETTER_VALIDATIONS
    return NEWSLETTER_RELEASE_VALIDATIONS


def ensure_releasable(newsletter: Newsletter) -> None:
    """
    Raises:
        NewsletterReleasedError: If it was already released.
        ValidationFailure: If it is not complete enough to send.
    """
    if newsletter.released:
        raise NewsletterReleasedError(newsletter.id)
    ensure_valid(newsletter, release_schema(newsletter))


def release_newsletter(newsletter: Newsletter, now: datetime | None = None) -> Newsletter:
    """Return a NEW newsletter marked released."""
    ensure_releasable(newsletter)
    ts = _now(now)
    return newsletter.model_copy(
        update={"released": True, "released_at": ts, "updated_at": ts}
    )
