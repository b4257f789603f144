"""
Admin newsletter API endpoints.

Endpoints:
- GET /api/admin/newsletters - List newsletters
- POST /api/admin/newsletters - Create a draft newsletter
- POST /api/admin/newsletters/{id}/release - Release to verified subscribers
"""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from inkwell.adapters.sqlite_db import SQLiteNewsletterRepo
from inkwell.api.deps import get_newsletter_repo, get_release_scheduler
from inkwell.components.release import (
    NewsletterAlreadyReleasedError,
    NewsletterInvalidError,
    NewsletterNotFoundError,
    ReleaseError,
    ReleaseScheduler,
)
from inkwell.components.validation import ValidationFailure
from inkwell.core.ports.db import PersistenceError
from inkwell.domain.entities import Newsletter
from inkwell.domain.lifecycle import new_newsletter

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response Models ---


class NewsletterCreateRequest(BaseModel):
    """Draft newsletter fields."""

    title: str = Field("", description="Newsletter title")
    content: str = Field("", description="Newsletter body (plain text paragraphs)")
    associated_article_slug: str = Field("", description="Slug of the linked article")


class NewsletterResponse(BaseModel):
    id: str
    title: str
    content: str
    associated_article_slug: str
    released: bool
    released_at: str | None = None
    created_at: str


class ReleaseResponse(BaseModel):
    """Outcome of a successful release."""

    newsletter_id: str
    released_at: str
    jobs_scheduled: int
    gap_minutes: int
    first_scheduled_at: str | None = None
    last_scheduled_at: str | None = None


class ErrorResponse(BaseModel):
    detail: str | dict[str, object]


# --- Helpers ---


def _to_response(newsletter: Newsletter) -> NewsletterResponse:
    return NewsletterResponse(
        id=str(newsletter.id),
        title=newsletter.title,
        content=newsletter.content,
        associated_article_slug=newsletter.associated_article_slug,
        released=newsletter.released,
        released_at=newsletter.released_at.isoformat() if newsletter.released_at else None,
        created_at=newsletter.created_at.isoformat(),
    )


def _validation_detail(message: str, e: ValidationFailure) -> dict[str, object]:
    return {"message": message, "errors": e.errors.as_form_errors()}


# --- Endpoints ---


@router.get(
    "",
    response_model=list[NewsletterResponse],
    summary="List newsletters",
)
def list_newsletters(
    repo: SQLiteNewsletterRepo = Depends(get_newsletter_repo),
) -> list[NewsletterResponse]:
    return [_to_response(n) for n in repo.list_all()]


@router.post(
    "",
    response_model=NewsletterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
    summary="Create draft newsletter",
    description="Validate and store a draft newsletter. Invalid fields are reported per field.",
)
def create_newsletter(
    request: NewsletterCreateRequest,
    repo: SQLiteNewsletterRepo = Depends(get_newsletter_repo),
) -> NewsletterResponse:
    try:
        newsletter = new_newsletter(
            title=request.title,
            content=request.content,
            associated_article_slug=request.associated_article_slug,
        )
    except ValidationFailure as e:
        raise HTTPException(
            status_code=422,
            detail=_validation_detail("Newsletter is invalid", e),
        ) from e

    try:
        repo.save(newsletter)
    except PersistenceError as e:
        logger.error("Newsletter save failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="newsletter could not be saved",
        ) from e

    return _to_response(newsletter)


@router.post(
    "/{newsletter_id}/release",
    response_model=ReleaseResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Release newsletter",
    description="Schedule one email per verified subscriber under the daily rate limit.",
)
def release_newsletter(
    newsletter_id: UUID,
    scheduler: ReleaseScheduler = Depends(get_release_scheduler),
) -> ReleaseResponse:
    try:
        output = scheduler.schedule(newsletter_id)
    except NewsletterNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Newsletter not found",
        ) from e
    except NewsletterAlreadyReleasedError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Newsletter already released",
        ) from e
    except NewsletterInvalidError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": "Newsletter is invalid", "errors": e.errors.as_form_errors()},
        ) from e
    except ReleaseError as e:
        # Operational details stay in the logs
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="newsletter release failed",
        ) from e

    return ReleaseResponse(
        newsletter_id=str(output.newsletter_id),
        released_at=output.released_at.isoformat(),
        jobs_scheduled=output.jobs_scheduled,
        gap_minutes=output.gap_minutes,
        first_scheduled_at=(
            output.first_scheduled_at.isoformat() if output.first_scheduled_at else None
        ),
        last_scheduled_at=(
            output.last_scheduled_at.isoformat() if output.last_scheduled_at else None
        ),
    )
