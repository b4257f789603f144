"""
Field rule declarations for every entity.

Dict order is evaluation order; consumers map the reported field names
straight onto form inputs.
"""

from inkwell.components.validation import (
    EMAIL_FORMAT,
    REQUIRED,
    ValidationSchema,
    matches,
    max_length,
    min_length,
    min_value,
)

TAG_VALIDATIONS: ValidationSchema = {
    "id": [REQUIRED],
    "name": [REQUIRED, min_length(2)],
}

SUBSCRIBER_VALIDATIONS: ValidationSchema = {
    "id": [REQUIRED],
    "email": [REQUIRED, EMAIL_FORMAT],
    "referer": [REQUIRED],
}

ARTICLE_VALIDATIONS: ValidationSchema = {
    "id": [REQUIRED],
    "title": [REQUIRED, min_length(2)],
    "header_title": [REQUIRED, min_length(2)],
    "excerpt": [REQUIRED, min_length(130), max_length(160)],
    "read_time": [REQUIRED],
    "filename": [REQUIRED],
}

# Drafts only need a usable title
NEWSLETTER_VALIDATIONS: ValidationSchema = {
    "id": [REQUIRED],
    "title": [REQUIRED, min_length(3), max_length(100)],
}

NEWSLETTER_RELEASE_VALIDATIONS: ValidationSchema = {
    **NEWSLETTER_VALIDATIONS,
    "content": [REQUIRED],
    "associated_article_slug": [REQUIRED],
}

LEGACY_NEWSLETTER_VALIDATIONS: ValidationSchema = {
    "id": [REQUIRED],
    "title": [REQUIRED, min_length(3)],
    "edition": [REQUIRED, min_value(1)],
    "paragraphs": [REQUIRED, min_length(1)],
    "associated_article_slug": [REQUIRED],
}


def build_user_validations(confirm_password: str) -> ValidationSchema:
    return {
        "id": [REQUIRED],
        "name": [REQUIRED, min_length(2), max_length(25)],
        "password": [REQUIRED, min_length(6), matches(confirm_password)],
        "mail": [REQUIRED, EMAIL_FORMAT],
        "created_at": [REQUIRED],
    }
