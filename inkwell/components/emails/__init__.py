"""
Emails component - templated HTML + plain-text email bodies.
"""

from .component import (
    NEWSLETTER_TEMPLATE,
    TEMPLATES_DIR,
    VERIFICATION_TEMPLATE,
    JinjaEmailRenderer,
    html_to_text,
    run,
    split_paragraphs,
)
from .models import RenderedEmail, RenderInput, TemplateError
from .ports import EmailRendererPort

__all__ = [
    "run",
    "JinjaEmailRenderer",
    "NEWSLETTER_TEMPLATE",
    "TEMPLATES_DIR",
    "VERIFICATION_TEMPLATE",
    "html_to_text",
    "split_paragraphs",
    "RenderInput",
    "RenderedEmail",
    "TemplateError",
    "EmailRendererPort",
]
