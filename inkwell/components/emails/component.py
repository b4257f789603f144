"""
Email rendering.

Jinja2 template -> CSS inlined with premailer -> plain-text alternative
extracted with BeautifulSoup.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import jinja2
import premailer
from bs4 import BeautifulSoup

from .models import RenderedEmail, RenderInput, TemplateError

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"

NEWSLETTER_TEMPLATE = "newsletter.html"
VERIFICATION_TEMPLATE = "verification.html"


def html_to_text(html: str) -> str:
    """Plain-text rendering of an HTML email body. Links keep their target."""
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["style", "script", "head"]):
        tag.decompose()

    for br in soup.find_all("br"):
        br.replace_with("\n")

    for block in soup.find_all(["p", "h1", "h2", "h3", "li", "tr"]):
        block.insert_after("\n\n")

    for link in soup.find_all("a", href=True):
        label = link.get_text(strip=True)
        href = link["href"]
        link.replace_with(f"{label} ({href})" if label and label != href else href)

    text = soup.get_text()
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def split_paragraphs(content: str) -> list[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", content) if p.strip()]


class JinjaEmailRenderer:
    """Renders the packaged email templates with autoescaping and strict variables."""

    def __init__(self, templates_dir: Path | None = None) -> None:
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(self.templates_dir)),
            autoescape=jinja2.select_autoescape(["html"]),
            undefined=jinja2.StrictUndefined,
        )

    def render(self, template_name: str, data: dict[str, Any]) -> RenderedEmail:
        try:
            template = self._env.get_template(template_name)
            raw_html = template.render(**data)
        except jinja2.TemplateError as e:
            logger.error("Template %s failed to render: %s", template_name, e)
            raise TemplateError(template_name, str(e)) from e

        try:
            inlined = premailer.Premailer(
                raw_html,
                remove_classes=False,
                keep_style_tags=False,
                external_styles=None,
                disable_validation=True,
            ).transform()
        except Exception as e:
            logger.error("CSS inlining failed for %s: %s", template_name, e)
            raise TemplateError(template_name, f"css inlining failed: {e}") from e

        return RenderedEmail(html=inlined, text=html_to_text(inlined))


def run(inp: RenderInput, *, renderer: JinjaEmailRenderer) -> RenderedEmail:
    """
    Main component entry point.

    Raises:
        TemplateError: On any rendering failure.
    """
    return renderer.render(inp.template_name, inp.data)
