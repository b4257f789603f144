"""
Emails component input/output models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class TemplateError(Exception):
    """Rendering failed: unknown template, undefined variable or broken markup."""

    def __init__(self, template_name: str, reason: str) -> None:
        self.template_name = template_name
        self.reason = reason
        super().__init__(f"Failed to render {template_name}: {reason}")


@dataclass(frozen=True)
class RenderInput:
    template_name: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedEmail:
    html: str
    text: str
