from typing import Any, Protocol

from .models import RenderedEmail


class EmailRendererPort(Protocol):
    """Template + data -> (html, text)."""

    def render(self, template_name: str, data: dict[str, Any]) -> RenderedEmail:
        """
        Raises:
            TemplateError: If the template is missing or cannot be rendered.
        """
        ...
