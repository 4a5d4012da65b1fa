"""Built-in notification templates and their renderer."""

from .renderer import (
    BUILTIN_TEMPLATE_DIR,
    DEFAULT_SUBJECTS,
    JinjaTemplateRenderer,
    RenderedTemplate,
    TemplateRenderer,
    html_to_text,
)

__all__ = [
    "BUILTIN_TEMPLATE_DIR",
    "DEFAULT_SUBJECTS",
    "JinjaTemplateRenderer",
    "RenderedTemplate",
    "TemplateRenderer",
    "html_to_text",
]
