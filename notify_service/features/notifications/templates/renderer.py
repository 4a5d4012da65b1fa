"""Jinja2 rendering of the built-in notification templates."""

from __future__ import annotations

from dataclasses import dataclass
from html import unescape
import logging
from pathlib import Path
import re
from typing import Any, Protocol

from jinja2 import FileSystemLoader, TemplateError, TemplateNotFound, select_autoescape
from jinja2.sandbox import SandboxedEnvironment

from notify_service.features.notifications.exceptions import (
    TemplateNotFoundError,
    TemplateRenderError,
)
from notify_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
_lazy = get_lazy_logger(__name__)

BUILTIN_TEMPLATE_DIR = Path(__file__).parent / "builtin"

DEFAULT_SUBJECTS: dict[str, str] = {
    "welcome": "Welcome to our platform!",
    "password-reset": "Reset your password",
    "verification": "Verify your email address",
    "security-alert": "Security Alert",
    "team-invite": "You've been invited to join a team",
    "invoice-receipt": "Receipt for your payment",
    "payment-failed": "Action Required: Payment Failed",
    "generic-notification": "New Notification",
}


@dataclass(frozen=True)
class RenderedTemplate:
    """Output of a template render: both bodies plus the effective subject."""

    html: str
    text: str
    subject: str


class TemplateRenderer(Protocol):
    """What the notification service needs from a renderer."""

    def is_valid_template_id(self, template_id: str) -> bool: ...

    def get_subject(self, template_id: str) -> str: ...

    def render(
        self,
        template_id: str,
        data: dict[str, Any],
        subject: str | None = None,
    ) -> RenderedTemplate: ...


class JinjaTemplateRenderer:
    """Renders ``<id>.html`` and ``<id>.txt`` templates from a directory.

    Uses a SandboxedEnvironment since template data comes from API callers.
    HTML is autoescaped; plain text is not. When a template has no ``.txt``
    file, the text body is derived from the HTML.

    Example:
        renderer = JinjaTemplateRenderer()
        rendered = renderer.render("welcome", {"user_name": "Ada"})
        rendered.subject  # "Welcome to our platform!"
    """

    def __init__(
        self,
        template_dir: Path | None = None,
        *,
        subjects: dict[str, str] | None = None,
        default_context: dict[str, Any] | None = None,
    ) -> None:
        self.template_dir = template_dir or BUILTIN_TEMPLATE_DIR
        self._subjects = {**DEFAULT_SUBJECTS, **(subjects or {})}
        self.default_context = default_context or {}

        loader = FileSystemLoader(str(self.template_dir))
        self._html_env = SandboxedEnvironment(
            loader=loader,
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._text_env = SandboxedEnvironment(
            loader=loader,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def is_valid_template_id(self, template_id: str) -> bool:
        return template_id in self._subjects

    def get_subject(self, template_id: str) -> str:
        return self._subjects.get(template_id, "")

    def list_templates(self) -> list[str]:
        return sorted(self._subjects)

    def render(
        self,
        template_id: str,
        data: dict[str, Any],
        subject: str | None = None,
    ) -> RenderedTemplate:
        """Render a template by id.

        Args:
            template_id: One of the known template ids
            data: Template variables
            subject: Overrides the template's default subject

        Returns:
            RenderedTemplate with html, text and subject

        Raises:
            TemplateNotFoundError: Unknown id or no template file on disk
            TemplateRenderError: The template failed to render with this data
        """
        if not self.is_valid_template_id(template_id):
            raise TemplateNotFoundError(template_id)

        context = {**self.default_context, **data}
        try:
            html = self._render_file(self._html_env, f"{template_id}.html", context)
            text = self._render_file(self._text_env, f"{template_id}.txt", context)
        except TemplateError as exc:
            raise TemplateRenderError(template_id, str(exc)) from exc

        if html is None and text is None:
            raise TemplateNotFoundError(template_id)
        if text is None:
            text = html_to_text(html or "")

        _lazy.debug(lambda: f"Rendered template {template_id} with keys {sorted(context)}")
        return RenderedTemplate(
            html=html or "",
            text=text.strip(),
            subject=subject or self.get_subject(template_id),
        )

    @staticmethod
    def _render_file(env: SandboxedEnvironment, name: str, context: dict[str, Any]) -> str | None:
        try:
            template = env.get_template(name)
        except TemplateNotFound:
            return None
        return template.render(**context)


def html_to_text(html: str) -> str:
    """Convert HTML to plain text.

    Performs basic HTML to text conversion:
    - Converts links to "text (url)"
    - Turns paragraphs, divs and line breaks into newlines
    - Removes remaining tags and decodes entities
    - Normalizes whitespace
    """
    html = re.sub(
        r'<a[^>]+href=["\']([^"\']+)["\'][^>]*>([^<]+)</a>',
        r"\2 (\1)",
        html,
        flags=re.IGNORECASE,
    )
    html = re.sub(r"<(style|title)[^>]*>.*?</\1>", "", html, flags=re.IGNORECASE | re.DOTALL)
    html = re.sub(r"</?(p|div|h[1-6]|tr|table)[^>]*>", "\n\n", html, flags=re.IGNORECASE)
    html = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    html = re.sub(r"<li[^>]*>", "\n  * ", html, flags=re.IGNORECASE)
    html = re.sub(r"<[^>]+>", "", html)

    text = unescape(html)
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n\s*\n", "\n\n", text)
    return text.strip()
