"""Jinja2 templates for the files blitzgen writes from scratch.

Only wholesale replacements (today just the README) are rendered here.
Files that are edited in place belong to the text and manifest modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined


BUNDLED_TEMPLATES = Path(__file__).with_name("templates")


class TemplateRenderer:
    """Loads ``*.j2`` files from one directory, the bundled one by default."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        self.template_dir = Path(template_dir) if template_dir is not None else BUNDLED_TEMPLATES
        # Markdown output: no autoescaping, and a missing variable is an error.
        self.env = Environment(
            loader=FileSystemLoader(self.template_dir),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render *template_path* (relative to ``template_dir``) with *context*.

        Raises:
            jinja2.TemplateNotFound: No such template.
            jinja2.UndefinedError: The template uses a name missing from *context*.
        """
        return self.env.get_template(template_path).render(context)
