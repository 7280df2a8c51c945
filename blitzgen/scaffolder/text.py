"""Name and description substitution in non-manifest template files.

Each target file gets one anchored substitution per field: the first
``key: 'value'`` (or ``key: "value"``) token on a line is replaced
wholesale.  This is plain text substitution, not parsing; later occurrences
of the same key are left untouched.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from blitzgen.models import TemplateVariables
from blitzgen.scaffolder.templates import TemplateRenderer


SITE_CONFIG = "apps/web/src/config/site.ts"
ROOT_LAYOUT = "apps/web/src/app/layout.tsx"
SWAGGER_CONFIG = "apps/api/src/plugins/swagger.ts"
README = "README.md"

REPLACEABLE_FILES: tuple[str, ...] = (
    "package.json",
    SITE_CONFIG,
    ROOT_LAYOUT,
    SWAGGER_CONFIG,
    README,
)

README_TEMPLATE = "README.md.j2"

_NAME_TOKEN = re.compile(r"""name: ['"].*['"]""")
_TITLE_TOKEN = re.compile(r"""title: ['"].*['"]""")
_DESCRIPTION_TOKEN = re.compile(r"""description: ['"].*['"]""")
_SWAGGER_DESCRIPTION_TOKEN = re.compile(
    r"""description: ['"]Production-ready TypeScript API built with Fastify['"]"""
)


def quote_ts_string(value: str) -> str:
    """Return *value* as a single-quoted TypeScript string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


def replace_first(text: str, pattern: re.Pattern[str], replacement: str) -> str:
    """Replace the first match of *pattern* with the literal *replacement*."""
    return pattern.sub(lambda _match: replacement, text, count=1)


def transform_site_config(content: str, variables: TemplateVariables) -> str:
    content = replace_first(content, _NAME_TOKEN, f"name: {quote_ts_string(variables.project_name)}")
    return replace_first(
        content,
        _DESCRIPTION_TOKEN,
        f"description: {quote_ts_string(variables.project_description)}",
    )


def transform_layout(content: str, variables: TemplateVariables) -> str:
    content = replace_first(content, _TITLE_TOKEN, f"title: {quote_ts_string(variables.project_name)}")
    return replace_first(
        content,
        _DESCRIPTION_TOKEN,
        f"description: {quote_ts_string(variables.project_description)}",
    )


def transform_swagger(content: str, variables: TemplateVariables) -> str:
    """Rename the OpenAPI document title and swap the stock API description."""
    content = replace_first(
        content, _TITLE_TOKEN, f"title: {quote_ts_string(variables.project_name + ' API')}"
    )
    return replace_first(
        content,
        _SWAGGER_DESCRIPTION_TOKEN,
        f"description: {quote_ts_string(variables.project_description)}",
    )


def render_readme(variables: TemplateVariables, renderer: TemplateRenderer | None = None) -> str:
    """Generate a fresh README for the project."""
    renderer = renderer or TemplateRenderer()
    return renderer.render(README_TEMPLATE, variables.model_dump())


def transform_text(content: str, variables: TemplateVariables, file_path: str) -> str:
    """Dispatch to the substitution for *file_path*; other files pass through."""
    rel = PurePosixPath(file_path).as_posix()
    if rel == README:
        return render_readme(variables)
    if rel == SITE_CONFIG:
        return transform_site_config(content, variables)
    if rel == ROOT_LAYOUT:
        return transform_layout(content, variables)
    if rel == SWAGGER_CONFIG:
        return transform_swagger(content, variables)
    return content
