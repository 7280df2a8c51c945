"""Data models shared by the generation pipeline.

Contains the resolved project options, the template variables injected into
generated files, and the ``TransformReport`` that records which removal
rules and exclusion paths actually matched the downloaded template.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from blitzgen.features import FeatureOptions


DEFAULT_DESCRIPTION = "A full-stack TypeScript monorepo built with Blitzpack"

MAX_NAME_LENGTH = 214

_INVALID_DIR_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


# ---------------------------------------------------------------------------
# Names
# ---------------------------------------------------------------------------


def slugify(name: str) -> str:
    """Convert a project name to a lowercase, hyphen-separated slug.

    Runs of characters outside ``[a-z0-9]`` collapse to a single ``-`` and
    leading/trailing separators are dropped, so ``slugify(slugify(x)) ==
    slugify(x)``.

    Examples::

        slugify("My App")        -> "my-app"
        slugify("  __Foo--Bar ") -> "foo-bar"
    """
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return slug.strip("-")


def validate_project_name(name: str) -> list[str]:
    """Return the problems with *name*; an empty list means it is valid."""
    problems: list[str] = []
    if not name or not name.strip():
        return ["Project name cannot be empty"]
    if name != name.strip():
        problems.append("Project name cannot have leading or trailing spaces")
    if len(name) > MAX_NAME_LENGTH:
        problems.append(f"Project name must be {MAX_NAME_LENGTH} characters or fewer")
    if name.startswith((".", "_")):
        problems.append("Project name cannot start with a period or underscore")
    if _INVALID_DIR_CHARS.search(name):
        problems.append("Project name contains characters not allowed in a directory name")
    if not slugify(name):
        problems.append("Project name must contain at least one letter or digit")
    return problems


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class TemplateVariables(BaseModel):
    """Values substituted into the generated project's files."""

    model_config = ConfigDict(frozen=True)

    project_name: str
    project_slug: str
    project_description: str

    @classmethod
    def from_name(cls, name: str, description: str = DEFAULT_DESCRIPTION) -> "TemplateVariables":
        return cls(
            project_name=name,
            project_slug=slugify(name),
            project_description=description or DEFAULT_DESCRIPTION,
        )


class ProjectOptions(BaseModel):
    """Everything the pipeline needs, resolved before generation starts."""

    model_config = ConfigDict(frozen=True)

    project_name: str
    project_description: str = Field(default=DEFAULT_DESCRIPTION)
    target_dir: Path
    features: FeatureOptions = Field(default_factory=FeatureOptions)
    use_current_dir: bool = False
    skip_git: bool = False
    skip_install: bool = False
    run_setup: bool = False
    dry_run: bool = False
    force: bool = False

    @field_validator("project_name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        problems = validate_project_name(value)
        if problems:
            raise ValueError(problems[0])
        return value

    @field_validator("project_description")
    @classmethod
    def _default_description(cls, value: str) -> str:
        return value.strip() or DEFAULT_DESCRIPTION

    @computed_field  # type: ignore[prop-decorator]
    @property
    def project_slug(self) -> str:
        return slugify(self.project_name)

    def template_variables(self) -> TemplateVariables:
        return TemplateVariables(
            project_name=self.project_name,
            project_slug=self.project_slug,
            project_description=self.project_description,
        )


# ---------------------------------------------------------------------------
# Transform report
# ---------------------------------------------------------------------------


class TransformReport(BaseModel):
    """What the exclusion and transform stages did to the template.

    Missing exclusion paths and removal rules whose anchor was absent are
    tolerated, but they are counted here so template drift stays visible.
    """

    rules_applied: list[str] = Field(default_factory=list)
    rules_skipped: list[str] = Field(default_factory=list)
    paths_removed: list[str] = Field(default_factory=list)
    paths_missing: list[str] = Field(default_factory=list)
    files_written: list[str] = Field(default_factory=list)
    residual_references: list[str] = Field(default_factory=list)

    def record_rule(self, name: str, matched: bool) -> None:
        (self.rules_applied if matched else self.rules_skipped).append(name)

    def record_path(self, path: str, removed: bool) -> None:
        (self.paths_removed if removed else self.paths_missing).append(path)

    def record_write(self, path: str) -> None:
        if path not in self.files_written:
            self.files_written.append(path)

    def record_residual(self, reference: str) -> None:
        if reference not in self.residual_references:
            self.residual_references.append(reference)

    @property
    def skipped_count(self) -> int:
        return len(self.rules_skipped)

    @property
    def missing_count(self) -> int:
        return len(self.paths_missing)

    @property
    def has_drift(self) -> bool:
        return bool(self.rules_skipped or self.paths_missing or self.residual_references)
