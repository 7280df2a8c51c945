"""Main scaffolding orchestrator.

Turns the remote template into a customised project by running a fixed,
ordered list of stages (fetch, exclude, manifests, text, prune, env files)
against a staging directory.  The staged tree replaces nothing in the target
directory until every stage has succeeded, so an aborted run leaves the
target as it was.
"""

from __future__ import annotations

import asyncio
import shutil
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from blitzgen.config import Config
from blitzgen.errors import TargetDirectoryError
from blitzgen.features import FeatureOptions
from blitzgen.models import ProjectOptions, TemplateVariables, TransformReport
from blitzgen.utils import (
    count_files,
    create_progress,
    format_duration,
    is_empty_dir,
    print_step,
    remove_path,
)

from .exclusions import apply_exclusions, compute_exclusions
from .fetcher import POST_DOWNLOAD_EXCLUDES, TemplateFetcher
from .manifest import MANIFEST_FILES, TURBO_CONFIG, transform_manifest, transform_turbo_config
from .pruner import prune_features
from .text import README, REPLACEABLE_FILES, render_readme, transform_text


ENV_FILES: tuple[tuple[str, str], ...] = (
    ("apps/web/.env.example", "apps/web/.env.local"),
    ("apps/api/.env.example", "apps/api/.env.local"),
)

STAGING_PREFIX = ".blitzgen-staging-"


# ---------------------------------------------------------------------------
# Stage protocol
# ---------------------------------------------------------------------------


@dataclass
class GenerationContext:
    """Inputs shared by every stage of one generation run."""

    variables: TemplateVariables
    features: FeatureOptions
    fetcher: TemplateFetcher
    report: TransformReport = field(default_factory=TransformReport)


class Stage(Protocol):
    """One step of the pipeline.

    A stage receives the directory produced by the previous stage and
    returns the directory the next stage should work on.
    """

    name: str
    description: str

    async def run(self, root: Path, ctx: GenerationContext) -> Path: ...


class FetchStage:
    name = "fetch"
    description = "Downloading template"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        return await ctx.fetcher.fetch(root)


class ExcludeStage:
    name = "exclude"
    description = "Removing excluded features"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        # repository-only paths are already gone after the fetch
        paths = [p for p in compute_exclusions(ctx.features) if p not in POST_DOWNLOAD_EXCLUDES]
        await apply_exclusions(root, paths, ctx.report)
        return root


class ManifestStage:
    name = "manifests"
    description = "Configuring package manifests"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        for rel in MANIFEST_FILES:
            path = root / rel
            if not path.is_file():
                continue
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
            updated = transform_manifest(raw, ctx.variables, rel, ctx.features)
            await asyncio.to_thread(path.write_text, updated, encoding="utf-8")
            ctx.report.record_write(rel)

        turbo = root / TURBO_CONFIG
        if not ctx.features.testing and turbo.is_file():
            raw = await asyncio.to_thread(turbo.read_text, encoding="utf-8")
            await asyncio.to_thread(
                turbo.write_text, transform_turbo_config(raw, ctx.features), encoding="utf-8"
            )
            ctx.report.record_write(TURBO_CONFIG)
        return root


class TextStage:
    name = "text"
    description = "Applying project name and description"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        for rel in REPLACEABLE_FILES:
            if rel in MANIFEST_FILES:
                continue
            path = root / rel
            if rel == README:
                content = render_readme(ctx.variables)
            elif path.is_file():
                raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
                content = transform_text(raw, ctx.variables, rel)
            else:
                continue
            await asyncio.to_thread(path.write_text, content, encoding="utf-8")
            ctx.report.record_write(rel)
        return root


class PruneStage:
    name = "prune"
    description = "Pruning disabled feature code"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        await prune_features(root, ctx.features, ctx.report)
        return root


class EnvFilesStage:
    name = "env"
    description = "Creating .env.local files"

    async def run(self, root: Path, ctx: GenerationContext) -> Path:
        for source_rel, dest_rel in ENV_FILES:
            source = root / source_rel
            if source.is_file():
                await asyncio.to_thread(shutil.copyfile, source, root / dest_rel)
                ctx.report.record_write(dest_rel)
        return root


DEFAULT_STAGES: tuple[Stage, ...] = (
    FetchStage(),
    ExcludeStage(),
    ManifestStage(),
    TextStage(),
    PruneStage(),
    EnvFilesStage(),
)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of a successful generation run."""

    project_root: Path
    file_count: int = Field(default=0, ge=0)
    stages: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0)
    report: TransformReport = Field(default_factory=TransformReport)


# ---------------------------------------------------------------------------
# Target directory handling
# ---------------------------------------------------------------------------


def prepare_target_dir(target: Path, *, allow_nonempty: bool = False) -> bool:
    """Make sure *target* can receive the generated project.

    Returns:
        ``True`` if the directory was created by this call.

    Raises:
        TargetDirectoryError: *target* is a file, or a non-empty directory
            and *allow_nonempty* is not set, or cannot be created.
    """
    if target.exists() and not target.is_dir():
        raise TargetDirectoryError(target, "exists and is not a directory")
    if target.is_dir():
        if not is_empty_dir(target) and not allow_nonempty:
            raise TargetDirectoryError(target, "directory is not empty (use --force to continue)")
        return False
    try:
        target.mkdir(parents=True)
    except OSError as exc:
        raise TargetDirectoryError(target, f"cannot create directory: {exc}") from exc
    return True


def _merge_entry(source: Path, destination: Path) -> None:
    if source.is_dir() and not source.is_symlink():
        if destination.is_symlink() or (destination.exists() and not destination.is_dir()):
            remove_path(destination)
        destination.mkdir(exist_ok=True)
        for child in sorted(source.iterdir()):
            _merge_entry(child, destination / child.name)
        return
    if destination.exists() or destination.is_symlink():
        remove_path(destination)
    shutil.move(str(source), str(destination))


def commit_staging(staging: Path, target: Path) -> None:
    """Merge the staged tree into *target* file by file.

    Files whose paths collide with staged files are replaced.  Anything else
    already in *target*, at any depth, is kept.
    """
    for entry in sorted(staging.iterdir()):
        _merge_entry(entry, target / entry.name)


# ---------------------------------------------------------------------------
# Main generator
# ---------------------------------------------------------------------------


class ProjectGenerator:
    """Runs the stage pipeline for one ``ProjectOptions``.

    Args:
        options: Resolved project options.
        config: Template location and timeouts.
        stages: Override the pipeline (tests use this to run a subset).
        fetcher: Override the template fetcher.
    """

    def __init__(
        self,
        options: ProjectOptions,
        config: Config | None = None,
        stages: tuple[Stage, ...] | None = None,
        fetcher: TemplateFetcher | None = None,
    ) -> None:
        self.options = options
        self.config = config or Config()
        self.stages = stages if stages is not None else DEFAULT_STAGES
        self.fetcher = fetcher or TemplateFetcher(self.config)

    def _build_context(self) -> GenerationContext:
        return GenerationContext(
            variables=self.options.template_variables(),
            features=self.options.features,
            fetcher=self.fetcher,
        )

    async def generate(self, target_dir: str | Path | None = None) -> GenerationResult:
        """Generate the project into *target_dir* (defaults to the options' target).

        Raises:
            ScaffoldError: A stage failed; the target directory is left as it
                was before the call.
        """
        target = Path(target_dir or self.options.target_dir).resolve()
        created = prepare_target_dir(target, allow_nonempty=self.options.force)

        ctx = self._build_context()
        started = time.monotonic()
        staging: Path | None = None
        completed: list[str] = []
        try:
            try:
                staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=target))
            except OSError as exc:
                raise TargetDirectoryError(target, f"cannot write to directory: {exc}") from exc
            root = staging
            with create_progress() as progress:
                task = progress.add_task("Starting...", total=None)
                for stage in self.stages:
                    progress.update(task, description=f"{stage.description}...")
                    stage_start = time.monotonic()
                    root = await stage.run(root, ctx)
                    completed.append(stage.name)
                    print_step(
                        f"{stage.description} ({format_duration(time.monotonic() - stage_start)})"
                    )
            await asyncio.to_thread(commit_staging, root, target)
        except BaseException:
            if created:
                await asyncio.to_thread(shutil.rmtree, target, True)
            raise
        finally:
            if staging is not None and staging.exists():
                await asyncio.to_thread(shutil.rmtree, staging, True)

        return GenerationResult(
            project_root=target,
            file_count=count_files(target),
            stages=completed,
            duration=time.monotonic() - started,
            report=ctx.report,
        )
