"""Post-generation bootstrap: git, dependency install, database setup.

Every action shells out to an external tool and reports plain success or
failure.  None of them raise: a failed step becomes a warning telling the
user which command to run by hand, and generation still counts as
successful.
"""

from __future__ import annotations

import shutil
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from blitzgen.models import ProjectOptions
from blitzgen.utils import console, print_step, print_warning, run_command


REQUIRED_TOOLS: tuple[str, ...] = ("node", "pnpm")

GIT_COMMIT_MESSAGE = "Initial commit from blitzgen"


class StepStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class BootstrapResult(BaseModel):
    """Status of each bootstrap step plus the manual follow-ups."""

    steps: dict[str, StepStatus] = Field(default_factory=dict)
    manual_steps: list[str] = Field(default_factory=list)

    @property
    def database_ready(self) -> bool:
        return self.steps.get("migrations") is StepStatus.OK

    @property
    def failed(self) -> list[str]:
        return [name for name, status in self.steps.items() if status is StepStatus.FAILED]


# ---------------------------------------------------------------------------
# External actions
# ---------------------------------------------------------------------------


async def _succeeds(cmd: list[str], cwd: Path | None = None, timeout: int = 120) -> bool:
    executable = shutil.which(cmd[0])
    if executable is None:
        return False
    try:
        code, _, _ = await run_command([executable, *cmd[1:]], cwd=cwd, timeout=timeout)
    except OSError:
        return False
    return code == 0


def run_preflight_checks() -> list[str]:
    """Return the required tools that are not on ``PATH``."""
    return [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]


def is_git_installed() -> bool:
    return shutil.which("git") is not None


async def init_git(root: Path, timeout: int = 120) -> bool:
    """Initialise a repository in *root* and record an initial commit."""
    for cmd in (
        ["git", "init"],
        ["git", "add", "-A"],
        ["git", "commit", "-m", GIT_COMMIT_MESSAGE, "--no-verify"],
    ):
        if not await _succeeds(cmd, cwd=root, timeout=timeout):
            return False
    return True


async def run_install(root: Path, timeout: int = 600) -> bool:
    return await _succeeds(["pnpm", "install"], cwd=root, timeout=timeout)


async def is_docker_running() -> bool:
    return await _succeeds(["docker", "info"], timeout=30)


async def run_docker_compose(root: Path, timeout: int = 600) -> bool:
    return await _succeeds(["docker", "compose", "up", "-d"], cwd=root, timeout=timeout)


async def run_database_migrations(root: Path, timeout: int = 600) -> bool:
    return await _succeeds(["pnpm", "db:migrate"], cwd=root, timeout=timeout)


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


async def bootstrap_project(
    root: Path, options: ProjectOptions, command_timeout: int = 600
) -> BootstrapResult:
    """Run the optional post-generation steps selected in *options*."""
    result = BootstrapResult()

    if options.skip_git:
        result.steps["git"] = StepStatus.SKIPPED
    elif not is_git_installed():
        result.steps["git"] = StepStatus.SKIPPED
        print_warning("  git is not installed -- skipping repository initialisation.")
    else:
        with console.status("Initializing git repository..."):
            ok = await init_git(root, timeout=command_timeout)
        _record(result, "git", ok, "Initialized git repository", "git init && git add -A && git commit")

    if options.skip_install:
        result.steps["install"] = StepStatus.SKIPPED
        result.manual_steps.append("pnpm install")
    else:
        with console.status("Installing dependencies..."):
            ok = await run_install(root, timeout=command_timeout)
        _record(result, "install", ok, "Installed dependencies", "pnpm install")

    if not options.run_setup:
        result.steps["database"] = StepStatus.SKIPPED
        result.manual_steps.extend(["docker compose up -d", "pnpm db:migrate"])
        return result

    if not await is_docker_running():
        result.steps["database"] = StepStatus.SKIPPED
        print_warning("  Docker is not running. Skipping automatic setup.")
        result.manual_steps.extend(["docker compose up -d", "pnpm db:migrate"])
        return result

    with console.status("Starting PostgreSQL database..."):
        ok = await run_docker_compose(root, timeout=command_timeout)
    _record(result, "database", ok, "Started PostgreSQL database", "docker compose up -d")
    if not ok:
        result.manual_steps.append("pnpm db:migrate")
        return result

    with console.status("Running database migrations..."):
        ok = await run_database_migrations(root, timeout=command_timeout)
    _record(result, "migrations", ok, "Database migrations complete", "pnpm db:migrate")
    return result


def _record(result: BootstrapResult, step: str, ok: bool, done: str, manual: str) -> None:
    if ok:
        result.steps[step] = StepStatus.OK
        print_step(done)
        return
    result.steps[step] = StepStatus.FAILED
    result.manual_steps.append(manual)
    print_warning(f"  {done.split(' ', 1)[0]} step failed. Run \"{manual}\" manually.")
