"""Process, filesystem and console helpers shared across blitzgen.

Everything that talks to the terminal goes through the module-level
``console`` so tests can patch a single object.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# Subprocesses
# ---------------------------------------------------------------------------


def _decode(raw: bytes | None) -> str:
    return (raw or b"").decode("utf-8", errors="replace").strip()


async def run_command(
    cmd: Sequence[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
) -> tuple[int, str, str]:
    """Execute *cmd* (an argv list, no shell) and wait for it to exit.

    A process still running after *timeout* seconds is killed and reported
    as exit code ``-1``.  ``OSError`` from a missing executable propagates.
    """
    argv = [str(part) for part in cmd]
    process = await asyncio.create_subprocess_exec(
        *argv,
        cwd=None if cwd is None else str(cwd),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        out, err = await asyncio.wait_for(process.communicate(), timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return -1, "", f"'{' '.join(argv)}' did not finish within {timeout}s"

    return process.returncode or 0, _decode(out), _decode(err)


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------


def count_files(directory: str | Path) -> int:
    """Number of regular files anywhere under *directory*; 0 if it is absent."""
    root = Path(directory)
    if not root.is_dir():
        return 0
    return sum(entry.is_file() for entry in root.rglob("*"))


def is_empty_dir(path: str | Path) -> bool:
    directory = Path(path)
    if not directory.is_dir():
        return False
    return next(directory.iterdir(), None) is None


def remove_path(path: str | Path) -> bool:
    """Delete *path* whatever it is.  ``False`` means there was nothing there.

    Symlinks are unlinked, never followed.
    """
    target = Path(path)
    if target.is_dir() and not target.is_symlink():
        shutil.rmtree(target)
    elif target.exists() or target.is_symlink():
        target.unlink()
    else:
        return False
    return True


# ---------------------------------------------------------------------------
# Terminal output
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """``3.7`` -> ``"3.7s"``, ``65.2`` -> ``"1m 5s"``, ``3661`` -> ``"1h 1m 1s"``.

    Whole seconds are shown once the value reaches a minute.  Negative input
    is clamped to zero.
    """
    seconds = max(seconds, 0.0)
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if not hours and not minutes:
        return f"{secs:.1f}s"

    units = [(int(hours), "h"), (int(minutes), "m")]
    pieces = [f"{value}{unit}" for value, unit in units if value]
    pieces.append(f"{int(secs)}s")
    return " ".join(pieces)


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    table = Table(title=title, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")
    for label, value in data.items():
        table.add_row(label, str(value))
    console.print(table)
    console.print()


def print_step(message: str) -> None:
    console.print(f"  [green]+[/green] {message}")


def print_success(message: str) -> None:
    console.print(message, style="bold green")


def print_error(message: str) -> None:
    console.print(message, style="bold red")


def print_warning(message: str) -> None:
    console.print(message, style="bold yellow")


def create_progress() -> Progress:
    """Transient spinner with elapsed time, used while stages run."""
    columns = (
        SpinnerColumn(),
        TextColumn("{task.description}"),
        TimeElapsedColumn(),
    )
    return Progress(*columns, console=console, transient=True)
