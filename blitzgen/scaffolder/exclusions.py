"""Feature-driven removal of template paths."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

from blitzgen.features import FEATURE_EXCLUSIONS, FeatureOptions
from blitzgen.models import TransformReport
from blitzgen.utils import remove_path


def compute_exclusions(features: FeatureOptions) -> tuple[str, ...]:
    """Return the template paths to delete for the disabled features.

    Entries follow feature catalog order and then table order; duplicates
    keep their first position, so the result is stable across runs.
    """
    ordered: dict[str, None] = {}
    for key in features.disabled():
        for rel in FEATURE_EXCLUSIONS[key]:
            ordered.setdefault(rel, None)
    return tuple(ordered)


async def apply_exclusions(
    target_dir: str | Path,
    paths: Iterable[str],
    report: TransformReport | None = None,
) -> list[str]:
    """Recursively delete every path in *paths* that exists under *target_dir*.

    Absent paths are not an error; they are recorded as missing in *report*.

    Returns:
        The relative paths that were actually removed.

    Raises:
        ValueError: A path points outside *target_dir*.
    """
    root = Path(target_dir).resolve()
    removed: list[str] = []
    for rel in paths:
        if Path(rel).is_absolute() or ".." in Path(rel).parts:
            raise ValueError(f"Exclusion path escapes target directory: {rel}")
        candidate = root / rel
        # resolve() would follow a symlink we are about to delete
        normalized = candidate.parent.resolve() / candidate.name
        if not normalized.is_relative_to(root) or normalized == root:
            raise ValueError(f"Exclusion path escapes target directory: {rel}")
        existed = await asyncio.to_thread(remove_path, normalized)
        if existed:
            removed.append(rel)
        if report is not None:
            report.record_path(rel, existed)
    return removed
