"""Removal of feature-gated source code from the generated project.

When a feature is disabled, every import, service wiring and route
registration that exists only for that feature is cut out of a fixed set of
files, so the generated project has no references to deleted modules.

Two passes run per (file, feature):

1. *Marker blocks*: lines between ``// @feature <key>`` and
   ``// @endfeature`` are removed, markers included.
2. *Anchored rules*: named ``RemovalRule`` patterns remove the known
   fragments for templates that predate (or lost) the markers.

A rule whose anchor is absent is a no-op recorded in the report.  After both
passes the file is scanned for identifiers that should be gone; leftovers are
recorded as residual references instead of raising.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from blitzgen.features import FeatureKey, FeatureOptions
from blitzgen.models import TransformReport


APP_FILE = "apps/api/src/app.ts"
SERVICES_FILE = "apps/api/src/plugins/services.ts"
SCHEMA_FILE = "apps/api/prisma/schema.prisma"
PRUNED_FILES: tuple[str, ...] = (APP_FILE, SERVICES_FILE, SCHEMA_FILE)

HUSKY_PRE_PUSH = ".husky/pre-push"
HUSKY_PRE_PUSH_NO_TESTS = "pnpm typecheck\n"

_MARKER_START = re.compile(r"^[ \t]*(?://|#)[ \t]*@feature[ \t]+([\w-]+)[ \t]*$")
_MARKER_END = re.compile(r"^[ \t]*(?://|#)[ \t]*@endfeature[ \t]*$")


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RemovalRule:
    """One named, anchored text removal for a (file, feature) pair.

    Matches are deleted. ``count`` caps how many; ``0`` deletes all.
    """

    name: str
    file_path: str
    feature: FeatureKey
    pattern: re.Pattern[str]
    count: int = 1

    def apply(self, text: str) -> tuple[str, bool]:
        new_text, matches = self.pattern.subn("", text, count=self.count)
        return new_text, matches > 0

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _line(pattern: str) -> re.Pattern[str]:
    """Compile a pattern that must consume one or more whole lines."""
    return re.compile(pattern, re.MULTILINE)


def _dynamic_import(binding: str, module: str) -> re.Pattern[str]:
    # accepts both `= await import('x')` and the wrapped `=\n  await import(\n 'x'\n)` forms
    return _line(
        rf"^const \{{ default: {binding} \}} =\s*await import\(\s*"
        rf"'{re.escape(module)}'\s*\);[ \t]*\n"
    )


def _named_import(name: str, module: str) -> re.Pattern[str]:
    return _line(rf"^import \{{ {name} \}} from '{re.escape(module)}';[ \t]*\n")


def _register(binding: str, trailing_blank: bool = False) -> re.Pattern[str]:
    suffix = r"(?:[ \t]*\n)?" if trailing_blank else ""
    return _line(rf"^[ \t]*await app\.register\({binding}\);[ \t]*\n{suffix}")


def _construct(binding: str, cls: str) -> re.Pattern[str]:
    return _line(rf"^[ \t]*const {binding} = new {cls}\([^;]*\);[ \t]*\n")


def _decorate(binding: str) -> re.Pattern[str]:
    return _line(rf"^[ \t]*app\.decorate\('{binding}', {binding}\);[ \t]*\n")


def _declare(binding: str, cls: str) -> re.Pattern[str]:
    return _line(rf"^[ \t]*{binding}: {cls};[ \t]*\n")


REMOVAL_RULES: tuple[RemovalRule, ...] = (
    # -- admin: server bootstrap ------------------------------------------
    RemovalRule("admin.app.metrics-import", APP_FILE, FeatureKey.ADMIN,
                _named_import("metricsService", "@/services/metrics.service")),
    RemovalRule("admin.app.stats-routes-import", APP_FILE, FeatureKey.ADMIN,
                _dynamic_import("statsRoutes", "@/routes/stats.js")),
    RemovalRule("admin.app.metrics-routes-import", APP_FILE, FeatureKey.ADMIN,
                _dynamic_import("metricsRoutes", "@/routes/metrics.js")),
    RemovalRule("admin.app.admin-sessions-routes-import", APP_FILE, FeatureKey.ADMIN,
                _dynamic_import("adminSessionsRoutes", "@/routes/admin-sessions.js")),
    RemovalRule("admin.app.metrics-start", APP_FILE, FeatureKey.ADMIN,
                _line(r"^[ \t]*metricsService\.start\(\);[ \t]*\n(?:[ \t]*\n)?")),
    RemovalRule("admin.app.metrics-record", APP_FILE, FeatureKey.ADMIN,
                _line(r"^[ \t]*metricsService\.recordRequest\([^;]*\);[ \t]*\n")),
    RemovalRule("admin.app.register-stats", APP_FILE, FeatureKey.ADMIN, _register("statsRoutes"), count=0),
    RemovalRule("admin.app.register-metrics", APP_FILE, FeatureKey.ADMIN, _register("metricsRoutes"), count=0),
    RemovalRule("admin.app.register-admin-sessions", APP_FILE, FeatureKey.ADMIN,
                _register("adminSessionsRoutes"), count=0),
    # -- admin: services registration -------------------------------------
    RemovalRule("admin.services.stats-import", SERVICES_FILE, FeatureKey.ADMIN,
                _named_import("StatsService", "@/services/stats.service")),
    RemovalRule("admin.services.stats-instance", SERVICES_FILE, FeatureKey.ADMIN,
                _construct("statsService", "StatsService")),
    RemovalRule("admin.services.stats-decorate", SERVICES_FILE, FeatureKey.ADMIN, _decorate("statsService")),
    RemovalRule("admin.services.stats-declaration", SERVICES_FILE, FeatureKey.ADMIN,
                _declare("statsService", "StatsService")),
    # -- uploads: server bootstrap ----------------------------------------
    RemovalRule("uploads.app.uploads-routes-import", APP_FILE, FeatureKey.UPLOADS,
                _dynamic_import("uploadsRoutes", "@/routes/uploads.js")),
    RemovalRule("uploads.app.uploads-serve-routes-import", APP_FILE, FeatureKey.UPLOADS,
                _dynamic_import("uploadsServeRoutes", "@/routes/uploads-serve.js")),
    RemovalRule("uploads.app.register-uploads-serve", APP_FILE, FeatureKey.UPLOADS,
                _register("uploadsServeRoutes", trailing_blank=True)),
    RemovalRule("uploads.app.register-uploads", APP_FILE, FeatureKey.UPLOADS, _register("uploadsRoutes"), count=0),
    # -- uploads: services registration -----------------------------------
    RemovalRule("uploads.services.file-storage-import", SERVICES_FILE, FeatureKey.UPLOADS,
                _named_import("FileStorageService", "@/services/file-storage.service")),
    RemovalRule("uploads.services.uploads-import", SERVICES_FILE, FeatureKey.UPLOADS,
                _named_import("UploadsService", "@/services/uploads.service")),
    RemovalRule("uploads.services.file-storage-instance", SERVICES_FILE, FeatureKey.UPLOADS,
                _construct("fileStorageService", "FileStorageService")),
    RemovalRule("uploads.services.uploads-instance", SERVICES_FILE, FeatureKey.UPLOADS,
                _construct("uploadsService", "UploadsService")),
    RemovalRule("uploads.services.file-storage-decorate", SERVICES_FILE, FeatureKey.UPLOADS,
                _decorate("fileStorageService")),
    RemovalRule("uploads.services.uploads-decorate", SERVICES_FILE, FeatureKey.UPLOADS, _decorate("uploadsService")),
    RemovalRule("uploads.services.file-storage-declaration", SERVICES_FILE, FeatureKey.UPLOADS,
                _declare("fileStorageService", "FileStorageService")),
    RemovalRule("uploads.services.uploads-declaration", SERVICES_FILE, FeatureKey.UPLOADS,
                _declare("uploadsService", "UploadsService")),
    # -- uploads: database schema -----------------------------------------
    RemovalRule("uploads.schema.user-uploads-relation", SCHEMA_FILE, FeatureKey.UPLOADS,
                _line(r"^[ \t]*uploads[ \t]+Upload\[\][^\n]*\n")),
    RemovalRule("uploads.schema.upload-model", SCHEMA_FILE, FeatureKey.UPLOADS,
                re.compile(r"\n?^model Upload \{.*?^\}[ \t]*(?:\n|\Z)", re.MULTILINE | re.DOTALL)),
)


# Identifiers that must not survive pruning of a (file, feature) pair.
RESIDUAL_TOKENS: dict[tuple[str, FeatureKey], tuple[str, ...]] = {
    (APP_FILE, FeatureKey.ADMIN): ("metricsService", "statsRoutes", "metricsRoutes", "adminSessionsRoutes"),
    (SERVICES_FILE, FeatureKey.ADMIN): ("StatsService", "statsService"),
    (APP_FILE, FeatureKey.UPLOADS): ("uploadsRoutes", "uploadsServeRoutes"),
    (SERVICES_FILE, FeatureKey.UPLOADS): (
        "FileStorageService",
        "fileStorageService",
        "UploadsService",
        "uploadsService",
    ),
    (SCHEMA_FILE, FeatureKey.UPLOADS): ("model Upload ", "Upload[]"),
}


def rules_for(file_path: str, feature: FeatureKey) -> list[RemovalRule]:
    """The anchored rules registered for *file_path* and *feature*, in order."""
    rel = PurePosixPath(file_path).as_posix()
    return [r for r in REMOVAL_RULES if r.file_path == rel and r.feature is feature]


# ---------------------------------------------------------------------------
# Marker blocks
# ---------------------------------------------------------------------------


def strip_feature_blocks(text: str, feature: FeatureKey | str) -> tuple[str, int]:
    """Remove every ``@feature <feature>`` ... ``@endfeature`` block.

    Blocks for other features are left as they are.  When removing a block
    leaves two blank lines in a row, one is dropped.  A start marker without
    a matching end marker leaves the rest of the text unchanged.

    Returns:
        The new text and the number of blocks removed.
    """
    key = FeatureKey(feature).value
    lines = text.splitlines(keepends=True)
    out: list[str] = []
    held: list[str] = []
    depth = 0
    removed = 0
    collapse_blank = False

    for line in lines:
        body = line.rstrip("\r\n")
        if depth:
            held.append(line)
            if _MARKER_START.match(body):
                depth += 1
            elif _MARKER_END.match(body):
                depth -= 1
                if depth == 0:
                    held.clear()
                    removed += 1
                    collapse_blank = not out or not out[-1].strip()
            continue

        start = _MARKER_START.match(body)
        if start and start.group(1) == key:
            depth = 1
            held.append(line)
            continue

        if collapse_blank and not body.strip():
            collapse_blank = False
            continue
        collapse_blank = False
        out.append(line)

    # unterminated block: keep it verbatim
    out.extend(held)
    return "".join(out), removed


# ---------------------------------------------------------------------------
# Pruning
# ---------------------------------------------------------------------------


def find_residual_references(text: str, file_path: str, feature: FeatureKey) -> list[str]:
    """Tokens of *feature* still present in *text* after pruning."""
    rel = PurePosixPath(file_path).as_posix()
    return [token for token in RESIDUAL_TOKENS.get((rel, feature), ()) if token in text]


def prune_source(
    text: str,
    file_path: str,
    features: FeatureOptions,
    report: TransformReport | None = None,
) -> str:
    """Remove the code of every disabled feature from one file's text.

    A rule counts as applied when its anchor was present in the file,
    whether the marker pass or the rule itself removed it; it counts as
    skipped only when the anchor never appeared.
    """
    rel = PurePosixPath(file_path).as_posix()
    for feature in features.disabled():
        before = text
        text, blocks = strip_feature_blocks(text, feature)
        if report is not None and blocks:
            report.record_rule(f"{feature.value}.{rel}.feature-blocks", True)

        for rule in rules_for(rel, feature):
            present_before = rule.matches(before)
            text, matched = rule.apply(text)
            if report is not None:
                report.record_rule(rule.name, matched or present_before)

        if report is not None:
            for token in find_residual_references(text, rel, feature):
                report.record_residual(f"{rel}: {token}")
    return text


def prune_text_file(
    root: Path, rel: str, features: FeatureOptions, report: TransformReport | None
) -> bool:
    """Prune one file in place; returns ``False`` if it does not exist."""
    path = root / rel
    if not path.is_file():
        return False
    original = path.read_text(encoding="utf-8")
    pruned = prune_source(original, rel, features, report)
    if pruned != original:
        path.write_text(pruned, encoding="utf-8")
        if report is not None:
            report.record_write(rel)
    return True


async def prune_features(
    target_dir: str | Path,
    features: FeatureOptions,
    report: TransformReport | None = None,
) -> list[str]:
    """Prune every file in ``PRUNED_FILES`` for the disabled features.

    Returns:
        The relative paths that existed and were processed.
    """
    root = Path(target_dir)
    processed: list[str] = []
    if not features.disabled():
        return processed
    for rel in PRUNED_FILES:
        if await asyncio.to_thread(prune_text_file, root, rel, features, report):
            processed.append(rel)
    if not features.testing:
        if await asyncio.to_thread(rewrite_pre_push_hook, root):
            processed.append(HUSKY_PRE_PUSH)
            if report is not None:
                report.record_write(HUSKY_PRE_PUSH)
    return processed


def rewrite_pre_push_hook(root: Path) -> bool:
    """Replace the git pre-push hook so it no longer runs the test suite."""
    hook = Path(root) / HUSKY_PRE_PUSH
    if not hook.is_file():
        return False
    hook.write_text(HUSKY_PRE_PUSH_NO_TESTS, encoding="utf-8")
    return True
