"""Field-level edits to the template's JSON manifests.

Manifests are parsed into ordered dicts, edited key by key and re-emitted
with two-space indentation and a single trailing newline, so that keys the
transform does not touch keep their position and formatting.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import PurePosixPath
from typing import Any

from blitzgen.errors import ManifestParseError
from blitzgen.features import FeatureOptions
from blitzgen.models import TemplateVariables


ROOT_MANIFEST = "package.json"
API_MANIFEST = "apps/api/package.json"
WEB_MANIFEST = "apps/web/package.json"
APP_MANIFESTS: tuple[str, ...] = (API_MANIFEST, WEB_MANIFEST)
MANIFEST_FILES: tuple[str, ...] = (ROOT_MANIFEST, *APP_MANIFESTS)

TURBO_CONFIG = "turbo.json"

INITIAL_VERSION = "0.1.0"
INIT_SCRIPT = "init:project"
ROOT_METADATA_KEYS: tuple[str, ...] = ("repository", "homepage")

TESTING_SCRIPTS: tuple[str, ...] = (
    "test",
    "test:unit",
    "test:integration",
    "test:watch",
    "test:coverage",
    "test:parallel",
)

TESTING_ROOT_DEVDEPS: tuple[str, ...] = (
    "@testing-library/jest-dom",
    "@testing-library/react",
    "@testing-library/user-event",
    "@vitest/coverage-v8",
    "jsdom",
    "vitest",
)

TESTING_APP_DEVDEPS: tuple[str, ...] = ("vitest", "vite-tsconfig-paths")

UPLOADS_API_DEPS: tuple[str, ...] = ("@aws-sdk/client-s3", "sharp")

TESTING_TURBO_TASKS: tuple[str, ...] = (
    "test",
    "test:unit",
    "test:integration",
    "test:watch",
    "test:coverage",
)


# ---------------------------------------------------------------------------
# Parse / serialise
# ---------------------------------------------------------------------------


def parse_manifest(raw: str, file_path: str = ROOT_MANIFEST) -> dict[str, Any]:
    """Parse manifest text into an insertion-ordered dict.

    Raises:
        ManifestParseError: *raw* is not JSON or its top level is not an object.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(file_path, f"line {exc.lineno} column {exc.colno}: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise ManifestParseError(file_path, f"expected a JSON object, got {type(data).__name__}")
    return data


def serialize_manifest(document: dict[str, Any]) -> str:
    """Emit *document* with two-space indentation and one trailing newline."""
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def delete_keys(document: dict[str, Any], section: str | None, keys: Iterable[str]) -> list[str]:
    """Remove *keys* from ``document[section]`` (or the top level).

    A missing section, a non-object section or a missing key is a no-op.

    Returns:
        The keys that were present and removed.
    """
    target = document if section is None else document.get(section)
    if not isinstance(target, dict):
        return []
    removed = []
    for key in keys:
        if key in target:
            del target[key]
            removed.append(key)
    return removed


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def transform_manifest(
    raw: str,
    variables: TemplateVariables,
    file_path: str,
    features: FeatureOptions,
) -> str:
    """Apply the per-manifest edit rules and return the new text.

    *file_path* is the manifest's path relative to the project root and
    selects which rules apply.  Applying the transform twice with the same
    inputs yields the same text.
    """
    rel = PurePosixPath(file_path).as_posix()
    document = parse_manifest(raw, rel)

    if rel == ROOT_MANIFEST:
        _apply_root_rules(document, variables, features)
    if rel in APP_MANIFESTS and not features.testing:
        delete_keys(document, "scripts", TESTING_SCRIPTS)
        delete_keys(document, "devDependencies", TESTING_APP_DEVDEPS)
    if rel == API_MANIFEST and not features.uploads:
        delete_keys(document, "dependencies", UPLOADS_API_DEPS)

    return serialize_manifest(document)


def _apply_root_rules(
    document: dict[str, Any], variables: TemplateVariables, features: FeatureOptions
) -> None:
    # assignment keeps an existing key in place; absent keys are appended
    document["name"] = variables.project_slug
    document["description"] = variables.project_description
    document["version"] = INITIAL_VERSION
    delete_keys(document, None, ROOT_METADATA_KEYS)
    delete_keys(document, "scripts", (INIT_SCRIPT,))

    if not features.testing:
        delete_keys(document, "scripts", TESTING_SCRIPTS)
        delete_keys(document, "devDependencies", TESTING_ROOT_DEVDEPS)


def transform_turbo_config(raw: str, features: FeatureOptions) -> str:
    """Drop the test pipeline tasks from ``turbo.json`` when testing is off."""
    document = parse_manifest(raw, TURBO_CONFIG)
    if not features.testing:
        delete_keys(document, "tasks", TESTING_TURBO_TASKS)
    return serialize_manifest(document)
