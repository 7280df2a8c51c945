"""Optional feature catalog and per-feature exclusion table.

The exclusion paths are relative to the template root and are versioned in
lockstep with the template revision blitzgen downloads.  A path listed here
that no longer exists in the template is simply skipped at generation time.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FeatureKey(str, Enum):
    """Identifiers of the optional template features."""

    TESTING = "testing"
    ADMIN = "admin"
    UPLOADS = "uploads"
    DEPLOYMENT = "deployment"


class Feature(BaseModel):
    """Display metadata for one optional feature."""

    model_config = ConfigDict(frozen=True)

    key: FeatureKey
    name: str
    description: str


OPTIONAL_FEATURES: tuple[Feature, ...] = (
    Feature(
        key=FeatureKey.TESTING,
        name="Testing",
        description="vitest, integration tests, test helpers",
    ),
    Feature(
        key=FeatureKey.ADMIN,
        name="Admin Dashboard",
        description="user management, stats, sessions admin",
    ),
    Feature(
        key=FeatureKey.UPLOADS,
        name="File Uploads",
        description="S3 storage, upload routes, file components",
    ),
    Feature(
        key=FeatureKey.DEPLOYMENT,
        name="Deployment",
        description="Dockerfile, CI/CD workflows, production configs",
    ),
)


FEATURE_EXCLUSIONS: dict[FeatureKey, tuple[str, ...]] = {
    FeatureKey.TESTING: (
        "vitest.workspace.ts",
        "vitest.shared.ts",
        "apps/api/test",
        "apps/api/vitest.config.ts",
        "apps/web/src/test",
        "apps/web/vitest.config.ts",
        "packages/types/src/__tests__",
        "packages/types/vitest.config.ts",
        "packages/utils/src/__tests__",
        "packages/utils/vitest.config.ts",
        "packages/ui/src/__tests__",
        "packages/ui/vitest.config.ts",
        "packages/ui/vitest.setup.ts",
        "packages/ui/test-config.js",
        "apps/web/src/hooks/api/__tests__",
    ),
    FeatureKey.ADMIN: (
        "apps/web/src/app/(admin)",
        "apps/web/src/components/admin",
        "apps/web/src/hooks/api/use-admin-sessions.ts",
        "apps/web/src/hooks/api/use-admin-stats.ts",
        "apps/web/src/hooks/use-realtime-metrics.ts",
        "apps/api/src/routes/admin-sessions.ts",
        "apps/api/src/routes/stats.ts",
        "apps/api/src/routes/metrics.ts",
        "apps/api/src/services/stats.service.ts",
        "apps/api/src/services/metrics.service.ts",
        "packages/types/src/stats.ts",
    ),
    FeatureKey.UPLOADS: (
        "apps/api/src/routes/uploads.ts",
        "apps/api/src/routes/uploads-serve.ts",
        "apps/api/src/services/uploads.service.ts",
        "apps/api/src/services/file-storage.service.ts",
        "apps/api/public/uploads",
        "apps/web/src/hooks/api/use-uploads.ts",
        "packages/ui/src/file-upload-input.tsx",
        "packages/types/src/upload.ts",
    ),
    FeatureKey.DEPLOYMENT: (
        "Dockerfile",
        "Dockerfile.web",
        "docker-compose.prod.yml",
        ".github",
    ),
}


def get_feature(key: FeatureKey | str) -> Feature:
    """Return the catalog entry for *key*.

    Raises:
        KeyError: If *key* is not a known feature.
    """
    try:
        wanted = FeatureKey(key)
    except ValueError:
        raise KeyError(key) from None
    for feature in OPTIONAL_FEATURES:
        if feature.key is wanted:
            return feature
    raise KeyError(key)


class FeatureOptions(BaseModel):
    """Which optional features are retained in the generated project.

    Every feature defaults to enabled, matching the all-selected default of
    the feature picker.  Instances are immutable once built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    testing: bool = Field(default=True)
    admin: bool = Field(default=True)
    uploads: bool = Field(default=True)
    deployment: bool = Field(default=True)

    def is_enabled(self, key: FeatureKey | str) -> bool:
        return bool(getattr(self, FeatureKey(key).value))

    def disabled(self) -> list[FeatureKey]:
        """Disabled feature keys in catalog order."""
        return [key for key in FeatureKey if not self.is_enabled(key)]

    def enabled(self) -> list[FeatureKey]:
        """Enabled feature keys in catalog order."""
        return [key for key in FeatureKey if self.is_enabled(key)]

    @classmethod
    def from_selection(cls, selected: Iterable[FeatureKey | str]) -> "FeatureOptions":
        """Enable exactly the *selected* features; everything else is off."""
        chosen = {FeatureKey(key) for key in selected}
        return cls(**{key.value: key in chosen for key in FeatureKey})

    @classmethod
    def from_disabled(cls, disabled: Iterable[FeatureKey | str]) -> "FeatureOptions":
        """Disable the given features; everything else stays on."""
        off = {FeatureKey(key) for key in disabled}
        return cls(**{key.value: key not in off for key in FeatureKey})
